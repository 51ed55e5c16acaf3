# services/intake/normalize.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional, Sequence

from apps.common.logging import get_logger
from services.mapping.aliases import DEFAULT_TABLE, AliasTable, canonical_name
from services.mapping.records import CanonicalField, RawExtractionRecord
from services.mapping.resolver import FieldMap, Resolver, resolve


LOGGER = get_logger(__name__)

DEFAULT_SELECTED_TYPE = "loi"

# Ordered: the first keyword found in the lowered type decides the class.
_CLASS_KEYWORDS = (
    ("ordonnance", "ordonnance"),
    ("décret", "decret"),
    ("decret", "decret"),
    ("arrêté", "arrete"),
    ("arrete", "arrete"),
    ("code", "code"),
    ("procédure", "procedure"),
    ("procedure", "procedure"),
    ("loi", "loi"),
    ("constitution", "loi"),
)


@dataclass(frozen=True)
class MappedDocument:
    fields: Dict[str, str]
    raw: RawExtractionRecord
    selected_type: str
    filled_count: int
    defaulted: tuple = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Each instance owns its fields, including copies made by replace().
        object.__setattr__(self, "fields", dict(self.fields))

    def get(self, name: str) -> str:
        return self.fields.get(name, "")

    def with_selected_type(self, selected_type: str) -> "MappedDocument":
        """A user's explicit choice; the original intake result is left untouched."""
        return replace(self, selected_type=_safe_str(selected_type) or self.selected_type)

    def canonical_view(self) -> Dict[str, str]:
        """Same values keyed by canonical field name (first non-empty wins)."""
        out: Dict[str, str] = {}
        for k, v in self.fields.items():
            ck = canonical_name(k)
            if not out.get(ck):
                out[ck] = v
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": dict(self.fields),
            "selected_type": self.selected_type,
            "filled_count": self.filled_count,
            "defaulted": list(self.defaulted),
            "raw": {
                "values": dict(self.raw.values),
                "confidence": self.raw.confidence,
                "kind": self.raw.kind,
            },
        }


def _safe_str(x: Any) -> str:
    if x is None:
        return ""
    if isinstance(x, str):
        return x.strip()
    return str(x).strip()


def merge_mappings(generic: FieldMap, specialized: Optional[FieldMap]) -> FieldMap:
    """
    Per-field merge. A specialized value replaces the generic one only when
    it is non-empty; an empty specialized result never erases a generic value.
    """
    merged: FieldMap = {k: _safe_str(v) for k, v in (generic or {}).items()}
    for k, v in (specialized or {}).items():
        sv = _safe_str(v)
        if sv:
            merged[k] = sv
        else:
            merged.setdefault(k, "")
    return merged


def count_filled(fields: FieldMap) -> int:
    return sum(1 for v in fields.values() if _safe_str(v))


def derive_selected_type(fields: FieldMap, default_type: str) -> str:
    for k, v in fields.items():
        if canonical_name(k) == "type" and _safe_str(v):
            return _safe_str(v)
    return default_type


def classify_document_type(selected_type: str, default_class: str = "loi") -> str:
    """Maps a free-text type ("Décret Exécutif", "LOI", ...) to a DocumentClass value."""
    t = _safe_str(selected_type).lower()
    if not t:
        return default_class
    for keyword, cls in _CLASS_KEYWORDS:
        if keyword in t:
            return cls
    return default_class


def _apply_defaults(fields: FieldMap, schema: Sequence[CanonicalField]) -> tuple:
    applied = []
    for f in schema:
        if f.default and not fields.get(f.name):
            fields[f.name] = f.default
            applied.append(f.name)
    return tuple(applied)


def normalize(
    raw: RawExtractionRecord,
    schema: Sequence[CanonicalField],
    specialized: Optional[Resolver] = None,
    *,
    default_type: str = DEFAULT_SELECTED_TYPE,
    table: Optional[AliasTable] = None,
    fill_defaults: bool = False,
) -> MappedDocument:
    """
    Single intake entry point for extracted data.

    Runs the generic pass, optionally a specialized pass over the same
    record, merges them (specialized non-empty values win) and derives
    selected_type. With fill_defaults, schema defaults go into fields that
    are still empty after the merge.

    An empty record is not an error: all fields come back "" with a zero count.
    """
    if not isinstance(raw, RawExtractionRecord):
        raw = RawExtractionRecord.from_dict(raw)

    generic = resolve(raw, schema, table or DEFAULT_TABLE)
    special = specialized(raw, schema) if specialized is not None else None
    fields = merge_mappings(generic, special)

    # Keep schema order and drop anything a specialized pass added outside it.
    fields = {f.name: fields.get(f.name, "") for f in schema}
    defaulted = _apply_defaults(fields, schema) if fill_defaults else ()

    selected = derive_selected_type(fields, default_type)
    filled = count_filled(fields)

    LOGGER.debug(
        "Normalized %s record: %d/%d fields filled, selected_type=%s",
        raw.kind, filled, len(fields), selected,
    )
    return MappedDocument(
        fields=fields,
        raw=raw,
        selected_type=selected,
        filled_count=filled,
        defaulted=defaulted,
    )
