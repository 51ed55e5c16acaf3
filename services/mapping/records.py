# services/mapping/records.py
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class PatternRule:
    """
    One ordered free-text extractor.

    `regex` must contain at least one capture group; group 1 is the value.
    The trimmed capture is accepted only if min_len <= len(value) <= max_len.
    """
    regex: str
    min_len: int
    max_len: int


@dataclass(frozen=True)
class FieldAliases:
    synonym_keys: Tuple[str, ...] = ()
    patterns: Tuple[PatternRule, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.synonym_keys and not self.patterns


@dataclass(frozen=True)
class CanonicalField:
    name: str
    role: str = "text"          # "text", "date", "type", "longtext", ...
    default: Optional[str] = None


@dataclass(frozen=True)
class RawExtractionRecord:
    values: Mapping[str, Any] = field(default_factory=dict)
    confidence: float = 0.0
    kind: str = "legal"         # "legal" or "procedure"

    def __post_init__(self) -> None:
        # Snapshot the caller's dict so later mutation of it cannot leak in.
        object.__setattr__(self, "values", MappingProxyType(dict(self.values or {})))
        object.__setattr__(self, "confidence", clamp_confidence(self.confidence))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RawExtractionRecord":
        """
        Accepts either a bare key/value map or the extraction-service envelope:
          { "formData": {...}, "confidence": 92.5, "documentType": "legal" }
        """
        data = data or {}
        if isinstance(data.get("formData"), dict):
            return cls(
                values=data["formData"],
                confidence=data.get("confidence", 0.0),
                kind=str(data.get("documentType") or "legal"),
            )
        return cls(values=data)

    def get(self, key: str) -> Any:
        return self.values.get(key)


def clamp_confidence(v: Any) -> float:
    try:
        c = float(v)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(100.0, c))
