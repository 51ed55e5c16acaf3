# services/mapping/resolver.py
from __future__ import annotations

import re
from functools import lru_cache
from typing import Any, Dict, Optional, Protocol, Sequence

from apps.common.logging import get_logger
from services.mapping.aliases import DEFAULT_TABLE, FULL_TEXT_KEYS, AliasTable
from services.mapping.records import CanonicalField, PatternRule, RawExtractionRecord


LOGGER = get_logger(__name__)

FieldMap = Dict[str, str]


class Resolver(Protocol):
    def __call__(self, raw: RawExtractionRecord, schema: Sequence[CanonicalField]) -> FieldMap: ...


def _safe_str(x: Any) -> str:
    if x is None or isinstance(x, (dict, list, tuple, set)):
        return ""
    if isinstance(x, str):
        return x.strip()
    return str(x).strip()


@lru_cache(maxsize=256)
def _compile(regex: str) -> "re.Pattern[str]":
    return re.compile(regex, re.IGNORECASE | re.MULTILINE)


def full_text_of(raw: RawExtractionRecord) -> str:
    """First non-empty free-text value among FULL_TEXT_KEYS, untrimmed."""
    for key in FULL_TEXT_KEYS:
        v = raw.get(key)
        if isinstance(v, str) and v.strip():
            return v
    return ""


def extract_with_patterns(text: str, patterns: Sequence[PatternRule]) -> str:
    """
    Runs each pattern in order; the first capture whose trimmed length lies in
    [min_len, max_len] wins. Returns "" if none qualifies.
    """
    if not text:
        return ""
    for rule in patterns:
        m = _compile(rule.regex).search(text)
        if not m or m.lastindex is None:
            continue
        value = (m.group(1) or "").strip()
        if value and rule.min_len <= len(value) <= rule.max_len:
            return value
    return ""


def resolve_field(raw: RawExtractionRecord, field_name: str, table: AliasTable = DEFAULT_TABLE) -> str:
    aliases = table.lookup(field_name)

    for key in aliases.synonym_keys:
        value = _safe_str(raw.get(key))
        if value:
            return value

    if aliases.patterns:
        return extract_with_patterns(full_text_of(raw), aliases.patterns)

    return ""


def resolve(
    raw: RawExtractionRecord,
    schema: Sequence[CanonicalField],
    table: Optional[AliasTable] = None,
) -> FieldMap:
    """
    Generic field-mapping pass.

    Every schema field appears in the output; unresolved fields are "".
    Pure: the same (raw, schema, table) always gives the same mapping.
    """
    table = table or DEFAULT_TABLE
    out: FieldMap = {}
    unknown = []
    for f in schema:
        if f.name not in table:
            unknown.append(f.name)
            out[f.name] = ""
            continue
        out[f.name] = resolve_field(raw, f.name, table)

    if unknown:
        LOGGER.debug("No alias entry for fields %s; left empty", unknown)
    return out


class GenericResolver:
    """Resolver bound to one alias table, for callers that pass resolvers around."""

    def __init__(self, table: Optional[AliasTable] = None) -> None:
        self.table = table or DEFAULT_TABLE

    def __call__(self, raw: RawExtractionRecord, schema: Sequence[CanonicalField]) -> FieldMap:
        return resolve(raw, schema, self.table)
