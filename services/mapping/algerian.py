# services/mapping/algerian.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from services.mapping.aliases import DEFAULT_TABLE, AliasTable, canonical_name
from services.mapping.records import CanonicalField, RawExtractionRecord
from services.mapping.resolver import FieldMap, resolve_field


@dataclass(frozen=True)
class NomenclatureEntry:
    name: str
    name_ar: str
    code: str = ""


LEGAL_TYPES: Tuple[NomenclatureEntry, ...] = (
    NomenclatureEntry("Constitution", "الدستور", "CON"),
    NomenclatureEntry("Loi Organique", "قانون عضوي", "LOR"),
    NomenclatureEntry("Loi", "قانون", "LOI"),
    NomenclatureEntry("Ordonnance", "أمر", "ORD"),
    NomenclatureEntry("Décret Présidentiel", "مرسوم رئاسي", "DPR"),
    NomenclatureEntry("Décret Exécutif", "مرسوم تنفيذي", "DEX"),
    NomenclatureEntry("Arrêté Ministériel", "قرار وزاري", "ARM"),
    NomenclatureEntry("Arrêté Interministériel", "قرار مشترك بين الوزارات", "AIM"),
    NomenclatureEntry("Décision", "قرار", "DCS"),
    NomenclatureEntry("Instruction", "تعليمة", "INS"),
    NomenclatureEntry("Circulaire", "منشور", "CIR"),
)

INSTITUTIONS: Tuple[NomenclatureEntry, ...] = (
    NomenclatureEntry("Présidence de la République", "رئاسة الجمهورية", "PR"),
    NomenclatureEntry("Premier Ministère", "الوزارة الأولى", "PM"),
    NomenclatureEntry("Ministère de la Justice", "وزارة العدل", "MJ"),
    NomenclatureEntry("Ministère de l'Intérieur et des Collectivités locales", "وزارة الداخلية والجماعات المحلية", "MICL"),
    NomenclatureEntry("Ministère des Finances", "وزارة المالية", "MF"),
    NomenclatureEntry("Ministère du Commerce", "وزارة التجارة", "MC"),
    NomenclatureEntry("Ministère de l'Agriculture", "وزارة الفلاحة", "MA"),
    NomenclatureEntry("Wilaya", "الولاية", "WIL"),
    NomenclatureEntry("Commune", "البلدية", "COM"),
)

JURIDICAL_DOMAINS: Tuple[NomenclatureEntry, ...] = (
    NomenclatureEntry("Droit Civil", "القانون المدني", "CIV"),
    NomenclatureEntry("Droit Commercial", "القانون التجاري", "COM"),
    NomenclatureEntry("Droit Pénal", "القانون الجنائي", "PEN"),
    NomenclatureEntry("Droit Administratif", "القانون الإداري", "ADM"),
    NomenclatureEntry("Droit Fiscal", "القانون الضريبي", "FIS"),
    NomenclatureEntry("Droit Social", "القانون الاجتماعي", "SOC"),
    NomenclatureEntry("Droit de la Famille", "قانون الأسرة", "FAM"),
    NomenclatureEntry("Droit de l'Environnement", "قانون البيئة", "ENV"),
)

PROCEDURE_SECTORS: Tuple[NomenclatureEntry, ...] = (
    NomenclatureEntry("État Civil", "الحالة المدنية", "EC"),
    NomenclatureEntry("Commerce", "التجارة", "COM"),
    NomenclatureEntry("Urbanisme", "التعمير", "URB"),
    NomenclatureEntry("Fiscalité", "الضرائب", "FIS"),
    NomenclatureEntry("Social", "الشؤون الاجتماعية", "SOC"),
    NomenclatureEntry("Transport", "النقل", "TRA"),
    NomenclatureEntry("Éducation", "التربية والتعليم", "EDU"),
    NomenclatureEntry("Santé", "الصحة", "SAN"),
    NomenclatureEntry("Agriculture", "الفلاحة", "AGR"),
    NomenclatureEntry("Environnement", "البيئة", "ENV"),
)

_REFERENCE_RE = re.compile(r"\d{2,3}[-/]\d{2,4}")


def _contained_len(entry: NomenclatureEntry, value: str) -> int:
    """Length of the longest entry name (French or Arabic) found inside value, 0 if none."""
    hits = [len(entry.name)] if entry.name.lower() in value.lower() else []
    if entry.name_ar in value:
        hits.append(len(entry.name_ar))
    return max(hits, default=0)


def _match_entry(value: str, entries: Sequence[NomenclatureEntry], min_partial: int) -> Optional[NomenclatureEntry]:
    # A full entry name inside the value wins; the longest one if several.
    contained = [(e, _contained_len(e, value)) for e in entries]
    contained = [(e, n) for e, n in contained if n]
    if contained:
        return max(contained, key=lambda pair: pair[1])[0]
    # A bare prefix like "arrêté" must point at exactly one entry, else the
    # generic value is kept.
    v = value.lower()
    if len(v) >= min_partial:
        partial = [e for e in entries if v in e.name.lower()]
        if len(partial) == 1:
            return partial[0]
    return None


def _match_type(value: str) -> Optional[NomenclatureEntry]:
    v = value.lower()
    for t in LEGAL_TYPES:
        if v == t.code.lower() or v == t.name.lower() or value == t.name_ar:
            return t
    return _match_entry(value, LEGAL_TYPES, 3)


def _match_containing(value: str, entries: Sequence[NomenclatureEntry]) -> Optional[NomenclatureEntry]:
    return _match_entry(value, entries, 4)


class AlgerianResolver:
    """
    Specialized pass for Algerian legal texts and procedures.

    Resolves the same keys as the generic pass, then canonicalizes type,
    authority, category and sector against the national nomenclature.
    Fields it cannot canonicalize come back as "" so the generic value wins.
    """

    SPECIALIZED_FIELDS = ("type", "authority", "category", "sector")

    def __init__(self, table: Optional[AliasTable] = None) -> None:
        self.table = table or DEFAULT_TABLE

    def __call__(self, raw: RawExtractionRecord, schema: Sequence[CanonicalField]) -> FieldMap:
        out: FieldMap = {}
        for f in schema:
            canonical = canonical_name(f.name)
            if canonical not in self.SPECIALIZED_FIELDS:
                out[f.name] = ""
                continue
            value = resolve_field(raw, f.name, self.table)
            out[f.name] = self.canonicalize(canonical, value) if value else ""
        return out

    @staticmethod
    def canonicalize(field_name: str, value: str) -> str:
        if field_name == "type":
            hit = _match_type(value)
        elif field_name == "authority":
            hit = _match_containing(value, INSTITUTIONS)
        elif field_name == "category":
            hit = _match_containing(value, JURIDICAL_DOMAINS)
        elif field_name == "sector":
            hit = _match_containing(value, PROCEDURE_SECTORS)
        else:
            hit = None
        return hit.name if hit else ""


@dataclass(frozen=True)
class ConfidenceAssessment:
    confidence: int
    errors: List[str]
    is_valid: bool


def assess_confidence(fields: Mapping[str, Any], kind: str = "legal") -> ConfidenceAssessment:
    """
    Heuristic plausibility score (0-95) for an Algerian document.

    `fields` is a mapped record keyed by canonical names.
    """
    confidence = 50
    errors: List[str] = []

    def _s(key: str) -> str:
        v = fields.get(key)
        return v.strip() if isinstance(v, str) else ""

    if kind == "legal":
        if "République Algérienne" in _s("header"):
            confidence += 20
        if any(t.name == _s("type") for t in LEGAL_TYPES):
            confidence += 15
        if _REFERENCE_RE.search(_s("reference")):
            confidence += 10
        if _s("journal_number"):
            confidence += 10
        if _s("authority"):
            confidence += 10

        if _s("type") == "Constitution" and "2020" not in _s("reference"):
            errors.append("Constitution algérienne attendue de 2020")
            confidence -= 10

    elif kind == "procedure":
        if len(_s("procedure_name")) > 10:
            confidence += 15
        if any(s.name == _s("sector") for s in PROCEDURE_SECTORS):
            confidence += 15
        if _s("location"):
            confidence += 10
        if _s("duration"):
            confidence += 5
        if _s("cost"):
            confidence += 5

    if _s("language") == "mixed":
        confidence += 5

    confidence = min(confidence, 95)
    return ConfidenceAssessment(confidence=confidence, errors=errors, is_valid=confidence >= 60)
