# services/mapping/aliases.py
from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from services.mapping.records import FieldAliases, PatternRule


# Free-text keys, in the order they are tried when a field falls back to patterns.
FULL_TEXT_KEYS: Tuple[str, ...] = ("content", "contenu", "text")


_TITLE_PATTERNS = (
    PatternRule(r"(?:titre|objet|sujet|intitulé)\s*:?\s*([^\n\r]{10,200})", 10, 200),
    PatternRule(r"^([^\n\r]{20,150})\s*(?:\n|\r)", 20, 150),
    PatternRule(
        r"(?:décret|arrêté|loi|ordonnance)\s+(?:n°|numéro)?\s*[\d\-/]*\s+(?:du|en date)\s+[\d/\-]+\s+"
        r"(?:relatif|relative|portant|fixant)\s+([^\n\r]{10,150})",
        10,
        150,
    ),
    PatternRule(r"(?:concernant|relatifs?|relatives?|portant sur)\s+([^\n\r]{10,150})", 10, 150),
)

_PROCEDURE_NAME_PATTERNS = (
    PatternRule(r"(?:demande|procédure|formalité)\s+(?:de|d'|pour)\s*([^.]{10,100})", 10, 100),
    PatternRule(r"(?:obtention|délivrance)\s+(?:de|d'|du)\s*([^.]{10,100})", 10, 100),
    PatternRule(r"([^.\n\r]{20,120})\s*(?:\n|\r)", 20, 120),
)


_BUILTIN: Dict[str, FieldAliases] = {
    "title": FieldAliases(
        synonym_keys=("titre", "title", "name", "nom", "intitule", "denomination", "libelle", "العنوان"),
        patterns=_TITLE_PATTERNS,
    ),
    "reference": FieldAliases(
        synonym_keys=("reference", "numero_ref", "numero_texte", "numero", "الرقم"),
        patterns=(PatternRule(r"n°\s*(\d{2,4}[-/]\d{1,4})", 3, 20),),
    ),
    "journal_number": FieldAliases(synonym_keys=("journal_numero", "journal_number")),
    "publication_date": FieldAliases(
        synonym_keys=(
            "date_journal", "publication_date", "date_publication", "publicationDate",
            "date", "dateGregorienne", "التاريخ",
        ),
    ),
    "page_number": FieldAliases(synonym_keys=("numero_page", "page_number", "page")),
    "header": FieldAliases(synonym_keys=("en_tete", "header")),
    "authority": FieldAliases(
        synonym_keys=("authority", "organisation", "autorite_signataire", "institution", "الجهة"),
    ),
    "content": FieldAliases(synonym_keys=FULL_TEXT_KEYS),
    "description": FieldAliases(synonym_keys=("description", "objet")),
    "type": FieldAliases(synonym_keys=("type", "TYPE", "type_texte", "النوع")),
    "category": FieldAliases(synonym_keys=("category", "domaine", "المجال")),
    "language": FieldAliases(synonym_keys=("language", "langue")),
    "status": FieldAliases(synonym_keys=("status", "statut")),
    "motif": FieldAliases(synonym_keys=("motif",)),
    "considerants": FieldAliases(
        patterns=(PatternRule(r"considérant\s+(?:que\s+)?([^.]{50,200})", 50, 200),),
    ),
    "article_1": FieldAliases(
        patterns=(PatternRule(r"article\s+(?:premier|1er|1)\s*:?\s*([^.]{50,300})", 50, 300),),
    ),
    "final_provisions": FieldAliases(
        patterns=(
            PatternRule(
                r"(?:article\s+(?:final|dernier)|dispositions?\s+finales?)\s*:?\s*([^.]{30,200})",
                30,
                200,
            ),
        ),
    ),
    "keywords": FieldAliases(synonym_keys=("keywords", "mots_cles")),
    "source": FieldAliases(synonym_keys=("source",)),
    "attachment": FieldAliases(synonym_keys=("piece_jointe", "attachment")),
    # Administrative procedures
    "procedure_name": FieldAliases(
        synonym_keys=(
            "name", "procedure_name", "nom_procedure", "titre", "title", "nom", "intitule", "denomination",
        ),
        patterns=_PROCEDURE_NAME_PATTERNS,
    ),
    "sector": FieldAliases(synonym_keys=("sector", "secteur", "ministry", "institution")),
    "duration": FieldAliases(synonym_keys=("duration", "duree", "delai")),
    "cost": FieldAliases(synonym_keys=("cost", "cout", "frais")),
    "location": FieldAliases(synonym_keys=("location", "wilaya", "commune")),
}

# Form vocabularies in use upstream name the same slot differently.
FIELD_NAME_ALIASES: Dict[str, str] = {
    "titre": "title",
    "numero_texte": "reference",
    "numero_ref": "reference",
    "journal_numero": "journal_number",
    "date_journal": "publication_date",
    "date_promulgation": "publication_date",
    "date_signature": "publication_date",
    "date": "publication_date",
    "numero_page": "page_number",
    "en_tete": "header",
    "organisation": "authority",
    "autorite_signataire": "authority",
    "contenu": "content",
    "objet": "description",
    "type_texte": "type",
    "domaine": "category",
    "langue": "language",
    "statut": "status",
    "article_premier": "article_1",
    "dispositions_finales": "final_provisions",
    "mots_cles": "keywords",
    "piece_jointe": "attachment",
    "nom_procedure": "procedure_name",
}


def canonical_name(field_name: str) -> str:
    k = (field_name or "").strip()
    return FIELD_NAME_ALIASES.get(k, k)


class AliasTable:
    """
    Per-field synonym keys and fallback extraction patterns.

    Lookups never fail: an unknown field yields an empty FieldAliases.
    """

    def __init__(self, entries: Optional[Mapping[str, FieldAliases]] = None) -> None:
        self._entries: Dict[str, FieldAliases] = dict(_BUILTIN if entries is None else entries)

    def lookup(self, field_name: str) -> FieldAliases:
        return self._entries.get(canonical_name(field_name), FieldAliases())

    def __contains__(self, field_name: str) -> bool:
        return canonical_name(field_name) in self._entries

    def field_names(self) -> Tuple[str, ...]:
        return tuple(self._entries)

    def with_overrides(self, overrides: Mapping[str, Mapping[str, Any]]) -> "AliasTable":
        """
        Returns a new table. For each overridden field, extra synonyms are tried
        before the built-in ones and extra patterns after the built-in ones.

        Expected override shape (already schema-validated):
          { field: { "synonyms": [str], "patterns": [{"regex", "min_len", "max_len"}] } }
        """
        merged = dict(self._entries)
        for name, spec in (overrides or {}).items():
            key = canonical_name(name)
            base = merged.get(key, FieldAliases())
            extra_keys = tuple(str(s) for s in spec.get("synonyms", []) or [])
            extra_patterns = tuple(
                PatternRule(str(p["regex"]), int(p["min_len"]), int(p["max_len"]))
                for p in spec.get("patterns", []) or []
            )
            merged[key] = FieldAliases(
                synonym_keys=_dedupe(extra_keys + base.synonym_keys),
                patterns=base.patterns + extra_patterns,
            )
        return AliasTable(merged)


def _dedupe(keys: Iterable[str]) -> Tuple[str, ...]:
    seen = set()
    out = []
    for k in keys:
        if k not in seen:
            seen.add(k)
            out.append(k)
    return tuple(out)


DEFAULT_TABLE = AliasTable()


def lookup(field_name: str) -> FieldAliases:
    return DEFAULT_TABLE.lookup(field_name)
