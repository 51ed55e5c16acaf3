from __future__ import annotations

import services.mapping.resolver as resolver_mod
from services.mapping.aliases import DEFAULT_TABLE, AliasTable, lookup
from services.mapping.records import CanonicalField, FieldAliases, PatternRule, RawExtractionRecord


def _schema(*names):
    return [CanonicalField(name=n) for n in names]


def test_lookup_unknown_field_is_empty_not_error():
    out = lookup("no_such_field")
    assert out.synonym_keys == ()
    assert out.patterns == ()
    assert out.is_empty


def test_lookup_accepts_french_form_names():
    assert lookup("titre") == lookup("title")
    assert lookup("mots_cles").synonym_keys == ("keywords", "mots_cles")


def test_synonym_order_skips_empty_values():
    table = AliasTable({"title": FieldAliases(synonym_keys=("title", "name"))})
    raw = RawExtractionRecord(values={"title": "", "name": "X"})
    assert resolver_mod.resolve(raw, _schema("title"), table) == {"title": "X"}


def test_first_non_empty_synonym_wins_even_if_later_ones_exist():
    raw = RawExtractionRecord(values={"titre": "Premier", "title": "Second", "name": "Troisième"})
    assert resolver_mod.resolve(raw, _schema("title"))["title"] == "Premier"


def test_whitespace_only_value_counts_as_missing():
    raw = RawExtractionRecord(values={"reference": "   ", "numero_ref": " 25-01 "})
    assert resolver_mod.resolve(raw, _schema("reference"))["reference"] == "25-01"


def test_pattern_fallback_extracts_title_from_content():
    raw = RawExtractionRecord(values={"content": "Décret relatif à la fiscalité numérique"})
    title = resolver_mod.resolve(raw, _schema("title"))["title"]
    assert title
    assert "fiscalité numérique" in title


def test_full_text_priority_content_then_contenu_then_text():
    raw = RawExtractionRecord(values={"content": "  ", "contenu": "B", "text": "C"})
    assert resolver_mod.full_text_of(raw) == "B"
    raw2 = RawExtractionRecord(values={"text": "C"})
    assert resolver_mod.full_text_of(raw2) == "C"


def test_pattern_bounds_are_enforced_after_trim():
    rules = (PatternRule(r"objet\s*:\s*(.+)", 5, 10),)
    assert resolver_mod.extract_with_patterns("objet: court", rules) == "court"
    assert resolver_mod.extract_with_patterns("objet: abc", rules) == ""
    assert resolver_mod.extract_with_patterns("objet: beaucoup trop long", rules) == ""


def test_patterns_tried_in_order():
    rules = (
        PatternRule(r"alpha\s+(\w+)", 1, 20),
        PatternRule(r"beta\s+(\w+)", 1, 20),
    )
    assert resolver_mod.extract_with_patterns("beta deux alpha un", rules) == "un"


def test_considerants_pattern_requires_fifty_chars():
    short = "Considérant que le texte est court."
    long_ = "Considérant que la modernisation des services publics impose une refonte du cadre juridique."
    schema = _schema("considerants")
    assert resolver_mod.resolve(RawExtractionRecord(values={"content": short}), schema)["considerants"] == ""
    got = resolver_mod.resolve(RawExtractionRecord(values={"contenu": long_}), schema)["considerants"]
    assert got.startswith("la modernisation des services publics")


def test_synonym_hit_does_not_run_patterns():
    raw = RawExtractionRecord(values={"title": "Loi de finances", "content": "Décret relatif à la fiscalité numérique"})
    assert resolver_mod.resolve(raw, _schema("title"))["title"] == "Loi de finances"


def test_missing_fields_are_empty_strings_never_none():
    raw = RawExtractionRecord(values={"unrelated": "x"})
    out = resolver_mod.resolve(raw, _schema("title", "reference", "not_in_table"))
    assert out == {"title": "", "reference": "", "not_in_table": ""}


def test_non_string_scalars_are_stringified_and_containers_ignored():
    raw = RawExtractionRecord(values={"numero": 2501, "keywords": ["a", "b"], "mots_cles": "a, b"})
    out = resolver_mod.resolve(raw, _schema("reference", "keywords"))
    assert out["reference"] == "2501"
    assert out["keywords"] == "a, b"


def test_resolve_is_deterministic():
    raw = RawExtractionRecord(values={
        "nom": "Code civil",
        "content": "Article premier : les dispositions du présent code s'appliquent à toutes les personnes résidant.",
    })
    schema = _schema("title", "article_1", "reference", "keywords")
    assert resolver_mod.resolve(raw, schema) == resolver_mod.resolve(raw, schema)


def test_output_keys_follow_schema_names():
    raw = RawExtractionRecord(values={"title": "T"})
    out = resolver_mod.resolve(raw, _schema("titre", "title"))
    assert list(out) == ["titre", "title"]
    assert out["titre"] == out["title"] == "T"


def test_raw_record_is_snapshot_of_caller_dict():
    values = {"title": "A"}
    raw = RawExtractionRecord(values=values)
    values["title"] = "B"
    assert raw.get("title") == "A"


def test_raw_record_from_envelope():
    raw = RawExtractionRecord.from_dict({"formData": {"titre": "X"}, "confidence": 140, "documentType": "procedure"})
    assert raw.get("titre") == "X"
    assert raw.confidence == 100.0
    assert raw.kind == "procedure"


def test_every_field_resolves_a_record_keyed_by_its_own_name():
    for name in DEFAULT_TABLE.field_names():
        if not DEFAULT_TABLE.lookup(name).synonym_keys:
            continue
        raw = RawExtractionRecord(values={name: "valeur"})
        assert resolver_mod.resolve(raw, _schema(name))[name] == "valeur", name


def test_procedure_name_keys_after_generic_name():
    schema = _schema("procedure_name")
    assert resolver_mod.resolve(RawExtractionRecord(values={"procedure_name": "Carte grise"}), schema) == {
        "procedure_name": "Carte grise"
    }
    assert resolver_mod.resolve(RawExtractionRecord(values={"nom_procedure": "Passeport"}), schema) == {
        "procedure_name": "Passeport"
    }
    both = RawExtractionRecord(values={"name": "Extrait de naissance", "procedure_name": "Autre"})
    assert resolver_mod.resolve(both, schema)["procedure_name"] == "Extrait de naissance"


def test_publication_date_accepts_date_publication():
    raw = RawExtractionRecord(values={"date_publication": "2025-02-14"})
    assert resolver_mod.resolve(raw, _schema("publication_date"))["publication_date"] == "2025-02-14"
