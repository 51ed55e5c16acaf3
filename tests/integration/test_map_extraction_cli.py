from __future__ import annotations

import io
import json

import pytest
from rich.console import Console

import tools.map_extraction as cli


@pytest.fixture()
def out(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(cli, "console", Console(file=buf, width=200))
    for k in ("LEGAL_CONFIG_PATH", "LEGAL_JURISDICTION", "LEGAL_FILL_DEFAULTS"):
        monkeypatch.delenv(k, raising=False)
    return buf


def _record(tmp_path, obj):
    p = tmp_path / "record.json"
    p.write_text(json.dumps(obj, ensure_ascii=False), encoding="utf-8")
    return str(p)


def test_json_output_uses_repo_config(tmp_path, out):
    path = _record(tmp_path, {
        "formData": {"titre": "Loi n° 25-01 relative à la fiscalité numérique", "type": "LOI", "numero": "25-01"},
        "confidence": 88,
        "documentType": "legal",
    })
    assert cli.main([path, "--json"]) == 0
    doc = json.loads(out.getvalue())
    assert doc["fields"]["title"].startswith("Loi n° 25-01")
    assert doc["fields"]["type"] == "Loi"
    assert doc["fields"]["language"] == "Français"
    assert doc["selected_type"] == "Loi"


def test_generic_only_skips_nomenclature(tmp_path, out):
    path = _record(tmp_path, {"type": "LOI"})
    assert cli.main([path, "--json", "--generic-only"]) == 0
    assert json.loads(out.getvalue())["fields"]["type"] == "LOI"


def test_table_output_reports_fill_count(tmp_path, out):
    path = _record(tmp_path, {"formData": {"procedure_name": "Délivrance du registre de commerce", "secteur": "Commerce"},
                              "documentType": "procedure"})
    assert cli.main([path]) == 0
    text = out.getvalue()
    assert "procedure_name" in text
    assert "fields filled" in text
    assert "Nomenclature check" in text


def test_unknown_schema_exit_code(tmp_path, out):
    path = _record(tmp_path, {"title": "x"})
    assert cli.main([path, "--schema", "circulaire"]) == 2
    assert "Unknown schema" in out.getvalue()
