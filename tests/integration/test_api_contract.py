# tests/integration/test_api_contract.py
from __future__ import annotations

from fastapi.testclient import TestClient

from apps.api_gateway.app_factory import create_app
from services.mapping.algerian import AlgerianResolver
from services.mapping.records import CanonicalField
from services.workflow.store import InMemoryCaseStore


SCHEMAS = {
    "legal": [
        CanonicalField(name="title"),
        CanonicalField(name="type", role="type"),
        CanonicalField(name="reference"),
        CanonicalField(name="authority"),
        CanonicalField(name="language", default="Français"),
    ],
    "procedure": [CanonicalField(name="procedure_name"), CanonicalField(name="sector")],
}


def _client(**kw):
    store = kw.pop("store", None) or InMemoryCaseStore()
    app = create_app(store=store, schemas=SCHEMAS, **kw)
    return TestClient(app), store


def _submit_manual(client, title="Loi de finances 2025", **extra):
    body = {"submitted_by": "amina", "title": title, "document_type": "Loi"}
    body.update(extra)
    r = client.post("/cases", json=body)
    assert r.status_code == 201, r.text
    return r.json()


def test_health():
    client, _ = _client()
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "healthy"}


def test_normalize_contract():
    client, _ = _client(specialized=AlgerianResolver(), fill_defaults=True)
    r = client.post("/intake/normalize", json={
        "values": {"titre": "Loi n° 25-01", "numero": "25-01", "institution": "وزارة العدل"},
        "confidence": 87,
    })
    assert r.status_code == 200
    j = r.json()
    assert list(j["fields"]) == ["title", "type", "reference", "authority", "language"]
    assert j["fields"]["title"] == "Loi n° 25-01"
    assert j["fields"]["authority"] == "Ministère de la Justice"
    assert j["fields"]["type"] == ""
    assert j["fields"]["language"] == "Français"
    assert j["defaulted"] == ["language"]
    assert j["selected_type"] == "loi"
    assert j["raw"]["confidence"] == 87


def test_normalize_unknown_schema_is_400():
    client, _ = _client()
    r = client.post("/intake/normalize", json={"values": {}, "kind": "circulaire"})
    assert r.status_code == 400
    assert "unknown_schema" in r.json()["detail"]


def test_submit_manual_requires_title():
    client, _ = _client()
    r = client.post("/cases", json={"submitted_by": "amina", "title": "  "})
    assert r.status_code == 400
    assert r.json()["detail"] == "title_required"


def test_submit_from_record_uses_selected_type_override():
    client, store = _client()
    r = client.post("/cases", json={
        "submitted_by": "ocr-bot",
        "record": {"values": {"title": "Arrêté du 3 mars", "type": "Loi"}, "confidence": 70},
        "selected_type": "Arrêté Ministériel",
    })
    assert r.status_code == 201
    j = r.json()
    assert j["origin"] == "extracted"
    assert j["document_class"] == "arrete"
    assert j["document_type"] == "Arrêté Ministériel"
    assert j["priority"] == "high"
    assert j["payload"]["fields"]["type"] == "Loi"
    assert j["id"] in store


def test_full_workflow_over_http():
    client, _ = _client()
    case_id = _submit_manual(client)["id"]

    for op, body in [
        ("begin_review", {"actor": "reviewer"}),
        ("approve", {"actor": "reviewer", "content": "Conforme"}),
        ("schedule", {"actor": "editor", "scheduled_for": "2025-04-01"}),
        ("publish", {"actor": "editor"}),
    ]:
        r = client.post(f"/cases/{case_id}/transitions/{op}", json=body)
        assert r.status_code == 200, r.text
        assert r.json()["ok"] is True

    case = client.get(f"/cases/{case_id}").json()
    assert case["status"] == "published"
    assert case["scheduled_for"] == "2025-04-01"
    assert [c["kind"] for c in case["comments"]] == ["comment", "approval", "scheduling", "publication_note"]


def test_illegal_transition_is_409_and_case_unchanged():
    client, _ = _client()
    case_id = _submit_manual(client)["id"]
    r = client.post(f"/cases/{case_id}/transitions/publish", json={"actor": "editor"})
    assert r.status_code == 409
    j = r.json()
    assert j["ok"] is False
    assert j["error"] == "invalid_transition"
    assert j["case"]["status"] == "pending"
    assert client.get(f"/cases/{case_id}").json()["comments"] == []


def test_empty_comment_is_400():
    client, _ = _client()
    case_id = _submit_manual(client)["id"]
    r = client.post(f"/cases/{case_id}/transitions/comment", json={"actor": "x", "content": ""})
    assert r.status_code == 400
    assert r.json()["error"] == "empty_comment"


def test_unknown_case_and_operation_are_404():
    client, _ = _client()
    assert client.get("/cases/nope").status_code == 404
    assert client.post("/cases/nope/transitions/approve", json={"actor": "x"}).status_code == 404
    case_id = _submit_manual(client)["id"]
    r = client.post(f"/cases/{case_id}/transitions/archive", json={"actor": "x"})
    assert r.status_code == 404


def test_listing_pending_and_stats():
    client, _ = _client()
    _submit_manual(client, title="Loi de finances 2025")
    low = _submit_manual(client, title="Décret exécutif 25-45", document_type="Décret Exécutif", confidence=50)
    client.post("/cases", json={
        "submitted_by": "ocr-bot",
        "record": {"values": {"procedure_name": "Carte grise"}, "kind": "procedure", "confidence": 90},
    })

    listed = client.get("/cases", params={"document_class": "textes_juridiques"}).json()
    assert listed["count"] == 2
    assert client.get("/cases", params={"q": "carte"}).json()["count"] == 1
    assert client.get("/cases", params={"origin": "extracted"}).json()["count"] == 1

    pending = client.get("/cases/pending").json()
    assert pending["count"] == 3
    assert pending["cases"][0]["id"] == low["id"]

    stats = client.get("/cases/stats").json()
    assert stats["total"] == 3
    assert stats["by_class"]["procedure"] == 1


def test_operations_catalogue():
    client, _ = _client()
    ops = {o["operation"]: o for o in client.get("/operations").json()}
    assert ops["publish"]["from"] == ["scheduled"]
    assert ops["comment"]["from"] == "any"
    assert ops["assign"]["to"] == "unchanged"


def test_created_cases_are_routed_and_confidence_clamped():
    client, _ = _client()
    manual = _submit_manual(client, title="Arrêté portant organisation", document_type="Arrêté", confidence=500)
    assert manual["assigned_to"] == "admin_reviewer"
    assert manual["confidence"] == 100.0
    assert manual["priority"] == "medium"

    extracted = client.post("/cases", json={
        "submitted_by": "ocr-bot",
        "record": {"values": {"nom_procedure": "Passeport biométrique"}, "kind": "procedure", "confidence": 91},
    }).json()
    assert extracted["assigned_to"] == "general_reviewer"
    assert extracted["title"] == "Passeport biométrique"

    routed = client.get("/cases/pending", params={"assignee": "admin_reviewer"}).json()
    assert [c["id"] for c in routed["cases"]] == [manual["id"]]
