# apps/api_gateway/app_factory.py
from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional, Sequence

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from apps.common.logging import get_logger
from services.intake.normalize import MappedDocument, normalize
from services.mapping.aliases import DEFAULT_TABLE, AliasTable
from services.mapping.records import CanonicalField, RawExtractionRecord
from services.mapping.resolver import Resolver
from services.workflow.domain import InsertionOrigin
from services.workflow.state_machine import (
    HIGH_PRIORITY_BELOW,
    INVALID_TRANSITION,
    TRANSITIONS,
    submit,
    submit_mapped,
)
from services.workflow.store import ALL, CaseNotFoundError, InMemoryCaseStore


LOGGER = get_logger(__name__)


class ExtractionPayload(BaseModel):
    values: Dict[str, Any] = Field(default_factory=dict)
    confidence: float = 0.0
    kind: str = "legal"
    schema_name: Optional[str] = None


class SubmitPayload(BaseModel):
    submitted_by: str
    title: str = ""
    document_type: str = ""
    confidence: float = 100.0
    urgent: bool = False
    record: Optional[ExtractionPayload] = None
    selected_type: Optional[str] = None


class TransitionPayload(BaseModel):
    actor: str
    content: str = ""
    scheduled_for: Optional[date] = None
    assignee: Optional[str] = None


def create_app(
    *,
    store: InMemoryCaseStore,
    schemas: Dict[str, Sequence[CanonicalField]],
    table: AliasTable = DEFAULT_TABLE,
    specialized: Optional[Resolver] = None,
    default_type: str = "loi",
    fill_defaults: bool = False,
    high_priority_below: float = HIGH_PRIORITY_BELOW,
) -> FastAPI:
    app = FastAPI(title="Legal Document Intake & Review API")

    def normalize_payload(p: ExtractionPayload) -> MappedDocument:
        schema_name = p.schema_name or p.kind
        schema = schemas.get(schema_name)
        if schema is None:
            raise HTTPException(status_code=400, detail=f"unknown_schema: {schema_name}")
        raw = RawExtractionRecord(values=p.values, confidence=p.confidence, kind=p.kind)
        return normalize(
            raw,
            schema,
            specialized,
            default_type=default_type,
            table=table,
            fill_defaults=fill_defaults,
        )

    def get_case_or_404(case_id: str):
        try:
            return store.get(case_id)
        except CaseNotFoundError:
            raise HTTPException(status_code=404, detail="case_not_found") from None

    @app.get("/")
    async def root():
        return RedirectResponse(url="/docs")

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    @app.post("/intake/normalize")
    def normalize_extraction(payload: ExtractionPayload):
        return normalize_payload(payload).to_dict()

    @app.post("/cases", status_code=201)
    def submit_case(payload: SubmitPayload):
        if payload.record is not None:
            doc = normalize_payload(payload.record)
            if payload.selected_type:
                doc = doc.with_selected_type(payload.selected_type)
            case = submit_mapped(
                doc,
                payload.submitted_by,
                origin=InsertionOrigin.EXTRACTED,
                urgent=payload.urgent,
                high_priority_below=high_priority_below,
            )
        else:
            if not payload.title.strip():
                raise HTTPException(status_code=400, detail="title_required")
            case = submit(
                title=payload.title,
                document_type=payload.document_type or default_type,
                submitted_by=payload.submitted_by,
                origin=InsertionOrigin.MANUAL,
                confidence=payload.confidence,
                urgent=payload.urgent,
                high_priority_below=high_priority_below,
            )
        store.add(case)
        return case.to_dict()

    @app.get("/cases")
    def list_cases(
        status: str = Query(ALL),
        document_class: str = Query(ALL),
        origin: str = Query(ALL),
        q: str = Query(""),
    ):
        cases = store.search(status=status, document_class=document_class, origin=origin, text=q)
        return {"count": len(cases), "cases": [c.to_dict() for c in cases]}

    @app.get("/cases/pending")
    def pending_cases(assignee: Optional[str] = Query(None)):
        cases = store.pending_queue(assignee)
        return {"count": len(cases), "cases": [c.to_dict() for c in cases]}

    @app.get("/cases/stats")
    def case_statistics():
        return store.statistics()

    @app.get("/cases/{case_id}")
    def get_case(case_id: str):
        return get_case_or_404(case_id).to_dict()

    @app.post("/cases/{case_id}/transitions/{operation}")
    def transition_case(case_id: str, operation: str, payload: TransitionPayload):
        if operation not in TRANSITIONS:
            raise HTTPException(status_code=404, detail=f"unknown_operation: {operation}")
        get_case_or_404(case_id)

        result = store.transition(
            case_id,
            operation,
            payload.actor,
            payload.content,
            scheduled_for=payload.scheduled_for,
            assignee=payload.assignee,
        )
        body = {
            "ok": result.ok,
            "operation": result.operation,
            "error": result.error,
            "detail": result.detail,
            "case": result.case.to_dict(),
        }
        if result.ok:
            return body
        status_code = 409 if result.error == INVALID_TRANSITION else 400
        return JSONResponse(status_code=status_code, content=body)

    @app.get("/operations")
    def list_operations() -> List[Dict[str, Any]]:
        return [
            {
                "operation": name,
                "from": sorted(s.value for s in t.sources) if t.sources is not None else "any",
                "to": t.target.value if t.target is not None else "unchanged",
                "comment_kind": t.kind.value,
            }
            for name, t in TRANSITIONS.items()
        ]

    return app
