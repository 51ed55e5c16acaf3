# services/workflow/state_machine.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timezone
from typing import Callable, Dict, FrozenSet, Optional
from uuid import uuid4

from apps.common.logging import get_logger
from services.intake.normalize import MappedDocument, classify_document_type
from services.mapping.records import clamp_confidence
from services.workflow.domain import (
    TERMINAL,
    CaseComment,
    CommentKind,
    DocumentCase,
    DocumentClass,
    InsertionOrigin,
    Priority,
    Status,
)


LOGGER = get_logger(__name__)

Clock = Callable[[], datetime]

HIGH_PRIORITY_BELOW = 80.0

INVALID_TRANSITION = "invalid_transition"
EMPTY_COMMENT = "empty_comment"
EMPTY_ASSIGNEE = "empty_assignee"
UNKNOWN_OPERATION = "unknown_operation"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
    sources: Optional[FrozenSet[Status]]   # None = any status
    target: Optional[Status]               # None = status unchanged
    kind: CommentKind
    default_note: str


_REVIEWABLE = frozenset({Status.PENDING, Status.UNDER_REVIEW})
_SCHEDULABLE_OR_SCHEDULED = frozenset({Status.APPROVED_PENDING_PUBLICATION, Status.SCHEDULED})

TRANSITIONS: Dict[str, Transition] = {
    "begin_review": Transition(frozenset({Status.PENDING}), Status.UNDER_REVIEW, CommentKind.COMMENT, "Review started"),
    # approve passes through "approved" straight into the publication stage.
    "approve": Transition(_REVIEWABLE, Status.APPROVED_PENDING_PUBLICATION, CommentKind.APPROVAL, "Approved"),
    "reject": Transition(_REVIEWABLE, Status.REJECTED, CommentKind.REJECTION, "Rejected"),
    "request_revision": Transition(_REVIEWABLE, Status.NEEDS_REVISION, CommentKind.REVISION_REQUEST, "Revision requested"),
    "schedule": Transition(
        frozenset({Status.APPROVED_PENDING_PUBLICATION}), Status.SCHEDULED, CommentKind.SCHEDULING, "Publication scheduled"
    ),
    "publish": Transition(frozenset({Status.SCHEDULED}), Status.PUBLISHED, CommentKind.PUBLICATION_NOTE, "Published"),
    "delay": Transition(_SCHEDULABLE_OR_SCHEDULED, Status.PUBLICATION_DELAYED, CommentKind.PUBLICATION_NOTE, "Publication delayed"),
    "resubmit": Transition(frozenset({Status.NEEDS_REVISION}), Status.PENDING, CommentKind.COMMENT, "Resubmitted after revision"),
    "reschedule": Transition(
        frozenset({Status.PUBLICATION_DELAYED}), Status.SCHEDULED, CommentKind.SCHEDULING, "Publication rescheduled"
    ),
    "assign": Transition(frozenset(Status) - TERMINAL, None, CommentKind.COMMENT, "Assigned"),
    "comment": Transition(None, None, CommentKind.COMMENT, ""),
}


@dataclass(frozen=True)
class TransitionResult:
    """
    Outcome of one workflow operation.

    ok=False means nothing changed: `case` is the exact instance passed in.
    """
    ok: bool
    operation: str
    case: DocumentCase
    error: Optional[str] = None
    detail: str = ""

    @property
    def rejected(self) -> bool:
        return not self.ok


def allowed_operations(status: Status) -> list:
    return [
        name for name, t in TRANSITIONS.items()
        if t.sources is None or status in t.sources
    ]


def apply_transition(
    case: DocumentCase,
    operation: str,
    actor: str,
    content: str = "",
    *,
    scheduled_for: Optional[date] = None,
    assignee: Optional[str] = None,
    now: Optional[Clock] = None,
) -> TransitionResult:
    t = TRANSITIONS.get(operation)
    if t is None:
        return TransitionResult(False, operation, case, UNKNOWN_OPERATION, f"unknown operation: {operation}")

    if t.sources is not None and case.status not in t.sources:
        LOGGER.info("Rejected %s on case %s: status is %s", operation, case.id, case.status.value)
        return TransitionResult(
            False, operation, case, INVALID_TRANSITION,
            f"cannot {operation} a case in status {case.status.value}",
        )

    text = (content or "").strip()
    if not text and operation == "comment":
        return TransitionResult(False, operation, case, EMPTY_COMMENT, "comment text is empty")
    assignee = (assignee or "").strip()
    if operation == "assign" and not assignee:
        return TransitionResult(False, operation, case, EMPTY_ASSIGNEE, "assignee is empty")

    ts = (now or _utcnow)()
    note = text or t.default_note
    if operation == "assign" and not text:
        note = f"{t.default_note} to {assignee}"

    entry = CaseComment(
        id=uuid4().hex,
        author=actor or "unknown",
        content=note,
        timestamp=ts,
        kind=t.kind,
    )

    changes = {
        "comments": case.comments + (entry,),
        "updated_at": ts,
    }
    if t.target is not None:
        changes["status"] = t.target
    if operation == "approve":
        changes["approved_by"] = actor
    if operation in ("schedule", "reschedule") and scheduled_for is not None:
        changes["scheduled_for"] = scheduled_for
    if operation == "assign":
        changes["assigned_to"] = assignee

    updated = replace(case, **changes)
    LOGGER.debug("Case %s: %s -> %s via %s", case.id, case.status.value, updated.status.value, operation)
    return TransitionResult(True, operation, updated)


def begin_review(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "begin_review", actor, content, **kw)


def approve(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "approve", actor, content, **kw)


def reject(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "reject", actor, content, **kw)


def request_revision(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "request_revision", actor, content, **kw)


def schedule(
    case: DocumentCase, actor: str, content: str = "", scheduled_for: Optional[date] = None, **kw
) -> TransitionResult:
    return apply_transition(case, "schedule", actor, content, scheduled_for=scheduled_for, **kw)


def publish(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "publish", actor, content, **kw)


def delay(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "delay", actor, content, **kw)


def comment(case: DocumentCase, actor: str, content: str, **kw) -> TransitionResult:
    return apply_transition(case, "comment", actor, content, **kw)


def resubmit(case: DocumentCase, actor: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "resubmit", actor, content, **kw)


def reschedule(
    case: DocumentCase, actor: str, content: str = "", scheduled_for: Optional[date] = None, **kw
) -> TransitionResult:
    return apply_transition(case, "reschedule", actor, content, scheduled_for=scheduled_for, **kw)


def assign(case: DocumentCase, actor: str, assignee: str, content: str = "", **kw) -> TransitionResult:
    return apply_transition(case, "assign", actor, content, assignee=assignee, **kw)


def derive_priority(
    confidence: float,
    urgent: bool = False,
    heuristic: Optional[Callable[[float], Priority]] = None,
    threshold: float = HIGH_PRIORITY_BELOW,
) -> Priority:
    """high below the confidence threshold or when urgent; otherwise the caller's heuristic (medium)."""
    if urgent or confidence < threshold:
        return Priority.HIGH
    if heuristic is not None:
        return Priority(heuristic(confidence))
    return Priority.MEDIUM


_REVIEWER_ROUTES = {
    DocumentClass.LOI: "legal_reviewer",
    DocumentClass.DECRET: "legal_reviewer",
    DocumentClass.ARRETE: "admin_reviewer",
}


def auto_assign_reviewer(document_class: DocumentClass) -> str:
    return _REVIEWER_ROUTES.get(DocumentClass(document_class), "general_reviewer")


def submit(
    *,
    title: str,
    document_type: str,
    submitted_by: str,
    origin: InsertionOrigin = InsertionOrigin.MANUAL,
    confidence: float = 100.0,
    document_class: Optional[DocumentClass] = None,
    urgent: bool = False,
    payload: Optional[MappedDocument] = None,
    assigned_to: Optional[str] = None,
    heuristic: Optional[Callable[[float], Priority]] = None,
    high_priority_below: float = HIGH_PRIORITY_BELOW,
    case_id: Optional[str] = None,
    now: Optional[Clock] = None,
) -> DocumentCase:
    """
    Creates a new case in `pending` with an empty audit trail.

    Confidence is clamped to 0-100. Without an explicit assignee the case is
    routed by document class (see auto_assign_reviewer).
    """
    ts = (now or _utcnow)()
    cls = DocumentClass(document_class or classify_document_type(document_type))
    confidence = clamp_confidence(confidence)
    return DocumentCase(
        id=case_id or str(uuid4()),
        title=(title or "").strip(),
        document_type=(document_type or "").strip(),
        document_class=cls,
        origin=InsertionOrigin(origin),
        submitted_by=(submitted_by or "").strip(),
        submitted_at=ts,
        confidence=confidence,
        priority=derive_priority(confidence, urgent, heuristic, high_priority_below),
        status=Status.PENDING,
        assigned_to=(assigned_to or "").strip() or auto_assign_reviewer(cls),
        comments=(),
        payload=payload,
        updated_at=ts,
    )


def submit_mapped(
    doc: MappedDocument,
    submitted_by: str,
    *,
    origin: InsertionOrigin = InsertionOrigin.EXTRACTED,
    urgent: bool = False,
    **kw,
) -> DocumentCase:
    """Submits a confirmed MappedDocument; title and type come from its fields."""
    view = doc.canonical_view()
    title = view.get("title") or view.get("procedure_name") or ""
    confidence = doc.raw.confidence if origin == InsertionOrigin.EXTRACTED else 100.0
    if doc.raw.kind == "procedure":
        kw.setdefault("document_class", DocumentClass.PROCEDURE)
    return submit(
        title=title,
        document_type=doc.selected_type,
        submitted_by=submitted_by,
        origin=origin,
        confidence=confidence,
        urgent=urgent,
        payload=doc,
        **kw,
    )
