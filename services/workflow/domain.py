# services/workflow/domain.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from services.intake.normalize import MappedDocument


class Status(str, Enum):
    # Review stage
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    NEEDS_REVISION = "needs_revision"
    # Publication stage
    APPROVED_PENDING_PUBLICATION = "approved_pending_publication"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    PUBLICATION_DELAYED = "publication_delayed"


REVIEW_STAGE = frozenset({
    Status.PENDING, Status.UNDER_REVIEW, Status.APPROVED, Status.REJECTED, Status.NEEDS_REVISION,
})
PUBLICATION_STAGE = frozenset({
    Status.APPROVED_PENDING_PUBLICATION, Status.SCHEDULED, Status.PUBLISHED, Status.PUBLICATION_DELAYED,
})
TERMINAL = frozenset({Status.REJECTED, Status.PUBLISHED})


class CommentKind(str, Enum):
    COMMENT = "comment"
    APPROVAL = "approval"
    REJECTION = "rejection"
    REVISION_REQUEST = "revision_request"
    SCHEDULING = "scheduling"
    PUBLICATION_NOTE = "publication_note"


class DocumentClass(str, Enum):
    LOI = "loi"
    DECRET = "decret"
    ARRETE = "arrete"
    ORDONNANCE = "ordonnance"
    CODE = "code"
    PROCEDURE = "procedure"


# Listing filters group classes the way the review queue presents them.
CLASS_GROUPS: Dict[str, frozenset] = {
    "textes_juridiques": frozenset({
        DocumentClass.LOI, DocumentClass.DECRET, DocumentClass.ARRETE,
        DocumentClass.ORDONNANCE, DocumentClass.CODE,
    }),
    "procedures_administratives": frozenset({DocumentClass.PROCEDURE}),
}


class InsertionOrigin(str, Enum):
    MANUAL = "manual"
    EXTRACTED = "extracted"


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


@dataclass(frozen=True)
class CaseComment:
    id: str
    author: str
    content: str
    timestamp: datetime
    kind: CommentKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "author": self.author,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
        }


@dataclass(frozen=True)
class DocumentCase:
    """
    One submitted document moving through review and publication.

    Immutable: transitions build a new case, so status and comments always
    change together. `comments` only ever grows.
    """
    id: str
    title: str
    document_type: str
    document_class: DocumentClass
    origin: InsertionOrigin
    submitted_by: str
    submitted_at: datetime
    confidence: float
    priority: Priority
    status: Status = Status.PENDING
    assigned_to: Optional[str] = None
    comments: Tuple[CaseComment, ...] = ()
    payload: Optional[MappedDocument] = None
    approved_by: Optional[str] = None
    scheduled_for: Optional[date] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "document_type": self.document_type,
            "document_class": self.document_class.value,
            "origin": self.origin.value,
            "submitted_by": self.submitted_by,
            "submitted_at": self.submitted_at.isoformat(),
            "confidence": self.confidence,
            "priority": self.priority.value,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "approved_by": self.approved_by,
            "scheduled_for": self.scheduled_for.isoformat() if self.scheduled_for else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "comments": [c.to_dict() for c in self.comments],
            "payload": self.payload.to_dict() if self.payload else None,
        }
