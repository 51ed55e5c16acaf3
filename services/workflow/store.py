# services/workflow/store.py
from __future__ import annotations

import threading
from typing import Any, Dict, Iterable, List, Optional

from apps.common.logging import get_logger
from services.workflow.domain import (
    CLASS_GROUPS,
    PRIORITY_RANK,
    DocumentCase,
    DocumentClass,
    InsertionOrigin,
    Status,
)
from services.workflow.state_machine import TransitionResult, apply_transition


LOGGER = get_logger(__name__)

ALL = "all"


class CaseNotFoundError(KeyError):
    """No case with the given id."""


class InMemoryCaseStore:
    """
    case id -> DocumentCase, with one lock per case id.

    Operations on the same id are serialized; different ids never contend
    beyond the short registry lock used to create a per-case lock.
    """

    def __init__(self, cases: Optional[Iterable[DocumentCase]] = None) -> None:
        self._cases: Dict[str, DocumentCase] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        for c in cases or ():
            self.add(c)

    def _lock_for(self, case_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(case_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[case_id] = lock
            return lock

    def add(self, case: DocumentCase) -> DocumentCase:
        with self._lock_for(case.id):
            if case.id in self._cases:
                raise ValueError(f"case already exists: {case.id}")
            self._cases[case.id] = case
        LOGGER.info("Case %s submitted (%s, %s)", case.id, case.document_class.value, case.origin.value)
        return case

    def get(self, case_id: str) -> DocumentCase:
        try:
            return self._cases[case_id]
        except KeyError:
            raise CaseNotFoundError(case_id) from None

    def __contains__(self, case_id: str) -> bool:
        return case_id in self._cases

    def __len__(self) -> int:
        return len(self._cases)

    def all(self) -> List[DocumentCase]:
        return list(self._cases.values())

    def transition(self, case_id: str, operation: str, actor: str, content: str = "", **kw: Any) -> TransitionResult:
        """
        Applies one operation under the case's lock. The stored case is
        replaced only on success, so readers see either the old or the new case.
        """
        with self._lock_for(case_id):
            case = self.get(case_id)
            result = apply_transition(case, operation, actor, content, **kw)
            if result.ok:
                self._cases[case_id] = result.case
            return result

    # --- Read side (never mutates) ---

    def search(
        self,
        *,
        status: str = ALL,
        document_class: str = ALL,
        origin: str = ALL,
        text: str = "",
    ) -> List[DocumentCase]:
        return filter_cases(self.all(), status=status, document_class=document_class, origin=origin, text=text)

    def pending_queue(self, assignee: Optional[str] = None) -> List[DocumentCase]:
        return pending_queue(self.all(), assignee)

    def statistics(self) -> Dict[str, Any]:
        return statistics(self.all())


def _matches_class(case: DocumentCase, document_class: str) -> bool:
    if document_class == ALL:
        return True
    group = CLASS_GROUPS.get(document_class)
    if group is not None:
        return case.document_class in group
    return case.document_class.value == document_class


def filter_cases(
    cases: Iterable[DocumentCase],
    *,
    status: str = ALL,
    document_class: str = ALL,
    origin: str = ALL,
    text: str = "",
) -> List[DocumentCase]:
    """
    status/origin/document_class accept "all", a single value, or (for class)
    a group name such as "textes_juridiques". `text` is a case-insensitive
    substring match against title, document type and submitter.
    """
    needle = (text or "").strip().lower()
    out = []
    for c in cases:
        if status != ALL and c.status.value != status:
            continue
        if origin != ALL and c.origin.value != origin:
            continue
        if not _matches_class(c, document_class):
            continue
        if needle and not (
            needle in c.title.lower()
            or needle in c.document_type.lower()
            or needle in c.submitted_by.lower()
        ):
            continue
        out.append(c)
    return out


def pending_queue(cases: Iterable[DocumentCase], assignee: Optional[str] = None) -> List[DocumentCase]:
    """Cases awaiting a review decision, highest priority first, then oldest first."""
    items = [c for c in cases if c.status in (Status.PENDING, Status.UNDER_REVIEW)]
    if assignee:
        items = [c for c in items if c.assigned_to == assignee]
    return sorted(items, key=lambda c: (-PRIORITY_RANK[c.priority], c.submitted_at))


def statistics(cases: Iterable[DocumentCase]) -> Dict[str, Any]:
    cases = list(cases)
    by_status = {s.value: 0 for s in Status}
    by_origin = {o.value: 0 for o in InsertionOrigin}
    by_class = {k.value: 0 for k in DocumentClass}
    for c in cases:
        by_status[c.status.value] += 1
        by_origin[c.origin.value] += 1
        by_class[c.document_class.value] += 1

    total = len(cases)
    avg_conf = (sum(c.confidence for c in cases) / total) if total else 0.0
    return {
        "total": total,
        "by_status": by_status,
        "by_origin": by_origin,
        "by_class": by_class,
        "avg_confidence": avg_conf,
    }
