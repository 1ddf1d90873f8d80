from __future__ import annotations

from dataclasses import replace
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import to_datetime
from ..core.constants import FEEDBACK_COLLECTION
from ..core.enums import FeedbackStatus, FeedbackType
from ..core.exceptions import ConflictError, NotFoundError
from ..database.store import Document, DocumentStore, MissingDocument, WriteConflict, WriteOp
from .model import FeedbackItem
from .repository import FeedbackRepository


def feedback_from_document(doc: Document) -> FeedbackItem:
    d = doc.data
    try:
        feedback_type = FeedbackType(d.get("type") or FeedbackType.SUGGESTION.value)
    except ValueError:
        feedback_type = FeedbackType.SUGGESTION
    try:
        status = FeedbackStatus(d.get("status") or FeedbackStatus.OPEN.value)
    except ValueError:
        status = FeedbackStatus.OPEN
    return FeedbackItem(
        feedback_id=doc.id,
        member_id=d.get("member_id") or d.get("studentId") or None,
        member_name=d.get("member_name") or d.get("studentName") or None,
        message=str(d.get("message") or ""),
        feedback_type=feedback_type,
        status=status,
        date_submitted=to_datetime(d.get("date_submitted") or d.get("dateSubmitted")),
        version=doc.version,
    )


def feedback_to_document(item: FeedbackItem) -> Dict[str, Any]:
    return {
        "member_id": item.member_id,
        "member_name": item.member_name,
        "message": item.message,
        "type": item.feedback_type.value,
        "status": item.status.value,
        "date_submitted": item.date_submitted.isoformat(),
    }


class DocumentFeedbackRepository(FeedbackRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    def add(self, item: FeedbackItem) -> FeedbackItem:
        feedback_id = self._store.create(
            FEEDBACK_COLLECTION, feedback_to_document(item), doc_id=item.feedback_id or None
        )
        return replace(item, feedback_id=feedback_id, version=1)

    def get_by_id(self, feedback_id: str) -> Optional[FeedbackItem]:
        doc = self._store.get(FEEDBACK_COLLECTION, feedback_id)
        return feedback_from_document(doc) if doc else None

    def list_all(self, *, status: Optional[FeedbackStatus] = None) -> Sequence[FeedbackItem]:
        where = {"status": status.value} if status else None
        docs = self._store.query_ordered(FEEDBACK_COLLECTION, order_by="date_submitted", descending=True, where=where)
        return [feedback_from_document(d) for d in docs]

    def save_status(self, item: FeedbackItem, status: FeedbackStatus) -> FeedbackItem:
        try:
            version = self._store.update(
                FEEDBACK_COLLECTION,
                item.feedback_id,
                {"status": status.value},
                expected_version=item.version,
            )
        except MissingDocument:
            raise NotFoundError(f"Feedback {item.feedback_id} not found")
        except WriteConflict:
            raise ConflictError(f"Feedback {item.feedback_id} was updated concurrently, please retry")
        return replace(item, status=status, version=version)

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        return [
            WriteOp.delete(FEEDBACK_COLLECTION, d.id)
            for d in self._store.query(FEEDBACK_COLLECTION, where={"member_id": member_id})
        ]
