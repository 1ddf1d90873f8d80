from __future__ import annotations

import uuid
from dataclasses import replace
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import to_datetime
from ..core.constants import ADMINS_COLLECTION, ALERTS_COLLECTION
from ..core.enums import AlertType
from ..core.exceptions import NotFoundError
from ..database.store import Document, DocumentStore, MissingDocument, WriteOp
from .model import AdminRecord, Alert
from .repository import AdminRepository, AlertRepository


def alert_from_document(doc: Document) -> Alert:
    d = doc.data
    try:
        alert_type = AlertType(d.get("type") or AlertType.INFO.value)
    except ValueError:
        alert_type = AlertType.INFO
    return Alert(
        alert_id=doc.id,
        member_id=d.get("member_id") or d.get("studentId") or None,
        title=str(d.get("title") or ""),
        message=str(d.get("message") or ""),
        alert_type=alert_type,
        date_sent=to_datetime(d.get("date_sent") or d.get("dateSent")),
        is_read=bool(d.get("is_read", d.get("isRead", False))),
        feedback_id=d.get("feedback_id") or d.get("originalFeedbackId") or None,
    )


def alert_to_document(alert: Alert) -> Dict[str, Any]:
    return {
        "member_id": alert.member_id,
        "title": alert.title,
        "message": alert.message,
        "type": alert.alert_type.value,
        "date_sent": alert.date_sent.isoformat(),
        "is_read": alert.is_read,
        "feedback_id": alert.feedback_id,
    }


class DocumentAlertRepository(AlertRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    def add(self, alert: Alert) -> Alert:
        alert_id = self._store.create(ALERTS_COLLECTION, alert_to_document(alert), doc_id=alert.alert_id or None)
        return replace(alert, alert_id=alert_id)

    def get_by_id(self, alert_id: str) -> Optional[Alert]:
        doc = self._store.get(ALERTS_COLLECTION, alert_id)
        return alert_from_document(doc) if doc else None

    def list_for_member(self, member_id: str) -> Sequence[Alert]:
        docs = self._store.query_ordered(
            ALERTS_COLLECTION, order_by="date_sent", descending=True, where={"member_id": member_id}
        )
        return [alert_from_document(d) for d in docs]

    def list_broadcasts(self) -> Sequence[Alert]:
        docs = self._store.query_ordered(
            ALERTS_COLLECTION, order_by="date_sent", descending=True, where={"member_id": None}
        )
        return [alert_from_document(d) for d in docs]

    def list_recent(self, limit: int) -> Sequence[Alert]:
        docs = self._store.query_ordered(ALERTS_COLLECTION, order_by="date_sent", descending=True, limit=int(limit))
        return [alert_from_document(d) for d in docs]

    def mark_read(self, alert_ids: Sequence[str]) -> None:
        try:
            self._store.commit([WriteOp.update(ALERTS_COLLECTION, a, {"is_read": True}) for a in alert_ids])
        except MissingDocument as exc:
            raise NotFoundError(f"Alert {exc.doc_id} not found")

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        return [
            WriteOp.delete(ALERTS_COLLECTION, d.id)
            for d in self._store.query(ALERTS_COLLECTION, where={"member_id": member_id})
        ]


def admin_from_document(doc: Document) -> AdminRecord:
    d = doc.data
    return AdminRecord(
        admin_id=doc.id,
        name=str(d.get("name") or ""),
        email=d.get("email"),
        device_tokens=tuple(d.get("device_tokens") or d.get("fcmTokens") or []),
    )


class DocumentAdminRepository(AdminRepository):
    def __init__(self, store: DocumentStore):
        self._store = store

    def add(self, admin: AdminRecord) -> AdminRecord:
        admin_id = self._store.create(
            ADMINS_COLLECTION,
            {"name": admin.name, "email": admin.email, "device_tokens": list(admin.device_tokens)},
            doc_id=admin.admin_id or uuid.uuid4().hex,
        )
        return replace(admin, admin_id=admin_id)

    def get_by_id(self, admin_id: str) -> Optional[AdminRecord]:
        doc = self._store.get(ADMINS_COLLECTION, admin_id)
        return admin_from_document(doc) if doc else None

    def list_all(self) -> Sequence[AdminRecord]:
        return [admin_from_document(d) for d in self._store.query(ADMINS_COLLECTION)]

    def find_by_device_token(self, token: str) -> Sequence[AdminRecord]:
        docs = self._store.query_array_contains(ADMINS_COLLECTION, "device_tokens", token)
        return [admin_from_document(d) for d in docs]

    def add_device_token(self, admin_id: str, token: str) -> None:
        try:
            self._store.array_union(ADMINS_COLLECTION, admin_id, "device_tokens", [token])
        except MissingDocument:
            raise NotFoundError(f"Admin {admin_id} not found")

    def remove_device_token(self, admin_id: str, token: str) -> None:
        try:
            self._store.array_remove(ADMINS_COLLECTION, admin_id, "device_tokens", [token])
        except MissingDocument:
            raise NotFoundError(f"Admin {admin_id} not found")

    def token_removal_op(self, admin_id: str, tokens: Sequence[str]) -> WriteOp:
        return WriteOp.array_remove(ADMINS_COLLECTION, admin_id, "device_tokens", tokens)
