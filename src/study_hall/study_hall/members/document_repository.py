from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Sequence

from ..billing.money import format_amount, parse_amount_due
from ..common.datetime_utils import to_date, to_datetime
from ..core.constants import (
    APP_CONFIG_COLLECTION,
    DEFAULT_MAX_WRITE_ATTEMPTS,
    DEFAULT_MEMBER_ID_PREFIX,
    MEMBER_COUNTER_DOC_ID,
    MEMBERS_COLLECTION,
)
from ..core.enums import ActivityStatus, FeeStatus, PaymentMethod, Shift
from ..core.exceptions import ConflictError, NotFoundError
from ..database.store import Document, DocumentStore, MissingDocument, WriteConflict, WriteOp
from .model import Member, PaymentRecord
from .repository import MemberRepository

logger = logging.getLogger(__name__)


def _pick(data: Mapping[str, Any], *names: str, default=None):
    # Older records were written with camelCase keys.
    for name in names:
        if name in data and data[name] is not None:
            return data[name]
    return default


def payment_from_dict(raw: Mapping[str, Any]) -> PaymentRecord:
    method = _pick(raw, "method", default=PaymentMethod.CASH.value)
    try:
        method = PaymentMethod(method)
    except ValueError:
        method = PaymentMethod.CASH
    payment_id = str(_pick(raw, "payment_id", "paymentId", default=""))
    try:
        paid_on = to_date(_pick(raw, "date"))
    except (ValueError, TypeError):
        logger.warning("Payment %s has unreadable date %r; treating it as undated", payment_id, raw.get("date"))
        paid_on = None
    return PaymentRecord(
        payment_id=payment_id,
        date=paid_on,
        amount=str(_pick(raw, "amount", default="")),
        method=method,
        transaction_id=str(_pick(raw, "transaction_id", "transactionId", default="")),
    )


def member_from_document(doc: Document) -> Member:
    """Normalize a stored member document into the canonical typed Member."""

    d = doc.data
    return Member(
        member_id=str(_pick(d, "member_id", "studentId", default=doc.id)),
        name=str(d.get("name") or ""),
        email=_pick(d, "email"),
        phone=str(d.get("phone") or ""),
        address=_pick(d, "address"),
        shift=Shift(d["shift"]),
        seat_number=_pick(d, "seat_number", "seatNumber"),
        activity_status=ActivityStatus(_pick(d, "activity_status", "activityStatus", default="Active")),
        fee_status=FeeStatus(_pick(d, "fee_status", "feeStatus", default="Due")),
        amount_due=parse_amount_due(_pick(d, "amount_due", "amountDue")),
        registration_date=to_date(_pick(d, "registration_date", "registrationDate")) or date.min,
        next_due_date=to_date(_pick(d, "next_due_date", "nextDueDate")),
        last_payment_date=to_date(_pick(d, "last_payment_date", "lastPaymentDate")),
        left_date=to_date(_pick(d, "left_date", "leftDate")),
        last_attendance_at=to_datetime(_pick(d, "last_attendance_at", "lastAttendanceDate")),
        payment_history=tuple(payment_from_dict(p) for p in _pick(d, "payment_history", "paymentHistory", default=[])),
        device_tokens=tuple(_pick(d, "device_tokens", "fcmTokens", default=[])),
        acknowledged_broadcast_ids=tuple(
            _pick(d, "acknowledged_broadcast_ids", "readGeneralAlertIds", default=[])
        ),
        version=doc.version,
    )


def member_to_document(member: Member) -> Dict[str, Any]:
    def iso(value) -> Optional[str]:
        return value.isoformat() if value else None

    return {
        "member_id": member.member_id,
        "name": member.name,
        "email": member.email,
        "phone": member.phone,
        "address": member.address,
        "shift": member.shift.value,
        "seat_number": member.seat_number,
        "activity_status": member.activity_status.value,
        "fee_status": member.fee_status.value,
        "amount_due": format_amount(member.amount_due),
        "registration_date": iso(member.registration_date),
        "next_due_date": iso(member.next_due_date),
        "last_payment_date": iso(member.last_payment_date),
        "left_date": iso(member.left_date),
        "last_attendance_at": iso(member.last_attendance_at),
        "payment_history": [p.to_dict() for p in member.payment_history],
        "device_tokens": list(member.device_tokens),
        "acknowledged_broadcast_ids": list(member.acknowledged_broadcast_ids),
    }


class DocumentMemberRepository(MemberRepository):
    def __init__(
        self,
        store: DocumentStore,
        *,
        id_prefix: str = DEFAULT_MEMBER_ID_PREFIX,
        max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ):
        self._store = store
        self._id_prefix = id_prefix
        self._max_attempts = int(max_attempts)

    def get_by_id(self, member_id: str) -> Optional[Member]:
        doc = self._store.get(MEMBERS_COLLECTION, member_id)
        return member_from_document(doc) if doc else None

    def list_all(self) -> Sequence[Member]:
        members = [member_from_document(d) for d in self._store.query(MEMBERS_COLLECTION)]
        members.sort(key=lambda m: m.member_id)
        return members

    def list_active(self) -> Sequence[Member]:
        docs = self._store.query(MEMBERS_COLLECTION, where={"activity_status": ActivityStatus.ACTIVE.value})
        return [member_from_document(d) for d in docs]

    def _first(self, where: Mapping[str, Any]) -> Optional[Member]:
        docs = self._store.query(MEMBERS_COLLECTION, where=where)
        return member_from_document(docs[0]) if docs else None

    def find_by_email(self, email: str) -> Optional[Member]:
        return self._first({"email": email.lower()})

    def find_by_phone(self, phone: str) -> Optional[Member]:
        return self._first({"phone": phone})

    def find_by_device_token(self, token: str) -> Sequence[Member]:
        docs = self._store.query_array_contains(MEMBERS_COLLECTION, "device_tokens", token)
        return [member_from_document(d) for d in docs]

    def next_member_id(self) -> str:
        for _ in range(self._max_attempts):
            counter = self._store.get(APP_CONFIG_COLLECTION, MEMBER_COUNTER_DOC_ID)
            try:
                if counter is None:
                    self._store.create(APP_CONFIG_COLLECTION, {"last_id": 1}, doc_id=MEMBER_COUNTER_DOC_ID)
                    number = 1
                else:
                    number = int(counter.data.get("last_id") or 0) + 1
                    self._store.update(
                        APP_CONFIG_COLLECTION,
                        MEMBER_COUNTER_DOC_ID,
                        {"last_id": number},
                        expected_version=counter.version,
                    )
            except WriteConflict:
                logger.debug("Member counter moved underneath us, retrying")
                continue
            return f"{self._id_prefix}{number:04d}"
        raise ConflictError("Could not allocate a member id, please retry")

    def create_op(self, member: Member) -> WriteOp:
        return WriteOp.create(MEMBERS_COLLECTION, member.member_id, member_to_document(member))

    def save_op(self, member: Member) -> WriteOp:
        return WriteOp.update(
            MEMBERS_COLLECTION,
            member.member_id,
            member_to_document(member),
            expected_version=member.version,
        )

    def delete_op(self, member_id: str, *, expected_version: Optional[int] = None) -> WriteOp:
        return WriteOp.delete(MEMBERS_COLLECTION, member_id, expected_version=expected_version)

    def commit(self, ops: Sequence[WriteOp]) -> None:
        self._store.commit(ops)

    def attendance_op(self, member: Member, at: datetime) -> WriteOp:
        return WriteOp.update(
            MEMBERS_COLLECTION,
            member.member_id,
            {"last_attendance_at": at.isoformat()},
            expected_version=member.version,
        )

    def add_device_token(self, member_id: str, token: str) -> None:
        self._apply(WriteOp.array_union(MEMBERS_COLLECTION, member_id, "device_tokens", [token]))

    def remove_device_token(self, member_id: str, token: str) -> None:
        self._apply(self.token_removal_op(member_id, [token]))

    def acknowledge_broadcasts(self, member_id: str, alert_ids: Sequence[str]) -> None:
        self._apply(WriteOp.array_union(MEMBERS_COLLECTION, member_id, "acknowledged_broadcast_ids", list(alert_ids)))

    def _apply(self, op: WriteOp) -> None:
        try:
            self._store.commit([op])
        except MissingDocument:
            raise NotFoundError(f"Member {op.doc_id} not found")

    def token_removal_op(self, member_id: str, tokens: Sequence[str]) -> WriteOp:
        return WriteOp.array_remove(MEMBERS_COLLECTION, member_id, "device_tokens", tokens)
