from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import date
from typing import Any, Dict, Optional, Sequence

from ..common.datetime_utils import to_date, to_datetime
from ..core.constants import ATTENDANCE_COLLECTION, OPEN_SESSIONS_COLLECTION
from ..database.store import Document, DocumentStore, WriteOp
from .model import AttendanceSession
from .repository import AttendanceRepository


def session_from_document(doc: Document) -> AttendanceSession:
    d = doc.data
    check_in = to_datetime(d.get("check_in_time") or d.get("checkInTime"))
    return AttendanceSession(
        session_id=doc.id,
        member_id=str(d.get("member_id") or d.get("studentId") or ""),
        date=to_date(d.get("date")) or check_in.date(),
        check_in_time=check_in,
        check_out_time=to_datetime(d.get("check_out_time") or d.get("checkOutTime")),
        version=doc.version,
    )


def session_to_document(session: AttendanceSession) -> Dict[str, Any]:
    return {
        "member_id": session.member_id,
        "date": session.date.isoformat(),
        "check_in_time": session.check_in_time.isoformat(),
        "check_out_time": session.check_out_time.isoformat() if session.check_out_time else None,
    }


class DocumentAttendanceRepository(AttendanceRepository):
    """Sessions plus a per-member lock document that exists while a session is open.

    Creating the lock in the same batch as the session makes a second
    concurrent check-in fail with WriteConflict on OPEN_SESSIONS_COLLECTION.
    """

    def __init__(self, store: DocumentStore):
        self._store = store

    def get_by_id(self, session_id: str) -> Optional[AttendanceSession]:
        doc = self._store.get(ATTENDANCE_COLLECTION, session_id)
        return session_from_document(doc) if doc else None

    def get_open_for_member(self, member_id: str) -> Optional[AttendanceSession]:
        lock = self._store.get(OPEN_SESSIONS_COLLECTION, member_id)
        if lock:
            session = self.get_by_id(str(lock.data.get("session_id")))
            if session and session.is_open:
                return session
        # Sessions written before the lock existed.
        for doc in self._store.query(ATTENDANCE_COLLECTION, where={"member_id": member_id, "check_out_time": None}):
            return session_from_document(doc)
        return None

    def list_for_member(self, member_id: str) -> Sequence[AttendanceSession]:
        docs = self._store.query_ordered(
            ATTENDANCE_COLLECTION, order_by="check_in_time", descending=True, where={"member_id": member_id}
        )
        return [session_from_document(d) for d in docs]

    def list_for_member_and_date(self, member_id: str, day: date) -> Sequence[AttendanceSession]:
        docs = self._store.query_ordered(
            ATTENDANCE_COLLECTION,
            order_by="check_in_time",
            where={"member_id": member_id, "date": day.isoformat()},
        )
        return [session_from_document(d) for d in docs]

    def list_open_for_date(self, day: date) -> Sequence[AttendanceSession]:
        docs = self._store.query_ordered(
            ATTENDANCE_COLLECTION, order_by="check_in_time", where={"date": day.isoformat()}
        )
        return [s for s in (session_from_document(d) for d in docs) if s.is_open]

    def open_session(self, session: AttendanceSession, *, extra_ops: Sequence[WriteOp] = ()) -> AttendanceSession:
        session_id = session.session_id or uuid.uuid4().hex
        ops = [WriteOp.create(ATTENDANCE_COLLECTION, session_id, session_to_document(session))]
        lock = self._store.get(OPEN_SESSIONS_COLLECTION, session.member_id)
        if lock:
            held = self.get_by_id(str(lock.data.get("session_id")))
            if held is None or not held.is_open:
                # Left behind by a session that is gone or already closed.
                ops.append(WriteOp.delete(OPEN_SESSIONS_COLLECTION, session.member_id, expected_version=lock.version))
        ops.append(WriteOp.create(OPEN_SESSIONS_COLLECTION, session.member_id, {"session_id": session_id}))
        ops.extend(extra_ops)
        self._store.commit(ops)
        return AttendanceSession(
            session_id=session_id,
            member_id=session.member_id,
            date=session.date,
            check_in_time=session.check_in_time,
            version=1,
        )

    def close_session(self, session: AttendanceSession) -> AttendanceSession:
        self._store.commit(
            [
                WriteOp.update(
                    ATTENDANCE_COLLECTION,
                    session.session_id,
                    {"check_out_time": session.check_out_time.isoformat()},
                    expected_version=session.version,
                ),
                WriteOp.delete(OPEN_SESSIONS_COLLECTION, session.member_id),
            ]
        )
        return replace(session, version=session.version + 1)

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        docs = self._store.query(ATTENDANCE_COLLECTION, where={"member_id": member_id})
        ops = [WriteOp.delete(ATTENDANCE_COLLECTION, d.id) for d in docs]
        ops.append(WriteOp.delete(OPEN_SESSIONS_COLLECTION, member_id))
        return ops
