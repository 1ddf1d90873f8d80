from __future__ import annotations

from datetime import date
from typing import Optional, Protocol, Sequence

from ..database.store import WriteOp
from .model import AttendanceSession


class AttendanceRepository(Protocol):
    def get_by_id(self, session_id: str) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def get_open_for_member(self, member_id: str) -> Optional[AttendanceSession]:
        raise NotImplementedError

    def list_for_member(self, member_id: str) -> Sequence[AttendanceSession]:
        """Newest first."""

        raise NotImplementedError

    def list_for_member_and_date(self, member_id: str, day: date) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def list_open_for_date(self, day: date) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def open_session(self, session: AttendanceSession, *, extra_ops: Sequence[WriteOp] = ()) -> AttendanceSession:
        """Create the session together with the member's open-session lock and `extra_ops`, atomically."""

        raise NotImplementedError

    def close_session(self, session: AttendanceSession) -> AttendanceSession:
        """Write the check-out (version-checked) and release the lock."""

        raise NotImplementedError

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        raise NotImplementedError
