from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one check-in/check-out interval."""

    session_id: str
    member_id: str
    date: date
    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    version: int = 0

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "member_id": self.member_id,
            "date": self.date.isoformat(),
            "check_in_time": self.check_in_time.isoformat(),
            "check_out_time": self.check_out_time.isoformat() if self.check_out_time else None,
        }


@dataclass(frozen=True)
class CheckedInMember:
    """Read-model for the live check-in board."""

    session: AttendanceSession
    member_id: str
    name: str
    seat_number: Optional[str]
    shift: str
    is_outside_shift: bool

    def to_dict(self) -> dict:
        return {
            **self.session.to_dict(),
            "name": self.name,
            "seat_number": self.seat_number,
            "shift": self.shift,
            "is_outside_shift": self.is_outside_shift,
        }
