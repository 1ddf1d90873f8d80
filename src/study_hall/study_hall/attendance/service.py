from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import List, Optional, Sequence

from ..common.datetime_utils import month_bounds, now_local
from ..core.constants import DEFAULT_MAX_WRITE_ATTEMPTS, MEMBERS_COLLECTION
from ..core.enums import AlertType
from ..core.exceptions import ConflictError, NotFoundError, StateError
from ..database.store import MissingDocument, WriteConflict
from ..members.model import Member
from ..members.repository import MemberRepository
from ..members.service import MembershipService
from ..notifications.notifier import MemberNotifier, NullNotifier
from .model import AttendanceSession, CheckedInMember
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)


class AttendanceTracker:
    def __init__(
        self,
        attendance: AttendanceRepository,
        membership: MembershipService,
        members: MemberRepository,
        *,
        notifier: MemberNotifier | None = None,
        max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ):
        self._attendance = attendance
        self._membership = membership
        self._members = members
        self._notifier = notifier or NullNotifier()
        self._max_attempts = max(1, int(max_attempts))

    def _is_outside_shift(self, member: Member, moment: datetime) -> bool:
        window = self._membership.facility.window_for(member.shift)
        return not window.contains(moment.time())

    def check_in(self, member_id: str, *, now: datetime | None = None) -> AttendanceSession:
        now = now or now_local()

        for _ in range(self._max_attempts):
            member = self._membership.get_member(member_id, now=now)
            if not member.is_active:
                raise StateError(f"Member {member_id} has left and cannot check in")
            if self._attendance.get_open_for_member(member_id):
                raise StateError("You are already checked in")

            # The member stamp is version-checked, so a concurrent leave or edit
            # rejects the whole batch instead of leaving a Left member checked in.
            try:
                session = self._attendance.open_session(
                    AttendanceSession(session_id="", member_id=member_id, date=now.date(), check_in_time=now),
                    extra_ops=[self._members.attendance_op(member, now)],
                )
            except WriteConflict as exc:
                if exc.collection == MEMBERS_COLLECTION:
                    logger.debug("Member %s changed during check-in, re-reading", member_id)
                    continue
                raise StateError("You are already checked in")
            except MissingDocument:
                raise NotFoundError(f"Member {member_id} not found")
            break
        else:
            raise ConflictError(f"Member {member_id} was modified concurrently, please retry")

        if self._is_outside_shift(member, now):
            window = self._membership.facility.window_for(member.shift)
            logger.info("Member %s checked in outside the %s shift at %s", member_id, member.shift.value, now.time())
            self._notifier.notify_member(
                member_id,
                title="Outside Shift Warning",
                message=(
                    f"You checked in at {now.strftime('%H:%M')}, outside your {member.shift.value} shift "
                    f"({window.start.strftime('%H:%M')}-{window.end.strftime('%H:%M')})."
                ),
                alert_type=AlertType.WARNING,
            )
        return session

    def check_out(self, session_id: str, *, now: datetime | None = None) -> AttendanceSession:
        now = now or now_local()

        session = self._attendance.get_by_id(session_id)
        if not session:
            raise NotFoundError(f"Session {session_id} not found")
        if not session.is_open:
            raise StateError("This session is already checked out")

        try:
            return self._attendance.close_session(replace(session, check_out_time=max(now, session.check_in_time)))
        except WriteConflict:
            raise StateError("This session is already checked out")
        except MissingDocument:
            raise NotFoundError(f"Session {session_id} not found")

    def active_session(self, member_id: str) -> Optional[AttendanceSession]:
        return self._attendance.get_open_for_member(member_id)

    def sessions_for_date(self, member_id: str, day: date) -> Sequence[AttendanceSession]:
        return self._attendance.list_for_member_and_date(member_id, day)

    def sessions_for_member(self, member_id: str) -> Sequence[AttendanceSession]:
        return self._attendance.list_for_member(member_id)

    def session_duration(
        self, session: AttendanceSession, *, shift_end: datetime | None = None, now: datetime | None = None
    ) -> timedelta:
        """Closed: check-out minus check-in. Open: counted up to now, capped at the shift end."""

        if session.check_out_time is not None:
            end = session.check_out_time
        else:
            end = now or now_local()
            if shift_end is not None:
                end = min(end, shift_end)
        return max(end - session.check_in_time, timedelta(0))

    def _shift_end(self, member: Optional[Member], session: AttendanceSession) -> Optional[datetime]:
        if member is None:
            return None
        return self._membership.facility.window_for(member.shift).end_on(session.date)

    def monthly_study_hours(self, member_id: str, *, now: datetime | None = None) -> float:
        now = now or now_local()
        start, end = month_bounds(now.date())
        member = self._members.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")

        total = timedelta(0)
        for session in self._attendance.list_for_member(member_id):
            if not start <= session.check_in_time.date() <= end:
                continue
            total += self.session_duration(session, shift_end=self._shift_end(member, session), now=now)
        return round(total.total_seconds() / 3600, 1)

    def checked_in_members(self, *, now: datetime | None = None) -> List[CheckedInMember]:
        now = now or now_local()
        board: List[CheckedInMember] = []
        for session in self._attendance.list_open_for_date(now.date()):
            member = self._members.get_by_id(session.member_id)
            if member is None:
                continue
            board.append(
                CheckedInMember(
                    session=session,
                    member_id=member.member_id,
                    name=member.name,
                    seat_number=member.seat_number,
                    shift=member.shift.value,
                    is_outside_shift=self._is_outside_shift(member, session.check_in_time),
                )
            )
        board.sort(key=lambda row: row.session.check_in_time)
        return board

    def session_hours(self, session: AttendanceSession, *, now: datetime | None = None) -> float:
        member = self._members.get_by_id(session.member_id)
        duration = self.session_duration(session, shift_end=self._shift_end(member, session), now=now)
        return round(duration.total_seconds() / 3600, 2)
