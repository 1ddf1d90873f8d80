from __future__ import annotations

from datetime import date, datetime

import pytest

from study_hall.attendance.document_repository import DocumentAttendanceRepository
from study_hall.attendance.service import AttendanceTracker
from study_hall.core.constants import ATTENDANCE_COLLECTION, OPEN_SESSIONS_COLLECTION
from study_hall.core.enums import AlertType, Shift
from study_hall.core.exceptions import ConflictError, NotFoundError, StateError
from study_hall.database.memory_store import InMemoryDocumentStore
from study_hall.facility.config import FacilityConfig, FeeTable, numbered_seats
from study_hall.members.document_repository import DocumentMemberRepository
from study_hall.members.service import MembershipService


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str, AlertType]] = []

    def notify_member(self, member_id, *, title, message, alert_type=AlertType.INFO):
        self.sent.append((member_id, title, alert_type))


def at(day: int, hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, day, hour, minute)


@pytest.fixture()
def env():
    store = InMemoryDocumentStore()
    members = DocumentMemberRepository(store)
    attendance = DocumentAttendanceRepository(store)
    notifier = RecordingNotifier()
    facility = FacilityConfig(seats=numbered_seats(20), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = MembershipService(members, facility, cleanups=(attendance,))
    tracker = AttendanceTracker(attendance, membership, members, notifier=notifier)
    morning = membership.register(name="Meera", phone="1111111", shift=Shift.MORNING, seat_number="4", now=at(1, 9))
    evening = membership.register(name="Kabir", phone="2222222", shift=Shift.EVENING, seat_number="4", now=at(1, 9))
    return tracker, membership, members, notifier, morning, evening


def test_check_in_then_check_out(env):
    tracker, _, members, _, morning, _ = env

    session = tracker.check_in(morning.member_id, now=at(2, 7, 30))
    assert session.is_open
    assert session.date == date(2026, 1, 2)
    assert tracker.active_session(morning.member_id) == session
    assert members.get_by_id(morning.member_id).last_attendance_at == at(2, 7, 30)

    closed = tracker.check_out(session.session_id, now=at(2, 9, 0))
    assert closed.check_out_time == at(2, 9, 0)
    assert tracker.active_session(morning.member_id) is None
    assert tracker.session_hours(closed) == 1.5


def test_second_check_in_is_rejected_while_open(env):
    tracker, _, _, _, morning, _ = env
    tracker.check_in(morning.member_id, now=at(2, 7, 30))

    with pytest.raises(StateError):
        tracker.check_in(morning.member_id, now=at(2, 8, 0))


def test_check_in_again_after_check_out(env):
    tracker, _, _, _, morning, _ = env
    first = tracker.check_in(morning.member_id, now=at(2, 7, 30))
    tracker.check_out(first.session_id, now=at(2, 9, 0))

    second = tracker.check_in(morning.member_id, now=at(2, 10, 0))

    assert second.session_id != first.session_id
    assert [s.session_id for s in tracker.sessions_for_date(morning.member_id, date(2026, 1, 2))] == [
        first.session_id,
        second.session_id,
    ]
    assert tracker.sessions_for_member(morning.member_id)[0].session_id == second.session_id


def test_check_out_errors(env):
    tracker, _, _, _, morning, _ = env
    session = tracker.check_in(morning.member_id, now=at(2, 7, 30))
    tracker.check_out(session.session_id, now=at(2, 9, 0))

    with pytest.raises(StateError):
        tracker.check_out(session.session_id, now=at(2, 9, 30))
    with pytest.raises(NotFoundError):
        tracker.check_out("nope", now=at(2, 9, 30))


def test_left_member_cannot_check_in(env):
    tracker, membership, _, _, morning, _ = env
    membership.mark_as_left(morning.member_id, now=at(2, 7, 0))

    with pytest.raises(StateError):
        tracker.check_in(morning.member_id, now=at(2, 7, 30))
    with pytest.raises(NotFoundError):
        tracker.check_in("TSMEM9999", now=at(2, 7, 30))


def test_open_session_hours_stop_at_shift_end(env):
    tracker, _, _, _, morning, _ = env
    session = tracker.check_in(morning.member_id, now=at(2, 7, 30))

    assert tracker.session_hours(session, now=at(2, 13, 0)) == 5.5
    assert tracker.session_hours(session, now=at(2, 16, 0)) == 6.5


def test_check_in_outside_shift_warns_member(env):
    tracker, _, _, notifier, _, evening = env

    tracker.check_in(evening.member_id, now=at(2, 10, 0))

    assert notifier.sent == [(evening.member_id, "Outside Shift Warning", AlertType.WARNING)]
    board = tracker.checked_in_members(now=at(2, 10, 30))
    assert [(row.member_id, row.is_outside_shift) for row in board] == [(evening.member_id, True)]


def test_check_in_inside_shift_sends_nothing(env):
    tracker, _, _, notifier, morning, _ = env
    tracker.check_in(morning.member_id, now=at(2, 7, 0))
    assert notifier.sent == []


def test_checked_in_board_lists_todays_open_sessions_in_order(env):
    tracker, _, _, _, morning, evening = env
    tracker.check_in(evening.member_id, now=at(1, 19, 0))
    late = tracker.check_in(morning.member_id, now=at(2, 8, 0))

    board = tracker.checked_in_members(now=at(2, 9, 0))

    assert [row.session.session_id for row in board] == [late.session_id]
    assert board[0].to_dict()["name"] == "Meera"
    assert board[0].is_outside_shift is False


def test_monthly_study_hours(env):
    tracker, _, _, _, morning, _ = env
    s1 = tracker.check_in(morning.member_id, now=at(2, 7, 30))
    tracker.check_out(s1.session_id, now=at(2, 9, 30))
    s2 = tracker.check_in(morning.member_id, now=at(3, 8, 0))
    tracker.check_out(s2.session_id, now=at(3, 9, 30))
    tracker.check_in(morning.member_id, now=at(31, 7, 0))

    assert tracker.monthly_study_hours(morning.member_id, now=at(31, 8, 0)) == 4.5
    assert tracker.monthly_study_hours(morning.member_id, now=datetime(2026, 2, 1, 8, 0)) == 0.0
    with pytest.raises(NotFoundError):
        tracker.monthly_study_hours("TSMEM9999", now=at(31, 8, 0))


def test_stale_open_session_lock_does_not_block_check_in():
    store = InMemoryDocumentStore()
    members = DocumentMemberRepository(store)
    attendance = DocumentAttendanceRepository(store)
    facility = FacilityConfig(seats=numbered_seats(5), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = MembershipService(members, facility)
    tracker = AttendanceTracker(attendance, membership, members)
    m = membership.register(name="Meera", phone="1111111", shift=Shift.MORNING, seat_number="1", now=at(1, 9))
    store.create(OPEN_SESSIONS_COLLECTION, {"session_id": "vanished"}, doc_id=m.member_id)

    session = tracker.check_in(m.member_id, now=at(2, 8, 0))

    assert tracker.active_session(m.member_id) == session
    with pytest.raises(StateError):
        tracker.check_in(m.member_id, now=at(2, 8, 5))


class InterferingMembership(MembershipService):
    """Lets another writer change the member right after each read."""

    def __init__(self, *args, interfere, **kwargs):
        super().__init__(*args, **kwargs)
        self.interfere = interfere
        self.reads = 0

    def get_member(self, member_id, *, now=None):
        member = super().get_member(member_id, now=now)
        self.reads += 1
        self.interfere(self, member_id, now, self.reads)
        return member


def _tracker_with(interfere):
    store = InMemoryDocumentStore()
    members = DocumentMemberRepository(store)
    attendance = DocumentAttendanceRepository(store)
    facility = FacilityConfig(seats=numbered_seats(5), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = InterferingMembership(members, facility, interfere=lambda *a: None)
    m = membership.register(name="Meera", phone="1111111", shift=Shift.MORNING, seat_number="1", now=at(1, 9))
    membership.interfere = interfere
    return store, AttendanceTracker(attendance, membership, members), membership, m


def test_check_in_racing_a_leave_does_not_open_a_session():
    def leave_once(service, member_id, now, reads):
        if reads == 1:
            service.mark_as_left(member_id, now=now)

    store, tracker, membership, m = _tracker_with(leave_once)

    with pytest.raises(StateError):
        tracker.check_in(m.member_id, now=at(2, 8, 0))

    assert membership.reads == 2
    assert store.query(ATTENDANCE_COLLECTION) == []
    assert store.get(OPEN_SESSIONS_COLLECTION, m.member_id) is None
    assert tracker.active_session(m.member_id) is None


def test_check_in_gives_up_when_the_member_keeps_changing():
    def edit_every_time(service, member_id, now, reads):
        service.edit(member_id, address=f"Flat {reads}", now=now)

    store, tracker, membership, m = _tracker_with(edit_every_time)

    with pytest.raises(ConflictError):
        tracker.check_in(m.member_id, now=at(2, 8, 0))

    assert membership.reads == 3
    assert store.query(ATTENDANCE_COLLECTION) == []
