from __future__ import annotations

from datetime import date, datetime

import pytest

from study_hall.attendance.document_repository import DocumentAttendanceRepository
from study_hall.core.constants import (
    ALERTS_COLLECTION,
    ATTENDANCE_COLLECTION,
    MEMBERS_COLLECTION,
    SEAT_CLAIMS_COLLECTION,
)
from study_hall.core.enums import ActivityStatus, AlertType, FeeStatus, Shift
from study_hall.core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from study_hall.database.memory_store import InMemoryDocumentStore
from study_hall.database.store import WriteConflict
from study_hall.facility.config import FacilityConfig, FeeTable, LifecyclePolicy, numbered_seats
from study_hall.members.document_repository import DocumentMemberRepository
from study_hall.members.service import MembershipService
from study_hall.notifications.document_repository import DocumentAlertRepository

FEES = FeeTable(morning=600, evening=600, fullday=1000)
JAN_1 = datetime(2026, 1, 1, 9, 0)
MID_JAN = datetime(2026, 1, 15, 9, 0)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[tuple[str, str, AlertType]] = []

    def notify_member(self, member_id, *, title, message, alert_type=AlertType.INFO):
        self.sent.append((member_id, title, alert_type))


class FlakyMemberRepository(DocumentMemberRepository):
    """Loses the next `failures` commits as if another writer got there first."""

    def __init__(self, store):
        super().__init__(store)
        self.failures = 0

    def commit(self, ops):
        if self.failures:
            self.failures -= 1
            raise WriteConflict("members", ops[0].doc_id, "version moved")
        super().commit(ops)


def _build(*, policy: LifecyclePolicy | None = None, repo_cls=DocumentMemberRepository):
    store = InMemoryDocumentStore()
    members = repo_cls(store)
    notifier = RecordingNotifier()
    facility = FacilityConfig(seats=numbered_seats(20), fees=FEES, policy=policy or LifecyclePolicy())
    service = MembershipService(
        members,
        facility,
        notifier=notifier,
        cleanups=(DocumentAttendanceRepository(store), DocumentAlertRepository(store)),
    )
    return store, members, service, notifier


def _register(service, *, name="Asha", phone="9876543210", shift=Shift.EVENING, seat="12", now=JAN_1):
    return service.register(name=name, phone=phone, shift=shift, seat_number=seat, now=now)


def test_register_creates_active_due_member_with_seat_claims():
    store, _, service, notifier = _build()

    m = _register(service, shift=Shift.FULLDAY, seat="3")

    assert m.member_id == "TSMEM0001"
    assert m.activity_status == ActivityStatus.ACTIVE
    assert m.fee_status == FeeStatus.DUE
    assert m.amount_due == 1000
    assert m.registration_date == date(2026, 1, 1)
    assert m.next_due_date == date(2026, 2, 1)
    assert store.get(SEAT_CLAIMS_COLLECTION, "3:morning") is not None
    assert store.get(SEAT_CLAIMS_COLLECTION, "3:evening") is not None
    assert notifier.sent[0][:2] == ("TSMEM0001", "Welcome")


def test_member_ids_are_sequential():
    _, _, service, _ = _build()
    first = _register(service, phone="1111111")
    second = _register(service, phone="2222222", seat="13")
    assert (first.member_id, second.member_id) == ("TSMEM0001", "TSMEM0002")


def test_overlapping_shift_on_same_seat_is_rejected():
    _, _, service, _ = _build()
    _register(service, shift=Shift.MORNING, seat="5", phone="1111111")

    with pytest.raises(ConflictError):
        _register(service, shift=Shift.FULLDAY, seat="5", phone="2222222")
    with pytest.raises(ConflictError):
        _register(service, shift=Shift.MORNING, seat="5", phone="3333333")

    evening = _register(service, shift=Shift.EVENING, seat="5", phone="4444444")
    assert evening.seat_number == "5"


def test_register_loses_to_a_claim_the_allocator_has_not_seen():
    store, members, service, notifier = _build()
    store.create(SEAT_CLAIMS_COLLECTION, {"member_id": "TSMEM0999"}, doc_id="5:morning")

    with pytest.raises(ConflictError, match="Seat 5"):
        _register(service, shift=Shift.FULLDAY, seat="5")

    assert members.list_all() == []
    assert store.get(MEMBERS_COLLECTION, "TSMEM0001") is None
    assert store.get(SEAT_CLAIMS_COLLECTION, "5:evening") is None
    assert notifier.sent == []


def test_seat_move_loses_to_a_claim_the_allocator_has_not_seen():
    store, members, service, _ = _build()
    m = _register(service, shift=Shift.MORNING, seat="1")
    store.create(SEAT_CLAIMS_COLLECTION, {"member_id": "TSMEM0999"}, doc_id="5:morning")

    with pytest.raises(ConflictError, match="Seat 5"):
        service.edit(m.member_id, seat_number="5", now=JAN_1)

    assert members.get_by_id(m.member_id).seat_number == "1"
    assert members.get_by_id(m.member_id).version == m.version
    assert store.get(SEAT_CLAIMS_COLLECTION, "1:morning") is not None


def test_available_seats_after_morning_registration():
    _, _, service, _ = _build()
    _register(service, shift=Shift.MORNING, seat="7")

    assert "7" not in service.available_seats(Shift.MORNING, now=JAN_1)
    assert "7" not in service.available_seats(Shift.FULLDAY, now=JAN_1)
    assert "7" in service.available_seats(Shift.EVENING, now=JAN_1)


def test_register_validation_and_duplicates():
    _, _, service, _ = _build()
    _register(service, phone="9876543210")

    with pytest.raises(ValidationError):
        _register(service, phone="5555555", seat="999")
    with pytest.raises(ValidationError):
        _register(service, phone="abc", seat="1")
    with pytest.raises(ValidationError):
        _register(service, phone="5555555", shift="night", seat="1")
    with pytest.raises(ConflictError):
        _register(service, phone="9876543210", seat="1")


def test_read_escalates_and_persists_overdue_member():
    store, members, service, notifier = _build()
    m = _register(service)

    seen = service.get_member(m.member_id, now=datetime(2026, 2, 10, 9, 0))

    assert seen.activity_status == ActivityStatus.LEFT
    assert seen.seat_number is None
    assert seen.fee_status == FeeStatus.NOT_APPLICABLE
    stored = members.get_by_id(m.member_id)
    assert stored == seen
    assert stored.version == seen.version
    assert store.get(SEAT_CLAIMS_COLLECTION, "12:evening") is None
    assert notifier.sent[-1][1] == "Membership Ended"


def test_read_within_grace_marks_overdue_only():
    _, _, service, _ = _build()
    m = _register(service)

    seen = service.get_member(m.member_id, now=datetime(2026, 2, 4, 9, 0))

    assert seen.activity_status == ActivityStatus.ACTIVE
    assert seen.fee_status == FeeStatus.OVERDUE


def test_batch_refresh_matches_read_refresh():
    later = datetime(2026, 2, 4, 9, 0)
    _, members_a, service_a, _ = _build()
    _, members_b, service_b, _ = _build()
    for service in (service_a, service_b):
        _register(service, phone="1111111", seat="1")
        _register(service, phone="2222222", seat="2", now=datetime(2026, 1, 20, 9, 0))

    read = [service_a.get_member(m.member_id, now=later) for m in members_a.list_all()]
    assert service_b.refresh_all(now=later) == 1

    assert read == list(members_b.list_all())
    assert service_b.refresh_all(now=later) == 0


def test_grace_days_come_from_policy():
    _, _, service, _ = _build(policy=LifecyclePolicy(overdue_grace_days=10))
    m = _register(service)
    assert service.get_member(m.member_id, now=datetime(2026, 2, 10)).activity_status == ActivityStatus.ACTIVE


def test_mark_as_left_frees_the_seat():
    store, _, service, _ = _build()
    m = _register(service)

    left = service.mark_as_left(m.member_id, now=JAN_1)

    assert left.activity_status == ActivityStatus.LEFT
    assert left.left_date == date(2026, 1, 1)
    assert "12" in service.available_seats(Shift.EVENING, now=JAN_1)
    assert "12" in service.available_seats(Shift.FULLDAY, now=JAN_1)
    assert store.get(SEAT_CLAIMS_COLLECTION, "12:evening") is None
    with pytest.raises(StateError):
        service.mark_as_left(m.member_id, now=JAN_1)


def test_reactivate_needs_a_free_seat():
    _, _, service, _ = _build()
    m = _register(service, phone="1111111")
    service.mark_as_left(m.member_id, now=JAN_1)
    _register(service, phone="2222222", shift=Shift.EVENING, seat="12")

    with pytest.raises(ConflictError):
        service.reactivate(m.member_id, seat_number="12", now=MID_JAN)

    back = service.reactivate(m.member_id, seat_number="12", shift=Shift.MORNING, now=MID_JAN)
    assert back.activity_status == ActivityStatus.ACTIVE
    assert back.shift == Shift.MORNING
    assert back.fee_status == FeeStatus.DUE
    assert back.next_due_date == date(2026, 2, 15)

    with pytest.raises(StateError):
        service.reactivate(m.member_id, seat_number="13", now=MID_JAN)


def test_edit_contact_and_seat():
    _, _, service, _ = _build()
    a = _register(service, phone="1111111", seat="1")
    _register(service, phone="2222222", seat="2")

    edited = service.edit(a.member_id, name="Asha R", email="ASHA@example.com", now=JAN_1)
    assert edited.name == "Asha R"
    assert edited.email == "asha@example.com"

    with pytest.raises(ConflictError):
        service.edit(a.member_id, seat_number="2", now=JAN_1)
    with pytest.raises(ConflictError):
        service.edit(a.member_id, phone="2222222", now=JAN_1)

    moved = service.edit(a.member_id, seat_number="3", shift=Shift.FULLDAY, now=JAN_1)
    assert (moved.seat_number, moved.shift, moved.amount_due) == ("3", Shift.FULLDAY, 1000)
    assert "1" in service.available_seats(Shift.FULLDAY, now=JAN_1)


def test_seat_change_for_left_member_needs_reactivation():
    _, _, service, _ = _build()
    m = _register(service)
    service.mark_as_left(m.member_id, now=JAN_1)

    with pytest.raises(StateError):
        service.edit(m.member_id, seat_number="4", now=JAN_1)
    with pytest.raises(StateError):
        service.edit(m.member_id, shift=Shift.MORNING, now=JAN_1)
    assert service.edit(m.member_id, address="12 Lake Road", now=JAN_1).address == "12 Lake Road"


def test_write_conflict_is_retried_then_surfaces():
    _, members, service, _ = _build(repo_cls=FlakyMemberRepository)
    m = _register(service)

    members.failures = 1
    assert service.edit(m.member_id, name="Retried", now=JAN_1).name == "Retried"

    members.failures = 3
    with pytest.raises(ConflictError):
        service.edit(m.member_id, name="Never", now=JAN_1)
    assert members.get_by_id(m.member_id).name == "Retried"


def test_delete_member_removes_related_documents():
    store, members, service, _ = _build()
    m = _register(service)
    store.create(ATTENDANCE_COLLECTION, {"member_id": m.member_id, "date": "2026-01-01"}, doc_id="s1")
    store.create(ALERTS_COLLECTION, {"member_id": m.member_id, "title": "x"}, doc_id="a1")
    store.create(ALERTS_COLLECTION, {"member_id": None, "title": "broadcast"}, doc_id="a2")

    service.delete_member(m.member_id)

    assert members.get_by_id(m.member_id) is None
    assert store.get(ATTENDANCE_COLLECTION, "s1") is None
    assert store.get(ALERTS_COLLECTION, "a1") is None
    assert store.get(ALERTS_COLLECTION, "a2") is not None
    assert store.get(SEAT_CLAIMS_COLLECTION, "12:evening") is None
    with pytest.raises(NotFoundError):
        service.get_member(m.member_id)
