from __future__ import annotations

import re
from dataclasses import replace
from datetime import date, datetime

import pytest

from study_hall.billing.ledger import BillingLedger, make_payment_id, make_transaction_id
from study_hall.core.constants import MEMBERS_COLLECTION
from study_hall.core.enums import FeeStatus, PaymentMethod, Shift
from study_hall.core.exceptions import StateError, ValidationError
from study_hall.database.memory_store import InMemoryDocumentStore
from study_hall.facility.config import FacilityConfig, FeeTable, numbered_seats
from study_hall.members.document_repository import DocumentMemberRepository
from study_hall.members.model import PaymentRecord
from study_hall.members.service import MembershipService

JAN_1 = datetime(2026, 1, 1, 9, 0)


class RecordingNotifier:
    def __init__(self):
        self.titles: list[str] = []

    def notify_member(self, member_id, *, title, message, alert_type=None):
        self.titles.append(title)


@pytest.fixture()
def env():
    members = DocumentMemberRepository(InMemoryDocumentStore())
    notifier = RecordingNotifier()
    facility = FacilityConfig(seats=numbered_seats(20), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = MembershipService(members, facility, notifier=notifier)
    ledger = BillingLedger(membership, members, notifier=notifier)
    return membership, members, ledger, notifier


def _register(membership, *, phone="9876543210", seat="12", shift=Shift.EVENING, now=JAN_1):
    return membership.register(name="Ravi", phone=phone, shift=shift, seat_number=seat, now=now)


def test_payment_after_due_date_starts_from_today(env):
    membership, _, ledger, notifier = env
    m = _register(membership)

    member, record = ledger.record_payment(m.member_id, method="UPI", now=datetime(2026, 2, 2, 10, 0))

    assert member.fee_status == FeeStatus.PAID
    assert member.amount_due == 0
    assert member.last_payment_date == date(2026, 2, 2)
    assert member.next_due_date == date(2026, 3, 2)
    assert record.amount == "Rs. 600"
    assert record.method == PaymentMethod.UPI
    assert member.payment_history == (record,)
    assert notifier.titles[-1] == "Payment Confirmation"


def test_advance_payment_extends_from_current_due_date(env):
    membership, _, ledger, _ = env
    m = _register(membership)

    member, record = ledger.record_payment(m.member_id, months_covered=2, now=datetime(2026, 1, 10, 10, 0))

    assert member.next_due_date == date(2026, 4, 1)
    assert record.amount == "Rs. 1200"


def test_paid_member_falls_due_on_due_date(env):
    membership, _, ledger, _ = env
    m = _register(membership)
    ledger.record_payment(m.member_id, now=datetime(2026, 1, 5, 10, 0))

    again = membership.get_member(m.member_id, now=datetime(2026, 3, 1, 10, 0))

    assert again.fee_status == FeeStatus.DUE
    assert again.amount_due == 600


def test_payment_rejected_for_left_member(env):
    membership, _, ledger, _ = env
    m = _register(membership)
    membership.mark_as_left(m.member_id, now=JAN_1)

    with pytest.raises(StateError):
        ledger.record_payment(m.member_id, now=JAN_1)


@pytest.mark.parametrize("amount", [0, -100, "abc"])
def test_payment_amount_must_be_positive(env, amount):
    membership, _, ledger, _ = env
    m = _register(membership)

    with pytest.raises(ValidationError):
        ledger.record_payment(m.member_id, amount=amount, now=JAN_1)


def test_unknown_payment_method_is_rejected(env):
    membership, _, ledger, _ = env
    m = _register(membership)

    with pytest.raises(ValidationError):
        ledger.record_payment(m.member_id, method="Cheque", now=JAN_1)


def test_revenue_sums_payments_in_range_and_ignores_malformed_amounts(env):
    membership, members, ledger, _ = env
    a = _register(membership, phone="1111111", seat="1")
    b = _register(membership, phone="2222222", seat="2")
    ledger.record_payment(a.member_id, amount=600, now=datetime(2026, 1, 3, 10, 0))
    ledger.record_payment(b.member_id, amount=1000, now=datetime(2026, 1, 20, 10, 0))
    ledger.record_payment(a.member_id, amount=600, now=datetime(2026, 2, 3, 10, 0))

    broken = members.get_by_id(b.member_id)
    junk = PaymentRecord("PAYJUNK", date(2026, 1, 25), "not money", PaymentMethod.CASH, "TXNJUNK")
    members.commit([members.save_op(replace(broken, payment_history=broken.payment_history + (junk,)))])

    assert ledger.monthly_revenue(date(2026, 1, 1), date(2026, 1, 31)) == 1600
    assert ledger.current_month_revenue(now=datetime(2026, 2, 14)) == 600

    history = ledger.revenue_history()
    assert [(h.month, h.total, h.payments) for h in history] == [("2026-02", 600, 1), ("2026-01", 1600, 3)]
    assert [h.month for h in ledger.revenue_history(limit=1)] == ["2026-02"]
    assert history[0].to_dict() == {"month": "2026-02", "total": "Rs. 600", "payments": 1}


def test_legacy_payments_with_unreadable_dates_are_skipped():
    store = InMemoryDocumentStore()
    members = DocumentMemberRepository(store)
    facility = FacilityConfig(seats=numbered_seats(20), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = MembershipService(members, facility)
    ledger = BillingLedger(membership, members)
    m = _register(membership)
    ledger.record_payment(m.member_id, amount=600, now=datetime(2026, 1, 3, 10, 0))

    history = store.get(MEMBERS_COLLECTION, m.member_id).data["payment_history"]
    legacy = [
        {"paymentId": "PAYOLD1", "date": "05/01/2026", "amount": "Rs. 600", "method": "Cash"},
        {"paymentId": "PAYOLD2", "amount": "Rs. 600", "method": "UPI"},
    ]
    store.update(MEMBERS_COLLECTION, m.member_id, {"payment_history": history + legacy})

    assert ledger.monthly_revenue(date(2026, 1, 1), date(2026, 1, 31)) == 600
    assert [(h.month, h.total, h.payments) for h in ledger.revenue_history()] == [("2026-01", 600, 1)]

    member = membership.list_members(now=datetime(2026, 1, 4))[0]
    payments = member.to_dict()["payment_history"]
    assert [p["date"] for p in payments] == ["2026-01-03", None, None]
    assert {p["payment_id"] for p in payments[1:]} == {"PAYOLD1", "PAYOLD2"}


def test_generated_ids_have_expected_shape():
    now = datetime(2026, 1, 1, 9, 0)

    assert re.fullmatch(r"PAY\d{6}07", make_payment_id(now, suffix=lambda: "07"))
    assert re.fullmatch(r"TXNUPI\d{7}42", make_transaction_id(PaymentMethod.UPI, now, suffix=lambda: "42"))
    assert make_transaction_id(PaymentMethod.ONLINE, now).startswith("TXNONL")
