"""Time-driven fee/activity transitions.

`refresh_member` is the single transition function behind every read of a
member and behind the batch refresh job, so both paths always agree.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum
from typing import Optional

from ..common.datetime_utils import add_months
from ..core.enums import ActivityStatus, FeeStatus, Shift
from ..facility.config import FeeTable, LifecyclePolicy
from .model import Member


class RefreshEvent(str, Enum):
    LAPSED = "lapsed"
    OVERDUE = "overdue"
    ESCALATED = "escalated"


@dataclass(frozen=True)
class RefreshResult:
    member: Member
    event: Optional[RefreshEvent] = None

    @property
    def changed(self) -> bool:
        return self.event is not None


def mark_left(member: Member, today: date) -> Member:
    """Left state: seat released, fee tracking switched off."""
    return replace(
        member,
        activity_status=ActivityStatus.LEFT,
        seat_number=None,
        fee_status=FeeStatus.NOT_APPLICABLE,
        amount_due=None,
        next_due_date=None,
        left_date=today,
    )


def refresh_member(member: Member, *, today: date, policy: LifecyclePolicy, fees: FeeTable) -> RefreshResult:
    if not member.is_active or member.next_due_date is None:
        return RefreshResult(member)

    due = member.next_due_date
    current = member
    event: Optional[RefreshEvent] = None

    if current.fee_status == FeeStatus.PAID and due <= today:
        current = replace(current, fee_status=FeeStatus.DUE, amount_due=fees.for_shift(current.shift))
        event = RefreshEvent.LAPSED

    if current.fee_status != FeeStatus.PAID and due < today and current.fee_status != FeeStatus.OVERDUE:
        current = replace(current, fee_status=FeeStatus.OVERDUE)
        event = RefreshEvent.OVERDUE

    if current.fee_status == FeeStatus.OVERDUE and (today - due).days > policy.overdue_grace_days:
        current = mark_left(current, today)
        event = RefreshEvent.ESCALATED

    return RefreshResult(current, event)


def apply_paid(member: Member, *, today: date, months: int) -> Member:
    """Paid transition: the new period starts at the later of today and the current due date."""
    anchor = max(today, member.next_due_date) if member.next_due_date else today
    return replace(
        member,
        fee_status=FeeStatus.PAID,
        amount_due=0,
        last_payment_date=today,
        next_due_date=add_months(anchor, months),
    )


def reactivated(
    member: Member, *, seat_number: str, shift: Shift, today: date, policy: LifecyclePolicy, fees: FeeTable
) -> Member:
    return replace(
        member,
        activity_status=ActivityStatus.ACTIVE,
        seat_number=seat_number,
        shift=shift,
        fee_status=FeeStatus.DUE,
        amount_due=fees.for_shift(shift),
        next_due_date=add_months(today, 1),
        left_date=None,
        payment_history=() if policy.wipe_payment_history_on_reactivation else member.payment_history,
    )


def prorate_shift_change(member: Member, *, new_shift: Shift, today: date, fees: FeeTable) -> Member:
    """Carry the unused value of a paid period over to the new shift's daily rate.

    A lapsed or unpaid period simply owes the new shift's fee.
    """
    new_fee = fees.for_shift(new_shift)
    due = member.next_due_date
    if member.fee_status != FeeStatus.PAID or due is None or member.last_payment_date is None or today > due:
        return replace(member, shift=new_shift, amount_due=new_fee if member.fee_status != FeeStatus.PAID else 0)

    # remaining_days * (old_fee / paid_days) / (new_fee / 30), kept in integers so it floors exactly.
    paid_days = (due - member.last_payment_date).days
    remaining_days = max((due - today).days, 0)
    if paid_days > 0 and new_fee > 0:
        extra_days = (remaining_days * fees.for_shift(member.shift) * 30) // (paid_days * new_fee)
    else:
        extra_days = 0
    return replace(member, shift=new_shift, amount_due=0, next_due_date=today + timedelta(days=extra_days))
