from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional, Tuple

from ..billing.money import format_amount, parse_amount
from ..core.enums import ActivityStatus, FeeStatus, PaymentMethod, Shift


@dataclass(frozen=True)
class PaymentRecord:
    """One ledger entry. Never changed after it is appended."""

    payment_id: str
    date: Optional[date]
    amount: str
    method: PaymentMethod
    transaction_id: str

    @property
    def value(self) -> int:
        """Amount in whole rupees; malformed ledger text counts as 0."""
        return parse_amount(self.amount)

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "date": self.date.isoformat() if self.date else None,
            "amount": self.amount,
            "method": self.method.value,
            "transaction_id": self.transaction_id,
        }


@dataclass(frozen=True)
class Member:
    """Domain entity: a membership holder.

    Note: Pure data object; use dataclasses.replace to derive a changed copy.
    `version` is the store version this snapshot was read at.
    """

    member_id: str
    name: str
    phone: str
    shift: Shift
    seat_number: Optional[str]
    activity_status: ActivityStatus
    fee_status: FeeStatus
    amount_due: Optional[int]
    registration_date: date
    email: Optional[str] = None
    address: Optional[str] = None
    next_due_date: Optional[date] = None
    last_payment_date: Optional[date] = None
    left_date: Optional[date] = None
    last_attendance_at: Optional[datetime] = None
    payment_history: Tuple[PaymentRecord, ...] = ()
    device_tokens: Tuple[str, ...] = ()
    acknowledged_broadcast_ids: Tuple[str, ...] = ()
    version: int = field(default=0, compare=False)

    @property
    def is_active(self) -> bool:
        return self.activity_status == ActivityStatus.ACTIVE

    def sorted_payments(self) -> list[PaymentRecord]:
        # Undated entries sort last.
        return sorted(self.payment_history, key=lambda p: (p.date is None, p.date or date.min))

    def to_dict(self) -> dict:
        return {
            "member_id": self.member_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "address": self.address,
            "shift": self.shift.value,
            "seat_number": self.seat_number,
            "activity_status": self.activity_status.value,
            "fee_status": self.fee_status.value,
            "amount_due": format_amount(self.amount_due),
            "registration_date": self.registration_date.isoformat(),
            "next_due_date": self.next_due_date.isoformat() if self.next_due_date else None,
            "last_payment_date": self.last_payment_date.isoformat() if self.last_payment_date else None,
            "left_date": self.left_date.isoformat() if self.left_date else None,
            "last_attendance_at": self.last_attendance_at.isoformat() if self.last_attendance_at else None,
            "payment_history": [p.to_dict() for p in self.sorted_payments()],
        }
