from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, List, Optional

from ..common.datetime_utils import month_bounds, now_local
from ..common.validators import require_enum, require_positive
from ..core.enums import AlertType, PaymentMethod
from ..members.model import Member, PaymentRecord
from ..members.repository import MemberRepository
from ..members.service import MembershipService
from ..notifications.notifier import MemberNotifier, NullNotifier
from .money import format_amount

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevenueMonth:
    month: str  # YYYY-MM
    total: int
    payments: int

    def to_dict(self) -> dict:
        return {"month": self.month, "total": format_amount(self.total), "payments": self.payments}


def _random_suffix() -> str:
    return f"{random.randrange(100):02d}"


def make_payment_id(now: datetime, suffix: Callable[[], str] = _random_suffix) -> str:
    millis = str(int(now.timestamp() * 1000))
    return f"PAY{millis[-6:]}{suffix()}"


def make_transaction_id(method: PaymentMethod, now: datetime, suffix: Callable[[], str] = _random_suffix) -> str:
    millis = str(int(now.timestamp() * 1000))
    return f"TXN{method.value.upper()[:3]}{millis[-7:]}{suffix()}"


class BillingLedger:
    """Payment recording and revenue aggregation over member payment histories."""

    def __init__(
        self,
        membership: MembershipService,
        members: MemberRepository,
        *,
        notifier: MemberNotifier | None = None,
    ):
        self._membership = membership
        self._members = members
        self._notifier = notifier or NullNotifier()

    def record_payment(
        self,
        member_id: str,
        *,
        amount: int | None = None,
        method: PaymentMethod | str = PaymentMethod.CASH,
        months_covered: int = 1,
        now: datetime | None = None,
    ) -> tuple[Member, PaymentRecord]:
        now = now or now_local()
        method = require_enum(PaymentMethod, method, "method")
        months = require_positive(months_covered, "months_covered")
        explicit_amount = require_positive(amount, "amount") if amount is not None else None
        fees = self._membership.facility.fees

        def make_record(m: Member) -> PaymentRecord:
            value = explicit_amount if explicit_amount is not None else fees.for_shift(m.shift) * months
            return PaymentRecord(
                payment_id=make_payment_id(now),
                date=now.date(),
                amount=format_amount(value),
                method=method,
                transaction_id=make_transaction_id(method, now),
            )

        member, record = self._membership.apply_payment(member_id, make_record, months=months, now=now)
        logger.info(
            "Recorded payment %s for %s: %s via %s", record.payment_id, member_id, record.amount, method.value
        )
        self._notifier.notify_member(
            member_id,
            title="Payment Confirmation",
            message=(
                f"We received your payment of {record.amount} via {method.value}. "
                f"Your membership is paid until {member.next_due_date.isoformat()}."
            ),
            alert_type=AlertType.INFO,
        )
        return member, record

    def monthly_revenue(self, start: date, end: date) -> int:
        """Sum of payments dated within [start, end], across all members."""

        total = 0
        for member in self._members.list_all():
            for payment in member.payment_history:
                if payment.date and start <= payment.date <= end:
                    total += payment.value
        return total

    def current_month_revenue(self, *, now: datetime | None = None) -> int:
        start, end = month_bounds((now or now_local()).date())
        return self.monthly_revenue(start, end)

    def revenue_history(self, *, limit: Optional[int] = None) -> List[RevenueMonth]:
        totals: dict[str, list[int]] = {}
        for member in self._members.list_all():
            for payment in member.sorted_payments():
                if not payment.date:
                    continue
                bucket = totals.setdefault(payment.date.strftime("%Y-%m"), [0, 0])
                bucket[0] += payment.value
                bucket[1] += 1

        history = [RevenueMonth(month=k, total=v[0], payments=v[1]) for k, v in sorted(totals.items(), reverse=True)]
        return history[:limit] if limit else history
