from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, List, Optional, Protocol, Sequence, Tuple

from ..common.datetime_utils import add_months, now_local
from ..common.validators import optional_email, require_enum, require_min_length, require_non_empty, require_phone
from ..core.constants import DEFAULT_MAX_WRITE_ATTEMPTS
from ..core.enums import ActivityStatus, AlertType, FeeStatus, Shift
from ..core.exceptions import ConflictError, NotFoundError, StateError, ValidationError
from ..database.store import MissingDocument, WriteConflict, WriteOp
from ..facility.config import FacilityConfig
from ..notifications.notifier import MemberNotifier, NullNotifier
from ..seats.allocator import SeatAllocator
from ..seats.claims import claim_ops, is_claim_conflict, release_ops
from .lifecycle import RefreshEvent, apply_paid, mark_left, prorate_shift_change, reactivated, refresh_member
from .model import Member, PaymentRecord
from .repository import MemberRepository

logger = logging.getLogger(__name__)

# A change returns the new member snapshot plus extra ops for the same batch.
Change = Callable[[Member], Tuple[Member, Sequence[WriteOp]]]


class MemberCleanup(Protocol):
    """Collections holding per-member documents that go away with the member."""

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        raise NotImplementedError


_REFRESH_NOTICES = {
    RefreshEvent.LAPSED: (
        "Fee Due",
        "Your membership fee is now due. Please pay to keep your seat.",
        AlertType.INFO,
    ),
    RefreshEvent.OVERDUE: (
        "Fee Overdue",
        "Your membership fee is overdue. Please pay as soon as possible to avoid losing your seat.",
        AlertType.WARNING,
    ),
    RefreshEvent.ESCALATED: (
        "Membership Ended",
        "Your membership was closed because the fee stayed unpaid past the grace period.",
        AlertType.WARNING,
    ),
}


class MembershipService:
    """Member registry plus the fee/activity state machine.

    Every read goes through `refresh_member` and persists whatever changed,
    so views never show a stale fee status. Writes are conditional on the
    version the member was read at and retried on conflict.
    """

    def __init__(
        self,
        members: MemberRepository,
        facility: FacilityConfig,
        *,
        notifier: MemberNotifier | None = None,
        cleanups: Sequence[MemberCleanup] = (),
        max_attempts: int = DEFAULT_MAX_WRITE_ATTEMPTS,
    ):
        self._members = members
        self._facility = facility
        self._allocator = SeatAllocator(facility.seats)
        self._notifier = notifier or NullNotifier()
        self._cleanups = list(cleanups)
        self._max_attempts = max(1, int(max_attempts))

    @property
    def facility(self) -> FacilityConfig:
        return self._facility

    @property
    def allocator(self) -> SeatAllocator:
        return self._allocator

    # ---- reads -----------------------------------------------------------

    def get_member(self, member_id: str, *, now: datetime | None = None) -> Member:
        today = (now or now_local()).date()
        member = self._members.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")
        return self._refreshed(member, today)

    def list_members(
        self,
        *,
        activity_status: ActivityStatus | None = None,
        fee_status: FeeStatus | None = None,
        now: datetime | None = None,
    ) -> List[Member]:
        today = (now or now_local()).date()
        members = [self._refreshed(m, today) for m in self._members.list_all()]
        if activity_status is not None:
            members = [m for m in members if m.activity_status == activity_status]
        if fee_status is not None:
            members = [m for m in members if m.fee_status == fee_status]
        return members

    def active_members(self, *, now: datetime | None = None) -> List[Member]:
        return self.list_members(activity_status=ActivityStatus.ACTIVE, now=now)

    def available_seats(
        self, shift: Shift | str, *, exclude_member_id: str | None = None, now: datetime | None = None
    ) -> List[str]:
        shift = require_enum(Shift, shift, "shift")
        return self._allocator.available(shift, self.active_members(now=now), exclude_member_id=exclude_member_id)

    def refresh_all(self, *, now: datetime | None = None) -> int:
        """Batch refresh job; returns how many members changed state."""

        today = (now or now_local()).date()
        changed = 0
        for member in self._members.list_all():
            if self._refreshed(member, today).version != member.version:
                changed += 1
        logger.info("Fee refresh for %s changed %d member(s)", today.isoformat(), changed)
        return changed

    def _refreshed(self, member: Member, today: date) -> Member:
        for _ in range(self._max_attempts):
            result = refresh_member(member, today=today, policy=self._facility.policy, fees=self._facility.fees)
            if not result.changed:
                return member

            ops: List[WriteOp] = [self._members.save_op(result.member)]
            if result.event == RefreshEvent.ESCALATED and member.seat_number:
                ops.extend(release_ops(member.seat_number, member.shift))
            try:
                self._members.commit(ops)
            except WriteConflict:
                fresh = self._members.get_by_id(member.member_id)
                if fresh is None:
                    raise NotFoundError(f"Member {member.member_id} not found")
                member = fresh
                continue
            except MissingDocument:
                raise NotFoundError(f"Member {member.member_id} not found")

            logger.info("Member %s: %s", member.member_id, result.event.value)
            title, message, alert_type = _REFRESH_NOTICES[result.event]
            self._notify(member.member_id, title, message, alert_type)
            return replace(result.member, version=member.version + 1)

        raise ConflictError(f"Member {member.member_id} was modified concurrently, please retry")

    # ---- writes ----------------------------------------------------------

    def register(
        self,
        *,
        name: str,
        phone: str,
        shift: Shift | str,
        seat_number: str,
        email: str | None = None,
        address: str | None = None,
        now: datetime | None = None,
    ) -> Member:
        now = now or now_local()
        today = now.date()

        name = require_min_length(require_non_empty(name, "Name"), "Name", 2)
        phone = require_phone(phone)
        email = optional_email(email)
        shift = require_enum(Shift, shift, "shift")
        seat = self._facility.require_seat(seat_number)
        self._ensure_unique_contact(phone=phone, email=email)
        self._allocator.ensure_available(seat, shift, self.active_members(now=now))

        member = Member(
            member_id=self._members.next_member_id(),
            name=name,
            phone=phone,
            email=email,
            address=(address or "").strip() or None,
            shift=shift,
            seat_number=seat,
            activity_status=ActivityStatus.ACTIVE,
            fee_status=FeeStatus.DUE,
            amount_due=self._facility.fees.for_shift(shift),
            registration_date=today,
            next_due_date=add_months(today, 1),
        )
        try:
            self._members.commit([self._members.create_op(member), *claim_ops(member.member_id, seat, shift)])
        except WriteConflict as exc:
            if is_claim_conflict(exc):
                raise ConflictError(f"Seat {seat} is already taken for the {shift.value} shift")
            raise ConflictError(f"Member id {member.member_id} is already in use, please retry")

        logger.info("Registered member %s on seat %s (%s)", member.member_id, seat, shift.value)
        self._notify(
            member.member_id,
            "Welcome",
            f"Welcome {member.name}! Seat {seat} is reserved for you in the {shift.value} shift.",
            AlertType.INFO,
        )
        return replace(member, version=1)

    def edit(
        self,
        member_id: str,
        *,
        name: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        address: str | None = None,
        shift: Shift | str | None = None,
        seat_number: str | None = None,
        now: datetime | None = None,
    ) -> Member:
        now = now or now_local()
        today = now.date()
        new_shift = require_enum(Shift, shift, "shift") if shift else None
        new_seat = self._facility.require_seat(seat_number) if seat_number else None
        clean_name = require_min_length(require_non_empty(name, "Name"), "Name", 2) if name is not None else None
        clean_phone = require_phone(phone) if phone is not None else None
        clean_email = optional_email(email) if email is not None else None

        def change(m: Member):
            self._ensure_unique_contact(phone=clean_phone, email=clean_email, member_id=m.member_id)
            updated = replace(
                m,
                name=clean_name if clean_name is not None else m.name,
                phone=clean_phone if clean_phone is not None else m.phone,
                email=clean_email if email is not None else m.email,
                address=((address or "").strip() or None) if address is not None else m.address,
            )
            ops: List[WriteOp] = []
            shift_changed = new_shift is not None and new_shift != m.shift
            seat_changed = new_seat is not None and new_seat != m.seat_number
            if not (shift_changed or seat_changed):
                return updated, ops

            if not m.is_active:
                raise StateError("A member who has left gets a seat and shift through reactivation")

            target_shift = new_shift if shift_changed else m.shift
            target_seat = new_seat if seat_changed else m.seat_number
            if target_seat is None:
                raise ValidationError("seat_number is required")
            self._allocator.ensure_available(
                target_seat, target_shift, self.active_members(now=now), exclude_member_id=m.member_id
            )
            if shift_changed:
                updated = prorate_shift_change(updated, new_shift=target_shift, today=today, fees=self._facility.fees)
            updated = replace(updated, seat_number=target_seat)
            if m.seat_number:
                ops.extend(release_ops(m.seat_number, m.shift))
            ops.extend(claim_ops(m.member_id, target_seat, target_shift))
            return updated, ops

        before, after = self._mutate(member_id, change, today)
        if after.shift != before.shift or after.seat_number != before.seat_number:
            logger.info(
                "Member %s moved to seat %s (%s)", member_id, after.seat_number, after.shift.value
            )
        return after

    def mark_as_left(self, member_id: str, *, now: datetime | None = None) -> Member:
        today = (now or now_local()).date()

        def change(m: Member):
            if not m.is_active:
                raise StateError(f"Member {m.member_id} has already left")
            ops = release_ops(m.seat_number, m.shift) if m.seat_number else []
            return mark_left(m, today), ops

        _, after = self._mutate(member_id, change, today)
        logger.info("Member %s marked as left", member_id)
        self._notify(member_id, "Membership Ended", "Your membership has been closed.", AlertType.INFO)
        return after

    def reactivate(
        self,
        member_id: str,
        *,
        seat_number: str,
        shift: Shift | str | None = None,
        now: datetime | None = None,
    ) -> Member:
        now = now or now_local()
        today = now.date()
        seat = self._facility.require_seat(seat_number)
        new_shift = require_enum(Shift, shift, "shift") if shift else None

        def change(m: Member):
            if m.is_active:
                raise StateError(f"Member {m.member_id} is already active")
            target_shift = new_shift or m.shift
            self._allocator.ensure_available(seat, target_shift, self.active_members(now=now))
            updated = reactivated(
                m,
                seat_number=seat,
                shift=target_shift,
                today=today,
                policy=self._facility.policy,
                fees=self._facility.fees,
            )
            return updated, claim_ops(m.member_id, seat, target_shift)

        _, after = self._mutate(member_id, change, today)
        logger.info("Member %s reactivated on seat %s (%s)", member_id, seat, after.shift.value)
        self._notify(
            member_id,
            "Welcome Back",
            f"Your membership is active again. Seat {seat} is reserved for you in the {after.shift.value} shift.",
            AlertType.INFO,
        )
        return after

    def apply_payment(
        self,
        member_id: str,
        make_record: Callable[[Member], PaymentRecord],
        *,
        months: int = 1,
        now: datetime | None = None,
    ) -> Tuple[Member, PaymentRecord]:
        """Append a ledger entry and move the member to Paid in one conditional write."""

        today = (now or now_local()).date()
        if int(months) < 1:
            raise ValidationError("months must be at least 1")
        recorded: List[PaymentRecord] = []

        def change(m: Member):
            if not m.is_active:
                raise StateError(f"Member {m.member_id} has left; reactivate before recording a payment")
            record = make_record(m)
            recorded[:] = [record]
            paid = apply_paid(m, today=today, months=int(months))
            return replace(paid, payment_history=m.payment_history + (record,)), []

        _, after = self._mutate(member_id, change, today)
        return after, recorded[0]

    def delete_member(self, member_id: str) -> None:
        member = self._members.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")

        ops: List[WriteOp] = [self._members.delete_op(member_id, expected_version=member.version)]
        if member.is_active and member.seat_number:
            ops.extend(release_ops(member.seat_number, member.shift))
        for cleanup in self._cleanups:
            ops.extend(cleanup.delete_ops_for_member(member_id))
        try:
            self._members.commit(ops)
        except WriteConflict:
            raise ConflictError(f"Member {member_id} was modified concurrently, please retry")
        logger.info("Deleted member %s and %d related document(s)", member_id, len(ops) - 1)

    # ---- helpers ---------------------------------------------------------

    def _mutate(self, member_id: str, change: Change, today: date) -> Tuple[Member, Member]:
        for attempt in range(1, self._max_attempts + 1):
            current = self._members.get_by_id(member_id)
            if not current:
                raise NotFoundError(f"Member {member_id} not found")
            current = self._refreshed(current, today)

            updated, extra_ops = change(current)
            try:
                self._members.commit([self._members.save_op(updated), *extra_ops])
            except WriteConflict as exc:
                if is_claim_conflict(exc):
                    raise ConflictError(
                        f"Seat {updated.seat_number} is already taken for the {updated.shift.value} shift"
                    )
                logger.debug("Write conflict on member %s (attempt %d): %s", member_id, attempt, exc)
                continue
            except MissingDocument:
                raise NotFoundError(f"Member {member_id} not found")
            return current, replace(updated, version=current.version + 1)

        raise ConflictError(f"Member {member_id} was modified concurrently, please retry")

    def _ensure_unique_contact(
        self, *, phone: Optional[str], email: Optional[str], member_id: Optional[str] = None
    ) -> None:
        if phone:
            other = self._members.find_by_phone(phone)
            if other and other.member_id != member_id:
                raise ConflictError("Phone number is already registered")
        if email:
            other = self._members.find_by_email(email)
            if other and other.member_id != member_id:
                raise ConflictError("Email is already registered")

    def _notify(self, member_id: str, title: str, message: str, alert_type: AlertType) -> None:
        self._notifier.notify_member(member_id, title=title, message=message, alert_type=alert_type)
