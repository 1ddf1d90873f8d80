"""Immutable facility configuration injected into services at construction."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from types import MappingProxyType
from typing import Mapping, Tuple

from ..core.constants import DEFAULT_OVERDUE_GRACE_DAYS
from ..core.enums import Shift
from ..core.exceptions import ValidationError


@dataclass(frozen=True)
class ShiftWindow:
    """Daily opening window of a shift, half-open: [start, end)."""

    start: time
    end: time

    def contains(self, moment: time) -> bool:
        return self.start <= moment < self.end

    def end_on(self, day: date) -> datetime:
        return datetime.combine(day, self.end)


@dataclass(frozen=True)
class FeeTable:
    """Monthly fee per shift, in whole rupees."""

    morning: int
    evening: int
    fullday: int

    def for_shift(self, shift: Shift) -> int:
        return {
            Shift.MORNING: self.morning,
            Shift.EVENING: self.evening,
            Shift.FULLDAY: self.fullday,
        }[Shift(shift)]


@dataclass(frozen=True)
class LifecyclePolicy:
    overdue_grace_days: int = DEFAULT_OVERDUE_GRACE_DAYS
    wipe_payment_history_on_reactivation: bool = True


DEFAULT_SHIFT_WINDOWS: Mapping[Shift, ShiftWindow] = MappingProxyType(
    {
        Shift.MORNING: ShiftWindow(start=time(7, 0), end=time(14, 0)),
        Shift.EVENING: ShiftWindow(start=time(14, 0), end=time(21, 30)),
        Shift.FULLDAY: ShiftWindow(start=time(7, 0), end=time(21, 30)),
    }
)


def numbered_seats(count: int) -> Tuple[str, ...]:
    return tuple(str(i) for i in range(1, int(count) + 1))


@dataclass(frozen=True)
class FacilityConfig:
    seats: Tuple[str, ...]
    fees: FeeTable
    shift_windows: Mapping[Shift, ShiftWindow] = field(default_factory=lambda: DEFAULT_SHIFT_WINDOWS)
    policy: LifecyclePolicy = field(default_factory=LifecyclePolicy)

    def window_for(self, shift: Shift) -> ShiftWindow:
        return self.shift_windows[Shift(shift)]

    def require_seat(self, seat: str) -> str:
        seat = str(seat or "").strip()
        if seat not in self.seats:
            raise ValidationError(f"Seat {seat or '?'} does not exist")
        return seat


def _parse_hhmm(value: str) -> time:
    return datetime.strptime(value.strip(), "%H:%M").time()


def facility_from_settings(settings) -> FacilityConfig:
    """Build a FacilityConfig from a settings module (see config/)."""

    fees = dict(getattr(settings, "SHIFT_FEES"))
    windows = {
        Shift(name): ShiftWindow(start=_parse_hhmm(start), end=_parse_hhmm(end))
        for name, (start, end) in dict(getattr(settings, "SHIFT_WINDOWS", {})).items()
    }
    return FacilityConfig(
        seats=numbered_seats(int(getattr(settings, "SEAT_COUNT"))),
        fees=FeeTable(
            morning=int(fees["morning"]),
            evening=int(fees["evening"]),
            fullday=int(fees["fullday"]),
        ),
        shift_windows=MappingProxyType({**DEFAULT_SHIFT_WINDOWS, **windows}),
        policy=LifecyclePolicy(
            overdue_grace_days=int(getattr(settings, "OVERDUE_GRACE_DAYS", DEFAULT_OVERDUE_GRACE_DAYS)),
            wipe_payment_history_on_reactivation=bool(
                getattr(settings, "WIPE_PAYMENT_HISTORY_ON_REACTIVATION", True)
            ),
        ),
    )
