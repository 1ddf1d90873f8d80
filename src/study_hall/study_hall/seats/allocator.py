from __future__ import annotations

from typing import FrozenSet, Iterable, List, Optional, Protocol, Sequence

from ..core.enums import ActivityStatus, Shift
from ..core.exceptions import ConflictError

_SLOTS = {
    Shift.MORNING: frozenset({"morning"}),
    Shift.EVENING: frozenset({"evening"}),
    Shift.FULLDAY: frozenset({"morning", "evening"}),
}


class SeatHolder(Protocol):
    member_id: str
    shift: Shift
    seat_number: Optional[str]
    activity_status: ActivityStatus


def claim_slots(shift: Shift) -> FrozenSet[str]:
    """Half-day slots a shift occupies; fullday holds both."""
    return _SLOTS[Shift(shift)]


def shifts_overlap(a: Shift, b: Shift) -> bool:
    return bool(claim_slots(a) & claim_slots(b))


def _seat_sort_key(seat: str):
    return (0, int(seat), seat) if seat.isdigit() else (1, 0, seat)


class SeatAllocator:
    """Computes seat availability from the current active assignments."""

    def __init__(self, seats: Sequence[str]):
        self._seats = tuple(seats)

    @property
    def seats(self) -> Sequence[str]:
        return self._seats

    def occupied(
        self, shift: Shift, members: Iterable[SeatHolder], *, exclude_member_id: Optional[str] = None
    ) -> set[str]:
        taken: set[str] = set()
        for m in members:
            if m.activity_status != ActivityStatus.ACTIVE or not m.seat_number:
                continue
            if exclude_member_id is not None and m.member_id == exclude_member_id:
                continue
            if shifts_overlap(m.shift, shift):
                taken.add(m.seat_number)
        return taken

    def available(
        self, shift: Shift, members: Iterable[SeatHolder], *, exclude_member_id: Optional[str] = None
    ) -> List[str]:
        taken = self.occupied(shift, members, exclude_member_id=exclude_member_id)
        return sorted((s for s in self._seats if s not in taken), key=_seat_sort_key)

    def ensure_available(
        self, seat: str, shift: Shift, members: Iterable[SeatHolder], *, exclude_member_id: Optional[str] = None
    ) -> None:
        if seat in self.occupied(shift, members, exclude_member_id=exclude_member_id):
            raise ConflictError(f"Seat {seat} is already taken for the {Shift(shift).value} shift")
