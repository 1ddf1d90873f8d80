"""Seat-claim index: one document per occupied (seat, slot).

Claims are created in the same batch as the member write, so two concurrent
registrations for overlapping shifts on one seat cannot both commit.
"""
from __future__ import annotations

from typing import List

from ..core.constants import SEAT_CLAIMS_COLLECTION
from ..core.enums import Shift
from ..database.store import WriteConflict, WriteOp
from .allocator import claim_slots


def claim_id(seat: str, slot: str) -> str:
    return f"{seat}:{slot}"


def claim_ops(member_id: str, seat: str, shift: Shift) -> List[WriteOp]:
    return [
        WriteOp.create(
            SEAT_CLAIMS_COLLECTION,
            claim_id(seat, slot),
            {"member_id": member_id, "seat_number": seat, "slot": slot},
        )
        for slot in sorted(claim_slots(shift))
    ]


def release_ops(seat: str, shift: Shift) -> List[WriteOp]:
    return [WriteOp.delete(SEAT_CLAIMS_COLLECTION, claim_id(seat, slot)) for slot in sorted(claim_slots(shift))]


def is_claim_conflict(exc: WriteConflict) -> bool:
    return exc.collection == SEAT_CLAIMS_COLLECTION
