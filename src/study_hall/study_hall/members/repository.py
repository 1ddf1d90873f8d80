from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..database.store import WriteOp
from .model import Member


class MemberRepository(Protocol):
    """Repository interface for Member.

    Note (DIP): services depend on this interface, never on a concrete store.
    """

    def get_by_id(self, member_id: str) -> Optional[Member]:
        raise NotImplementedError

    def list_all(self) -> Sequence[Member]:
        raise NotImplementedError

    def list_active(self) -> Sequence[Member]:
        raise NotImplementedError

    def find_by_email(self, email: str) -> Optional[Member]:
        raise NotImplementedError

    def find_by_phone(self, phone: str) -> Optional[Member]:
        raise NotImplementedError

    def find_by_device_token(self, token: str) -> Sequence[Member]:
        raise NotImplementedError

    def next_member_id(self) -> str:
        raise NotImplementedError

    def create_op(self, member: Member) -> WriteOp:
        raise NotImplementedError

    def save_op(self, member: Member) -> WriteOp:
        """Full write of `member`, conditional on the version it was read at."""

        raise NotImplementedError

    def delete_op(self, member_id: str, *, expected_version: Optional[int] = None) -> WriteOp:
        raise NotImplementedError

    def commit(self, ops: Sequence[WriteOp]) -> None:
        raise NotImplementedError

    def attendance_op(self, member: Member, at) -> WriteOp:
        """Stamp the last check-in, conditional on the version `member` was read at."""

        raise NotImplementedError

    def add_device_token(self, member_id: str, token: str) -> None:
        raise NotImplementedError

    def remove_device_token(self, member_id: str, token: str) -> None:
        raise NotImplementedError

    def acknowledge_broadcasts(self, member_id: str, alert_ids: Sequence[str]) -> None:
        raise NotImplementedError

    def token_removal_op(self, member_id: str, tokens: Sequence[str]) -> WriteOp:
        raise NotImplementedError
