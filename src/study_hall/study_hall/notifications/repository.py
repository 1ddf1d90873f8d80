from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..database.store import WriteOp
from .model import AdminRecord, Alert


class AlertRepository(Protocol):
    def add(self, alert: Alert) -> Alert:
        """Persist a new alert; returns it with its generated id."""

        raise NotImplementedError

    def get_by_id(self, alert_id: str) -> Optional[Alert]:
        raise NotImplementedError

    def list_for_member(self, member_id: str) -> Sequence[Alert]:
        raise NotImplementedError

    def list_broadcasts(self) -> Sequence[Alert]:
        raise NotImplementedError

    def list_recent(self, limit: int) -> Sequence[Alert]:
        raise NotImplementedError

    def mark_read(self, alert_ids: Sequence[str]) -> None:
        raise NotImplementedError

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        raise NotImplementedError


class AdminRepository(Protocol):
    def add(self, admin: AdminRecord) -> AdminRecord:
        raise NotImplementedError

    def get_by_id(self, admin_id: str) -> Optional[AdminRecord]:
        raise NotImplementedError

    def list_all(self) -> Sequence[AdminRecord]:
        raise NotImplementedError

    def find_by_device_token(self, token: str) -> Sequence[AdminRecord]:
        raise NotImplementedError

    def add_device_token(self, admin_id: str, token: str) -> None:
        raise NotImplementedError

    def remove_device_token(self, admin_id: str, token: str) -> None:
        raise NotImplementedError

    def token_removal_op(self, admin_id: str, tokens: Sequence[str]) -> WriteOp:
        raise NotImplementedError
