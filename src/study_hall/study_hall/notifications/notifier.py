from __future__ import annotations

from typing import Protocol

from ..core.enums import AlertType


class MemberNotifier(Protocol):
    """What the membership, billing and attendance services need from notifications.

    Implementations never raise: a failed notification must not undo the
    state change that triggered it.
    """

    def notify_member(
        self, member_id: str, *, title: str, message: str, alert_type: AlertType = AlertType.INFO
    ) -> None:
        raise NotImplementedError


class NullNotifier:
    def notify_member(
        self, member_id: str, *, title: str, message: str, alert_type: AlertType = AlertType.INFO
    ) -> None:
        return None
