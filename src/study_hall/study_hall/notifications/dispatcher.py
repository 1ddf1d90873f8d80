from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from ..common.datetime_utils import now_local
from ..common.validators import require_enum, require_non_empty
from ..core.constants import PUSH_CHUNK_SIZE
from ..core.enums import AlertType, DeliveryOutcome
from ..core.exceptions import ExternalDependencyError, NotFoundError
from ..database.store import MissingDocument, WriteConflict, WriteOp
from ..members.repository import MemberRepository
from .model import Alert, DispatchReport, PushPayload
from .push import PushClient
from .repository import AdminRepository, AlertRepository

logger = logging.getLogger(__name__)


def unique_tokens(token_lists: Iterable[Iterable[str]]) -> List[str]:
    """Union of token lists, first occurrence order kept, empties dropped."""
    seen: Dict[str, None] = {}
    for tokens in token_lists:
        for token in tokens or ():
            if token and token not in seen:
                seen[token] = None
    return list(seen)


def chunked(items: Sequence[str], size: int) -> Iterable[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class NotificationDispatcher:
    """Alert persistence plus push fan-out.

    Delivery is at-least-once and best-effort. A token reported INVALID is
    removed from every member and admin record listing it; TRANSIENT
    failures leave tokens alone.

    `notify_push` carries the fire-and-forget pushes made inline with a member
    operation (`notify_member`, `notify_admins`) and should have a short
    deadline; it defaults to `push`.
    """

    def __init__(
        self,
        members: MemberRepository,
        alerts: AlertRepository,
        admins: AdminRepository,
        push: PushClient,
        *,
        notify_push: PushClient | None = None,
        chunk_size: int = PUSH_CHUNK_SIZE,
    ):
        self._members = members
        self._alerts = alerts
        self._admins = admins
        self._push = push
        self._notify_push = notify_push or push
        self._chunk_size = max(1, int(chunk_size))

    # ---- delivery --------------------------------------------------------

    def dispatch_targeted(
        self, member_id: str, payload: PushPayload, *, push: PushClient | None = None
    ) -> DispatchReport:
        member = self._members.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")
        return self._deliver(unique_tokens([member.device_tokens]), payload, push=push)

    def dispatch_broadcast(self, payload: PushPayload) -> DispatchReport:
        tokens = unique_tokens(
            [m.device_tokens for m in self._members.list_active()]
            + [a.device_tokens for a in self._admins.list_all()]
        )
        return self._deliver(tokens, payload)

    def _deliver(
        self, tokens: Sequence[str], payload: PushPayload, *, push: PushClient | None = None
    ) -> DispatchReport:
        push = push or self._push
        delivered = transient = 0
        invalid: List[str] = []
        for chunk in chunked(list(tokens), self._chunk_size):
            try:
                results = push.send(chunk, payload)
            except ExternalDependencyError:
                logger.exception("Push provider unavailable; %d token(s) not delivered", len(chunk))
                transient += len(chunk)
                continue
            for result in results:
                if result.outcome == DeliveryOutcome.DELIVERED:
                    delivered += 1
                elif result.outcome == DeliveryOutcome.INVALID_TOKEN:
                    invalid.append(result.token)
                else:
                    transient += 1
                    logger.debug("Transient push failure for %s...: %s", result.token[:12], result.detail)

        pruned = self.prune_tokens(invalid) if invalid else []
        return DispatchReport(attempted=len(tokens), delivered=delivered, transient=transient, pruned_tokens=pruned)

    def prune_tokens(self, tokens: Sequence[str]) -> List[str]:
        """Remove tokens from every owner in one batched write.

        Owners are found by array-contains scans over members and admins.
        """

        tokens = unique_tokens([tokens])
        for attempt in range(2):
            ops: List[WriteOp] = []
            for token in tokens:
                for m in self._members.find_by_device_token(token):
                    ops.append(self._members.token_removal_op(m.member_id, [token]))
                for a in self._admins.find_by_device_token(token):
                    ops.append(self._admins.token_removal_op(a.admin_id, [token]))
            try:
                self._members.commit(ops)
            except (MissingDocument, WriteConflict):
                # An owner was deleted between the scan and the write.
                logger.debug("Token owner changed during pruning (attempt %d), rescanning", attempt + 1)
                continue
            if ops:
                logger.info("Pruned %d invalid device token(s) from %d record(s)", len(tokens), len(ops))
            return list(tokens)
        logger.warning("Gave up pruning %d invalid device token(s)", len(tokens))
        return []

    # ---- alerts ----------------------------------------------------------

    def send_alert(
        self,
        member_id: str,
        *,
        title: str,
        message: str,
        alert_type: AlertType | str = AlertType.INFO,
        feedback_id: str | None = None,
        now: datetime | None = None,
    ) -> Tuple[Alert, DispatchReport]:
        return self._send_alert(
            member_id,
            title=title,
            message=message,
            alert_type=alert_type,
            feedback_id=feedback_id,
            now=now,
            push=self._push,
        )

    def _send_alert(
        self,
        member_id: str,
        *,
        title: str,
        message: str,
        alert_type: AlertType | str,
        feedback_id: str | None,
        now: datetime | None,
        push: PushClient,
    ) -> Tuple[Alert, DispatchReport]:
        if not self._members.get_by_id(member_id):
            raise NotFoundError(f"Member {member_id} not found")
        alert = self._alerts.add(
            Alert(
                alert_id="",
                member_id=member_id,
                title=require_non_empty(title, "Title"),
                message=require_non_empty(message, "Message"),
                alert_type=require_enum(AlertType, alert_type, "type"),
                date_sent=now or now_local(),
                feedback_id=feedback_id,
            )
        )
        return alert, self.dispatch_targeted(member_id, PushPayload.for_alert(alert), push=push)

    def send_broadcast(
        self,
        *,
        title: str,
        message: str,
        alert_type: AlertType | str = AlertType.INFO,
        now: datetime | None = None,
    ) -> Tuple[Alert, DispatchReport]:
        alert = self._alerts.add(
            Alert(
                alert_id="",
                title=require_non_empty(title, "Title"),
                message=require_non_empty(message, "Message"),
                alert_type=require_enum(AlertType, alert_type, "type"),
                date_sent=now or now_local(),
            )
        )
        report = self.dispatch_broadcast(PushPayload.for_alert(alert))
        logger.info("Broadcast %s sent to %d token(s)", alert.alert_id, report.attempted)
        return alert, report

    def notify_member(
        self, member_id: str, *, title: str, message: str, alert_type: AlertType = AlertType.INFO
    ) -> None:
        """Fire-and-forget: failures are logged, never raised to the caller."""
        try:
            self._send_alert(
                member_id,
                title=title,
                message=message,
                alert_type=alert_type,
                feedback_id=None,
                now=None,
                push=self._notify_push,
            )
        except Exception:
            logger.exception("Could not notify member %s (%s)", member_id, title)

    def notify_admins(self, payload: PushPayload) -> DispatchReport:
        """Push-only fan-out to every admin device. Failures are logged, never raised."""
        try:
            tokens = unique_tokens(a.device_tokens for a in self._admins.list_all())
            if not tokens:
                logger.info("No admin device tokens; %r not pushed", payload.title)
                return DispatchReport()
            return self._deliver(tokens, payload, push=self._notify_push)
        except Exception:
            logger.exception("Could not notify admins (%s)", payload.title)
            return DispatchReport()

    # ---- read tracking ---------------------------------------------------

    def alerts_for_member(self, member_id: str) -> List[Alert]:
        member = self._members.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")

        acknowledged = set(member.acknowledged_broadcast_ids)
        broadcasts = [
            replace(a, is_read=a.alert_id in acknowledged)
            for a in self._alerts.list_broadcasts()
            if a.alert_type != AlertType.FEEDBACK_RESPONSE and a.date_sent.date() >= member.registration_date
        ]
        alerts = list(self._alerts.list_for_member(member_id)) + broadcasts
        alerts.sort(key=lambda a: a.date_sent, reverse=True)
        return alerts

    def unread_count(self, member_id: str) -> int:
        return sum(1 for a in self.alerts_for_member(member_id) if not a.is_read)

    def mark_read(self, alert_id: str, member_id: str) -> None:
        alert = self._alerts.get_by_id(alert_id)
        if not alert or (not alert.is_broadcast and alert.member_id != member_id):
            raise NotFoundError(f"Alert {alert_id} not found")
        if alert.is_broadcast:
            self._members.acknowledge_broadcasts(member_id, [alert_id])
        else:
            self._alerts.mark_read([alert_id])

    def mark_all_read(self, member_id: str) -> int:
        unread = [a for a in self.alerts_for_member(member_id) if not a.is_read]
        targeted = [a.alert_id for a in unread if not a.is_broadcast]
        broadcasts = [a.alert_id for a in unread if a.is_broadcast]
        if targeted:
            self._alerts.mark_read(targeted)
        if broadcasts:
            self._members.acknowledge_broadcasts(member_id, broadcasts)
        return len(unread)

    # ---- device tokens ---------------------------------------------------

    def _release_token(self, token: str, *, keep_member: str | None = None, keep_admin: str | None = None) -> None:
        # A token belongs to at most one owner.
        ops: List[WriteOp] = [
            self._members.token_removal_op(m.member_id, [token])
            for m in self._members.find_by_device_token(token)
            if m.member_id != keep_member
        ]
        ops.extend(
            self._admins.token_removal_op(a.admin_id, [token])
            for a in self._admins.find_by_device_token(token)
            if a.admin_id != keep_admin
        )
        if ops:
            self._members.commit(ops)

    def register_member_token(self, member_id: str, token: str) -> None:
        token = require_non_empty(token, "Token")
        if not self._members.get_by_id(member_id):
            raise NotFoundError(f"Member {member_id} not found")
        self._release_token(token, keep_member=member_id)
        self._members.add_device_token(member_id, token)

    def remove_member_token(self, member_id: str, token: str) -> None:
        self._members.remove_device_token(member_id, require_non_empty(token, "Token"))

    def register_admin_token(self, admin_id: str, token: str) -> None:
        token = require_non_empty(token, "Token")
        if not self._admins.get_by_id(admin_id):
            raise NotFoundError(f"Admin {admin_id} not found")
        self._release_token(token, keep_admin=admin_id)
        self._admins.add_device_token(admin_id, token)

    def remove_admin_token(self, admin_id: str, token: str) -> None:
        self._admins.remove_device_token(admin_id, require_non_empty(token, "Token"))
