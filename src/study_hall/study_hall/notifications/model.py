from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..core.constants import PUSH_ALERTS_URL, PUSH_ICON
from ..core.enums import AlertType, DeliveryOutcome


@dataclass(frozen=True)
class Alert:
    """Targeted when member_id is set, broadcast otherwise."""

    alert_id: str
    title: str
    message: str
    alert_type: AlertType
    date_sent: datetime
    member_id: Optional[str] = None
    is_read: bool = False
    feedback_id: Optional[str] = None

    @property
    def is_broadcast(self) -> bool:
        return self.member_id is None

    def to_dict(self) -> dict:
        return {
            "alert_id": self.alert_id,
            "member_id": self.member_id,
            "title": self.title,
            "message": self.message,
            "type": self.alert_type.value,
            "date_sent": self.date_sent.isoformat(),
            "is_read": self.is_read,
            "feedback_id": self.feedback_id,
        }


@dataclass(frozen=True)
class AdminRecord:
    admin_id: str
    name: str
    email: Optional[str] = None
    device_tokens: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PushPayload:
    title: str
    body: str
    alert_id: str = ""
    alert_type: AlertType = AlertType.INFO
    icon: str = PUSH_ICON
    url: str = PUSH_ALERTS_URL

    @classmethod
    def for_alert(cls, alert: Alert) -> "PushPayload":
        return cls(title=alert.title, body=alert.message, alert_id=alert.alert_id, alert_type=alert.alert_type)

    def as_data(self) -> Dict[str, str]:
        """Flat string map; push data messages carry strings only."""
        return {
            "title": self.title,
            "body": self.body,
            "icon": self.icon,
            "url": self.url,
            "alertId": self.alert_id,
            "alertType": self.alert_type.value,
        }


@dataclass(frozen=True)
class DeliveryResult:
    token: str
    outcome: DeliveryOutcome
    detail: str = ""


@dataclass(frozen=True)
class DispatchReport:
    attempted: int = 0
    delivered: int = 0
    transient: int = 0
    pruned_tokens: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "delivered": self.delivered,
            "transient": self.transient,
            "pruned_tokens": list(self.pruned_tokens),
        }
