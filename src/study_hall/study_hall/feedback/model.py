from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.enums import FeedbackStatus, FeedbackType


def snippet(text: str, length: int) -> str:
    return text if len(text) <= length else text[:length] + "..."


@dataclass(frozen=True)
class FeedbackItem:
    """A note left by a member, or anonymously when member_id is None."""

    feedback_id: str
    message: str
    feedback_type: FeedbackType
    date_submitted: datetime
    status: FeedbackStatus = FeedbackStatus.OPEN
    member_id: Optional[str] = None
    member_name: Optional[str] = None
    version: int = field(default=0, compare=False)

    @property
    def is_anonymous(self) -> bool:
        return self.member_id is None

    def to_dict(self) -> dict:
        return {
            "feedback_id": self.feedback_id,
            "member_id": self.member_id,
            "member_name": self.member_name,
            "message": self.message,
            "type": self.feedback_type.value,
            "status": self.status.value,
            "date_submitted": self.date_submitted.isoformat(),
        }
