from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Tuple

from ..common.datetime_utils import now_local
from ..common.validators import require_enum, require_non_empty
from ..core.constants import FEEDBACK_PREVIEW_LENGTH, FEEDBACK_SNIPPET_LENGTH, PUSH_FEEDBACK_URL
from ..core.enums import AlertType, FeedbackStatus, FeedbackType
from ..core.exceptions import NotFoundError, StateError
from ..members.repository import MemberRepository
from ..notifications.dispatcher import NotificationDispatcher
from ..notifications.model import Alert, DispatchReport, PushPayload
from .model import FeedbackItem, snippet
from .repository import FeedbackRepository

logger = logging.getLogger(__name__)


class FeedbackService:
    """Member feedback inbox.

    New feedback is pushed to every admin device. Answering a member's
    feedback sends them a targeted feedback_response alert and resolves it.
    """

    def __init__(self, feedback: FeedbackRepository, members: MemberRepository, dispatcher: NotificationDispatcher):
        self._feedback = feedback
        self._members = members
        self._dispatcher = dispatcher

    def submit(
        self,
        *,
        message: str,
        feedback_type: FeedbackType | str,
        member_id: str | None = None,
        now: datetime | None = None,
    ) -> FeedbackItem:
        message = require_non_empty(message, "Message")
        feedback_type = require_enum(FeedbackType, feedback_type, "type")
        member_name = None
        if member_id:
            member = self._members.get_by_id(member_id)
            if not member:
                raise NotFoundError(f"Member {member_id} not found")
            member_name = member.name

        item = self._feedback.add(
            FeedbackItem(
                feedback_id="",
                member_id=member_id or None,
                member_name=member_name,
                message=message,
                feedback_type=feedback_type,
                date_submitted=now or now_local(),
            )
        )
        logger.info("Feedback %s (%s) submitted by %s", item.feedback_id, feedback_type.value, member_id or "anonymous")
        self._dispatcher.notify_admins(admin_payload(item))
        return item

    def get(self, feedback_id: str) -> FeedbackItem:
        item = self._feedback.get_by_id(feedback_id)
        if not item:
            raise NotFoundError(f"Feedback {feedback_id} not found")
        return item

    def list_feedback(self, *, status: FeedbackStatus | str | None = None) -> List[FeedbackItem]:
        status = require_enum(FeedbackStatus, status, "status") if status else None
        return list(self._feedback.list_all(status=status))

    def update_status(self, feedback_id: str, status: FeedbackStatus | str) -> FeedbackItem:
        status = require_enum(FeedbackStatus, status, "status")
        item = self.get(feedback_id)
        if item.status == status:
            return item
        return self._feedback.save_status(item, status)

    def respond(
        self, feedback_id: str, message: str, *, now: datetime | None = None
    ) -> Tuple[FeedbackItem, Alert, DispatchReport]:
        item = self.get(feedback_id)
        if item.is_anonymous:
            raise StateError("Anonymous feedback cannot be answered")
        response = require_non_empty(message, "Response")

        alert, report = self._dispatcher.send_alert(
            item.member_id,
            title=f'Response to your feedback: "{snippet(item.message, FEEDBACK_SNIPPET_LENGTH)}"',
            message=response,
            alert_type=AlertType.FEEDBACK_RESPONSE,
            feedback_id=item.feedback_id,
            now=now,
        )
        resolved = self.update_status(feedback_id, FeedbackStatus.RESOLVED)
        logger.info("Answered feedback %s from member %s", feedback_id, item.member_id)
        return resolved, alert, report


def admin_payload(item: FeedbackItem) -> PushPayload:
    preview = snippet(item.message, FEEDBACK_PREVIEW_LENGTH)
    if item.member_name:
        body = f'From {item.member_name}: "{preview}"'
    else:
        body = f'An anonymous member submitted feedback: "{preview}"'
    return PushPayload(
        title=f"New Feedback: {item.feedback_type.value}",
        body=body,
        alert_id=item.feedback_id,
        url=PUSH_FEEDBACK_URL,
    )
