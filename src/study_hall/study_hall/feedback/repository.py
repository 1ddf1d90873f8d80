from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..core.enums import FeedbackStatus
from ..database.store import WriteOp
from .model import FeedbackItem


class FeedbackRepository(Protocol):
    def add(self, item: FeedbackItem) -> FeedbackItem:
        """Persist a new item; returns it with its generated id."""

        raise NotImplementedError

    def get_by_id(self, feedback_id: str) -> Optional[FeedbackItem]:
        raise NotImplementedError

    def list_all(self, *, status: Optional[FeedbackStatus] = None) -> Sequence[FeedbackItem]:
        """Newest first."""

        raise NotImplementedError

    def save_status(self, item: FeedbackItem, status: FeedbackStatus) -> FeedbackItem:
        """Conditional on the version `item` was read at."""

        raise NotImplementedError

    def delete_ops_for_member(self, member_id: str) -> Sequence[WriteOp]:
        raise NotImplementedError
