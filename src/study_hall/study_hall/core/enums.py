from __future__ import annotations

from enum import Enum


class Shift(str, Enum):
    """Daily window a membership entitles a seat for."""

    MORNING = "morning"
    EVENING = "evening"
    FULLDAY = "fullday"


class ActivityStatus(str, Enum):
    ACTIVE = "Active"
    LEFT = "Left"


class FeeStatus(str, Enum):
    """Fee state of a member. N/A is only valid for members who have left."""

    DUE = "Due"
    PAID = "Paid"
    OVERDUE = "Overdue"
    NOT_APPLICABLE = "N/A"


class PaymentMethod(str, Enum):
    UPI = "UPI"
    CASH = "Cash"
    CARD = "Card"
    ONLINE = "Online"


class AlertType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CLOSURE = "closure"
    FEEDBACK_RESPONSE = "feedback_response"


class DeliveryOutcome(str, Enum):
    """Per-token push result. Only INVALID_TOKEN leads to pruning."""

    DELIVERED = "DELIVERED"
    INVALID_TOKEN = "INVALID_TOKEN"
    TRANSIENT = "TRANSIENT"


class FeedbackType(str, Enum):
    SUGGESTION = "Suggestion"
    COMPLAINT = "Complaint"
    ISSUE = "Issue"
    COMPLIMENT = "Compliment"


class FeedbackStatus(str, Enum):
    OPEN = "Open"
    RESOLVED = "Resolved"
    ARCHIVED = "Archived"
