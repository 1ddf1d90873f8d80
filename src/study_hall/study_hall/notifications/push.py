"""Push delivery contract plus the development client."""
from __future__ import annotations

import logging
from typing import List, Protocol, Sequence

from ..core.enums import DeliveryOutcome
from .model import DeliveryResult, PushPayload

logger = logging.getLogger(__name__)


class PushClient(Protocol):
    def send(self, tokens: Sequence[str], payload: PushPayload) -> List[DeliveryResult]:
        """One result per token. Must not raise for per-token failures."""

        raise NotImplementedError


class LoggingPushClient:
    """Logs each send and reports it delivered. Used when no push provider is configured."""

    def send(self, tokens: Sequence[str], payload: PushPayload) -> List[DeliveryResult]:
        for token in tokens:
            logger.info("push -> %s...: %s", token[:12], payload.title)
        return [DeliveryResult(token, DeliveryOutcome.DELIVERED) for token in tokens]
