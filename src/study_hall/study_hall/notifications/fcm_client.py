"""Firebase Cloud Messaging (HTTP v1) push client."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Dict, List, Optional, Sequence

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account

from ..core.constants import DEFAULT_PUSH_MAX_WORKERS, DEFAULT_PUSH_TIMEOUT_SECONDS
from ..core.enums import DeliveryOutcome
from ..core.exceptions import ExternalDependencyError
from .model import DeliveryResult, PushPayload

logger = logging.getLogger(__name__)

FCM_SCOPE = "https://www.googleapis.com/auth/firebase.messaging"
FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"

# Only UNREGISTERED condemns the token. INVALID_ARGUMENT and a bare 404 can be
# caused by the message itself, so they stay retryable.
_INVALID_TOKEN_CODES = {"UNREGISTERED"}


def classify_response(status_code: int, body: Any) -> DeliveryOutcome:
    if 200 <= status_code < 300:
        return DeliveryOutcome.DELIVERED
    error = body.get("error", {}) if isinstance(body, dict) else {}
    codes = {d.get("errorCode") for d in error.get("details", []) if isinstance(d, dict)}
    if codes & _INVALID_TOKEN_CODES:
        return DeliveryOutcome.INVALID_TOKEN
    return DeliveryOutcome.TRANSIENT


class FcmPushClient:
    """Sends one HTTP request per token on a bounded thread pool.

    Every request has `timeout` seconds; the whole batch has `deadline`
    seconds, and tokens not finished by then are reported TRANSIENT.
    """

    def __init__(
        self,
        project_id: str,
        *,
        credentials_file: Optional[str] = None,
        credentials=None,
        timeout: float = DEFAULT_PUSH_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_PUSH_MAX_WORKERS,
        deadline: Optional[float] = None,
    ):
        if not project_id:
            raise ValueError("project_id is required")
        self._url = FCM_SEND_URL.format(project_id=project_id)
        self._credentials_file = credentials_file
        self._credentials = credentials
        self._timeout = float(timeout)
        self._max_workers = max(1, int(max_workers))
        self._deadline = float(deadline) if deadline is not None else self._timeout * 3
        self._auth_lock = threading.Lock()

    @property
    def deadline(self) -> float:
        return self._deadline

    def _access_token(self) -> str:
        with self._auth_lock:
            try:
                if self._credentials is None:
                    self._credentials = service_account.Credentials.from_service_account_file(
                        self._credentials_file, scopes=[FCM_SCOPE]
                    )
                if not self._credentials.valid:
                    self._credentials.refresh(GoogleAuthRequest())
            except (GoogleAuthError, OSError, ValueError) as exc:
                raise ExternalDependencyError(f"Push provider authentication failed: {exc}") from exc
            return self._credentials.token

    @staticmethod
    def _message(token: str, payload: PushPayload) -> Dict[str, Any]:
        return {
            "message": {
                "token": token,
                "data": payload.as_data(),
                "webpush": {
                    "notification": {"title": payload.title, "body": payload.body, "icon": payload.icon},
                    "fcm_options": {"link": payload.url},
                },
            }
        }

    def _send_one(self, token: str, payload: PushPayload, access_token: str) -> DeliveryResult:
        headers = {"Authorization": f"Bearer {access_token}", "Content-Type": "application/json"}
        try:
            r = requests.post(self._url, headers=headers, json=self._message(token, payload), timeout=self._timeout)
        except requests.RequestException as exc:
            return DeliveryResult(token, DeliveryOutcome.TRANSIENT, f"request error: {exc}")
        try:
            body = r.json()
        except ValueError:
            body = {"text": r.text}
        outcome = classify_response(r.status_code, body)
        detail = "" if outcome == DeliveryOutcome.DELIVERED else f"{r.status_code}: {body}"
        return DeliveryResult(token, outcome, detail)

    def send(self, tokens: Sequence[str], payload: PushPayload) -> List[DeliveryResult]:
        if not tokens:
            return []
        access_token = self._access_token()

        pool = ThreadPoolExecutor(max_workers=min(self._max_workers, len(tokens)))
        try:
            futures = {token: pool.submit(self._send_one, token, payload, access_token) for token in tokens}
            wait(futures.values(), timeout=self._deadline)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        results: List[DeliveryResult] = []
        for token, future in futures.items():
            if future.done() and not future.cancelled() and future.exception() is None:
                results.append(future.result())
            else:
                results.append(DeliveryResult(token, DeliveryOutcome.TRANSIENT, "not delivered before deadline"))
        return results
