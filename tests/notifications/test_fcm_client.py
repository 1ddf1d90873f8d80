from __future__ import annotations

from types import SimpleNamespace

import pytest
import requests

from study_hall.container import build_push_client
from study_hall.core.enums import DeliveryOutcome
from study_hall.notifications import fcm_client
from study_hall.notifications.fcm_client import FcmPushClient, classify_response
from study_hall.notifications.model import PushPayload
from study_hall.notifications.push import LoggingPushClient


class FakeCredentials:
    valid = True
    token = "access-token"


class FakeResponse:
    def __init__(self, status_code: int, body):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


def _fcm_error(code: str) -> dict:
    return {"error": {"details": [{"@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError", "errorCode": code}]}}


@pytest.mark.parametrize(
    "status, body, expected",
    [
        (200, {"name": "projects/p/messages/1"}, DeliveryOutcome.DELIVERED),
        (404, _fcm_error("UNREGISTERED"), DeliveryOutcome.INVALID_TOKEN),
        (400, _fcm_error("INVALID_ARGUMENT"), DeliveryOutcome.TRANSIENT),
        (403, _fcm_error("SENDER_ID_MISMATCH"), DeliveryOutcome.TRANSIENT),
        (404, {"error": {"status": "NOT_FOUND"}}, DeliveryOutcome.TRANSIENT),
        (503, _fcm_error("UNAVAILABLE"), DeliveryOutcome.TRANSIENT),
        (429, _fcm_error("QUOTA_EXCEEDED"), DeliveryOutcome.TRANSIENT),
        (500, {"text": "oops"}, DeliveryOutcome.TRANSIENT),
    ],
)
def test_classify_response(status, body, expected):
    assert classify_response(status, body) == expected


def test_send_reports_one_result_per_token(monkeypatch):
    calls = []

    def fake_post(url, headers=None, json=None, timeout=None):
        calls.append((url, headers["Authorization"], json["message"]["token"], timeout))
        token = json["message"]["token"]
        if token == "dead":
            return FakeResponse(404, _fcm_error("UNREGISTERED"))
        if token == "flaky":
            raise requests.ConnectionError("reset")
        if token == "html":
            return FakeResponse(502, None)
        return FakeResponse(200, {"name": "ok"})

    monkeypatch.setattr(fcm_client.requests, "post", fake_post)
    client = FcmPushClient("demo-project", credentials=FakeCredentials(), timeout=2, max_workers=2)

    results = client.send(["good", "dead", "flaky", "html"], PushPayload(title="Hi", body="Hello", alert_id="a1"))

    assert [(r.token, r.outcome) for r in results] == [
        ("good", DeliveryOutcome.DELIVERED),
        ("dead", DeliveryOutcome.INVALID_TOKEN),
        ("flaky", DeliveryOutcome.TRANSIENT),
        ("html", DeliveryOutcome.TRANSIENT),
    ]
    assert len(calls) == 4
    url, auth, _, timeout = calls[0]
    assert url == "https://fcm.googleapis.com/v1/projects/demo-project/messages:send"
    assert auth == "Bearer access-token"
    assert timeout == 2.0


def test_oversized_message_does_not_condemn_any_token(monkeypatch):
    def reject_payload(url, headers=None, json=None, timeout=None):
        return FakeResponse(400, _fcm_error("INVALID_ARGUMENT"))

    monkeypatch.setattr(fcm_client.requests, "post", reject_payload)
    client = FcmPushClient("demo-project", credentials=FakeCredentials(), timeout=2, max_workers=2)

    results = client.send(["a", "b", "c"], PushPayload(title="Hi", body="x" * 5000))

    assert {r.outcome for r in results} == {DeliveryOutcome.TRANSIENT}


def test_push_payload_data_is_all_strings():
    data = PushPayload(title="Hi", body="Hello", alert_id="a1").as_data()
    assert data["alertType"] == "info"
    assert all(isinstance(v, str) for v in data.values())


def test_send_without_tokens_makes_no_requests(monkeypatch):
    monkeypatch.setattr(fcm_client.requests, "post", lambda *a, **k: pytest.fail("unexpected request"))
    assert FcmPushClient("demo-project", credentials=FakeCredentials()).send([], PushPayload("t", "b")) == []


def test_build_push_client_takes_an_explicit_deadline():
    settings = SimpleNamespace(FCM_PROJECT_ID="demo-project", PUSH_TIMEOUT_SECONDS=10)

    assert build_push_client(settings).deadline == 30.0
    assert build_push_client(settings, deadline=4).deadline == 4.0
    assert isinstance(build_push_client(SimpleNamespace(FCM_PROJECT_ID="")), LoggingPushClient)
