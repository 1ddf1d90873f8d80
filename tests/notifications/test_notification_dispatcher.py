from __future__ import annotations

from datetime import datetime

import pytest

from study_hall.core.enums import AlertType, DeliveryOutcome, Shift
from study_hall.core.exceptions import ExternalDependencyError, NotFoundError
from study_hall.database.memory_store import InMemoryDocumentStore
from study_hall.facility.config import FacilityConfig, FeeTable, numbered_seats
from study_hall.members.document_repository import DocumentMemberRepository
from study_hall.members.service import MembershipService
from study_hall.notifications.dispatcher import NotificationDispatcher, chunked, unique_tokens
from study_hall.notifications.document_repository import DocumentAdminRepository, DocumentAlertRepository
from study_hall.notifications.model import AdminRecord, Alert, DeliveryResult, PushPayload

JAN_1 = datetime(2026, 1, 1, 9, 0)


class FakePush:
    def __init__(self, outcomes=None, error: Exception | None = None):
        self.outcomes = dict(outcomes or {})
        self.error = error
        self.batches: list[list[str]] = []

    def send(self, tokens, payload):
        self.batches.append(list(tokens))
        if self.error:
            raise self.error
        return [DeliveryResult(t, self.outcomes.get(t, DeliveryOutcome.DELIVERED)) for t in tokens]


def _build(push: FakePush, *, chunk_size: int = 500, notify_push: FakePush | None = None):
    store = InMemoryDocumentStore()
    members = DocumentMemberRepository(store)
    alerts = DocumentAlertRepository(store)
    admins = DocumentAdminRepository(store)
    facility = FacilityConfig(seats=numbered_seats(10), fees=FeeTable(morning=600, evening=600, fullday=1000))
    membership = MembershipService(members, facility)
    dispatcher = NotificationDispatcher(members, alerts, admins, push, notify_push=notify_push, chunk_size=chunk_size)

    ids = []
    for i, tokens in enumerate([("a", "b"), ("b", "c"), ()], start=1):
        m = membership.register(name=f"M{i}", phone=f"900000000{i}", shift=Shift.MORNING, seat_number=str(i), now=JAN_1)
        for token in tokens:
            members.add_device_token(m.member_id, token)
        ids.append(m.member_id)
    admins.add(AdminRecord(admin_id="owner", name="Owner", device_tokens=("b", "d")))
    return dispatcher, membership, members, alerts, admins, ids


def test_unique_tokens_and_chunks():
    assert unique_tokens([["a", "b"], ["b", "c"], [], None, ["", "a"]]) == ["a", "b", "c"]
    assert [list(c) for c in chunked(["a", "b", "c"], 2)] == [["a", "b"], ["c"]]


def test_broadcast_sends_each_token_once():
    push = FakePush()
    dispatcher, *_ = _build(push)

    alert, report = dispatcher.send_broadcast(title="Closed", message="Closed on Sunday", now=JAN_1)

    assert alert.is_broadcast
    assert push.batches == [["a", "b", "c", "d"]]
    assert (report.attempted, report.delivered, report.transient, report.pruned_tokens) == (4, 4, 0, [])


def test_broadcast_skips_members_who_left():
    push = FakePush()
    dispatcher, membership, members, _, _, ids = _build(push)
    members.add_device_token(ids[2], "e")
    membership.mark_as_left(ids[2], now=JAN_1)

    dispatcher.send_broadcast(title="Hi", message="Hello", now=JAN_1)

    assert "e" not in push.batches[0]


def test_broadcast_is_split_into_chunks():
    push = FakePush()
    dispatcher, *_ = _build(push, chunk_size=3)

    report = dispatcher.send_broadcast(title="Hi", message="Hello", now=JAN_1)[1]

    assert push.batches == [["a", "b", "c"], ["d"]]
    assert report.delivered == 4


def test_invalid_token_is_pruned_everywhere_and_transient_kept():
    push = FakePush({"b": DeliveryOutcome.INVALID_TOKEN, "a": DeliveryOutcome.TRANSIENT})
    dispatcher, _, members, _, admins, ids = _build(push)

    report = dispatcher.send_broadcast(title="Hi", message="Hello", now=JAN_1)[1]

    assert report.pruned_tokens == ["b"]
    assert (report.delivered, report.transient) == (2, 1)
    assert members.get_by_id(ids[0]).device_tokens == ("a",)
    assert members.get_by_id(ids[1]).device_tokens == ("c",)
    assert admins.get_by_id("owner").device_tokens == ("d",)


def test_provider_outage_counts_as_transient():
    push = FakePush(error=ExternalDependencyError("push provider down"))
    dispatcher, _, members, _, _, ids = _build(push)

    report = dispatcher.send_broadcast(title="Hi", message="Hello", now=JAN_1)[1]

    assert (report.delivered, report.transient, report.pruned_tokens) == (0, 4, [])
    assert members.get_by_id(ids[0]).device_tokens == ("a", "b")


def test_targeted_alert_is_stored_and_pushed_to_member_tokens():
    push = FakePush()
    dispatcher, _, _, alerts, _, ids = _build(push)

    alert, report = dispatcher.send_alert(ids[1], title="Fee", message="Pay soon", alert_type="warning", now=JAN_1)

    assert alerts.get_by_id(alert.alert_id).member_id == ids[1]
    assert alert.alert_type == AlertType.WARNING
    assert push.batches == [["b", "c"]]
    assert report.attempted == 2
    with pytest.raises(NotFoundError):
        dispatcher.send_alert("TSMEM9999", title="x", message="y", now=JAN_1)


def test_notify_member_never_raises():
    dispatcher, _, _, alerts, _, ids = _build(FakePush(error=RuntimeError("boom")))

    dispatcher.notify_member(ids[0], title="Welcome", message="Hello")
    dispatcher.notify_member("TSMEM9999", title="Welcome", message="Hello")

    assert [a.title for a in alerts.list_for_member(ids[0])] == ["Welcome"]


def test_member_alert_feed_and_read_tracking():
    dispatcher, _, _, alerts, _, ids = _build(FakePush())
    old = alerts.add(Alert("", "Old news", "before joining", AlertType.INFO, datetime(2025, 12, 1)))
    feedback = alerts.add(Alert("", "Thanks", "reply", AlertType.FEEDBACK_RESPONSE, datetime(2026, 1, 3)))
    broadcast, _ = dispatcher.send_broadcast(title="Holiday", message="Closed", now=datetime(2026, 1, 5))
    targeted, _ = dispatcher.send_alert(ids[0], title="Seat", message="Moved", now=datetime(2026, 1, 6))

    feed = dispatcher.alerts_for_member(ids[0])
    assert [a.alert_id for a in feed] == [targeted.alert_id, broadcast.alert_id]
    assert old.alert_id not in {a.alert_id for a in feed}
    assert feedback.alert_id not in {a.alert_id for a in feed}
    assert dispatcher.unread_count(ids[0]) == 2

    dispatcher.mark_read(broadcast.alert_id, ids[0])
    assert dispatcher.unread_count(ids[0]) == 1
    assert dispatcher.unread_count(ids[1]) == 1

    assert dispatcher.mark_all_read(ids[0]) == 1
    assert dispatcher.unread_count(ids[0]) == 0

    with pytest.raises(NotFoundError):
        dispatcher.mark_read(targeted.alert_id, ids[1])


def test_device_token_has_a_single_owner():
    dispatcher, _, members, _, admins, ids = _build(FakePush())

    dispatcher.register_member_token(ids[2], "a")
    assert members.get_by_id(ids[0]).device_tokens == ("b",)
    assert members.get_by_id(ids[2]).device_tokens == ("a",)

    dispatcher.register_admin_token("owner", "c")
    assert members.get_by_id(ids[1]).device_tokens == ("b",)
    assert admins.get_by_id("owner").device_tokens == ("b", "d", "c")

    dispatcher.remove_member_token(ids[2], "a")
    assert members.get_by_id(ids[2]).device_tokens == ()

    with pytest.raises(NotFoundError):
        dispatcher.register_member_token("TSMEM9999", "z")
    with pytest.raises(NotFoundError):
        dispatcher.register_admin_token("nobody", "z")


def test_message_level_rejection_keeps_every_token():
    push = FakePush({t: DeliveryOutcome.TRANSIENT for t in "abcd"})
    dispatcher, _, members, _, admins, ids = _build(push)

    _, report = dispatcher.send_broadcast(title="Long", message="x" * 5000, now=JAN_1)

    assert (report.delivered, report.transient, report.pruned_tokens) == (0, 4, [])
    assert members.get_by_id(ids[0]).device_tokens == ("a", "b")
    assert admins.get_by_id("owner").device_tokens == ("b", "d")


def test_inline_notifications_use_the_short_deadline_client():
    push, inline = FakePush(), FakePush()
    dispatcher, _, _, alerts, _, ids = _build(push, notify_push=inline)

    dispatcher.notify_member(ids[0], title="Welcome", message="Hello")
    assert (push.batches, inline.batches) == ([], [["a", "b"]])
    assert alerts.list_for_member(ids[0])[0].title == "Welcome"

    dispatcher.send_alert(ids[0], title="Reminder", message="Pay today", now=JAN_1)
    assert (push.batches, inline.batches) == ([["a", "b"]], [["a", "b"]])


def test_notify_admins_reaches_admin_devices_only():
    push, inline = FakePush(), FakePush({"d": DeliveryOutcome.INVALID_TOKEN})
    dispatcher, _, members, _, admins, ids = _build(push, notify_push=inline)

    report = dispatcher.notify_admins(PushPayload(title="New Feedback: Issue", body="From M1"))

    assert inline.batches == [["b", "d"]]
    assert push.batches == []
    assert (report.attempted, report.delivered, report.pruned_tokens) == (2, 1, ["d"])
    assert admins.get_by_id("owner").device_tokens == ("b",)
    assert members.get_by_id(ids[1]).device_tokens == ("b", "c")


def test_notify_admins_never_raises():
    dispatcher, *_ = _build(FakePush(), notify_push=FakePush(error=RuntimeError("boom")))

    report = dispatcher.notify_admins(PushPayload(title="t", body="b"))

    assert report.attempted == 0
