from __future__ import annotations

import logging
from dataclasses import dataclass

from .attendance.document_repository import DocumentAttendanceRepository
from .attendance.service import AttendanceTracker
from .billing.ledger import BillingLedger
from .core.constants import (
    DEFAULT_MAX_WRITE_ATTEMPTS,
    DEFAULT_MEMBER_ID_PREFIX,
    DEFAULT_NOTIFY_PUSH_DEADLINE_SECONDS,
    DEFAULT_PUSH_MAX_WORKERS,
    DEFAULT_PUSH_TIMEOUT_SECONDS,
)
from .database.connection import DBConfig, DatabaseConnection
from .database.memory_store import InMemoryDocumentStore
from .database.mysql_document_store import MySQLDocumentStore
from .database.store import DocumentStore
from .feedback.document_repository import DocumentFeedbackRepository
from .feedback.service import FeedbackService
from .facility.config import FacilityConfig, facility_from_settings
from .members.document_repository import DocumentMemberRepository
from .members.service import MembershipService
from .notifications.dispatcher import NotificationDispatcher
from .notifications.document_repository import DocumentAdminRepository, DocumentAlertRepository
from .notifications.fcm_client import FcmPushClient
from .notifications.push import LoggingPushClient, PushClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Container:
    facility: FacilityConfig
    store: DocumentStore

    members_repo: DocumentMemberRepository
    attendance_repo: DocumentAttendanceRepository
    alerts_repo: DocumentAlertRepository
    admins_repo: DocumentAdminRepository
    feedback_repo: DocumentFeedbackRepository
    push_client: PushClient

    notification_dispatcher: NotificationDispatcher
    membership_service: MembershipService
    billing_ledger: BillingLedger
    attendance_tracker: AttendanceTracker
    feedback_service: FeedbackService


def db_config_from_settings(db_config: dict) -> DBConfig:
    return DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
        connect_timeout=int(db_config.get("connect_timeout", 10)),
    )


def build_store(settings) -> DocumentStore:
    backend = str(getattr(settings, "STORE_BACKEND", "mysql")).lower()
    if backend == "memory":
        return InMemoryDocumentStore()
    if backend != "mysql":
        raise ValueError(f"Unknown STORE_BACKEND: {backend}")
    return MySQLDocumentStore(DatabaseConnection.get_instance(db_config_from_settings(getattr(settings, "DB_CONFIG"))))


def build_push_client(settings, *, deadline: float | None = None) -> PushClient:
    project_id = getattr(settings, "FCM_PROJECT_ID", None)
    if not project_id:
        logger.info("FCM_PROJECT_ID not set; push notifications are only logged")
        return LoggingPushClient()
    return FcmPushClient(
        project_id,
        credentials_file=getattr(settings, "FCM_CREDENTIALS_FILE", None),
        timeout=float(getattr(settings, "PUSH_TIMEOUT_SECONDS", DEFAULT_PUSH_TIMEOUT_SECONDS)),
        max_workers=int(getattr(settings, "PUSH_MAX_WORKERS", DEFAULT_PUSH_MAX_WORKERS)),
        deadline=deadline,
    )


def build_container(
    settings, *, store: DocumentStore | None = None, push_client: PushClient | None = None
) -> Container:
    facility = facility_from_settings(settings)
    store = store or build_store(settings)
    if push_client is None:
        push_client = build_push_client(settings)
        notify_push = build_push_client(
            settings,
            deadline=float(getattr(settings, "NOTIFY_PUSH_DEADLINE_SECONDS", DEFAULT_NOTIFY_PUSH_DEADLINE_SECONDS)),
        )
    else:
        notify_push = push_client
    max_attempts = int(getattr(settings, "MAX_WRITE_ATTEMPTS", DEFAULT_MAX_WRITE_ATTEMPTS))

    members_repo = DocumentMemberRepository(
        store,
        id_prefix=str(getattr(settings, "MEMBER_ID_PREFIX", DEFAULT_MEMBER_ID_PREFIX)),
        max_attempts=max_attempts,
    )
    attendance_repo = DocumentAttendanceRepository(store)
    alerts_repo = DocumentAlertRepository(store)
    admins_repo = DocumentAdminRepository(store)
    feedback_repo = DocumentFeedbackRepository(store)

    notification_dispatcher = NotificationDispatcher(
        members_repo, alerts_repo, admins_repo, push_client, notify_push=notify_push
    )
    membership_service = MembershipService(
        members_repo,
        facility,
        notifier=notification_dispatcher,
        cleanups=(attendance_repo, alerts_repo, feedback_repo),
        max_attempts=max_attempts,
    )
    billing_ledger = BillingLedger(membership_service, members_repo, notifier=notification_dispatcher)
    attendance_tracker = AttendanceTracker(
        attendance_repo,
        membership_service,
        members_repo,
        notifier=notification_dispatcher,
        max_attempts=max_attempts,
    )
    feedback_service = FeedbackService(feedback_repo, members_repo, notification_dispatcher)

    return Container(
        facility=facility,
        store=store,
        members_repo=members_repo,
        attendance_repo=attendance_repo,
        alerts_repo=alerts_repo,
        admins_repo=admins_repo,
        feedback_repo=feedback_repo,
        push_client=push_client,
        notification_dispatcher=notification_dispatcher,
        membership_service=membership_service,
        billing_ledger=billing_ledger,
        attendance_tracker=attendance_tracker,
        feedback_service=feedback_service,
    )
