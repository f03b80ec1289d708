"""Push core primitives: Firebase app setup, dispatchers, and the update handler."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import firebase_admin
from firebase_admin import credentials, messaging
from loguru import logger

from utils import chunked, is_valid_token
from utils.config import MAX_BATCH_SIZE

from .diff import compare_snapshots
from .formatting import notification_body, notification_data, notification_title
from .models import (
    ContextError,
    ContextErrorReason,
    TriggerEvent,
    resolve_context,
    snapshot_from_payload,
)
from .store import BaseTimetableStore

# -------------------- Firebase --------------------

FIREBASE_APP_NAME = "timetable-notifier"


def init_firebase_app(
    credentials_path: str | None = None,
    *,
    project_id: str | None = None,
    timeout: int = 25,
    name: str = FIREBASE_APP_NAME,
) -> firebase_admin.App:
    """Return the named Firebase app, initializing it on first use.

    A service-account JSON file is used when given; otherwise Application
    Default Credentials (the runtime's service account).
    """

    try:
        return firebase_admin.get_app(name)
    except ValueError:
        logger.debug("Initializing Firebase app '{}'", name)
    cred = (
        credentials.Certificate(credentials_path)
        if credentials_path
        else credentials.ApplicationDefault()
    )
    options: dict[str, Any] = {"httpTimeout": timeout}
    if project_id:
        options["projectId"] = project_id
    return firebase_admin.initialize_app(cred, options, name=name)


# -------------------- Dispatchers --------------------


@dataclass(frozen=True)
class SendResult:
    token: str
    success: bool
    error_code: str | None = None
    error_message: str | None = None


@dataclass
class BatchResponse:
    results: list[SendResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count

    @property
    def failures(self) -> list[SendResult]:
        return [r for r in self.results if not r.success]


class BasePushDispatcher:
    def send_multicast(
        self, title: str, body: str, data: Mapping[str, str], tokens: Sequence[str]
    ) -> BatchResponse:  # pragma: no cover - interface
        raise NotImplementedError


class FirebaseDispatcher(BasePushDispatcher):
    """Sends one FCM multicast per call and maps the response to per-token results."""

    def __init__(self, app: firebase_admin.App | None = None) -> None:
        self.app = app

    def send_multicast(
        self, title: str, body: str, data: Mapping[str, str], tokens: Sequence[str]
    ) -> BatchResponse:
        if len(tokens) > MAX_BATCH_SIZE:
            raise ValueError(f"at most {MAX_BATCH_SIZE} tokens per call, got {len(tokens)}")
        message = messaging.MulticastMessage(
            tokens=list(tokens),
            notification=messaging.Notification(title=title, body=body),
            data=dict(data),
        )
        resp = messaging.send_each_for_multicast(message, app=self.app)
        responses = list(resp.responses)
        results: list[SendResult] = []
        for i, token in enumerate(tokens):
            r = responses[i] if i < len(responses) else None
            if r is not None and r.success:
                results.append(SendResult(token, True))
                continue
            exc = r.exception if r is not None else None
            if exc is None:
                results.append(SendResult(token, False, error_code="MissingResult"))
                continue
            # FirebaseError carries a canonical code such as NOT_FOUND
            code = getattr(exc, "code", None) or type(exc).__name__
            results.append(SendResult(token, False, error_code=str(code), error_message=str(exc)))
        return BatchResponse(results)


class DryRunDispatcher(BasePushDispatcher):
    """Logs what would be sent and reports every token as delivered."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def send_multicast(
        self, title: str, body: str, data: Mapping[str, str], tokens: Sequence[str]
    ) -> BatchResponse:
        self.sent.append({"title": title, "body": body, "data": dict(data), "tokens": list(tokens)})
        logger.info("Dry-run push to {} devices: {} | {}", len(tokens), title, body)
        return BatchResponse([SendResult(t, True) for t in tokens])


# -------------------- Outcome --------------------


class OutcomeStatus(str, Enum):
    DISPATCHED = "DISPATCHED"
    NO_OP = "NO_OP"
    FAILED = "FAILED"


class NoOpReason(str, Enum):
    NO_NEW_DATA = "NO_NEW_DATA"
    SNAPSHOT_CREATED = "SNAPSHOT_CREATED"
    MISSING_CONTEXT = "MISSING_CONTEXT"
    UNPARSABLE_SEMESTER = "UNPARSABLE_SEMESTER"
    NO_CHANGES = "NO_CHANGES"
    NO_RECIPIENTS = "NO_RECIPIENTS"
    NO_VALID_TOKENS = "NO_VALID_TOKENS"


@dataclass
class DispatchOutcome:
    status: OutcomeStatus
    reason: NoOpReason | None = None
    error: str | None = None
    changes: int = 0
    recipients: int = 0
    tokens: int = 0
    send_calls: int = 0
    send_errors: int = 0
    tokens_delivered: int = 0
    tokens_failed: int = 0

    @classmethod
    def no_op(cls, reason: NoOpReason, **counts: int) -> DispatchOutcome:
        return cls(status=OutcomeStatus.NO_OP, reason=reason, **counts)


# -------------------- Handler --------------------


class TimetableUpdateHandler:
    """Turns one day-document write into push notifications for its students.

    Never raises: every failure ends as a logged DispatchOutcome, so the host
    sees a normal completion and does not retry.
    """

    def __init__(
        self,
        record_store: BaseTimetableStore,
        recipient_query: BaseTimetableStore,
        dispatcher: BasePushDispatcher,
        *,
        batch_size: int = MAX_BATCH_SIZE,
        token_field: str = "tokenId",
        section_prefix: str = "",
    ) -> None:
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be within 1..{MAX_BATCH_SIZE}")
        self.record_store = record_store
        self.recipient_query = recipient_query
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self.token_field = token_field
        self.section_prefix = section_prefix

    def handle(self, event: TriggerEvent | Mapping[str, Any]) -> DispatchOutcome:
        try:
            if not isinstance(event, TriggerEvent):
                event = TriggerEvent.from_mapping(event)
            return self._handle(event)
        except Exception as e:
            logger.exception("Error in timetable update handler: {}", e)
            return DispatchOutcome(status=OutcomeStatus.FAILED, error=str(e) or type(e).__name__)

    def _handle(self, event: TriggerEvent) -> DispatchOutcome:
        if event.after is None:
            logger.info("No new data in the document; nothing to notify")
            return DispatchOutcome.no_op(NoOpReason.NO_NEW_DATA)
        if event.before is None:
            logger.info("Day document {} created; skipping notifications", event.day_document)
            return DispatchOutcome.no_op(NoOpReason.SNAPSHOT_CREATED)

        record = self.record_store.get_parent_record(event.parent_id)
        ctx = resolve_context(record, section_prefix=self.section_prefix)
        if isinstance(ctx, ContextError):
            logger.info(
                "Cannot resolve recipients for timetable {}: {} ({})",
                event.parent_id,
                ctx.reason.value,
                ctx.detail,
            )
            if ctx.reason == ContextErrorReason.UNPARSABLE_SEMESTER:
                return DispatchOutcome.no_op(NoOpReason.UNPARSABLE_SEMESTER)
            return DispatchOutcome.no_op(NoOpReason.MISSING_CONTEXT)

        changes = compare_snapshots(
            snapshot_from_payload(event.before), snapshot_from_payload(event.after)
        )
        if not changes:
            logger.info("No significant changes detected on {}", event.day_collection)
            return DispatchOutcome.no_op(NoOpReason.NO_CHANGES)
        logger.debug(
            "Detected {} change(s): {}",
            len(changes),
            ", ".join(f"{c.time_slot}={c.type.value}" for c in changes),
        )

        recipients = self.recipient_query.find_recipients(
            ctx.department, ctx.section, ctx.semester_number
        )
        if not recipients:
            logger.info(
                "No students found for {}/{}/semester {}",
                ctx.department,
                ctx.section,
                ctx.semester_number,
            )
            return DispatchOutcome.no_op(NoOpReason.NO_RECIPIENTS, changes=len(changes))

        tokens = [
            r.get(self.token_field) for r in recipients if is_valid_token(r.get(self.token_field))
        ]
        if not tokens:
            logger.info("No valid tokens among {} students", len(recipients))
            return DispatchOutcome.no_op(
                NoOpReason.NO_VALID_TOKENS, changes=len(changes), recipients=len(recipients)
            )

        outcome = DispatchOutcome(
            status=OutcomeStatus.DISPATCHED,
            changes=len(changes),
            recipients=len(recipients),
            tokens=len(tokens),
        )
        batches = chunked(tokens, self.batch_size)
        for change in changes:
            title = notification_title(change.type)
            body = notification_body(change, event.day_collection)
            data = notification_data(change, ctx, event.day_collection)
            for batch in batches:
                outcome.send_calls += 1
                try:
                    resp = self.dispatcher.send_multicast(title, body, data, batch)
                except Exception as e:
                    outcome.send_errors += 1
                    outcome.tokens_failed += len(batch)
                    logger.exception(
                        "Error sending {} notification for {} to {} devices: {}",
                        change.type.value,
                        change.time_slot,
                        len(batch),
                        e,
                    )
                    continue
                outcome.tokens_delivered += resp.success_count
                outcome.tokens_failed += resp.failure_count
                for failure in resp.failures:
                    logger.error(
                        "Push to token …{} failed: {} {}",
                        failure.token[-8:],
                        failure.error_code,
                        failure.error_message or "",
                    )
                logger.info(
                    "Notifications sent: {}/{} ({} at {})",
                    resp.success_count,
                    len(batch),
                    change.type.value,
                    change.time_slot,
                )
        return outcome
