"""Timetable change notifications: diff, formatting, stores, push dispatch, handler."""

from __future__ import annotations

from .core import (
    BatchResponse,
    DispatchOutcome,
    DryRunDispatcher,
    FirebaseDispatcher,
    NoOpReason,
    OutcomeStatus,
    SendResult,
    TimetableUpdateHandler,
    init_firebase_app,
)
from .diff import classify_change, compare_snapshots
from .formatting import notification_body, notification_data, notification_title
from .models import (
    Change,
    ChangeType,
    RecipientContext,
    SlotEntry,
    TriggerEvent,
    resolve_context,
    snapshot_from_payload,
)
from .store import FileTimetableStore, SATimetableStore, get_store

__all__ = [
    "BatchResponse",
    "Change",
    "ChangeType",
    "DispatchOutcome",
    "DryRunDispatcher",
    "FileTimetableStore",
    "FirebaseDispatcher",
    "NoOpReason",
    "OutcomeStatus",
    "RecipientContext",
    "SATimetableStore",
    "SendResult",
    "SlotEntry",
    "TimetableUpdateHandler",
    "TriggerEvent",
    "classify_change",
    "compare_snapshots",
    "get_store",
    "init_firebase_app",
    "notification_body",
    "notification_data",
    "notification_title",
    "resolve_context",
    "snapshot_from_payload",
]
