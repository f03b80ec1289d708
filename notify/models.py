"""Typed records for schedule snapshots, changes, recipients and trigger events."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from loguru import logger

from utils import normalize_section, parse_semester_number


class ChangeType(str, Enum):
    CANCELLED = "CANCELLED"
    RESCHEDULED = "RESCHEDULED"
    EXTRA_CLASS = "EXTRA_CLASS"
    MODIFIED = "MODIFIED"


_SLOT_FIELDS = ("course", "teacher", "isExtraClass", "isRescheduled", "originalCourse", "reason")


def values_equal(a: Any, b: Any) -> bool:
    """Deep equality that keeps JSON types apart: 101 != "101", True != 1.

    Mapping key order is ignored; ints and floats compare by value.
    """

    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(values_equal(a[k], b[k]) for k in a)
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(values_equal(x, y) for x, y in zip(a, b))
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return a == b
    return type(a) is type(b) and a == b


@dataclass(eq=False)
class SlotEntry:
    """One scheduled class in one slot of one day.

    Field values are kept exactly as stored; only a literal `True` counts as a
    set flag. Equality covers every field, `extras` included.
    """

    course: Any
    teacher: Any
    is_extra_class: Any = None
    is_rescheduled: Any = None
    original_course: Any = None
    reason: Any = None
    extras: dict[str, Any] = field(default_factory=dict)

    def _fields(self) -> tuple:
        return (
            self.course,
            self.teacher,
            self.is_extra_class,
            self.is_rescheduled,
            self.original_course,
            self.reason,
            self.extras,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SlotEntry):
            return NotImplemented
        return values_equal(self._fields(), other._fields())

    __hash__ = None  # type: ignore[assignment]

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> SlotEntry:
        return cls(
            course=raw.get("course"),
            teacher=raw.get("teacher"),
            is_extra_class=raw.get("isExtraClass"),
            is_rescheduled=raw.get("isRescheduled"),
            original_course=raw.get("originalCourse"),
            reason=raw.get("reason"),
            extras={k: v for k, v in raw.items() if k not in _SLOT_FIELDS},
        )


# time-slot key -> entry
ScheduleSnapshot = dict[str, SlotEntry]


def snapshot_from_payload(payload: Mapping[str, Any] | None) -> ScheduleSnapshot:
    """Build a snapshot from a raw day document; non-mapping fields are skipped."""
    snapshot: ScheduleSnapshot = {}
    for key, value in (payload or {}).items():
        if not isinstance(value, Mapping):
            logger.debug("Skipping non-slot field {!r} in day document", key)
            continue
        snapshot[str(key)] = SlotEntry.from_mapping(value)
    return snapshot


@dataclass(frozen=True)
class Change:
    type: ChangeType
    time_slot: str
    # Raw slot values; the formatter renders them as text
    course: Any
    teacher: Any
    original_course: Any = None
    reason: Any = None


@dataclass(frozen=True)
class RecipientContext:
    department: str
    section: str
    semester_number: int
    # Semester as written on the parent record, e.g. "Semester 7"
    semester_label: str = ""


class ContextErrorReason(str, Enum):
    MISSING_RECORD = "MISSING_RECORD"
    MISSING_FIELDS = "MISSING_FIELDS"
    UNPARSABLE_SEMESTER = "UNPARSABLE_SEMESTER"


@dataclass(frozen=True)
class ContextError:
    reason: ContextErrorReason
    detail: str = ""


def resolve_context(
    record: Mapping[str, Any] | None, *, section_prefix: str = ""
) -> RecipientContext | ContextError:
    """Turn a loosely typed parent record into a RecipientContext.

    The department is used verbatim (trimmed); section and semester are
    normalized to the forms stored on student records.
    """

    if record is None:
        return ContextError(ContextErrorReason.MISSING_RECORD, "parent record not found")

    department = str(record.get("department") or "").strip()
    raw_section = record.get("section")
    raw_semester = record.get("semester")
    missing = [
        name
        for name, value in (
            ("department", department),
            ("section", raw_section),
            ("semester", raw_semester),
        )
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        return ContextError(ContextErrorReason.MISSING_FIELDS, ", ".join(missing))

    section = normalize_section(raw_section, section_prefix)
    if section is None:
        return ContextError(ContextErrorReason.MISSING_FIELDS, f"section={raw_section!r}")

    semester = parse_semester_number(raw_semester)
    if semester is None:
        return ContextError(ContextErrorReason.UNPARSABLE_SEMESTER, f"semester={raw_semester!r}")

    return RecipientContext(
        department=department,
        section=section,
        semester_number=semester,
        semester_label=str(raw_semester).strip(),
    )


@dataclass(frozen=True)
class TriggerEvent:
    """A before/after pair of day documents plus the identifiers from its path."""

    before: Mapping[str, Any] | None
    after: Mapping[str, Any] | None
    parent_id: str
    day_collection: str
    day_document: str = ""

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> TriggerEvent:
        """Parse `{"before", "after", "params": {...}}` or a `document` path.

        The path form is `<root>/<parentId>/<dayCollection>/<dayDocument>`;
        explicit params win over path segments.
        """

        params = dict(raw.get("params") or {})
        document = str(raw.get("document") or "").strip("/")
        if document:
            parts = document.split("/")
            if len(parts) >= 3:
                parent_id, day_collection, day_document = parts[-3:]
                params.setdefault("parentId", parent_id)
                params.setdefault("dayCollection", day_collection)
                params.setdefault("dayDocument", day_document)
            else:
                logger.warning("Document path too short to derive identifiers: {}", document)

        before = raw.get("before")
        after = raw.get("after")
        return cls(
            before=before if isinstance(before, Mapping) else None,
            after=after if isinstance(after, Mapping) else None,
            parent_id=str(params.get("parentId") or ""),
            day_collection=str(params.get("dayCollection") or ""),
            day_document=str(params.get("dayDocument") or ""),
        )
