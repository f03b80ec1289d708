"""Push notification texts and data payloads for schedule changes."""

from __future__ import annotations

from typing import Any

from utils import capitalize_first

from .models import Change, ChangeType, RecipientContext

# Lets the mobile client route a tap to the timetable screen
CLICK_ACTION = "FLUTTER_NOTIFICATION_CLICK"

_TITLES = {
    ChangeType.CANCELLED: "Class Cancelled",
    ChangeType.RESCHEDULED: "Class Rescheduled",
    ChangeType.EXTRA_CLASS: "Extra Class Added",
}
DEFAULT_TITLE = "Timetable Update"


def notification_title(change_type: ChangeType | str) -> str:
    try:
        return _TITLES.get(ChangeType(change_type), DEFAULT_TITLE)
    except ValueError:
        return DEFAULT_TITLE


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _teacher_clause(teacher: Any, joiner: str = "by") -> str:
    t = _text(teacher).strip()
    return f" {joiner} {t}" if t else ""


def notification_body(change: Change, day_label: str) -> str:
    """Render a one-line description: what changed, when, and by whom.

    The teacher attribution is left out when the teacher is unknown.
    """

    day = capitalize_first(day_label or "")
    slot = change.time_slot
    course = _text(change.course)
    if change.type == ChangeType.CANCELLED:
        cancelled = _text(change.original_course) or course
        return f"{cancelled} class at {slot} on {day} has been cancelled" + _teacher_clause(
            change.teacher
        )
    if change.type == ChangeType.EXTRA_CLASS:
        return f"Extra {course} class scheduled at {slot} on {day}" + _teacher_clause(
            change.teacher
        )
    if change.type == ChangeType.RESCHEDULED:
        return f"{course} class has been rescheduled to {slot} on {day}" + _teacher_clause(
            change.teacher
        )
    return f"{course} class at {slot} on {day} has been modified" + _teacher_clause(
        change.teacher, "with"
    )


def notification_data(change: Change, context: RecipientContext, day: str) -> dict[str, str]:
    """Build the string-only data payload delivered alongside the notification.

    `semester` carries the label from the parent record as written;
    `semesterNumber` is the normalized value used to select recipients.
    """

    return {
        "click_action": CLICK_ACTION,
        "type": change.type.value,
        "department": context.department,
        "section": context.section,
        "semester": context.semester_label or str(context.semester_number),
        "semesterNumber": str(context.semester_number),
        "day": day,
        "timeSlot": change.time_slot,
        "course": _text(change.course),
        "teacher": _text(change.teacher),
    }
