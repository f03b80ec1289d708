"""Snapshot comparison and change classification for a day's schedule."""

from __future__ import annotations

from collections.abc import Mapping

from .models import Change, ChangeType, SlotEntry

CANCELLED_COURSES = frozenset({"Cancelled", "Free"})

REASON_SLOT_REMOVED = "Time slot removed"
REASON_SLOT_ADDED = "New time slot added"


def classify_change(old: SlotEntry | None, new: SlotEntry) -> ChangeType:
    """Tag a differing slot; the first matching rule wins.

    Flags count only when stored as a literal `true`.

    A sentinel course name outranks the flags, so a cancelled slot still
    reads as CANCELLED when a stale reschedule flag is left on it.
    """

    if isinstance(new.course, str) and new.course in CANCELLED_COURSES:
        return ChangeType.CANCELLED
    if new.is_extra_class is True:
        return ChangeType.EXTRA_CLASS
    if new.is_rescheduled is True:
        return ChangeType.RESCHEDULED
    return ChangeType.MODIFIED


def compare_snapshots(
    old: Mapping[str, SlotEntry] | None,
    new: Mapping[str, SlotEntry] | None,
) -> list[Change]:
    """Return one Change per slot key that differs, sorted by key."""

    old = old or {}
    new = new or {}
    changes: list[Change] = []

    for slot in sorted(set(old) | set(new)):
        before = old.get(slot)
        after = new.get(slot)

        if after is None:
            # Removed slot; `before` is set since the key came from the union
            changes.append(
                Change(
                    type=ChangeType.CANCELLED,
                    time_slot=slot,
                    course=before.course,
                    teacher=before.teacher,
                    original_course=before.course,
                    reason=REASON_SLOT_REMOVED,
                )
            )
        elif before is None:
            changes.append(
                Change(
                    type=ChangeType.EXTRA_CLASS if after.is_extra_class is True else ChangeType.MODIFIED,
                    time_slot=slot,
                    course=after.course,
                    teacher=after.teacher,
                    reason=REASON_SLOT_ADDED,
                )
            )
        elif before != after:
            changes.append(
                Change(
                    type=classify_change(before, after),
                    time_slot=slot,
                    course=after.course,
                    teacher=after.teacher,
                    original_course=(
                        before.course if after.original_course is None else after.original_course
                    ),
                    reason=after.reason,
                )
            )
    return changes
