from __future__ import annotations

from notify.formatting import (
    CLICK_ACTION,
    notification_body,
    notification_data,
    notification_title,
)
from notify.models import Change, ChangeType, RecipientContext


def test_titles():
    assert notification_title(ChangeType.CANCELLED) == "Class Cancelled"
    assert notification_title(ChangeType.RESCHEDULED) == "Class Rescheduled"
    assert notification_title(ChangeType.EXTRA_CLASS) == "Extra Class Added"
    assert notification_title(ChangeType.MODIFIED) == "Timetable Update"
    assert notification_title("SOMETHING_ELSE") == "Timetable Update"


def test_cancelled_body_uses_original_course():
    change = Change(
        ChangeType.CANCELLED, "09:00-10:00", "Cancelled", "Dr. Rao", original_course="Algorithms"
    )
    body = notification_body(change, "monday")
    assert body == "Algorithms class at 09:00-10:00 on Monday has been cancelled by Dr. Rao"


def test_cancelled_body_falls_back_to_course():
    change = Change(ChangeType.CANCELLED, "09:00", "Math", "")
    assert notification_body(change, "friday") == "Math class at 09:00 on Friday has been cancelled"


def test_teacher_clause_omitted_when_unknown():
    for t in (ChangeType.EXTRA_CLASS, ChangeType.RESCHEDULED, ChangeType.MODIFIED):
        body = notification_body(Change(t, "10:00", "Physics", "  "), "tuesday")
        assert " by " not in body
        assert " with " not in body
        assert not body.endswith(" ")


def test_bodies_mention_course_slot_day_teacher():
    extra = notification_body(Change(ChangeType.EXTRA_CLASS, "10:00", "Physics", "B"), "wednesday")
    assert extra == "Extra Physics class scheduled at 10:00 on Wednesday by B"
    moved = notification_body(Change(ChangeType.RESCHEDULED, "11:00", "Math", "C"), "thursday")
    assert moved == "Math class has been rescheduled to 11:00 on Thursday by C"
    modified = notification_body(Change(ChangeType.MODIFIED, "12:00", "Art", "D"), "saturday")
    assert "Art" in modified and "12:00" in modified and "Saturday" in modified and "D" in modified


def test_day_capitalizes_first_char_only():
    body = notification_body(Change(ChangeType.MODIFIED, "12:00", "Art", ""), "sUNDAY")
    assert "on SUNDAY" in body


def test_formatting_is_pure():
    change = Change(ChangeType.RESCHEDULED, "11:00", "Math", "C")
    assert notification_body(change, "monday") == notification_body(change, "monday")
    assert notification_title(change.type) == notification_title(change.type)


def test_data_payload_is_all_strings():
    ctx = RecipientContext(department="CSE", section="A", semester_number=7)
    change = Change(ChangeType.EXTRA_CLASS, "10:00", "Physics", "B")
    data = notification_data(change, ctx, "monday")
    assert data == {
        "click_action": CLICK_ACTION,
        "type": "EXTRA_CLASS",
        "department": "CSE",
        "section": "A",
        "semester": "7",
        "semesterNumber": "7",
        "day": "monday",
        "timeSlot": "10:00",
        "course": "Physics",
        "teacher": "B",
    }
    assert all(isinstance(v, str) for v in data.values())


def test_data_payload_keeps_semester_label():
    ctx = RecipientContext(
        department="CSE", section="A", semester_number=7, semester_label="Semester 7"
    )
    data = notification_data(Change(ChangeType.MODIFIED, "09:00", "Algo", None), ctx, "monday")
    assert data["semester"] == "Semester 7"
    assert data["semesterNumber"] == "7"
    assert data["teacher"] == ""


def test_non_text_slot_values_render_as_text():
    change = Change(ChangeType.MODIFIED, "09:00", 101, 42)
    assert notification_body(change, "monday") == "101 class at 09:00 on Monday has been modified with 42"
    ctx = RecipientContext(department="CSE", section="A", semester_number=7)
    data = notification_data(change, ctx, "monday")
    assert data["course"] == "101"
    assert data["teacher"] == "42"
    assert all(isinstance(v, str) for v in data.values())
