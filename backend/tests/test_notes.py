import pytest

from notive.core.errors import ValidationError
from notive.services.notes import CalendarNoteService


@pytest.fixture()
def notes(store):
    return CalendarNoteService(store)


def test_save_note_defaults_to_todo(notes):
    row = notes.save_note(1, "2024-05-01", "  buy milk ", title=" Shop ")
    assert row["status"] == "todo"
    assert row["note"] == "buy milk"
    assert row["title"] == "Shop"
    assert row["priority"] == 1


@pytest.mark.parametrize(
    "kwargs",
    [
        {"date": "2024-05-01", "note": "   "},
        {"date": "01/05/2024", "note": "x"},
        {"date": "2024-05-01", "note": "x", "priority": 4},
    ],
)
def test_save_note_validation(notes, kwargs):
    with pytest.raises(ValidationError):
        notes.save_note(1, **kwargs)


def test_edit_note(notes):
    row = notes.save_note(1, "2024-05-01", "draft")
    edited = notes.save_note(1, "2024-05-01", "final", priority=3, note_id=row["id"])
    assert edited["note"] == "final"
    assert edited["priority"] == 3
    assert edited["updated_at"] is not None


def test_notes_for_date_order(notes):
    low = notes.save_note(1, "2024-05-01", "low", priority=1)
    high = notes.save_note(1, "2024-05-01", "high", priority=3)
    notes.save_note(1, "2024-05-02", "other day")
    notes.save_note(2, "2024-05-01", "other user")

    rows = notes.notes_for_date(1, "2024-05-01")
    assert [r["id"] for r in rows] == [high["id"], low["id"]]


def test_marked_dates(notes):
    notes.save_note(1, "2024-05-03", "a")
    notes.save_note(1, "2024-05-01", "b")
    notes.save_note(1, "2024-05-03", "c")
    assert notes.marked_dates(1) == ["2024-05-01", "2024-05-03"]


def test_delete_note(notes):
    row = notes.save_note(1, "2024-05-01", "a")
    assert notes.delete_note(row["id"]) is True
    assert notes.delete_note(row["id"]) is False
    assert notes.marked_dates(1) == []


def test_status_board(notes):
    first = notes.save_note(1, "2024-05-02", "first", priority=1)
    second = notes.save_note(1, "2024-05-01", "second", priority=2)

    assert notes.update_status(first["id"], "in_progress") is True
    assert notes.update_status(second["id"], "in_progress") is True
    board = notes.tasks_by_status(1, "in_progress")
    assert [r["id"] for r in board] == [second["id"], first["id"]]

    notes.update_status(first["id"], "complete")
    done = notes.tasks_by_status(1, "complete")
    assert [r["id"] for r in done] == [first["id"]]
    assert done[0]["completed_at"] is not None

    notes.update_status(first["id"], "todo")
    assert notes.tasks_by_status(1, "complete") == []
    assert notes.tasks_by_status(1, "todo")[0]["completed_at"] is None


def test_unknown_status(notes):
    with pytest.raises(ValidationError):
        notes.tasks_by_status(1, "archived")
    with pytest.raises(ValidationError):
        notes.update_status(1, "archived")
