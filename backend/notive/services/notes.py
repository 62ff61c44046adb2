from pydantic import ValidationError as PydanticValidationError

from notive.core.errors import ValidationError
from notive.core.utils import utc_now_naive
from notive.schemas.notes import NoteIn, NoteStatus
from notive.services.record_store import RecordStore

NOTES_COLLECTION = "calendar_notes"

_STATUS_ORDERING: dict[NoteStatus, tuple[str, ...]] = {
    NoteStatus.TODO: ("date", "-priority"),
    NoteStatus.IN_PROGRESS: ("date", "-priority"),
    NoteStatus.COMPLETE: ("-completed_at",),
}


def _parse_status(status: str) -> NoteStatus:
    try:
        return NoteStatus(status)
    except ValueError as exc:
        raise ValidationError(f"Unknown status: {status}") from exc


class CalendarNoteService:
    def __init__(self, store: RecordStore) -> None:
        self._store = store

    def save_note(
        self,
        user_id: int,
        date: str,
        note: str,
        *,
        title: str = "",
        priority: int = 1,
        note_id: int | None = None,
    ) -> dict | None:
        try:
            payload = NoteIn(date=date, note=note, title=title, priority=priority)
        except PydanticValidationError as exc:
            fields = {err["loc"][0] for err in exc.errors() if err.get("loc")}
            if "note" in fields:
                raise ValidationError("Please enter a note") from exc
            raise ValidationError(f"Invalid {', '.join(sorted(str(f) for f in fields))}") from exc

        now = utc_now_naive()
        if note_id is not None:
            self._store.update(
                NOTES_COLLECTION,
                {"id": note_id, "user_id": user_id},
                {"title": payload.title, "note": payload.note, "priority": payload.priority, "updated_at": now},
            )
            return self._store.select_one(NOTES_COLLECTION, {"id": note_id, "user_id": user_id})

        rows = self._store.insert(
            NOTES_COLLECTION,
            [{
                "user_id": user_id,
                "date": payload.date,
                "title": payload.title,
                "note": payload.note,
                "priority": payload.priority,
                "status": NoteStatus.TODO.value,
                "created_at": now,
            }],
        )
        return rows[0]

    def notes_for_date(self, user_id: int, date: str) -> list[dict]:
        return self._store.select(
            NOTES_COLLECTION,
            {"user_id": user_id, "date": date},
            order_by=("-priority", "-created_at"),
        )

    def marked_dates(self, user_id: int) -> list[str]:
        rows = self._store.select(NOTES_COLLECTION, {"user_id": user_id})
        return sorted({row["date"] for row in rows})

    def delete_note(self, note_id: int) -> bool:
        return self._store.delete(NOTES_COLLECTION, {"id": note_id}) > 0

    def tasks_by_status(self, user_id: int, status: str) -> list[dict]:
        parsed = _parse_status(status)
        return self._store.select(
            NOTES_COLLECTION,
            {"user_id": user_id, "status": parsed.value},
            order_by=_STATUS_ORDERING[parsed],
        )

    def update_status(self, note_id: int, status: str) -> bool:
        parsed = _parse_status(status)
        now = utc_now_naive()
        patch = {
            "status": parsed.value,
            "updated_at": now,
            "completed_at": now if parsed == NoteStatus.COMPLETE else None,
        }
        return self._store.update(NOTES_COLLECTION, {"id": note_id}, patch) > 0
