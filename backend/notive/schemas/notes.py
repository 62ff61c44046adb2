import re
from enum import Enum

from pydantic import BaseModel, Field, field_validator

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class NoteStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    COMPLETE = "complete"


class NoteIn(BaseModel):
    date: str
    note: str = Field(min_length=1, max_length=5000)
    title: str = Field(default="", max_length=200)
    priority: int = Field(default=1, ge=1, le=3)

    @field_validator("note", "title", mode="before")
    @classmethod
    def _strip(cls, value):
        return value.strip() if isinstance(value, str) else value

    @field_validator("date")
    @classmethod
    def _check_date(cls, value: str) -> str:
        if not DATE_RE.match(value):
            raise ValueError("date must be YYYY-MM-DD")
        return value
