"""
Task record.

Rows in the "tasks" table always carry exactly these six fields.
Timestamps are ISO-8601 UTC strings with millisecond precision:

    {
      "id": "3f2a6c1e-5b7d-4f0a-9c3e-2d1b8a7f6e5d",
      "title": "Buy milk",
      "description": "Semi-skimmed",
      "created_at": "2026-10-18T12:00:00.000Z",
      "updated_at": "2026-10-18T12:00:00.000Z",
      "completed_at": null
    }

title and description are stored as sent, so either may be null.
"""

import uuid
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional


TABLE = "tasks"


def utc_now() -> str:
    """Current time as "YYYY-MM-DDTHH:MM:SS.mmmZ"."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class Task:
    id: str
    title: Optional[str]
    description: Optional[str]
    created_at: str
    updated_at: str
    completed_at: Optional[str] = None

    @classmethod
    def create(cls, title: Optional[str], description: Optional[str]) -> "Task":
        """New, not yet completed task with a random UUID4 id."""
        now = utc_now()
        return cls(
            id=str(uuid.uuid4()),
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
            completed_at=None,
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Task":
        """Build from a stored row. Unknown keys are ignored."""
        return cls(
            id=row["id"],
            title=row.get("title"),
            description=row.get("description"),
            created_at=row.get("created_at"),
            updated_at=row.get("updated_at"),
            completed_at=row.get("completed_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None
