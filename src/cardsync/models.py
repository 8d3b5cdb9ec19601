"""
Data model for mirrored staff card records and sync outcomes.

Optional text fields use ``None`` as the absent marker. An empty string is
a real value and must never be produced from a database NULL.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

# ``last_update`` of a table that has never been synced
NEVER_UPDATED = "Never updated"


class SyncStage(str, Enum):
    """Stages of a sync run."""

    IDLE = "idle"
    READING = "reading"
    RECONCILING = "reconciling"
    LOADING = "loading"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class StaffCardRecord:
    """A single staff member / card pairing."""

    staff_id: int
    card_identifier: str
    last_name: str | None = None
    first_name: str | None = None
    middle_name: str | None = None
    # Destination-only fields, never populated by extraction
    status: str | None = None
    info: str | None = None
    synced_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape used by the lookup API."""
        data = {
            "id_staff": self.staff_id,
            "identifier": self.card_identifier,
            "last_name": self.last_name,
            "first_name": self.first_name,
            "middle_name": self.middle_name,
            "status": self.status,
            "info": self.info,
        }
        if self.synced_at is not None:
            data["updated_at"] = self.synced_at.isoformat()
        return data


@dataclass(frozen=True)
class SyncSummary:
    """Outcome of a successful sync run."""

    record_count: int
    synced_at: datetime
    duration_seconds: float = 0.0
    stage_durations: dict[str, float] = field(default_factory=dict)
    archived_table: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "records_updated": self.record_count,
            "last_update": self.synced_at.isoformat(),
            "duration_seconds": round(self.duration_seconds, 3),
            "stage_durations": {
                stage: round(seconds, 3)
                for stage, seconds in self.stage_durations.items()
            },
            "archived_table": self.archived_table,
        }


@dataclass(frozen=True)
class SyncStats:
    """Statistics over the mirrored table."""

    total_records: int
    last_synced_at: datetime | None
    database: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_records": self.total_records,
            "last_update": (
                self.last_synced_at.isoformat() if self.last_synced_at else NEVER_UPDATED
            ),
            "database": self.database,
            "description": (
                "last_update shows when data was last synchronized from Firebird"
            ),
        }
