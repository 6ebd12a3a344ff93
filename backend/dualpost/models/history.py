from datetime import datetime

from pydantic import BaseModel, ConfigDict

from .publish import UploadOutcome


class HistoryEntry(BaseModel):
    """Immutable record of one publish call."""

    model_config = ConfigDict(frozen=True)

    id: str
    created_at: datetime
    title: str
    status: str  # success | partial | scheduled | error
    scheduled_at: datetime | None = None
    outcomes: list[UploadOutcome] = []
