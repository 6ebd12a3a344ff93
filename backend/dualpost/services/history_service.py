from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any
import json
import logging
import uuid

from ..config import settings
from ..models import HistoryEntry, PublishResult

logger = logging.getLogger("uvicorn.error")


class HistoryService:
    """Append-only publish history per user."""

    _lock = Lock()

    @classmethod
    def _history_file_path(cls) -> Path:
        return settings.data_dir / "history.json"

    @classmethod
    def _load(cls) -> dict[str, Any]:
        path = cls._history_file_path()
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            if isinstance(payload, dict):
                return payload
        except Exception:
            logger.exception("Failed to read publish history at %s", path)
            return {}
        return {}

    @classmethod
    def _save(cls, payload: dict[str, Any]) -> None:
        path = cls._history_file_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(path)

    @classmethod
    def build_entry(cls, *, title: str, result: PublishResult) -> HistoryEntry:
        return HistoryEntry(
            id=uuid.uuid4().hex,
            created_at=datetime.now(timezone.utc),
            title=title,
            status=result.status,
            scheduled_at=result.scheduled_at,
            outcomes=list(result.outcomes),
        )

    @classmethod
    def record(cls, user_id: str, entry: HistoryEntry) -> str:
        with cls._lock:
            state = cls._load()
            entries = state.setdefault("history", {}).setdefault(user_id, [])
            entries.append(entry.model_dump(mode="json"))
            cls._save(state)
        return entry.id

    @classmethod
    def list_entries(cls, user_id: str, limit: int | None = None) -> list[HistoryEntry]:
        max_items = limit if limit is not None else settings.history_limit
        with cls._lock:
            raw_entries = cls._load().get("history", {}).get(user_id, [])
        entries: list[HistoryEntry] = []
        for raw in raw_entries:
            if not isinstance(raw, dict):
                continue
            try:
                entries.append(HistoryEntry.model_validate(raw))
            except ValueError:
                logger.warning("Skipping malformed history entry for user %s", user_id)
        entries.sort(key=lambda item: item.created_at, reverse=True)
        return entries[:max_items]
