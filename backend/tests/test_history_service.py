from datetime import datetime, timedelta, timezone

from dualpost.config import settings
from dualpost.models import HistoryEntry, PublishResult, UploadOutcome
from dualpost.services.history_service import HistoryService


def _entry(entry_id: str, minutes_ago: int) -> HistoryEntry:
    return HistoryEntry(
        id=entry_id,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
        title=f"Video {entry_id}",
        status="success",
        outcomes=[UploadOutcome(platform="youtube", status="success", url="https://www.youtube.com/shorts/x")],
    )


def test_build_entry_copies_result_fields():
    result = PublishResult(
        outcomes=[
            UploadOutcome(platform="youtube", status="success", url="https://www.youtube.com/shorts/a"),
            UploadOutcome(platform="facebook", status="error", message="down", code="remote_rejected"),
        ]
    )

    entry = HistoryService.build_entry(title="Clip", result=result)

    assert entry.status == "partial"
    assert entry.title == "Clip"
    assert [item.platform for item in entry.outcomes] == ["youtube", "facebook"]
    assert entry.id


def test_entries_are_listed_newest_first():
    HistoryService.record("u1", _entry("old", 30))
    HistoryService.record("u1", _entry("new", 1))
    HistoryService.record("u2", _entry("other", 5))

    entries = HistoryService.list_entries("u1")

    assert [item.id for item in entries] == ["new", "old"]
    assert entries[0].outcomes[0].url == "https://www.youtube.com/shorts/x"


def test_limit_caps_the_result():
    for index in range(5):
        HistoryService.record("u1", _entry(str(index), index))

    assert [item.id for item in HistoryService.list_entries("u1", limit=2)] == ["0", "1"]


def test_malformed_entries_are_skipped():
    (settings.data_dir / "history.json").write_text(
        '{"history": {"u1": [{"id": "broken"}, "junk"]}}',
        encoding="utf-8",
    )

    assert HistoryService.list_entries("u1") == []
