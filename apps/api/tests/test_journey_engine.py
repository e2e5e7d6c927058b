from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.schemas.journey import JourneyProgress
from app.services.journey_engine import (
    calculate_current_day,
    completed_on_local_day,
    get_day_status,
    is_day_unlocked,
    mark_day_complete,
    next_eligible_at,
    parse_progress,
)

NY = ZoneInfo("America/New_York")


def _utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def test_day_one_is_always_unlocked() -> None:
    assert is_day_unlocked([], 1, _utc(2026, 3, 10, 12, 0)) is True


def test_day_locked_until_previous_day_completed() -> None:
    assert is_day_unlocked([1], 3, _utc(2026, 3, 10, 12, 0)) is False


def test_day_unlocks_at_1201_local_after_completion() -> None:
    # Day 1 completed 2026-01-15 21:00 New York time (02:00Z on the 16th).
    completed_at = _utc(2026, 1, 16, 2, 0)
    dates = {1: completed_at}

    just_before = datetime(2026, 1, 16, 0, 0, 30, tzinfo=NY)
    on_time = datetime(2026, 1, 16, 0, 1, tzinfo=NY)

    assert is_day_unlocked([1], 2, just_before, dates, tz=NY) is False
    assert is_day_unlocked([1], 2, on_time, dates, tz=NY) is True


def test_completing_late_at_night_does_not_unlock_same_day() -> None:
    completed_at = datetime(2026, 1, 15, 23, 59, tzinfo=NY)
    later_same_day = datetime(2026, 1, 15, 23, 59, 59, tzinfo=NY)
    assert is_day_unlocked([1], 2, later_same_day, {1: completed_at}, tz=NY) is False


def test_legacy_progress_without_dates_unlocks_after_1201() -> None:
    after = datetime(2026, 1, 16, 9, 0, tzinfo=NY)
    at_midnight = datetime(2026, 1, 16, 0, 0, 30, tzinfo=NY)
    assert is_day_unlocked([1], 2, after, {}, tz=NY) is True
    assert is_day_unlocked([1], 2, at_midnight, {}, tz=NY) is False


def test_bypass_unlocks_everything() -> None:
    assert is_day_unlocked([], 42, _utc(2026, 3, 10, 12, 0), bypass=True) is True


def test_next_eligible_at_is_local_midnight_plus_one_minute() -> None:
    eligible = next_eligible_at(datetime(2026, 1, 15, 21, 0, tzinfo=NY), NY)
    assert eligible == datetime(2026, 1, 16, 0, 1, tzinfo=NY)


@pytest.mark.parametrize(
    "completed,expected",
    [
        ([], 1),
        ([1], 2),
        ([1, 2, 3], 4),
        (list(range(1, 91)), 90),
    ],
)
def test_calculate_current_day(completed: list[int], expected: int) -> None:
    assert calculate_current_day(completed) == expected


def test_get_day_status_reports_completed_unlocked_locked() -> None:
    now = _utc(2026, 3, 10, 18, 0)
    progress = JourneyProgress(
        completed_days=[1],
        completion_dates={1: _utc(2026, 3, 8, 18, 0)},
        current_day=2,
    )
    assert get_day_status(progress, 1, now, tz=NY) == "completed"
    assert get_day_status(progress, 2, now, tz=NY) == "unlocked"
    assert get_day_status(progress, 3, now, tz=NY) == "locked"


def test_mark_day_complete_records_timestamp_and_advances() -> None:
    progress = JourneyProgress()
    now = _utc(2026, 3, 10, 18, 0)

    assert mark_day_complete(progress, 1, now) is True
    assert progress.completed_days == [1]
    assert progress.completion_dates[1] == now
    assert progress.current_day == 2

    # Second completion of the same day is a no-op.
    assert mark_day_complete(progress, 1, _utc(2026, 3, 11, 18, 0)) is False
    assert progress.completion_dates[1] == now


def test_mark_day_complete_rejects_out_of_range_day() -> None:
    with pytest.raises(ValueError):
        mark_day_complete(JourneyProgress(), 91, _utc(2026, 3, 10, 18, 0))


def test_parse_progress_drops_dates_for_uncompleted_days() -> None:
    progress = parse_progress(
        {
            "completed_days": [2, 1, 2],
            "completion_dates": {
                "1": "2026-03-01T10:00:00+00:00",
                "5": "2026-03-02T10:00:00+00:00",
            },
            "current_day": 3,
            "focus_areas": ["routines"],
            "journey_stage": "steady",
        }
    )
    assert progress.completed_days == [1, 2]
    assert set(progress.completion_dates) == {1}
    assert progress.focus_areas == ["routines"]


@pytest.mark.parametrize("raw", [None, "oops", 7, {"completed_days": "nope"}])
def test_parse_progress_invalid_payload_is_empty(raw) -> None:
    progress = parse_progress(raw)
    assert progress.completed_days == []
    assert progress.current_day == 1


def test_completed_on_local_day_uses_user_timezone() -> None:
    progress = JourneyProgress(
        completed_days=[4],
        completion_dates={4: _utc(2026, 3, 11, 2, 0)},  # 22:00 on the 10th in NY
    )
    assert completed_on_local_day(progress, 4, _utc(2026, 3, 10, 18, 0), tz=NY) is True
    assert completed_on_local_day(progress, 4, _utc(2026, 3, 10, 18, 0)) is False
    assert completed_on_local_day(progress, 5, _utc(2026, 3, 10, 18, 0), tz=NY) is False
