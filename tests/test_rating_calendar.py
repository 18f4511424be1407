import datetime

import pytest

from chesslog.batch_writer import BatchWriter
from chesslog.rating_calendar import RatingCalendar
from chesslog.rating_event import SOURCE_PROFILE_STATS, RatingEvent
from tests.game_fixtures import DAY_START, make_record

HOUR = 3600


def _today(day: int):
    return lambda: datetime.date(2024, 1, day)


@pytest.fixture
def stored(repos):
    BatchWriter(repos.games, repos.ratings, repos.queue).write(
        [
            make_record(1, DAY_START + 8 * HOUR, end_date="2024-01-15", my_rating=1500),
            make_record(2, DAY_START + 22 * HOUR, end_date="2024-01-15", my_rating=1512),
            make_record(3, DAY_START + 44 * HOUR, end_date="2024-01-16", my_rating=1520),
        ]
    )
    return repos


def test_build_resolves_end_of_day_rating_for_every_date(stored, settings):
    result = RatingCalendar(stored, settings, today=_today(17)).build()

    assert result == {"start": "2024-01-15", "end": "2024-01-17", "rows": 3}
    assert stored.rating_calendar.fetch_entries() == {
        "2024-01-15": {"bullet": 1512},
        "2024-01-16": {"bullet": 1520},
        "2024-01-17": {"bullet": 1520},
    }
    assert stored.locks.fetch_owner("rating_calendar") is None


def test_update_restarts_one_day_before_last_date(stored, settings):
    RatingCalendar(stored, settings, today=_today(17)).build()

    result = RatingCalendar(stored, settings, today=_today(18)).update()

    assert result == {"start": "2024-01-16", "end": "2024-01-18", "rows": 3}
    assert sorted(stored.rating_calendar.fetch_entries()) == [
        "2024-01-15",
        "2024-01-16",
        "2024-01-17",
        "2024-01-18",
    ]


def test_update_without_calendar_builds_from_first_game(stored, settings):
    result = RatingCalendar(stored, settings, today=_today(16)).update()
    assert result["start"] == "2024-01-15"
    assert result["rows"] == 2


def test_empty_store_writes_nothing(repos, settings):
    result = RatingCalendar(repos, settings, today=_today(17)).build()
    assert result == {"start": None, "end": "2024-01-17", "rows": 0}


def test_profile_snapshots_alone_start_the_calendar(repos, settings):
    repos.ratings.append_events(
        [
            RatingEvent(DAY_START + 86400 + HOUR, "blitz", 1300, source=SOURCE_PROFILE_STATS),
            RatingEvent(DAY_START + 86400 + HOUR, "rapid", 1700, source=SOURCE_PROFILE_STATS),
        ]
    )

    result = RatingCalendar(repos, settings, today=_today(17)).build()

    assert result["start"] == "2024-01-16"
    assert repos.rating_calendar.fetch_entries()["2024-01-17"] == {"blitz": 1300, "rapid": 1700}
