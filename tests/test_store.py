from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import bowl, live_match
from scoring_api.errors import ConflictError, NotFoundError, PersistenceError
from scoring_api.models import Match
from scoring_api.store import Database, MatchRepository


def _match(match_id: str, day: int, status: str = "scheduled") -> Match:
    return Match(
        match_id=match_id,
        team1="Team A",
        team2="Team B",
        match_date=datetime(2025, 1, day, tzinfo=timezone.utc),
        status=status,
    )


def test_database_readiness():
    db = Database("sqlite://")
    assert db.is_ready() is False
    db.connect()
    assert db.is_ready() is True
    db.dispose()
    assert db.is_ready() is False


def test_session_before_connect_raises():
    repo = MatchRepository(Database("sqlite://"))
    with pytest.raises(PersistenceError):
        repo.get("M001")


def test_add_and_get_preserves_the_aggregate(repo):
    match = live_match()
    bowl(match, runs=4)
    bowl(match, is_wide=True)
    bowl(match, is_wicket=True, wicket_type="caught", fielder="F")
    repo.add(match)

    loaded = repo.get("M001")
    assert loaded.to_dict() == match.to_dict()
    assert loaded.version == 1
    assert loaded.innings[0].overs[0].balls[2].fielder == "F"


def test_get_missing_match(repo):
    with pytest.raises(NotFoundError):
        repo.get("nope")


def test_duplicate_match_id(repo):
    repo.add(_match("M001", 1))
    with pytest.raises(ConflictError):
        repo.add(_match("M001", 2))


def test_save_bumps_version(repo):
    repo.add(_match("M001", 1))
    match = repo.get("M001")
    match.venue = "Ground 2"
    repo.save(match)

    assert match.version == 2
    loaded = repo.get("M001")
    assert loaded.venue == "Ground 2"
    assert loaded.version == 2


def test_stale_write_is_rejected(repo):
    repo.add(_match("M001", 1))
    first = repo.get("M001")
    second = repo.get("M001")

    first.venue = "Ground 1"
    repo.save(first)

    second.venue = "Ground 2"
    with pytest.raises(ConflictError):
        repo.save(second)
    assert second.version == 1
    assert repo.get("M001").venue == "Ground 1"


def test_save_missing_match(repo):
    with pytest.raises(NotFoundError):
        repo.save(_match("ghost", 1))


def test_list_orders_by_date_descending_and_filters_live(repo):
    repo.add(_match("M001", 10))
    repo.add(_match("M002", 20, status="live"))
    repo.add(_match("M003", 15, status="live"))

    assert [m.match_id for m in repo.list_all()] == ["M002", "M003", "M001"]
    assert [m.match_id for m in repo.list_all("live")] == ["M002", "M003"]


def test_delete(repo):
    repo.add(_match("M001", 1))
    repo.delete("M001")
    with pytest.raises(NotFoundError):
        repo.get("M001")
    with pytest.raises(NotFoundError):
        repo.delete("M001")
