from __future__ import annotations

import os
from typing import Any, Dict, List, Tuple

import pytest

# main.py builds its store from the environment at import time
os.environ["DATABASE_URL"] = "sqlite://"

from fastapi.testclient import TestClient

import main
from scoring_api.ball_engine import BallInput, apply_ball
from scoring_api.lifecycle import start_match
from scoring_api.models import Match
from scoring_api.service import MatchService
from scoring_api.store import Database, MatchRepository


class RecordingBroadcaster:
    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    async def publish(self, event: str, payload: Dict[str, Any]) -> None:
        self.events.append((event, payload))

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.events]


def live_match(total_overs: int = 20, toss_winner: str = "Team A", toss_decision: str = "bat") -> Match:
    match = Match(
        match_id="M001",
        team1="Team A",
        team2="Team B",
        venue="Main Stadium",
        toss_winner=toss_winner,
        toss_decision=toss_decision,
        total_overs=total_overs,
    )
    start_match(match)
    return match


def bowl(match: Match, n: int = 1, **kwargs):
    """Applies n identical deliveries from X to Y and returns the last outcome."""
    fields = {"striker": "X", "non_striker": "Z", "bowler": "Y"}
    fields.update(kwargs)
    outcome = None
    for _ in range(n):
        outcome = apply_ball(match, BallInput(**fields))
    return outcome


@pytest.fixture
def repo():
    db = Database("sqlite://")
    db.connect()
    yield MatchRepository(db)
    db.dispose()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def service(repo, broadcaster):
    return MatchService(repo, broadcaster)


@pytest.fixture
def client(service):
    main.app.dependency_overrides[main.get_service] = lambda: service
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()
