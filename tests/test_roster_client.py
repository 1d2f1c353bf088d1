from __future__ import annotations

import pytest
import requests

from scoring_api import cache, roster_client
from scoring_api.roster_client import RosterError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


@pytest.fixture(autouse=True)
def enabled(monkeypatch):
    cache.clear()
    monkeypatch.setattr(roster_client, "ROSTER_ENABLED", True)
    yield
    cache.clear()


def test_disabled(monkeypatch):
    monkeypatch.setattr(roster_client, "ROSTER_ENABLED", False)
    with pytest.raises(RosterError, match="disabled"):
        roster_client.get_team_players("Team A")


def test_names_are_extracted_and_cached(monkeypatch):
    calls = []

    def fake_get(url, params=None, timeout=None):
        calls.append(params["team"])
        return FakeResponse(payload={"players": [{"name": " Asha "}, {"name": ""}, "Bina"]})

    monkeypatch.setattr(requests, "get", fake_get)

    assert roster_client.get_team_players("Team A") == ["Asha", "Bina"]
    assert roster_client.get_team_players("Team A") == ["Asha", "Bina"]
    assert calls == ["Team A"]


def test_get_squads(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda url, params=None, timeout=None: FakeResponse(payload=[params["team"] + " P1"]))
    assert roster_client.get_squads("A", "B") == {"A": ["A P1"], "B": ["B P1"]}


def test_http_error(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(status_code=500, text="boom"))
    with pytest.raises(RosterError, match="HTTP 500"):
        roster_client.get_team_players("Team A")


def test_network_error(monkeypatch):
    def boom(*a, **k):
        raise requests.ConnectionError("refused")

    monkeypatch.setattr(requests, "get", boom)
    with pytest.raises(RosterError, match="Network error"):
        roster_client.get_team_players("Team A")


def test_invalid_json(monkeypatch):
    monkeypatch.setattr(requests, "get", lambda *a, **k: FakeResponse(payload=None))
    with pytest.raises(RosterError, match="Invalid JSON"):
        roster_client.get_team_players("Team A")
