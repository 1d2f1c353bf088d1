# scoring_api/roster_client.py
from __future__ import annotations

from typing import Any, Dict, List

import requests

from scoring_api import cache
from scoring_api.config import (
    ROSTER_API_BASE_URL,
    ROSTER_CACHE_TTL_SECONDS,
    ROSTER_ENABLED,
    ROSTER_TIMEOUT_SECONDS,
)


class RosterError(Exception):
    """Raised when the roster service call fails or is misconfigured."""
    pass


def _player_names(payload: Any) -> List[str]:
    """
    Accepts either a bare list of players or {"players": [...]}.
    Each player may be a plain name or an object with a "name" field.
    """
    if isinstance(payload, dict):
        payload = payload.get("players", [])
    if not isinstance(payload, list):
        raise RosterError("Unexpected roster payload shape")

    names: List[str] = []
    for p in payload:
        name = p.get("name") if isinstance(p, dict) else p
        if name and str(name).strip():
            names.append(str(name).strip())
    return names


def get_team_players(team: str) -> List[str]:
    """
    Player names for one team, from the roster service.

    Only used to offer striker/bowler choices to the scorer; ball
    ingestion never depends on it.
    """
    if not ROSTER_ENABLED:
        raise RosterError("Roster lookup is disabled (set ROSTER_ENABLED=1 to enable).")

    key = cache.make_key("roster", team)
    cached = cache.get(key)
    if cached is not None:
        return cached

    url = f"{ROSTER_API_BASE_URL.rstrip('/')}/players"
    try:
        resp = requests.get(url, params={"team": team}, timeout=ROSTER_TIMEOUT_SECONDS)
    except requests.RequestException as e:
        raise RosterError(f"Network error: {e}") from e

    if resp.status_code != 200:
        raise RosterError(f"HTTP {resp.status_code}: {resp.text}")

    try:
        data = resp.json()
    except ValueError as e:
        raise RosterError(f"Invalid JSON response: {e}") from e

    names = _player_names(data)
    cache.set(key, names, ttl_seconds=ROSTER_CACHE_TTL_SECONDS)
    return names


def get_squads(team1: str, team2: str) -> Dict[str, List[str]]:
    return {team1: get_team_players(team1), team2: get_team_players(team2)}
