# scoring_api/cricket_math.py
from __future__ import annotations

BALLS_PER_OVER = 6


def overs_notation(legal_balls: int) -> str:
    """
    Converts a count of legal balls into cricket overs notation.

    Rule: ".x" means x balls (0-5). Example: 118 balls = "19.4".
    """
    if legal_balls <= 0:
        return "0.0"
    return f"{legal_balls // BALLS_PER_OVER}.{legal_balls % BALLS_PER_OVER}"


def run_rate(runs: int, legal_balls: int) -> float:
    """Runs per over, rounded to 2 dp. 0.0 before the first legal ball."""
    if legal_balls <= 0:
        return 0.0
    return round(runs * BALLS_PER_OVER / legal_balls, 2)


def strike_rate(runs: int, balls_faced: int) -> float:
    """Batsman runs per 100 balls faced."""
    if balls_faced <= 0:
        return 0.0
    return round(runs * 100 / balls_faced, 2)


def economy(runs_conceded: int, completed_overs: int) -> float:
    """
    Runs conceded per COMPLETED over.

    Note:
    - Balls of an unfinished over are ignored, so a bowler mid-way through
      their first over still reads 0.0.
    """
    if completed_overs <= 0:
        return 0.0
    return round(runs_conceded / completed_overs, 2)


def required_run_rate(target: int, runs: int, balls_remaining: int) -> float:
    """Runs per over still needed by the chasing side. 0.0 once the target is reached or no balls remain."""
    needed = target - runs
    if needed <= 0 or balls_remaining <= 0:
        return 0.0
    return round(needed * BALLS_PER_OVER / balls_remaining, 2)
