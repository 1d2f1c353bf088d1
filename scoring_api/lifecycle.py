# scoring_api/lifecycle.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Literal

from scoring_api.errors import PreconditionFailed
from scoring_api.models import (
    MAX_WICKETS,
    TIE_DESCRIPTION,
    TIE_WINNER,
    Innings,
    Match,
    MatchResult,
)

TransitionKind = Literal["innings_changed", "match_ended"]


@dataclass(frozen=True)
class Transition:
    """What an innings completion did to the match: opened innings 2, or finished the match."""
    kind: TransitionKind
    innings_number: int
    batting_team: Optional[str] = None
    result: Optional[MatchResult] = None


def _new_innings(number: int, batting_team: str, bowling_team: str) -> Innings:
    return Innings(innings_number=number, batting_team=batting_team, bowling_team=bowling_team)


def batting_order(match: Match) -> tuple[str, str]:
    """
    Returns (batting_first, bowling_first) from the toss.

    Rule: the toss winner bats first if they chose "bat", otherwise the other team does.
    """
    other = match.team2 if match.toss_winner == match.team1 else match.team1
    if match.toss_decision == "bat":
        return match.toss_winner, other
    return other, match.toss_winner


def start_match(match: Match) -> Innings:
    if match.status != "scheduled":
        raise PreconditionFailed(f"Cannot start match: match is already {match.status}")

    if not match.toss_winner or not match.toss_decision:
        raise PreconditionFailed(
            "Cannot start match: Toss winner and decision must be set. Please update match details first."
        )

    if match.toss_winner not in (match.team1, match.team2):
        raise PreconditionFailed(
            f"Cannot start match: toss winner {match.toss_winner!r} is not one of {match.team1!r} / {match.team2!r}"
        )

    batting, bowling = batting_order(match)
    first = _new_innings(1, batting, bowling)

    match.innings = [first]
    match.current_innings = 1
    match.status = "live"
    match.is_live = True
    return first


def compute_result(first: Innings, second: Innings) -> MatchResult:
    """
    Simplified winner rule (no par score / rain-rule adjustment):
    - chasing side ahead: wins by the wickets it has in hand
    - batting-first side ahead: wins by the run difference
    - level: tie
    """
    if second.runs > first.runs:
        return MatchResult(winner=second.batting_team, win_by=f"{MAX_WICKETS - second.wickets} wickets")
    if first.runs > second.runs:
        return MatchResult(winner=first.batting_team, win_by=f"{first.runs - second.runs} runs")
    return MatchResult(winner=TIE_WINNER, win_by=TIE_DESCRIPTION)


def _complete_current_innings(match: Match) -> Transition:
    current = match.active_innings
    current.is_completed = True

    if match.current_innings == 1:
        second = _new_innings(2, current.bowling_team, current.batting_team)
        match.innings.append(second)
        match.current_innings = 2
        return Transition(kind="innings_changed", innings_number=2, batting_team=second.batting_team)

    match.status = "completed"
    match.is_live = False
    match.result = compute_result(match.innings[0], match.innings[1])
    return Transition(kind="match_ended", innings_number=match.current_innings, result=match.result)


def innings_is_over(match: Match, innings: Innings) -> bool:
    """All out, or the overs limit has been bowled (an over counts once it holds 6 legal balls)."""
    return innings.wickets >= MAX_WICKETS or innings.completed_overs >= match.total_overs


def check_innings_completion(match: Match) -> Optional[Transition]:
    """Automatic completion, run after every ball. Returns the transition taken, if any."""
    current = match.active_innings
    if current is None or current.is_completed:
        return None
    if not innings_is_over(match, current):
        return None
    return _complete_current_innings(match)


def end_innings(match: Match) -> Transition:
    """Explicit operator action: close the current innings regardless of overs/wickets."""
    if match.status != "live":
        raise PreconditionFailed("Match is not live")

    current = match.active_innings
    if current is None:
        raise PreconditionFailed("No current innings found")
    if current.is_completed:
        raise PreconditionFailed(f"Innings {current.innings_number} is already completed")

    return _complete_current_innings(match)
