# scoring_api/ball_engine.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from scoring_api.cricket_math import BALLS_PER_OVER
from scoring_api.errors import PreconditionFailed, ValidationError
from scoring_api.lifecycle import Transition, check_innings_completion
from scoring_api.models import RUN_OUT, Ball, Commentary, Innings, Match, Over, utcnow


@dataclass(frozen=True)
class BallInput:
    """
    One delivery as submitted by the scorer.

    The extra flags are advisory and may be combined (a wide can carry runs),
    but bye/leg-bye runs are never credited to the batsman.
    """
    striker: str
    bowler: str
    non_striker: Optional[str] = None
    runs: int = 0
    is_wicket: bool = False
    is_wide: bool = False
    is_no_ball: bool = False
    is_bye: bool = False
    is_leg_bye: bool = False
    wicket_type: Optional[str] = None
    fielder: Optional[str] = None


@dataclass(frozen=True)
class BallOutcome:
    ball: Ball
    commentary: Commentary
    transition: Optional[Transition] = None


def _blank(s: Optional[str]) -> bool:
    return s is None or not str(s).strip()


def _check_preconditions(match: Match, ball_in: BallInput) -> Innings:
    if match.status != "live":
        raise PreconditionFailed("Match is not live. Please start the match first.")

    if not match.innings:
        raise PreconditionFailed("No innings found. Match may not be properly started.")

    innings = match.active_innings
    if innings is None:
        raise PreconditionFailed("Current innings not found.")
    if innings.is_completed:
        raise PreconditionFailed(f"Innings {innings.innings_number} is already completed.")

    if _blank(ball_in.striker):
        raise ValidationError("striker is required")
    if _blank(ball_in.bowler):
        raise ValidationError("bowler is required")
    if ball_in.runs < 0:
        raise ValidationError("runs cannot be negative")

    return innings


def _names_wicket(ball_in: BallInput) -> bool:
    return ball_in.is_wicket and not _blank(ball_in.wicket_type)


def _dismisses_batsman(ball_in: BallInput) -> bool:
    # Run-outs are recorded as deliveries but never credited to the bowler or marked on the stat table
    return _names_wicket(ball_in) and ball_in.wicket_type != RUN_OUT


def _current_over(innings: Innings, bowler: str) -> Over:
    if not innings.overs or innings.overs[-1].is_complete:
        innings.overs.append(Over(over_number=innings.current_over + 1, bowler=bowler))
        innings.current_over += 1
        innings.current_ball = 0
    return innings.overs[-1]


def commentary_text(label: str, ball: Ball) -> str:
    text = f"{label} {ball.bowler} to {ball.striker}"
    if ball.is_wicket:
        text += f" - WICKET! {ball.striker} is {ball.wicket_type or 'out'}"
        if ball.fielder:
            text += f" by {ball.fielder}"
    elif ball.runs == 6:
        text += " - SIX! What a shot!"
    elif ball.runs == 4:
        text += " - FOUR! Beautiful boundary"
    elif ball.is_wide:
        text += " - Wide ball"
    elif ball.is_no_ball:
        text += " - No ball"
    else:
        text += f" - {ball.runs} run{'s' if ball.runs != 1 else ''}"
    return text


def apply_ball(match: Match, ball_in: BallInput, now: Optional[datetime] = None) -> BallOutcome:
    """
    Applies one delivery to a loaded match, in place.

    All checks run before the first mutation, so a rejected ball leaves the
    match untouched. Not idempotent: the same input twice records two balls.
    """
    innings = _check_preconditions(match, ball_in)
    runs = int(ball_in.runs)
    illegal = ball_in.is_wide or ball_in.is_no_ball
    byes = ball_in.is_bye or ball_in.is_leg_bye

    over = _current_over(innings, ball_in.bowler)

    innings.striker = ball_in.striker
    innings.non_striker = ball_in.non_striker
    innings.bowler = ball_in.bowler

    ball = Ball(
        ball_number=len(over.balls) + 1,
        runs=runs,
        is_wicket=ball_in.is_wicket,
        is_wide=ball_in.is_wide,
        is_no_ball=ball_in.is_no_ball,
        is_bye=ball_in.is_bye,
        is_leg_bye=ball_in.is_leg_bye,
        batsman_runs=0 if byes else runs,
        extras=(1 + runs) if illegal else (runs if byes else 0),
        striker=ball_in.striker,
        non_striker=ball_in.non_striker,
        bowler=ball_in.bowler,
        wicket_type=ball_in.wicket_type if _names_wicket(ball_in) else None,
        fielder=ball_in.fielder if _names_wicket(ball_in) and not _blank(ball_in.fielder) else None,
    )

    if not illegal:
        innings.current_ball += 1

    over.balls.append(ball)
    over.runs_in_over += runs

    innings.runs += ball.total_runs
    if ball.is_wicket:
        innings.wickets += 1
        over.wickets_in_over += 1

    if ball.is_wide:
        innings.extras.wides += 1
    if ball.is_no_ball:
        innings.extras.no_balls += 1
    if ball.is_bye:
        innings.extras.byes += runs
    if ball.is_leg_bye:
        innings.extras.leg_byes += runs

    # Batsman
    bat = match.batsman(ball.striker)
    if not illegal:
        bat.balls_faced += 1
    if not byes:
        bat.runs += runs
        if runs == 4:
            bat.fours += 1
        if runs == 6:
            bat.sixes += 1
    if _dismisses_batsman(ball_in):
        bat.is_out = True
        bat.dismissal_type = ball_in.wicket_type
        bat.bowler_name = ball.bowler
        if ball.fielder:
            bat.fielder_name = ball.fielder

    # Bowler
    bowl = match.bowler(ball.bowler)
    bowl.runs += ball.total_runs
    if _dismisses_batsman(ball_in):
        bowl.wickets += 1
    if ball.is_wide:
        bowl.wides += 1
    if ball.is_no_ball:
        bowl.no_balls += 1

    # Over completion: only the legal ball that fills the over counts it
    if not illegal and over.legal_balls == BALLS_PER_OVER:
        bowl.overs += 1
        if over.runs_conceded == 0:
            over.maiden_over = True
            bowl.maidens += 1

    if innings.current_ball == BALLS_PER_OVER:
        innings.current_ball = 0

    bowl.recompute_economy()

    label = f"{innings.current_over}.{len(over.balls)}"
    entry = Commentary(ball_number=label, text=commentary_text(label, ball), timestamp=now or utcnow())
    match.commentary.insert(0, entry)

    transition = check_innings_completion(match)
    return BallOutcome(ball=ball, commentary=entry, transition=transition)
