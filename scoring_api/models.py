from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Literal

from scoring_api.cricket_math import (
    BALLS_PER_OVER,
    economy,
    overs_notation,
    required_run_rate,
    run_rate,
    strike_rate,
)


# -----------------------------
# Match lifecycle semantics
# -----------------------------
MatchStatus = Literal["scheduled", "live", "completed"]
TossDecision = Literal["bat", "bowl"]

TIE_WINNER = "tie"
TIE_DESCRIPTION = "Match tied"
RUN_OUT = "run_out"
MAX_WICKETS = 10


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def _parse_dt(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return raw
    s = str(raw).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    return datetime.fromisoformat(s)


# -----------------------------
# Ball (immutable event record)
# -----------------------------
@dataclass(frozen=True)
class Ball:
    ball_number: int
    runs: int
    is_wicket: bool
    is_wide: bool
    is_no_ball: bool
    is_bye: bool
    is_leg_bye: bool
    batsman_runs: int
    extras: int
    striker: str
    non_striker: Optional[str]
    bowler: str
    wicket_type: Optional[str] = None
    fielder: Optional[str] = None

    @property
    def is_legal(self) -> bool:
        return not (self.is_wide or self.is_no_ball)

    @property
    def total_runs(self) -> int:
        """Runs this delivery adds to the innings total: signalled runs plus the wide/no-ball penalty."""
        return self.runs + (0 if self.is_legal else 1)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "ballNumber": self.ball_number,
            "runs": self.runs,
            "isWicket": self.is_wicket,
            "isWide": self.is_wide,
            "isNoBall": self.is_no_ball,
            "isBye": self.is_bye,
            "isLegBye": self.is_leg_bye,
            "batsmanRuns": self.batsman_runs,
            "extras": self.extras,
            "striker": self.striker,
            "nonStriker": self.non_striker,
            "bowler": self.bowler,
        }
        if self.wicket_type is not None:
            out["wicketType"] = self.wicket_type
        if self.fielder is not None:
            out["fielder"] = self.fielder
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Ball":
        return cls(
            ball_number=int(d["ballNumber"]),
            runs=int(d.get("runs", 0)),
            is_wicket=bool(d.get("isWicket", False)),
            is_wide=bool(d.get("isWide", False)),
            is_no_ball=bool(d.get("isNoBall", False)),
            is_bye=bool(d.get("isBye", False)),
            is_leg_bye=bool(d.get("isLegBye", False)),
            batsman_runs=int(d.get("batsmanRuns", 0)),
            extras=int(d.get("extras", 0)),
            striker=d.get("striker", ""),
            non_striker=d.get("nonStriker"),
            bowler=d.get("bowler", ""),
            wicket_type=d.get("wicketType"),
            fielder=d.get("fielder"),
        )


# -----------------------------
# Over
# -----------------------------
@dataclass
class Over:
    over_number: int
    bowler: str
    balls: List[Ball] = field(default_factory=list)
    runs_in_over: int = 0
    wickets_in_over: int = 0
    maiden_over: bool = False

    @property
    def legal_balls(self) -> int:
        return sum(1 for b in self.balls if b.is_legal)

    @property
    def is_complete(self) -> bool:
        return self.legal_balls >= BALLS_PER_OVER

    @property
    def runs_conceded(self) -> int:
        return sum(b.total_runs for b in self.balls)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overNumber": self.over_number,
            "bowler": self.bowler,
            "balls": [b.to_dict() for b in self.balls],
            "runsInOver": self.runs_in_over,
            "wicketsInOver": self.wickets_in_over,
            "maidenOver": self.maiden_over,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Over":
        return cls(
            over_number=int(d["overNumber"]),
            bowler=d.get("bowler", ""),
            balls=[Ball.from_dict(b) for b in d.get("balls", [])],
            runs_in_over=int(d.get("runsInOver", 0)),
            wickets_in_over=int(d.get("wicketsInOver", 0)),
            maiden_over=bool(d.get("maidenOver", False)),
        )


# -----------------------------
# Innings
# -----------------------------
@dataclass
class Extras:
    wides: int = 0
    no_balls: int = 0
    byes: int = 0
    leg_byes: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"wides": self.wides, "noBalls": self.no_balls, "byes": self.byes, "legByes": self.leg_byes}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Extras":
        return cls(
            wides=int(d.get("wides", 0)),
            no_balls=int(d.get("noBalls", 0)),
            byes=int(d.get("byes", 0)),
            leg_byes=int(d.get("legByes", 0)),
        )


@dataclass
class Innings:
    innings_number: int
    batting_team: str
    bowling_team: str
    runs: int = 0
    wickets: int = 0
    overs: List[Over] = field(default_factory=list)
    current_over: int = 0
    current_ball: int = 0
    extras: Extras = field(default_factory=Extras)
    striker: Optional[str] = None
    non_striker: Optional[str] = None
    bowler: Optional[str] = None
    is_completed: bool = False

    @property
    def legal_balls(self) -> int:
        return sum(o.legal_balls for o in self.overs)

    @property
    def completed_overs(self) -> int:
        return sum(1 for o in self.overs if o.is_complete)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "inningsNumber": self.innings_number,
            "battingTeam": self.batting_team,
            "bowlingTeam": self.bowling_team,
            "runs": self.runs,
            "wickets": self.wickets,
            "overs": [o.to_dict() for o in self.overs],
            "currentOver": self.current_over,
            "currentBall": self.current_ball,
            "extras": self.extras.to_dict(),
            "striker": self.striker,
            "nonStriker": self.non_striker,
            "bowler": self.bowler,
            "isCompleted": self.is_completed,
            # derived
            "oversDisplay": overs_notation(self.legal_balls),
            "runRate": run_rate(self.runs, self.legal_balls),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Innings":
        return cls(
            innings_number=int(d["inningsNumber"]),
            batting_team=d["battingTeam"],
            bowling_team=d["bowlingTeam"],
            runs=int(d.get("runs", 0)),
            wickets=int(d.get("wickets", 0)),
            overs=[Over.from_dict(o) for o in d.get("overs", [])],
            current_over=int(d.get("currentOver", 0)),
            current_ball=int(d.get("currentBall", 0)),
            extras=Extras.from_dict(d.get("extras") or {}),
            striker=d.get("striker"),
            non_striker=d.get("nonStriker"),
            bowler=d.get("bowler"),
            is_completed=bool(d.get("isCompleted", False)),
        )


# -----------------------------
# Player aggregates
# -----------------------------
@dataclass
class BatsmanStat:
    player_name: str
    runs: int = 0
    balls_faced: int = 0
    fours: int = 0
    sixes: int = 0
    is_out: bool = False
    dismissal_type: Optional[str] = None
    bowler_name: Optional[str] = None
    fielder_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playerName": self.player_name,
            "runs": self.runs,
            "ballsFaced": self.balls_faced,
            "fours": self.fours,
            "sixes": self.sixes,
            "isOut": self.is_out,
            "dismissalType": self.dismissal_type,
            "bowlerName": self.bowler_name,
            "fielderName": self.fielder_name,
            "strikeRate": strike_rate(self.runs, self.balls_faced),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BatsmanStat":
        return cls(
            player_name=d["playerName"],
            runs=int(d.get("runs", 0)),
            balls_faced=int(d.get("ballsFaced", 0)),
            fours=int(d.get("fours", 0)),
            sixes=int(d.get("sixes", 0)),
            is_out=bool(d.get("isOut", False)),
            dismissal_type=d.get("dismissalType"),
            bowler_name=d.get("bowlerName"),
            fielder_name=d.get("fielderName"),
        )


@dataclass
class BowlerStat:
    player_name: str
    overs: int = 0
    maidens: int = 0
    runs: int = 0
    wickets: int = 0
    wides: int = 0
    no_balls: int = 0
    economy: float = 0.0

    def recompute_economy(self) -> None:
        self.economy = economy(self.runs, self.overs)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "playerName": self.player_name,
            "overs": self.overs,
            "maidens": self.maidens,
            "runs": self.runs,
            "wickets": self.wickets,
            "wides": self.wides,
            "noBalls": self.no_balls,
            "economy": self.economy,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BowlerStat":
        return cls(
            player_name=d["playerName"],
            overs=int(d.get("overs", 0)),
            maidens=int(d.get("maidens", 0)),
            runs=int(d.get("runs", 0)),
            wickets=int(d.get("wickets", 0)),
            wides=int(d.get("wides", 0)),
            no_balls=int(d.get("noBalls", 0)),
            economy=float(d.get("economy", 0.0)),
        )


@dataclass(frozen=True)
class Commentary:
    ball_number: str
    text: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {"ballNumber": self.ball_number, "text": self.text, "timestamp": _iso(self.timestamp)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Commentary":
        return cls(ball_number=d["ballNumber"], text=d["text"], timestamp=_parse_dt(d["timestamp"]) or utcnow())


@dataclass(frozen=True)
class MatchResult:
    winner: str
    win_by: str

    def to_dict(self) -> Dict[str, str]:
        return {"winner": self.winner, "winBy": self.win_by}


# -----------------------------
# Match (root aggregate)
# -----------------------------
@dataclass
class Match:
    match_id: str
    team1: str
    team2: str
    title: str = ""
    venue: Optional[str] = None
    match_date: Optional[datetime] = None
    status: MatchStatus = "scheduled"
    is_live: bool = False
    toss_winner: Optional[str] = None
    toss_decision: Optional[TossDecision] = None
    total_overs: int = 20
    current_innings: int = 1
    innings: List[Innings] = field(default_factory=list)
    batsman_stats: List[BatsmanStat] = field(default_factory=list)
    bowler_stats: List[BowlerStat] = field(default_factory=list)
    commentary: List[Commentary] = field(default_factory=list)
    result: Optional[MatchResult] = None
    version: int = 0

    def __post_init__(self) -> None:
        if not self.title:
            self.title = f"{self.team1} vs {self.team2}"

    @property
    def active_innings(self) -> Optional[Innings]:
        """The innings indexed by current_innings, or None if it does not exist yet."""
        idx = self.current_innings - 1
        if 0 <= idx < len(self.innings):
            return self.innings[idx]
        return None

    def batsman(self, name: str) -> BatsmanStat:
        for s in self.batsman_stats:
            if s.player_name == name:
                return s
        stat = BatsmanStat(player_name=name)
        self.batsman_stats.append(stat)
        return stat

    def bowler(self, name: str) -> BowlerStat:
        for s in self.bowler_stats:
            if s.player_name == name:
                return s
        stat = BowlerStat(player_name=name)
        self.bowler_stats.append(stat)
        return stat

    def to_dict(self) -> Dict[str, Any]:
        innings_out = [i.to_dict() for i in self.innings]
        if len(self.innings) >= 2:
            first, second = self.innings[0], self.innings[1]
            target = first.runs + 1
            innings_out[1]["target"] = target
            innings_out[1]["requiredRunRate"] = required_run_rate(
                target,
                second.runs,
                self.total_overs * BALLS_PER_OVER - second.legal_balls,
            )

        return {
            "matchId": self.match_id,
            "title": self.title,
            "team1": self.team1,
            "team2": self.team2,
            "venue": self.venue,
            "matchDate": _iso(self.match_date),
            "status": self.status,
            "isLive": self.is_live,
            "tossWinner": self.toss_winner,
            "tossDecision": self.toss_decision,
            "totalOvers": self.total_overs,
            "currentInnings": self.current_innings,
            "innings": innings_out,
            "batsmanStats": [s.to_dict() for s in self.batsman_stats],
            "bowlerStats": [s.to_dict() for s in self.bowler_stats],
            "commentary": [c.to_dict() for c in self.commentary],
            "result": self.result.to_dict() if self.result else None,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Match":
        result = d.get("result")
        return cls(
            match_id=d["matchId"],
            team1=d["team1"],
            team2=d["team2"],
            title=d.get("title") or "",
            venue=d.get("venue"),
            match_date=_parse_dt(d.get("matchDate")),
            status=d.get("status", "scheduled"),
            is_live=bool(d.get("isLive", False)),
            toss_winner=d.get("tossWinner"),
            toss_decision=d.get("tossDecision"),
            total_overs=int(d.get("totalOvers", 20)),
            current_innings=int(d.get("currentInnings", 1)),
            innings=[Innings.from_dict(i) for i in d.get("innings", [])],
            batsman_stats=[BatsmanStat.from_dict(s) for s in d.get("batsmanStats", [])],
            bowler_stats=[BowlerStat.from_dict(s) for s in d.get("bowlerStats", [])],
            commentary=[Commentary.from_dict(c) for c in d.get("commentary", [])],
            result=MatchResult(winner=result["winner"], win_by=result["winBy"]) if result else None,
            version=int(d.get("version", 0)),
        )
