# scoring_api/service.py
from __future__ import annotations

import asyncio
import time
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from loguru import logger
from starlette.concurrency import run_in_threadpool

from scoring_api import broadcast
from scoring_api.ball_engine import BallInput, apply_ball
from scoring_api.broadcast import Broadcaster, NullBroadcaster
from scoring_api.errors import ValidationError
from scoring_api.lifecycle import Transition, check_innings_completion, end_innings, start_match
from scoring_api.models import Ball, Match
from scoring_api.store import MatchRepository

# Fields that only make sense to change before the first ball
PRE_START_FIELDS = {"team1", "team2", "toss_winner", "toss_decision"}
PATCHABLE_FIELDS = PRE_START_FIELDS | {"title", "venue", "match_date", "total_overs"}


def new_match_id() -> str:
    return f"M{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"


class _MatchLock:
    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.users = 0


class MatchService:
    """
    All match mutations and reads.

    Mutations for one match id are serialised by an in-process lock; the
    store's version check catches writers in other processes. Each mutation
    loads the latest aggregate, changes it in memory, persists it once and
    only then publishes, still holding the lock so viewers see events in
    submission order. A failure before the save publishes nothing.
    """

    def __init__(self, repo: MatchRepository, broadcaster: Optional[Broadcaster] = None):
        self.repo = repo
        self.broadcaster = broadcaster or NullBroadcaster()
        self._locks: Dict[str, _MatchLock] = {}

    @asynccontextmanager
    async def _locked(self, match_id: str) -> AsyncIterator[None]:
        # The entry lives only while someone holds or waits on it
        entry = self._locks.get(match_id)
        if entry is None:
            entry = self._locks[match_id] = _MatchLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[match_id]

    # -----------------------
    # Queries
    # -----------------------
    async def list_matches(self) -> List[Match]:
        return await run_in_threadpool(self.repo.list_all)

    async def live_matches(self) -> List[Match]:
        return await run_in_threadpool(self.repo.list_all, "live")

    async def get_match(self, match_id: str) -> Match:
        return await run_in_threadpool(self.repo.get, match_id)

    # -----------------------
    # Create / delete
    # -----------------------
    async def create_match(
        self,
        *,
        team1: str,
        team2: str,
        match_id: Optional[str] = None,
        title: Optional[str] = None,
        venue: Optional[str] = None,
        match_date: Optional[datetime] = None,
        toss_winner: Optional[str] = None,
        toss_decision: Optional[str] = None,
        total_overs: int = 20,
    ) -> Match:
        team1 = team1.strip()
        team2 = team2.strip()
        if not team1 or not team2:
            raise ValidationError("team1 and team2 are required")
        if team1 == team2:
            raise ValidationError("team1 and team2 must be different")
        if toss_winner and toss_winner not in (team1, team2):
            raise ValidationError(f"tossWinner must be {team1!r} or {team2!r}")

        match = Match(
            match_id=match_id or new_match_id(),
            team1=team1,
            team2=team2,
            title=title or "",
            venue=venue,
            match_date=match_date,
            toss_winner=toss_winner,
            toss_decision=toss_decision,
            total_overs=total_overs,
        )
        await run_in_threadpool(self.repo.add, match)
        logger.info(f"Match created: {match.match_id} ({match.title})")
        return match

    async def delete_match(self, match_id: str) -> None:
        async with self._locked(match_id):
            await run_in_threadpool(self.repo.delete, match_id)
        logger.info(f"Match deleted: {match_id}")

    # -----------------------
    # Lifecycle
    # -----------------------
    async def start_match(self, match_id: str) -> Match:
        async with self._locked(match_id):
            match = await run_in_threadpool(self.repo.get, match_id)
            first = start_match(match)
            await run_in_threadpool(self.repo.save, match)

            logger.info(f"Match started: {match_id} ({first.batting_team} batting, {first.bowling_team} bowling)")
            await self.broadcaster.publish(broadcast.MATCH_STARTED, match.to_dict())
        return match

    async def end_innings(self, match_id: str) -> Match:
        async with self._locked(match_id):
            match = await run_in_threadpool(self.repo.get, match_id)
            transition = end_innings(match)
            await run_in_threadpool(self.repo.save, match)

            await self._publish_transition(match, transition)
        return match

    async def add_ball(self, match_id: str, ball_in: BallInput) -> Tuple[Match, Ball]:
        async with self._locked(match_id):
            match = await run_in_threadpool(self.repo.get, match_id)
            innings_number = match.current_innings
            outcome = apply_ball(match, ball_in)
            await run_in_threadpool(self.repo.save, match)

            innings = match.innings[innings_number - 1]
            logger.info(
                f"Ball {outcome.commentary.ball_number} in {match_id}: "
                f"{innings.batting_team} {innings.runs}/{innings.wickets}"
            )

            snapshot = match.to_dict()
            await self.broadcaster.publish(
                broadcast.BALL_UPDATE,
                {
                    "matchId": match.match_id,
                    "match": snapshot,
                    "ball": outcome.ball.to_dict(),
                    "commentary": outcome.commentary.text,
                },
            )
            if outcome.transition is not None:
                await self._publish_transition(match, outcome.transition, snapshot)
        return match, outcome.ball

    # -----------------------
    # Direct edits (bypass the ball engine)
    # -----------------------
    async def update_match(self, match_id: str, changes: Dict[str, Any]) -> Match:
        unknown = set(changes) - PATCHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        async with self._locked(match_id):
            match = await run_in_threadpool(self.repo.get, match_id)

            locked = PRE_START_FIELDS & set(changes)
            if locked and match.status != "scheduled":
                raise ValidationError(
                    f"Fields can only be changed before the match starts: {', '.join(sorted(locked))}"
                )

            for name, value in changes.items():
                setattr(match, name, value)

            if not match.team1 or not match.team2:
                raise ValidationError("team1 and team2 cannot be blank")
            if match.total_overs is None:
                raise ValidationError("totalOvers cannot be null")
            if match.team1 == match.team2:
                raise ValidationError("team1 and team2 must be different")
            if match.toss_winner and match.toss_winner not in (match.team1, match.team2):
                raise ValidationError(f"tossWinner must be {match.team1!r} or {match.team2!r}")

            # A lowered overs limit may already have been reached
            transition = None
            if "total_overs" in changes and match.status == "live":
                transition = check_innings_completion(match)

            await run_in_threadpool(self.repo.save, match)

            logger.info(f"Match updated: {match_id} ({', '.join(sorted(changes))})")
            snapshot = match.to_dict()
            await self.broadcaster.publish(broadcast.SCORE_UPDATE, {"matchId": match.match_id, "match": snapshot})
            if transition is not None:
                await self._publish_transition(match, transition, snapshot)
        return match

    async def _publish_transition(
        self,
        match: Match,
        transition: Transition,
        snapshot: Optional[Dict[str, Any]] = None,
    ) -> None:
        snapshot = snapshot or match.to_dict()
        if transition.kind == "innings_changed":
            logger.info(f"Innings changed in {match.match_id}: {transition.batting_team} to bat")
            await self.broadcaster.publish(
                broadcast.INNINGS_CHANGED,
                {
                    "matchId": match.match_id,
                    "match": snapshot,
                    "newInnings": transition.innings_number,
                    "battingTeam": transition.batting_team,
                },
            )
            return

        logger.info(f"Match completed: {match.match_id} ({transition.result.winner}, {transition.result.win_by})")
        await self.broadcaster.publish(
            broadcast.MATCH_ENDED,
            {
                "matchId": match.match_id,
                "match": snapshot,
                "winner": transition.result.winner,
                "winBy": transition.result.win_by,
            },
        )
