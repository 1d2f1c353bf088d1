# main.py (live scoring)
from __future__ import annotations

import sys
from datetime import datetime
from typing import Literal, Optional

from fastapi import Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field
from starlette.concurrency import run_in_threadpool

from scoring_api import roster_client
from scoring_api.ball_engine import BallInput
from scoring_api.broadcast import ConnectionManager
from scoring_api.config import (
    validate_config,
    DATABASE_URL,
    DEFAULT_TOTAL_OVERS,
    LOG_LEVEL,
    WS_SEND_QUEUE_SIZE,
)
from scoring_api.errors import ScoringError
from scoring_api.roster_client import RosterError
from scoring_api.service import MatchService
from scoring_api.store import Database, MatchRepository

# -----------------------
# App
# -----------------------
app = FastAPI(
    title="Live Cricket Scoring API",
    version="0.1.0",
    description="Ball-by-ball match scoring with live push updates to viewers",
)

db = Database(DATABASE_URL)
manager = ConnectionManager(queue_size=WS_SEND_QUEUE_SIZE)
_service = MatchService(MatchRepository(db), manager)


def get_service() -> MatchService:
    return _service


@app.on_event("startup")
def on_startup():
    validate_config()
    logger.remove()
    logger.add(sys.stderr, level=LOG_LEVEL)
    db.connect()


@app.on_event("shutdown")
def on_shutdown():
    db.dispose()


@app.get("/health")
def health_check():
    return {"status": "ok", "time": datetime.utcnow().isoformat() + "Z", "database": db.is_ready()}


# -----------------------
# Helpers
# -----------------------
def _http_error(e: ScoringError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=e.message)


# -----------------------
# Request bodies
# -----------------------
class CreateMatchRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    match_id: Optional[str] = Field(None, alias="matchId", description="Generated (M<epoch-ms>-xxxxxx) when omitted")
    title: Optional[str] = Field(None, description="Defaults to '<team1> vs <team2>'")
    team1: str
    team2: str
    venue: Optional[str] = None
    match_date: Optional[datetime] = Field(None, alias="matchDate")
    toss_winner: Optional[str] = Field(None, alias="tossWinner")
    toss_decision: Optional[Literal["bat", "bowl"]] = Field(None, alias="tossDecision")
    total_overs: Optional[int] = Field(None, alias="totalOvers", ge=1)


class MatchPatch(BaseModel):
    """Fields a direct edit may touch. Anything else is rejected."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    team1: Optional[str] = None
    team2: Optional[str] = None
    venue: Optional[str] = None
    match_date: Optional[datetime] = Field(None, alias="matchDate")
    toss_winner: Optional[str] = Field(None, alias="tossWinner")
    toss_decision: Optional[Literal["bat", "bowl"]] = Field(None, alias="tossDecision")
    total_overs: Optional[int] = Field(None, alias="totalOvers", ge=1)


class BallRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    runs: int = Field(0, ge=0)
    is_wicket: bool = Field(False, alias="isWicket")
    is_wide: bool = Field(False, alias="isWide")
    is_no_ball: bool = Field(False, alias="isNoBall")
    is_bye: bool = Field(False, alias="isBye")
    is_leg_bye: bool = Field(False, alias="isLegBye")
    striker: str = ""
    non_striker: Optional[str] = Field(None, alias="nonStriker")
    bowler: str = ""
    wicket_type: Optional[str] = Field(None, alias="wicketType", description="e.g. bowled, caught, lbw, run_out")
    fielder: Optional[str] = None

    def to_input(self) -> BallInput:
        return BallInput(
            striker=self.striker,
            bowler=self.bowler,
            non_striker=self.non_striker,
            runs=self.runs,
            is_wicket=self.is_wicket,
            is_wide=self.is_wide,
            is_no_ball=self.is_no_ball,
            is_bye=self.is_bye,
            is_leg_bye=self.is_leg_bye,
            wicket_type=self.wicket_type,
            fielder=self.fielder,
        )


# -----------------------
# Match queries
# -----------------------
@app.get("/api/matches")
async def list_matches(service: MatchService = Depends(get_service)):
    try:
        return [m.to_dict() for m in await service.list_matches()]
    except ScoringError as e:
        raise _http_error(e)


@app.get("/api/matches/live")
async def list_live_matches(service: MatchService = Depends(get_service)):
    try:
        return [m.to_dict() for m in await service.live_matches()]
    except ScoringError as e:
        raise _http_error(e)


@app.get("/api/matches/{match_id}")
async def get_match(match_id: str, service: MatchService = Depends(get_service)):
    try:
        return (await service.get_match(match_id)).to_dict()
    except ScoringError as e:
        raise _http_error(e)


# -----------------------
# Match create / edit / delete
# -----------------------
@app.post("/api/matches", status_code=201)
async def create_match(req: CreateMatchRequest, service: MatchService = Depends(get_service)):
    try:
        match = await service.create_match(
            team1=req.team1,
            team2=req.team2,
            match_id=req.match_id,
            title=req.title,
            venue=req.venue,
            match_date=req.match_date,
            toss_winner=req.toss_winner,
            toss_decision=req.toss_decision,
            total_overs=req.total_overs or DEFAULT_TOTAL_OVERS,
        )
        return match.to_dict()
    except ScoringError as e:
        raise _http_error(e)


@app.put("/api/matches/{match_id}")
async def update_match(match_id: str, patch: MatchPatch, service: MatchService = Depends(get_service)):
    try:
        match = await service.update_match(match_id, patch.model_dump(exclude_unset=True))
        return match.to_dict()
    except ScoringError as e:
        raise _http_error(e)


@app.delete("/api/matches/{match_id}")
async def delete_match(match_id: str, service: MatchService = Depends(get_service)):
    try:
        await service.delete_match(match_id)
        return {"message": "Match deleted successfully"}
    except ScoringError as e:
        raise _http_error(e)


# -----------------------
# Live scoring
# -----------------------
@app.post("/api/matches/{match_id}/start")
async def start_match(match_id: str, service: MatchService = Depends(get_service)):
    try:
        return (await service.start_match(match_id)).to_dict()
    except ScoringError as e:
        raise _http_error(e)


@app.post("/api/matches/{match_id}/end-innings")
async def end_innings(match_id: str, service: MatchService = Depends(get_service)):
    try:
        return (await service.end_innings(match_id)).to_dict()
    except ScoringError as e:
        raise _http_error(e)


@app.post("/api/matches/{match_id}/ball")
async def add_ball(match_id: str, req: BallRequest, service: MatchService = Depends(get_service)):
    try:
        match, ball = await service.add_ball(match_id, req.to_input())
        return {"match": match.to_dict(), "ball": ball.to_dict()}
    except ScoringError as e:
        raise _http_error(e)


# -----------------------
# Squads for the scorer (roster service, optional)
# -----------------------
@app.get("/api/matches/{match_id}/squads")
async def get_squads(match_id: str, service: MatchService = Depends(get_service)):
    if not roster_client.ROSTER_ENABLED:
        raise HTTPException(
            status_code=409,
            detail="Roster lookup is disabled (ROSTER_ENABLED=0).",
        )

    try:
        match = await service.get_match(match_id)
    except ScoringError as e:
        raise _http_error(e)

    try:
        squads = await run_in_threadpool(roster_client.get_squads, match.team1, match.team2)
        return {"matchId": match.match_id, "squads": squads}
    except RosterError as e:
        raise HTTPException(status_code=502, detail=f"Unable to fetch squads: {str(e)}")


# -----------------------
# Push channel
# -----------------------
@app.websocket("/ws")
async def live_updates(websocket: WebSocket):
    await manager.connect(websocket)
    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict):
                await manager.handle_message(websocket, message)
    except WebSocketDisconnect:
        pass
    finally:
        await manager.disconnect(websocket)
