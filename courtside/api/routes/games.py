"""Game ingestion and inspection endpoints."""

from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from courtside.api.dependencies import get_active_strategies, get_pipeline, get_reducer
from courtside.domain.definitions import Strategy
from courtside.domain.game import GameDelta, GameSnapshot
from courtside.domain.signals import SignalTransition, TriggerFireEvent
from courtside.services.context_builder import build_context
from courtside.services.game_state import GameStateReducer
from courtside.services.pipeline import SignalPipeline

router = APIRouter(prefix="/api/games", tags=["games"])
logger = structlog.get_logger(__name__)


class CorrectionOut(BaseModel):
    """Field rejected from an inbound delta."""

    game_id: str
    field: str
    inbound: Any
    retained: Any
    reason: str


class DeltaResponse(BaseModel):
    """Result of ingesting one game delta."""

    snapshot: GameSnapshot
    corrections: list[CorrectionOut]
    fires: list[TriggerFireEvent]
    transitions: list[SignalTransition]


@router.post("/delta", response_model=DeltaResponse)
async def ingest_delta(
    delta: GameDelta,
    pipeline: SignalPipeline = Depends(get_pipeline),
    strategies: list[Strategy] = Depends(get_active_strategies),
):
    """
    Ingest a game update.

    The delta is merged into the stored game (regressive fields are
    rejected and reported as corrections), then every active strategy
    is evaluated against the result.
    """
    result = await pipeline.process_delta(delta, strategies)
    return DeltaResponse(
        snapshot=result.snapshot,
        corrections=[CorrectionOut(**c.to_dict()) for c in result.corrections],
        fires=result.fires,
        transitions=result.transitions,
    )


@router.get("", response_model=list[GameSnapshot])
async def list_games(reducer: GameStateReducer = Depends(get_reducer)):
    """List every tracked game."""
    return await reducer.all_games()


@router.get("/{game_id}", response_model=GameSnapshot)
async def get_game(game_id: str, reducer: GameStateReducer = Depends(get_reducer)):
    """Get the stored snapshot for a game."""
    snapshot = await reducer.get(game_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return snapshot


@router.get("/{game_id}/context", response_model=dict[str, Any])
async def get_game_context(
    game_id: str, reducer: GameStateReducer = Depends(get_reducer)
):
    """Get the evaluation context derived from a game's current state."""
    snapshot = await reducer.get(game_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return build_context(snapshot).to_dict()
