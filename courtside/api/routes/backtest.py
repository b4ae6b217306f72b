"""Backtest endpoints.

``POST /api/backtest`` replays a corpus supplied in the request body and
answers synchronously. ``POST /api/backtest/jobs`` hands a stored-corpus
run to the Celery worker instead.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from courtside.domain.definitions import Strategy
from courtside.services.backtest import BacktestEngine, compare_strategies

router = APIRouter(prefix="/api/backtest", tags=["backtest"])
logger = structlog.get_logger(__name__)


class BacktestRequest(BaseModel):
    """Strategies plus an ordered historical corpus."""

    strategies: list[Strategy] = Field(min_length=1)
    games: list[dict[str, Any]]
    max_games: Optional[int] = Field(None, ge=1)
    max_seconds: Optional[float] = Field(None, gt=0)


class BacktestJobRequest(BaseModel):
    strategy_ids: list[str] = Field(min_length=1)
    limit: Optional[int] = Field(None, ge=1)


class BacktestJobResponse(BaseModel):
    task_id: str
    status: str


@router.post("")
async def run_backtest(request: BacktestRequest) -> dict[str, Any]:
    """
    Run a backtest over the supplied games.

    Malformed game records are skipped and counted in
    ``skipped_records``; the run is flagged ``partial`` if a budget
    stopped it early.
    """
    engine = BacktestEngine()
    result = await engine.run(
        request.strategies,
        request.games,
        max_games=request.max_games,
        max_seconds=request.max_seconds,
    )
    response = result.to_dict()
    response["comparison"] = compare_strategies(result.summaries)
    return response


@router.post("/jobs", response_model=BacktestJobResponse)
async def submit_backtest_job(request: BacktestJobRequest) -> BacktestJobResponse:
    """Queue a backtest of stored strategies over the stored archive."""
    try:
        from courtside.tasks.backtest import run_backtest_task

        result = run_backtest_task.delay(request.strategy_ids, request.limit)
    except Exception as e:
        logger.error("backtest_job_submit_failed", error=str(e))
        raise HTTPException(
            status_code=500, detail=f"Failed to submit backtest: {str(e)}"
        )

    logger.info(
        "backtest_job_submitted",
        task_id=result.id,
        strategy_ids=request.strategy_ids,
    )
    return BacktestJobResponse(task_id=result.id, status="submitted")
