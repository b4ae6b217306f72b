"""Backtest task.

Loads strategies and the historical archive from the record store,
replays them, and writes the outcome to ``backtest_runs``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from celery import shared_task
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.config import get_engine_config
from courtside.models.base import get_task_session
from courtside.models.records import BacktestRun
from courtside.services.backtest import BacktestEngine, compare_strategies
from courtside.services.repository import HistoricalArchive, StrategyRepository

logger = structlog.get_logger(__name__)


async def run_stored_backtest(
    session: AsyncSession,
    strategy_ids: list[str],
    limit: Optional[int] = None,
) -> dict[str, Any]:
    """Backtest stored strategies over the stored corpus and log the run."""
    started_at = datetime.now(timezone.utc)
    config = get_engine_config()
    job_status = "running"
    error_message = None
    stats: dict[str, Any] = {"strategy_ids": strategy_ids, "games_replayed": 0}

    run = BacktestRun(started_at=started_at, status=job_status, strategy_ids=strategy_ids)
    session.add(run)
    await session.commit()

    try:
        strategies = await StrategyRepository(session).get_strategies(strategy_ids)
        if not strategies:
            raise ValueError(f"no valid strategies among {strategy_ids}")

        corpus = await HistoricalArchive(session).load(
            limit=limit or config.backtest.corpus_limit
        )
        result = await BacktestEngine(config.backtest, config.stake).run(strategies, corpus)

        stats = result.to_dict()
        stats["comparison"] = compare_strategies(result.summaries)
        job_status = "success"
        run.games_replayed = result.games_replayed
        run.partial = result.partial

        logger.info(
            "backtest_task_complete",
            run_id=run.id,
            strategies=len(strategies),
            games_replayed=result.games_replayed,
            skipped_records=result.skipped_records,
            duration_seconds=(datetime.now(timezone.utc) - started_at).total_seconds(),
        )

    except Exception as e:
        job_status = "failed"
        error_message = str(e)
        logger.error("backtest_task_failed", run_id=run.id, error=str(e))

    finally:
        run.completed_at = datetime.now(timezone.utc)
        run.status = job_status
        run.error_message = error_message
        run.results = stats
        await session.commit()

    stats["status"] = job_status
    stats["run_id"] = run.id
    return stats


@shared_task(name="courtside.tasks.backtest.run_backtest_task")
def run_backtest_task(
    strategy_ids: list[str], limit: Optional[int] = None
) -> dict[str, Any]:
    """
    Celery task to backtest stored strategies.

    Triggered from ``POST /api/backtest/jobs``.
    """
    async def _run():
        async with get_task_session() as db:
            return await run_stored_backtest(db, strategy_ids, limit)

    return asyncio.run(_run())
