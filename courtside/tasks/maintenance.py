"""Live state maintenance.

Finished games stay in the state store so late line updates and
diagnostic reads still work. Once nothing is active for a game any
more, its resolved signal slots are dropped and its snapshot is replaced
by a small final tombstone.
"""

import asyncio
from typing import Any

import redis.asyncio as redis
import structlog
from celery import shared_task

from courtside.config import get_settings
from courtside.domain.game import GameStatus
from courtside.services.game_state import GameStateReducer
from courtside.services.signal_registry import SignalRegistry
from courtside.services.state_store import build_state_store

logger = structlog.get_logger(__name__)


async def prune_finished_games(
    reducer: GameStateReducer, registry: SignalRegistry
) -> dict[str, Any]:
    """
    Remove final games with no active signal left.

    Returns statistics about what was pruned.
    """
    stats = {
        "games_checked": 0,
        "games_pruned": 0,
        "slots_pruned": 0,
        "skipped_active": 0,
    }

    active_games = {signal.game_id for signal in await registry.get_all_active()}

    for snapshot in await reducer.all_games():
        stats["games_checked"] += 1
        if snapshot.status is not GameStatus.FINAL:
            continue
        if snapshot.game_id in active_games:
            stats["skipped_active"] += 1
            continue

        stats["slots_pruned"] += await registry.purge_game(snapshot.game_id)
        await reducer.retire(snapshot.game_id)
        stats["games_pruned"] += 1

    logger.info("prune_finished_games_complete", **stats)
    return stats


@shared_task(name="courtside.tasks.maintenance.prune_finished_games_task")
def prune_finished_games_task() -> dict[str, Any]:
    """
    Celery task to prune finished games from live state.

    Only meaningful with the redis backend: the in-memory store lives in
    the API process and the worker cannot see it.
    """
    settings = get_settings()
    if not settings.uses_redis_state:
        logger.info("prune_finished_games_skipped", state_backend=settings.state_backend)
        return {"skipped": True}

    async def _run():
        client = redis.from_url(settings.redis_url)
        try:
            store = build_state_store(settings, redis_client=client)
            return await prune_finished_games(
                GameStateReducer(store), SignalRegistry(store)
            )
        finally:
            await client.aclose()

    return asyncio.run(_run())
