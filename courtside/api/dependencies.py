"""FastAPI dependencies for Courtside."""

from collections.abc import AsyncGenerator
from functools import lru_cache
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.config import get_engine_config, get_settings
from courtside.domain.definitions import Strategy
from courtside.models.base import async_session_factory
from courtside.services.game_state import GameStateReducer
from courtside.services.pipeline import SignalPipeline, TransitionLedger
from courtside.services.repository import SignalLedger, StrategyRepository
from courtside.services.signal_registry import SignalRegistry
from courtside.services.state_store import KeyedLocks, StateStore, build_state_store
from courtside.services.strategy_evaluator import StrategyEvaluator


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_redis() -> AsyncGenerator[redis.Redis, None]:
    """Get Redis client dependency."""
    settings = get_settings()
    client = redis.from_url(settings.redis_url)
    try:
        yield client
    finally:
        await client.aclose()


@lru_cache
def get_state_store() -> StateStore:
    """Process-wide live state store (shared by every request)."""
    return build_state_store(get_settings())


@lru_cache
def get_keyed_locks() -> KeyedLocks:
    return KeyedLocks()


def get_reducer(
    store: StateStore = Depends(get_state_store),
    locks: KeyedLocks = Depends(get_keyed_locks),
) -> GameStateReducer:
    retries = get_engine_config().reducer.cas_max_retries
    return GameStateReducer(store, locks, max_retries=retries)


def get_registry(
    store: StateStore = Depends(get_state_store),
    locks: KeyedLocks = Depends(get_keyed_locks),
) -> SignalRegistry:
    retries = get_engine_config().reducer.cas_max_retries
    return SignalRegistry(store, locks, max_retries=retries)


async def get_active_strategies(
    db: AsyncSession = Depends(get_db),
) -> list[Strategy]:
    """Active strategies from the record store."""
    return await StrategyRepository(db).get_active_strategies()


def get_ledger(db: AsyncSession = Depends(get_db)) -> Optional[TransitionLedger]:
    return SignalLedger(db)


def get_pipeline(
    reducer: GameStateReducer = Depends(get_reducer),
    registry: SignalRegistry = Depends(get_registry),
    ledger: Optional[TransitionLedger] = Depends(get_ledger),
) -> SignalPipeline:
    return SignalPipeline(reducer, StrategyEvaluator(registry), ledger=ledger)
