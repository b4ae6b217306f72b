"""Record store adapters.

This is the parsing boundary: database rows come in, typed ``Strategy``
definitions and raw corpus mappings go out. Invalid strategies are
logged and skipped so one bad definition cannot stop evaluation.
"""

from datetime import datetime
from typing import Any, Optional

import structlog
from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from courtside.domain.definitions import Strategy
from courtside.domain.signals import SignalStatus, SignalTransition
from courtside.models.records import (
    HistoricalGameRecord,
    SignalRecord,
    StrategyRecord,
)

logger = structlog.get_logger(__name__)


def strategy_from_record(record: StrategyRecord) -> Strategy:
    """Convert a strategy row and its triggers into a typed Strategy.

    Raises:
        pydantic.ValidationError: if any part of the definition is invalid
    """
    return Strategy.model_validate(
        {
            "id": record.id,
            "name": record.name,
            "trigger_mode": record.trigger_mode,
            "is_active": record.is_active,
            "market": record.market,
            "bet_side": record.bet_side,
            "rules": record.rules or [],
            "triggers": [
                {
                    "id": t.id,
                    "strategy_id": t.strategy_id,
                    "name": t.name,
                    "conditions": t.conditions,
                    "order": t.order_index,
                    "entry_or_close": t.entry_or_close,
                    "odds": t.odds,
                }
                for t in record.triggers
            ],
        }
    )


def historical_from_record(record: HistoricalGameRecord) -> dict[str, Any]:
    """Raw corpus mapping for one archived game (validated by the backtest)."""
    quarters = {
        f"q{q}_{side}": getattr(record, f"q{q}_{side}")
        for q in range(1, 5)
        for side in ("home", "away")
    }
    return {
        "id": record.id,
        "date": record.game_date,
        "league": record.league,
        "home_team": record.home_team,
        "away_team": record.away_team,
        "home_score": record.home_score,
        "away_score": record.away_score,
        "quarter_scores": quarters,
        "spread": float(record.spread) if record.spread is not None else None,
        "total": float(record.total) if record.total is not None else None,
        "moneyline_home": record.moneyline_home,
        "moneyline_away": record.moneyline_away,
    }


class StrategyRepository:
    """Loads strategy definitions from the record store."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, stmt) -> list[Strategy]:
        result = await self.session.execute(stmt)
        strategies = []
        for record in result.scalars().all():
            try:
                strategies.append(strategy_from_record(record))
            except ValidationError as e:
                logger.warning(
                    "strategy_definition_invalid",
                    strategy_id=record.id,
                    error=str(e),
                )
        return strategies

    async def get_active_strategies(self) -> list[Strategy]:
        return await self._load(
            select(StrategyRecord).where(StrategyRecord.is_active == True)  # noqa: E712
        )

    async def get_strategies(self, strategy_ids: list[str]) -> list[Strategy]:
        return await self._load(
            select(StrategyRecord).where(StrategyRecord.id.in_(strategy_ids))
        )

    async def get_strategy(self, strategy_id: str) -> Optional[Strategy]:
        found = await self.get_strategies([strategy_id])
        return found[0] if found else None


class SignalLedger:
    """Persists signal lifecycle transitions."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, transition: SignalTransition) -> None:
        if transition.status is SignalStatus.ACTIVE:
            self.session.add(
                SignalRecord(
                    strategy_id=transition.strategy_id,
                    game_id=transition.game_id,
                    status=transition.status.value,
                    entry_value=transition.entry_value.model_dump(mode="json"),
                    entry_time=transition.entry_time,
                )
            )
        else:
            await self.session.execute(
                update(SignalRecord)
                .where(
                    SignalRecord.strategy_id == transition.strategy_id,
                    SignalRecord.game_id == transition.game_id,
                    SignalRecord.status == SignalStatus.ACTIVE.value,
                )
                .values(
                    status=transition.status.value,
                    close_value=(
                        transition.close_value.model_dump(mode="json")
                        if transition.close_value
                        else None
                    ),
                    close_time=transition.close_time,
                )
            )
        await self.session.flush()
        logger.debug(
            "signal_transition_recorded",
            strategy_id=transition.strategy_id,
            game_id=transition.game_id,
            status=transition.status.value,
        )


class HistoricalArchive:
    """Reads the historical game corpus, oldest first."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def load(
        self,
        limit: int = 1000,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> list[dict[str, Any]]:
        stmt = select(HistoricalGameRecord)
        if from_date is not None:
            stmt = stmt.where(HistoricalGameRecord.game_date >= from_date)
        if to_date is not None:
            stmt = stmt.where(HistoricalGameRecord.game_date <= to_date)
        stmt = stmt.order_by(
            HistoricalGameRecord.game_date.asc(), HistoricalGameRecord.id
        ).limit(limit)

        result = await self.session.execute(stmt)
        return [historical_from_record(r) for r in result.scalars().all()]
