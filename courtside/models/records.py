"""Record store tables for Courtside.

Strategies and triggers are authored elsewhere (UI, API) and read here.
Trigger conditions are kept as a JSON-encoded string, exactly as the
authoring tools write them; they are parsed into typed conditions by
the repository before anything is evaluated.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from courtside.models.base import Base, TimestampMixin


class StrategyRecord(Base, TimestampMixin):
    """User-defined strategy."""

    __tablename__ = "strategies"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trigger_mode: Mapped[str] = mapped_column(
        String(20), default="sequential", doc="'sequential' or 'parallel'"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    market: Mapped[str] = mapped_column(String(20), default="spread")
    bet_side: Mapped[str] = mapped_column(String(20), default="leading_team")
    rules: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONB, nullable=True)

    # Relationships
    triggers: Mapped[list["TriggerRecord"]] = relationship(
        "TriggerRecord",
        back_populates="strategy",
        order_by="TriggerRecord.order_index",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Strategy {self.name} (active={self.is_active})>"


class TriggerRecord(Base, TimestampMixin):
    """Trigger belonging to a strategy."""

    __tablename__ = "triggers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    strategy_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("strategies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(200), default="")
    conditions: Mapped[str] = mapped_column(
        Text, nullable=False, doc="JSON-encoded list of conditions"
    )
    order_index: Mapped[int] = mapped_column(Integer, default=0)
    entry_or_close: Mapped[str] = mapped_column(String(10), default="entry")
    odds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Relationships
    strategy: Mapped["StrategyRecord"] = relationship(
        "StrategyRecord", back_populates="triggers"
    )

    __table_args__ = (Index("idx_triggers_strategy", "strategy_id", "order_index"),)

    def __repr__(self) -> str:
        return f"<Trigger {self.name} ({self.entry_or_close})>"


class SignalRecord(Base, TimestampMixin):
    """Signal lifecycle ledger row, one per opened signal."""

    __tablename__ = "signals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    strategy_id: Mapped[str] = mapped_column(String(64), nullable=False)
    game_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(10), nullable=False, doc="'active', 'won', 'lost', 'pushed'"
    )
    entry_value: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    entry_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    close_value: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)
    close_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        Index("idx_signals_pair", "strategy_id", "game_id"),
        Index("idx_signals_active", "status", postgresql_where=(status == "active")),
    )

    def __repr__(self) -> str:
        return f"<Signal {self.strategy_id}/{self.game_id} status={self.status}>"


class HistoricalGameRecord(Base, TimestampMixin):
    """Finished game archived for backtesting."""

    __tablename__ = "historical_games"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    game_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    league: Mapped[str | None] = mapped_column(String(100), nullable=True)
    home_team: Mapped[str | None] = mapped_column(String(200), nullable=True)
    away_team: Mapped[str | None] = mapped_column(String(200), nullable=True)

    # Final score
    home_score: Mapped[int] = mapped_column(Integer, nullable=False)
    away_score: Mapped[int] = mapped_column(Integer, nullable=False)

    # Quarter breakdown
    q1_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q1_away: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q2_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q2_away: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q3_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q3_away: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q4_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    q4_away: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Opening lines
    spread: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    total: Mapped[Decimal | None] = mapped_column(Numeric(6, 1), nullable=True)
    moneyline_home: Mapped[int | None] = mapped_column(Integer, nullable=True)
    moneyline_away: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Derived outcome, written by the importer
    winner: Mapped[str | None] = mapped_column(String(10), nullable=True)
    spread_result: Mapped[str | None] = mapped_column(String(20), nullable=True)
    total_result: Mapped[str | None] = mapped_column(String(10), nullable=True)

    __table_args__ = (Index("idx_historical_games_date", "game_date"),)

    def __repr__(self) -> str:
        return f"<HistoricalGame {self.home_team} v {self.away_team} ({self.game_date})>"


class BacktestRun(Base):
    """
    Backtest execution log.

    Written by the Celery backtest task so results can be reviewed
    after the worker has moved on.
    """

    __tablename__ = "backtest_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, doc="'running', 'success', 'failed'"
    )
    strategy_ids: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    games_replayed: Mapped[int] = mapped_column(Integer, default=0)
    partial: Mapped[bool] = mapped_column(Boolean, default=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    results: Mapped[dict[str, Any] | None] = mapped_column(JSONB, nullable=True)

    def __repr__(self) -> str:
        return f"<BacktestRun {self.id} status={self.status}>"
