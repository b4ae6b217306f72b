"""Backtest engine.

Replays a historical corpus through the live code path: each game's
synthetic deltas go through the game state reducer and the strategy
evaluator against a fresh in-memory store, then any signal left open is
force-closed against the final score.

Games are independent and run concurrently (bounded by
``max_concurrency``); inside a game the deltas are applied strictly in
order. A run can be bounded by a game count or a wall-clock budget; when
the budget cuts it short the summaries cover the games already replayed
and are flagged as partial.
"""

import asyncio
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional, Union

import structlog
from pydantic import ValidationError

from courtside.config.engine import BacktestConfig, StakeConfig, get_engine_config
from courtside.domain.definitions import Strategy
from courtside.domain.game import GameStatus, HistoricalGame
from courtside.domain.signals import Outcome, SignalStatus
from courtside.services.backtest.replay import replay_deltas
from courtside.services.game_state import GameStateReducer
from courtside.services.outcomes import bet_odds, settle
from courtside.services.signal_registry import SignalRegistry
from courtside.services.state_store import InMemoryStateStore, KeyedLocks
from courtside.services.strategy_evaluator import EvaluationCycle, StrategyEvaluator

logger = structlog.get_logger(__name__)

CorpusRecord = Union[HistoricalGame, Mapping[str, Any]]


@dataclass
class BetRecord:
    """One resolved bet from a replay."""

    game_id: str
    outcome: Outcome
    odds: Optional[int]
    profit: Decimal
    entry_quarter: int
    entry_time_remaining: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "game_id": self.game_id,
            "outcome": self.outcome.value,
            "odds": self.odds,
            "profit": float(self.profit),
            "entry_quarter": self.entry_quarter,
            "entry_time_remaining": self.entry_time_remaining,
        }


@dataclass
class BacktestSummary:
    """Aggregate performance of one strategy across the corpus."""

    strategy_id: str
    strategy_name: str
    games_analyzed: int = 0
    triggers_found: int = 0
    potential_bets: int = 0
    wins: int = 0
    losses: int = 0
    pushes: int = 0
    total_staked: Decimal = Decimal("0")
    net_profit: Decimal = Decimal("0")
    bets: list[BetRecord] = field(default_factory=list)

    @property
    def win_rate(self) -> float:
        """Wins over decided bets; pushes are excluded."""
        decided = self.wins + self.losses
        return self.wins / decided if decided else 0.0

    @property
    def roi(self) -> float:
        """Net profit over stake across every resolved bet, pushes included."""
        if not self.total_staked:
            return 0.0
        return float((self.net_profit / self.total_staked).quantize(Decimal("0.0001")))

    def record(self, bet: BetRecord, stake: Decimal) -> None:
        self.bets.append(bet)
        self.net_profit += bet.profit
        self.total_staked += stake
        if bet.outcome is Outcome.WON:
            self.wins += 1
        elif bet.outcome is Outcome.LOST:
            self.losses += 1
        else:
            self.pushes += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy_id": self.strategy_id,
            "strategy_name": self.strategy_name,
            "games_analyzed": self.games_analyzed,
            "triggers_found": self.triggers_found,
            "potential_bets": self.potential_bets,
            "wins": self.wins,
            "losses": self.losses,
            "pushes": self.pushes,
            "win_rate": round(self.win_rate, 4),
            "roi": self.roi,
            "net_profit": float(self.net_profit),
            "bets": [b.to_dict() for b in self.bets],
        }


@dataclass
class BacktestResult:
    summaries: list[BacktestSummary]
    partial: bool = False
    games_replayed: int = 0
    skipped_records: int = 0
    elapsed_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "summaries": [s.to_dict() for s in self.summaries],
            "partial": self.partial,
            "games_replayed": self.games_replayed,
            "skipped_records": self.skipped_records,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


def compare_strategies(summaries: list[BacktestSummary]) -> Optional[dict[str, str]]:
    """Pick the leaders among several strategy summaries."""
    if not summaries:
        return None
    return {
        "best_win_rate": max(summaries, key=lambda s: s.win_rate).strategy_id,
        "best_roi": max(summaries, key=lambda s: s.roi).strategy_id,
        "most_triggers": max(summaries, key=lambda s: s.triggers_found).strategy_id,
    }


class BacktestEngine:
    """Replays historical games through the strategy evaluator."""

    def __init__(
        self,
        config: Optional[BacktestConfig] = None,
        stake: Optional[StakeConfig] = None,
    ):
        engine_config = get_engine_config() if config is None or stake is None else None
        self.config = config or engine_config.backtest
        self.stake = stake or engine_config.stake

    def validate_corpus(
        self, corpus: Iterable[CorpusRecord]
    ) -> tuple[list[HistoricalGame], int]:
        """Validate raw records, skipping malformed ones.

        Returns:
            (valid games in corpus order, number of skipped records)
        """
        games: list[HistoricalGame] = []
        skipped = 0
        for index, record in enumerate(corpus):
            if isinstance(record, HistoricalGame):
                games.append(record)
                continue
            try:
                games.append(HistoricalGame.model_validate(record))
            except ValidationError as e:
                skipped += 1
                logger.warning(
                    "backtest_record_skipped",
                    index=index,
                    game_id=record.get("id") if isinstance(record, Mapping) else None,
                    errors=e.error_count(),
                )
        return games, skipped

    async def replay_game(
        self, strategies: list[Strategy], game: HistoricalGame
    ) -> EvaluationCycle:
        """Replay one game in chronological order against a fresh store."""
        store = InMemoryStateStore()
        locks = KeyedLocks()
        reducer = GameStateReducer(store, locks)
        evaluator = StrategyEvaluator(SignalRegistry(store, locks))

        cycle = EvaluationCycle()
        for delta in replay_deltas(game, self.config.checkpoints):
            merged = await reducer.apply(delta)
            if merged.snapshot.status is GameStatus.FINAL:
                cycle.extend(await evaluator.finalize_game(strategies, merged.snapshot))
            else:
                cycle.extend(await evaluator.evaluate(strategies, merged.snapshot))
        return cycle

    async def run(
        self,
        strategies: list[Strategy],
        corpus: Iterable[CorpusRecord],
        max_games: Optional[int] = None,
        max_seconds: Optional[float] = None,
    ) -> BacktestResult:
        """Backtest strategies over a corpus.

        Args:
            strategies: Strategies to replay; inactive ones are skipped
            corpus: Historical games, oldest first
            max_games: Replay at most this many games
            max_seconds: Stop starting new games after this long

        Returns:
            BacktestResult with one summary per active strategy
        """
        started = time.monotonic()
        max_games = max_games if max_games is not None else self.config.max_games
        max_seconds = max_seconds if max_seconds is not None else self.config.max_seconds

        active = [s for s in strategies if s.is_active]
        games, skipped = self.validate_corpus(corpus)

        partial = False
        if max_games is not None and len(games) > max_games:
            games = games[:max_games]
            partial = True

        deadline = started + max_seconds if max_seconds is not None else None
        semaphore = asyncio.Semaphore(max(1, self.config.max_concurrency))

        async def run_one(game: HistoricalGame) -> Optional[EvaluationCycle]:
            async with semaphore:
                if deadline is not None and time.monotonic() >= deadline:
                    return None
                return await self.replay_game(active, game)

        cycles = await asyncio.gather(*(run_one(g) for g in games))

        summaries = {
            s.id: BacktestSummary(strategy_id=s.id, strategy_name=s.name) for s in active
        }
        by_id = {s.id: s for s in active}
        replayed = 0

        # Aggregate in corpus order so results do not depend on scheduling
        for game, cycle in zip(games, cycles):
            if cycle is None:
                partial = True
                continue
            replayed += 1
            for summary in summaries.values():
                summary.games_analyzed += 1
            for fire in cycle.fires:
                summaries[fire.strategy_id].triggers_found += 1
            for transition in cycle.transitions:
                summary = summaries[transition.strategy_id]
                if transition.status is SignalStatus.ACTIVE:
                    summary.potential_bets += 1
                    continue
                strategy = by_id[transition.strategy_id]
                outcome = Outcome(transition.status.value)
                odds = bet_odds(
                    strategy.market,
                    strategy.bet_side,
                    transition.entry_value,
                    self.stake.default_odds,
                )
                summary.record(
                    BetRecord(
                        game_id=game.id,
                        outcome=outcome,
                        odds=odds,
                        profit=settle(outcome, self.stake.base_stake, odds),
                        entry_quarter=transition.entry_value.quarter,
                        entry_time_remaining=transition.entry_value.time_remaining,
                    ),
                    self.stake.base_stake,
                )

        elapsed = time.monotonic() - started
        logger.info(
            "backtest_complete",
            strategies=len(active),
            games_replayed=replayed,
            skipped_records=skipped,
            partial=partial,
            elapsed_seconds=round(elapsed, 3),
        )
        return BacktestResult(
            summaries=list(summaries.values()),
            partial=partial,
            games_replayed=replayed,
            skipped_records=skipped,
            elapsed_seconds=elapsed,
        )
