"""Live signal pipeline.

Inbound delta -> reducer -> strategy evaluator (or finalization once the
game is final) -> notifier and ledger. Delivery channels (Discord,
webhooks) plug in through the ``Notifier`` protocol.

A whole cycle runs under one per-game lock, so deltas for the same game
are reduced and evaluated in arrival order and a late in-play delta can
never be evaluated after the final one.
"""

from dataclasses import dataclass, field
from typing import Optional, Protocol

import structlog

from courtside.domain.definitions import Strategy
from courtside.domain.game import (
    DataIntegrityCorrection,
    GameDelta,
    GameSnapshot,
    GameStatus,
    PlayerMatchup,
)
from courtside.domain.signals import SignalTransition, TriggerFireEvent
from courtside.services.game_state import GameStateReducer
from courtside.services.strategy_evaluator import StrategyEvaluator

logger = structlog.get_logger(__name__)

CYCLE_KEY_PREFIX = "cycle:"


class Notifier(Protocol):
    async def notify_fire(self, event: TriggerFireEvent) -> None:
        ...

    async def notify_transition(self, transition: SignalTransition) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes events to the structured log."""

    async def notify_fire(self, event: TriggerFireEvent) -> None:
        logger.info(
            "signal_trigger",
            strategy_id=event.strategy_id,
            strategy_name=event.strategy_name,
            game_id=event.game_id,
            trigger_id=event.trigger_id,
            entry_or_close=event.entry_or_close.value,
            matched=[c.describe() for c in event.matched_conditions],
            score=f"{event.trigger_snapshot.home_score}-{event.trigger_snapshot.away_score}",
        )

    async def notify_transition(self, transition: SignalTransition) -> None:
        logger.info(
            "signal_transition",
            strategy_id=transition.strategy_id,
            game_id=transition.game_id,
            status=transition.status.value,
        )


class TransitionLedger(Protocol):
    async def record(self, transition: SignalTransition) -> None:
        ...


@dataclass
class PipelineResult:
    snapshot: GameSnapshot
    corrections: list[DataIntegrityCorrection] = field(default_factory=list)
    fires: list[TriggerFireEvent] = field(default_factory=list)
    transitions: list[SignalTransition] = field(default_factory=list)


class SignalPipeline:
    """Wires the reducer and evaluator to outbound collaborators."""

    def __init__(
        self,
        reducer: GameStateReducer,
        evaluator: StrategyEvaluator,
        notifier: Optional[Notifier] = None,
        ledger: Optional[TransitionLedger] = None,
    ):
        self.reducer = reducer
        self.evaluator = evaluator
        self.notifier = notifier or LoggingNotifier()
        self.ledger = ledger

    async def process_delta(
        self,
        delta: GameDelta,
        strategies: list[Strategy],
        players: Optional[PlayerMatchup] = None,
    ) -> PipelineResult:
        """Apply one inbound delta and evaluate strategies against it."""
        # Distinct from the reducer and registry keys: KeyedLocks is not reentrant
        async with self.reducer.locks.hold(f"{CYCLE_KEY_PREFIX}{delta.game_id}"):
            merged = await self.reducer.apply(delta)
            snapshot = merged.snapshot

            if snapshot.status is GameStatus.FINAL:
                cycle = await self.evaluator.finalize_game(strategies, snapshot)
            else:
                cycle = await self.evaluator.evaluate(strategies, snapshot, players)

        for event in cycle.fires:
            await self.notifier.notify_fire(event)
        for transition in cycle.transitions:
            await self.notifier.notify_transition(transition)
            if self.ledger is not None:
                await self.ledger.record(transition)

        logger.debug(
            "delta_processed",
            game_id=delta.game_id,
            status=snapshot.status.value,
            corrections=len(merged.corrections),
            fires=len(cycle.fires),
        )
        return PipelineResult(
            snapshot=snapshot,
            corrections=merged.corrections,
            fires=cycle.fires,
            transitions=cycle.transitions,
        )
