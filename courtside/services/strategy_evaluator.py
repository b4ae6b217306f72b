"""Strategy evaluator.

Runs each active strategy's eligible triggers against a game's current
context and drives the signal registry:

- no active signal: only entry triggers are eligible, gated by the
  strategy's rules
- active signal: only close triggers are eligible

Sequential strategies are staged: only the next unfired trigger (by
``order``) is eligible. Entry stages before the last entry trigger just
advance the stage; the last entry stage opens the signal. Parallel
strategies evaluate every eligible trigger and the lowest ``order``
passing trigger fires. Either way a strategy fires at most once per
cycle.

Used unchanged by the live pipeline and the backtest.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import structlog

from courtside.domain.context import EvaluationContext
from courtside.domain.definitions import BetSide, Market, Strategy, Trigger, TriggerMode
from courtside.domain.game import GameSnapshot, PlayerMatchup
from courtside.domain.signals import (
    Outcome,
    SignalSlot,
    SignalTransition,
    TriggerFireEvent,
)
from courtside.services.conditions import TriggerEvaluation, evaluate_trigger, passes_rules
from courtside.services.context_builder import build_context, snapshot_trigger
from courtside.services.outcomes import grade_bet
from courtside.services.signal_registry import SignalRegistry

logger = structlog.get_logger(__name__)


@dataclass
class EvaluationCycle:
    """Everything one evaluation pass produced."""

    fires: list[TriggerFireEvent] = field(default_factory=list)
    transitions: list[SignalTransition] = field(default_factory=list)

    def extend(self, other: "EvaluationCycle") -> None:
        self.fires.extend(other.fires)
        self.transitions.extend(other.transitions)


def eligible_triggers(strategy: Strategy, slot: SignalSlot) -> list[Trigger]:
    """Triggers that may fire given the pair's current signal state."""
    has_active = slot.active is not None

    if strategy.trigger_mode is TriggerMode.SEQUENTIAL:
        fired = set(slot.fired_trigger_ids)
        upcoming = next((t for t in strategy.triggers if t.id not in fired), None)
        if upcoming is None or upcoming.is_entry == has_active:
            return []
        return [upcoming]

    return strategy.close_triggers if has_active else strategy.entry_triggers


class StrategyEvaluator:
    """Evaluates strategies for one game and records signal transitions."""

    def __init__(self, registry: SignalRegistry):
        self.registry = registry

    async def evaluate(
        self,
        strategies: list[Strategy],
        snapshot: GameSnapshot,
        players: Optional[PlayerMatchup] = None,
        at: Optional[datetime] = None,
    ) -> EvaluationCycle:
        """Run one evaluation cycle for a game.

        Only games that are live or at halftime are evaluated.
        """
        cycle = EvaluationCycle()
        if not snapshot.status.in_play:
            return cycle

        for strategy in strategies:
            if not strategy.is_active:
                continue
            cycle.extend(await self._evaluate_strategy(strategy, snapshot, players, at))
        return cycle

    async def _evaluate_strategy(
        self,
        strategy: Strategy,
        snapshot: GameSnapshot,
        players: Optional[PlayerMatchup],
        at: Optional[datetime],
    ) -> EvaluationCycle:
        cycle = EvaluationCycle()
        slot = await self.registry.get_slot(strategy.id, snapshot.game_id) or SignalSlot()
        context = build_context(snapshot, players, previous=slot.last_fire)

        candidates = eligible_triggers(strategy, slot)
        if not candidates:
            return cycle

        if slot.active is None:
            check = passes_rules(strategy.rules, context)
            if not check.passed:
                logger.debug(
                    "strategy_rules_blocked",
                    strategy_id=strategy.id,
                    game_id=snapshot.game_id,
                    reason=check.reason,
                )
                return cycle

        for trigger in candidates:
            evaluation = evaluate_trigger(trigger, context)
            if evaluation.passed:
                await self._fire(strategy, slot, evaluation, context, at, cycle)
                break

        return cycle

    async def _fire(
        self,
        strategy: Strategy,
        slot: SignalSlot,
        evaluation: TriggerEvaluation,
        context: EvaluationContext,
        at: Optional[datetime],
        cycle: EvaluationCycle,
    ) -> None:
        trigger = evaluation.trigger
        fire = snapshot_trigger(trigger.id, context)

        if trigger.is_entry:
            entries = strategy.entry_triggers
            is_final_stage = (
                strategy.trigger_mode is TriggerMode.PARALLEL
                or trigger.id == entries[-1].id
            )
            if is_final_stage:
                transition = await self.registry.open(
                    strategy.id, context.game_id, context,
                    fire=fire, odds=trigger.odds, at=at,
                )
                if transition is None:
                    return
                cycle.transitions.append(transition)
            else:
                await self.registry.record_stage(strategy.id, context.game_id, fire)
        else:
            active = slot.active
            outcome = grade_bet(
                strategy.market,
                strategy.bet_side,
                active.entry_value,
                context.home_score,
                context.away_score,
            )
            if outcome is None:
                logger.warning(
                    "signal_ungraded",
                    strategy_id=strategy.id,
                    game_id=context.game_id,
                    market=strategy.market.value,
                )
                outcome = Outcome.PUSHED
            transition = await self.registry.close(
                strategy.id, context.game_id, context, outcome, fire=fire, at=at,
            )
            if transition is None:
                return
            cycle.transitions.append(transition)

        logger.info(
            "trigger_fired",
            strategy_id=strategy.id,
            game_id=context.game_id,
            trigger_id=trigger.id,
            entry_or_close=trigger.entry_or_close.value,
            quarter=context.quarter,
            time_remaining=context.time_remaining,
        )
        cycle.fires.append(
            TriggerFireEvent(
                strategy_id=strategy.id,
                strategy_name=strategy.name,
                game_id=context.game_id,
                trigger_id=trigger.id,
                trigger_name=trigger.name,
                entry_or_close=trigger.entry_or_close,
                matched_conditions=evaluation.matched_conditions,
                context_snapshot=context.to_dict(),
                trigger_snapshot=fire,
            )
        )

    async def finalize_game(
        self,
        strategies: list[Strategy],
        snapshot: GameSnapshot,
        at: Optional[datetime] = None,
    ) -> EvaluationCycle:
        """Force-close every signal still active for a finished game.

        Signals are graded against the final score. Strategies missing
        from ``strategies`` are graded as leading-team spread bets.
        """
        cycle = EvaluationCycle()
        by_id = {s.id: s for s in strategies}
        context = build_context(snapshot)

        for signal in await self.registry.get_all_active():
            if signal.game_id != snapshot.game_id:
                continue
            strategy = by_id.get(signal.strategy_id)
            market = strategy.market if strategy else Market.SPREAD
            bet_side = strategy.bet_side if strategy else BetSide.LEADING_TEAM

            outcome = grade_bet(
                market, bet_side, signal.entry_value,
                snapshot.home_score, snapshot.away_score,
            )
            if outcome is None:
                logger.warning(
                    "signal_ungraded",
                    strategy_id=signal.strategy_id,
                    game_id=snapshot.game_id,
                    market=market.value,
                )
                outcome = Outcome.PUSHED

            transition = await self.registry.close(
                signal.strategy_id, snapshot.game_id, context, outcome, at=at
            )
            if transition is not None:
                cycle.transitions.append(transition)

        if cycle.transitions:
            logger.info(
                "game_finalized",
                game_id=snapshot.game_id,
                signals_closed=len(cycle.transitions),
            )
        return cycle
