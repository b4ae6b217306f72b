"""Active signal registry.

One ``SignalSlot`` per (strategy, game) pair, kept in the injected state
store. The slot holds the latest signal plus the sequential staging
progress for the current sequence. At most one signal per pair is ever
active: ``open`` on an active pair and ``close`` on an inactive pair are
ignored, not errors, so redelivered deltas cannot double-enter.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Optional

import structlog

from courtside.domain.context import EvaluationContext
from courtside.domain.signals import (
    Outcome,
    Signal,
    SignalSlot,
    SignalStatus,
    SignalTransition,
    SignalValue,
    TriggerSnapshot,
)
from courtside.services.state_store import KeyedLocks, StateConflictError, StateStore

logger = structlog.get_logger(__name__)

SIGNAL_KEY_PREFIX = "signal:"

# Returns the slot to write (None = leave unchanged) and the transition to report
SlotUpdate = Callable[[SignalSlot], tuple[Optional[SignalSlot], Optional[SignalTransition]]]


def signal_key(strategy_id: str, game_id: str) -> str:
    return f"{SIGNAL_KEY_PREFIX}{strategy_id}:{game_id}"


def capture_value(context: EvaluationContext, odds: Optional[int] = None) -> SignalValue:
    """Freeze the parts of the context a signal needs for grading."""
    return SignalValue(
        quarter=context.quarter,
        time_remaining=context.time_remaining,
        home_score=context.home_score,
        away_score=context.away_score,
        leading_team=context.leading_team,
        spread=context.spread,
        total=context.total,
        moneyline_home=context.home_moneyline,
        moneyline_away=context.away_moneyline,
        odds=odds,
    )


class SignalRegistry:
    """Tracks signal lifecycle per (strategy, game)."""

    def __init__(
        self,
        store: StateStore,
        locks: Optional[KeyedLocks] = None,
        max_retries: int = 5,
    ):
        self.store = store
        self.locks = locks or KeyedLocks()
        self.max_retries = max_retries

    async def get_slot(self, strategy_id: str, game_id: str) -> Optional[SignalSlot]:
        entry = await self.store.get(signal_key(strategy_id, game_id))
        if entry is None:
            return None
        return SignalSlot.model_validate(entry.value)

    async def get_active(self, strategy_id: str, game_id: str) -> Optional[Signal]:
        slot = await self.get_slot(strategy_id, game_id)
        return slot.active if slot else None

    async def get_all_active(self) -> list[Signal]:
        """Snapshot of every active signal, for diagnostics and notifiers."""
        entries = await self.store.scan(SIGNAL_KEY_PREFIX)
        active = []
        for _, entry in entries:
            signal = SignalSlot.model_validate(entry.value).active
            if signal is not None:
                active.append(signal)
        return active

    async def open(
        self,
        strategy_id: str,
        game_id: str,
        context: EvaluationContext,
        fire: Optional[TriggerSnapshot] = None,
        odds: Optional[int] = None,
        at: Optional[datetime] = None,
    ) -> Optional[SignalTransition]:
        """Open a signal unless one is already active for the pair.

        Returns:
            The ``active`` transition, or None when ignored
        """

        def update(slot: SignalSlot):
            if slot.active is not None:
                return None, None
            signal = Signal(
                strategy_id=strategy_id,
                game_id=game_id,
                status=SignalStatus.ACTIVE,
                entry_trigger_id=fire.trigger_id if fire else None,
                entry_value=capture_value(context, odds),
                entry_time=at or datetime.now(timezone.utc),
            )
            fired = slot.fired_trigger_ids + ([fire.trigger_id] if fire else [])
            new_slot = SignalSlot(
                signal=signal,
                fired_trigger_ids=fired,
                last_fire=fire or slot.last_fire,
            )
            return new_slot, SignalTransition.from_signal(signal)

        _, transition = await self._update(signal_key(strategy_id, game_id), update)
        if transition is None:
            logger.debug("signal_open_ignored", strategy_id=strategy_id, game_id=game_id)
        else:
            logger.info(
                "signal_opened",
                strategy_id=strategy_id,
                game_id=game_id,
                quarter=context.quarter,
                home_score=context.home_score,
                away_score=context.away_score,
            )
        return transition

    async def close(
        self,
        strategy_id: str,
        game_id: str,
        context: EvaluationContext,
        outcome: Outcome,
        fire: Optional[TriggerSnapshot] = None,
        at: Optional[datetime] = None,
    ) -> Optional[SignalTransition]:
        """Resolve the active signal for the pair.

        Returns:
            The terminal transition, or None when nothing was active
        """

        def update(slot: SignalSlot):
            active = slot.active
            if active is None:
                return None, None
            closed = active.model_copy(
                update={
                    "status": outcome.status,
                    "close_trigger_id": fire.trigger_id if fire else None,
                    "close_value": capture_value(context, active.entry_value.odds),
                    "close_time": at or datetime.now(timezone.utc),
                }
            )
            # Closing ends the sequence: staging starts over
            return SignalSlot(signal=closed), SignalTransition.from_signal(closed)

        _, transition = await self._update(signal_key(strategy_id, game_id), update)
        if transition is None:
            logger.debug("signal_close_ignored", strategy_id=strategy_id, game_id=game_id)
        else:
            logger.info(
                "signal_closed",
                strategy_id=strategy_id,
                game_id=game_id,
                outcome=outcome.value,
                home_score=context.home_score,
                away_score=context.away_score,
            )
        return transition

    async def record_stage(
        self, strategy_id: str, game_id: str, fire: TriggerSnapshot
    ) -> bool:
        """Mark an intermediate sequential trigger as fired.

        Returns:
            False when the stage had already been recorded
        """

        def update(slot: SignalSlot):
            if fire.trigger_id in slot.fired_trigger_ids:
                return None, None
            new_slot = slot.model_copy(
                update={
                    "fired_trigger_ids": slot.fired_trigger_ids + [fire.trigger_id],
                    "last_fire": fire,
                }
            )
            return new_slot, None

        written, _ = await self._update(signal_key(strategy_id, game_id), update)
        if written:
            logger.debug(
                "trigger_stage_recorded",
                strategy_id=strategy_id,
                game_id=game_id,
                trigger_id=fire.trigger_id,
            )
        return written

    async def _update(
        self, key: str, update: SlotUpdate
    ) -> tuple[bool, Optional[SignalTransition]]:
        """Apply ``update`` under the key lock; report whether anything was written."""
        async with self.locks.hold(key):
            for _ in range(self.max_retries):
                entry = await self.store.get(key)
                slot = SignalSlot.model_validate(entry.value) if entry else SignalSlot()
                new_slot, transition = update(slot)
                if new_slot is None:
                    return False, None
                if await self.store.compare_and_swap(
                    key,
                    entry.version if entry else None,
                    new_slot.model_dump(mode="json"),
                ):
                    return True, transition
        raise StateConflictError(key, self.max_retries)

    async def purge_game(self, game_id: str) -> int:
        """Delete the resolved slots of a game; active signals are kept.

        Returns:
            Number of slots deleted
        """
        removed = 0
        for key, _ in await self.store.scan(SIGNAL_KEY_PREFIX):
            if not key.endswith(f":{game_id}"):
                continue
            async with self.locks.hold(key):
                # The scanned value may be stale by the time the lock is held
                entry = await self.store.get(key)
                if entry is None or SignalSlot.model_validate(entry.value).active is not None:
                    continue
                await self.store.delete(key)
                removed += 1
        return removed
