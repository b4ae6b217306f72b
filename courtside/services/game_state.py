"""Game state reducer.

Merges inbound deltas into the authoritative ``GameSnapshot`` while
keeping upstream noise out of it:

- scores never go down while a game is live or at halftime
- the quarter never goes down while a game is live or at halftime
- a started game never returns to ``scheduled``
- nothing about the score, clock or status changes once ``final``
- the halftime score is captured once and never overwritten

Rejected fields keep their stored value and produce a
``DataIntegrityCorrection`` note; the rest of the delta still applies.
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import structlog

from courtside.domain.game import (
    DataIntegrityCorrection,
    GameDelta,
    GameSnapshot,
    GameStatus,
    HalftimeScore,
)
from courtside.services.state_store import KeyedLocks, StateConflictError, StateStore

logger = structlog.get_logger(__name__)

GAME_KEY_PREFIX = "game:"
RETIRED_KEY_PREFIX = "retired:"

# Applied regardless of status, including after the game is final
_METADATA_FIELDS = (
    "league",
    "home_team",
    "away_team",
    "home_team_id",
    "away_team_id",
    "spread",
    "moneyline_home",
    "moneyline_away",
    "total",
)


@dataclass
class MergeResult:
    snapshot: GameSnapshot
    corrections: list[DataIntegrityCorrection] = field(default_factory=list)


def _capture_halftime(previous: GameSnapshot, merged: GameSnapshot) -> Optional[HalftimeScore]:
    """Work out the halftime score the first time the game passes Q2."""
    q1_home, q1_away = merged.quarter_scores.quarter(1)
    q2_home, q2_away = merged.quarter_scores.quarter(2)
    if None not in (q1_home, q1_away, q2_home, q2_away):
        return HalftimeScore(home=q1_home + q2_home, away=q1_away + q2_away)

    if merged.status is GameStatus.HALFTIME:
        return HalftimeScore(home=merged.home_score, away=merged.away_score)

    # Jumped straight past halftime: the last first-half state is the best we have
    if previous.status.in_play and 0 < previous.quarter <= 2:
        return HalftimeScore(home=previous.home_score, away=previous.away_score)

    return HalftimeScore(home=merged.home_score, away=merged.away_score)


def merge_game_delta(current: Optional[GameSnapshot], delta: GameDelta) -> MergeResult:
    """Merge one delta into the stored snapshot.

    Pure: the same (current, delta) pair always gives the same result.
    """
    stored = current or GameSnapshot(game_id=delta.game_id)
    updates: dict[str, Any] = {}
    corrections: list[DataIntegrityCorrection] = []

    def reject(name: str, inbound: Any, reason: str) -> None:
        corrections.append(
            DataIntegrityCorrection(
                game_id=stored.game_id,
                field=name,
                inbound=inbound,
                retained=getattr(stored, name),
                reason=reason,
            )
        )

    for name in _METADATA_FIELDS:
        value = getattr(delta, name)
        if value is not None:
            updates[name] = value

    if stored.status is not GameStatus.FINAL:
        in_play = stored.status.in_play

        for name in ("home_score", "away_score"):
            inbound = getattr(delta, name)
            if inbound is None:
                continue
            if in_play and inbound < getattr(stored, name):
                reject(name, inbound, "score_regression")
            else:
                updates[name] = inbound

        if delta.status is not None:
            if (
                delta.status is GameStatus.SCHEDULED
                and stored.status is not GameStatus.SCHEDULED
            ):
                reject("status", delta.status.value, "status_regression")
            else:
                updates["status"] = delta.status

        quarter_rejected = False
        if delta.quarter is not None:
            if in_play and delta.quarter < stored.quarter:
                reject("quarter", delta.quarter, "quarter_regression")
                quarter_rejected = True
            else:
                updates["quarter"] = delta.quarter

        # The clock belongs to the quarter it was reported with
        if delta.time_remaining is not None and not quarter_rejected:
            updates["time_remaining"] = delta.time_remaining

        if delta.quarter_scores is not None:
            updates["quarter_scores"] = stored.quarter_scores.merged(delta.quarter_scores)

    merged = stored.model_copy(update=updates)

    if merged.halftime is None and (
        merged.quarter > 2 or merged.status is GameStatus.HALFTIME
    ):
        merged = merged.model_copy(update={"halftime": _capture_halftime(stored, merged)})

    return MergeResult(snapshot=merged, corrections=corrections)


class GameStateReducer:
    """Applies deltas to the state store, one game at a time.

    Deltas for the same game are applied in arrival order under a
    per-game lock; the write itself is a compare-and-swap so several
    processes sharing a redis store cannot interleave.
    """

    def __init__(
        self,
        store: StateStore,
        locks: Optional[KeyedLocks] = None,
        max_retries: int = 5,
    ):
        self.store = store
        self.locks = locks or KeyedLocks()
        self.max_retries = max_retries

    @staticmethod
    def _key(game_id: str) -> str:
        return f"{GAME_KEY_PREFIX}{game_id}"

    @staticmethod
    def _retired_key(game_id: str) -> str:
        return f"{RETIRED_KEY_PREFIX}{game_id}"

    async def get(self, game_id: str) -> Optional[GameSnapshot]:
        """Return the stored snapshot, or None for an unknown game."""
        entry = await self.store.get(self._key(game_id))
        if entry is None:
            return None
        return GameSnapshot.model_validate(entry.value)

    async def all_games(self) -> list[GameSnapshot]:
        entries = await self.store.scan(GAME_KEY_PREFIX)
        return [GameSnapshot.model_validate(entry.value) for _, entry in entries]

    async def apply(self, delta: GameDelta) -> MergeResult:
        """Merge a delta into the stored snapshot and persist it."""
        key = self._key(delta.game_id)

        async with self.locks.hold(key):
            for attempt in range(1, self.max_retries + 1):
                entry = await self.store.get(key)
                if entry is not None:
                    current = GameSnapshot.model_validate(entry.value)
                else:
                    current = await self._retired(delta.game_id)
                result = merge_game_delta(current, delta)

                swapped = await self.store.compare_and_swap(
                    key,
                    entry.version if entry else None,
                    result.snapshot.model_dump(mode="json"),
                )
                if swapped:
                    for correction in result.corrections:
                        logger.warning("data_integrity_correction", **correction.to_dict())
                    return result

                logger.debug("game_state_retry", game_id=delta.game_id, attempt=attempt)

        raise StateConflictError(key, self.max_retries)

    async def _retired(self, game_id: str) -> Optional[GameSnapshot]:
        entry = await self.store.get(self._retired_key(game_id))
        return GameSnapshot.model_validate(entry.value) if entry else None

    async def retire(self, game_id: str) -> None:
        """Drop a final game's snapshot, leaving a small final tombstone.

        A late delta for a retired game starts from the tombstone, so the
        game stays final instead of coming back as a new live game.
        """
        key = self._key(game_id)
        async with self.locks.hold(key):
            entry = await self.store.get(key)
            if entry is None:
                return
            snapshot = GameSnapshot.model_validate(entry.value)
            if snapshot.status is not GameStatus.FINAL:
                raise ValueError(f"game {game_id!r} is not final")
            tombstone = GameSnapshot(
                game_id=game_id,
                status=GameStatus.FINAL,
                home_score=snapshot.home_score,
                away_score=snapshot.away_score,
                quarter=snapshot.quarter,
                halftime=snapshot.halftime,
            )
            await self.store.put(self._retired_key(game_id), tombstone.model_dump(mode="json"))
            await self.store.delete(key)
