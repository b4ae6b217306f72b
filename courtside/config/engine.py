"""Signal Engine Configuration.

Defines the tunable parameters for the live reducer and the backtest
replay. Values come from the ``engine`` section of defaults.yaml and
fall back to the dataclass defaults below.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import structlog

from courtside.config.settings import get_settings

logger = structlog.get_logger(__name__)


# Quarter boundaries replayed for every historical game:
# end of Q1, halftime, end of Q3, end of Q4.
DEFAULT_CHECKPOINTS: list[tuple[int, str]] = [
    (1, "0:00"),
    (2, "0:00"),
    (3, "0:00"),
    (4, "0:00"),
]


@dataclass
class StakeConfig:
    """Stake sizing used when grading bets."""
    base_stake: Decimal = Decimal("100.00")
    default_odds: Optional[int] = None  # None = flat 1:1 payout


@dataclass
class BacktestConfig:
    """Historical replay settings.

    A run stops scheduling new games once ``max_games`` have been
    replayed or ``max_seconds`` of wall-clock time have elapsed; the
    summaries returned are then flagged as partial.
    """
    checkpoints: list[tuple[int, str]] = field(
        default_factory=lambda: list(DEFAULT_CHECKPOINTS)
    )
    max_concurrency: int = 8
    max_games: Optional[int] = None
    max_seconds: Optional[float] = None
    corpus_limit: int = 1000


@dataclass
class ReducerConfig:
    """Game state reducer settings."""
    cas_max_retries: int = 5


@dataclass
class EngineConfig:
    """Complete signal engine configuration."""

    stake: StakeConfig = field(default_factory=StakeConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    reducer: ReducerConfig = field(default_factory=ReducerConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "EngineConfig":
        """Build config from the ``engine`` mapping of defaults.yaml."""
        stake = data.get("stake", {})
        backtest = data.get("backtest", {})
        reducer = data.get("reducer", {})

        checkpoints = [
            (int(item["quarter"]), str(item["time_remaining"]))
            for item in backtest.get("checkpoints", [])
        ] or list(DEFAULT_CHECKPOINTS)

        default_odds = stake.get("default_odds")

        return cls(
            stake=StakeConfig(
                base_stake=Decimal(str(stake.get("base_stake", "100.00"))),
                default_odds=int(default_odds) if default_odds else None,
            ),
            backtest=BacktestConfig(
                checkpoints=checkpoints,
                max_concurrency=int(backtest.get("max_concurrency", 8)),
                max_games=backtest.get("max_games"),
                max_seconds=backtest.get("max_seconds"),
                corpus_limit=int(backtest.get("corpus_limit", 1000)),
            ),
            reducer=ReducerConfig(
                cas_max_retries=int(reducer.get("cas_max_retries", 5)),
            ),
        )


_ENGINE_CONFIG: Optional[EngineConfig] = None


def get_engine_config() -> EngineConfig:
    """Get the engine configuration, loading defaults.yaml on first use."""
    global _ENGINE_CONFIG
    if _ENGINE_CONFIG is None:
        defaults = get_settings().load_defaults_config()
        try:
            _ENGINE_CONFIG = EngineConfig.from_dict(defaults.get("engine", {}))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("engine_config_invalid", error=str(e))
            _ENGINE_CONFIG = EngineConfig()
    return _ENGINE_CONFIG
