"""Configuration for Courtside."""

from courtside.config.engine import EngineConfig, get_engine_config
from courtside.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings", "EngineConfig", "get_engine_config"]
