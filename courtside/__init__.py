"""Courtside: live strategy signals and backtesting for basketball games."""

__version__ = "0.1.0"
