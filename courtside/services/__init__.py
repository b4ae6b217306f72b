"""Engine services: evaluation, state, backtest and persistence adapters."""
