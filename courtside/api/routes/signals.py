"""Signal endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from courtside.api.dependencies import get_registry
from courtside.domain.signals import Signal
from courtside.services.signal_registry import SignalRegistry

router = APIRouter(prefix="/api/signals", tags=["signals"])


@router.get("/active", response_model=list[Signal])
async def list_active_signals(registry: SignalRegistry = Depends(get_registry)):
    """All signals currently awaiting a close."""
    return await registry.get_all_active()


@router.get("/{strategy_id}/{game_id}", response_model=Signal)
async def get_signal(
    strategy_id: str,
    game_id: str,
    registry: SignalRegistry = Depends(get_registry),
):
    """Latest signal for a strategy and game, active or resolved."""
    slot = await registry.get_slot(strategy_id, game_id)
    if slot is None or slot.signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")
    return slot.signal
