"""Position lifecycle: exit management and close/cancel transitions."""

from market_scanner.lifecycle.positions import (
    ManageReport,
    PositionManager,
    cancel_position,
    close_position,
    compute_pnl,
)

__all__ = ["ManageReport", "PositionManager", "cancel_position", "close_position", "compute_pnl"]
