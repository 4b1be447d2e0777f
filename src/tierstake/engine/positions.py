"""Per-account position record and its derived lock state."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .tiers import SENTINEL_TIER_INDEX, Tier


class PositionState(str, Enum):
    EMPTY = "empty"
    LOCKED = "locked"
    UNLOCKED = "unlocked"


@dataclass
class Position:
    """An account's stake.

    tier_index is a reference into the live catalog, not a copy of the tier.
    """
    amount: int = 0
    tier_index: int = SENTINEL_TIER_INDEX
    deposit_start_day: int = 0

    @property
    def is_empty(self) -> bool:
        return self.amount == 0

    def unlock_day(self, tier: Tier, horizon_day: Optional[int] = None) -> int:
        """First day principal may leave: the end of the tier lock, or the horizon day if earlier."""
        unlock = self.deposit_start_day + tier.lock_days
        if horizon_day is not None:
            unlock = min(unlock, horizon_day)
        return unlock

    def state(self, tier: Tier, current_day: int, horizon_day: Optional[int] = None) -> PositionState:
        if self.is_empty:
            return PositionState.EMPTY
        if current_day < self.unlock_day(tier, horizon_day):
            return PositionState.LOCKED
        return PositionState.UNLOCKED

    def reset(self, current_day: int) -> None:
        self.amount = 0
        self.tier_index = SENTINEL_TIER_INDEX
        self.deposit_start_day = current_day
