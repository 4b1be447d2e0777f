"""Day-granular accrual calculator.

Formula (per denomination):
    effective_day = min(current_day, horizon_day)
    elapsed_days  = max(0, effective_day - deposit_start_day)
    reward        = amount * day_rate * elapsed_days // RATE_SCALE

All arithmetic is integer and floored, so a position may under-accrue by a
sub-unit remainder but never over-accrue.
"""

from dataclasses import dataclass

from .positions import Position
from .tiers import Tier

# Fixed denominator for day rates. Independent of the mutable rate scales in
# GlobalConfig, which only bound-check tier definitions.
RATE_SCALE = 10**9

DENOMINATIONS = ("a", "b")


@dataclass(frozen=True)
class AccruedReward:
    """Owed amounts in both reward denominations."""
    reward_a: int = 0
    reward_b: int = 0

    @property
    def is_zero(self) -> bool:
        return self.reward_a == 0 and self.reward_b == 0

    def as_tuple(self):
        return self.reward_a, self.reward_b


def elapsed_days(deposit_start_day: int, horizon_day: int, current_day: int) -> int:
    """Whole days of accrual, clamped at the horizon and at zero."""
    effective_day = min(current_day, horizon_day)
    return max(0, effective_day - deposit_start_day)


def accrue(amount: int, day_rate: int, days: int) -> int:
    """Reward for one denomination over a number of whole days."""
    return amount * day_rate * days // RATE_SCALE


def accrued(position: Position, tier: Tier, horizon_day: int, current_day: int) -> AccruedReward:
    """
    Compute owed rewards for a position against the tier it currently references.

    Args:
        position: Position record
        tier: Current (live) definition of position.tier_index
        horizon_day: Last day for which reward accrues
        current_day: Day index at call time

    Returns:
        AccruedReward for both denominations
    """
    days = elapsed_days(position.deposit_start_day, horizon_day, current_day)
    reward_a, reward_b = (accrue(position.amount, tier.rate(d), days) for d in DENOMINATIONS)
    return AccruedReward(reward_a=reward_a, reward_b=reward_b)
