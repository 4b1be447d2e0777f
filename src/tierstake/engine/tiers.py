"""Tier catalog: ordered, append-only list of reward tiers.

Index 0 is always the sentinel "no tier": zero bounds, zero rates, no lock.
It is the landing tier for positions that fall below every real tier after a
withdrawal and is never selected by the amount search.
"""

import logging
from dataclasses import dataclass, replace
from typing import Iterable, Iterator, List, Tuple

from .errors import InvalidTierBounds, InvalidTierRate, LedgerValidationError, UnknownTier

logger = logging.getLogger(__name__)

SENTINEL_TIER_INDEX = 0


@dataclass
class Tier:
    """A bracket of position sizes with a lock duration and a rate pair."""
    min_amount: int  # Inclusive lower bound on the total position
    max_amount: int  # Inclusive upper bound on the total position
    lock_days: int  # Whole days before principal can be withdrawn
    day_rate_a: int  # Parts per RATE_SCALE per day, denomination A
    day_rate_b: int  # Parts per RATE_SCALE per day, denomination B
    total_deposited: int = 0  # Principal currently assigned to this tier

    def contains(self, amount: int) -> bool:
        return self.min_amount <= amount <= self.max_amount

    def rate(self, denomination: str) -> int:
        return self.day_rate_a if denomination == "a" else self.day_rate_b


def sentinel_tier() -> Tier:
    return Tier(min_amount=0, max_amount=0, lock_days=0, day_rate_a=0, day_rate_b=0)


def validate_tier(tier: Tier) -> None:
    """Raise if a tier definition is internally inconsistent."""
    if tier.min_amount < 0 or tier.max_amount < 0:
        raise LedgerValidationError("Tier bounds must be non-negative")
    if tier.min_amount > tier.max_amount:
        raise InvalidTierBounds(tier.min_amount, tier.max_amount)
    if tier.lock_days < 0:
        raise LedgerValidationError(f"lock_days must be non-negative, got {tier.lock_days}")
    if tier.day_rate_a < 0 or tier.day_rate_b < 0:
        raise LedgerValidationError("Day rates must be non-negative")


def validate_tier_rates(tier: Tier, rate_scale_a: int, rate_scale_b: int) -> None:
    """
    Reject rates whose stated percentage divides to zero at the configured scale.

    A zero rate is allowed (the denomination simply does not accrue for the tier).

    Raises:
        InvalidTierRate: If a nonzero rate floors to zero
    """
    for label, rate, scale in (("A", tier.day_rate_a, rate_scale_a),
                               ("B", tier.day_rate_b, rate_scale_b)):
        if rate > 0 and rate // scale == 0:
            raise InvalidTierRate(
                f"Day rate {label}={rate} is below the rate scale {scale} and would round to zero"
            )


class TierCatalog:
    """Ordered tier list with the sentinel pinned at index 0."""

    def __init__(self, tiers: Iterable[Tier] = ()):
        self._tiers: List[Tier] = [sentinel_tier()]
        for tier in tiers:
            self.add_tier(tier)

    def __len__(self) -> int:
        return len(self._tiers)

    def __iter__(self) -> Iterator[Tier]:
        return iter(self._tiers)

    def real_tiers(self) -> Iterator[Tuple[int, Tier]]:
        """Yield (index, tier) pairs in catalog order, excluding the sentinel."""
        for index in range(1, len(self._tiers)):
            yield index, self._tiers[index]

    def get(self, index: int) -> Tier:
        if not 0 <= index < len(self._tiers):
            raise UnknownTier(index)
        return self._tiers[index]

    def get_real(self, index: int) -> Tier:
        """Like get(), but the sentinel counts as unknown."""
        if index == SENTINEL_TIER_INDEX:
            raise UnknownTier(index)
        return self.get(index)

    def add_tier(self, tier: Tier) -> int:
        """
        Append a tier and return its index.

        The caller-supplied total_deposited is ignored; a new tier starts empty.
        """
        validate_tier(tier)
        self._tiers.append(replace(tier, total_deposited=0))
        index = len(self._tiers) - 1
        logger.info("Added tier %d: [%d, %d], lock %d days", index,
                    tier.min_amount, tier.max_amount, tier.lock_days)
        return index

    def set_tier(self, index: int, tier: Tier) -> None:
        """
        Overwrite an existing tier in place.

        Positions keep pointing at the index, so the new rates apply to their
        whole unharvested window. The tier's total_deposited is preserved.
        """
        current = self.get_real(index)
        validate_tier(tier)
        self._tiers[index] = replace(tier, total_deposited=current.total_deposited)
        logger.info("Updated tier %d: [%d, %d], lock %d days", index,
                    tier.min_amount, tier.max_amount, tier.lock_days)

    def find_tier_for_amount(self, amount: int) -> int:
        """
        Return the index of the first real tier whose bounds contain amount.

        Tiers are scanned in catalog order and the first match wins, so with
        overlapping ranges the earlier tier takes precedence. Returns the
        sentinel index when no tier matches.
        """
        for index, tier in self.real_tiers():
            if tier.contains(amount):
                return index
        return SENTINEL_TIER_INDEX

    def move_principal(self, from_index: int, to_index: int, old_amount: int, new_amount: int) -> None:
        """Reassign a position's principal between tier totals."""
        self._tiers[from_index].total_deposited -= old_amount
        self._tiers[to_index].total_deposited += new_amount

    def to_list(self) -> List[Tier]:
        return [replace(tier) for tier in self._tiers]

    def load(self, tiers: List[Tier]) -> None:
        """Replace the whole catalog with a stored list, sentinel included."""
        self._tiers = [replace(tier) for tier in tiers] or [sentinel_tier()]
