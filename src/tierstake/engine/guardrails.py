"""Global configuration and the preconditions guarding its mutation.

GlobalConfig is passed explicitly into the ledger; nothing here is module
state. The check_* functions raise and never mutate, so the ledger can run
every check before it touches anything.
"""

import logging
from dataclasses import dataclass

from .errors import (
    DepositsClosed,
    DepositsStillOpen,
    HorizonAlreadyEnded,
    HorizonBeforeNow,
    InvalidRateScale,
    PositionsStillLive,
)
from .tiers import TierCatalog

logger = logging.getLogger(__name__)


@dataclass
class GlobalConfig:
    """Owner-mutated ledger settings.

    horizon_day is a ratchet: once current_day passes it, it can never change.
    rate_scale_a/b only bound-check tier rates; accrual uses RATE_SCALE.
    """
    horizon_day: int
    deposit_cutoff_day: int
    rate_scale_a: int = 10_000
    rate_scale_b: int = 10_000
    deposit_enabled: bool = True

    def deposits_open(self, current_day: int) -> bool:
        return self.deposit_enabled and current_day <= self.deposit_cutoff_day

    def horizon_passed(self, current_day: int) -> bool:
        return current_day > self.horizon_day


def check_deposits_open(config: GlobalConfig, current_day: int) -> None:
    if not config.deposit_enabled:
        raise DepositsClosed("Deposits are disabled")
    if current_day > config.deposit_cutoff_day:
        raise DepositsClosed(
            f"Deposit cutoff day {config.deposit_cutoff_day} has passed (current day {current_day})"
        )


def check_horizon_update(config: GlobalConfig, day: int, current_day: int) -> None:
    """
    Validate a new horizon day.

    A passed horizon is final, whatever value is requested, so that check runs
    first. Otherwise the horizon may move anywhere not behind today.

    Raises:
        HorizonAlreadyEnded: If current_day is past the existing horizon
        HorizonBeforeNow: If day < current_day
    """
    if config.horizon_passed(current_day):
        raise HorizonAlreadyEnded(config.horizon_day, current_day)
    if day < current_day:
        raise HorizonBeforeNow(day, current_day)


def check_rate_scale_update(
    config: GlobalConfig,
    catalog: TierCatalog,
    scale_a: int,
    scale_b: int,
    current_day: int,
) -> None:
    """
    Validate a rate scale change.

    Accrual is not checkpointed, so the scales may only move while deposits are
    shut and no principal sits in any tier.

    Raises:
        InvalidRateScale: If either scale is not a positive integer
        DepositsStillOpen: Unless deposits are disabled or the cutoff is at or before today
        PositionsStillLive: If any tier still holds principal
    """
    for scale in (scale_a, scale_b):
        if not isinstance(scale, int) or isinstance(scale, bool) or scale <= 0:
            raise InvalidRateScale(f"Rate scale must be a positive integer, got {scale!r}")
    if config.deposit_enabled and config.deposit_cutoff_day > current_day:
        raise DepositsStillOpen(
            f"Deposits stay open until day {config.deposit_cutoff_day}; "
            "disable deposits or move the cutoff first"
        )
    live = [(index, tier.total_deposited) for index, tier in enumerate(catalog) if tier.total_deposited]
    if live:
        raise PositionsStillLive(f"Tiers still hold principal: {live}")
