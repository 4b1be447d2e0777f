"""Staking engine: tier catalog, accrual, position ledger and guardrails."""

from .accrual import RATE_SCALE, AccruedReward, accrue, accrued, elapsed_days
from .clock import ManualDayClock, SystemDayClock
from .events import EventLog
from .guardrails import GlobalConfig
from .ledger import PositionSummary, StakingLedger
from .positions import Position, PositionState
from .tiers import SENTINEL_TIER_INDEX, Tier, TierCatalog
from .tokens import InMemoryTokenLedger, PoolEmissionSource, TreasuryReservoir

__all__ = [
    "RATE_SCALE",
    "AccruedReward",
    "accrue",
    "accrued",
    "elapsed_days",
    "ManualDayClock",
    "SystemDayClock",
    "EventLog",
    "GlobalConfig",
    "PositionSummary",
    "StakingLedger",
    "Position",
    "PositionState",
    "SENTINEL_TIER_INDEX",
    "Tier",
    "TierCatalog",
    "InMemoryTokenLedger",
    "PoolEmissionSource",
    "TreasuryReservoir",
]
