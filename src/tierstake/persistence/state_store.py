"""Durable layout of ledger state: catalog, positions and global config.

The storage substrate belongs to the host; this module only fixes the shape
that has to survive a restart and moves it in and out of a ledger.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Union

from pydantic import BaseModel, Field, model_validator

from ..engine.ledger import StakingLedger
from ..engine.positions import Position
from ..engine.tiers import SENTINEL_TIER_INDEX, Tier

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class TierRecord(BaseModel):
    min_amount: int = Field(ge=0)
    max_amount: int = Field(ge=0)
    lock_days: int = Field(ge=0)
    day_rate_a: int = Field(ge=0)
    day_rate_b: int = Field(ge=0)
    total_deposited: int = Field(ge=0)


class PositionRecord(BaseModel):
    amount: int = Field(ge=0)
    tier_index: int = Field(ge=0)
    deposit_start_day: int


class ConfigRecord(BaseModel):
    horizon_day: int
    deposit_cutoff_day: int
    rate_scale_a: int = Field(gt=0)
    rate_scale_b: int = Field(gt=0)
    deposit_enabled: bool


class LedgerSnapshot(BaseModel):
    """Everything a ledger needs to resume after a restart."""
    version: int = SNAPSHOT_VERSION
    owner: str
    config: ConfigRecord
    tiers: List[TierRecord]
    positions: Dict[str, PositionRecord] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_references(self):
        """Positions must reference stored tiers (empty ones the sentinel) and tier totals must match them."""
        if not self.tiers:
            raise ValueError("Snapshot must contain at least the sentinel tier")
        for account, position in self.positions.items():
            if position.tier_index >= len(self.tiers):
                raise ValueError(f"Position {account} references missing tier {position.tier_index}")
            if position.amount == 0 and position.tier_index != SENTINEL_TIER_INDEX:
                raise ValueError(f"Empty position {account} references tier {position.tier_index}")
        per_tier = defaultdict(int)
        for position in self.positions.values():
            per_tier[position.tier_index] += position.amount
        for index, tier in enumerate(self.tiers):
            if tier.total_deposited != per_tier[index]:
                raise ValueError(
                    f"Tier {index} total_deposited {tier.total_deposited} does not match "
                    f"its positions ({per_tier[index]})"
                )
        return self


def snapshot_ledger(ledger: StakingLedger) -> LedgerSnapshot:
    return LedgerSnapshot(
        owner=ledger.owner,
        config=ConfigRecord(**vars(ledger.config)),
        tiers=[TierRecord(**vars(tier)) for tier in ledger.catalog.to_list()],
        positions={
            account: PositionRecord(**vars(position))
            for account, position in ledger.positions.items()
        },
    )


def restore_ledger(ledger: StakingLedger, snapshot: LedgerSnapshot) -> None:
    """Load a snapshot into an existing ledger, replacing its state."""
    ledger.owner = snapshot.owner
    for name, value in snapshot.config.model_dump().items():
        setattr(ledger.config, name, value)
    ledger.catalog.load([Tier(**tier.model_dump()) for tier in snapshot.tiers])
    ledger.positions = {
        account: Position(**record.model_dump())
        for account, record in snapshot.positions.items()
    }
    logger.info("Restored ledger with %d tiers and %d positions",
                len(snapshot.tiers) - 1, len(snapshot.positions))


def save_snapshot(ledger: StakingLedger, path: Union[str, Path]) -> None:
    snapshot = snapshot_ledger(ledger)
    with open(path, 'w') as f:
        json.dump(snapshot.model_dump(), f, indent=2)


def load_snapshot(path: Union[str, Path]) -> LedgerSnapshot:
    with open(path, 'r') as f:
        data = json.load(f)
    if data.get("version") != SNAPSHOT_VERSION:
        raise ValueError(f"Unsupported snapshot version {data.get('version')!r}")
    return LedgerSnapshot(**data)
