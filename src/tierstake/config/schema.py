"""Pydantic schema for ledger configuration."""

import hashlib
import json
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from ..engine.guardrails import GlobalConfig
from ..engine.tiers import Tier

TokenQuantity = Union[int, str, float]


def to_base_units(value: TokenQuantity, decimals: int) -> int:
    """
    Convert a whole-token quantity (e.g. 1000 or "0.5") to integer base units.

    Raises:
        ValueError: If the value is negative or has more precision than decimals
    """
    try:
        quantity = Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a token quantity: {value!r}") from None
    if quantity < 0:
        raise ValueError(f"Token quantity must be non-negative, got {value!r}")
    scaled = quantity.scaleb(decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value!r} has more than {decimals} decimal places")
    return int(scaled)


class TierSpec(BaseModel):
    """One reward tier; bounds are in whole tokens."""
    name: Optional[str] = Field(default=None, description="Display name")
    min_amount: TokenQuantity = Field(description="Inclusive lower bound (whole tokens)")
    max_amount: TokenQuantity = Field(description="Inclusive upper bound (whole tokens)")
    lock_days: int = Field(ge=0, description="Lock window in whole days")
    day_rate_a: int = Field(ge=0, description="Denomination A rate, parts per 1e9 per day")
    day_rate_b: int = Field(ge=0, description="Denomination B rate, parts per 1e9 per day")

    @model_validator(mode='after')
    def validate_bounds(self):
        """Ensure min_amount <= max_amount."""
        if Decimal(str(self.min_amount)) > Decimal(str(self.max_amount)):
            raise ValueError(
                f"Tier min_amount {self.min_amount} exceeds max_amount {self.max_amount}"
            )
        return self

    def to_tier(self, decimals: int) -> Tier:
        return Tier(
            min_amount=to_base_units(self.min_amount, decimals),
            max_amount=to_base_units(self.max_amount, decimals),
            lock_days=self.lock_days,
            day_rate_a=self.day_rate_a,
            day_rate_b=self.day_rate_b,
        )


class LedgerSettings(BaseModel):
    """Global ledger settings."""
    horizon_day: int = Field(ge=0, description="Last day for which reward accrues")
    deposit_cutoff_day: int = Field(ge=0, description="Last day deposits are accepted")
    deposit_enabled: bool = Field(default=True, description="Master switch for deposits")
    rate_scale_a: int = Field(default=10_000, gt=0, description="Tier rate floor scale, denomination A")
    rate_scale_b: int = Field(default=10_000, gt=0, description="Tier rate floor scale, denomination B")

    def to_global_config(self) -> GlobalConfig:
        return GlobalConfig(
            horizon_day=self.horizon_day,
            deposit_cutoff_day=self.deposit_cutoff_day,
            rate_scale_a=self.rate_scale_a,
            rate_scale_b=self.rate_scale_b,
            deposit_enabled=self.deposit_enabled,
        )


class TokenSettings(BaseModel):
    """Token identifiers handled by the ledger."""
    deposit_token: str = Field(default="STAKE", min_length=1)
    reward_token_a: str = Field(default="REWARD_A", min_length=1)
    reward_token_b: str = Field(default="REWARD_B", min_length=1)
    decimals: int = Field(default=18, ge=0, le=36, description="Base-unit decimals for quantities")

    @field_validator('deposit_token', 'reward_token_a', 'reward_token_b', mode="before")
    @classmethod
    def strip_token_name(cls, v):
        """Token names are compared verbatim, so drop stray whitespace."""
        return v.strip() if isinstance(v, str) else v

    @model_validator(mode='after')
    def validate_distinct_reward_tokens(self):
        """Denominations A and B must be paid in different tokens."""
        if self.reward_token_a == self.reward_token_b:
            raise ValueError("reward_token_a and reward_token_b must differ")
        return self


class Accounts(BaseModel):
    """Well-known accounts."""
    owner: str = Field(min_length=1)
    custody_account: str = Field(default="ledger", min_length=1)
    treasury_account: str = Field(default="treasury", min_length=1)

    @model_validator(mode='after')
    def validate_distinct_accounts(self):
        if self.custody_account == self.treasury_account:
            raise ValueError("custody_account and treasury_account must differ")
        return self


class Reservoir(BaseModel):
    """Initial funding and optional emission pool feeding the treasury."""
    initial_balance: TokenQuantity = Field(default=0, description="Treasury float (whole tokens)")
    emission_per_day: TokenQuantity = Field(default=0, description="Pool emission (whole tokens/day)")
    alloc_point: int = Field(default=1, ge=0)
    total_alloc_point: int = Field(default=1, gt=0)

    @model_validator(mode='after')
    def validate_alloc_point(self):
        """Pool share cannot exceed the whole farm."""
        if self.alloc_point > self.total_alloc_point:
            raise ValueError("alloc_point cannot exceed total_alloc_point")
        return self


class Config(BaseModel):
    """Complete configuration for a ledger instance."""
    ledger: LedgerSettings
    accounts: Accounts
    tokens: TokenSettings = Field(default_factory=TokenSettings)
    reservoir: Reservoir = Field(default_factory=Reservoir)
    tiers: List[TierSpec] = Field(default_factory=list)

    def tier_definitions(self) -> List[Tier]:
        return [spec.to_tier(self.tokens.decimals) for spec in self.tiers]

    def units(self, value: TokenQuantity) -> int:
        """Whole-token quantity in base units."""
        return to_base_units(value, self.tokens.decimals)

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True, default=str)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
