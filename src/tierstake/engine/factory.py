"""Wire a ledger and its collaborators from a Config."""

import logging
from dataclasses import dataclass
from typing import Optional

from ..config.schema import Config
from .clock import DayClock, SystemDayClock
from .ledger import StakingLedger
from .tiers import TierCatalog
from .tokens import InMemoryTokenLedger, PoolEmissionSource, TokenLedger, TreasuryReservoir

logger = logging.getLogger(__name__)


@dataclass
class LedgerBundle:
    """A ledger together with the collaborators it was built on."""
    ledger: StakingLedger
    tokens: TokenLedger
    reservoir: TreasuryReservoir
    clock: DayClock
    config: Config


def build_ledger(
    config: Config,
    tokens: Optional[TokenLedger] = None,
    clock: Optional[DayClock] = None,
    fund_treasury: bool = True,
) -> LedgerBundle:
    """
    Build a ledger from configuration.

    Tiers are added through the owner entry point so the event log records
    them. With the default in-memory token ledger the treasury is minted its
    configured float.

    Args:
        config: Ledger configuration
        tokens: Token ledger (in-memory if omitted)
        clock: Day clock (wall clock if omitted)
        fund_treasury: Mint reservoir.initial_balance into the treasury

    Returns:
        LedgerBundle
    """
    tokens = tokens if tokens is not None else InMemoryTokenLedger()
    clock = clock if clock is not None else SystemDayClock()

    reservoir = TreasuryReservoir(
        tokens=tokens,
        treasury_account=config.accounts.treasury_account,
        reward_token_a=config.tokens.reward_token_a,
        reward_token_b=config.tokens.reward_token_b,
    )
    emission = config.units(config.reservoir.emission_per_day)
    if emission:
        reservoir.add_source(PoolEmissionSource(
            tokens=tokens,
            token=config.tokens.reward_token_a,
            clock=clock,
            emission_per_day=emission,
            alloc_point=config.reservoir.alloc_point,
            total_alloc_point=config.reservoir.total_alloc_point,
        ))

    initial_balance = config.units(config.reservoir.initial_balance)
    if fund_treasury and initial_balance:
        tokens.mint(config.tokens.reward_token_a, config.accounts.treasury_account, initial_balance)

    ledger = StakingLedger(
        config=config.ledger.to_global_config(),
        catalog=TierCatalog(),
        tokens=tokens,
        reservoir=reservoir,
        clock=clock,
        owner=config.accounts.owner,
        custody_account=config.accounts.custody_account,
        deposit_token=config.tokens.deposit_token,
        reward_token_a=config.tokens.reward_token_a,
        reward_token_b=config.tokens.reward_token_b,
    )
    ledger.add_tiers(config.accounts.owner, config.tier_definitions())
    logger.info("Built ledger from config %s with %d tiers",
                config.compute_hash(), ledger.tier_count() - 1)
    return LedgerBundle(ledger=ledger, tokens=tokens, reservoir=reservoir, clock=clock, config=config)
