"""Position ledger: deposit / withdraw / harvest state machine.

Every mutating call:
- reads the day once from the clock
- runs all checks before touching state
- applies state changes (positions, tier totals) before any external call
- runs as one all-or-nothing unit: if anything raises, ledger state and any
  snapshot-capable collaborator are restored and no events are published
- refuses to start while another mutating call is in flight (ReentrantCall)

Positions reference tiers by index and accrual reads the live tier, so a
tier edit re-prices every unharvested window pointing at it.
"""

import copy
import functools
import logging
from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Optional

from .accrual import AccruedReward, accrued
from .clock import DayClock
from .errors import (
    AboveTierMaximum,
    BelowTierMinimum,
    CannotSweepStakedToken,
    InsufficientBalance,
    InvalidAmount,
    LockActive,
    ReentrantCall,
    Unauthorized,
)
from .events import (
    Deposit,
    DepositCutoffUpdated,
    DepositEnabledUpdated,
    EmergencyWithdraw,
    EventLog,
    ForeignTokenSwept,
    Harvest,
    HorizonUpdated,
    LedgerEvent,
    OwnershipTransferred,
    RateScaleUpdated,
    TierAdded,
    TierUpdated,
    Withdraw,
)
from .guardrails import (
    GlobalConfig,
    check_deposits_open,
    check_horizon_update,
    check_rate_scale_update,
)
from .positions import Position, PositionState
from .tiers import SENTINEL_TIER_INDEX, Tier, TierCatalog, validate_tier, validate_tier_rates
from .tokens import (
    RewardReservoir,
    TokenLedger,
    check_amount,
    restore_collaborators,
    snapshot_collaborators,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PositionSummary:
    """Read-only view of one account's stake."""
    account: str
    position: Position
    tier: Tier
    current_day: int
    accrued: AccruedReward
    state: PositionState
    unlock_day: int


def atomic(method):
    """Run a ledger method as one all-or-nothing, non-reentrant unit."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._transaction(method.__name__):
            return method(self, *args, **kwargs)

    return wrapper


class StakingLedger:
    """Tiered, time-gated staking ledger with two reward denominations."""

    def __init__(
        self,
        config: GlobalConfig,
        catalog: TierCatalog,
        tokens: TokenLedger,
        reservoir: RewardReservoir,
        clock: DayClock,
        owner: str,
        custody_account: str = "ledger",
        deposit_token: str = "STAKE",
        reward_token_a: str = "REWARD_A",
        reward_token_b: str = "REWARD_B",
        events: Optional[EventLog] = None,
    ):
        """
        Initialize the ledger.

        Args:
            config: Global settings, shared by reference
            catalog: Tier catalog (sentinel at index 0)
            tokens: Token transfer collaborator
            reservoir: Reward payout collaborator
            clock: Day counter read at call time
            owner: Account allowed to call owner-only operations
            custody_account: Account holding staked principal
            deposit_token: Token accepted as principal
            reward_token_a: Token paid for denomination A
            reward_token_b: Token paid for denomination B
            events: Event log (a fresh one if omitted)
        """
        self.config = config
        self.catalog = catalog
        self.tokens = tokens
        self.reservoir = reservoir
        self.clock = clock
        self.owner = owner
        self.custody_account = custody_account
        self.deposit_token = deposit_token
        self.reward_token_a = reward_token_a
        self.reward_token_b = reward_token_b
        self.events = events if events is not None else EventLog()
        self.positions: Dict[str, Position] = {}

        self._in_call = False
        self._pending_events: List[LedgerEvent] = []

    # ------------------------------------------------------------------
    # Call discipline

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        if self._in_call:
            logger.warning("Rejected reentrant call to %s", operation)
            raise ReentrantCall(f"{operation} called while another ledger call is in progress")
        self._in_call = True
        # Full copies: O(accounts) per call. A host ledger at scale would keep
        # an undo journal of touched keys instead.
        saved_state = (
            copy.deepcopy(self.positions),
            self.catalog.to_list(),
            replace(self.config),
            self.owner,
        )
        saved_external = snapshot_collaborators([self.tokens, self.reservoir])
        self._pending_events = []
        try:
            yield
        except Exception:
            positions, tiers, config, owner = saved_state
            self.positions = positions
            self.catalog.load(tiers)
            self._restore_config(config)
            self.owner = owner
            restore_collaborators(saved_external)
            logger.warning("%s failed, ledger state rolled back", operation)
            raise
        else:
            self.events.publish(self._pending_events)
        finally:
            self._pending_events = []
            self._in_call = False

    def _restore_config(self, saved: GlobalConfig) -> None:
        # Restore in place: callers may hold a reference to the config object.
        for name, value in vars(saved).items():
            setattr(self.config, name, value)

    def _emit(self, event: LedgerEvent) -> None:
        self._pending_events.append(event)

    def _only_owner(self, caller: str, operation: str) -> None:
        if caller != self.owner:
            logger.warning("Unauthorized %s attempt by %s", operation, caller)
            raise Unauthorized(caller, operation)

    # ------------------------------------------------------------------
    # Internal helpers

    def _current_day(self) -> int:
        return self.clock.current_day()

    def _accrued(self, position: Position, current_day: int) -> AccruedReward:
        tier = self.catalog.get(position.tier_index)
        return accrued(position, tier, self.config.horizon_day, current_day)

    def _settle(self, account: str, reward: AccruedReward, always_emit: bool = False) -> None:
        """Pay a reward already removed from the position's window."""
        if not reward.is_zero:
            self.reservoir.pay(account, reward.reward_a, reward.reward_b)
        if always_emit or not reward.is_zero:
            self._emit(Harvest(account, reward.reward_a, reward.reward_b))

    def _lookup(self, account: str, current_day: int) -> Position:
        position = self.positions.get(account)
        if position is None:
            position = Position(deposit_start_day=current_day)
        return position

    # ------------------------------------------------------------------
    # Position operations

    @atomic
    def deposit(self, account: str, tier_index: int, amount: int) -> Position:
        """
        Stake amount into tier_index, settling any accrued reward first.

        The requested tier is validated against the new total, so this is also
        how a position upgrades or downgrades. The lock window restarts on every
        call; a zero-amount deposit is the idiom for re-locking.

        Raises:
            DepositsClosed: If deposits are disabled or the cutoff has passed
            UnknownTier: If tier_index is not a real tier
            InvalidAmount: If the position would stay empty
            BelowTierMinimum / AboveTierMaximum: If the new total is out of bounds
        """
        check_amount(amount)
        day = self._current_day()
        check_deposits_open(self.config, day)
        tier = self.catalog.get_real(tier_index)

        position = self._lookup(account, day)
        reward = self._accrued(position, day)

        new_amount = position.amount + amount
        if new_amount == 0:
            raise InvalidAmount(f"Deposit would leave an empty position on tier {tier_index}")
        if new_amount < tier.min_amount:
            raise BelowTierMinimum(new_amount, tier.min_amount)
        if new_amount > tier.max_amount:
            raise AboveTierMaximum(new_amount, tier.max_amount)

        self.catalog.move_principal(position.tier_index, tier_index, position.amount, new_amount)
        position.amount = new_amount
        position.tier_index = tier_index
        position.deposit_start_day = day
        self.positions[account] = position

        self._settle(account, reward)
        if amount:
            self.tokens.transfer_from(
                self.deposit_token, self.custody_account, account, self.custody_account, amount
            )
        self._emit(Deposit(account, tier_index, amount))
        logger.info("Deposit: %s put %d into tier %d (total %d, day %d)",
                    account, amount, tier_index, new_amount, day)
        return replace(position)

    @atomic
    def withdraw(self, account: str, amount: int) -> Position:
        """
        Withdraw principal once the lock has elapsed.

        Accrued reward is settled first. The remainder is re-resolved against
        the catalog (first matching tier wins, sentinel if none) and the lock
        window restarts.

        Raises:
            LockActive: If the lock window has not elapsed and the horizon is not reached
            InsufficientBalance: If amount exceeds the position
        """
        check_amount(amount)
        day = self._current_day()
        position = self._lookup(account, day)
        tier = self.catalog.get(position.tier_index)

        unlock_day = position.unlock_day(tier, self.config.horizon_day)
        if day < unlock_day:
            raise LockActive(unlock_day, day)
        if amount > position.amount:
            raise InsufficientBalance(amount, position.amount)

        reward = self._accrued(position, day)
        remaining = position.amount - amount
        new_index = self.catalog.find_tier_for_amount(remaining) if remaining else SENTINEL_TIER_INDEX

        self.catalog.move_principal(position.tier_index, new_index, position.amount, remaining)
        if new_index != position.tier_index:
            logger.info("Withdraw moved %s from tier %d to tier %d", account, position.tier_index, new_index)
        position.amount = remaining
        position.tier_index = new_index
        position.deposit_start_day = day
        if account in self.positions:
            self.positions[account] = position

        self._settle(account, reward)
        if amount:
            self.tokens.transfer(self.deposit_token, self.custody_account, account, amount)
        self._emit(Withdraw(account, amount))
        logger.info("Withdraw: %s took %d (remaining %d, day %d)", account, amount, remaining, day)
        return replace(position)

    @atomic
    def harvest(self, account: str) -> AccruedReward:
        """
        Pay out accrued reward and restart the lock window.

        Allowed while locked: the lock gates principal, not earned reward.
        Tier bounds are not re-checked.
        """
        day = self._current_day()
        position = self._lookup(account, day)
        reward = self._accrued(position, day)

        position.deposit_start_day = day
        if account in self.positions:
            self.positions[account] = position

        self._settle(account, reward, always_emit=True)
        logger.info("Harvest: %s collected (%d, %d) on day %d",
                    account, reward.reward_a, reward.reward_b, day)
        return reward

    @atomic
    def emergency_withdraw(self, caller: str, account: str) -> int:
        """Return an account's principal, forfeiting unharvested reward. Owner only."""
        self._only_owner(caller, "emergency_withdraw")
        day = self._current_day()
        position = self._lookup(account, day)
        amount = position.amount

        self.catalog.move_principal(position.tier_index, SENTINEL_TIER_INDEX, amount, 0)
        position.reset(day)
        if account in self.positions:
            self.positions[account] = position

        if amount:
            self.tokens.transfer(self.deposit_token, self.custody_account, account, amount)
        self._emit(EmergencyWithdraw(account, amount))
        logger.warning("Emergency withdraw of %d for %s by %s", amount, account, caller)
        return amount

    @atomic
    def sweep_foreign_token(self, caller: str, token: str, amount: int, to: str) -> None:
        """Move a token sent to the custody account by mistake. Owner only."""
        self._only_owner(caller, "sweep_foreign_token")
        check_amount(amount)
        if token in (self.deposit_token, self.reward_token_a, self.reward_token_b):
            raise CannotSweepStakedToken(token)
        self.tokens.transfer(token, self.custody_account, to, amount)
        self._emit(ForeignTokenSwept(token, amount, to))
        logger.info("Swept %d %s to %s", amount, token, to)

    # ------------------------------------------------------------------
    # Tier catalog (owner)

    @atomic
    def add_tier(self, caller: str, tier: Tier) -> int:
        self._only_owner(caller, "add_tier")
        validate_tier(tier)
        validate_tier_rates(tier, self.config.rate_scale_a, self.config.rate_scale_b)
        index = self.catalog.add_tier(tier)
        self._emit(TierAdded(tier.lock_days, index))
        return index

    @atomic
    def add_tiers(self, caller: str, tiers: List[Tier]) -> List[int]:
        """Append several tiers in order; all or none are added."""
        self._only_owner(caller, "add_tiers")
        indices = []
        for tier in tiers:
            validate_tier(tier)
            validate_tier_rates(tier, self.config.rate_scale_a, self.config.rate_scale_b)
            index = self.catalog.add_tier(tier)
            self._emit(TierAdded(tier.lock_days, index))
            indices.append(index)
        return indices

    @atomic
    def set_tier(self, caller: str, index: int, tier: Tier) -> None:
        """
        Overwrite a tier in place. Owner only.

        Positions referencing the index are not settled first: their whole
        unharvested window is re-priced at the new rates.
        """
        self._only_owner(caller, "set_tier")
        self.catalog.get_real(index)
        validate_tier(tier)
        validate_tier_rates(tier, self.config.rate_scale_a, self.config.rate_scale_b)
        live = self.catalog.get(index).total_deposited
        if live:
            logger.warning("Tier %d edited with %d principal live; unharvested reward is re-priced",
                           index, live)
        self.catalog.set_tier(index, tier)
        self._emit(TierUpdated(index))

    # ------------------------------------------------------------------
    # Global settings (owner)

    @atomic
    def set_horizon_day(self, caller: str, day: int) -> None:
        self._only_owner(caller, "set_horizon_day")
        check_horizon_update(self.config, day, self._current_day())
        self.config.horizon_day = day
        self._emit(HorizonUpdated(day))
        logger.info("Horizon day set to %d", day)

    @atomic
    def set_deposit_cutoff_day(self, caller: str, day: int) -> None:
        self._only_owner(caller, "set_deposit_cutoff_day")
        self.config.deposit_cutoff_day = day
        self._emit(DepositCutoffUpdated(day))
        logger.info("Deposit cutoff day set to %d", day)

    @atomic
    def set_deposit_enabled(self, caller: str, enabled: bool) -> None:
        self._only_owner(caller, "set_deposit_enabled")
        self.config.deposit_enabled = bool(enabled)
        self._emit(DepositEnabledUpdated(bool(enabled)))
        logger.info("Deposits %s", "enabled" if enabled else "disabled")

    @atomic
    def set_rate_scale(self, caller: str, scale_a: int, scale_b: int) -> None:
        self._only_owner(caller, "set_rate_scale")
        check_rate_scale_update(self.config, self.catalog, scale_a, scale_b, self._current_day())
        self.config.rate_scale_a = scale_a
        self.config.rate_scale_b = scale_b
        self._emit(RateScaleUpdated(scale_a, scale_b))
        logger.info("Rate scales set to (%d, %d)", scale_a, scale_b)

    @atomic
    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller, "transfer_ownership")
        previous = self.owner
        self.owner = new_owner
        self._emit(OwnershipTransferred(previous, new_owner))
        logger.info("Ownership transferred from %s to %s", previous, new_owner)

    # ------------------------------------------------------------------
    # Views

    def get_current_day(self) -> int:
        return self._current_day()

    def get_position(self, account: str) -> Position:
        position = self.positions.get(account)
        return replace(position) if position is not None else Position()

    def get_accrued(self, account: str) -> AccruedReward:
        position = self.positions.get(account)
        if position is None:
            return AccruedReward()
        return self._accrued(position, self._current_day())

    def get_tier(self, index: int) -> Tier:
        return replace(self.catalog.get(index))

    def tier_count(self) -> int:
        return len(self.catalog)

    def get_position_summary(self, account: str) -> PositionSummary:
        day = self._current_day()
        position = self.get_position(account)
        tier = self.get_tier(position.tier_index)
        return PositionSummary(
            account=account,
            position=position,
            tier=tier,
            current_day=day,
            accrued=accrued(position, tier, self.config.horizon_day, day),
            state=position.state(tier, day, self.config.horizon_day),
            unlock_day=position.unlock_day(tier, self.config.horizon_day),
        )

    def total_principal(self) -> int:
        return sum(position.amount for position in self.positions.values())
