"""External collaborators: token transfers and the reward reservoir.

The ledger only talks to these through the protocols below. The in-memory
implementations back the tests, the scenario runner and the CLI; a deployment
would swap in adapters to its own token and treasury services.
"""

import copy
import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .clock import DayClock
from .errors import InsufficientReserve, InvalidAmount, TransferFailed

logger = logging.getLogger(__name__)

TransferHook = Callable[[str, str, str, int], None]


class TokenLedger(Protocol):
    def balance_of(self, token: str, account: str) -> int:
        ...

    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        ...

    def transfer_from(self, token: str, spender: str, owner: str, to: str, amount: int) -> None:
        ...

    def mint(self, token: str, to: str, amount: int) -> None:
        ...


class RewardReservoir(Protocol):
    def pay(self, to: str, reward_a: int, reward_b: int) -> None:
        ...


class RewardSource(Protocol):
    """Anything that can push reward tokens into the treasury on demand."""

    def collect(self, to: str) -> int:
        ...


@runtime_checkable
class Transactional(Protocol):
    """Collaborator whose state can be captured and put back on rollback."""

    def snapshot(self) -> Any:
        ...

    def restore(self, state: Any) -> None:
        ...


def check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmount(f"Amount must be a non-negative integer, got {amount!r}")


class InMemoryTokenLedger:
    """Balances and allowances for any number of tokens, keyed by name.

    Transfer hooks run after a transfer has been booked, the way a token with
    recipient callbacks hands control to foreign code mid-call.
    """

    def __init__(self):
        self._balances: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._allowances: Dict[Tuple[str, str, str], int] = defaultdict(int)
        self._hooks: List[TransferHook] = []

    def balance_of(self, token: str, account: str) -> int:
        return self._balances[token][account]

    def mint(self, token: str, to: str, amount: int) -> None:
        check_amount(amount)
        self._balances[token][to] += amount

    def approve(self, token: str, owner: str, spender: str, amount: int) -> None:
        check_amount(amount)
        self._allowances[(token, owner, spender)] = amount

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return self._allowances[(token, owner, spender)]

    def transfer(self, token: str, sender: str, to: str, amount: int) -> None:
        check_amount(amount)
        balance = self._balances[token][sender]
        if balance < amount:
            raise TransferFailed(f"{sender} holds {balance} {token}, cannot send {amount}")
        self._balances[token][sender] = balance - amount
        self._balances[token][to] += amount
        for hook in list(self._hooks):
            hook(token, sender, to, amount)

    def transfer_from(self, token: str, spender: str, owner: str, to: str, amount: int) -> None:
        check_amount(amount)
        allowed = self._allowances[(token, owner, spender)]
        if allowed < amount:
            raise TransferFailed(
                f"{spender} is allowed {allowed} {token} from {owner}, cannot move {amount}"
            )
        self._allowances[(token, owner, spender)] = allowed - amount
        self.transfer(token, owner, to, amount)

    def add_hook(self, hook: TransferHook) -> None:
        self._hooks.append(hook)

    def remove_hook(self, hook: TransferHook) -> None:
        self._hooks.remove(hook)

    def snapshot(self) -> Any:
        return (
            {token: dict(accounts) for token, accounts in self._balances.items()},
            dict(self._allowances),
        )

    def restore(self, state: Any) -> None:
        balances, allowances = state
        self._balances = defaultdict(lambda: defaultdict(int))
        for token, accounts in balances.items():
            self._balances[token].update(accounts)
        self._allowances = defaultdict(int, allowances)


class PoolEmissionSource:
    """Reward source backed by one pool of a fixed-rate emission farm.

    The farm spreads emission_per_day across pools by allocation points; this
    pool's share accrues per whole day and is minted on collect().
    """

    def __init__(
        self,
        tokens: TokenLedger,
        token: str,
        clock: DayClock,
        emission_per_day: int,
        alloc_point: int = 1,
        total_alloc_point: int = 1,
    ):
        if total_alloc_point <= 0 or not 0 <= alloc_point <= total_alloc_point:
            raise ValueError("alloc_point must be within [0, total_alloc_point]")
        self.tokens = tokens
        self.token = token
        self.clock = clock
        self.emission_per_day = emission_per_day
        self.alloc_point = alloc_point
        self.total_alloc_point = total_alloc_point
        self.last_collected_day = clock.current_day()

    def pending(self) -> int:
        days = max(0, self.clock.current_day() - self.last_collected_day)
        return self.emission_per_day * days * self.alloc_point // self.total_alloc_point

    def collect(self, to: str) -> int:
        amount = self.pending()
        self.last_collected_day = self.clock.current_day()
        if amount:
            self.tokens.mint(self.token, to, amount)
            logger.debug("Collected %d %s from emission pool into %s", amount, self.token, to)
        return amount

    def snapshot(self) -> Any:
        return self.last_collected_day

    def restore(self, state: Any) -> None:
        self.last_collected_day = state


class TreasuryReservoir:
    """Pays denomination A from a treasury account and mints denomination B.

    When the treasury is short on A it first collects from its registered
    reward sources; if that still does not cover the payout the call fails.
    """

    def __init__(
        self,
        tokens: TokenLedger,
        treasury_account: str,
        reward_token_a: str,
        reward_token_b: str,
        sources: Optional[List[RewardSource]] = None,
    ):
        self.tokens = tokens
        self.treasury_account = treasury_account
        self.reward_token_a = reward_token_a
        self.reward_token_b = reward_token_b
        self.sources: List[RewardSource] = list(sources or [])

    def add_source(self, source: RewardSource) -> None:
        self.sources.append(source)

    def available(self) -> int:
        return self.tokens.balance_of(self.reward_token_a, self.treasury_account)

    def replenish(self) -> int:
        collected = 0
        for source in self.sources:
            collected += source.collect(self.treasury_account)
        return collected

    def pay(self, to: str, reward_a: int, reward_b: int) -> None:
        if reward_a > 0:
            if self.available() < reward_a:
                self.replenish()
            available = self.available()
            if available < reward_a:
                raise InsufficientReserve(
                    f"Treasury holds {available} {self.reward_token_a}, payout needs {reward_a}"
                )
            self.tokens.transfer(self.reward_token_a, self.treasury_account, to, reward_a)
        if reward_b > 0:
            self.tokens.mint(self.reward_token_b, to, reward_b)

    def recover_wrong_tokens(self, token: str, amount: int, to: str) -> None:
        self.tokens.transfer(token, self.treasury_account, to, amount)

    def snapshot(self) -> Any:
        return [source.snapshot() if isinstance(source, Transactional) else None
                for source in self.sources]

    def restore(self, state: Any) -> None:
        for source, source_state in zip(self.sources, state):
            if isinstance(source, Transactional):
                source.restore(source_state)


def snapshot_collaborators(collaborators: List[Any]) -> List[Tuple[Any, Any]]:
    """Capture the state of every collaborator that supports it."""
    taken = []
    seen = set()
    for collaborator in collaborators:
        if isinstance(collaborator, Transactional) and id(collaborator) not in seen:
            seen.add(id(collaborator))
            taken.append((collaborator, collaborator.snapshot()))
    return taken


def restore_collaborators(taken: List[Tuple[Any, Any]]) -> None:
    for collaborator, state in taken:
        collaborator.restore(copy.deepcopy(state))
