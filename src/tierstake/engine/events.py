"""Ledger notifications and the in-process event log."""

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Type


@dataclass(frozen=True)
class LedgerEvent:
    """Base class for ledger events."""

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class Deposit(LedgerEvent):
    account: str
    tier_index: int
    amount: int


@dataclass(frozen=True)
class Withdraw(LedgerEvent):
    account: str
    amount: int


@dataclass(frozen=True)
class Harvest(LedgerEvent):
    account: str
    reward_a: int
    reward_b: int


@dataclass(frozen=True)
class TierAdded(LedgerEvent):
    lock_days: int
    index: int


@dataclass(frozen=True)
class TierUpdated(LedgerEvent):
    index: int


@dataclass(frozen=True)
class HorizonUpdated(LedgerEvent):
    day: int


@dataclass(frozen=True)
class DepositCutoffUpdated(LedgerEvent):
    day: int


@dataclass(frozen=True)
class DepositEnabledUpdated(LedgerEvent):
    enabled: bool


@dataclass(frozen=True)
class RateScaleUpdated(LedgerEvent):
    scale_a: int
    scale_b: int


@dataclass(frozen=True)
class EmergencyWithdraw(LedgerEvent):
    account: str
    amount: int


@dataclass(frozen=True)
class ForeignTokenSwept(LedgerEvent):
    token: str
    amount: int
    to: str


@dataclass(frozen=True)
class OwnershipTransferred(LedgerEvent):
    previous_owner: str
    new_owner: str


class EventLog:
    """Append-only record of emitted events with optional subscribers.

    Events are only published once the call that produced them has committed;
    the ledger buffers them for the duration of a call and discards the buffer
    on rollback.
    """

    def __init__(self):
        self.events: List[LedgerEvent] = []
        self._subscribers: List[Callable[[LedgerEvent], None]] = []

    def subscribe(self, callback: Callable[[LedgerEvent], None]) -> None:
        self._subscribers.append(callback)

    def publish(self, events: List[LedgerEvent]) -> None:
        for event in events:
            self.events.append(event)
            for callback in self._subscribers:
                callback(event)

    def of_type(self, event_type: Type[LedgerEvent]) -> List[LedgerEvent]:
        return [e for e in self.events if isinstance(e, event_type)]

    def last(self, event_type: Optional[Type[LedgerEvent]] = None) -> Optional[LedgerEvent]:
        candidates = self.events if event_type is None else self.of_type(event_type)
        return candidates[-1] if candidates else None

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self):
        return iter(self.events)
