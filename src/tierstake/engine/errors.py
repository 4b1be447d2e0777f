"""Error taxonomy for the staking ledger.

Three families:
- validation errors: the caller supplied an out-of-range amount, tier or day
- precondition errors: the request is refused because of current ledger state
- authorization errors: a non-owner invoked an owner-only operation

Every error aborts the whole call; the ledger restores its state before the
exception reaches the caller.
"""


class LedgerError(Exception):
    """Base class for all ledger errors."""


class LedgerValidationError(LedgerError, ValueError):
    """Caller input outside the accepted range."""


class PreconditionError(LedgerError):
    """Operation refused in the current ledger state."""


class Unauthorized(LedgerError, PermissionError):
    """Owner-only operation invoked by another account."""

    def __init__(self, caller: str, operation: str):
        super().__init__(f"{caller} is not allowed to call {operation}")
        self.caller = caller
        self.operation = operation


# Validation

class BelowTierMinimum(LedgerValidationError):
    def __init__(self, amount: int, min_amount: int):
        super().__init__(f"Amount {amount} is below tier minimum {min_amount}")
        self.amount = amount
        self.min_amount = min_amount


class AboveTierMaximum(LedgerValidationError):
    def __init__(self, amount: int, max_amount: int):
        super().__init__(f"Amount {amount} is above tier maximum {max_amount}")
        self.amount = amount
        self.max_amount = max_amount


class InvalidTierBounds(LedgerValidationError):
    def __init__(self, min_amount: int, max_amount: int):
        super().__init__(f"Tier minimum {min_amount} exceeds maximum {max_amount}")
        self.min_amount = min_amount
        self.max_amount = max_amount


class InvalidTierRate(LedgerValidationError):
    """Nonzero day rate that floors to zero at the configured rate scale."""


class UnknownTier(LedgerValidationError):
    def __init__(self, index: int):
        super().__init__(f"Unknown tier index {index}")
        self.index = index


class HorizonBeforeNow(LedgerValidationError):
    def __init__(self, day: int, current_day: int):
        super().__init__(f"Horizon day {day} is earlier than current day {current_day}")
        self.day = day
        self.current_day = current_day


class InvalidAmount(LedgerValidationError):
    """Negative or non-integer token amount."""


class InvalidRateScale(LedgerValidationError):
    """Rate scale must be a positive integer."""


# Preconditions

class DepositsClosed(PreconditionError):
    pass


class LockActive(PreconditionError):
    def __init__(self, unlock_day: int, current_day: int):
        super().__init__(f"Position is locked until day {unlock_day} (current day {current_day})")
        self.unlock_day = unlock_day
        self.current_day = current_day


class InsufficientBalance(PreconditionError):
    def __init__(self, requested: int, available: int):
        super().__init__(f"Requested {requested} but position holds {available}")
        self.requested = requested
        self.available = available


class HorizonAlreadyEnded(PreconditionError):
    def __init__(self, horizon_day: int, current_day: int):
        super().__init__(
            f"Horizon day {horizon_day} has already passed (current day {current_day})"
        )
        self.horizon_day = horizon_day
        self.current_day = current_day


class DepositsStillOpen(PreconditionError):
    pass


class PositionsStillLive(PreconditionError):
    pass


class CannotSweepStakedToken(PreconditionError):
    def __init__(self, token: str):
        super().__init__(f"Token {token} is managed by the ledger and cannot be swept")
        self.token = token


class ReentrantCall(PreconditionError):
    """Mutating call issued from inside another call's external transfer."""


class InsufficientReserve(PreconditionError):
    """Reward reservoir cannot cover a payout."""


class TransferFailed(PreconditionError):
    """Token ledger refused a transfer (balance or allowance too low)."""
