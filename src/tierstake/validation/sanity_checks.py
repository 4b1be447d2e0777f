"""Sanity checks for ledger configuration and live ledger state."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..config.schema import Config
from ..engine.ledger import StakingLedger
from ..engine.tiers import SENTINEL_TIER_INDEX, Tier


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "tiers", "schedule", "invariant", "custody"
    message: str
    details: Optional[str] = None


def _ranges_overlap(a: Tier, b: Tier) -> bool:
    return a.min_amount <= b.max_amount and b.min_amount <= a.max_amount


class SanityChecker:
    """Run sanity checks on configuration and ledger state."""

    def __init__(self, config: Config):
        """Initialize with configuration."""
        self.config = config

    def check_config_inputs(self) -> List[ValidationWarning]:
        """
        Check configuration inputs for implausible values.

        Returns:
            List of validation warnings
        """
        warnings = []
        tiers = self.config.tier_definitions()
        settings = self.config.ledger

        if not tiers:
            warnings.append(ValidationWarning(
                severity="warning",
                category="tiers",
                message="No tiers configured; every deposit will be rejected",
            ))

        # Rates that floor to zero at the configured scale are rejected by the ledger
        for position, tier in enumerate(tiers, start=1):
            for label, rate, scale in (("A", tier.day_rate_a, settings.rate_scale_a),
                                       ("B", tier.day_rate_b, settings.rate_scale_b)):
                if rate > 0 and rate // scale == 0:
                    warnings.append(ValidationWarning(
                        severity="error",
                        category="tiers",
                        message=f"Tier {position} day rate {label} rounds to zero",
                        details=f"Rate {rate} < scale {scale}"
                    ))

        # Overlapping ranges: the first tier in catalog order wins on downgrade
        for i, first in enumerate(tiers, start=1):
            for j, second in enumerate(tiers[i:], start=i + 1):
                if _ranges_overlap(first, second):
                    warnings.append(ValidationWarning(
                        severity="warning",
                        category="tiers",
                        message=f"Tiers {i} and {j} have overlapping ranges",
                        details=(
                            f"[{first.min_amount}, {first.max_amount}] vs "
                            f"[{second.min_amount}, {second.max_amount}]; "
                            f"tier {i} takes precedence on withdrawal"
                        )
                    ))

        # Gaps between consecutive ranges drop positions to the sentinel
        ordered = sorted(tiers, key=lambda t: t.min_amount)
        for lower, upper in zip(ordered, ordered[1:]):
            if upper.min_amount > lower.max_amount + 1:
                warnings.append(ValidationWarning(
                    severity="warning",
                    category="tiers",
                    message="Gap between tier ranges",
                    details=(
                        f"Amounts in ({lower.max_amount}, {upper.min_amount}) match no tier "
                        "and fall to the sentinel after a withdrawal"
                    )
                ))

        if settings.horizon_day < settings.deposit_cutoff_day:
            warnings.append(ValidationWarning(
                severity="warning",
                category="schedule",
                message="Horizon day is before the deposit cutoff",
                details=(
                    f"Deposits between day {settings.horizon_day} and "
                    f"{settings.deposit_cutoff_day} accrue nothing"
                )
            ))

        max_lock = max((tier.lock_days for tier in tiers), default=0)
        if settings.deposit_cutoff_day + max_lock > settings.horizon_day and tiers:
            warnings.append(ValidationWarning(
                severity="warning",
                category="schedule",
                message="Longest lock can extend past the horizon",
                details=(
                    f"A {max_lock}-day lock started on cutoff day {settings.deposit_cutoff_day} "
                    f"ends after horizon day {settings.horizon_day}"
                )
            ))

        return warnings

    def check_ledger_state(self, ledger: StakingLedger) -> List[ValidationWarning]:
        """
        Check a ledger's state against its invariants.

        Args:
            ledger: Ledger to inspect

        Returns:
            List of validation warnings
        """
        warnings = []
        day = ledger.get_current_day()

        per_tier: Dict[int, int] = defaultdict(int)
        for account, position in ledger.positions.items():
            per_tier[position.tier_index] += position.amount

            if position.tier_index >= ledger.tier_count():
                warnings.append(ValidationWarning(
                    severity="error",
                    category="invariant",
                    message=f"Position {account} references unknown tier {position.tier_index}",
                ))
            if position.amount == 0 and position.tier_index != SENTINEL_TIER_INDEX:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="invariant",
                    message=f"Empty position {account} still references a real tier",
                    details=f"amount={position.amount}, tier_index={position.tier_index}"
                ))
            if position.deposit_start_day > day:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="invariant",
                    message=f"Position {account} starts in the future",
                    details=f"deposit_start_day={position.deposit_start_day}, current_day={day}"
                ))

        for index, tier in enumerate(ledger.catalog):
            if tier.total_deposited != per_tier.get(index, 0):
                warnings.append(ValidationWarning(
                    severity="error",
                    category="invariant",
                    message=f"Tier {index} total_deposited does not match its positions",
                    details=f"recorded={tier.total_deposited}, summed={per_tier.get(index, 0)}"
                ))

        principal = ledger.total_principal()
        custody = ledger.tokens.balance_of(ledger.deposit_token, ledger.custody_account)
        if custody < principal:
            warnings.append(ValidationWarning(
                severity="error",
                category="custody",
                message="Custody balance does not cover staked principal",
                details=f"custody={custody}, principal={principal}"
            ))

        if ledger.config.horizon_passed(day) and ledger.config.deposits_open(day):
            warnings.append(ValidationWarning(
                severity="warning",
                category="schedule",
                message="Deposits are open after the horizon",
                details="New positions accrue nothing"
            ))

        return warnings


def validate_ledger(config: Config, ledger: StakingLedger) -> List[ValidationWarning]:
    """
    Validate configuration and current ledger state together.

    Args:
        config: Ledger configuration
        ledger: Ledger built from it

    Returns:
        List of all validation warnings
    """
    checker = SanityChecker(config)
    warnings = []
    warnings.extend(checker.check_config_inputs())
    warnings.extend(checker.check_ledger_state(ledger))
    return warnings
