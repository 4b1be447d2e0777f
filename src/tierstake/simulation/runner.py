"""Scenario runner - replay scripted ledger operations on a manual clock.

A scenario is a list of steps (deposits, withdrawals, harvests, owner actions
and clock advances). Each step is executed against a fresh ledger built from
the config; refusals are recorded rather than raised, and an `expect_error`
on a step turns the refusal into the expected outcome.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, model_validator

from ..config.schema import Config, TierSpec, TokenQuantity
from ..engine import errors
from ..engine.clock import ManualDayClock
from ..engine.events import LedgerEvent
from ..engine.factory import LedgerBundle, build_ledger
from ..validation.sanity_checks import SanityChecker, ValidationWarning

logger = logging.getLogger(__name__)

Action = Literal[
    "advance",
    "deposit",
    "withdraw",
    "harvest",
    "emergency_withdraw",
    "sweep",
    "add_tier",
    "set_tier",
    "set_horizon_day",
    "set_deposit_cutoff_day",
    "set_deposit_enabled",
    "set_rate_scale",
    "fund",
]

# Required fields per action
_REQUIRED: Dict[str, tuple] = {
    "advance": ("days",),
    "deposit": ("account", "tier", "amount"),
    "withdraw": ("account", "amount"),
    "harvest": ("account",),
    "emergency_withdraw": ("account",),
    "sweep": ("token", "amount", "to"),
    "add_tier": ("tier_spec",),
    "set_tier": ("tier", "tier_spec"),
    "set_deposit_enabled": ("enabled",),
    "set_rate_scale": ("scale_a", "scale_b"),
    "fund": ("account", "amount"),
}


class Step(BaseModel):
    """One scripted operation."""
    action: Action
    account: Optional[str] = None
    caller: Optional[str] = Field(default=None, description="Defaults to the config owner")
    tier: Optional[int] = Field(default=None, ge=0)
    amount: Optional[TokenQuantity] = None
    days: Optional[int] = Field(default=None, ge=0)
    day: Optional[int] = Field(default=None, description="Absolute day for horizon/cutoff")
    offset: Optional[int] = Field(default=None, description="Day relative to the current day")
    enabled: Optional[bool] = None
    scale_a: Optional[int] = None
    scale_b: Optional[int] = None
    token: Optional[str] = None
    to: Optional[str] = None
    tier_spec: Optional[TierSpec] = None
    expect_error: Optional[str] = None

    @model_validator(mode='after')
    def validate_required_fields(self):
        """Ensure each action carries the fields it needs."""
        missing = [name for name in _REQUIRED.get(self.action, ()) if getattr(self, name) is None]
        if self.action in ("set_horizon_day", "set_deposit_cutoff_day"):
            if (self.day is None) == (self.offset is None):
                raise ValueError(f"{self.action} needs exactly one of 'day' or 'offset'")
        if missing:
            raise ValueError(f"{self.action} step is missing {', '.join(missing)}")
        if self.expect_error is not None and not hasattr(errors, self.expect_error):
            raise ValueError(f"Unknown error name {self.expect_error!r}")
        return self


class Scenario(BaseModel):
    """Starting day, opening balances and the steps to replay."""
    name: str = "scenario"
    start_day: int = Field(default=0, ge=0)
    balances: Dict[str, TokenQuantity] = Field(
        default_factory=dict,
        description="Opening deposit-token balances (whole tokens), approved to custody"
    )
    steps: List[Step] = Field(default_factory=list)


@dataclass
class ScenarioResult:
    """Complete scenario result."""
    config: Config
    scenario: Scenario
    records: List[Dict[str, Any]]
    events: List[LedgerEvent]
    final_positions: Dict[str, Dict[str, Any]]
    failures: List[str] = field(default_factory=list)
    warnings: List[ValidationWarning] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures


def load_scenario(path: Union[str, Path]) -> Scenario:
    with open(path, 'r') as f:
        data = yaml.safe_load(f) or {}
    return Scenario(**data)


class ScenarioRunner:
    """Replays a scenario against a ledger built from configuration."""

    def __init__(self, config: Config, scenario: Scenario):
        """
        Initialize scenario runner.

        Args:
            config: Ledger configuration
            scenario: Steps to replay
        """
        self.config = config
        self.scenario = scenario
        self.clock = ManualDayClock(scenario.start_day)
        self.bundle: LedgerBundle = build_ledger(config, clock=self.clock)
        self._handlers: Dict[str, Callable[[Step], None]] = {
            "advance": self._advance,
            "deposit": self._deposit,
            "withdraw": self._withdraw,
            "harvest": self._harvest,
            "emergency_withdraw": self._emergency_withdraw,
            "sweep": self._sweep,
            "add_tier": self._add_tier,
            "set_tier": self._set_tier,
            "set_horizon_day": self._set_horizon_day,
            "set_deposit_cutoff_day": self._set_deposit_cutoff_day,
            "set_deposit_enabled": self._set_deposit_enabled,
            "set_rate_scale": self._set_rate_scale,
            "fund": self._fund,
        }

    @property
    def ledger(self):
        return self.bundle.ledger

    def _caller(self, step: Step) -> str:
        return step.caller or self.config.accounts.owner

    def _units(self, value: TokenQuantity) -> int:
        return self.config.units(value)

    # Step handlers

    def _advance(self, step: Step) -> None:
        self.clock.advance(step.days)

    def _deposit(self, step: Step) -> None:
        self.ledger.deposit(step.account, step.tier, self._units(step.amount))

    def _withdraw(self, step: Step) -> None:
        self.ledger.withdraw(step.account, self._units(step.amount))

    def _harvest(self, step: Step) -> None:
        self.ledger.harvest(step.account)

    def _emergency_withdraw(self, step: Step) -> None:
        self.ledger.emergency_withdraw(self._caller(step), step.account)

    def _sweep(self, step: Step) -> None:
        self.ledger.sweep_foreign_token(self._caller(step), step.token, self._units(step.amount), step.to)

    def _add_tier(self, step: Step) -> None:
        self.ledger.add_tier(self._caller(step), step.tier_spec.to_tier(self.config.tokens.decimals))

    def _set_tier(self, step: Step) -> None:
        self.ledger.set_tier(
            self._caller(step), step.tier, step.tier_spec.to_tier(self.config.tokens.decimals)
        )

    def _target_day(self, step: Step) -> int:
        if step.day is not None:
            return step.day
        return self.clock.current_day() + step.offset

    def _set_horizon_day(self, step: Step) -> None:
        self.ledger.set_horizon_day(self._caller(step), self._target_day(step))

    def _set_deposit_cutoff_day(self, step: Step) -> None:
        self.ledger.set_deposit_cutoff_day(self._caller(step), self._target_day(step))

    def _set_deposit_enabled(self, step: Step) -> None:
        self.ledger.set_deposit_enabled(self._caller(step), step.enabled)

    def _set_rate_scale(self, step: Step) -> None:
        self.ledger.set_rate_scale(self._caller(step), step.scale_a, step.scale_b)

    def _fund(self, step: Step) -> None:
        """Give an account deposit tokens and approve them to custody."""
        self._credit(step.account, self._units(step.amount))

    def _credit(self, account: str, amount: int) -> None:
        tokens = self.bundle.tokens
        deposit_token = self.config.tokens.deposit_token
        custody = self.config.accounts.custody_account
        tokens.mint(deposit_token, account, amount)
        tokens.approve(deposit_token, account, custody,
                       tokens.allowance(deposit_token, account, custody) + amount)

    # Recording

    def _record(self, index: int, step: Step, error: Optional[Exception]) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            'step': index,
            'day': self.clock.current_day(),
            'action': step.action,
            'account': step.account,
            'ok': error is None,
            'error': type(error).__name__ if error is not None else None,
        }
        if step.account is not None:
            summary = self.ledger.get_position_summary(step.account)
            tokens = self.bundle.tokens
            record.update({
                'amount': summary.position.amount,
                'tier_index': summary.position.tier_index,
                'deposit_start_day': summary.position.deposit_start_day,
                'state': summary.state.value,
                'accrued_a': summary.accrued.reward_a,
                'accrued_b': summary.accrued.reward_b,
                'balance_deposit': tokens.balance_of(self.config.tokens.deposit_token, step.account),
                'balance_a': tokens.balance_of(self.config.tokens.reward_token_a, step.account),
                'balance_b': tokens.balance_of(self.config.tokens.reward_token_b, step.account),
            })
        return record

    def run(self) -> ScenarioResult:
        """
        Replay all steps.

        Returns:
            ScenarioResult with per-step records, events and any failures
        """
        records: List[Dict[str, Any]] = []
        failures: List[str] = []

        for account, balance in self.scenario.balances.items():
            self._credit(account, self._units(balance))

        for index, step in enumerate(self.scenario.steps):
            error: Optional[Exception] = None
            try:
                self._handlers[step.action](step)
            except errors.LedgerError as exc:
                error = exc

            outcome = type(error).__name__ if error is not None else None
            if outcome != step.expect_error:
                message = (
                    f"step {index} ({step.action}): expected "
                    f"{step.expect_error or 'success'}, got {outcome or 'success'}"
                )
                if error is not None:
                    message += f" ({error})"
                failures.append(message)
                logger.warning("Scenario %s %s", self.scenario.name, message)

            records.append(self._record(index, step, error))

        final_positions = {
            account: {
                'amount': position.amount,
                'tier_index': position.tier_index,
                'deposit_start_day': position.deposit_start_day,
            }
            for account, position in sorted(self.ledger.positions.items())
        }
        warnings = SanityChecker(self.config).check_ledger_state(self.ledger)

        logger.info("Scenario %s: %d steps, %d failures", self.scenario.name,
                    len(self.scenario.steps), len(failures))
        return ScenarioResult(
            config=self.config,
            scenario=self.scenario,
            records=records,
            events=list(self.ledger.events),
            final_positions=final_positions,
            failures=failures,
            warnings=warnings,
        )
