"""Smoke tests for configuration, scenarios, persistence, reporting and CLI.

These tests verify the modules around the ledger fit together.
Run these first to catch obvious breakage.
"""

import json
import os

import pandas as pd
import pytest
from pydantic import ValidationError

from tierstake.cli import main
from tierstake.config.loader import config_from_dict, load_config
from tierstake.config.schema import Config, to_base_units
from tierstake.engine.factory import build_ledger
from tierstake.engine.tiers import SENTINEL_TIER_INDEX
from tierstake.persistence.state_store import (
    LedgerSnapshot,
    load_snapshot,
    restore_ledger,
    save_snapshot,
    snapshot_ledger,
)
from tierstake.reporting.export import (
    events_frame,
    export_csv,
    export_json,
    positions_frame,
    tier_totals_frame,
)
from tierstake.simulation.runner import Scenario, ScenarioRunner, Step, load_scenario
from tierstake.validation import SanityChecker, validate_ledger

from conftest import GOLD, PLATINUM, SILVER, START_DAY, units

SCENARIO_PATH = os.path.join(os.path.dirname(__file__), '..', 'scenarios', 'platinum_downgrade.yaml')


def modified_config(config: Config, **sections) -> Config:
    data = config.to_dict()
    for section, values in sections.items():
        if isinstance(values, dict):
            data[section].update(values)
        else:
            data[section] = values
    return config_from_dict(data)


class TestConfigLoading:
    """Smoke tests for configuration loading."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert isinstance(config, Config)
        assert [tier.name for tier in config.tiers] == ['Silver', 'Gold', 'Platinum', 'Diamond']

    def test_config_hash_is_deterministic(self):
        """Same config produces same hash."""
        assert load_config().compute_hash() == load_config().compute_hash()

    def test_config_hash_tracks_changes(self, config):
        changed = modified_config(config, ledger={'horizon_day': 30_000})
        assert changed.compute_hash() != config.compute_hash()

    def test_tier_definitions_in_base_units(self, config):
        tiers = config.tier_definitions()
        assert tiers[0].min_amount == units(1000)
        assert tiers[0].max_amount == units(9999)
        assert tiers[3].max_amount == units(700_000_000)
        assert tiers[2].day_rate_a == 1_000_000

    def test_inverted_tier_rejected(self, config):
        data = config.to_dict()
        data['tiers'][0]['min_amount'] = 20_000
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_reward_tokens_must_differ(self, config):
        with pytest.raises(ValidationError):
            modified_config(config, tokens={'reward_token_b': 'STAKE'})

    def test_accounts_must_be_distinct(self, config):
        with pytest.raises(ValidationError):
            modified_config(config, accounts={'treasury_account': 'ledger'})


class TestBaseUnits:

    @pytest.mark.parametrize("value,expected", [
        (1, 10**18),
        ("0.3", 3 * 10**17),
        ("1000.5", 10005 * 10**17),
        (0, 0),
    ])
    def test_conversion(self, value, expected):
        assert to_base_units(value, 18) == expected

    @pytest.mark.parametrize("value", [-1, "0.0000000000000000001"])
    def test_rejects_unrepresentable(self, value):
        with pytest.raises(ValueError):
            to_base_units(value, 18)


class TestBuildLedger:

    def test_catalog_matches_config(self, ledger):
        assert ledger.tier_count() == 5
        assert ledger.get_tier(SENTINEL_TIER_INDEX).max_amount == 0
        assert ledger.get_tier(GOLD).lock_days == 90

    def test_treasury_funded(self, bundle):
        assert bundle.reservoir.available() == units(1_500_000)

    def test_emission_source_added(self, config, clock):
        config = modified_config(config, reservoir={'emission_per_day': 100, 'initial_balance': 0})
        bundle = build_ledger(config, clock=clock)
        assert len(bundle.reservoir.sources) == 1
        clock.advance(2)
        assert bundle.reservoir.replenish() == units(200)


class TestSanityChecks:

    def test_defaults_have_no_errors(self, config):
        warnings = SanityChecker(config).check_config_inputs()
        assert not [w for w in warnings if w.severity == 'error']
        assert any(w.message == 'Longest lock can extend past the horizon' for w in warnings)

    def test_overlap_and_gap_reported(self, config):
        data = config.to_dict()
        data['tiers'][1]['min_amount'] = 9000
        data['tiers'][3]['min_amount'] = 200_000
        warnings = SanityChecker(config_from_dict(data)).check_config_inputs()
        messages = [w.message for w in warnings]
        assert 'Tiers 1 and 2 have overlapping ranges' in messages
        assert 'Gap between tier ranges' in messages

    def test_rate_below_scale_is_error(self, config):
        data = config.to_dict()
        data['tiers'][0]['day_rate_a'] = 500
        warnings = SanityChecker(config_from_dict(data)).check_config_inputs()
        assert [w.category for w in warnings if w.severity == 'error'] == ['tiers']

    def test_live_ledger_is_consistent(self, config, ledger, fund, clock):
        fund('alice', units(50_000))
        ledger.deposit('alice', PLATINUM, units(50_000))
        clock.advance(180)
        ledger.withdraw('alice', units(45_000))
        assert SanityChecker(config).check_ledger_state(ledger) == []

    def test_tampered_totals_detected(self, config, ledger, fund):
        fund('alice', units(1000))
        ledger.deposit('alice', SILVER, units(1000))
        ledger.catalog.get(SILVER).total_deposited += 1
        warnings = validate_ledger(config, ledger)
        assert any(w.category == 'invariant' for w in warnings)


class TestScenarioRunner:

    def test_packaged_scenario_passes(self, config):
        result = ScenarioRunner(config, load_scenario(SCENARIO_PATH)).run()

        assert result.passed, result.failures
        assert result.final_positions['alice'] == {
            'amount': units(10_000),
            'tier_index': GOLD,
            'deposit_start_day': START_DAY + 210,
        }
        assert result.final_positions['bob']['tier_index'] == SILVER
        assert not [w for w in result.warnings if w.severity == 'error']

    def test_unexpected_outcome_is_a_failure(self, config):
        scenario = Scenario(start_day=START_DAY, balances={'alice': 500}, steps=[
            Step(action='deposit', account='alice', tier=SILVER, amount=500),
        ])
        result = ScenarioRunner(config, scenario).run()
        assert not result.passed
        assert 'BelowTierMinimum' in result.failures[0]
        assert result.records[0]['ok'] is False

    def test_records_track_balances(self, config):
        scenario = Scenario(start_day=START_DAY, steps=[
            Step(action='fund', account='alice', amount=1000),
            Step(action='deposit', account='alice', tier=SILVER, amount=1000),
            Step(action='advance', days=30),
            Step(action='harvest', account='alice'),
        ])
        result = ScenarioRunner(config, scenario).run()
        assert result.passed
        last = result.records[-1]
        assert last['balance_a'] == units('0.3')
        assert last['balance_b'] == units('0.3')
        assert last['day'] == START_DAY + 30

    def test_step_requires_fields(self):
        with pytest.raises(ValidationError):
            Step(action='deposit', account='alice', tier=SILVER)

    def test_step_requires_one_target_day(self):
        with pytest.raises(ValidationError):
            Step(action='set_horizon_day', day=5, offset=5)

    def test_unknown_error_name_rejected(self):
        with pytest.raises(ValidationError):
            Step(action='harvest', account='alice', expect_error='NoSuchError')


class TestPersistence:

    def test_save_and_restore(self, config, bundle, ledger, fund, clock, tmp_path):
        fund('alice', units(10_000))
        ledger.deposit('alice', GOLD, units(10_000))
        ledger.set_horizon_day('owner', START_DAY + 500)
        clock.advance(10)
        path = tmp_path / 'ledger.json'
        save_snapshot(ledger, path)

        fresh = build_ledger(config, tokens=bundle.tokens, clock=clock, fund_treasury=False).ledger
        restore_ledger(fresh, load_snapshot(path))

        assert fresh.get_position('alice') == ledger.get_position('alice')
        assert fresh.get_tier(GOLD).total_deposited == units(10_000)
        assert fresh.config.horizon_day == START_DAY + 500
        assert fresh.get_accrued('alice') == ledger.get_accrued('alice')
        assert SanityChecker(config).check_ledger_state(fresh) == []

    def test_snapshot_rejects_dangling_tier(self, ledger):
        data = snapshot_ledger(ledger).model_dump()
        data['positions'] = {'alice': {'amount': 5, 'tier_index': 9, 'deposit_start_day': 0}}
        with pytest.raises(ValidationError):
            LedgerSnapshot(**data)

    def test_snapshot_rejects_stale_tier_totals(self, ledger, fund):
        """Zeroed tier totals would let set_rate_scale through with principal live."""
        fund('alice', units(1000))
        ledger.deposit('alice', SILVER, units(1000))
        data = snapshot_ledger(ledger).model_dump()
        data['tiers'][SILVER]['total_deposited'] = 0
        with pytest.raises(ValidationError):
            LedgerSnapshot(**data)

    def test_restore_keeps_config_object(self, ledger, tmp_path):
        config = ledger.config
        ledger.set_horizon_day('owner', START_DAY + 50)
        path = tmp_path / 'ledger.json'
        save_snapshot(ledger, path)
        ledger.set_horizon_day('owner', START_DAY + 80)

        restore_ledger(ledger, load_snapshot(path))

        assert ledger.config is config
        assert config.horizon_day == START_DAY + 50

    def test_snapshot_version_checked(self, ledger, tmp_path):
        path = tmp_path / 'ledger.json'
        data = snapshot_ledger(ledger).model_dump()
        data['version'] = 99
        path.write_text(json.dumps(data))
        with pytest.raises(ValueError):
            load_snapshot(path)


class TestReporting:

    @pytest.fixture
    def result(self, config):
        return ScenarioRunner(config, load_scenario(SCENARIO_PATH)).run()

    def test_positions_frame(self, ledger, fund):
        fund('alice', units(1000))
        ledger.deposit('alice', SILVER, units(1000))
        df = positions_frame(ledger)
        assert list(df['account']) == ['alice']
        assert df.iloc[0]['state'] == 'locked'

    def test_tier_totals_frame(self, ledger):
        df = tier_totals_frame(ledger)
        assert len(df) == 5
        assert df['total_deposited'].sum() == 0

    def test_events_frame(self, result):
        df = events_frame(result.events)
        assert df.columns[0] == 'event'
        assert (df['event'] == 'Withdraw').sum() == 1

    def test_events_frame_empty(self):
        assert list(events_frame([]).columns) == ['event']

    def test_export_csv(self, result, tmp_path):
        path = tmp_path / 'records.csv'
        export_csv(result, path)
        df = pd.read_csv(path)
        assert len(df) == len(result.scenario.steps)

    def test_export_json(self, result, tmp_path):
        path = tmp_path / 'result.json'
        export_json(result, path)
        data = json.loads(path.read_text())
        assert data['config_hash'] == result.config.compute_hash()
        assert data['scenario'] == 'platinum_downgrade'
        assert data['failures'] == []


class TestCli:

    def test_run(self, tmp_path, capsys):
        csv_path = tmp_path / 'out.csv'
        assert main(['run', SCENARIO_PATH, '--csv', str(csv_path)]) == 0
        assert csv_path.exists()
        assert 'platinum_downgrade' in capsys.readouterr().out

    def test_check(self, capsys):
        assert main(['check', '--day', str(START_DAY)]) == 0
        assert 'Longest lock' in capsys.readouterr().out
