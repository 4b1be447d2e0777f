"""Export functionality for CSV and JSON."""

import json
from typing import Dict, List

import pandas as pd

from ..engine.events import LedgerEvent
from ..engine.ledger import StakingLedger
from ..simulation.runner import ScenarioResult

POSITION_COLUMNS = [
    'account', 'amount', 'tier_index', 'deposit_start_day',
    'state', 'unlock_day', 'accrued_a', 'accrued_b',
]


def positions_frame(ledger: StakingLedger) -> pd.DataFrame:
    """One row per account with its position and current accrual."""
    data = []
    for account in sorted(ledger.positions):
        summary = ledger.get_position_summary(account)
        data.append({
            'account': account,
            'amount': summary.position.amount,
            'tier_index': summary.position.tier_index,
            'deposit_start_day': summary.position.deposit_start_day,
            'state': summary.state.value,
            'unlock_day': summary.unlock_day,
            'accrued_a': summary.accrued.reward_a,
            'accrued_b': summary.accrued.reward_b,
        })
    return pd.DataFrame(data, columns=POSITION_COLUMNS)


def events_frame(events: List[LedgerEvent]) -> pd.DataFrame:
    """Events as rows; fields an event type lacks are left empty."""
    df = pd.DataFrame([event.to_dict() for event in events])
    if df.empty:
        return pd.DataFrame(columns=['event'])
    columns = ['event'] + [c for c in df.columns if c != 'event']
    return df[columns]


def tier_totals_frame(ledger: StakingLedger) -> pd.DataFrame:
    """Principal per tier, sentinel included, with position counts."""
    counts: Dict[int, int] = {}
    for position in ledger.positions.values():
        if position.amount:
            counts[position.tier_index] = counts.get(position.tier_index, 0) + 1
    data = [
        {
            'tier_index': index,
            'min_amount': tier.min_amount,
            'max_amount': tier.max_amount,
            'lock_days': tier.lock_days,
            'day_rate_a': tier.day_rate_a,
            'day_rate_b': tier.day_rate_b,
            'total_deposited': tier.total_deposited,
            'positions': counts.get(index, 0),
        }
        for index, tier in enumerate(ledger.catalog)
    ]
    return pd.DataFrame(data)


def export_csv(result: ScenarioResult, filepath: str):
    """Export per-step scenario records to CSV."""
    df = pd.DataFrame(result.records)
    df.to_csv(filepath, index=False)


def export_json(result: ScenarioResult, filepath: str):
    """Export scenario results to JSON."""
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'scenario': result.scenario.name,
        'records': result.records,
        'events': [event.to_dict() for event in result.events],
        'final_positions': result.final_positions,
        'failures': result.failures,
        'warnings': [
            {
                'severity': w.severity,
                'category': w.category,
                'message': w.message,
                'details': w.details,
            }
            for w in result.warnings
        ],
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2, default=str)
