"""Export functionality for CSV and JSON."""

import json
from typing import Any, Dict, List

import pandas as pd

from ..domain.messages import IssueBalancingOrder, PublishTariff, ReviseTariff, RevokeTariff
from ..pricing.decision import PeriodRecord
from ..simulation.runner import SimulationResult


def period_row(record: PeriodRecord) -> Dict[str, Any]:
    """Flatten a period record into one table row."""
    row = {
        'period': record.period,
        'timeslot': record.timeslot,
        'signups': record.signups,
        'consumptions': record.consumptions,
        'withdrawals': record.withdrawals,
        'tariffs_seen': record.tariffs,
        'cash': record.cash,
        'cash_gain': record.cash_gain,
        'publication_fee': record.publication_fee,
        'entry_budget': record.entry_budget,
        'rule': record.rule,
        'published_rate': record.published_rate,
        'aggressiveness': record.aggressiveness,
    }
    snapshot = record.snapshot
    if snapshot is not None:
        row.update({
            'rate_mean': snapshot.fixed_rate.mean,
            'rate_sd': snapshot.fixed_rate.sd,
            'rate_min': snapshot.fixed_rate.min,
            'rate_max': snapshot.fixed_rate.max,
            'rate_delta_mean': snapshot.delta_mean_rate,
            'rate_delta_min': snapshot.delta_min_rate,
            'rate_delta_max': snapshot.delta_max_rate,
            'signup_mean': snapshot.signup_payment.mean,
            'signup_sd': snapshot.signup_payment.sd,
            'signup_min': snapshot.signup_payment.min,
            'signup_max': snapshot.signup_payment.max,
            'signup_delta_mean': snapshot.delta_mean_signup,
        })
    return row


def periods_frame(records: List[PeriodRecord]) -> pd.DataFrame:
    """Period records as a DataFrame, one row per decision period."""
    return pd.DataFrame([period_row(r) for r in records])


def action_row(action) -> Dict[str, Any]:
    """Describe an outbound action as a flat dict."""
    if isinstance(action, PublishTariff):
        return {'action': 'publish', 'offer_id': action.offer.id,
                'rate': action.offer.rates[0].value if action.offer.rates else None}
    if isinstance(action, ReviseTariff):
        return {'action': 'revise', 'offer_id': action.offer.id,
                'supersedes': action.supersedes_id,
                'rate': action.offer.rates[0].value if action.offer.rates else None}
    if isinstance(action, RevokeTariff):
        return {'action': 'revoke', 'offer_id': action.offer_id}
    if isinstance(action, IssueBalancingOrder):
        return {'action': 'balancing_order', 'offer_id': action.offer_id,
                'fraction': action.fraction, 'price': action.price}
    raise TypeError(f"Unknown action type: {type(action).__name__}")


def export_csv(result: SimulationResult, filepath: str):
    """Export per-period diagnostics to CSV."""
    periods_frame(result.periods).to_csv(filepath, index=False)


def export_json(result: SimulationResult, filepath: str):
    """Export simulation results to JSON."""
    frame = periods_frame(result.periods)
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'periods': json.loads(frame.to_json(orient='records')),
        'actions': [action_row(a) for a in result.actions],
        'net_usage': result.net_usage,
        'customer_counts': result.customer_counts,
        'final_metrics': result.final_metrics,
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2)
