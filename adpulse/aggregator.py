"""Totals and per-group rollups over calculated rows.

Counters are summed first and the KPIs are then derived from the sums.
Ratios are never averaged across rows.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional, Union

from adpulse.metrics import derive
from adpulse.schema import COUNTER_FIELDS, CalculatedMetricRow, TotalsRow

GroupKey = Union[str, Callable[[CalculatedMetricRow], str]]


def aggregate(
    rows: Iterable[CalculatedMetricRow], label: str = "Total"
) -> Optional[TotalsRow]:
    """Return summed totals for *rows*, or ``None`` when there are none."""
    sums = {name: 0 for name in COUNTER_FIELDS}
    count = 0
    for row in rows:
        count += 1
        for name in COUNTER_FIELDS:
            sums[name] += getattr(row, name, 0) or 0

    if count == 0:
        return None

    return TotalsRow(
        label=label,
        row_count=count,
        impressions=int(sums["impressions"]),
        clicks=int(sums["clicks"]),
        cost=float(sums["cost"]),
        conversions=float(sums["conversions"]),
        conversion_value=float(sums["conversion_value"]),
        **derive(
            sums["impressions"],
            sums["clicks"],
            sums["cost"],
            sums["conversions"],
            sums["conversion_value"],
        ),
    )


def _key_fn(key: GroupKey) -> Callable[[CalculatedMetricRow], str]:
    if callable(key):
        return key
    return lambda row: str(getattr(row, key, "") or "")


def group_rows(
    rows: Iterable[CalculatedMetricRow], key: GroupKey
) -> Dict[str, List[CalculatedMetricRow]]:
    """Group rows by *key*, keeping first-occurrence order of the groups."""
    fn = _key_fn(key)
    groups: Dict[str, List[CalculatedMetricRow]] = {}
    for row in rows:
        groups.setdefault(fn(row), []).append(row)
    return groups


def aggregate_by(
    rows: Iterable[CalculatedMetricRow],
    key: GroupKey,
    label_prefix: str = "",
) -> Dict[str, TotalsRow]:
    """Totals per group; each group is reduced and re-derived independently."""
    out: Dict[str, TotalsRow] = {}
    for name, members in group_rows(rows, key).items():
        totals = aggregate(members, label=f"{label_prefix}{name}")
        if totals is not None:
            out[name] = totals
    return out


def summarize_campaigns(rows: Iterable[CalculatedMetricRow]) -> List[TotalsRow]:
    """Per-campaign totals, highest cost first."""
    totals = list(aggregate_by(rows, "campaign").values())
    return sorted(totals, key=lambda t: t.cost, reverse=True)
