"""Derived KPI calculation for metric rows.

All ratios resolve to 0 when their denominator is 0, so the output is
always finite for non-negative counters:

    CTR  = clicks / impressions * 100
    CPC  = cost / clicks
    CvR  = conversions / clicks * 100
    CPA  = cost / conversions
    ROAS = conversion_value / cost
"""

from __future__ import annotations

from dataclasses import fields
from typing import Any, Dict, Iterable, List, Union

from adpulse.mappers import map_record_to_row
from adpulse.schema import COUNTER_FIELDS, CalculatedMetricRow, RawMetricRow

RowLike = Union[RawMetricRow, Dict[str, Any]]

_RAW_FIELD_NAMES = [f.name for f in fields(RawMetricRow)]


def _ratio(num: float, den: float, scale: float = 1.0) -> float:
    return (num / den) * scale if den > 0 else 0.0


def derive(
    impressions: float,
    clicks: float,
    cost: float,
    conversions: float,
    conversion_value: float,
) -> Dict[str, float]:
    """Return ``{ctr, cpc, cvr, cpa, roas}`` for a set of counters."""
    return {
        "ctr": _ratio(clicks, impressions, 100.0),
        "cpc": _ratio(cost, clicks),
        "cvr": _ratio(conversions, clicks, 100.0),
        "cpa": _ratio(cost, conversions),
        "roas": _ratio(conversion_value, cost),
    }


def _as_raw(row: RowLike) -> RawMetricRow:
    if isinstance(row, RawMetricRow):
        return row
    return map_record_to_row(dict(row))


def calculate(row: RowLike) -> CalculatedMetricRow:
    raw = _as_raw(row)
    values = {name: getattr(raw, name) for name in _RAW_FIELD_NAMES}
    values["extra"] = dict(raw.extra)
    values.update(
        impressions=raw.impressions or 0,
        clicks=raw.clicks or 0,
        cost=raw.cost or 0.0,
        conversions=raw.conversions or 0.0,
        conversion_value=raw.conversion_value or 0.0,
    )
    values.update(derive(*(values[name] for name in COUNTER_FIELDS)))
    return CalculatedMetricRow(**values)


def calculate_all(rows: Iterable[RowLike]) -> List[CalculatedMetricRow]:
    """Calculate every row; output is 1:1 with the input and in the same order."""
    return [calculate(r) for r in rows]
