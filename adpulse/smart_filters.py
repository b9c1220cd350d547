"""Smart filters — tagged predicate variants and the dashboard's named presets.

A smart filter is one of:

    NumericThreshold(field, op, value)   keep rows where ``row.field <op> value``
    TopN(field, n)                       keep the n rows with the largest field
    AllOf(filters)                       keep rows every member keeps

Filters work on anything exposing the numeric metric attributes, so both
calculated rows and per-campaign ``TotalsRow`` objects can be filtered.
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Sequence, Tuple, Union

from adpulse.aggregator import aggregate
from adpulse.config import SmartFilterConfig
from adpulse.schema import NUMERIC_FIELDS

ThresholdOp = Literal["gt", "gte", "lt", "lte", "eq"]

_OPS: Dict[str, Callable[[float, float], bool]] = {
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
    "eq": operator.eq,
}


@dataclass(frozen=True)
class NumericThreshold:
    field: str
    op: ThresholdOp
    value: float
    kind: str = "numericThreshold"


@dataclass(frozen=True)
class TopN:
    field: str
    n: int
    kind: str = "topN"


@dataclass(frozen=True)
class AllOf:
    filters: Tuple["SmartFilterSpec", ...] = ()
    kind: str = "allOf"


SmartFilterSpec = Union[NumericThreshold, TopN, AllOf]


def _num(row: Any, name: str) -> float:
    if name not in NUMERIC_FIELDS:
        raise ValueError(f"Smart filters only apply to numeric fields, got {name!r}")
    return float(getattr(row, name, 0) or 0)


def apply_smart_filter(rows: Sequence[Any], spec: SmartFilterSpec) -> List[Any]:
    """Return the rows *spec* keeps, in their input order."""
    if isinstance(spec, NumericThreshold):
        if spec.op not in _OPS:
            raise ValueError(f"Unknown threshold op: {spec.op!r}")
        cmp = _OPS[spec.op]
        return [r for r in rows if cmp(_num(r, spec.field), spec.value)]

    if isinstance(spec, TopN):
        if spec.n <= 0:
            return []
        ranked = sorted(range(len(rows)), key=lambda i: _num(rows[i], spec.field), reverse=True)
        keep = set(ranked[: spec.n])
        return [r for i, r in enumerate(rows) if i in keep]

    if isinstance(spec, AllOf):
        kept = set(range(len(rows)))
        for member in spec.filters:
            # Each member sees the full input, so TopN ranks against all rows.
            ids = {id(r) for r in apply_smart_filter(rows, member)}
            kept &= {i for i, r in enumerate(rows) if id(r) in ids}
        return [r for i, r in enumerate(rows) if i in kept]

    raise TypeError(f"Unsupported smart filter: {spec!r}")


# ─────────────────────────────────────────────────────────────────────────────
# Presets
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SmartFilterPreset:
    id: str
    name: str
    description: str
    data_sources: Tuple[str, ...] = field(default_factory=tuple)


PRESETS: List[SmartFilterPreset] = [
    SmartFilterPreset(
        "high-budget-low-roas",
        "High Budget, Low ROAS",
        "Campaigns with high spending but poor return on ad spend",
        ("campaign-stats",),
    ),
    SmartFilterPreset(
        "underperforming-campaigns",
        "Underperforming Campaigns",
        "Campaigns below account average performance",
        ("campaign-stats",),
    ),
    SmartFilterPreset(
        "wasted-spend-keywords",
        "Wasted Spend Keywords",
        "Keywords with high cost but zero conversions",
        ("search-terms",),
    ),
    SmartFilterPreset(
        "high-volume-low-quality",
        "High Volume, Low Quality Keywords",
        "Keywords with high impressions but low CTR",
        ("search-terms",),
    ),
    SmartFilterPreset(
        "top-performing-keywords",
        "Top Performing Keywords",
        "Keywords with high ROAS and good CTR",
        ("search-terms",),
    ),
    SmartFilterPreset(
        "high-cost-low-performance-adgroups",
        "High Cost, Low Performance Ad Groups",
        "Ad groups with high CPA and low conversion rates",
        ("ad-group-analyzer",),
    ),
    SmartFilterPreset(
        "adgroups-high-cpa",
        "Ad Groups with High CPA",
        "Ad groups exceeding target cost per acquisition",
        ("ad-group-analyzer",),
    ),
]

_PRESETS_BY_ID = {p.id: p for p in PRESETS}


def presets_for(source: str) -> List[SmartFilterPreset]:
    return [p for p in PRESETS if source in p.data_sources]


def preset_filter(
    preset_id: str, rows: Sequence[Any], cfg: SmartFilterConfig
) -> SmartFilterSpec:
    """Resolve a preset into a concrete filter for *rows*.

    Account-average presets read their threshold from ``aggregate(rows)``.
    """
    if preset_id not in _PRESETS_BY_ID:
        raise ValueError(f"Unknown smart filter preset: {preset_id!r}")

    if preset_id == "high-budget-low-roas":
        return AllOf((TopN("cost", cfg.high_budget_top_n), NumericThreshold("roas", "lt", cfg.low_roas)))
    if preset_id == "underperforming-campaigns":
        account = aggregate(rows)
        avg_roas = account.roas if account else 0.0
        return AllOf((NumericThreshold("cost", "gt", 0.0), NumericThreshold("roas", "lt", avg_roas)))
    if preset_id == "wasted-spend-keywords":
        return AllOf((
            NumericThreshold("cost", "gte", cfg.wasted_spend_min_cost),
            NumericThreshold("conversions", "eq", 0.0),
        ))
    if preset_id == "high-volume-low-quality":
        return AllOf((
            NumericThreshold("impressions", "gte", cfg.high_volume_min_impressions),
            NumericThreshold("ctr", "lt", cfg.low_ctr),
        ))
    if preset_id == "top-performing-keywords":
        return AllOf((
            NumericThreshold("roas", "gte", cfg.top_min_roas),
            NumericThreshold("ctr", "gte", cfg.top_min_ctr),
        ))
    if preset_id == "high-cost-low-performance-adgroups":
        return AllOf((
            NumericThreshold("cpa", "gt", cfg.high_cpa),
            NumericThreshold("cvr", "lt", cfg.low_cvr),
        ))
    # adgroups-high-cpa
    return NumericThreshold("cpa", "gt", cfg.high_cpa)


def apply_preset(preset_id: str, rows: Sequence[Any], cfg: SmartFilterConfig) -> List[Any]:
    return apply_smart_filter(rows, preset_filter(preset_id, rows, cfg))
