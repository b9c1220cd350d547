"""Internal schema for Google Ads metric rows, totals and tree nodes."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Literal, Optional

MatchType = Literal["broad", "phrase", "exact"]
NodeKind = Literal["campaign", "adGroup", "searchTerm"]

COUNTER_FIELDS = ("impressions", "clicks", "cost", "conversions", "conversion_value")
DERIVED_FIELDS = ("ctr", "cpc", "cvr", "cpa", "roas")
STRING_FIELDS = ("search_term", "campaign", "ad_group", "match_type", "date")
NUMERIC_FIELDS = COUNTER_FIELDS + DERIVED_FIELDS


@dataclass
class RawMetricRow:
    campaign: str
    ad_group: str = ""
    search_term: str = ""
    match_type: Optional[MatchType] = None
    date: str = ""
    campaign_id: str = ""

    impressions: int = 0
    clicks: int = 0
    cost: float = 0.0
    conversions: float = 0.0
    conversion_value: float = 0.0

    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CalculatedMetricRow(RawMetricRow):
    ctr: float = 0.0
    cpc: float = 0.0
    cvr: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0


@dataclass
class TotalsRow:
    """Summed counters with KPIs re-derived from the sums."""

    label: str = "Total"
    row_count: int = 0

    impressions: int = 0
    clicks: int = 0
    cost: float = 0.0
    conversions: float = 0.0
    conversion_value: float = 0.0

    ctr: float = 0.0
    cpc: float = 0.0
    cvr: float = 0.0
    cpa: float = 0.0
    roas: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TreeNode:
    id: str
    name: str
    kind: NodeKind
    children: List["TreeNode"] = field(default_factory=list)
    leaf_data: Optional[CalculatedMetricRow] = None
    totals: Optional[TotalsRow] = None

    @property
    def is_leaf(self) -> bool:
        return self.kind == "searchTerm"
