"""Mapping utilities between sheet records / tabular data and the internal row schema."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from adpulse.schema import RawMetricRow

# Sheet export key -> internal field. The Apps Script writes the short names.
FIELD_ALIASES: Dict[str, str] = {
    "impr": "impressions",
    "impressions": "impressions",
    "clicks": "clicks",
    "cost": "cost",
    "spend": "cost",
    "conv": "conversions",
    "conversions": "conversions",
    "value": "conversion_value",
    "conversion_value": "conversion_value",
    "conversionValue": "conversion_value",
    "campaign": "campaign",
    "campaignId": "campaign_id",
    "campaign_id": "campaign_id",
    "ad_group": "ad_group",
    "adGroup": "ad_group",
    "search_term": "search_term",
    "searchTerm": "search_term",
    "keyword": "search_term",
    "match_type": "match_type",
    "matchType": "match_type",
    "date": "date",
}

_INT_FIELDS = {"impressions", "clicks"}
_FLOAT_FIELDS = {"cost", "conversions", "conversion_value"}


def _to_int(v: Any) -> int:
    try:
        if pd.isna(v):
            return 0
    except Exception:
        pass
    try:
        return max(int(float(v)), 0)
    except Exception:
        return 0


def _to_float(v: Any) -> float:
    try:
        if pd.isna(v):
            return 0.0
    except Exception:
        pass
    try:
        f = float(v)
    except Exception:
        return 0.0
    if f != f or f in (float("inf"), float("-inf")) or f < 0:
        return 0.0
    return f


def _to_str(v: Any) -> str:
    if v is None:
        return ""
    try:
        if pd.isna(v):
            return ""
    except Exception:
        pass
    return str(v).strip()


def normalize_match_type(v: Any) -> Optional[str]:
    """Map Google Ads match type spellings (``EXACT``, ``Phrase match``) to broad/phrase/exact."""
    s = _to_str(v).lower().replace("_", " ")
    if not s:
        return None
    for mt in ("exact", "phrase", "broad"):
        if s.startswith(mt):
            return mt
    return None


def map_record_to_row(record: Dict[str, Any]) -> RawMetricRow:
    values: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, v in record.items():
        target = FIELD_ALIASES.get(key)
        if target is None:
            extra[key] = v
            continue
        # First alias wins so "search_term" is not clobbered by "keyword".
        if target in values and values[target] not in ("", None, 0, 0.0):
            continue
        if target in _INT_FIELDS:
            values[target] = _to_int(v)
        elif target in _FLOAT_FIELDS:
            values[target] = _to_float(v)
        elif target == "match_type":
            values[target] = normalize_match_type(v)
        else:
            values[target] = _to_str(v)

    return RawMetricRow(
        campaign=values.get("campaign", ""),
        ad_group=values.get("ad_group", ""),
        search_term=values.get("search_term", ""),
        match_type=values.get("match_type"),
        date=values.get("date", ""),
        campaign_id=values.get("campaign_id", ""),
        impressions=values.get("impressions", 0),
        clicks=values.get("clicks", 0),
        cost=values.get("cost", 0.0),
        conversions=values.get("conversions", 0.0),
        conversion_value=values.get("conversion_value", 0.0),
        extra=extra,
    )


def map_records_to_rows(records: Iterable[Dict[str, Any]]) -> List[RawMetricRow]:
    return [map_record_to_row(r) for r in records]


def map_dataframe_to_rows(df: pd.DataFrame) -> List[RawMetricRow]:
    return map_records_to_rows(df.to_dict(orient="records"))


def rows_to_dataframe(rows: Iterable[Any]) -> pd.DataFrame:
    data = [r.to_dict() for r in rows]
    return pd.DataFrame(data)
