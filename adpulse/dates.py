"""Date helpers for daily campaign data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Sequence

from adpulse.schema import RawMetricRow

DEFAULT_DATE_RANGE = "Last 30 days"


@dataclass
class DateRange:
    start: str
    end: str
    display: str


@dataclass
class Campaign:
    id: str
    name: str
    total_cost: float


def _parse(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
    except (ValueError, AttributeError):
        return None


def _fmt(value: str, today: date) -> str:
    d = _parse(value)
    if d is None:
        return value
    label = f"{d.strftime('%b')} {d.day}"
    if d.year != today.year:
        label += f", {d.year}"
    return label


def date_range(rows: Iterable[RawMetricRow], today: Optional[date] = None) -> Optional[DateRange]:
    """Earliest and latest non-blank date in *rows*, or None."""
    dates = sorted(r.date.strip() for r in rows if r.date and r.date.strip())
    if not dates:
        return None
    today = today or date.today()
    start, end = dates[0], dates[-1]
    if start == end:
        display = _fmt(start, today)
    else:
        display = f"{_fmt(start, today)} - {_fmt(end, today)}"
    return DateRange(start=start, end=end, display=display)


def days_in_range(start: str, end: str) -> int:
    """Inclusive day count; 30 when either date cannot be parsed."""
    a, b = _parse(start), _parse(end)
    if a is None or b is None:
        return 30
    return abs((b - a).days) + 1


def filter_by_date(
    rows: Sequence[RawMetricRow], start: Optional[str] = None, end: Optional[str] = None
) -> List[RawMetricRow]:
    """Keep rows whose date falls in ``[start, end]``; open ends are unbounded.

    Undated rows are kept only when no bound is given.
    """
    if not start and not end:
        return list(rows)
    out = []
    for r in rows:
        d = (r.date or "")[:10]
        if not d:
            continue
        if start and d < start:
            continue
        if end and d > end:
            continue
        out.append(r)
    return out


def campaigns(daily: Iterable[RawMetricRow]) -> List[Campaign]:
    """Campaigns present in the daily tab, highest total cost first."""
    by_id: Dict[str, Campaign] = {}
    for r in daily:
        if not r.campaign_id or not r.campaign:
            continue
        existing = by_id.get(r.campaign_id)
        total = (existing.total_cost if existing else 0.0) + r.cost
        by_id[r.campaign_id] = Campaign(id=r.campaign_id, name=r.campaign, total_cost=total)
    return sorted(by_id.values(), key=lambda c: c.total_cost, reverse=True)


def metrics_by_date(daily: Iterable[RawMetricRow], campaign_id: str) -> List[RawMetricRow]:
    rows = [r for r in daily if str(r.campaign_id) == str(campaign_id)]
    return sorted(rows, key=lambda r: r.date)
