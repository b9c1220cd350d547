"""Table pipeline — campaign scope → ad group scope → text search → sort → paginate."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence

from adpulse.collation import collation_key
from adpulse.schema import NUMERIC_FIELDS, STRING_FIELDS, CalculatedMetricRow

SearchMode = Literal["contains", "exact", "exclude"]
SortDirection = Literal["asc", "desc"]

SEARCH_MODES = ("contains", "exact", "exclude")
DEFAULT_PAGE_SIZE = 50


@dataclass
class FilterParams:
    search_term: str = ""
    search_mode: SearchMode = "contains"
    campaign_filter: Optional[str] = None
    ad_group_filter: Optional[str] = None
    sort_field: str = "cost"
    sort_direction: SortDirection = "desc"
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FilterParams":
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class PageResult:
    page_rows: List[CalculatedMetricRow] = field(default_factory=list)
    total_rows: int = 0
    total_pages: int = 0
    page: int = 1


# ─────────────────────────────────────────────────────────────────────────────
# Text search
# ─────────────────────────────────────────────────────────────────────────────


def _haystack(row: CalculatedMetricRow) -> str:
    return " ".join(
        [row.search_term or "", row.campaign or "", row.ad_group or ""]
    ).lower()


def _contains(row: CalculatedMetricRow, tokens: List[str]) -> bool:
    text = _haystack(row)
    return all(tok in text for tok in tokens)


def _exact(row: CalculatedMetricRow, query: str) -> bool:
    return query in (
        (row.search_term or "").strip().lower(),
        (row.campaign or "").strip().lower(),
        (row.ad_group or "").strip().lower(),
    )


def search_predicate(query: str, mode: str) -> Callable[[CalculatedMetricRow], bool]:
    if mode not in SEARCH_MODES:
        raise ValueError(f"Unknown search mode: {mode!r}")
    q = (query or "").strip().lower()
    if not q:
        return lambda row: True
    if mode == "exact":
        return lambda row: _exact(row, q)
    tokens = q.split()
    if mode == "exclude":
        return lambda row: not _contains(row, tokens)
    return lambda row: _contains(row, tokens)


# ─────────────────────────────────────────────────────────────────────────────
# Stages
# ─────────────────────────────────────────────────────────────────────────────


def filter_rows(
    rows: Sequence[CalculatedMetricRow], params: FilterParams
) -> List[CalculatedMetricRow]:
    """Apply the scope and search stages (AND-composed) without sorting or paging."""
    out = list(rows)
    if params.campaign_filter:
        out = [r for r in out if r.campaign == params.campaign_filter]
    if params.ad_group_filter:
        out = [r for r in out if r.ad_group == params.ad_group_filter]
    pred = search_predicate(params.search_term, params.search_mode)
    return [r for r in out if pred(r)]


def default_direction(field_name: str) -> SortDirection:
    """Numbers start highest-first, names start A→Z."""
    return "asc" if field_name in STRING_FIELDS else "desc"


def toggle_sort(params: FilterParams, field_name: str) -> FilterParams:
    """Return new params after a header click on *field_name*."""
    if field_name == params.sort_field:
        flipped = "asc" if params.sort_direction == "desc" else "desc"
        return replace(params, sort_direction=flipped, page=1)
    return replace(
        params,
        sort_field=field_name,
        sort_direction=default_direction(field_name),
        page=1,
    )


def sort_control(params: FilterParams, field_name: str, flip_clicked: bool) -> FilterParams:
    """Params after one pass of a sort picker plus direction button.

    Picking a new field applies its default direction; the button flips the
    current one. Neither leaves *params* unchanged.
    """
    if field_name != params.sort_field or flip_clicked:
        return toggle_sort(params, field_name)
    return params


def sort_rows(
    rows: Sequence[CalculatedMetricRow], field_name: str, direction: str = "desc"
) -> List[CalculatedMetricRow]:
    if field_name in STRING_FIELDS:
        key = lambda r: collation_key(getattr(r, field_name, ""))  # noqa: E731
    elif field_name in NUMERIC_FIELDS:
        key = lambda r: float(getattr(r, field_name, 0) or 0)  # noqa: E731
    else:
        raise ValueError(f"Unknown sort field: {field_name!r}")
    # sorted(reverse=True) keeps equal keys in their original order.
    return sorted(rows, key=key, reverse=(direction == "desc"))


def paginate(
    rows: Sequence[CalculatedMetricRow], page: int, page_size: int = DEFAULT_PAGE_SIZE
) -> PageResult:
    size = max(int(page_size or DEFAULT_PAGE_SIZE), 1)
    total = len(rows)
    total_pages = math.ceil(total / size) if total else 0
    current = min(max(int(page or 1), 1), max(total_pages, 1))
    start = (current - 1) * size
    return PageResult(
        page_rows=list(rows[start:start + size]),
        total_rows=total,
        total_pages=total_pages,
        page=current,
    )


def apply(rows: Sequence[CalculatedMetricRow], params: FilterParams) -> PageResult:
    filtered = filter_rows(rows, params)
    ordered = sort_rows(filtered, params.sort_field, params.sort_direction)
    return paginate(ordered, params.page, params.page_size)
