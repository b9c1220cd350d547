"""CSV / TSV read-write helpers for metric rows and search-term exports."""

from __future__ import annotations

import math
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import pandas as pd

from adpulse.mappers import map_dataframe_to_rows
from adpulse.schema import CalculatedMetricRow, RawMetricRow, TotalsRow

EXPORT_COLUMNS = [
    "Search Term",
    "Campaign",
    "Ad Group",
    "Impressions",
    "Clicks",
    "Cost",
    "Conversions",
    "Conversion Value",
    "CTR (%)",
    "CPC",
    "Conversion Rate (%)",
    "CPA",
    "ROAS",
]

MATCH_TYPE_NAMES = {
    "broad": "Broad Match",
    "phrase": "Phrase Match",
    "exact": "Exact Match",
}


class InputSchemaError(ValueError):
    """Raised when an input CSV is missing required columns."""


def match_type_display_name(match_type: str) -> str:
    return MATCH_TYPE_NAMES.get(match_type, MATCH_TYPE_NAMES["broad"])


def format_search_term(term: str, match_type: Optional[str] = "broad") -> str:
    """Wrap *term* the way Google Ads writes keywords: "phrase", [exact], broad."""
    if match_type == "phrase":
        return f'"{term}"'
    if match_type == "exact":
        return f"[{term}]"
    return term


def _money(v: float) -> str:
    return f"{v:.2f}"


def _roas(v: float) -> str:
    return f"{v:.2f}" if math.isfinite(v) else "0.00"


def _export_record(row, term: str, campaign: str, ad_group: str) -> List[str]:
    return [
        term,
        campaign,
        ad_group,
        str(int(row.impressions)),
        str(int(row.clicks)),
        _money(row.cost),
        f"{row.conversions:.1f}",
        _money(row.conversion_value),
        _money(row.ctr),
        _money(row.cpc),
        _money(row.cvr),
        _money(row.cpa),
        _roas(row.roas),
    ]


def export_records(
    rows: Sequence[CalculatedMetricRow],
    match_type: Optional[str] = "broad",
    totals: Optional[TotalsRow] = None,
) -> List[List[str]]:
    """Formatted export records (without header).

    *match_type* wraps every search term; pass ``None`` to use each row's own
    match type instead.
    """
    out = []
    for r in rows:
        mt = match_type if match_type is not None else r.match_type
        out.append(_export_record(r, format_search_term(r.search_term, mt), r.campaign, r.ad_group))
    if totals is not None and out:
        out.append(_export_record(totals, totals.label, "", ""))
    return out


def export_table(
    rows: Sequence[CalculatedMetricRow],
    match_type: Optional[str] = "broad",
    totals: Optional[TotalsRow] = None,
) -> pd.DataFrame:
    return pd.DataFrame(export_records(rows, match_type, totals), columns=EXPORT_COLUMNS)


def to_tsv(
    rows: Sequence[CalculatedMetricRow],
    match_type: Optional[str] = "broad",
    totals: Optional[TotalsRow] = None,
) -> str:
    """Tab-separated text for pasting into Google Sheets; empty string for no rows."""
    if not rows:
        return ""
    lines = [EXPORT_COLUMNS] + export_records(rows, match_type, totals)
    return "\n".join("\t".join(line) for line in lines)


def write_export_csv(
    rows: Sequence[CalculatedMetricRow],
    path: str | Path,
    match_type: Optional[str] = "broad",
    totals: Optional[TotalsRow] = None,
) -> Optional[Path]:
    """Write the 13-column CSV export. Returns None (and writes nothing) for no rows."""
    if not rows:
        return None
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    export_table(rows, match_type, totals).to_csv(p, index=False, encoding="utf-8")
    return p


def write_export_tsv(
    rows: Sequence[CalculatedMetricRow],
    path: str | Path,
    match_type: Optional[str] = "broad",
    totals: Optional[TotalsRow] = None,
) -> Optional[Path]:
    """Write the TSV export (UTF-8, no BOM). Returns None for no rows."""
    text = to_tsv(rows, match_type, totals)
    if not text:
        return None
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text + "\n", encoding="utf-8")
    return p


def read_rows_csv(path: str | Path) -> List[RawMetricRow]:
    """Read a local sheet dump (sheet or internal column names) into rows."""
    df = pd.read_csv(path, dtype={"campaignId": str, "campaign_id": str})
    if "campaign" not in df.columns:
        raise InputSchemaError(
            "Input CSV is missing required column: campaign. "
            "Expected the sheet export columns (campaign, ad_group, search_term, impr, clicks, cost, conv, value)."
        )
    return map_dataframe_to_rows(df)


def write_rows_csv(rows: Iterable[RawMetricRow], path: str | Path) -> Path:
    """Dump rows with their internal field names."""
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    df = pd.DataFrame([r.to_dict() for r in rows])
    if "extra" in df.columns:
        df = df.drop(columns=["extra"])
    df.to_csv(p, index=False, encoding="utf-8")
    return p


def write_report(text: str, path: str | Path) -> Path:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")
    return p
