"""Google Sheets push: upload search-term exports into a worksheet."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Sequence

import pandas as pd

try:
    import gspread  # type: ignore
except Exception:  # pragma: no cover
    gspread = None

try:
    from google.oauth2.service_account import Credentials  # type: ignore
except Exception:  # pragma: no cover
    Credentials = None

from adpulse.io_csv import export_table
from adpulse.schema import CalculatedMetricRow

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]


class GoogleSheetsConfigError(RuntimeError):
    pass


def _resolve_creds_path() -> str:
    path = os.environ.get("ADPULSE_GOOGLE_CREDS_JSON") or os.environ.get(
        "GOOGLE_APPLICATION_CREDENTIALS"
    )
    if not path:
        raise GoogleSheetsConfigError(
            "Google credentials not configured. Set ADPULSE_GOOGLE_CREDS_JSON or "
            "GOOGLE_APPLICATION_CREDENTIALS to a Service Account JSON path."
        )
    if not Path(path).exists():
        raise GoogleSheetsConfigError(f"Credential file not found: {path}.")
    return path


def _open_worksheet(spreadsheet_id: str, worksheet: str):
    creds_path = _resolve_creds_path()
    if gspread is None or Credentials is None:
        raise GoogleSheetsConfigError(
            "Google Sheets dependencies missing. Install gspread and google-auth, "
            "then retry."
        )
    creds = Credentials.from_service_account_file(creds_path, scopes=SCOPES)
    client = gspread.authorize(creds)
    return client.open_by_key(spreadsheet_id).worksheet(worksheet)


def _upload(ws, values: List[List[str]]) -> None:
    ws.clear()
    ws.update("A1", values)


def push_rows(
    spreadsheet_id: str,
    worksheet: str,
    rows: Sequence[CalculatedMetricRow],
    match_type: str = "broad",
) -> int:
    """Push calculated rows with the export header. Returns data rows uploaded."""
    df = export_table(rows, match_type=match_type)
    if df.empty:
        logger.warning("No rows to push to worksheet %s", worksheet)
        return 0
    ws = _open_worksheet(spreadsheet_id, worksheet)
    _upload(ws, [list(df.columns)] + df.astype(str).values.tolist())
    logger.info("Pushed %d rows to %s/%s", len(df), spreadsheet_id, worksheet)
    return len(df)


def push_tabular_file(spreadsheet_id: str, worksheet: str, input_path: str) -> int:
    """Push an exported CSV/TSV file. Returns number of data rows uploaded."""
    ws = _open_worksheet(spreadsheet_id, worksheet)

    p = Path(input_path)
    if p.suffix.lower() == ".tsv":
        df = pd.read_csv(p, sep="\t", dtype=str, keep_default_na=False)
    else:
        df = pd.read_csv(p, dtype=str, keep_default_na=False)

    _upload(ws, [list(df.columns)] + df.astype(str).values.tolist())
    logger.info("Pushed %d rows from %s to %s/%s", len(df), p, spreadsheet_id, worksheet)
    return len(df)
