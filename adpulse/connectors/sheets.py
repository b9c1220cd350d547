"""Sheets connector: fetch tab data from the Apps Script web app endpoint.

The endpoint serves one JSON array of row objects per ``?tab=<name>``.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from adpulse.config import SheetsConfig
from adpulse.mappers import map_records_to_rows
from adpulse.schema import RawMetricRow

logger = logging.getLogger(__name__)

SHEET_TABS = ("daily", "searchTerms", "adGroups")
USER_AGENT = "adpulse/1.0"

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class SheetsConfigError(ValueError):
    pass


class SheetsFetchError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class RetryPolicy:
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 15.0
    jitter_seconds: float = 0.5

    @classmethod
    def from_config(cls, cfg: SheetsConfig) -> "RetryPolicy":
        return cls(
            max_retries=cfg.max_retries,
            backoff_base_seconds=cfg.backoff_base_seconds,
            backoff_max_seconds=cfg.backoff_max_seconds,
        )


@dataclass
class TabData:
    daily: List[RawMetricRow] = field(default_factory=list)
    search_terms: List[RawMetricRow] = field(default_factory=list)
    ad_groups: List[RawMetricRow] = field(default_factory=list)

    def rows_for(self, tab: str) -> List[RawMetricRow]:
        return {
            "daily": self.daily,
            "searchTerms": self.search_terms,
            "adGroups": self.ad_groups,
        }.get(tab, [])


def _sleep_for(attempt: int, retry: RetryPolicy) -> float:
    sleep_s = min(retry.backoff_base_seconds * (2**attempt), retry.backoff_max_seconds)
    return sleep_s + random.uniform(0, retry.jitter_seconds)


def _get_with_retry(session, url: str, params: Dict[str, str], timeout: float, retry: RetryPolicy):
    attempt = 0
    while True:
        try:
            resp = session.get(
                url, params=params, timeout=timeout, headers={"User-Agent": USER_AGENT}
            )
        except (requests.ConnectionError, requests.Timeout) as exc:
            if attempt >= retry.max_retries:
                raise SheetsFetchError(
                    f"Failed to fetch data for tab {params.get('tab')}: {exc}"
                ) from exc
            logger.warning("sheets fetch tab=%s attempt=%d failed: %s", params.get("tab"), attempt + 1, exc)
        else:
            if resp.status_code not in _RETRYABLE_STATUS_CODES or attempt >= retry.max_retries:
                return resp
            logger.warning(
                "sheets fetch tab=%s attempt=%d status=%s, retrying",
                params.get("tab"), attempt + 1, resp.status_code,
            )
        time.sleep(_sleep_for(attempt, retry))
        attempt += 1


def fetch_tab_records(
    sheet_url: str,
    tab: str,
    timeout: float = 30.0,
    retry_policy: Optional[RetryPolicy] = None,
    session=None,
) -> List[Dict[str, Any]]:
    """Fetch the raw JSON records of one tab."""
    if not sheet_url or not sheet_url.strip():
        raise SheetsConfigError(
            "Sheet URL is required. Set sheets.url in config.yaml or ADPULSE_SHEET_URL."
        )
    session = session or requests.Session()
    retry = retry_policy or RetryPolicy()

    logger.info("Fetching %s data from %s", tab, sheet_url)
    resp = _get_with_retry(session, sheet_url.strip(), {"tab": tab}, timeout, retry)
    if not resp.ok:
        raise SheetsFetchError(
            f"Failed to fetch data for tab {tab}: {resp.status_code} {resp.reason}",
            status_code=resp.status_code,
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise SheetsFetchError(f"Invalid JSON for tab {tab}: {exc}") from exc

    if not isinstance(data, list):
        raise SheetsFetchError(f"Expected array but got {type(data).__name__} for tab {tab}")

    logger.info("Fetched %d %s rows", len(data), tab)
    return data


def fetch_tab(
    sheet_url: str,
    tab: str,
    timeout: float = 30.0,
    retry_policy: Optional[RetryPolicy] = None,
    session=None,
) -> List[RawMetricRow]:
    records = fetch_tab_records(sheet_url, tab, timeout, retry_policy, session)
    return map_records_to_rows(r for r in records if isinstance(r, dict))


def fetch_all_tabs(
    sheet_url: str,
    tabs=("daily", "searchTerms"),
    cfg: Optional[SheetsConfig] = None,
    session=None,
) -> TabData:
    """Fetch every requested tab; any tab failing fails the whole fetch."""
    cfg = cfg or SheetsConfig()
    retry = RetryPolicy.from_config(cfg)
    session = session or requests.Session()

    data = TabData()
    for tab in tabs:
        if tab not in SHEET_TABS:
            raise SheetsConfigError(f"Unknown tab {tab!r}; expected one of {', '.join(SHEET_TABS)}")
        rows = fetch_tab(sheet_url, tab, cfg.timeout_seconds, retry, session)
        if tab == "daily":
            data.daily = rows
        elif tab == "searchTerms":
            data.search_terms = rows
        else:
            data.ad_groups = rows

    logger.info(
        "Fetched all tabs: daily=%d searchTerms=%d adGroups=%d",
        len(data.daily), len(data.search_terms), len(data.ad_groups),
    )
    return data
