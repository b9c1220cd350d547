"""Load and validate config.yaml."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml


@dataclass
class SheetsConfig:
    url: str = ""
    tabs: List[str] = field(default_factory=lambda: ["daily", "searchTerms"])
    timeout_seconds: float = 30.0
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 15.0


@dataclass
class TableConfig:
    page_size: int = 50
    sort_field: str = "cost"
    sort_direction: str = "desc"


@dataclass
class ExportConfig:
    match_type: str = "broad"
    csv_filename: str = "search-terms-export.csv"
    tsv_filename: str = "search-terms-export.tsv"


@dataclass
class SmartFilterConfig:
    """Thresholds behind the named smart-filter presets."""

    high_budget_top_n: int = 10
    low_roas: float = 1.0
    wasted_spend_min_cost: float = 50.0
    high_volume_min_impressions: int = 1000
    low_ctr: float = 1.0
    top_min_roas: float = 4.0
    top_min_ctr: float = 3.0
    high_cpa: float = 100.0
    low_cvr: float = 1.0


@dataclass
class ProviderConfig:
    name: str = "openai"
    model: str = ""  # empty = provider default
    temperature: float = 0.7
    max_tokens: int = 2000


@dataclass
class BudgetConfig:
    """Hard caps to control live API spending."""

    max_calls_per_run: int = 10  # 0 = unlimited


@dataclass
class RetryConfig:
    """Exponential-backoff settings for live API calls."""

    max_api_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 60.0


@dataclass
class AppConfig:
    currency: str = "$"
    sheets: SheetsConfig = field(default_factory=SheetsConfig)
    table: TableConfig = field(default_factory=TableConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    smart_filters: SmartFilterConfig = field(default_factory=SmartFilterConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    budget: BudgetConfig = field(default_factory=BudgetConfig)
    retry_api: RetryConfig = field(default_factory=RetryConfig)


def load_config(path: str | Path = "config.yaml") -> AppConfig:
    """Load config from YAML file, falling back to defaults.

    ``ADPULSE_SHEET_URL`` overrides ``sheets.url`` when set.
    """
    p = Path(path)
    raw: dict = {}
    if p.exists():
        with open(p, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    cfg = AppConfig(
        currency=str(raw.get("currency", "$")),
        sheets=SheetsConfig(**raw.get("sheets", {})),
        table=TableConfig(**raw.get("table", {})),
        export=ExportConfig(**raw.get("export", {})),
        smart_filters=SmartFilterConfig(**raw.get("smart_filters", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        budget=BudgetConfig(**raw.get("budget", {})),
        retry_api=RetryConfig(**raw.get("retry_api", {})),
    )

    env_url = os.environ.get("ADPULSE_SHEET_URL", "").strip()
    if env_url:
        cfg.sheets.url = env_url
    return cfg
