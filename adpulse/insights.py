"""LLM insights — data summaries, prompt construction and provider dispatch."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Template

from adpulse.config import AppConfig
from adpulse.providers.base import BaseProvider, BudgetExceededError, TokenUsage

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"

SAMPLE_ROWS = 10
CELL_MAX_CHARS = 50
ROW_COUNT_OPTIONS = [5, 10, 30, 50, 100]
SUPPORTED_PROVIDERS = ("openai", "claude", "mock")

# USD per 1K tokens
OPENAI_PRICING = {
    "gpt-4-turbo": {"input": 0.01, "output": 0.03},
    "gpt-4": {"input": 0.03, "output": 0.06},
    "gpt-3.5-turbo": {"input": 0.001, "output": 0.002},
}
CLAUDE_PRICING = {
    "claude-3-5-sonnet": {"input": 0.003, "output": 0.015},
    "claude-3-haiku": {"input": 0.00025, "output": 0.00125},
    "claude-4": {"input": 0.003, "output": 0.015},
}


class InsightsError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class DataSource:
    id: str
    name: str
    description: str
    data_key: str


@dataclass(frozen=True)
class OptimizationTemplate:
    id: str
    name: str
    description: str
    data_sources: tuple
    prompt: str


@dataclass
class InsightContext:
    data_source: str
    level: str = ""
    currency: str = "$"
    row_count: int = 0
    filters: List[str] = field(default_factory=list)


@dataclass
class InsightResult:
    insights: str
    token_usage: TokenUsage


DATA_SOURCES: List[DataSource] = [
    DataSource("campaign-stats", "Google Campaign Stats",
               "Daily campaign performance metrics from the main dashboard", "daily"),
    DataSource("search-terms", "Search Terms",
               "Search term and keyword performance analysis", "searchTerms"),
    DataSource("ad-group-analyzer", "Ad Group Analyzer",
               "Ad group level performance and optimization insights", "daily"),
]

_ALL = ("campaign-stats", "search-terms", "ad-group-analyzer")

TEMPLATES: List[OptimizationTemplate] = [
    OptimizationTemplate(
        "campaign-budget-optimization", "Campaign Budget Optimization",
        "Analyze budget allocation and spending efficiency", ("campaign-stats",),
        "Analyze the campaign budget allocation and spending patterns. Identify opportunities to "
        "reallocate budget from underperforming campaigns to high-performing ones. Focus on ROAS, "
        "cost efficiency, and growth potential.",
    ),
    OptimizationTemplate(
        "campaign-structure-analysis", "Campaign Structure Analysis",
        "Review overall campaign organization and strategy", ("campaign-stats",),
        "Review the campaign structure and organization. Identify opportunities to consolidate, "
        "restructure, or create new campaigns based on performance patterns and business objectives.",
    ),
    OptimizationTemplate(
        "keyword-expansion", "Keyword Expansion Opportunities",
        "Find new keyword opportunities", ("search-terms",),
        "Analyze search term performance to identify keyword expansion opportunities. Find "
        "high-performing search queries that should be added as keywords and recommend match types.",
    ),
    OptimizationTemplate(
        "negative-keyword-recommendations", "Negative Keyword Recommendations",
        "Identify negative keyword opportunities", ("search-terms",),
        "Identify search terms that are generating clicks but not conversions. Recommend negative "
        "keywords to add at campaign and ad group levels to reduce wasted spend.",
    ),
    OptimizationTemplate(
        "match-type-optimization", "Match Type Optimization",
        "Optimize keyword match types", ("search-terms",),
        "Analyze keyword performance by match type. Recommend match type changes to improve "
        "targeting precision and reduce costs while maintaining reach.",
    ),
    OptimizationTemplate(
        "adgroup-restructuring", "Ad Group Restructuring Opportunities",
        "Identify ad group optimization opportunities", ("ad-group-analyzer",),
        "Analyze ad group performance and structure. Identify opportunities to reorganize ad groups, "
        "adjust targeting, and optimize bid strategies for better performance and cost efficiency.",
    ),
    OptimizationTemplate(
        "adgroup-bid-optimization", "Ad Group Bid Strategy Optimization",
        "Optimize bidding strategies at ad group level", ("ad-group-analyzer",),
        "Review ad group bid strategies and performance. Recommend bid adjustments, strategy changes, "
        "and target CPA optimizations based on conversion data and competition.",
    ),
    OptimizationTemplate(
        "general-performance-analysis", "General Performance Analysis",
        "Comprehensive performance review and optimization", _ALL,
        "Perform a comprehensive analysis of the selected data. Identify performance patterns, "
        "optimization opportunities, and provide specific recommendations to improve overall "
        "campaign performance and ROI.",
    ),
    OptimizationTemplate(
        "custom-analysis", "Custom Analysis",
        "Define your own analysis prompt", _ALL,
        "Analyze the Google Ads data and provide actionable insights. Focus on identifying "
        "optimization opportunities, cost reduction strategies, and performance improvement "
        "recommendations.",
    ),
]

_TEMPLATES_BY_ID = {t.id: t for t in TEMPLATES}
_SOURCES_BY_ID = {s.id: s for s in DATA_SOURCES}


def get_data_source(source_id: str) -> DataSource:
    if source_id not in _SOURCES_BY_ID:
        raise ValueError(f"Unknown data source: {source_id!r}")
    return _SOURCES_BY_ID[source_id]


def get_template(template_id: str) -> OptimizationTemplate:
    if template_id not in _TEMPLATES_BY_ID:
        raise ValueError(f"Unknown optimization template: {template_id!r}")
    return _TEMPLATES_BY_ID[template_id]


def templates_for(source_id: str) -> List[OptimizationTemplate]:
    return [t for t in TEMPLATES if source_id in t.data_sources]


# ─────────────────────────────────────────────────────────────────────────────
# Data summary
# ─────────────────────────────────────────────────────────────────────────────


def _as_number(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def calculate_basic_stats(records: Sequence[Dict[str, Any]]) -> Dict[str, Dict[str, float]]:
    """count/sum/avg/min/max for every column holding numeric values."""
    if not records:
        return {}
    stats: Dict[str, Dict[str, float]] = {}
    for column in records[0].keys():
        values = [n for n in (_as_number(r.get(column)) for r in records) if n is not None]
        if not values:
            continue
        total = sum(values)
        stats[column] = {
            "count": len(values),
            "sum": total,
            "avg": total / len(values),
            "min": min(values),
            "max": max(values),
        }
    return stats


def format_data_table(records: Sequence[Dict[str, Any]], columns: Sequence[str]) -> str:
    if not records:
        return "No data to display"
    header = "| " + " | ".join(columns) + " |"
    separator = "| " + " | ".join("---" for _ in columns) + " |"
    lines = [header, separator]
    for r in records:
        cells = []
        for col in columns:
            v = r.get(col)
            cells.append(("" if v in (None, "") else str(v))[:CELL_MAX_CHARS])
        lines.append("| " + " | ".join(cells) + " |")
    return "\n".join(lines)


def _fmt_num(v: float) -> str:
    return f"{int(v):,}" if float(v).is_integer() else f"{v:,.2f}"


def format_statistics(stats: Dict[str, Dict[str, float]], currency: str) -> str:
    if not stats:
        return "No numeric data available for statistics."
    lines = []
    for column, s in stats.items():
        name = column.lower()
        if "cost" in name or "value" in name:
            lines.append(
                f"**{column}:** Total: {currency}{s['sum']:.2f}, Avg: {currency}{s['avg']:.2f}, "
                f"Min: {currency}{s['min']:.2f}, Max: {currency}{s['max']:.2f}"
            )
        elif "rate" in name or "ctr" in name or "cvr" in name:
            lines.append(
                f"**{column}:** Avg: {s['avg']:.2f}%, Min: {s['min']:.2f}%, Max: {s['max']:.2f}%"
            )
        else:
            lines.append(
                f"**{column}:** Total: {_fmt_num(s['sum'])}, Avg: {s['avg']:.2f}, "
                f"Min: {_fmt_num(s['min'])}, Max: {_fmt_num(s['max'])}"
            )
    return "\n".join(lines)


def _load_template(name: str) -> Template:
    return Template((_PROMPTS_DIR / name).read_text(encoding="utf-8"))


def prepare_data_summary(records: Sequence[Dict[str, Any]], context: InsightContext) -> str:
    if not records:
        return "No data available for analysis."
    sample = list(records[:SAMPLE_ROWS])
    columns = list(sample[0].keys())
    return _load_template("data_summary.txt").render(
        data_source=context.data_source,
        row_count=context.row_count or len(records),
        sample_size=len(sample),
        table=format_data_table(sample, columns),
        statistics=format_statistics(calculate_basic_stats(records), context.currency),
        record_count=len(records),
        columns=columns,
        filter_count=len(context.filters),
    )


def construct_prompt(user_prompt: str, summary: str) -> str:
    return _load_template("insights_prompt.txt").render(summary=summary, user_prompt=user_prompt)


def rows_to_records(rows: Sequence[Any], limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """Flatten metric rows (or totals) to plain dicts for the summary, dropping ``extra``."""
    out = []
    for r in rows[:limit] if limit else rows:
        d = r.to_dict() if hasattr(r, "to_dict") else dict(r)
        d.pop("extra", None)
        out.append(d)
    return out


# ─────────────────────────────────────────────────────────────────────────────
# Providers and cost
# ─────────────────────────────────────────────────────────────────────────────


def _pricing_for(provider_name: str, model: str) -> Optional[Dict[str, float]]:
    table = OPENAI_PRICING if provider_name == "openai" else CLAUDE_PRICING
    for prefix in sorted(table, key=len, reverse=True):
        if model.startswith(prefix):
            return table[prefix]
    if provider_name == "claude":
        return CLAUDE_PRICING["claude-4"]
    return None


def estimate_cost(provider_name: str, model: str, usage: TokenUsage) -> Optional[float]:
    """Approximate USD cost of one call, or None when the model has no price entry."""
    pricing = _pricing_for(provider_name, model or "")
    if pricing is None:
        return None
    return (usage.input_tokens / 1000) * pricing["input"] + (usage.output_tokens / 1000) * pricing["output"]


def get_provider(name: str, cfg: AppConfig, api_key: Optional[str] = None) -> BaseProvider:
    """Instantiate the provider called *name* (``openai``, ``claude`` or ``mock``)."""
    if name not in SUPPORTED_PROVIDERS:
        raise InsightsError("Currently supported providers: OpenAI, Claude", status_code=400)

    if name == "mock":
        from adpulse.providers.mock_provider import MockProvider

        return MockProvider()

    pcfg = cfg.provider
    kwargs = dict(
        api_key=api_key,
        model=pcfg.model,
        temperature=pcfg.temperature,
        max_tokens=pcfg.max_tokens,
        retry_cfg=cfg.retry_api,
        budget_cfg=cfg.budget,
    )
    if name == "openai":
        from adpulse.providers.openai_provider import OpenAIProvider

        return OpenAIProvider(**kwargs)

    from adpulse.providers.anthropic_provider import AnthropicProvider

    return AnthropicProvider(**kwargs)


def _friendly_error(exc: Exception) -> InsightsError:
    status = getattr(exc, "status_code", None)
    if status == 401:
        msg = "Invalid API key. Please check your API key."
    elif status == 429:
        msg = "Rate limit exceeded. Please try again later."
    elif status == 400:
        msg = "Invalid request. Please check your data and try again."
    else:
        msg = str(exc) or "Failed to generate insights"
    return InsightsError(msg, status_code=status or 500)


def generate_insights(
    provider: BaseProvider,
    user_prompt: str,
    records: Sequence[Dict[str, Any]],
    context: InsightContext,
) -> InsightResult:
    """Summarise *records*, send the analysis prompt, and return text plus token usage."""
    if not user_prompt or not user_prompt.strip():
        raise InsightsError("Missing required field: prompt", status_code=400)
    if not records:
        raise InsightsError("Missing required field: data", status_code=400)

    prompt = construct_prompt(user_prompt.strip(), prepare_data_summary(records, context))
    logger.info(
        "Requesting insights provider=%s model=%s rows=%d",
        provider.name, provider.model, len(records),
    )
    try:
        text = provider.generate(prompt)
    except (BudgetExceededError, EnvironmentError):
        raise
    except Exception as exc:
        logger.exception("Insight generation failed")
        raise _friendly_error(exc) from exc

    usage = provider.last_usage
    cost = estimate_cost(provider.name, provider.model, usage)
    return InsightResult(insights=text, token_usage=replace(usage, cost=cost))
