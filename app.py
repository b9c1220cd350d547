"""Streamlit app — adpulse dashboard.

Four top-level tabs:
  📈 Campaigns    — daily campaign chart and campaign totals
  🔎 Search Terms — filter / sort / paginate table with totals and exports
  🌳 Tree View    — campaign → ad group → search term rollups
  🤖 Insights     — LLM optimisation suggestions for a data source
"""

from __future__ import annotations

from typing import List

import pandas as pd
import streamlit as st

from adpulse.aggregator import aggregate, summarize_campaigns
from adpulse.collation import collation_key
from adpulse.config import AppConfig, load_config
from adpulse.connectors.sheets import SheetsConfigError, SheetsFetchError, TabData, fetch_all_tabs
from adpulse.dates import DEFAULT_DATE_RANGE, campaigns, date_range, metrics_by_date
from adpulse.hierarchy import build, tree_counts, walk
from adpulse.insights import (
    DATA_SOURCES,
    ROW_COUNT_OPTIONS,
    InsightContext,
    InsightsError,
    generate_insights,
    get_provider,
    rows_to_records,
    templates_for,
)
from adpulse.io_csv import export_table, match_type_display_name, to_tsv
from adpulse.metrics import calculate_all
from adpulse.pipeline import SEARCH_MODES, FilterParams, apply, filter_rows, sort_control
from adpulse.providers.base import BudgetExceededError
from adpulse.schema import NUMERIC_FIELDS, STRING_FIELDS, CalculatedMetricRow
from adpulse.smart_filters import apply_preset, presets_for

# ─────────────────────────────────────────────────────────────────────────────
# Constants
# ─────────────────────────────────────────────────────────────────────────────

CHART_METRICS = {
    "impressions": "Impr",
    "clicks": "Clicks",
    "cost": "Cost",
    "conversions": "Conv",
    "conversion_value": "Value",
}
TABLE_COLUMNS = ["search_term", "campaign", "ad_group", *NUMERIC_FIELDS]

# ─────────────────────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────────────────────


@st.cache_data(ttl=300, show_spinner="Fetching sheet data…")
def _fetch(url: str) -> TabData:
    return fetch_all_tabs(url)


def _rows_frame(rows: List[CalculatedMetricRow]) -> pd.DataFrame:
    df = pd.DataFrame([r.to_dict() for r in rows])
    if df.empty:
        return pd.DataFrame(columns=TABLE_COLUMNS)
    return df[TABLE_COLUMNS]


def _params() -> FilterParams:
    if "params" not in st.session_state:
        cfg: AppConfig = st.session_state.cfg
        st.session_state.params = FilterParams(
            sort_field=cfg.table.sort_field,
            sort_direction=cfg.table.sort_direction,
            page_size=cfg.table.page_size,
        )
    return st.session_state.params


def _sidebar(cfg: AppConfig) -> str:
    st.sidebar.header("⚙️ Settings")
    url = st.sidebar.text_input("Google Sheet web app URL", value=cfg.sheets.url)
    cfg.currency = st.sidebar.selectbox(
        "Currency", ["$", "€", "£", "¥", "₹"], index=0
    )
    if st.sidebar.button("🔄 Refresh data"):
        _fetch.clear()
    return url


# ─────────────────────────────────────────────────────────────────────────────
# Tabs
# ─────────────────────────────────────────────────────────────────────────────


def campaigns_tab(data: TabData, cfg: AppConfig) -> None:
    if not data.daily:
        st.info("No daily campaign data.")
        return
    rng = date_range(data.daily)
    st.caption(f"📅 {rng.display if rng else DEFAULT_DATE_RANGE}")

    options = campaigns(data.daily)
    if options:
        picked = st.selectbox(
            "Campaign",
            options,
            format_func=lambda c: f"{c.name} ({cfg.currency}{c.total_cost:,.2f})",
        )
        series = metrics_by_date(data.daily, picked.id)
        c1, c2 = st.columns(2)
        m1 = c1.selectbox("Metric 1", list(CHART_METRICS), format_func=CHART_METRICS.get, index=2)
        m2 = c2.selectbox("Metric 2", list(CHART_METRICS), format_func=CHART_METRICS.get, index=3)
        chart = pd.DataFrame(
            {
                "date": [r.date for r in series],
                CHART_METRICS[m1]: [getattr(r, m1) for r in series],
                CHART_METRICS[m2]: [getattr(r, m2) for r in series],
            }
        ).set_index("date")
        st.line_chart(chart)

    st.subheader("Campaign totals")
    summary = summarize_campaigns(calculate_all(data.daily))
    preset = st.selectbox(
        "Smart filter",
        [None] + [p.id for p in presets_for("campaign-stats")],
        format_func=lambda p: "None" if p is None else p,
    )
    if preset:
        summary = apply_preset(preset, summary, cfg.smart_filters)
    st.dataframe(pd.DataFrame([t.to_dict() for t in summary]), use_container_width=True)


def search_terms_tab(data: TabData, cfg: AppConfig) -> None:
    rows = calculate_all(data.search_terms)
    if not rows:
        st.info("No search terms found.")
        return

    params = _params()
    c1, c2, c3, c4 = st.columns([3, 1, 2, 2])
    params.search_term = c1.text_input("Search", value=params.search_term)
    params.search_mode = c2.selectbox("Mode", SEARCH_MODES, index=SEARCH_MODES.index(params.search_mode))
    campaign_names = sorted({r.campaign for r in rows if r.campaign}, key=collation_key)
    params.campaign_filter = c3.selectbox("Campaign", [None] + campaign_names) or None
    group_names = sorted(
        {r.ad_group for r in rows if r.ad_group and (not params.campaign_filter or r.campaign == params.campaign_filter)},
        key=collation_key,
    )
    params.ad_group_filter = c4.selectbox("Ad group", [None] + group_names) or None

    s1, s2, s3 = st.columns([2, 1, 2])
    field_name = s1.selectbox(
        "Sort by", STRING_FIELDS + NUMERIC_FIELDS, index=(STRING_FIELDS + NUMERIC_FIELDS).index(params.sort_field)
    )
    flip_clicked = s2.button("↑↓")
    params = sort_control(params, field_name, flip_clicked)
    match_type = s3.selectbox("Export match type", ["broad", "phrase", "exact"], format_func=match_type_display_name)

    filtered = filter_rows(rows, params)
    totals = aggregate(filtered)
    result = apply(rows, params)
    params.page = result.page
    st.session_state.params = params

    st.dataframe(_rows_frame(result.page_rows), use_container_width=True, hide_index=True)
    if totals is not None:
        st.dataframe(pd.DataFrame([totals.to_dict()]), use_container_width=True, hide_index=True)

    p1, p2, p3 = st.columns([1, 2, 1])
    if p1.button("← Previous", disabled=result.page <= 1):
        params.page = result.page - 1
        st.rerun()
    p2.caption(f"Page {result.page} of {result.total_pages} · {result.total_rows} rows")
    if p3.button("Next →", disabled=result.page >= result.total_pages):
        params.page = result.page + 1
        st.rerun()

    d1, d2 = st.columns(2)
    d1.download_button(
        "⬇️ Download CSV",
        data=export_table(filtered, match_type).to_csv(index=False).encode("utf-8"),
        file_name=cfg.export.csv_filename,
        mime="text/csv",
        disabled=not filtered,
    )
    d2.download_button(
        "📋 Google Sheets TSV",
        data=to_tsv(filtered, match_type).encode("utf-8"),
        file_name=cfg.export.tsv_filename,
        mime="text/tab-separated-values",
        disabled=not filtered,
    )


def tree_tab(data: TabData, cfg: AppConfig) -> None:
    rows = filter_rows(calculate_all(data.search_terms), _params())
    forest = build(rows)
    if not forest:
        st.info("No search terms found. Try adjusting your filters to see data.")
        return
    counts = tree_counts(forest)
    st.caption(
        f"{counts['campaigns']} campaigns • {counts['ad_groups']} ad groups • "
        f"{counts['search_terms']} search terms"
    )
    icons = {"campaign": "🏢", "adGroup": "👥", "searchTerm": "🔍"}
    lines = []
    for node, depth in walk(forest):
        t = node.totals
        name = node.name if len(node.name) <= 35 else node.name[:35] + "..."
        lines.append(
            f"{'    ' * depth}{icons[node.kind]} {name} — {cfg.currency}{t.cost:,.2f} · "
            f"{t.conversions:.1f} conv · ROAS {t.roas:.2f}"
        )
    st.code("\n".join(lines), language=None)


def insights_tab(data: TabData, cfg: AppConfig) -> None:
    source = st.selectbox("Data source", DATA_SOURCES, format_func=lambda s: s.name)
    rows = calculate_all(data.rows_for(source.data_key))

    preset = st.selectbox(
        "Smart filter",
        [None] + [p.id for p in presets_for(source.id)],
        format_func=lambda p: "None" if p is None else p,
    )
    filters = []
    if preset:
        rows = apply_preset(preset, rows, cfg.smart_filters)
        filters.append(preset)

    n = st.select_slider("Preview rows", ROW_COUNT_OPTIONS, value=10)
    st.dataframe(_rows_frame(rows[:n]), use_container_width=True, hide_index=True)

    templates = templates_for(source.id)
    template = st.selectbox("Template", templates, format_func=lambda t: t.name)
    prompt = st.text_area("Prompt", value=template.prompt, height=120)
    provider_name = st.radio("Provider", ["openai", "claude", "mock"], horizontal=True)
    api_key = st.text_input("API key", type="password") if provider_name != "mock" else None

    if st.button("✨ Generate insights", disabled=not rows):
        context = InsightContext(
            data_source=source.name, currency=cfg.currency, row_count=len(rows), filters=filters
        )
        try:
            provider = get_provider(provider_name, cfg, api_key or None)
            with st.spinner("Generating insights…"):
                result = generate_insights(provider, prompt, rows_to_records(rows), context)
        except (InsightsError, BudgetExceededError, EnvironmentError) as exc:
            st.error(str(exc))
            return
        st.markdown(result.insights)
        u = result.token_usage
        cost = f" · ~${u.cost:.4f}" if u.cost is not None else ""
        st.caption(f"Tokens: {u.total_tokens:,} (in {u.input_tokens:,} / out {u.output_tokens:,}){cost}")


def main() -> None:
    st.set_page_config(page_title="adpulse", layout="wide")
    if "cfg" not in st.session_state:
        st.session_state.cfg = load_config()
    cfg: AppConfig = st.session_state.cfg

    st.title("📊 adpulse")
    url = _sidebar(cfg)
    if not url.strip():
        st.info("Enter your Google Sheet web app URL in the sidebar to load data.")
        return

    try:
        data = _fetch(url.strip())
    except (SheetsConfigError, SheetsFetchError) as exc:
        st.error(f"Error loading data. Check URL or network connection. ({exc})")
        return

    tab_campaigns, tab_terms, tab_tree, tab_insights = st.tabs(
        ["📈 Campaigns", "🔎 Search Terms", "🌳 Tree View", "🤖 Insights"]
    )
    with tab_campaigns:
        campaigns_tab(data, cfg)
    with tab_terms:
        search_terms_tab(data, cfg)
    with tab_tree:
        tree_tab(data, cfg)
    with tab_insights:
        insights_tab(data, cfg)


if __name__ == "__main__":
    main()
