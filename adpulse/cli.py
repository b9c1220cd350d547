"""CLI entry point for adpulse."""

from __future__ import annotations

import logging

import click

from adpulse import __version__
from adpulse.aggregator import aggregate, summarize_campaigns
from adpulse.config import load_config
from adpulse.connectors.google_sheets import GoogleSheetsConfigError, push_tabular_file
from adpulse.connectors.sheets import SheetsConfigError, SheetsFetchError, fetch_tab
from adpulse.dates import DEFAULT_DATE_RANGE, date_range, filter_by_date
from adpulse.hierarchy import build, tree_counts, walk
from adpulse.insights import (
    DATA_SOURCES,
    InsightContext,
    InsightsError,
    generate_insights,
    get_data_source,
    get_provider,
    get_template,
    rows_to_records,
)
from adpulse.io_csv import (
    InputSchemaError,
    read_rows_csv,
    write_export_csv,
    write_export_tsv,
    write_report,
)
from adpulse.metrics import calculate_all
from adpulse.pipeline import SEARCH_MODES, FilterParams, apply, default_direction, filter_rows
from adpulse.providers.base import BudgetExceededError
from adpulse.schema import NUMERIC_FIELDS, STRING_FIELDS
from adpulse.smart_filters import PRESETS, apply_preset


def _load_rows(ctx_obj, tab: str, url: str | None, input_path: str | None):
    cfg = ctx_obj["cfg"]
    try:
        if input_path:
            return read_rows_csv(input_path)
        return fetch_tab(url or cfg.sheets.url, tab, timeout=cfg.sheets.timeout_seconds)
    except (SheetsConfigError, SheetsFetchError, InputSchemaError) as exc:
        raise click.ClickException(str(exc))


def _source_options(f):
    f = click.option("--input", "input_path", default=None, help="Local CSV instead of the sheet URL")(f)
    f = click.option("--url", default=None, help="Apps Script web app URL (overrides config)")(f)
    return f


def _scope_options(f):
    f = click.option("--date-to", default=None, help="Last day (YYYY-MM-DD), inclusive")(f)
    f = click.option("--date-from", default=None, help="First day (YYYY-MM-DD), inclusive")(f)
    f = click.option("--ad-group", "ad_group", default=None, help="Only this ad group")(f)
    f = click.option("--campaign", default=None, help="Only this campaign")(f)
    f = click.option(
        "--mode", "search_mode", type=click.Choice(SEARCH_MODES), default="contains", show_default=True
    )(f)
    f = click.option("--search", default="", help="Search text over term, campaign and ad group")(f)
    return f


def _fmt_row(label: str, r, currency: str) -> str:
    return (
        f"{label[:40]:<40} {r.impressions:>9,} {r.clicks:>7,} {currency}{r.cost:>10,.2f} "
        f"{r.conversions:>7.1f} {currency}{r.conversion_value:>10,.2f} {r.ctr:>6.2f}% "
        f"{currency}{r.cpc:>6.2f} {r.cvr:>6.2f}% {currency}{r.cpa:>7.2f} {r.roas:>6.2f}"
    )


_HEADER = (
    f"{'Name':<40} {'Impr':>9} {'Clicks':>7} {'Cost':>11} {'Conv':>7} {'Value':>11} "
    f"{'CTR':>7} {'CPC':>7} {'CvR':>7} {'CPA':>8} {'ROAS':>6}"
)


@click.group()
@click.version_option(version=__version__, prog_name="adpulse")
@click.option("--config", "config_path", default="config.yaml", help="Config file path")
@click.option("-v", "--verbose", is_flag=True, help="Log connector and provider activity")
@click.pass_context
def cli(ctx, config_path: str, verbose: bool):
    """adpulse — Google Ads search-term rollups, exports and AI insights."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["cfg"] = load_config(config_path)


@cli.command()
@_source_options
@_scope_options
@click.option("--sort", "sort_field", default=None, type=click.Choice(STRING_FIELDS + NUMERIC_FIELDS))
@click.option("--direction", default=None, type=click.Choice(["asc", "desc"]))
@click.option("--page", default=1, show_default=True, type=int)
@click.option("--page-size", default=None, type=int, help="Rows per page (config default 50)")
@click.option("--preset", default=None, type=click.Choice([p.id for p in PRESETS]), help="Smart filter preset")
@click.pass_obj
def terms(obj, url, input_path, search, search_mode, campaign, ad_group, date_from, date_to,
          sort_field, direction, page, page_size, preset):
    """Search-terms table with totals and pagination."""
    cfg = obj["cfg"]
    raw = filter_by_date(_load_rows(obj, "searchTerms", url, input_path), date_from, date_to)
    rows = calculate_all(raw)
    if preset:
        rows = apply_preset(preset, rows, cfg.smart_filters)

    field_name = sort_field or cfg.table.sort_field
    params = FilterParams(
        search_term=search,
        search_mode=search_mode,
        campaign_filter=campaign,
        ad_group_filter=ad_group,
        sort_field=field_name,
        sort_direction=direction or (default_direction(field_name) if sort_field else cfg.table.sort_direction),
        page=page,
        page_size=page_size or cfg.table.page_size,
    )
    result = apply(rows, params)
    totals = aggregate(filter_rows(rows, params))

    rng = date_range(raw)
    click.echo(f"📅 {rng.display if rng else DEFAULT_DATE_RANGE}")
    click.echo(_HEADER)
    for r in result.page_rows:
        click.echo(_fmt_row(r.search_term or "(no term)", r, cfg.currency))
    if totals is None:
        click.echo("No search terms match the current filters.")
        return
    click.echo(_fmt_row(totals.label, totals, cfg.currency))
    click.echo("")
    click.echo(f"Page {result.page} of {result.total_pages} · {result.total_rows} rows")


@cli.command()
@_source_options
@_scope_options
@click.option("--terms/--no-terms", "show_terms", default=True, help="Print search-term leaves")
@click.pass_obj
def tree(obj, url, input_path, search, search_mode, campaign, ad_group, date_from, date_to, show_terms):
    """Campaign → ad group → search term rollup tree."""
    cfg = obj["cfg"]
    raw = filter_by_date(_load_rows(obj, "searchTerms", url, input_path), date_from, date_to)
    params = FilterParams(
        search_term=search, search_mode=search_mode, campaign_filter=campaign, ad_group_filter=ad_group
    )
    forest = build(filter_rows(calculate_all(raw), params))
    counts = tree_counts(forest)
    click.echo(
        f"🌳 {counts['campaigns']} campaigns • {counts['ad_groups']} ad groups • "
        f"{counts['search_terms']} search terms"
    )
    for node, depth in walk(forest):
        if node.is_leaf and not show_terms:
            continue
        t = node.totals
        click.echo(
            f"{'  ' * depth}{node.name}  "
            f"[cost {cfg.currency}{t.cost:,.2f} · conv {t.conversions:.1f} · "
            f"CTR {t.ctr:.2f}% · CPA {cfg.currency}{t.cpa:.2f} · ROAS {t.roas:.2f}]"
        )


@cli.command()
@_source_options
@click.option("--preset", default=None, type=click.Choice([p.id for p in PRESETS if "campaign-stats" in p.data_sources]))
@click.pass_obj
def campaigns(obj, url, input_path, preset):
    """Campaign totals from the daily tab, highest cost first."""
    cfg = obj["cfg"]
    raw = _load_rows(obj, "daily", url, input_path)
    summary = summarize_campaigns(calculate_all(raw))
    if preset:
        summary = apply_preset(preset, summary, cfg.smart_filters)
    rng = date_range(raw)
    click.echo(f"📅 {rng.display if rng else DEFAULT_DATE_RANGE}")
    click.echo(_HEADER)
    for t in summary:
        click.echo(_fmt_row(t.label, t, cfg.currency))


@cli.command()
@_source_options
@_scope_options
@click.option("--format", "fmt", type=click.Choice(["csv", "tsv"]), default="csv", show_default=True)
@click.option("--match-type", type=click.Choice(["broad", "phrase", "exact", "row"]), default=None,
              help="Search term wrapping; 'row' uses each row's own match type")
@click.option("--totals/--no-totals", default=False, help="Append a Total row")
@click.option("--out", "out_path", default=None, help="Output path")
@click.pass_obj
def export(obj, url, input_path, search, search_mode, campaign, ad_group, date_from, date_to,
           fmt, match_type, totals, out_path):
    """Export search terms as 13-column CSV or TSV."""
    cfg = obj["cfg"]
    raw = filter_by_date(_load_rows(obj, "searchTerms", url, input_path), date_from, date_to)
    params = FilterParams(
        search_term=search, search_mode=search_mode, campaign_filter=campaign, ad_group_filter=ad_group
    )
    rows = filter_rows(calculate_all(raw), params)
    mt = match_type or cfg.export.match_type
    mt = None if mt == "row" else mt
    total_row = aggregate(rows) if totals else None

    if fmt == "tsv":
        written = write_export_tsv(rows, out_path or cfg.export.tsv_filename, mt, total_row)
    else:
        written = write_export_csv(rows, out_path or cfg.export.csv_filename, mt, total_row)

    if written is None:
        click.echo("⚠️  No data to export", err=True)
        return
    click.echo(f"✅ Exported {len(rows)} rows to {written}")


@cli.command()
@_source_options
@click.option("--source", default="search-terms", show_default=True,
              type=click.Choice([s.id for s in DATA_SOURCES]))
@click.option("--template", "template_id", default="general-performance-analysis", show_default=True)
@click.option("--prompt", "custom_prompt", default=None, help="Custom analysis prompt (overrides template)")
@click.option("--provider", "provider_name", default=None, help="openai | claude")
@click.option("--api-key", default=None, help="Provider API key (else from env/.env)")
@click.option("--rows", "row_limit", default=None, type=int, help="Only send the first N rows")
@click.option("--mode", type=click.Choice(["live", "dry"]), default="dry", show_default=True,
              help="live = call API; dry = mock")
@click.option("--out", "out_path", default=None, help="Write insights markdown here")
@click.pass_obj
def insights(obj, url, input_path, source, template_id, custom_prompt, provider_name, api_key,
             row_limit, mode, out_path):
    """Generate AI optimisation insights for a data source."""
    cfg = obj["cfg"]
    try:
        data_source = get_data_source(source)
        template = get_template(template_id)
    except ValueError as exc:
        raise click.ClickException(str(exc))

    rows = calculate_all(_load_rows(obj, data_source.data_key, url, input_path))
    records = rows_to_records(rows, row_limit)
    context = InsightContext(
        data_source=data_source.name,
        currency=cfg.currency,
        row_count=len(records),
    )

    name = "mock" if mode == "dry" else (provider_name or cfg.provider.name)
    if mode == "dry":
        click.echo("🏃 DRY-RUN mode — using MockProvider (no API calls)")
    else:
        click.echo(f"🚀 LIVE mode — using {name}")

    try:
        provider = get_provider(name, cfg, api_key)
        result = generate_insights(provider, custom_prompt or template.prompt, records, context)
    except (InsightsError, BudgetExceededError, EnvironmentError) as exc:
        raise click.ClickException(str(exc))

    click.echo("")
    click.echo(result.insights)
    u = result.token_usage
    cost = f" · ~${u.cost:.4f}" if u.cost is not None else ""
    click.echo("")
    click.echo(f"📊 Tokens: {u.total_tokens:,} (in: {u.input_tokens:,} out: {u.output_tokens:,}){cost}")
    if out_path:
        click.echo(f"📂 Written to {write_report(result.insights, out_path)}")


@cli.group("sheets")
def sheets_group():
    """Google Sheets helper commands."""
    pass


@sheets_group.command("push")
@click.option("--spreadsheet_id", required=True, help="Target Google Sheet ID")
@click.option("--worksheet", required=True, help="Worksheet/tab name")
@click.option("--input", "input_path", required=True, help="Exported CSV or TSV path")
def sheets_push(spreadsheet_id: str, worksheet: str, input_path: str):
    """Push an exported CSV/TSV to Google Sheets."""
    try:
        n = push_tabular_file(spreadsheet_id, worksheet, input_path)
    except GoogleSheetsConfigError as exc:
        raise click.ClickException(str(exc))
    except Exception as exc:
        raise click.ClickException(f"Failed to push to Google Sheets: {exc}")

    click.echo(
        f"✅ Pushed {n} rows to worksheet '{worksheet}' in spreadsheet {spreadsheet_id}."
    )


if __name__ == "__main__":
    cli()
