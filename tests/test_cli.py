"""CLI tests with click's CliRunner over a local CSV (no network)."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from adpulse.cli import cli
from adpulse.io_csv import EXPORT_COLUMNS

SEARCH_TERMS_CSV = (
    "search_term,campaign,ad_group,impr,clicks,cost,conv,value,date\n"
    "running shoes,Shoes,Running,100,10,50,2,200,2025-03-01\n"
    "trail shoe,Shoes,Running,200,30,100,1,50,2025-03-02\n"
    "snow boots,Boots,Winter,50,5,20,0,0,2025-03-03\n"
)

DAILY_CSV = (
    "campaign,campaignId,date,impr,clicks,cost,conv,value\n"
    "Shoes,1,2025-03-01,100,10,50,2,200\n"
    "Shoes,1,2025-03-02,200,30,100,1,50\n"
    "Boots,2,2025-03-01,50,5,20,0,0\n"
)


@pytest.fixture
def env(tmp_path, monkeypatch):
    monkeypatch.delenv("ADPULSE_SHEET_URL", raising=False)
    terms = tmp_path / "terms.csv"
    terms.write_text(SEARCH_TERMS_CSV, encoding="utf-8")
    daily = tmp_path / "daily.csv"
    daily.write_text(DAILY_CSV, encoding="utf-8")
    return {
        "dir": tmp_path,
        "terms": str(terms),
        "daily": str(daily),
        "config": ["--config", str(tmp_path / "config.yaml")],
    }


def _run(env, *args):
    return CliRunner().invoke(cli, [*env["config"], *args])


def test_terms_table(env):
    result = _run(env, "terms", "--input", env["terms"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[2].startswith("trail shoe")
    assert any(line.startswith("Total") for line in lines)
    assert "Page 1 of 1 · 3 rows" in result.output


def test_terms_search_and_no_match(env):
    result = _run(env, "terms", "--input", env["terms"], "--search", "boots")
    assert "snow boots" in result.output
    assert "running shoes" not in result.output
    result = _run(env, "terms", "--input", env["terms"], "--search", "zzz")
    assert result.exit_code == 0
    assert "No search terms match" in result.output


def test_terms_date_scope(env):
    result = _run(env, "terms", "--input", env["terms"], "--date-from", "2025-03-02")
    assert "running shoes" not in result.output
    assert "2 rows" in result.output


def test_tree(env):
    result = _run(env, "tree", "--input", env["terms"])
    assert result.exit_code == 0, result.output
    assert "2 campaigns • 2 ad groups • 3 search terms" in result.output
    lines = result.output.splitlines()
    assert lines[1].startswith("Boots")
    assert lines[2].startswith("  Winter")


def test_tree_without_leaves(env):
    result = _run(env, "tree", "--input", env["terms"], "--no-terms")
    assert "snow boots" not in result.output
    assert "  Running" in result.output


def test_campaigns(env):
    result = _run(env, "campaigns", "--input", env["daily"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[2].startswith("Shoes")
    assert lines[3].startswith("Boots")


def test_export_csv_with_totals(env):
    out = env["dir"] / "export.csv"
    result = _run(env, "export", "--input", env["terms"], "--match-type", "exact", "--totals", "--out", str(out))
    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0] == ",".join(EXPORT_COLUMNS)
    assert lines[1].startswith("[running shoes],Shoes,Running")
    assert lines[-1].startswith("Total,,,350")


def test_export_tsv(env):
    out = env["dir"] / "export.tsv"
    result = _run(env, "export", "--input", env["terms"], "--format", "tsv", "--match-type", "phrase",
                  "--out", str(out))
    assert result.exit_code == 0, result.output
    assert out.read_text(encoding="utf-8").splitlines()[1].startswith('"running shoes"\tShoes')


def test_export_nothing(env):
    out = env["dir"] / "none.csv"
    result = _run(env, "export", "--input", env["terms"], "--search", "zzz", "--out", str(out))
    assert result.exit_code == 0
    assert not out.exists()


def test_insights_dry_run(env):
    out = env["dir"] / "insights.md"
    result = _run(env, "insights", "--input", env["terms"], "--out", str(out))
    assert result.exit_code == 0, result.output
    assert "DRY-RUN" in result.output
    assert "3 rows reviewed" in result.output
    assert out.exists()


def test_insights_unknown_template(env):
    result = _run(env, "insights", "--input", env["terms"], "--template", "nope")
    assert result.exit_code != 0
    assert "Unknown optimization template" in result.output


def test_insights_live_without_key(env):
    with patch.dict("os.environ", {}, clear=True):
        with patch("adpulse.providers.openai_provider.load_dotenv"):
            result = _run(env, "insights", "--input", env["terms"], "--mode", "live")
    assert result.exit_code != 0
    assert "OPENAI_API_KEY" in result.output


def test_missing_sheet_url(env):
    result = _run(env, "terms")
    assert result.exit_code != 0
    assert "Sheet URL is required" in result.output


def test_missing_campaign_column(env):
    bad = env["dir"] / "bad.csv"
    bad.write_text("search_term,clicks\nx,1\n", encoding="utf-8")
    result = _run(env, "terms", "--input", str(bad))
    assert result.exit_code != 0
    assert "campaign" in result.output
