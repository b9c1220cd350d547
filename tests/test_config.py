"""Tests for config.yaml loading."""

from __future__ import annotations

import pytest

from adpulse.config import AppConfig, load_config


def test_defaults_when_file_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("ADPULSE_SHEET_URL", raising=False)
    cfg = load_config(tmp_path / "missing.yaml")
    assert isinstance(cfg, AppConfig)
    assert cfg.table.page_size == 50
    assert cfg.table.sort_field == "cost"
    assert cfg.provider.name == "openai"
    assert cfg.sheets.url == ""


def test_yaml_overrides(tmp_path, monkeypatch):
    monkeypatch.delenv("ADPULSE_SHEET_URL", raising=False)
    p = tmp_path / "config.yaml"
    p.write_text(
        "currency: '€'\n"
        "table:\n  page_size: 25\n"
        "smart_filters:\n  high_cpa: 42\n"
        "sheets:\n  url: https://example.com/exec\n",
        encoding="utf-8",
    )
    cfg = load_config(p)
    assert cfg.currency == "€"
    assert cfg.table.page_size == 25
    assert cfg.table.sort_direction == "desc"
    assert cfg.smart_filters.high_cpa == 42
    assert cfg.sheets.url == "https://example.com/exec"


def test_env_overrides_sheet_url(tmp_path, monkeypatch):
    monkeypatch.setenv("ADPULSE_SHEET_URL", "https://env.example/exec")
    assert load_config(tmp_path / "none.yaml").sheets.url == "https://env.example/exec"


def test_unknown_key_rejected(tmp_path):
    p = tmp_path / "config.yaml"
    p.write_text("table:\n  rows_per_page: 10\n", encoding="utf-8")
    with pytest.raises(TypeError):
        load_config(p)
