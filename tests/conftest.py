"""Shared fixtures."""

from __future__ import annotations

import pytest

from adpulse.schema import RawMetricRow


def make_row(**kw) -> RawMetricRow:
    kw.setdefault("campaign", "C1")
    return RawMetricRow(**kw)


@pytest.fixture
def sample_raw():
    return [
        make_row(campaign="Shoes", ad_group="Running", search_term="running shoes",
                 impressions=100, clicks=10, cost=50.0, conversions=2, conversion_value=200.0),
        make_row(campaign="Shoes", ad_group="Running", search_term="trail shoe",
                 impressions=200, clicks=30, cost=100.0, conversions=1, conversion_value=50.0),
        make_row(campaign="Boots", ad_group="Winter", search_term="snow boots",
                 impressions=50, clicks=5, cost=20.0, conversions=0, conversion_value=0.0),
        make_row(campaign="Shoes", ad_group="Casual", search_term="loafers",
                 impressions=0, clicks=0, cost=0.0, conversions=0, conversion_value=0.0),
    ]
