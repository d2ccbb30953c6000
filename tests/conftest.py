"""Shared test fixtures for valuation chart tests."""

from unittest.mock import MagicMock

import numpy as np
import pytest

from valuation_chart.core.response import ApiResponse


def make_records(n: int, start: int = 20240101) -> list[dict]:
    """``n`` backend-shaped records with numeric dates, ascending."""
    rng = np.random.default_rng(42)
    close = 2.5 + np.cumsum(rng.normal(0, 0.02, n))
    return [
        {
            "日期": start + i,
            "close": round(float(close[i]), 3),
            "ema_vix_mid": round(float(18 + rng.normal(0, 1)), 2),
            "市净率": round(float(1.2 + rng.normal(0, 0.05)), 3),
            "滚动市盈率": round(float(11 + rng.normal(0, 0.5)), 2),
            "below_net_asset_ratio": round(float(rng.uniform(0, 0.2)), 3),
            "ema_delta_20_highlow": round(float(rng.normal(0, 0.1)), 3),
        }
        for i in range(n)
    ]


@pytest.fixture
def records_factory():
    return make_records


@pytest.fixture
def sample_records() -> list[dict]:
    """150 records with dates already normalized to strings."""
    return [{**r, "日期": str(r["日期"])} for r in make_records(150)]


@pytest.fixture
def fake_fetcher(sample_records):
    """DatasetFetcher stand-in that succeeds with ``sample_records``."""
    fetcher = MagicMock()
    fetcher.symbol = "510050"
    fetcher.fetch.return_value = ApiResponse.success(data=sample_records)
    return fetcher
