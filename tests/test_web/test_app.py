"""Tests for Flask web application."""

import json
from unittest.mock import MagicMock, patch

import pytest
from flask import Flask
from valuation_chart.chart.fetcher import DatasetFetcher
from valuation_chart.chart.widget import StockChart
from valuation_chart.core.response import ApiResponse
from valuation_chart.web.app import build_widget, create_app, main


def _reject_constant(name):
    raise ValueError(f"non-standard JSON constant {name}")


def _strict_json(resp):
    return json.loads(resp.get_data(as_text=True), parse_constant=_reject_constant)


@pytest.fixture
def widget(fake_fetcher):
    return StockChart(fake_fetcher)


@pytest.fixture
def client(widget):
    app = create_app(config={"TESTING": True}, widget=widget)
    with app.test_client() as c:
        yield c


class TestHealthEndpoint:
    def test_health_before_mount(self, client):
        resp = client.get("/widget/health")
        assert resp.status_code == 200
        data = resp.get_json()
        assert data["status_code"] == 0
        assert data["data"] == {
            "status": "ok",
            "mounted": False,
            "records": 0,
            "use_cache": True,
        }


class TestChartEndpoint:
    def test_first_request_mounts_widget(self, client, fake_fetcher):
        resp = client.get("/widget/chart?width=1000")
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["window"] == {"startIndex": 50, "endIndex": 149}
        assert data["main"]["width"] == pytest.approx(900)
        client.get("/widget/chart")
        fake_fetcher.fetch.assert_called_once_with(True)

    def test_invalid_width_uses_default(self, client):
        data = client.get("/widget/chart?width=abc").get_json()["data"]
        assert data["main"]["width"] == pytest.approx(1280 * 0.9)

    @pytest.mark.parametrize("width", ["inf", "-inf", "nan", "0"])
    def test_non_finite_width_uses_default(self, client, width):
        resp = client.get(f"/widget/chart?width={width}")
        _strict_json(resp)
        assert resp.get_json()["data"]["main"]["width"] == pytest.approx(1280 * 0.9)

    def test_nan_from_backend_yields_strict_json(self):
        response = MagicMock()
        response.json.return_value = [
            {"日期": 20240101, "close": 2.5, "市净率": float("nan")},
            {"日期": 20240102, "close": float("nan"), "市净率": 1.1},
        ]
        session = MagicMock()
        session.get.return_value = response
        widget = StockChart(DatasetFetcher(session=session))
        app = create_app(config={"TESTING": True}, widget=widget)
        with app.test_client() as c:
            c.get("/widget/chart")
            resp = c.post("/widget/hover", json={"index": 1})
        body = _strict_json(resp)
        series = {s["name"]: s["data"] for s in body["data"]["main"]["series"]}
        assert series["close"] == [2.5, None]
        assert series["市净率"] == [None, 1.1]
        assert "markLine" not in body["data"]["main"]["series"][0]

    def test_fetch_failure_is_not_user_visible(self, client, fake_fetcher):
        fake_fetcher.fetch.return_value = ApiResponse.error("Network error")
        resp = client.get("/widget/chart")
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["window"] == {"startIndex": 0, "endIndex": 0}
        assert data["main"]["xAxis"]["data"] == []

    def test_render_failure_returns_fallback_message(self, client, fake_fetcher):
        fake_fetcher.fetch.return_value = ApiResponse.success(data=[{"close": 1.0}])
        resp = client.get("/widget/chart")
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["status_code"] == 2
        assert body["message"] == "图表渲染出错，请稍后再试"


class TestInteractionEndpoints:
    def test_brush_clamps(self, client):
        client.get("/widget/chart")
        resp = client.post("/widget/brush", json={"startIndex": -5, "endIndex": 999})
        assert resp.get_json()["data"]["window"] == {"startIndex": 0, "endIndex": 149}

    def test_brush_malformed_keeps_window(self, client):
        client.get("/widget/chart")
        resp = client.post("/widget/brush", json={"startIndex": None})
        assert resp.status_code == 200
        assert resp.get_json()["data"]["window"] == {"startIndex": 50, "endIndex": 149}

    def test_brush_without_body(self, client):
        client.get("/widget/chart")
        resp = client.post("/widget/brush", data="", content_type="application/json")
        assert resp.status_code == 200

    def test_legend_toggle(self, client, widget):
        client.get("/widget/chart")
        resp = client.post("/widget/legend", json={"dataKey": "close"})
        selected = resp.get_json()["data"]["main"]["legend"]["selected"]
        assert selected["close"] is False
        assert widget.state.hidden_lines["close"] is True

    def test_hover_sets_reference_line(self, client, widget):
        client.get("/widget/chart")
        resp = client.post("/widget/hover", json={"index": 2})
        series = resp.get_json()["data"]["main"]["series"][0]
        assert series["markLine"]["data"] == [
            {"yAxis": widget.state.displayed[2]["close"]}
        ]

    def test_cache_toggle_refetches(self, client, fake_fetcher):
        client.get("/widget/chart")
        resp = client.post("/widget/cache")
        data = resp.get_json()["data"]
        assert data["cacheButton"] == {"useCache": False, "label": "非缓存"}
        fake_fetcher.fetch.assert_called_with(False)


class TestSnapshotEndpoint:
    def test_png(self, client):
        resp = client.get("/widget/snapshot.png?width=800")
        assert resp.status_code == 200
        assert resp.mimetype == "image/png"
        assert resp.data.startswith(b"\x89PNG")


class TestPageRoutes:
    def test_page_returns_200(self, client):
        resp = client.get("/")
        assert resp.status_code == 200

    def test_page_has_cache_button_and_chart_regions(self, client):
        body = client.get("/").get_data(as_text=True)
        assert "缓存" in body
        assert 'id="stock-chart"' in body
        assert 'id="brush-chart"' in body


class TestAppFactory:
    def test_proxy_not_registered_by_default(self, client):
        resp = client.get("/api/?symbol=510050")
        assert resp.status_code == 404

    def test_proxy_registered_when_enabled(self, widget):
        app = create_app(config={"TESTING": True, "DEV_PROXY": True}, widget=widget)
        assert "dev_proxy" in app.blueprints

    def test_main_points_widget_at_served_port(self):
        with patch.object(Flask, "run", autospec=True) as run:
            main(["--port", "8000"])
        app = run.call_args.args[0]
        assert run.call_args.kwargs["port"] == 8000
        widget = app.extensions["stock_chart"]
        assert widget.fetcher.url == "http://127.0.0.1:8000/api/"
        assert "dev_proxy" in app.blueprints

    def test_main_wildcard_host_connects_to_loopback(self):
        with patch.object(Flask, "run", autospec=True) as run:
            main(["--host", "0.0.0.0", "--port", "8100"])
        widget = run.call_args.args[0].extensions["stock_chart"]
        assert widget.fetcher.url == "http://127.0.0.1:8100/api/"

    def test_configured_api_origin_wins(self, tmp_path):
        settings = tmp_path / "settings.yaml"
        settings.write_text("widget:\n  api_origin: http://10.0.0.5:9000\n")
        app = create_app(
            config={
                "TESTING": True,
                "SETTINGS_PATH": str(settings),
                "API_ORIGIN": "http://127.0.0.1:8000",
            }
        )
        assert app.extensions["stock_chart"].fetcher.url == "http://10.0.0.5:9000/api/"

    def test_default_api_origin(self):
        app = create_app(config={"TESTING": True})
        assert app.extensions["stock_chart"].fetcher.url == "http://127.0.0.1:5000/api/"

    def test_build_widget_from_settings(self):
        settings = {
            "widget": {
                "symbol": 510300,
                "window_size": 20,
                "api_origin": "http://localhost:8000",
                "request_timeout": 5,
            },
            "chart": {"main_height": 500, "brush_height": 40},
        }
        widget = build_widget(settings)
        assert widget.fetcher.symbol == "510300"
        assert widget.fetcher.url == "http://localhost:8000/api/"
        assert widget.fetcher.timeout == 5
        assert widget.window_size == 20
        assert widget.main_height == 500
