"""Flask web application serving the valuation chart widget."""

import argparse
import math
from pathlib import Path

from flask import Flask, Response, current_app, jsonify, render_template, request
from jinja2 import TemplateNotFound

from valuation_chart.chart.fetcher import DatasetFetcher
from valuation_chart.chart.renderer import FALLBACK_MESSAGE, cache_button_label
from valuation_chart.chart.snapshot import fig_to_png, plot_valuation_chart
from valuation_chart.chart.widget import StockChart
from valuation_chart.core.config import get_setting, load_settings
from valuation_chart.core.logger import get_logger, set_level
from valuation_chart.core.response import ApiResponse
from valuation_chart.web.proxy import ProxyConfig, create_proxy_blueprint

logger = get_logger("web.app")

_TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_API_ORIGIN = "http://127.0.0.1:5000"


def build_widget(settings: dict, api_origin: str | None = None) -> StockChart:
    """Widget from settings; ``widget.api_origin`` wins over ``api_origin``."""
    origin = get_setting(settings, "widget.api_origin", default=None)
    fetcher = DatasetFetcher(
        api_origin=origin or api_origin or DEFAULT_API_ORIGIN,
        symbol=str(get_setting(settings, "widget.symbol")),
        timeout=get_setting(settings, "widget.request_timeout", default=None),
    )
    return StockChart(
        fetcher,
        window_size=int(get_setting(settings, "widget.window_size")),
        main_height=int(get_setting(settings, "chart.main_height")),
        brush_height=int(get_setting(settings, "chart.brush_height")),
    )


def create_app(config: dict | None = None, widget: StockChart | None = None) -> Flask:
    app = Flask(__name__, template_folder=str(_TEMPLATE_DIR))
    app.config["TESTING"] = False
    if config:
        app.config.update(config)

    settings = load_settings(app.config.get("SETTINGS_PATH"))
    set_level(get_setting(settings, "logging.level", default="INFO"))
    app.config["WIDGET_SETTINGS"] = settings
    app.extensions["stock_chart"] = widget or build_widget(
        settings, api_origin=app.config.get("API_ORIGIN")
    )

    proxy_enabled = app.config.get(
        "DEV_PROXY", app.debug or get_setting(settings, "dev_proxy.enabled")
    )
    if proxy_enabled:
        proxy_config = ProxyConfig.from_settings(settings["dev_proxy"])
        app.register_blueprint(create_proxy_blueprint(proxy_config))
        logger.info(f"Dev proxy {proxy_config.context} -> {proxy_config.target}")

    _register_routes(app)
    return app


def _widget() -> StockChart:
    return current_app.extensions["stock_chart"]


def _mounted_widget() -> StockChart:
    widget = _widget()
    widget.mount()
    return widget


def _container_width() -> float:
    default = get_setting(
        current_app.config["WIDGET_SETTINGS"], "chart.default_container_width"
    )
    width = request.args.get("width", type=float)
    if width is None or not math.isfinite(width) or width <= 0:
        return float(default)
    return width


def _json(resp: ApiResponse):
    return jsonify(resp.to_dict()), resp.http_status()


def _render_response():
    result = _widget().render(_container_width())
    if not result.ok:
        return _json(ApiResponse.error(result.message))
    return _json(ApiResponse.success(data=result.option))


def _register_routes(app: Flask) -> None:
    @app.route("/widget/health")
    def health():
        state = _widget().state
        return _json(
            ApiResponse.success(
                data={
                    "status": "ok",
                    "mounted": _widget().mounted,
                    "records": len(state.dataset),
                    "use_cache": state.use_cache,
                }
            )
        )

    @app.route("/widget/chart")
    def chart():
        try:
            _mounted_widget()
            return _render_response()
        except Exception as e:
            logger.error(f"Chart error: {e}")
            return _json(ApiResponse.error(FALLBACK_MESSAGE))

    @app.route("/widget/brush", methods=["POST"])
    def brush():
        try:
            _widget().on_brush_drag_end(request.get_json(silent=True))
            return _render_response()
        except Exception as e:
            logger.error(f"Brush error: {e}")
            return _json(ApiResponse.error(str(e)))

    @app.route("/widget/legend", methods=["POST"])
    def legend():
        try:
            _widget().on_legend_click(request.get_json(silent=True))
            return _render_response()
        except Exception as e:
            logger.error(f"Legend error: {e}")
            return _json(ApiResponse.error(str(e)))

    @app.route("/widget/hover", methods=["POST"])
    def hover():
        try:
            body = request.get_json(silent=True) or {}
            _widget().hover_index(body.get("index"))
            return _render_response()
        except Exception as e:
            logger.error(f"Hover error: {e}")
            return _json(ApiResponse.error(str(e)))

    @app.route("/widget/cache", methods=["POST"])
    def cache():
        try:
            # fetch failures are logged by the fetcher; the chart keeps prior data
            _widget().toggle_cache()
            return _render_response()
        except Exception as e:
            logger.error(f"Cache toggle error: {e}")
            return _json(ApiResponse.error(str(e)))

    @app.route("/widget/snapshot.png")
    def snapshot():
        try:
            widget = _mounted_widget()
            fig = plot_valuation_chart(
                widget.state,
                width_px=_container_width(),
                height_px=widget.main_height,
                title=widget.fetcher.symbol,
            )
            return Response(fig_to_png(fig), mimetype="image/png")
        except Exception as e:
            logger.error(f"Error rendering snapshot: {e}")
            return _json(ApiResponse.error(FALLBACK_MESSAGE))

    @app.route("/")
    def stock_chart_page():
        state = _widget().state
        try:
            return render_template(
                "stock_chart.html",
                cache_label=cache_button_label(state.use_cache),
                fallback_message=FALLBACK_MESSAGE,
            )
        except TemplateNotFound:
            return jsonify(ApiResponse.error("图表页面不存在").to_dict()), 404


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Serve the valuation chart widget")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--settings", default=None, help="Path to settings.yaml")
    args = parser.parse_args(argv)
    connect_host = "127.0.0.1" if args.host in ("0.0.0.0", "::") else args.host
    app = create_app(
        {
            "DEV_PROXY": True,
            "SETTINGS_PATH": args.settings,
            "API_ORIGIN": f"http://{connect_host}:{args.port}",
        }
    )
    app.run(host=args.host, port=args.port, debug=True, threaded=True)


if __name__ == "__main__":
    main()
