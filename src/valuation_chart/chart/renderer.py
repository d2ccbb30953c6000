"""Compose the main and brush chart options from widget state.

Options follow the ECharts option layout consumed by the page template.
``render_chart`` is the exception boundary around composition.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from valuation_chart.chart.records import (
    DATE_FIELD,
    PRICE_FIELD,
    SERIES_COLORS,
    SERIES_KEYS,
    calculate_y_axis_range,
    finite_value,
)
from valuation_chart.chart.state import WidgetState
from valuation_chart.core.logger import get_logger

logger = get_logger("chart.renderer")

FALLBACK_MESSAGE = "图表渲染出错，请稍后再试"
CACHE_ON_LABEL = "缓存"
CACHE_OFF_LABEL = "非缓存"

MAIN_HEIGHT = 600
BRUSH_HEIGHT = 50
MAIN_MARGIN = 5


@dataclass(frozen=True)
class ChartLayout:
    """Pixel geometry derived from the container width."""

    container_width: float
    main_height: int = MAIN_HEIGHT
    brush_height: int = BRUSH_HEIGHT

    @property
    def main_width(self) -> float:
        return self.container_width * 0.9

    @property
    def brush_width(self) -> float:
        return self.container_width * 0.95

    @property
    def brush_side_margin(self) -> float:
        return self.container_width * 0.1


@dataclass(frozen=True)
class RenderResult:
    ok: bool
    option: Optional[Dict[str, Any]] = None
    message: str = ""

    def to_dict(self) -> dict:
        if self.ok:
            return self.option
        return {"error": self.message}


def cache_button_label(use_cache: bool) -> str:
    return CACHE_ON_LABEL if use_cache else CACHE_OFF_LABEL


def _series(key: str, data: list) -> dict:
    line_style: Dict[str, Any] = {"color": SERIES_COLORS[key]}
    if key == PRICE_FIELD:
        line_style["width"] = 2
    else:
        line_style["type"] = [5, 2]
    series = {
        "name": key,
        "type": "line",
        "smooth": True,
        "showSymbol": False,
        "yAxisId": key,
        "data": [finite_value(record.get(key)) for record in data],
        "lineStyle": line_style,
        "itemStyle": {"color": SERIES_COLORS[key]},
    }
    if key == PRICE_FIELD:
        series["emphasis"] = {"itemStyle": {"borderWidth": 8}}
    return series


def _y_axis(key: str, data: list) -> dict:
    if key != PRICE_FIELD:
        return {"id": key, "type": "value", "show": False, "scale": True}
    low, high = calculate_y_axis_range(data, PRICE_FIELD)
    return {"id": key, "type": "value", "show": True, "min": low, "max": high}


def _reference_line(active_point: Optional[dict]) -> Optional[dict]:
    price = finite_value((active_point or {}).get(PRICE_FIELD))
    if price is None:
        return None
    return {
        "id": "ref_close",
        "silent": True,
        "symbol": "none",
        "lineStyle": {"color": SERIES_COLORS[PRICE_FIELD], "type": [3, 3]},
        "data": [{"yAxis": price}],
    }


def build_main_chart(state: WidgetState, layout: ChartLayout) -> dict:
    data = state.displayed
    series = [_series(key, data) for key in SERIES_KEYS]
    ref_line = _reference_line(state.active_point)
    if ref_line is not None:
        series[SERIES_KEYS.index(PRICE_FIELD)]["markLine"] = ref_line
    return {
        "id": "stock-chart",
        "width": layout.main_width,
        "height": layout.main_height,
        "grid": {
            "top": MAIN_MARGIN,
            "right": MAIN_MARGIN,
            "bottom": MAIN_MARGIN,
            "left": MAIN_MARGIN,
            "containLabel": True,
        },
        "tooltip": {"trigger": "axis"},
        "legend": {
            "data": list(SERIES_KEYS),
            "bottom": 0,
            "selected": {key: not hidden for key, hidden in state.hidden_lines.items()},
        },
        "xAxis": {
            "type": "category",
            "data": [record[DATE_FIELD] for record in data],
            "splitLine": {"show": True, "lineStyle": {"color": "#ccc", "type": [5, 5]}},
        },
        "yAxis": [_y_axis(key, data) for key in SERIES_KEYS],
        "series": series,
    }


def build_brush_chart(state: WidgetState, layout: ChartLayout) -> dict:
    return {
        "id": "brush-chart",
        "width": layout.brush_width,
        "height": layout.brush_height,
        "grid": {
            "top": MAIN_MARGIN,
            "bottom": MAIN_MARGIN,
            "left": layout.brush_side_margin,
            "right": layout.brush_side_margin,
        },
        "xAxis": {
            "type": "category",
            "show": False,
            "data": [record[DATE_FIELD] for record in state.dataset],
        },
        "yAxis": {"type": "value", "show": False},
        "series": [],
        "dataZoom": [
            {
                "type": "slider",
                "height": 40,
                "startValue": state.start_index,
                "endValue": state.end_index,
                "handleSize": 15,
                "showDetail": True,
                "fillerColor": "#f5f5f5",
                "borderColor": "#8884d8",
            }
        ],
    }


def build_chart_option(
    state: WidgetState,
    container_width: float,
    main_height: int = MAIN_HEIGHT,
    brush_height: int = BRUSH_HEIGHT,
) -> dict:
    layout = ChartLayout(container_width, main_height, brush_height)
    return {
        "cacheButton": {
            "useCache": state.use_cache,
            "label": cache_button_label(state.use_cache),
        },
        "window": state.window,
        "main": build_main_chart(state, layout),
        "brush": build_brush_chart(state, layout),
    }


def render_chart(state: WidgetState, container_width: float, **sizes) -> RenderResult:
    """Compose the chart; any failure becomes the static fallback message."""
    try:
        option = build_chart_option(state, container_width, **sizes)
        return RenderResult(ok=True, option=option)
    except Exception as e:
        logger.error(f"Error rendering chart: {e}")
        return RenderResult(ok=False, message=FALLBACK_MESSAGE)
