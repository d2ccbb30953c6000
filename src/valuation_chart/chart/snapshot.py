"""Static PNG rendering of the displayed window."""

from io import BytesIO
from typing import Optional

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from valuation_chart.chart.records import (
    DATE_FIELD,
    PRICE_FIELD,
    SERIES_COLORS,
    SERIES_KEYS,
    calculate_y_axis_range,
    finite_value,
)
from valuation_chart.chart.state import WidgetState

_DPI = 100


def displayed_frame(state: WidgetState) -> pd.DataFrame:
    """Displayed window as a frame with one numeric column per series."""
    frame = pd.DataFrame(state.displayed, columns=[DATE_FIELD, *SERIES_KEYS])
    for key in SERIES_KEYS:
        frame[key] = pd.to_numeric(frame[key], errors="coerce")
    return frame


def plot_valuation_chart(
    state: WidgetState,
    width_px: float = 1280,
    height_px: int = 600,
    title: Optional[str] = None,
) -> plt.Figure:
    frame = displayed_frame(state)
    x = np.arange(len(frame))
    fig, ax = plt.subplots(figsize=(width_px * 0.9 / _DPI, height_px / _DPI), dpi=_DPI)
    ax.grid(True, color="#ccc", linestyle=(0, (5, 5)))

    if not state.hidden_lines[PRICE_FIELD]:
        ax.plot(
            x,
            frame[PRICE_FIELD],
            color=SERIES_COLORS[PRICE_FIELD],
            linewidth=2,
            label=PRICE_FIELD,
        )
    ax.set_ylim(*calculate_y_axis_range(state.displayed, PRICE_FIELD))
    active_close = finite_value((state.active_point or {}).get(PRICE_FIELD))
    if active_close is not None:
        ax.axhline(
            active_close,
            color=SERIES_COLORS[PRICE_FIELD],
            linestyle=(0, (3, 3)),
            linewidth=1,
        )

    for key in SERIES_KEYS:
        if key == PRICE_FIELD or state.hidden_lines[key]:
            continue
        values = frame[key]
        if values.isna().all():
            continue
        twin = ax.twinx()
        twin.plot(
            x,
            values,
            color=SERIES_COLORS[key],
            linestyle=(0, (5, 2)),
            linewidth=1,
            label=key,
        )
        twin.get_yaxis().set_visible(False)

    if len(frame):
        step = max(1, len(frame) // 8)
        ax.set_xticks(x[::step])
        ax.set_xticklabels(frame[DATE_FIELD].iloc[::step], rotation=30, fontsize=8)
    if title:
        ax.set_title(title, fontsize=14)
    handles, labels = [], []
    for axis in fig.axes:
        h, lbl = axis.get_legend_handles_labels()
        handles.extend(h)
        labels.extend(lbl)
    if handles:
        ax.legend(handles, labels, loc="upper left", fontsize=8)
    fig.tight_layout()
    return fig


def fig_to_png(fig: plt.Figure) -> bytes:
    buf = BytesIO()
    fig.savefig(buf, format="png", dpi=_DPI, bbox_inches="tight")
    plt.close(fig)
    return buf.getvalue()
