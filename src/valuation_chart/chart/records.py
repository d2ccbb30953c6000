"""Record helpers: series catalogue, date normalization, y-axis range."""

import math
from numbers import Real
from typing import Any, Dict, List, Optional, Sequence

DATE_FIELD = "日期"
PRICE_FIELD = "close"

# Drawing order of the main chart; close is the only series with a visible axis.
SERIES_KEYS = (
    "close",
    "ema_vix_mid",
    "市净率",
    "滚动市盈率",
    "below_net_asset_ratio",
    "ema_delta_20_highlow",
)

SERIES_COLORS = {
    "close": "#8884d8",
    "ema_vix_mid": "#FF1493",
    "市净率": "#00CED1",
    "滚动市盈率": "#FF8C00",
    "below_net_asset_ratio": "#8A2BE2",
    "ema_delta_20_highlow": "#20B2AA",
}

INITIALLY_HIDDEN = frozenset(
    {"市净率", "滚动市盈率", "below_net_asset_ratio", "ema_delta_20_highlow"}
)

DEFAULT_Y_RANGE = (0, 100)


def default_hidden_lines() -> Dict[str, bool]:
    return {key: key in INITIALLY_HIDDEN for key in SERIES_KEYS}


def _date_to_str(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_records(payload: Any) -> List[dict]:
    """Validate the backend body shape and coerce every date label to ``str``.

    Raises:
        ValueError: body is not a list of objects, or a record has no date.
    """
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array, got {type(payload).__name__}")
    records = []
    for i, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValueError(f"Record {i} is not an object")
        if item.get(DATE_FIELD) is None:
            raise ValueError(f"Record {i} has no {DATE_FIELD}")
        records.append({**item, DATE_FIELD: _date_to_str(item[DATE_FIELD])})
    return records


def finite_value(value: Any) -> Optional[float]:
    """``value`` as a float, or None when it is missing, non-numeric or NaN/inf."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _field_values(data: Sequence[dict], field: str) -> List[float]:
    values = [finite_value(record.get(field)) for record in data]
    return [v for v in values if v is not None]


def calculate_y_axis_range(data: Sequence[dict], field: str) -> List[int]:
    """[min, max] of ``field`` over ``data`` padded by 10% of the span.

    Records missing the field are skipped. With nothing to measure the
    fixed default range [0, 100] is returned.
    """
    if not data:
        return list(DEFAULT_Y_RANGE)
    values = _field_values(data, field)
    if not values:
        return list(DEFAULT_Y_RANGE)
    low, high = min(values), max(values)
    pad = (high - low) * 0.1
    return [math.floor(low - pad), math.ceil(high + pad)]
