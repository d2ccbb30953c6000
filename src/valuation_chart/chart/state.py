"""Widget state record and its pure transition functions.

Every transition takes a ``WidgetState`` and returns a new one; inputs
that cannot be applied return the state unchanged (the same object).
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

from valuation_chart.chart.records import default_hidden_lines

DEFAULT_WINDOW_SIZE = 100


@dataclass(frozen=True)
class WidgetState:
    dataset: List[dict] = field(default_factory=list)
    start_index: int = 0
    end_index: int = 0
    hidden_lines: Dict[str, bool] = field(default_factory=default_hidden_lines)
    active_point: Optional[dict] = None
    use_cache: bool = True
    latest_token: int = 0

    @property
    def displayed(self) -> List[dict]:
        """Dataset[start_index..end_index], inclusive."""
        return self.dataset[self.start_index : self.end_index + 1]

    @property
    def window(self) -> Dict[str, int]:
        return {"startIndex": self.start_index, "endIndex": self.end_index}


def issue_token(state: WidgetState) -> WidgetState:
    """Reserve the next request token; only its response will be applied."""
    return replace(state, latest_token=state.latest_token + 1)


def apply_dataset(
    state: WidgetState,
    records: List[dict],
    token: Optional[int] = None,
    window_size: int = DEFAULT_WINDOW_SIZE,
) -> WidgetState:
    """Replace the dataset and reset the window to the last ``window_size`` points.

    A response carrying a token older than the latest issued one is stale
    and is dropped. For an empty dataset the window becomes (0, -1).
    """
    if token is not None and token != state.latest_token:
        return state
    start = max(0, len(records) - window_size)
    end = len(records) - 1
    return replace(state, dataset=list(records), start_index=start, end_index=end)


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def handle_brush_change(state: WidgetState, event: Optional[Mapping]) -> WidgetState:
    """Apply a brush drag-end ``{startIndex, endIndex}``, clamped to the dataset."""
    if not event:
        return state
    start = _as_index(event.get("startIndex"))
    end = _as_index(event.get("endIndex"))
    if start is None or end is None:
        return state
    start = max(0, start)
    end = min(len(state.dataset) - 1, end)
    if start > end:
        return state
    return replace(state, start_index=start, end_index=end)


def handle_legend_click(state: WidgetState, event: Optional[Mapping]) -> WidgetState:
    """Flip the hidden flag of the clicked series."""
    key = (event or {}).get("dataKey")
    if key not in state.hidden_lines:
        return state
    hidden = dict(state.hidden_lines)
    hidden[key] = not hidden[key]
    return replace(state, hidden_lines=hidden)


def handle_mouse_move(state: WidgetState, event: Optional[Mapping]) -> WidgetState:
    """Track the record under the pointer.

    Leaving the chart sends no payload, so the last active point is kept.
    """
    payload = (event or {}).get("activePayload")
    if not payload:
        return state
    record = payload[0].get("payload")
    if not record:
        return state
    return replace(state, active_point=record)


def toggle_cache(state: WidgetState) -> WidgetState:
    return replace(state, use_cache=not state.use_cache)
