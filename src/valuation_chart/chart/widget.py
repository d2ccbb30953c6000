"""The stock chart widget: owns the state record and wires the controllers."""

import threading
from typing import Mapping, Optional

from valuation_chart.chart import state as transitions
from valuation_chart.chart.fetcher import DatasetFetcher
from valuation_chart.chart.renderer import (
    BRUSH_HEIGHT,
    MAIN_HEIGHT,
    RenderResult,
    render_chart,
)
from valuation_chart.chart.state import DEFAULT_WINDOW_SIZE, WidgetState
from valuation_chart.core.logger import get_logger
from valuation_chart.core.response import ApiResponse

logger = get_logger("chart.widget")


class StockChart:
    """One widget instance.

    Fetches run outside the lock so a slow backend does not block
    interaction handlers; each fetch holds a request token and its result is
    dropped if a newer fetch was issued meanwhile.
    """

    def __init__(
        self,
        fetcher: DatasetFetcher,
        window_size: int = DEFAULT_WINDOW_SIZE,
        main_height: int = MAIN_HEIGHT,
        brush_height: int = BRUSH_HEIGHT,
    ):
        self.fetcher = fetcher
        self.window_size = window_size
        self.main_height = main_height
        self.brush_height = brush_height
        self.mounted = False
        self._state = WidgetState()
        self._lock = threading.Lock()

    @property
    def state(self) -> WidgetState:
        return self._state

    def _update(self, transition, *args) -> WidgetState:
        with self._lock:
            self._state = transition(self._state, *args)
            return self._state

    def mount(self) -> Optional[ApiResponse]:
        """First fetch; later calls are no-ops returning None."""
        with self._lock:
            if self.mounted:
                return None
            self.mounted = True
        return self.fetch()

    def fetch(self) -> ApiResponse:
        with self._lock:
            self._state = transitions.issue_token(self._state)
            token = self._state.latest_token
            use_cache = self._state.use_cache
        resp = self.fetcher.fetch(use_cache)
        if not resp.ok:
            return resp
        with self._lock:
            updated = transitions.apply_dataset(
                self._state, resp.data, token=token, window_size=self.window_size
            )
            if updated is self._state:
                logger.info(f"Dropping stale response for request {token}")
            self._state = updated
        return resp

    def set_use_cache(self, use_cache: bool) -> ApiResponse:
        """Change the cache flag; any change triggers a refetch."""
        with self._lock:
            if use_cache == self._state.use_cache:
                return ApiResponse.success(data=self._state.dataset)
            self._state = transitions.toggle_cache(self._state)
        return self.fetch()

    def toggle_cache(self) -> ApiResponse:
        with self._lock:
            self._state = transitions.toggle_cache(self._state)
        return self.fetch()

    def on_brush_drag_end(self, event: Optional[Mapping]) -> WidgetState:
        return self._update(transitions.handle_brush_change, event)

    def on_legend_click(self, event: Optional[Mapping]) -> WidgetState:
        return self._update(transitions.handle_legend_click, event)

    def on_mouse_move(self, event: Optional[Mapping]) -> WidgetState:
        return self._update(transitions.handle_mouse_move, event)

    def hover_index(self, index: int) -> WidgetState:
        """Pointer over the ``index``-th displayed record; out of range is ignored."""
        displayed = self._state.displayed
        if isinstance(index, bool) or not isinstance(index, int):
            return self._state
        if not 0 <= index < len(displayed):
            return self._state
        return self.on_mouse_move({"activePayload": [{"payload": displayed[index]}]})

    def render(self, container_width: float) -> RenderResult:
        return render_chart(
            self._state,
            container_width,
            main_height=self.main_height,
            brush_height=self.brush_height,
        )
