"""Windowing for one linear axis (columns, or display rows).

Only the items intersecting the viewport, plus an overscan margin, need to
be materialized. Offsets are cached once per item change so that every
viewport query is two binary searches.
"""
from dataclasses import dataclass
from typing import Any, Callable

import numpy as np
from loguru import logger

from event_emitter import EventEmitter

RANGE_CHANGED = "range_changed"


@dataclass
class AxisItem:
    key: Any
    size: float


@dataclass(frozen=True)
class VisibleRange:
    start_index: int
    end_index: int
    leading_offset: float
    total_extent: float


def _coerce_item(item) -> AxisItem:
    if isinstance(item, AxisItem):
        return AxisItem(item.key, max(0.0, float(item.size)))
    if isinstance(item, (tuple, list)) and len(item) == 2:
        key, size = item
        return AxisItem(key, max(0.0, float(size)))
    key = getattr(item, "key")
    size = getattr(item, "size", None)
    if size is None:
        size = getattr(item, "width")
    return AxisItem(key, max(0.0, float(size)))


class AxisVirtualizer:
    def __init__(
        self,
        overscan: int = 2,
        enabled: bool | None = None,
        auto_enable_threshold: int = 50,
    ):
        self.overscan = max(0, int(overscan))
        self.auto_enable_threshold = max(0, int(auto_enable_threshold))
        # None follows the threshold
        self._enabled_override = enabled

        self._items: list[AxisItem] = []
        self._index_by_key: dict = {}
        self._offsets = np.zeros(0, dtype=float)
        self._ends = np.zeros(0, dtype=float)
        self._total = 0.0

        self._scroll_offset = 0.0
        self._extent = 0.0
        self._current: VisibleRange | None = None
        self._events = EventEmitter()

    # ---------- listeners ----------
    def on_range_changed(self, handler: Callable[[VisibleRange | None], None]):
        """Called with the new range, or None once virtualization turns off."""
        return self._events.on(RANGE_CHANGED, handler)

    # ---------- items ----------
    def configure(self, items):
        self._items = [_coerce_item(item) for item in items]
        self._index_by_key = {item.key: i for i, item in enumerate(self._items)}
        self._recalculate_offsets()
        self._recalculate_range()

    def resize_item(self, key, size: float) -> bool:
        index = self._index_by_key.get(key)
        if index is None:
            return False
        self._items[index].size = max(0.0, float(size))
        self._recalculate_offsets()
        self._recalculate_range()
        return True

    def _recalculate_offsets(self):
        sizes = np.array([item.size for item in self._items], dtype=float)
        self._ends = np.cumsum(sizes)
        self._offsets = np.concatenate(([0.0], self._ends[:-1]))[: len(sizes)]
        self._total = float(self._ends[-1]) if len(sizes) else 0.0

    # ---------- enablement ----------
    @property
    def enabled(self) -> bool:
        if self._enabled_override is not None:
            return self._enabled_override
        return len(self._items) >= self.auto_enable_threshold

    def set_enabled(self, enabled: bool | None):
        if enabled == self._enabled_override:
            return
        self._enabled_override = enabled
        self._recalculate_range()

    # ---------- viewport ----------
    def set_viewport(self, offset: float, extent: float):
        if extent <= 0:
            # not measured yet
            return
        self._scroll_offset = max(0.0, float(offset))
        self._extent = float(extent)
        self._recalculate_range()

    def set_scroll_offset(self, offset: float):
        self._scroll_offset = max(0.0, float(offset))
        if self._extent > 0:
            self._recalculate_range()

    def scroll_to(self, key) -> float | None:
        index = self._index_by_key.get(key)
        if index is None:
            return None
        self.set_scroll_offset(self._offsets[index])
        return self._scroll_offset

    def scroll_to_index(self, index: int):
        """Scroll by the minimum amount that brings ``index`` fully into view."""
        if index < 0 or index >= len(self._items) or self._extent <= 0:
            return
        start = float(self._offsets[index])
        end = float(self._ends[index])
        if start < self._scroll_offset:
            self.set_scroll_offset(start)
        elif end > self._scroll_offset + self._extent:
            self.set_scroll_offset(max(0.0, end - self._extent))

    @property
    def scroll_offset(self) -> float:
        return self._scroll_offset

    @property
    def extent(self) -> float:
        return self._extent

    # ---------- queries ----------
    @property
    def item_count(self) -> int:
        return len(self._items)

    @property
    def total_extent(self) -> float:
        return self._total

    def item_offset(self, index: int) -> float:
        if index < 0 or index >= len(self._items):
            return 0.0
        return float(self._offsets[index])

    def index_of(self, key) -> int | None:
        return self._index_by_key.get(key)

    def items(self) -> list:
        return [AxisItem(item.key, item.size) for item in self._items]

    def visible_range(self) -> VisibleRange | None:
        if not self.enabled or not self._items:
            return None
        return self._current

    def visible_items(self) -> list:
        vr = self.visible_range()
        if vr is None:
            return self.items()
        return [AxisItem(item.key, item.size) for item in self._items[vr.start_index : vr.end_index]]

    def index_range(self, offset: float, extent: float, overscan: int | None = None):
        """Return ``(start, end)`` covering ``[offset, offset + extent)``.

        ``end`` is exclusive. The item straddling the far edge is included,
        then both ends grow by ``overscan`` clamped to the item count.
        """
        count = len(self._items)
        if count == 0:
            return 0, 0
        if overscan is None:
            overscan = self.overscan
        start_px = max(0.0, float(offset))
        end_px = start_px + max(0.0, float(extent))

        # greatest index whose offset <= start_px
        start = int(np.searchsorted(self._offsets, start_px, side="right")) - 1
        start = max(0, start)
        # smallest index whose far edge passes end_px
        last = int(np.searchsorted(self._ends, end_px, side="right"))
        end = min(count, last + 1)

        start = max(0, start - overscan)
        end = min(count, end + overscan)
        return start, end

    def _recalculate_range(self):
        if not self.enabled or not self._items:
            previous = self._current
            self._current = None
            if previous is not None:
                logger.debug("virtualization off for {} items", len(self._items))
                self._events.emit(RANGE_CHANGED, None)
            return
        if self._extent <= 0:
            return

        start, end = self.index_range(self._scroll_offset, self._extent)
        if start >= end:
            return

        new_range = VisibleRange(
            start_index=start,
            end_index=end,
            leading_offset=float(self._offsets[start]),
            total_extent=self._total,
        )
        previous = self._current
        self._current = new_range
        if (
            previous is None
            or previous.start_index != start
            or previous.end_index != end
        ):
            logger.debug("visible range [{}, {}) of {}", start, end, len(self._items))
            self._events.emit(RANGE_CHANGED, new_range)
