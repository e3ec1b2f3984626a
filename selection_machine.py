from typing import Callable

from loguru import logger

from display_rows import row_kind
from event_emitter import EventEmitter
from selection_state import (
    KEY_DOWN,
    KEY_END,
    KEY_ESCAPE,
    KEY_HOME,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_UP,
    NAVIGATION_KEYS,
    CellKey,
    CellPosition,
    KeyEvent,
    PointerEvent,
    SelectionSnapshot,
    derive_row_ids,
    row_id_lookup,
    validate_mode,
)

SELECTION_CHANGED = "selection_changed"
CELL_MODES = ("range", "all")


class SelectionMachine:
    """Row and cell selection under click, drag and keyboard interaction.

    Positions arrive as view indices (rows of the flattened display
    sequence, headers included) and are stored as data indices, so a
    selection outlives scrolling, collapsing and regrouping.

    Modes:
      none   nothing is selectable
      row    whole rows, tracked by row id
      range  rectangular cell ranges
      all    cell ranges, with the row ids derived from the selected cells
    """

    def __init__(self, mode: str = "range", multi_select: bool = True):
        self._mode = validate_mode(mode)
        self.multi_select = multi_select

        self._rows: frozenset = frozenset()
        self._cells: frozenset = frozenset()
        self._anchor: CellPosition | None = None
        self._focus: CellPosition | None = None
        self._dragging = False
        self._drag_snapshot = None
        self._drag_additive = False

        self._display_rows: list = []
        self._view_by_data: dict[int, int] = {}
        self._data_views: list[int] = []
        self._data_ordinal: dict[int, int] = {}
        self._row_ids: dict = {}
        self._data_count: int | None = None

        self._columns: list = []
        self._column_index: dict = {}

        self._events = EventEmitter()
        self._last_emitted = self.snapshot()

    # ---------- listeners ----------
    def on_change(self, handler: Callable[[SelectionSnapshot], None]):
        return self._events.on(SELECTION_CHANGED, handler)

    def _notify(self):
        snap = self.snapshot()
        if snap == self._last_emitted:
            return
        self._last_emitted = snap
        self._events.emit(SELECTION_CHANGED, snap)

    # ---------- collaborators ----------
    def set_display_rows(self, rows, data_count: int | None = None):
        """Adopt a new display sequence.

        Anchor and focus are re-resolved through their data index; they are
        dropped when their row is no longer displayed. Cells and row ids
        pointing past ``data_count`` are dropped.
        """
        self._display_rows = list(rows)
        self._data_count = data_count
        self._view_by_data = {}
        self._data_views = []
        for view_index, row in enumerate(self._display_rows):
            if row_kind(row) != "data":
                continue
            self._view_by_data[row.data_index] = view_index
            self._data_views.append(view_index)
            self._row_ids[row.data_index] = row.row_id
        self._data_ordinal = {v: i for i, v in enumerate(self._data_views)}

        rows_sel, cells = self._rows, self._cells
        if data_count is not None:
            self._row_ids = {d: r for d, r in self._row_ids.items() if d < data_count}
            cells = frozenset(c for c in cells if 0 <= c.data_index < data_count)
        self._apply(
            rows_sel,
            cells,
            self._resolve(self._anchor),
            self._resolve(self._focus),
        )
        self._notify()

    def reset_data(self):
        """Forget row ids learned from earlier datasets, and the selection."""
        self._row_ids = {}
        self.clear()

    def set_columns(self, column_keys):
        """Set the visual column order used for range materialization.

        Cells in columns that are gone are dropped. In cell modes so are the
        anchor and focus when their column is gone.
        """
        self._columns = list(column_keys)
        self._column_index = {key: i for i, key in enumerate(self._columns)}

        cells = frozenset(c for c in self._cells if c.column_key in self._column_index)
        anchor, focus = self._anchor, self._focus
        if self._mode in CELL_MODES:
            anchor = self._keep_column(anchor)
            focus = self._keep_column(focus)
        if self._drag_snapshot is not None:
            s_rows, s_cells, s_anchor, s_focus = self._drag_snapshot
            s_cells = frozenset(c for c in s_cells if c.column_key in self._column_index)
            self._drag_snapshot = (s_rows, s_cells, s_anchor, s_focus)
        if self._dragging and anchor is None:
            self._dragging = False
            self._drag_snapshot = None
            self._drag_additive = False
        self._apply(self._rows, cells, anchor, focus)
        self._notify()

    def _keep_column(self, pos: CellPosition | None) -> CellPosition | None:
        if pos is None or pos.column_key not in self._column_index:
            return None
        return pos

    def _resolve(self, pos: CellPosition | None) -> CellPosition | None:
        if pos is None:
            return None
        view_index = self._view_by_data.get(pos.data_index)
        if view_index is None:
            return None
        if view_index == pos.view_index:
            return pos
        return CellPosition(view_index, pos.data_index, pos.column_key)

    # ---------- state ----------
    @property
    def mode(self) -> str:
        return self._mode

    @property
    def anchor(self) -> CellPosition | None:
        return self._anchor

    @property
    def focus(self) -> CellPosition | None:
        return self._focus

    @property
    def is_dragging(self) -> bool:
        return self._dragging

    @property
    def columns(self) -> list:
        return list(self._columns)

    def snapshot(self) -> SelectionSnapshot:
        return SelectionSnapshot(
            selected_rows=self._rows,
            selected_cells=self._cells,
            mode=self._mode,
            anchor=self._anchor,
            focus=self._focus,
            is_dragging=self._dragging,
        )

    def selected_row_ids(self) -> set:
        return set(self._rows)

    def selected_cells(self) -> set:
        return set(self._cells)

    def is_row_selected(self, row_id) -> bool:
        return row_id in self._rows

    def is_cell_selected(self, data_index: int, column_key: str) -> bool:
        return CellKey(data_index, column_key) in self._cells

    def row_id_for(self, data_index: int):
        return self._row_ids.get(data_index, data_index)

    def set_mode(self, mode: str):
        validate_mode(mode)
        if mode == self._mode:
            return
        logger.debug("selection mode {} -> {}", self._mode, mode)
        self._mode = mode
        self._reset()
        self._notify()

    def _apply(self, rows, cells, anchor, focus):
        """Replace every selection field in one step."""
        if self._mode == "all":
            rows = derive_row_ids(cells, row_id_lookup(self._row_ids))
        elif self._mode == "range":
            rows = frozenset()
        elif self._mode == "row":
            cells = frozenset()
        else:
            rows, cells = frozenset(), frozenset()
        self._rows = frozenset(rows)
        self._cells = frozenset(cells)
        self._anchor = anchor
        self._focus = focus

    def _reset(self):
        self._rows = frozenset()
        self._cells = frozenset()
        self._anchor = None
        self._focus = None
        self._dragging = False
        self._drag_snapshot = None
        self._drag_additive = False

    def clear(self):
        self._reset()
        self._notify()

    # ---------- targets and spans ----------
    def _target(self, event: PointerEvent) -> CellPosition | None:
        if event.data_index is None:
            return None
        view_index = self._view_by_data.get(event.data_index)
        if view_index is None:
            logger.debug("ignoring stale data index {}", event.data_index)
            return None
        if self._mode in CELL_MODES and event.column_key not in self._column_index:
            logger.debug("ignoring unknown column {!r}", event.column_key)
            return None
        return CellPosition(view_index, event.data_index, event.column_key)

    def _members(self, pos: CellPosition):
        if self._mode == "row":
            return {self.row_id_for(pos.data_index)}, set()
        return set(), {pos.cell_key}

    def _span(self, start: CellPosition, end: CellPosition):
        """Every row (row mode) or cell between two positions, inclusive.

        Returns None when either column is unknown.
        """
        v0, v1 = sorted((start.view_index, end.view_index))
        data_indices = [
            row.data_index
            for row in self._display_rows[v0 : v1 + 1]
            if row_kind(row) == "data"
        ]
        if self._mode == "row":
            return {self.row_id_for(d) for d in data_indices}, set()

        c0 = self._column_index.get(start.column_key)
        c1 = self._column_index.get(end.column_key)
        if c0 is None or c1 is None:
            logger.debug("no span between {!r} and {!r}", start.column_key, end.column_key)
            return None
        c0, c1 = sorted((c0, c1))
        columns = self._columns[c0 : c1 + 1]
        return set(), {CellKey(d, c) for d in data_indices for c in columns}

    # ---------- clicks ----------
    def handle_click(self, event: PointerEvent):
        if self._mode == "none" or self._dragging:
            return
        target = self._target(event)
        if target is None:
            return

        multi = self.multi_select
        if event.shift and multi and self._anchor is not None:
            span = self._span(self._anchor, target)
            if span is None:
                return
            span_rows, span_cells = span
            if event.ctrl_or_cmd:
                rows = self._rows | span_rows
                cells = self._cells | span_cells
            else:
                rows, cells = span_rows, span_cells
            # plain shift keeps the pivot
            self._apply(rows, cells, self._anchor, target)
        elif event.ctrl_or_cmd and multi:
            rows, cells = set(self._rows), set(self._cells)
            t_rows, t_cells = self._members(target)
            rows ^= t_rows
            cells ^= t_cells
            self._apply(rows, cells, target, target)
        else:
            rows, cells = self._members(target)
            self._apply(rows, cells, target, target)
        self._notify()

    def select_rows(self, row_ids):
        if self._mode != "row":
            return
        row_ids = list(row_ids)
        if not self.multi_select:
            row_ids = row_ids[:1]
        self._apply(set(row_ids), set(), self._anchor, self._focus)
        self._notify()

    def select_all(self):
        if self._mode == "none" or not self.multi_select:
            return
        data_indices = [self._display_rows[v].data_index for v in self._data_views]
        if self._mode == "row":
            self._apply({self.row_id_for(d) for d in data_indices}, set(), self._anchor, self._focus)
        else:
            cells = {CellKey(d, c) for d in data_indices for c in self._columns}
            self._apply(set(), cells, self._anchor, self._focus)
        self._notify()

    # ---------- drag ----------
    def start_drag(self, event: PointerEvent) -> bool:
        if self._mode == "none" or self._dragging:
            return False
        target = self._target(event)
        if target is None:
            return False

        self._drag_snapshot = (self._rows, self._cells, self._anchor, self._focus)
        self._drag_additive = bool(event.ctrl_or_cmd and self.multi_select)
        self._dragging = True

        rows, cells = self._members(target)
        if self._drag_additive:
            rows |= self._rows
            cells |= self._cells
        self._apply(rows, cells, target, target)
        self._notify()
        return True

    def update_drag(self, event: PointerEvent):
        if not self._dragging or self._anchor is None:
            return
        target = self._target(event)
        if target is None:
            return

        if self.multi_select:
            span = self._span(self._anchor, target)
            if span is None:
                return
            rows, cells = span
        else:
            rows, cells = self._members(target)
        if self._drag_additive:
            base_rows, base_cells = self._drag_snapshot[0], self._drag_snapshot[1]
            rows |= base_rows
            cells |= base_cells
        self._apply(rows, cells, self._anchor, target)
        self._notify()

    def commit_drag(self):
        if not self._dragging:
            return
        self._dragging = False
        self._drag_snapshot = None
        self._drag_additive = False
        self._notify()

    def cancel_drag(self):
        if not self._dragging:
            return
        rows, cells, anchor, focus = self._drag_snapshot
        self._dragging = False
        self._drag_snapshot = None
        self._drag_additive = False
        self._rows, self._cells = rows, cells
        self._anchor = self._resolve(anchor)
        self._focus = self._resolve(focus)
        self._notify()

    # ---------- keyboard ----------
    def handle_key(self, event: KeyEvent) -> bool:
        """Apply a key press; return True when the key was consumed."""
        key = event.key
        if key == KEY_ESCAPE:
            self.clear()
            return True
        if key in ("a", "A") and event.ctrl_or_cmd:
            self.select_all()
            return True
        if key in NAVIGATION_KEYS:
            if self._mode == "none" or self._dragging:
                return False
            target = self._step(key, event.ctrl_or_cmd)
            if target is not None:
                self._move_to(target, extend=event.shift)
            return True
        return False

    def _first_position(self) -> CellPosition | None:
        if not self._data_views:
            return None
        view_index = self._data_views[0]
        column = self._columns[0] if self._columns else None
        if self._mode in CELL_MODES and column is None:
            return None
        return CellPosition(view_index, self._display_rows[view_index].data_index, column)

    def _row_at_ordinal(self, ordinal: int, column_key) -> CellPosition:
        ordinal = max(0, min(ordinal, len(self._data_views) - 1))
        view_index = self._data_views[ordinal]
        return CellPosition(view_index, self._display_rows[view_index].data_index, column_key)

    def _column_at(self, pos: CellPosition, index: int) -> CellPosition | None:
        if not self._columns:
            return None
        index = max(0, min(index, len(self._columns) - 1))
        return CellPosition(pos.view_index, pos.data_index, self._columns[index])

    def _step(self, key: str, ctrl: bool) -> CellPosition | None:
        current = self._focus or self._anchor
        if current is None:
            return self._first_position()

        ordinal = self._data_ordinal.get(current.view_index)
        if ordinal is None:
            return self._first_position()
        col_index = self._column_index.get(current.column_key)

        if key == KEY_UP:
            return self._row_at_ordinal(ordinal - 1, current.column_key)
        if key == KEY_DOWN:
            return self._row_at_ordinal(ordinal + 1, current.column_key)
        if key in (KEY_HOME, KEY_END) and ctrl:
            last = len(self._data_views) - 1
            return self._row_at_ordinal(0 if key == KEY_HOME else last, current.column_key)

        if self._mode == "row":
            return None
        if key == KEY_HOME:
            return self._column_at(current, 0)
        if key == KEY_END:
            return self._column_at(current, len(self._columns) - 1)
        if col_index is None:
            return self._column_at(current, 0)
        if key == KEY_LEFT:
            return self._column_at(current, col_index - 1)
        if key == KEY_RIGHT:
            return self._column_at(current, col_index + 1)
        return None

    def _move_to(self, target: CellPosition, extend: bool):
        if extend and self.multi_select and self._anchor is not None:
            span = self._span(self._anchor, target)
            if span is None:
                return
            rows, cells = span
            self._apply(rows, cells, self._anchor, target)
        else:
            rows, cells = self._members(target)
            self._apply(rows, cells, target, target)
        self._notify()
