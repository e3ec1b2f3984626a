from loguru import logger

import config_paths
from axis_virtualizer import AxisItem, AxisVirtualizer
from display_rows import make_group_id, row_kind
from grouping_engine import GroupingConfig, GroupingEngine
from selection_machine import SelectionMachine
from selection_state import KeyEvent, PointerEvent

DEFAULT_COLUMN_WIDTH = 12


class GridController:
    """Connects grouping, virtualization and selection for one grid.

    Renderers read ``display_rows``, ``visible_rows()`` and
    ``visible_columns()`` and report gestures back through the
    ``handle_*`` methods.
    """

    def __init__(
        self,
        records=None,
        columns=None,
        grouping: GroupingConfig | None = None,
        cfg: dict | None = None,
        change_tracker=None,
        column_widths: dict | None = None,
        virtualize: bool | None = None,
    ):
        cfg = cfg or config_paths.default_config()
        self.row_height = cfg["ROW_HEIGHT"]
        self.header_row_height = cfg["HEADER_ROW_HEIGHT"]

        if grouping is None:
            grouping = GroupingConfig(
                show_grand_total=cfg["SHOW_GRAND_TOTAL"],
                show_group_footers=cfg["SHOW_GROUP_FOOTERS"],
            )
        self.engine = GroupingEngine(grouping, change_tracker)
        self.selection = SelectionMachine(
            mode=cfg["SELECTION_MODE"], multi_select=cfg["MULTI_SELECT"]
        )
        self.row_axis = AxisVirtualizer(
            overscan=cfg["OVERSCAN"],
            enabled=virtualize,
            auto_enable_threshold=cfg["AUTO_ENABLE_THRESHOLD"],
        )
        self.column_axis = AxisVirtualizer(
            overscan=cfg["OVERSCAN"],
            enabled=virtualize,
            auto_enable_threshold=cfg["AUTO_ENABLE_THRESHOLD"],
        )

        self.columns: list = []
        self.column_widths: dict = {}
        self.display_rows: list = []

        self.set_columns(columns or [], column_widths)
        self.set_records(records or [])

    # ---------- data and layout ----------
    def set_records(self, records):
        self.engine.set_records(records)
        self.selection.reset_data()
        self._sync_rows()

    def set_group_columns(self, columns):
        self.engine.set_group_columns(columns)
        self._sync_rows()

    def set_columns(self, columns, widths: dict | None = None):
        """Set visible column order; used by both the column axis and selection."""
        widths = widths or {}
        self.columns = list(columns)
        self.column_widths = {
            key: widths.get(key, self.column_widths.get(key, DEFAULT_COLUMN_WIDTH))
            for key in self.columns
        }
        self.column_axis.configure(
            [AxisItem(key, self.column_widths[key]) for key in self.columns]
        )
        self.selection.set_columns(self.columns)

    def resize_column(self, key, width) -> bool:
        if key not in self.column_widths:
            return False
        self.column_widths[key] = width
        return self.column_axis.resize_item(key, width)

    def row_height_for(self, row) -> int:
        if row_kind(row) == "data":
            return self.row_height
        return self.header_row_height

    def _sync_rows(self):
        self.display_rows = self.engine.display_rows
        self.row_axis.configure(
            [AxisItem(i, self.row_height_for(row)) for i, row in enumerate(self.display_rows)]
        )
        self.selection.set_display_rows(self.display_rows, len(self.engine.records))

    def refresh(self):
        self.engine.refresh()
        self._sync_rows()

    # ---------- viewport ----------
    def set_viewport(self, row_offset, row_extent, col_offset, col_extent):
        self.row_axis.set_viewport(row_offset, row_extent)
        self.column_axis.set_viewport(col_offset, col_extent)

    def visible_rows(self) -> list:
        """``(view_index, row)`` pairs to materialize."""
        vr = self.row_axis.visible_range()
        if vr is None:
            return list(enumerate(self.display_rows))
        return [(i, self.display_rows[i]) for i in range(vr.start_index, vr.end_index)]

    def visible_columns(self) -> list:
        return [item.key for item in self.column_axis.visible_items()]

    # ---------- grouping ----------
    def toggle_group(self, group_id) -> bool:
        if not self.engine.toggle_group(group_id):
            return False
        self._sync_rows()
        return True

    def collapse_all(self):
        self.engine.collapse_all()
        self._sync_rows()

    def expand_all(self):
        self.engine.expand_all()
        self._sync_rows()

    # ---------- interaction ----------
    def pointer_event(self, view_index, column_key=None, ctrl_or_cmd=False, shift=False):
        """Build a pointer event for a display row, filling in its data index."""
        data_index = None
        if 0 <= view_index < len(self.display_rows):
            row = self.display_rows[view_index]
            if row_kind(row) == "data":
                data_index = row.data_index
        return PointerEvent(view_index, data_index, column_key, ctrl_or_cmd, shift)

    def _header_at(self, view_index):
        if 0 <= view_index < len(self.display_rows):
            row = self.display_rows[view_index]
            if row_kind(row) == "group-header":
                return row
        return None

    def handle_click(self, event: PointerEvent):
        header = self._header_at(event.view_row_index)
        if header is not None:
            logger.debug("toggling group {}", header.group_id)
            self.toggle_group(header.group_id)
            return
        self.selection.handle_click(event)

    def handle_pointer_down(self, event: PointerEvent) -> bool:
        return self.selection.start_drag(event)

    def handle_pointer_move(self, event: PointerEvent):
        self.selection.update_drag(event)

    def handle_pointer_up(self):
        self.selection.commit_drag()

    def handle_pointer_cancel(self):
        self.selection.cancel_drag()

    def handle_key(self, event: KeyEvent) -> bool:
        handled = self.selection.handle_key(event)
        focus = self.selection.focus
        if handled and focus is not None:
            self.row_axis.scroll_to_index(focus.view_index)
            col_index = self.column_axis.index_of(focus.column_key)
            if col_index is not None:
                self.column_axis.scroll_to_index(col_index)
        return handled

    def toggle_focused_group(self) -> bool:
        """Toggle the group owning the focused row (its innermost group)."""
        focus = self.selection.focus
        if focus is None:
            return False
        row = self.display_rows[focus.view_index]
        if row_kind(row) != "data" or not row.group_path:
            return False
        return self.toggle_group(make_group_id(row.group_path))
