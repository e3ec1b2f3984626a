import curses

from aggregates import is_absent
from display_rows import row_kind

ROW_LABEL_WIDTH = 6
HEADER_LINES = 2


def format_value(value) -> str:
    if is_absent(value):
        return ""
    if isinstance(value, float):
        return f"{value:.6g}"
    return str(value)


def row_label(row) -> str:
    """Left-gutter text for a display row."""
    kind = row_kind(row)
    if kind == "data":
        marks = {"added": "+", "modified": "*", "deleted": "-"}
        return f"{marks.get(row.row_state, '')}{row.data_index}"
    if kind == "group-header":
        return ("+" if row.collapsed else "-") + "  " * row.level
    if kind == "group-footer":
        return "  " * row.level + "="
    if kind == "subtotal":
        return "  " * row.level + "~"
    return "Σ"


def row_title(row) -> str | None:
    """Text spanning the whole row for group headers, else None."""
    if row_kind(row) != "group-header":
        return None
    value = "(empty)" if row.value is None else format_value(row.value)
    return f"{row.column}: {value} ({row.item_count})"


def cell_text(row, column_key) -> str:
    kind = row_kind(row)
    if kind == "data":
        getter = getattr(row.record, "get", None)
        value = getter(column_key) if getter is not None else None
        return format_value(value)
    if kind in ("group-footer", "subtotal", "grand-total"):
        return format_value(row.aggregates.get(column_key))
    # group headers span the row
    return ""


class GridPane:
    PAIR_CELL_TEXT = 1
    PAIR_GROUP_HEADER = 2
    PAIR_TOTAL = 3
    PAIR_SELECTED = 4

    def __init__(self, controller):
        self.controller = controller
        try:
            curses.start_color()
            curses.use_default_colors()
            curses.init_pair(self.PAIR_CELL_TEXT, curses.COLOR_WHITE, -1)
            curses.init_pair(self.PAIR_GROUP_HEADER, curses.COLOR_CYAN, -1)
            curses.init_pair(self.PAIR_TOTAL, curses.COLOR_YELLOW, -1)
            curses.init_pair(self.PAIR_SELECTED, curses.COLOR_BLACK, curses.COLOR_WHITE)
        except curses.error:
            pass

        # screen geometry of the last draw, used for mouse hit testing
        self.row_lines: list = []
        self.col_spans: list = []

    def _color(self, pair) -> int:
        try:
            return curses.color_pair(pair)
        except curses.error:
            return 0

    def viewport_extents(self, win):
        h, w = win.getmaxyx()
        return max(0, h - HEADER_LINES - 1), max(0, w - (ROW_LABEL_WIDTH + 1))

    def sync_viewport(self, win):
        rows_h, cols_w = self.viewport_extents(win)
        ctrl = self.controller
        ctrl.set_viewport(ctrl.row_axis.scroll_offset, rows_h, ctrl.column_axis.scroll_offset, cols_w)

    def hit_test(self, y, x):
        """Map screen coordinates to ``(view_index, column_key)``."""
        view_index = None
        for line, vi in self.row_lines:
            if line == y:
                view_index = vi
                break
        if view_index is None:
            return None
        column_key = None
        for x0, x1, key in self.col_spans:
            if x0 <= x < x1:
                column_key = key
                break
        return view_index, column_key

    def draw(self, win):
        win.erase()
        h, w = win.getmaxyx()
        ctrl = self.controller
        snap = ctrl.selection.snapshot()
        focus = snap.focus

        # header
        self.col_spans = []
        x = ROW_LABEL_WIDTH + 1
        col_scroll = ctrl.column_axis.scroll_offset
        for key in ctrl.visible_columns():
            # overscan items left of the viewport are not drawn
            if ctrl.column_axis.item_offset(ctrl.column_axis.index_of(key)) < col_scroll:
                continue
            if x >= w - 1:
                break
            cw = int(ctrl.column_widths.get(key, 1))
            eff_cw = min(cw, max(1, w - x - 1))
            win.addnstr(1, x, str(key)[:eff_cw].rjust(eff_cw), eff_cw, curses.A_BOLD)
            self.col_spans.append((x, x + eff_cw, key))
            x += eff_cw + 1

        base_attr = self._color(self.PAIR_CELL_TEXT)
        selected_attr = self._color(self.PAIR_SELECTED)

        self.row_lines = []
        row_scroll = ctrl.row_axis.scroll_offset
        y = HEADER_LINES
        for view_index, row in ctrl.visible_rows():
            if ctrl.row_axis.item_offset(view_index) < row_scroll:
                continue
            if y >= h - 1:
                break
            self.row_lines.append((y, view_index))
            kind = row_kind(row)
            win.addnstr(y, 0, row_label(row).ljust(ROW_LABEL_WIDTH), ROW_LABEL_WIDTH)

            title = row_title(row)
            if title is not None:
                win.addnstr(
                    y,
                    ROW_LABEL_WIDTH + 1,
                    title,
                    max(1, w - ROW_LABEL_WIDTH - 2),
                    self._color(self.PAIR_GROUP_HEADER) | curses.A_BOLD,
                )
                y += ctrl.row_height_for(row)
                continue

            row_selected = kind == "data" and row.row_id in snap.selected_rows
            for x0, x1, key in self.col_spans:
                eff_cw = x1 - x0
                attr = base_attr
                if kind == "data":
                    if row_selected or (row.data_index, key) in snap.selected_cells:
                        attr = selected_attr | curses.A_STANDOUT
                    if (
                        focus is not None
                        and focus.view_index == view_index
                        and focus.column_key in (key, None)
                    ):
                        attr = base_attr | curses.A_REVERSE
                    if row.row_state == "deleted":
                        attr |= curses.A_DIM
                else:
                    attr = self._color(self.PAIR_TOTAL) | curses.A_BOLD
                win.addnstr(y, x0, cell_text(row, key)[:eff_cw].rjust(eff_cw), eff_cw, attr)
            y += ctrl.row_height_for(row)

        # footer line
        try:
            win.hline(h - 1, 0, " ", w)
        except curses.error:
            pass

        win.refresh()
