import curses
import time

from loguru import logger

from grid_pane import GridPane
from selection_state import (
    KEY_DOWN,
    KEY_END,
    KEY_ESCAPE,
    KEY_HOME,
    KEY_LEFT,
    KEY_RIGHT,
    KEY_UP,
    SELECTION_MODES,
    KeyEvent,
)
from status_bar import render_status, status_context

STATUS_HEIGHT = 1

# curses code -> (key, ctrl_or_cmd, shift)
_KEYMAP = {
    curses.KEY_UP: (KEY_UP, False, False),
    curses.KEY_DOWN: (KEY_DOWN, False, False),
    curses.KEY_LEFT: (KEY_LEFT, False, False),
    curses.KEY_RIGHT: (KEY_RIGHT, False, False),
    curses.KEY_SR: (KEY_UP, False, True),
    curses.KEY_SF: (KEY_DOWN, False, True),
    curses.KEY_SLEFT: (KEY_LEFT, False, True),
    curses.KEY_SRIGHT: (KEY_RIGHT, False, True),
    curses.KEY_HOME: (KEY_HOME, False, False),
    curses.KEY_END: (KEY_END, False, False),
    curses.KEY_SHOME: (KEY_HOME, False, True),
    curses.KEY_SEND: (KEY_END, False, True),
    ord("k"): (KEY_UP, False, False),
    ord("j"): (KEY_DOWN, False, False),
    ord("h"): (KEY_LEFT, False, False),
    ord("l"): (KEY_RIGHT, False, False),
    ord("K"): (KEY_UP, False, True),
    ord("J"): (KEY_DOWN, False, True),
    ord("H"): (KEY_LEFT, False, True),
    ord("L"): (KEY_RIGHT, False, True),
    ord("0"): (KEY_HOME, False, False),
    ord("$"): (KEY_END, False, False),
    ord("g"): (KEY_HOME, True, False),
    ord("G"): (KEY_END, True, False),
    1: ("a", True, False),  # Ctrl+A
    27: (KEY_ESCAPE, False, False),
}


def translate_key(ch):
    """Map a curses key code to a KeyEvent, or None for non-selection keys."""
    entry = _KEYMAP.get(ch)
    if entry is None:
        return None
    key, ctrl, shift = entry
    return KeyEvent(key, ctrl_or_cmd=ctrl, shift=shift)


def next_mode(mode):
    idx = SELECTION_MODES.index(mode)
    return SELECTION_MODES[(idx + 1) % len(SELECTION_MODES)]


class Orchestrator:
    def __init__(self, stdscr, controller, file_path=None):
        self.stdscr = stdscr
        try:
            curses.curs_set(0)
        except curses.error:
            pass
        curses.raw()
        self.stdscr.nodelay(False)
        self.stdscr.timeout(100)
        curses.mousemask(curses.ALL_MOUSE_EVENTS | curses.REPORT_MOUSE_POSITION)

        self.controller = controller
        self.file_path = file_path
        self._build_windows()
        self.grid = GridPane(controller)

        # ---- status ----
        self.status_msg = None
        self.status_msg_until = 0
        self.exit_requested = False

        controller.selection.on_change(self._on_selection_changed)

    # ---------------- helpers ----------------

    def _set_status(self, msg, seconds=3):
        self.status_msg = msg
        self.status_msg_until = time.time() + seconds

    def _on_selection_changed(self, snap):
        logger.debug(
            "selection: {} rows, {} cells, dragging={}",
            len(snap.selected_rows),
            len(snap.selected_cells),
            snap.is_dragging,
        )

    # ---------------- UI ----------------

    def _build_windows(self):
        """Grid window over everything but the bottom status line."""
        h, w = self.stdscr.getmaxyx()
        grid_h = max(1, h - STATUS_HEIGHT)
        self.grid_win = curses.newwin(grid_h, w, 0, 0)
        self.status_win = curses.newwin(STATUS_HEIGHT, w, grid_h, 0)
        # neither window owns the cursor
        self.grid_win.leaveok(True)
        self.status_win.leaveok(True)

    def redraw(self):
        self.grid.sync_viewport(self.grid_win)
        self.grid.draw(self.grid_win)

        sw = self.status_win
        sw.erase()
        h, w = sw.getmaxyx()
        context = status_context(self.controller, self.file_path)
        context["status_msg"] = self.status_msg
        context["status_until"] = self.status_msg_until
        try:
            sw.addnstr(0, 0, render_status(context, w), w)
        except curses.error:
            pass
        sw.refresh()

    # ---------------- input ----------------

    def _page(self, direction):
        axis = self.controller.row_axis
        axis.set_scroll_offset(max(0.0, axis.scroll_offset + direction * axis.extent))

    def _handle_mouse(self):
        try:
            _, x, y, _, bstate = curses.getmouse()
        except curses.error:
            return
        hit = self.grid.hit_test(y, x)
        ctrl = bool(bstate & getattr(curses, "BUTTON_CTRL", 0))
        shift = bool(bstate & getattr(curses, "BUTTON_SHIFT", 0))
        controller = self.controller

        if bstate & curses.BUTTON1_RELEASED:
            if hit is not None:
                controller.handle_pointer_move(controller.pointer_event(hit[0], hit[1], ctrl, shift))
            controller.handle_pointer_up()
            return
        if hit is None:
            return
        event = controller.pointer_event(hit[0], hit[1], ctrl, shift)
        if bstate & curses.BUTTON1_CLICKED:
            controller.handle_click(event)
        elif bstate & curses.BUTTON1_PRESSED:
            if shift or event.data_index is None:
                controller.handle_click(event)
            else:
                controller.handle_pointer_down(event)
        elif bstate & curses.REPORT_MOUSE_POSITION:
            controller.handle_pointer_move(event)

    def handle_key(self, ch):
        controller = self.controller
        if ch == curses.KEY_MOUSE:
            self._handle_mouse()
            return
        if ch == 27 and controller.selection.is_dragging:
            controller.handle_pointer_cancel()
            return
        if ch in (ord("q"), 3, 24):
            self.exit_requested = True
            return
        if ch == curses.KEY_NPAGE:
            self._page(1)
            return
        if ch == curses.KEY_PPAGE:
            self._page(-1)
            return
        if ch in (ord(" "), 10, 13):
            if not controller.toggle_focused_group():
                self._set_status("No group at cursor", 2)
            return
        if ch == ord("c"):
            controller.collapse_all()
            return
        if ch == ord("e"):
            controller.expand_all()
            return
        if ch == ord("m"):
            mode = next_mode(controller.selection.mode)
            controller.selection.set_mode(mode)
            self._set_status(f"Selection mode: {mode}", 2)
            return

        event = translate_key(ch)
        if event is not None:
            controller.handle_key(event)

    def run(self):
        self.stdscr.clear()
        self.stdscr.refresh()
        self.redraw()

        while not self.exit_requested:
            ch = self.stdscr.getch()
            if ch == -1:
                self.redraw()
                continue
            if ch == curses.KEY_RESIZE:
                self._build_windows()
            else:
                self.handle_key(ch)
            self.redraw()
