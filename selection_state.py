from dataclasses import dataclass
from typing import Any, NamedTuple

SELECTION_MODES = ("none", "row", "range", "all")

KEY_UP = "ArrowUp"
KEY_DOWN = "ArrowDown"
KEY_LEFT = "ArrowLeft"
KEY_RIGHT = "ArrowRight"
KEY_HOME = "Home"
KEY_END = "End"
KEY_ESCAPE = "Escape"
NAVIGATION_KEYS = (KEY_UP, KEY_DOWN, KEY_LEFT, KEY_RIGHT, KEY_HOME, KEY_END)


def validate_mode(mode: str) -> str:
    if mode not in SELECTION_MODES:
        raise ValueError(f"Unknown selection mode {mode!r} (use {', '.join(SELECTION_MODES)})")
    return mode


class CellKey(NamedTuple):
    """Selected cell, keyed by data position so it survives scrolling and regrouping."""

    data_index: int
    column_key: str


@dataclass(frozen=True)
class CellPosition:
    view_index: int
    data_index: int
    column_key: str | None = None

    @property
    def cell_key(self) -> CellKey:
        return CellKey(self.data_index, self.column_key)


@dataclass(frozen=True)
class PointerEvent:
    view_row_index: int
    data_index: int | None
    column_key: str | None = None
    ctrl_or_cmd: bool = False
    shift: bool = False


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl_or_cmd: bool = False
    shift: bool = False


@dataclass(frozen=True)
class SelectionSnapshot:
    selected_rows: frozenset = frozenset()
    selected_cells: frozenset = frozenset()
    mode: str = "none"
    anchor: CellPosition | None = None
    focus: CellPosition | None = None
    is_dragging: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.selected_rows and not self.selected_cells


def derive_row_ids(cells, row_id_for) -> set:
    """Row ids owning at least one of ``cells``.

    ``row_id_for`` maps a data index to its row id.
    """
    return {row_id_for(cell.data_index) for cell in cells}


def row_id_lookup(row_ids: dict[int, Any]):
    def lookup(data_index: int):
        return row_ids.get(data_index, data_index)

    return lookup
