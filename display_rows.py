from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Mapping, Union

ROW_STATES = ("pristine", "added", "modified", "deleted")

RowState = Literal["pristine", "added", "modified", "deleted"]


@dataclass(frozen=True)
class GroupIdentifier:
    column: str
    value: Any


def make_group_id(path) -> str:
    # repr keeps 1 and "1" apart
    return "/".join(f"{g.column}={g.value!r}" for g in path)


def _frozen(mapping) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class GroupHeaderRow:
    group_id: str
    column: str
    value: Any
    level: int
    item_count: int
    collapsed: bool
    aggregates: Mapping = field(default_factory=dict, compare=False, hash=False)
    path: tuple = ()
    kind: Literal["group-header"] = "group-header"

    def __post_init__(self):
        object.__setattr__(self, "aggregates", _frozen(self.aggregates))


@dataclass(frozen=True)
class DataRow:
    data_index: int
    record: Any = field(compare=False, hash=False)
    group_path: tuple = ()
    row_id: Any = None
    row_state: RowState = "pristine"
    original: Any = field(default=None, compare=False, hash=False)
    changed_fields: frozenset = frozenset()
    kind: Literal["data"] = "data"


@dataclass(frozen=True)
class GroupFooterRow:
    group_id: str
    column: str
    value: Any
    level: int
    item_count: int
    aggregates: Mapping = field(default_factory=dict, compare=False, hash=False)
    kind: Literal["group-footer"] = "group-footer"

    def __post_init__(self):
        object.__setattr__(self, "aggregates", _frozen(self.aggregates))


@dataclass(frozen=True)
class SubtotalRow:
    level: int
    group_key: str | None = None
    aggregates: Mapping = field(default_factory=dict, compare=False, hash=False)
    kind: Literal["subtotal"] = "subtotal"

    def __post_init__(self):
        object.__setattr__(self, "aggregates", _frozen(self.aggregates))


@dataclass(frozen=True)
class GrandTotalRow:
    item_count: int
    aggregates: Mapping = field(default_factory=dict, compare=False, hash=False)
    kind: Literal["grand-total"] = "grand-total"

    def __post_init__(self):
        object.__setattr__(self, "aggregates", _frozen(self.aggregates))


DisplayRow = Union[GroupHeaderRow, DataRow, GroupFooterRow, SubtotalRow, GrandTotalRow]


def row_kind(row) -> str:
    """Return the variant tag of a display row, rejecting anything else."""
    if isinstance(row, GroupHeaderRow):
        return "group-header"
    if isinstance(row, DataRow):
        return "data"
    if isinstance(row, GroupFooterRow):
        return "group-footer"
    if isinstance(row, SubtotalRow):
        return "subtotal"
    if isinstance(row, GrandTotalRow):
        return "grand-total"
    raise TypeError(f"not a display row: {type(row).__name__}")


def is_data_row(row) -> bool:
    return row_kind(row) == "data"


def row_level(row) -> int:
    kind = row_kind(row)
    if kind in ("group-header", "group-footer", "subtotal"):
        return row.level
    if kind == "data":
        return len(row.group_path)
    return 0
