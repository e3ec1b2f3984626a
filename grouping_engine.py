import copy
from dataclasses import dataclass, field, replace
from typing import Any

import pandas as pd
from loguru import logger

from aggregates import cell_value, compute_aggregates, is_absent, validate_aggregate
from display_rows import (
    DataRow,
    GrandTotalRow,
    GroupFooterRow,
    GroupHeaderRow,
    GroupIdentifier,
    SubtotalRow,
    make_group_id,
)

_ABSENT_KEY = ("<absent>",)


@dataclass
class GroupingConfig:
    columns: list = field(default_factory=list)
    aggregates: dict = field(default_factory=dict)
    default_collapsed: bool = False
    sort_groups: bool = False
    show_group_footers: bool = False
    show_subtotals: bool = False
    show_grand_total: bool = False
    always_show_grand_total: bool = False
    row_id_key: str = "id"

    def __post_init__(self):
        self.columns = list(self.columns)
        self.aggregates = dict(self.aggregates)
        for how in self.aggregates.values():
            validate_aggregate(how)


@dataclass
class GroupNode:
    column: str
    value: Any
    path: tuple
    group_id: str
    count: int = 0
    aggregates: dict = field(default_factory=dict)
    children: list | None = None
    positions: list | None = None

    @property
    def level(self) -> int:
        return len(self.path) - 1

    @property
    def is_leaf(self) -> bool:
        return self.children is None


@dataclass
class GroupTree:
    roots: list
    total_count: int
    aggregates: dict = field(default_factory=dict)

    def iter_nodes(self):
        """Yield every node in pre-order."""
        stack = list(reversed(self.roots))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))


def _partition_key(value):
    if is_absent(value):
        return _ABSENT_KEY
    try:
        hash(value)
    except TypeError:
        return (type(value), repr(value))
    # type in the key so 1, 1.0 and True stay separate groups
    return (type(value), value)


def _sort_key(node: GroupNode):
    if node.value is None:
        return (1, "")
    return (0, str(node.value))


def _partition(records, positions, columns, depth, parent_path, aggs, sort_groups):
    column = columns[depth]
    buckets: dict = {}
    for pos in positions:
        raw = cell_value(records[pos], column)
        key = _partition_key(raw)
        bucket = buckets.get(key)
        if bucket is None:
            value = None if key is _ABSENT_KEY else raw
            bucket = buckets[key] = (value, [])
        bucket[1].append(pos)

    nodes = []
    for value, members in buckets.values():
        path = parent_path + (GroupIdentifier(column, value),)
        node = GroupNode(
            column=column,
            value=value,
            path=path,
            group_id=make_group_id(path),
            count=len(members),
            aggregates=compute_aggregates(records, members, aggs),
        )
        if depth + 1 < len(columns):
            node.children = _partition(
                records, members, columns, depth + 1, path, aggs, sort_groups
            )
        else:
            node.positions = members
        nodes.append(node)

    if sort_groups:
        nodes.sort(key=_sort_key)
    return nodes


def build_group_tree(records, columns, aggregates=None, sort_groups=False) -> GroupTree:
    """Partition records hierarchically by ``columns``.

    Leaf nodes hold record positions in their original order; every node
    carries the aggregates of all of its descendant records.
    """
    aggs = aggregates or {}
    positions = list(range(len(records)))
    roots = []
    if columns and positions:
        roots = _partition(records, positions, list(columns), 0, (), aggs, sort_groups)
    return GroupTree(
        roots=roots,
        total_count=len(positions),
        aggregates=compute_aggregates(records, positions, aggs),
    )


def _row_id(record, data_index, row_id_key):
    value = cell_value(record, row_id_key)
    if isinstance(value, (str, int)) and not isinstance(value, bool):
        return value
    return data_index


def _data_row(records, data_index, group_path, config, tracker):
    record = records[data_index]
    row_id = _row_id(record, data_index, config.row_id_key)
    if tracker is None:
        return DataRow(
            data_index=data_index, record=record, group_path=group_path, row_id=row_id
        )
    return DataRow(
        data_index=data_index,
        record=record,
        group_path=group_path,
        row_id=row_id,
        row_state=tracker.row_state(row_id),
        original=tracker.original(row_id),
        changed_fields=tracker.changed_fields(row_id),
    )


def flatten_tree(tree, records, collapsed, config, tracker=None) -> list:
    """Pre-order flatten of ``tree`` into display rows.

    A collapsed group contributes its header only.
    """
    rows = []
    if not config.columns:
        rows.extend(_data_row(records, i, (), config, tracker) for i in range(len(records)))
    else:
        _walk(tree.roots, records, collapsed, config, tracker, rows)

    if config.show_grand_total:
        if tree.total_count > 0 or (config.always_show_grand_total and config.aggregates):
            rows.append(GrandTotalRow(item_count=tree.total_count, aggregates=tree.aggregates))
    return rows


def _walk(nodes, records, collapsed, config, tracker, rows):
    for node in nodes:
        is_collapsed = node.group_id in collapsed
        rows.append(
            GroupHeaderRow(
                group_id=node.group_id,
                column=node.column,
                value=node.value,
                level=node.level,
                item_count=node.count,
                collapsed=is_collapsed,
                aggregates=node.aggregates,
                path=node.path,
            )
        )
        if is_collapsed:
            continue

        if node.children is not None:
            _walk(node.children, records, collapsed, config, tracker, rows)
            if config.show_subtotals:
                rows.append(
                    SubtotalRow(
                        level=node.level,
                        group_key=node.group_id,
                        aggregates=node.aggregates,
                    )
                )
        else:
            for pos in node.positions:
                rows.append(_data_row(records, pos, node.path, config, tracker))

        if config.show_group_footers:
            rows.append(
                GroupFooterRow(
                    group_id=node.group_id,
                    column=node.column,
                    value=node.value,
                    level=node.level,
                    item_count=node.count,
                    aggregates=node.aggregates,
                )
            )


def _as_records(records) -> list:
    if records is None:
        return []
    if isinstance(records, pd.DataFrame):
        return records.to_dict("records")
    return list(records)


class GroupingEngine:
    """Owns grouping configuration, collapse state and the display sequence.

    The engine keeps its own copy of the configuration. Trees and group
    nodes handed out are copies; display rows are frozen.
    """

    def __init__(self, config: GroupingConfig | None = None, change_tracker=None):
        self.config = replace(config) if config is not None else GroupingConfig()
        self.change_tracker = change_tracker
        self.records: list = []
        self._tree = GroupTree(roots=[], total_count=0)
        self._collapsed: set[str] = set()
        self._nodes: dict[str, GroupNode] = {}
        self._rows: list = []
        self._pending_default_collapse = self.config.default_collapsed

    # ---------- configuration ----------
    def _columns_changed(self, columns):
        self.config.columns = list(columns)
        self._collapsed.clear()
        self._pending_default_collapse = self.config.default_collapsed

    def set_config(self, config: GroupingConfig):
        previous = self.config.columns
        self.config = replace(config)
        if self.config.columns != previous:
            self._columns_changed(self.config.columns)
        self._rebuild()

    def set_group_columns(self, columns):
        columns = list(columns)
        if columns == self.config.columns:
            return
        self._columns_changed(columns)
        self._rebuild()

    def set_aggregate(self, column: str, how):
        self.config.aggregates[column] = validate_aggregate(how)
        self._rebuild()

    def set_records(self, records):
        """Replace the dataset; collapse state survives by group id."""
        self.records = _as_records(records)
        self._rebuild()

    def build(self, records=None, group_columns=None, aggregates=None):
        """Rebuild and return ``(tree, display_rows)``."""
        if group_columns is not None and list(group_columns) != self.config.columns:
            self._columns_changed(group_columns)
        if aggregates is not None:
            self.config.aggregates = {
                col: validate_aggregate(how) for col, how in aggregates.items()
            }
        if records is not None:
            self.records = _as_records(records)
        self._rebuild()
        return self.tree, list(self._rows)

    def refresh(self):
        """Re-flatten after external dirty-state changes."""
        self._rows = flatten_tree(
            self._tree, self.records, self._collapsed, self.config, self.change_tracker
        )

    def _rebuild(self):
        self._tree = build_group_tree(
            self.records,
            self.config.columns,
            self.config.aggregates,
            sort_groups=self.config.sort_groups,
        )
        self._nodes = {node.group_id: node for node in self._tree.iter_nodes()}
        if self._pending_default_collapse and self._nodes:
            self._collapsed.update(self._nodes)
            self._pending_default_collapse = False
        self.refresh()
        logger.debug(
            "grouping rebuilt: {} records, {} groups, {} display rows",
            len(self.records),
            len(self._nodes),
            len(self._rows),
        )

    # ---------- queries ----------
    @property
    def tree(self) -> GroupTree:
        return copy.deepcopy(self._tree)

    @property
    def display_rows(self) -> list:
        return list(self._rows)

    @property
    def is_grouping_enabled(self) -> bool:
        return bool(self.config.columns)

    def group_ids(self) -> list:
        return list(self._nodes)

    def get_group(self, group_id: str) -> GroupNode | None:
        node = self._nodes.get(group_id)
        return copy.deepcopy(node) if node is not None else None

    def collapsed_groups(self) -> frozenset:
        return frozenset(self._collapsed)

    def is_collapsed(self, group_id: str) -> bool:
        return group_id in self._collapsed

    # ---------- collapse state ----------
    def toggle_group(self, group_id: str) -> bool:
        if group_id not in self._nodes:
            logger.debug("toggle ignored, unknown group {}", group_id)
            return False
        if group_id in self._collapsed:
            self._collapsed.discard(group_id)
        else:
            self._collapsed.add(group_id)
        self.refresh()
        return True

    def collapse_group(self, group_id: str) -> bool:
        if group_id not in self._nodes or group_id in self._collapsed:
            return False
        self._collapsed.add(group_id)
        self.refresh()
        return True

    def expand_group(self, group_id: str) -> bool:
        if group_id not in self._collapsed:
            return False
        self._collapsed.discard(group_id)
        self.refresh()
        return True

    def collapse_all(self):
        self._collapsed.update(self._nodes)
        self.refresh()

    def expand_all(self):
        self._collapsed.clear()
        self.refresh()
