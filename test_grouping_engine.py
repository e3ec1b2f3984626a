import math

import pandas as pd
import pytest

from change_tracker import ChangeTracker
from display_rows import (
    DataRow,
    GrandTotalRow,
    GroupFooterRow,
    GroupHeaderRow,
    SubtotalRow,
    row_kind,
)
from grouping_engine import GroupingConfig, GroupingEngine, build_group_tree


def _records():
    return [
        {"id": 1, "region": "east", "team": "a", "amount": 10},
        {"id": 2, "region": "west", "team": "a", "amount": 5},
        {"id": 3, "region": "east", "team": "b", "amount": 7},
        {"id": 4, "region": None, "team": "a", "amount": "n/a"},
        {"id": 5, "region": "east", "team": "a", "amount": 3},
    ]


def _engine(**kwargs):
    tracker = kwargs.pop("tracker", None)
    config = GroupingConfig(
        columns=kwargs.pop("columns", ["region", "team"]),
        aggregates=kwargs.pop("aggregates", {"amount": "sum", "id": "count"}),
        **kwargs,
    )
    engine = GroupingEngine(config, tracker)
    engine.set_records(_records())
    return engine


def _kinds(rows):
    return [row_kind(r) for r in rows]


def _data_indices(rows):
    return [r.data_index for r in rows if isinstance(r, DataRow)]


def test_flatten_is_pre_order_in_first_appearance_order():
    rows = _engine().display_rows

    assert _kinds(rows) == [
        "group-header",  # east
        "group-header",  # east/a
        "data",
        "data",
        "group-header",  # east/b
        "data",
        "group-header",  # west
        "group-header",  # west/a
        "data",
        "group-header",  # None
        "group-header",  # None/a
        "data",
    ]
    assert _data_indices(rows) == [0, 4, 2, 1, 3]
    assert [r.value for r in rows if isinstance(r, GroupHeaderRow) and r.level == 0] == [
        "east",
        "west",
        None,
    ]


def test_header_counts_match_descendant_data_rows():
    rows = _engine().display_rows
    data_rows = [r for r in rows if isinstance(r, DataRow)]

    for header in (r for r in rows if isinstance(r, GroupHeaderRow)):
        under = [d for d in data_rows if d.group_path[: len(header.path)] == header.path]
        assert header.item_count == len(under)
        assert header.level == len(header.path) - 1


def test_aggregates_cover_all_descendants():
    engine = _engine()
    east = engine.get_group("region='east'")
    unknown = engine.get_group("region=None")

    assert east.aggregates == {"amount": 20, "id": 3}
    # non-numeric values are skipped by sum but counted by count
    assert unknown.aggregates == {"amount": 0, "id": 1}
    assert engine.tree.aggregates == {"amount": 25, "id": 5}


def test_collapse_all_shows_top_level_headers_only():
    engine = _engine()
    engine.collapse_all()
    rows = engine.display_rows

    assert _kinds(rows) == ["group-header"] * 3
    assert all(r.collapsed for r in rows)


def test_collapse_then_expand_round_trips():
    engine = _engine()
    before = engine.display_rows

    assert engine.toggle_group("region='east'") is True
    assert len(engine.display_rows) == len(before) - 5
    assert engine.toggle_group("region='east'") is True

    assert engine.display_rows == before


def test_collapsed_group_hides_only_its_subtree():
    engine = _engine()
    engine.collapse_group("region='east'/team='a'")

    assert _data_indices(engine.display_rows) == [2, 1, 3]
    assert engine.is_collapsed("region='east'/team='a'")
    assert engine.collapse_group("region='east'/team='a'") is False
    assert engine.expand_group("region='east'/team='a'") is True
    assert engine.expand_group("region='east'/team='a'") is False


def test_unknown_group_id_is_a_no_op():
    engine = _engine()
    before = engine.display_rows

    assert engine.toggle_group("region='north'") is False
    assert engine.display_rows == before
    assert engine.collapsed_groups() == frozenset()


def test_empty_dataset_gives_empty_sequence():
    engine = GroupingEngine(GroupingConfig(columns=["region"], show_grand_total=True))
    engine.set_records([])

    assert engine.display_rows == []


def test_empty_dataset_with_always_show_grand_total():
    engine = GroupingEngine(
        GroupingConfig(
            columns=["region"],
            aggregates={"amount": "sum"},
            show_grand_total=True,
            always_show_grand_total=True,
        )
    )
    engine.set_records([])
    rows = engine.display_rows

    assert len(rows) == 1
    assert isinstance(rows[0], GrandTotalRow)
    assert rows[0].item_count == 0
    assert rows[0].aggregates == {"amount": 0}


def test_no_group_columns_degenerates_to_flat_rows():
    engine = _engine(columns=[], show_grand_total=True)
    rows = engine.display_rows

    assert _kinds(rows) == ["data"] * 5 + ["grand-total"]
    assert _data_indices(rows) == [0, 1, 2, 3, 4]
    assert rows[-1].aggregates == {"amount": 25, "id": 5}
    assert not engine.is_grouping_enabled


def test_absent_values_share_one_group():
    records = [{"k": None}, {"k": float("nan")}, {"k": pd.NA}, {"k": "x"}]
    tree = build_group_tree(records, ["k"])

    assert [node.value for node in tree.roots] == [None, "x"]
    assert tree.roots[0].count == 3


def test_group_values_are_not_coerced_across_types():
    records = [{"k": 1}, {"k": "1"}, {"k": True}, {"k": 1.0}, {"k": 1}]
    tree = build_group_tree(records, ["k"])

    assert [node.count for node in tree.roots] == [2, 1, 1, 1]
    assert len({node.group_id for node in tree.roots}) == 4


def test_unhashable_values_group_by_repr():
    records = [{"k": [1, 2]}, {"k": [1, 2]}, {"k": [3]}]
    tree = build_group_tree(records, ["k"])

    assert [node.count for node in tree.roots] == [2, 1]


def test_group_footers_follow_each_expanded_group():
    engine = _engine(columns=["region"], show_group_footers=True)
    rows = engine.display_rows

    assert _kinds(rows)[:5] == ["group-header", "data", "data", "data", "group-footer"]
    footer = rows[4]
    assert isinstance(footer, GroupFooterRow)
    assert footer.group_id == "region='east'"
    assert footer.aggregates == {"amount": 20, "id": 3}

    engine.collapse_group("region='east'")
    assert row_kind(engine.display_rows[1]) == "group-header"


def test_subtotals_follow_interior_groups():
    engine = _engine(show_subtotals=True)
    subtotals = [r for r in engine.display_rows if isinstance(r, SubtotalRow)]

    assert [s.group_key for s in subtotals] == [
        "region='east'",
        "region='west'",
        "region=None",
    ]
    assert subtotals[0].aggregates["amount"] == 20


def test_default_collapsed_applies_once_and_survives_new_records():
    engine = _engine(default_collapsed=True)
    assert _kinds(engine.display_rows) == ["group-header"] * 3

    engine.expand_group("region='west'")
    engine.set_records(_records())

    assert engine.is_collapsed("region='east'")
    assert not engine.is_collapsed("region='west'")


def test_changing_group_columns_resets_collapse_state():
    engine = _engine()
    engine.collapse_all()
    engine.set_group_columns(["team"])

    assert engine.collapsed_groups() == frozenset()
    assert [r.value for r in engine.display_rows if isinstance(r, GroupHeaderRow)] == ["a", "b"]


def test_sort_groups_puts_absent_last():
    records = [{"k": "west"}, {"k": None}, {"k": "east"}, {"k": "alpha"}]
    tree = build_group_tree(records, ["k"], sort_groups=True)

    assert [node.value for node in tree.roots] == ["alpha", "east", "west", None]


def test_build_returns_tree_and_rows():
    engine = GroupingEngine()
    tree, rows = engine.build(_records(), ["team"], {"amount": "max"})

    assert [node.value for node in tree.roots] == ["a", "b"]
    assert tree.roots[0].aggregates == {"amount": 10}
    assert rows == engine.display_rows


def test_unknown_aggregate_name_is_rejected():
    with pytest.raises(ValueError):
        GroupingConfig(columns=["region"], aggregates={"amount": "median"})


def test_dataframe_records_are_accepted():
    df = pd.DataFrame({"region": ["east", "west", "east"], "amount": [1.5, math.nan, 2.5]})
    engine = GroupingEngine(GroupingConfig(columns=["region"], aggregates={"amount": "avg"}))
    engine.set_records(df)

    assert engine.get_group("region='east'").aggregates == {"amount": 2.0}
    assert engine.get_group("region='west'").aggregates == {"amount": 0}


def test_data_rows_carry_dirty_state():
    tracker = ChangeTracker()
    tracker.mark_modified(2, {"amount": 5}, "amount", 6)
    tracker.mark_deleted(3, {"amount": 7})
    engine = _engine(tracker=tracker)

    by_id = {r.row_id: r for r in engine.display_rows if isinstance(r, DataRow)}
    assert by_id[2].row_state == "modified"
    assert by_id[2].changed_fields == frozenset({"amount"})
    assert by_id[2].original == {"amount": 5}
    assert by_id[3].row_state == "deleted"
    assert by_id[1].row_state == "pristine"

    tracker.clear()
    engine.refresh()
    assert all(r.row_state == "pristine" for r in engine.display_rows if isinstance(r, DataRow))


def test_counts_at_every_depth_sum_to_record_count():
    tree = build_group_tree(_records(), ["region", "team", "id"])
    by_depth = {}
    for node in tree.iter_nodes():
        by_depth[node.level] = by_depth.get(node.level, 0) + node.count

    assert sorted(by_depth) == [0, 1, 2]
    assert all(total == 5 for total in by_depth.values())


def test_collapse_all_with_grand_total():
    engine = _engine(show_grand_total=True)
    engine.collapse_all()

    assert _kinds(engine.display_rows) == ["group-header"] * 3 + ["grand-total"]


def test_row_aggregates_are_read_only():
    engine = _engine(show_grand_total=True)
    header = engine.display_rows[0]
    total = engine.display_rows[-1]

    with pytest.raises(TypeError):
        header.aggregates["amount"] = 999
    with pytest.raises(TypeError):
        total.aggregates["amount"] = 999
    assert engine.display_rows[0].aggregates == {"amount": 20, "id": 3}
    assert engine.get_group("region='east'").aggregates == {"amount": 20, "id": 3}


def test_row_aggregates_do_not_alias_the_input_mapping():
    source = {"amount": 1}
    row = SubtotalRow(level=0, group_key="k", aggregates=source)
    source["amount"] = 2

    assert row.aggregates == {"amount": 1}
    assert GrandTotalRow(item_count=0).aggregates == {}


def test_mutating_built_tree_leaves_engine_intact():
    engine = _engine()
    tree, rows = engine.build()
    tree.roots.clear()
    tree.aggregates["amount"] = -1
    rows.clear()

    assert len(engine.display_rows) == 12
    assert engine.tree.aggregates == {"amount": 25, "id": 5}
    engine.collapse_all()
    assert _kinds(engine.display_rows) == ["group-header"] * 3


def test_mutating_returned_group_leaves_engine_intact():
    engine = _engine()
    east = engine.get_group("region='east'")
    east.children.clear()
    east.aggregates["amount"] = -1
    east.count = 0

    again = engine.get_group("region='east'")
    assert again.count == 3
    assert len(again.children) == 2
    assert engine.display_rows[0].aggregates == {"amount": 20, "id": 3}
    assert engine.collapse_group("region='east'/team='a'") is True


def test_engine_copies_the_callers_config():
    config = GroupingConfig(columns=["region"], aggregates={"amount": "sum"})
    engine = GroupingEngine(config)
    engine.set_records(_records())
    engine.set_group_columns(["team"])
    engine.set_aggregate("id", "count")

    assert config.columns == ["region"]
    assert config.aggregates == {"amount": "sum"}

    config.columns.append("team")
    assert engine.config.columns == ["team"]


def test_set_config_with_same_columns_keeps_collapse_state():
    engine = _engine(default_collapsed=True)
    engine.expand_all()
    engine.collapse_group("region='west'")

    engine.set_config(
        GroupingConfig(columns=["region", "team"], default_collapsed=True, show_grand_total=True)
    )

    assert engine.collapsed_groups() == frozenset({"region='west'"})
    assert _kinds(engine.display_rows)[-1] == "grand-total"


def test_set_config_with_new_columns_rearms_default_collapse():
    engine = _engine()
    engine.set_config(GroupingConfig(columns=["team"], default_collapsed=True))

    assert _kinds(engine.display_rows) == ["group-header"] * 2
    assert all(r.collapsed for r in engine.display_rows)
