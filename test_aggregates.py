import math

import numpy as np
import pandas as pd
import pytest

from aggregates import (
    cell_value,
    compute_aggregates,
    is_absent,
    is_numeric,
    reduce_values,
    validate_aggregate,
)

VALUES = [4, None, "x", 2.5, True, float("nan"), 1]


@pytest.mark.parametrize(
    "how, expected",
    [
        ("sum", 7.5),
        ("avg", 2.5),
        ("count", 7),
        ("min", 1),
        ("max", 4),
        ("first", 4),
        ("last", 1),
    ],
)
def test_builtin_reducers(how, expected):
    assert reduce_values(how, VALUES) == expected


@pytest.mark.parametrize(
    "how, expected",
    [("sum", 0), ("avg", 0), ("count", 0), ("min", None), ("max", None), ("first", None), ("last", None)],
)
def test_builtin_reducers_on_no_values(how, expected):
    assert reduce_values(how, []) == expected


def test_first_and_last_skip_absent_values():
    assert reduce_values("first", [None, math.nan, "a", "b", None]) == "a"
    assert reduce_values("last", [None, "a", "b", pd.NA]) == "b"


def test_custom_reducer_sees_raw_values():
    seen = []

    def reducer(values):
        seen.extend(values)
        return len([v for v in values if v is None])

    assert reduce_values(reducer, [1, None, "x", None]) == 2
    assert seen == [1, None, "x", None]


def test_validate_aggregate():
    assert validate_aggregate("avg") == "avg"
    assert validate_aggregate(len) is len
    with pytest.raises(ValueError):
        validate_aggregate("median")


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, True),
        (float("nan"), True),
        (pd.NA, True),
        (pd.NaT, True),
        (np.nan, True),
        (0, False),
        ("", False),
        ([1, None], False),
    ],
)
def test_is_absent(value, expected):
    assert is_absent(value) is expected


def test_is_numeric_excludes_bools():
    assert is_numeric(3)
    assert is_numeric(np.int64(3))
    assert is_numeric(2.5)
    assert not is_numeric(True)
    assert not is_numeric("3")
    assert not is_numeric(float("nan"))


def test_compute_aggregates_over_positions():
    records = [{"a": 1}, {"a": 2}, {"a": 3}, {}]
    result = compute_aggregates(records, [0, 2, 3], {"a": "sum", "b": "count"})

    assert result == {"a": 4, "b": 3}
    assert compute_aggregates(records, [0], {}) == {}


def test_cell_value_handles_mappings_and_sequences():
    assert cell_value({"a": 1}, "a") == 1
    assert cell_value({"a": 1}, "b") is None
    assert cell_value([5, 6], 1) == 6
    assert cell_value([5, 6], 9) is None
    assert cell_value(None, "a") is None
