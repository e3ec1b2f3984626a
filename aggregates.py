"""Reducers used for group and grand-total aggregates."""
import numbers

import numpy as np
import pandas as pd

BUILTIN_AGGREGATES = ("sum", "avg", "count", "min", "max", "first", "last")


def is_absent(value) -> bool:
    if value is None:
        return True
    try:
        result = pd.isna(value)
    except (TypeError, ValueError):
        return False
    # list-likes give an array back; those are structured values, not absent
    if isinstance(result, (bool, np.bool_)):
        return bool(result)
    return False


def is_numeric(value) -> bool:
    if isinstance(value, bool) or is_absent(value):
        return False
    return isinstance(value, numbers.Real)


def _numbers(values):
    return [v for v in values if is_numeric(v)]


def _present(values):
    return [v for v in values if not is_absent(v)]


def _sum(values):
    return sum(_numbers(values))


def _avg(values):
    nums = _numbers(values)
    return sum(nums) / len(nums) if nums else 0


def _count(values):
    return len(values)


def _min(values):
    nums = _numbers(values)
    return min(nums) if nums else None


def _max(values):
    nums = _numbers(values)
    return max(nums) if nums else None


def _first(values):
    present = _present(values)
    return present[0] if present else None


def _last(values):
    present = _present(values)
    return present[-1] if present else None


_REDUCERS = {
    "sum": _sum,
    "avg": _avg,
    "count": _count,
    "min": _min,
    "max": _max,
    "first": _first,
    "last": _last,
}


def validate_aggregate(how):
    if callable(how):
        return how
    if how not in _REDUCERS:
        raise ValueError(
            f"Unknown aggregate {how!r} (use one of {', '.join(BUILTIN_AGGREGATES)} or a callable)"
        )
    return how


def reduce_values(how, values: list):
    """Apply a built-in name or a custom reducer to the raw column values."""
    if callable(how):
        return how(list(values))
    return _REDUCERS[validate_aggregate(how)](values)


def compute_aggregates(records, positions, aggs: dict) -> dict:
    result = {}
    if not aggs:
        return result
    for column, how in aggs.items():
        values = [cell_value(records[i], column) for i in positions]
        result[column] = reduce_values(how, values)
    return result


def cell_value(record, column):
    getter = getattr(record, "get", None)
    if getter is not None:
        return getter(column)
    try:
        return record[column]
    except (KeyError, IndexError, TypeError):
        return None
