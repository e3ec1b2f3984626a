from dataclasses import dataclass, field
from typing import Any


@dataclass
class RowChange:
    state: str
    original: dict | None = None
    changed_fields: set = field(default_factory=set)


class ChangeTracker:
    """Tracks pending row edits so display rows can carry their dirty state.

    Records themselves are never touched; only row ids and shadow copies of
    the pre-edit values are kept here.
    """

    def __init__(self):
        self._changes: dict[Any, RowChange] = {}

    def mark_added(self, row_id):
        self._changes[row_id] = RowChange("added")

    def mark_modified(self, row_id, original: dict, field_key: str, new_value):
        change = self._changes.get(row_id)
        if change is not None and change.state in ("added", "deleted"):
            return
        if change is None:
            change = RowChange("modified", original=dict(original))
            self._changes[row_id] = change

        if change.original.get(field_key) == new_value:
            change.changed_fields.discard(field_key)
        else:
            change.changed_fields.add(field_key)

        # edited back to the original values
        if not change.changed_fields:
            del self._changes[row_id]

    def mark_deleted(self, row_id, original: dict):
        change = self._changes.get(row_id)
        if change is not None and change.state == "added":
            del self._changes[row_id]
            return
        shadow = change.original if change is not None and change.original else original
        self._changes[row_id] = RowChange("deleted", original=dict(shadow))

    def row_state(self, row_id) -> str:
        change = self._changes.get(row_id)
        return change.state if change is not None else "pristine"

    def original(self, row_id) -> dict | None:
        change = self._changes.get(row_id)
        if change is None or change.original is None:
            return None
        return dict(change.original)

    def changed_fields(self, row_id) -> frozenset:
        change = self._changes.get(row_id)
        return frozenset(change.changed_fields) if change is not None else frozenset()

    def is_cell_dirty(self, row_id, field_key) -> bool:
        return field_key in self.changed_fields(row_id)

    @property
    def has_changes(self) -> bool:
        return bool(self._changes)

    def dirty_row_ids(self) -> list:
        return list(self._changes.keys())

    def clear(self):
        self._changes.clear()
