from change_tracker import ChangeTracker


def test_modified_row_tracks_fields_and_original():
    tracker = ChangeTracker()
    tracker.mark_modified("r1", {"a": 1, "b": 2}, "a", 5)

    assert tracker.row_state("r1") == "modified"
    assert tracker.original("r1") == {"a": 1, "b": 2}
    assert tracker.changed_fields("r1") == frozenset({"a"})
    assert tracker.is_cell_dirty("r1", "a")
    assert not tracker.is_cell_dirty("r1", "b")
    assert tracker.has_changes


def test_editing_back_to_original_clears_the_row():
    tracker = ChangeTracker()
    tracker.mark_modified("r1", {"a": 1, "b": 2}, "a", 5)
    tracker.mark_modified("r1", {"a": 5, "b": 2}, "b", 3)
    tracker.mark_modified("r1", {"a": 5, "b": 3}, "a", 1)

    assert tracker.changed_fields("r1") == frozenset({"b"})
    # the shadow copy is the pre-edit record, not the latest one
    assert tracker.original("r1") == {"a": 1, "b": 2}

    tracker.mark_modified("r1", {"a": 1, "b": 3}, "b", 2)
    assert tracker.row_state("r1") == "pristine"
    assert not tracker.has_changes


def test_added_row_stays_added_when_edited():
    tracker = ChangeTracker()
    tracker.mark_added("new")
    tracker.mark_modified("new", {}, "a", 1)

    assert tracker.row_state("new") == "added"
    assert tracker.original("new") is None


def test_deleting_an_added_row_forgets_it():
    tracker = ChangeTracker()
    tracker.mark_added("new")
    tracker.mark_deleted("new", {})

    assert tracker.row_state("new") == "pristine"
    assert tracker.dirty_row_ids() == []


def test_deleting_a_modified_row_keeps_the_first_original():
    tracker = ChangeTracker()
    tracker.mark_modified("r1", {"a": 1}, "a", 2)
    tracker.mark_deleted("r1", {"a": 2})

    assert tracker.row_state("r1") == "deleted"
    assert tracker.original("r1") == {"a": 1}
    assert tracker.changed_fields("r1") == frozenset()


def test_original_is_a_copy():
    tracker = ChangeTracker()
    tracker.mark_modified("r1", {"a": 1}, "a", 2)
    tracker.original("r1")["a"] = 99

    assert tracker.original("r1") == {"a": 1}


def test_clear():
    tracker = ChangeTracker()
    tracker.mark_added(1)
    tracker.mark_deleted(2, {"a": 1})
    assert sorted(tracker.dirty_row_ids()) == [1, 2]

    tracker.clear()
    assert not tracker.has_changes
