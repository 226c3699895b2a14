"""Tests for RecordStore and the turn-order sort."""

import random

from initiative_sync.state import Group, RecordStore, sort_by_initiative


class TestSortedView:
    """Turn order: higher whole initiative first, then lower raw, then name."""

    def test_whole_number_bucket_comes_first(self, make_record):
        records = [
            make_record("x", name="X", initiative=14.2),
            make_record("y", name="Y", initiative=15),
            make_record("z", name="Z", initiative=14),
            make_record("w", name="W", initiative=14.1),
        ]
        order = [r.initiative for r in sort_by_initiative(records)]
        assert order == [15, 14, 14.1, 14.2]

    def test_name_breaks_ties(self, make_record):
        records = [
            make_record("1", name="Zed", initiative=12),
            make_record("2", name="Abe", initiative=12),
            make_record("3", name="Mia", initiative=12),
        ]
        assert [r.name for r in sort_by_initiative(records)] == ["Abe", "Mia", "Zed"]

    def test_order_independent_of_input_order(self, make_record):
        records = [
            make_record(str(i), name=f"n{i:02d}", initiative=(i % 5) + (i % 3) / 10)
            for i in range(20)
        ]
        expected = [r.id for r in sort_by_initiative(records)]
        for seed in range(5):
            shuffled = list(records)
            random.Random(seed).shuffle(shuffled)
            assert [r.id for r in sort_by_initiative(shuffled)] == expected

    def test_negative_initiative(self, make_record):
        records = [
            make_record("a", initiative=-0.5),
            make_record("b", initiative=0),
            make_record("c", initiative=-1),
        ]
        # floor(-0.5) == -1, so -1 comes before -0.5
        assert [r.id for r in sort_by_initiative(records)] == ["b", "c", "a"]

    def test_sorted_view_does_not_reorder_storage(self, seeded_store):
        before = [r.id for r in seeded_store.records]
        seeded_store.sorted_view()
        assert [r.id for r in seeded_store.records] == before


class TestUpdate:
    """Local edits through update()/update_many()."""

    def test_update_merges_patch(self, seeded_store):
        seeded_store.update("b", {"current_hp": 3, "ac": 16})
        b = seeded_store.get("b")
        assert b.current_hp == 3
        assert b.ac == 16
        assert b.name == "Bram"

    def test_update_sets_local_edit(self, seeded_store):
        assert seeded_store.edit_state.local_edit is False
        seeded_store.update("a", {"ac": 14})
        assert seeded_store.edit_state.local_edit is True

    def test_unknown_id_is_ignored(self, seeded_store):
        before = seeded_store.records
        seeded_store.update("missing", {"ac": 1})
        assert seeded_store.records == before
        assert seeded_store.edit_state.local_edit is False

    def test_id_cannot_change(self, seeded_store):
        seeded_store.update("a", {"id": "hijacked", "ac": 9})
        assert seeded_store.get("hijacked") is None
        assert seeded_store.get("a").ac == 9

    def test_update_many_applies_all(self, seeded_store):
        seeded_store.update_many([
            ("a", {"active": True}),
            ("c", {"initiative": 20}),
        ])
        assert seeded_store.get("a").active is True
        assert seeded_store.get("c").initiative == 20

    def test_update_many_notifies_once(self, seeded_store):
        calls = []
        seeded_store.on_mutation(lambda: calls.append(1))
        seeded_store.update_many([("a", {"ac": 1}), ("b", {"ac": 2})])
        assert calls == [1]

    def test_replace_does_not_set_flag(self, seeded_store, make_record):
        calls = []
        seeded_store.on_mutation(lambda: calls.append(1))
        seeded_store.replace([make_record("z")])
        assert seeded_store.edit_state.local_edit is False
        assert calls == []
        assert seeded_store.ids() == {"z"}

    def test_resort_reorders_storage(self, seeded_store):
        seeded_store.replace(reversed(seeded_store.records))
        seeded_store.resort()
        assert [r.id for r in seeded_store.records] == ["a", "b", "c"]


class TestDerivedViews:
    """Visible rows and the active record."""

    def test_visible_rows_skip_hidden_and_staged(self, make_record):
        store = RecordStore()
        store.replace([
            make_record("shown", initiative=10),
            make_record("hidden", visible=False),
            make_record("staged", group_id="g1"),
            make_record("live", group_id="g2"),
            make_record("orphan", group_id="gone"),
        ])
        groups = [
            Group(id="g1", name="Ambush", staged=True),
            Group(id="g2", name="Guards"),
        ]
        ids = {r.id for r in store.visible_rows(groups)}
        assert ids == {"shown", "live", "orphan"}

    def test_active_record(self, seeded_store):
        assert seeded_store.active_record() is None
        seeded_store.update("c", {"active": True})
        assert seeded_store.active_record().id == "c"
