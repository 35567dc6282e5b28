"""Tests for the generation store."""

from datetime import datetime, timezone

import pytest

from dnathreads.lineage import (
    CorruptGraphError,
    Generation,
    GenerationStore,
    InvalidParentError,
    NotFoundError,
)
from dnathreads.lineage.hash import compute_code_hash


class TestAdd:
    """Test creating generations."""

    def test_add_root(self, store):
        """A generation without parent becomes a root."""
        generation = store.add("print(1)", "first", "hex", "app.py")

        assert generation.id.startswith("gen-")
        assert generation.parent_id is None
        assert generation.is_root
        assert generation.status == "active"
        assert generation.sequence == 0
        assert generation.code_hash == compute_code_hash("print(1)")
        assert store.roots("app.py") == [generation.id]
        assert len(store) == 1

    def test_add_child(self, store):
        root = store.add("A", "root", "hex", "app.py")
        child = store.add("B", "child", "hex", "app.py", parent_id=root.id)

        assert child.parent_id == root.id
        assert store.children_of(root.id) == [child.id]
        assert store.children_of(child.id) == []

    def test_ids_are_unique_for_identical_content(self, store):
        """Identical snapshots still get distinct ids."""
        a = store.add("same", "same", "hex", "app.py")
        b = store.add("same", "same", "hex", "app.py", parent_id=a.id)
        c = store.add("same", "same", "hex", "app.py", parent_id=a.id)

        assert len({a.id, b.id, c.id}) == 3

    def test_unknown_parent_rejected(self, store):
        """An unknown parent fails without storing anything."""
        with pytest.raises(InvalidParentError):
            store.add("A", "orphan", "hex", "app.py", parent_id="gen-doesnotexist")

        assert len(store) == 0
        assert store.roots() == []

    def test_parent_from_other_file_rejected(self, store):
        other = store.add("A", "other file", "hex", "lib.py")

        with pytest.raises(InvalidParentError) as exc_info:
            store.add("B", "wrong file", "hex", "app.py", parent_id=other.id)

        assert "lib.py" in str(exc_info.value)
        assert store.children_of(other.id) == []

    def test_deleted_parent_rejected(self, store):
        root = store.add("A", "root", "hex", "app.py")
        middle = store.add("B", "middle", "hex", "app.py", parent_id=root.id)
        store.remove(middle.id)

        with pytest.raises(InvalidParentError) as exc_info:
            store.add("C", "late child", "hex", "app.py", parent_id=middle.id)

        assert exc_info.value.reason == "was deleted"

    def test_created_at_strictly_increases_with_frozen_clock(self):
        """A clock that does not move still yields increasing timestamps."""
        frozen = datetime(2026, 1, 1, tzinfo=timezone.utc)
        store = GenerationStore(clock=lambda: frozen)

        first = store.add("A", "one", "hex", "app.py")
        second = store.add("B", "two", "hex", "app.py", parent_id=first.id)
        third = store.add("C", "three", "hex", "app.py", parent_id=first.id)

        assert first.created_at < second.created_at < third.created_at
        assert store.children_of(first.id) == [second.id, third.id]

    def test_sequence_never_reused(self, store):
        a = store.add("A", "a", "hex", "app.py")
        b = store.add("B", "b", "hex", "app.py", parent_id=a.id)
        store.remove(b.id)
        c = store.add("C", "c", "hex", "app.py", parent_id=a.id)

        assert c.sequence > b.sequence
        assert c.id != b.id


class TestLookup:
    """Test lookups and listings."""

    def test_get_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.get("gen-missing")

    def test_get_deleted(self, store):
        root = store.add("A", "root", "hex", "app.py")
        store.remove(root.id)

        with pytest.raises(NotFoundError):
            store.get(root.id)
        assert store.is_retired(root.id)
        assert not store.exists(root.id)

    def test_children_of_unknown(self, store):
        with pytest.raises(NotFoundError):
            store.children_of("gen-missing")

    def test_children_ordered_by_creation(self, store):
        root = store.add("A", "root", "hex", "app.py")
        kids = [
            store.add(f"child {i}", f"child {i}", "hex", "app.py", parent_id=root.id).id
            for i in range(5)
        ]

        assert store.children_of(root.id) == kids

    def test_files_and_generations(self, store):
        a = store.add("A", "a", "hex", "app.py")
        b = store.add("B", "b", "kex", "lib.py")
        c = store.add("C", "c", "hex", "app.py", parent_id=a.id)

        assert store.files() == ["app.py", "lib.py"]
        assert [g.id for g in store.generations("app.py")] == [a.id, c.id]
        assert [g.id for g in store.generations()] == [a.id, b.id, c.id]


class TestTraversal:
    """Test ancestor and descendant walks."""

    def test_ancestors_of(self, store):
        root = store.add("A", "root", "hex", "app.py")
        middle = store.add("B", "middle", "hex", "app.py", parent_id=root.id)
        leaf = store.add("C", "leaf", "hex", "app.py", parent_id=middle.id)

        assert store.ancestors_of(leaf.id) == [leaf.id, middle.id, root.id]
        assert store.ancestors_of(root.id) == [root.id]
        assert store.is_ancestor(root.id, leaf.id)
        assert not store.is_ancestor(leaf.id, root.id)

    def test_ancestors_of_detects_cycle(self, store):
        """A cycle injected behind the store's back is reported, not looped on."""
        a = store.add("A", "a", "hex", "app.py")
        b = store.add("B", "b", "hex", "app.py", parent_id=a.id)
        store._generations[a.id] = store._generations[a.id].with_parent(b.id)

        with pytest.raises(CorruptGraphError):
            store.ancestors_of(b.id)

    def test_ancestors_of_detects_dangling_parent(self, store):
        a = store.add("A", "a", "hex", "app.py")
        b = store.add("B", "b", "hex", "app.py", parent_id=a.id)
        store._generations[b.id] = store._generations[b.id].with_parent("gen-vanished")

        with pytest.raises(CorruptGraphError):
            store.ancestors_of(b.id)

    def test_descendants_of_preorder(self, store):
        root = store.add("A", "root", "hex", "app.py")
        x = store.add("X", "x", "hex", "app.py", parent_id=root.id)
        x1 = store.add("X1", "x1", "hex", "app.py", parent_id=x.id)
        y = store.add("Y", "y", "hex", "app.py", parent_id=root.id)

        assert store.descendants_of(root.id) == [x.id, x1.id, y.id]
        assert store.descendants_of(y.id) == []

    def test_ancestor_walk_bounded_by_node_count(self, store):
        """Every walk in a healthy forest visits each id at most once."""
        root = store.add("0", "root", "hex", "app.py")
        parent = root.id
        for i in range(1, 30):
            parent = store.add(str(i), f"gen {i}", "hex", "app.py", parent_id=parent).id

        for generation in store.generations():
            chain = store.ancestors_of(generation.id)
            assert len(chain) == len(set(chain))
            assert len(chain) <= len(store)


class TestMutation:
    """Test status updates and removal."""

    def test_update_status(self, store):
        generation = store.add("A", "a", "hex", "app.py")
        store.update_status(generation.with_status("rejected"))

        assert store.get(generation.id).is_rejected
        assert store.get(generation.id).code == "A"

    def test_update_status_refuses_other_changes(self, store):
        generation = store.add("A", "a", "hex", "app.py")

        with pytest.raises(ValueError):
            store.update_status(generation.with_parent("gen-other"))

    def test_remove_reparents_children(self, store):
        root = store.add("A", "root", "hex", "app.py")
        middle = store.add("B", "middle", "hex", "app.py", parent_id=root.id)
        leaf = store.add("C", "leaf", "hex", "app.py", parent_id=middle.id)

        reparented = store.remove(middle.id)

        assert reparented == [leaf.id]
        assert store.children_of(root.id) == [leaf.id]
        assert store.get(leaf.id).parent_id == root.id
        assert store.ancestors_of(leaf.id) == [leaf.id, root.id]

    def test_remove_keeps_sibling_order(self, store):
        """Reparented children merge into their new siblings by creation time."""
        root = store.add("R", "root", "hex", "app.py")
        middle = store.add("M", "middle", "hex", "app.py", parent_id=root.id)
        x = store.add("X", "x", "hex", "app.py", parent_id=middle.id)
        y = store.add("Y", "y", "hex", "app.py", parent_id=root.id)

        store.remove(middle.id)

        assert store.children_of(root.id) == [x.id, y.id]

    def test_remove_root_promotes_children(self, store):
        root = store.add("A", "root", "hex", "app.py")
        a = store.add("B", "a", "hex", "app.py", parent_id=root.id)
        b = store.add("C", "b", "hex", "app.py", parent_id=root.id)

        store.remove(root.id)

        assert store.roots("app.py") == [a.id, b.id]
        assert store.get(a.id).is_root
        store.check_integrity()


class TestRestore:
    """Test rebuilding a store from records."""

    def test_restore_round_trip(self, store, clock):
        root = store.add("A", "root", "hex", "app.py")
        child = store.add("B", "child", "hex", "app.py", parent_id=root.id)
        gone = store.add("C", "gone", "hex", "app.py", parent_id=root.id)
        store.remove(gone.id)

        records = [Generation.from_dict(g.to_dict()) for g in store.generations()]
        retired = [Generation.from_dict(gone.to_dict())]

        restored = GenerationStore(clock=clock)
        restored.restore(records, retired)

        assert restored.children_of(root.id) == [child.id]
        assert restored.is_retired(gone.id)
        assert restored.add("D", "next", "hex", "app.py", parent_id=root.id).sequence > gone.sequence

    def test_restore_rejects_dangling_parent(self, store):
        root = store.add("A", "root", "hex", "app.py")
        child = store.add("B", "child", "hex", "app.py", parent_id=root.id)

        with pytest.raises(CorruptGraphError):
            GenerationStore().restore([child])
