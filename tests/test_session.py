"""End-to-end tests for ThreadSession."""

import pytest

from dnathreads.lineage import (
    CorruptGraphError,
    InvalidParentError,
    NotFoundError,
    ThreadSession,
)
from tests.fixtures.lineage_test_data import SAMPLE_FILE, SAMPLE_GENERATIONS, TRICKY_CODE


class TestAddGeneration:
    """Test recording snapshots."""

    def test_first_generation_is_root(self, session):
        g0 = session.add_generation("x=1", "Generated app.py via HEX personality", "hex", "app.py")

        generation = session.get(g0)
        assert generation.parent_id is None
        assert generation.description == "Generated app.py via HEX personality"
        assert session.current_generation_id("app.py") == g0

    def test_default_parent_is_current(self, session):
        g0 = session.add_generation("x=1", "first", "hex", "app.py")
        g1 = session.add_generation("x=2", "AI suggestion applied", "hex", "app.py")

        assert session.get(g1).parent_id == g0
        assert session.children_of(g0) == [g1]
        assert session.current_generation_id("app.py") == g1

    def test_default_parent_is_per_file(self, session):
        a = session.add_generation("A", "a", "hex", "app.py")
        b = session.add_generation("B", "b", "hex", "lib.py")

        assert session.get(b).parent_id is None
        assert session.get(session.add_generation("A2", "a2", "hex", "app.py")).parent_id == a

    def test_explicit_parent(self, session, chain):
        root, middle, leaf = chain

        child = session.add_generation("D", "explicit", "hex", "app.py", parent_id=root)

        assert session.get(child).parent_id == root
        assert session.children_of(root) == [middle, child]

    def test_unknown_parent_changes_nothing(self, session, chain):
        root, middle, leaf = chain
        before = (session.generations(), session.state.to_dict())

        with pytest.raises(InvalidParentError):
            session.add_generation("D", "orphan", "hex", "app.py", parent_id="gen-missing")

        assert (session.generations(), session.state.to_dict()) == before

    def test_parent_from_other_file(self, session, chain):
        root, middle, leaf = chain

        with pytest.raises(InvalidParentError):
            session.add_generation("D", "cross-file", "hex", "lib.py", parent_id=root)

        assert session.files() == ["app.py"]

    def test_sample_history(self, session):
        ids = [
            session.add_generation(code, description, tag, SAMPLE_FILE)
            for code, description, tag in SAMPLE_GENERATIONS
        ]

        assert session.path_to(ids[-1]) == ids
        assert session.tag_counts(SAMPLE_FILE) == {"hex": 2, "kex": 2}


class TestRewindScenario:
    """Test the rewind-then-append flow."""

    def test_rewind_and_append_creates_sibling(self, session):
        g0 = session.add_generation("x=1", "first", "hex", "app.py")
        g1 = session.add_generation("x=2", "second", "hex", "app.py")

        assert session.rewind_to(g0) == "x=1"
        g2 = session.add_generation("x=3", "third", "hex", "app.py")

        assert session.children_of(g0) == [g1, g2]
        assert session.get(g2).parent_id == g0
        assert session.current_generation_id("app.py") == g2
        assert session.rewind_to(g1) == "x=2"

    def test_rewind_is_non_destructive(self, session, chain):
        root, middle, leaf = chain
        before = session.generations()

        session.rewind_to(root)

        assert session.generations() == before
        assert session.descendants_of(root) == [middle, leaf]

    @pytest.mark.parametrize("code", TRICKY_CODE)
    def test_rewind_returns_exact_code(self, session, code):
        generation_id = session.add_generation(code, "tricky", "hex", "app.py")
        session.add_generation("other", "other", "hex", "app.py")

        assert session.rewind_to(generation_id) == code


class TestForkIsolation:
    """Test branches at the same fork point."""

    def test_forks_advance_independently(self, session):
        g0 = session.add_generation("base", "base", "hex", "app.py")

        b1 = session.fork_from(g0)
        x = session.add_generation("X", "on b1", "hex", "app.py")

        b2 = session.fork_from(g0)
        session.switch_branch(b2)
        y = session.add_generation("Y", "on b2", "kex", "app.py")

        first, second = session.get_branch(b1), session.get_branch(b2)
        assert first.origin_generation_id == second.origin_generation_id == g0
        assert first.head_generation_id == x
        assert second.head_generation_id == y
        assert session.children_of(g0) == [x, y]

    def test_fork_leaves_pointer(self, session):
        """The editor buffer still holds the current code after a fork."""
        g0 = session.add_generation("A", "first", "hex", "app.py")
        g1 = session.add_generation("B", "second", "hex", "app.py")

        branch_id = session.fork_from(g0)
        g2 = session.add_generation("B + more", "edit", "hex", "app.py")

        assert session.get(g2).parent_id == g1
        assert session.active_branch_id("app.py") is None
        assert session.get_branch(branch_id).head_generation_id == g0

    def test_fork_at_current_activates_branch(self, session, chain):
        root, middle, leaf = chain

        branch_id = session.fork_from(leaf)
        tip = session.add_generation("D", "on branch", "hex", "app.py")

        assert session.active_branch_id("app.py") == branch_id
        assert session.get_branch(branch_id).head_generation_id == tip

    def test_fork_unknown(self, session):
        with pytest.raises(InvalidParentError):
            session.fork_from("gen-missing")

    def test_leaving_branch_context(self, session, chain):
        """Appending off the branch head drops the active branch."""
        root, middle, leaf = chain
        branch_id = session.fork_from(middle)
        session.switch_branch(branch_id)
        tip = session.add_generation("M1", "on branch", "hex", "app.py")

        session.rewind_to(root)
        off = session.add_generation("R1", "off branch", "hex", "app.py")

        assert session.active_branch_id("app.py") is None
        assert session.get_branch(branch_id).head_generation_id == tip
        assert session.get(off).parent_id == root

    def test_append_after_switch_extends_branch(self, session, chain):
        root, middle, leaf = chain
        branch_id = session.fork_from(root)
        session.rewind_to(leaf)

        session.switch_branch(branch_id)
        tip = session.add_generation("R1", "after switch", "hex", "app.py")

        assert session.get_branch(branch_id).head_generation_id == tip

    def test_advance_branch_head(self, session, chain):
        root, middle, leaf = chain
        branch_id = session.fork_from(root)
        session.rewind_to(leaf)

        session.advance_branch_head(branch_id, middle)

        assert session.get_branch(branch_id).head_generation_id == middle

    def test_branch_invariant_holds(self, session, chain):
        root, middle, leaf = chain
        b1 = session.fork_from(root)
        session.switch_branch(b1)
        session.add_generation("R1", "one", "hex", "app.py")
        session.add_generation("R2", "two", "hex", "app.py")
        session.switch_branch(session.fork_from(middle))
        session.add_generation("M1", "three", "hex", "app.py")

        for branch in session.list_branches("app.py"):
            assert branch.origin_generation_id in session.ancestors_of(branch.head_generation_id)
        assert session.get_branch(b1).name == "Branch 1"


class TestIntegrity:
    """Test the forest and pointer checks."""

    def test_healthy_session(self, session, chain):
        root, middle, leaf = chain
        session.switch_branch(session.fork_from(middle))
        session.add_generation("M1", "tip", "hex", "app.py")
        session.mark_as_rejected(leaf)
        session.delete_generation(root)

        session.check_integrity()

    def test_every_walk_terminates(self, session, chain):
        root, middle, leaf = chain
        session.rewind_to(root)
        session.add_generation("B'", "sibling", "hex", "app.py")
        session.delete_generation(middle)

        for generation in session.generations():
            chain_ids = session.ancestors_of(generation.id)
            assert len(chain_ids) == len(set(chain_ids))
            assert session.get(chain_ids[-1]).is_root

    def test_dangling_pointer_detected(self, session, chain):
        session.state.current_by_file["app.py"] = "gen-vanished"

        with pytest.raises(CorruptGraphError):
            session.check_integrity()

    def test_missing_active_branch_detected(self, session, chain):
        session.state.active_branch_by_file["app.py"] = "branch-vanished"

        with pytest.raises(CorruptGraphError):
            session.check_integrity()

    def test_get_unknown(self, session):
        with pytest.raises(NotFoundError) as exc_info:
            session.get("gen-missing")

        assert exc_info.value.item_id == "gen-missing"

    def test_get_unknown_branch(self, session):
        with pytest.raises(NotFoundError):
            session.get_branch("branch-missing")

    def test_sessions_are_independent(self, session, chain):
        other = ThreadSession()

        assert other.files() == []
        assert other.generations() == []
