"""
Thread session - main interface to the lineage engine.

A session owns one store, one branch registry and the explicit navigator
state for a set of documents, and optionally mirrors every successful
mutation into a ``LineageLedger``.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable

from loguru import logger

from dnathreads.lineage.branch import Branch
from dnathreads.lineage.branches import BranchRegistry
from dnathreads.lineage.errors import CorruptGraphError, NotFoundError
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.ledger import LineageLedger
from dnathreads.lineage.lifecycle import LifecycleOps
from dnathreads.lineage.navigator import Navigator, NavigatorState
from dnathreads.lineage.queries import LineageTree, Preview, QueryFacade
from dnathreads.lineage.store import GenerationStore


class ThreadSession:
    """
    The lineage of AI-produced code snapshots for an editing session.

    Mutations:
        - add_generation() / rewind_to() / fork_from() / switch_branch()
        - mark_as_rejected() / delete_generation() / advance_branch_head()

    Queries:
        - get() / children_of() / ancestors_of() / path_to() / preview_of()
        - is_current() / list_branches() / build_tree() / tag_counts()

    Every mutation validates before it changes anything; a raised
    ``LineageError`` leaves the session as it was.
    """

    def __init__(
        self,
        ledger: LineageLedger | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.ledger = ledger

        self.store = GenerationStore(clock=clock)
        self.registry = BranchRegistry(self.store, clock=clock)
        self.navigator = Navigator(self.store, self.registry)
        self.lifecycle = LifecycleOps(self.store, self.registry, self.navigator)
        self.queries = QueryFacade(self.store, self.registry, self.navigator)

    @classmethod
    def open(
        cls,
        path: Path,
        clock: Callable[[], datetime] | None = None,
    ) -> "ThreadSession":
        """
        Open (or create) a session backed by a ledger directory.

        Raises:
            CorruptGraphError: If the persisted records are inconsistent.
        """
        ledger = LineageLedger(path)
        session = cls(ledger=ledger, clock=clock)

        snapshot = ledger.load()
        session.store.restore(snapshot.generations, snapshot.removed)
        session.registry.restore(snapshot.branches)
        session.navigator.state = NavigatorState.from_dict(snapshot.state)
        session.check_integrity()

        return session

    @property
    def state(self) -> NavigatorState:
        """The explicit navigator state."""
        return self.navigator.state

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_generation(
        self,
        code: str,
        description: str,
        tag: str,
        file_name: str,
        parent_id: str | None = None,
    ) -> str:
        """
        Record a new code snapshot and make it current.

        Args:
            code: Full text snapshot.
            description: Provenance label (e.g. "Generated app.py via HEX personality").
            tag: Generation mode.
            file_name: Logical file.
            parent_id: Parent generation (default: current generation of the file).

        Returns:
            The new generation id.

        Raises:
            InvalidParentError: If ``parent_id`` is unknown, deleted, or from
                another file.
        """
        if parent_id is None:
            parent_id = self.navigator.current(file_name)

        generation = self.store.add(code, description, tag, file_name, parent_id)
        branch_id = self.navigator.branch_to_advance(generation)
        self.navigator.record_added(generation)

        if self.ledger is not None:
            self.ledger.save_generation(generation)
            if branch_id is not None:
                self.ledger.save_branch(self.registry.get(branch_id))
            self._save_state()

        return generation.id

    def rewind_to(self, generation_id: str) -> str:
        """
        Make a generation current and return its code.

        Nothing is deleted; later generations stay reachable.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        code = self.navigator.rewind_to(generation_id)
        self._save_state()
        return code

    def fork_from(self, generation_id: str) -> str:
        """
        Create a branch at a generation.

        Forking only adds a pointer; the file's current generation does not
        move. When the fork point is the current generation the new branch
        becomes the active context right away, so the next ``add_generation``
        extends it. Otherwise call ``switch_branch`` to check it out.

        Returns:
            The new branch id.

        Raises:
            InvalidParentError: If the generation does not exist.
        """
        branch = self.registry.fork_from(generation_id)
        activated = self.navigator.is_current(generation_id, branch.file_name)
        if activated:
            self.state.active_branch_by_file[branch.file_name] = branch.id

        if self.ledger is not None:
            self.ledger.save_branch(branch)
            if activated:
                self._save_state()

        return branch.id

    def switch_branch(self, branch_id: str) -> str:
        """
        Activate a branch and check out its head.

        Returns:
            Code of the branch head.

        Raises:
            NotFoundError: If the branch is unknown or retired.
        """
        code = self.navigator.switch_branch(branch_id)
        self._save_state()
        return code

    def advance_branch_head(self, branch_id: str, new_generation_id: str) -> None:
        """
        Move a branch head onto a child of its current head.

        Raises:
            NotFoundError: If the branch or generation does not exist.
            InvalidParentError: If the generation's parent is not the head.
        """
        branch = self.registry.advance_branch_head(branch_id, new_generation_id)
        if self.ledger is not None:
            self.ledger.save_branch(branch)

    def mark_as_rejected(self, generation_id: str) -> None:
        """
        Flag a generation as rejected (idempotent).

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        before = self.store.get(generation_id)
        generation = self.lifecycle.mark_as_rejected(generation_id)

        if self.ledger is not None and generation is not before:
            self.ledger.save_generation(generation)

    def delete_generation(self, generation_id: str) -> None:
        """
        Remove a generation, reparenting its children to its parent.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
            CorruptGraphError: If the graph is found broken while planning.
        """
        plan = self.lifecycle.delete_generation(generation_id)

        if self.ledger is not None:
            self.ledger.mark_removed(plan.generation)
            for child_id in plan.reparented:
                self.ledger.save_generation(self.store.get(child_id))
            for move in plan.branch_moves:
                self.ledger.save_branch(self.registry.get(move.branch_id))
            self._save_state()

    def _save_state(self) -> None:
        if self.ledger is not None:
            self.ledger.save_state(self.state.to_dict())

    # =========================================================================
    # Queries
    # =========================================================================

    def get(self, generation_id: str) -> Generation:
        """Get a generation by id."""
        return self.queries.get(generation_id)

    def get_branch(self, branch_id: str) -> Branch:
        """Get a branch by id."""
        return self.registry.get(branch_id)

    def current_generation_id(self, file_name: str) -> str | None:
        """Current generation id of a file, or None."""
        return self.navigator.current(file_name)

    def current_generation(self, file_name: str) -> Generation | None:
        """Current generation of a file, or None."""
        return self.queries.current_generation(file_name)

    def active_branch_id(self, file_name: str) -> str | None:
        """Active branch of a file, or None."""
        return self.navigator.active_branch(file_name)

    def children_of(self, generation_id: str, include_rejected: bool = True) -> list[str]:
        return self.queries.children_of(generation_id, include_rejected)

    def ancestors_of(self, generation_id: str) -> list[str]:
        return self.queries.ancestors_of(generation_id)

    def path_to(self, generation_id: str) -> list[str]:
        return self.queries.path_to(generation_id)

    def descendants_of(self, generation_id: str) -> list[str]:
        return self.queries.descendants_of(generation_id)

    def preview_of(self, generation_id: str) -> Preview:
        return self.queries.preview_of(generation_id)

    def is_current(self, generation_id: str, file_name: str) -> bool:
        return self.queries.is_current(generation_id, file_name)

    def list_branches(self, file_name: str, include_retired: bool = True) -> list[Branch]:
        return self.queries.list_branches(file_name, include_retired)

    def roots(self, file_name: str, include_rejected: bool = True) -> list[str]:
        return self.queries.roots(file_name, include_rejected)

    def generations(
        self,
        file_name: str | None = None,
        include_rejected: bool = True,
    ) -> list[Generation]:
        return self.queries.generations(file_name, include_rejected)

    def files(self) -> list[str]:
        return self.queries.files()

    def build_tree(self, file_name: str, include_rejected: bool = True) -> LineageTree:
        return self.queries.build_tree(file_name, include_rejected)

    def tag_counts(self, file_name: str | None = None) -> dict[str, int]:
        return self.queries.tag_counts(file_name)

    # =========================================================================
    # Integrity
    # =========================================================================

    def check_integrity(self) -> None:
        """
        Verify the forest, every live branch, and every current pointer.

        Raises:
            CorruptGraphError: On the first violated invariant.
        """
        self.store.check_integrity()

        for branch in self.registry.all_branches():
            if branch.retired:
                continue
            origin, head = branch.origin_generation_id, branch.head_generation_id
            if origin is None or head is None or not self.store.exists(origin) or not self.store.exists(head):
                raise CorruptGraphError(f"{branch.name} ({branch.id}) points at a missing generation")
            if not self.store.is_ancestor(origin, head):
                raise CorruptGraphError(f"{branch.name} ({branch.id}) head is not below its origin")

        for file_name, generation_id in self.state.current_by_file.items():
            if generation_id is not None and not self.store.exists(generation_id):
                raise CorruptGraphError(f"Current pointer of {file_name} is dangling: {generation_id}")

        for file_name, branch_id in self.state.active_branch_by_file.items():
            try:
                branch = self.registry.get(branch_id)
            except NotFoundError as e:
                raise CorruptGraphError(f"Active branch of {file_name} is missing: {branch_id}") from e
            if branch.retired:
                logger.warning(f"Active branch {branch_id} of {file_name} is retired")
