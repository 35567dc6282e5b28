"""
Branch registry for the lineage engine.

Branches are pointers into the generation forest created by forking. They
never own or copy generations.
"""

from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Iterable

from loguru import logger

from dnathreads.lineage.branch import Branch
from dnathreads.lineage.errors import InvalidParentError, NotFoundError
from dnathreads.lineage.hash import make_branch_id
from dnathreads.lineage.store import GenerationStore
from dnathreads.utils.helpers import utc_now


class BranchRegistry:
    """
    Manages branches (fork pointers).

    Provides operations for:
    - Forking a new branch from a generation
    - Advancing a branch head when a generation is appended on it
    - Listing branches per file
    """

    def __init__(
        self,
        store: GenerationStore,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.clock = clock or utc_now

        self._branches: dict[str, Branch] = {}
        self._next_sequence = 0
        self._last_created_at: datetime | None = None

    def __len__(self) -> int:
        return len(self._branches)

    def get(self, branch_id: str) -> Branch:
        """
        Get a copy of a branch by id.

        Raises:
            NotFoundError: If the branch does not exist.
        """
        return replace(self._get(branch_id))

    def _get(self, branch_id: str) -> Branch:
        branch = self._branches.get(branch_id)
        if branch is None:
            raise NotFoundError("Branch", branch_id)
        return branch

    def list_branches(self, file_name: str, include_retired: bool = True) -> list[Branch]:
        """
        List branches of a file in creation order.

        Args:
            file_name: Logical file.
            include_retired: Whether to include branches that lost their head.
        """
        return [
            replace(b) for b in self._branches.values()
            if b.file_name == file_name and (include_retired or not b.retired)
        ]

    def all_branches(self) -> list[Branch]:
        """All branches in creation order."""
        return [replace(b) for b in self._branches.values()]

    def fork_from(self, generation_id: str) -> Branch:
        """
        Create a new branch at an existing generation.

        Origin and head both start at ``generation_id``.

        Raises:
            InvalidParentError: If the generation does not exist.
        """
        if not self.store.exists(generation_id):
            reason = "was deleted" if self.store.is_retired(generation_id) else "does not exist"
            raise InvalidParentError(generation_id, reason)

        generation = self.store.get(generation_id)
        created_at = self.clock()
        if self._last_created_at is not None and created_at <= self._last_created_at:
            created_at = self._last_created_at + timedelta(microseconds=1)

        sequence = self._next_sequence
        branch_id = make_branch_id(generation_id, created_at.isoformat(), sequence)
        while branch_id in self._branches:
            sequence += 1
            branch_id = make_branch_id(generation_id, created_at.isoformat(), sequence)

        existing = sum(1 for b in self._branches.values() if b.file_name == generation.file_name)
        branch = Branch(
            id=branch_id,
            origin_generation_id=generation_id,
            head_generation_id=generation_id,
            file_name=generation.file_name,
            name=f"Branch {existing + 1}",
            created_at=created_at,
        )

        self._branches[branch_id] = branch
        self._next_sequence = sequence + 1
        self._last_created_at = created_at

        logger.debug(f"Forked {branch.name} ({branch_id}) from {generation_id}")
        return replace(branch)

    def check_advance(self, branch_id: str, new_generation_id: str) -> None:
        """
        Validate ``advance_branch_head`` without applying it.

        Raises:
            NotFoundError: If the branch or generation does not exist.
            InvalidParentError: If the generation's parent is not the head.
        """
        branch = self._get(branch_id)
        generation = self.store.get(new_generation_id)

        if branch.retired or generation.parent_id != branch.head_generation_id:
            raise InvalidParentError(
                generation.parent_id,
                f"is not the head of {branch.name} ({branch.head_generation_id})",
            )

    def advance_branch_head(self, branch_id: str, new_generation_id: str) -> Branch:
        """
        Move a branch head to a newly appended child of the current head.

        Raises:
            NotFoundError: If the branch or generation does not exist.
            InvalidParentError: If the generation's parent is not the head.
        """
        self.check_advance(branch_id, new_generation_id)

        branch = self._branches[branch_id]
        branch.head_generation_id = new_generation_id

        logger.debug(f"Advanced {branch.name} to {new_generation_id}")
        return replace(branch)

    def branches_touching(self, generation_id: str) -> list[Branch]:
        """Live branches whose origin or head is ``generation_id``."""
        return [
            replace(b) for b in self._branches.values()
            if not b.retired and generation_id in (b.origin_generation_id, b.head_generation_id)
        ]

    def repoint(
        self,
        branch_id: str,
        origin_generation_id: str | None,
        head_generation_id: str | None,
    ) -> Branch:
        """
        Move a branch's origin and head, retiring it when the head is gone.

        Used by deletion; callers are responsible for keeping the head a
        descendant of the origin.
        """
        branch = self._get(branch_id)
        branch.origin_generation_id = origin_generation_id
        branch.head_generation_id = head_generation_id

        if head_generation_id is None:
            branch.origin_generation_id = None
            branch.retired = True
            logger.warning(f"{branch.name} ({branch_id}) retired: no live generation left")
        else:
            logger.debug(
                f"Repointed {branch.name}: origin={origin_generation_id} head={head_generation_id}"
            )
        return replace(branch)

    def restore(self, branches: Iterable[Branch]) -> None:
        """Rebuild the registry from previously persisted branches."""
        ordered = sorted(branches, key=lambda b: b.created_at)
        self._branches = {b.id: replace(b) for b in ordered}
        self._next_sequence = len(self._branches)
        self._last_created_at = ordered[-1].created_at if ordered else None
