"""
Lifecycle operations - rejection tagging and deletion.

Deletion reparents rather than cascades: children of a deleted generation
move up to its parent so the rest of the history stays intact.
"""

from dataclasses import dataclass, field

from loguru import logger

from dnathreads.lineage.branches import BranchRegistry
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.navigator import Navigator
from dnathreads.lineage.store import GenerationStore


@dataclass
class BranchMove:
    """Planned origin/head change for one branch."""
    branch_id: str
    origin_generation_id: str | None
    head_generation_id: str | None


@dataclass
class DeletionPlan:
    """
    Everything a deletion will change, computed before any state is touched.

    Attributes:
        generation: The generation being removed.
        reparented: Children that move to the removed node's parent.
        branch_moves: Branch repointing, including retirements.
        new_current: Pointer target for the file when it was on the removed node.
        moves_current: Whether the file's current pointer changes.
    """
    generation: Generation
    reparented: list[str] = field(default_factory=list)
    branch_moves: list[BranchMove] = field(default_factory=list)
    new_current: str | None = None
    moves_current: bool = False


class LifecycleOps:
    """
    Deletion and rejection tagging.

    State machine for one generation::

        active --reject--> rejected --reject--> rejected
        active|rejected --delete--> removed (terminal)
    """

    def __init__(
        self,
        store: GenerationStore,
        registry: BranchRegistry,
        navigator: Navigator,
    ):
        self.store = store
        self.registry = registry
        self.navigator = navigator

    def mark_as_rejected(self, generation_id: str) -> Generation:
        """
        Flag a generation as rejected.

        Idempotent; rejected generations stay fully traversable.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        generation = self.store.get(generation_id)
        if generation.is_rejected:
            return generation

        rejected = generation.with_status("rejected")
        self.store.update_status(rejected)

        logger.debug(f"Marked {generation_id} as rejected")
        return rejected

    def plan_deletion(self, generation_id: str) -> DeletionPlan:
        """
        Work out the effects of deleting a generation without applying them.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
            CorruptGraphError: If a traversal needed for the plan fails.
        """
        generation = self.store.get(generation_id)
        parent_id = generation.parent_id
        children = self.store.children_of(generation_id)

        plan = DeletionPlan(generation=generation, reparented=children)

        for branch in self.registry.branches_touching(generation_id):
            head = branch.head_generation_id
            origin = branch.origin_generation_id

            if head == generation_id:
                head = parent_id

            if origin == generation_id:
                if parent_id is not None or head is None:
                    origin = parent_id
                else:
                    # Root deleted under a deeper head: the promoted child on
                    # the head's path becomes the new origin.
                    path = self.store.ancestors_of(head)
                    origin = path[path.index(generation_id) - 1]

            plan.branch_moves.append(BranchMove(branch.id, origin, head))

        if self.navigator.current(generation.file_name) == generation_id:
            plan.moves_current = True
            if parent_id is not None:
                plan.new_current = parent_id
            elif children:
                plan.new_current = children[0]

        return plan

    def delete_generation(self, generation_id: str) -> DeletionPlan:
        """
        Remove a generation.

        Children are reparented to the removed node's parent (promoted to
        roots when a root is removed). Branch heads and origins on the
        removed node follow the same rule; a branch with no live head left is
        retired. The current pointer moves to the parent, to the earliest
        promoted child, or to None for a childless root.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
            CorruptGraphError: If planning detects a broken graph.

        Returns:
            The applied plan.
        """
        plan = self.plan_deletion(generation_id)
        file_name = plan.generation.file_name

        self.store.remove(generation_id)

        for move in plan.branch_moves:
            branch = self.registry.repoint(
                move.branch_id, move.origin_generation_id, move.head_generation_id
            )
            if branch.retired and self.navigator.active_branch(file_name) == branch.id:
                self.navigator.deactivate_branch(file_name)

        if plan.moves_current:
            self.navigator.set_current(file_name, plan.new_current)
            if plan.new_current is None:
                logger.info(f"{file_name} has no current generation after deleting {generation_id}")

        logger.debug(
            f"Deleted {generation_id}: {len(plan.reparented)} reparented, "
            f"{len(plan.branch_moves)} branches moved"
        )
        return plan
