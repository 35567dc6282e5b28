"""
Navigator - the current-generation pointer per file.

Rewinding is a checkout: it moves the pointer and hands back the snapshot,
it never deletes, truncates, or rebases anything.
"""

from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from dnathreads.lineage.branches import BranchRegistry
from dnathreads.lineage.errors import NotFoundError
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.store import GenerationStore


@dataclass
class NavigatorState:
    """
    Explicit navigation state owned by a session.

    Attributes:
        current_by_file: Current generation id per file (None = empty document).
        active_branch_by_file: Branch whose head advances on append, per file.
    """
    current_by_file: dict[str, str | None] = field(default_factory=dict)
    active_branch_by_file: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "current_by_file": dict(self.current_by_file),
            "active_branch_by_file": dict(self.active_branch_by_file),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NavigatorState":
        """Create from dictionary."""
        return cls(
            current_by_file=dict(data.get("current_by_file", {})),
            active_branch_by_file=dict(data.get("active_branch_by_file", {})),
        )


class Navigator:
    """
    Owns the current pointer for every file and performs checkout.

    A subsequent append from a rewound point becomes a new sibling under the
    same parent, so every previously explored lineage stays reachable.
    """

    def __init__(
        self,
        store: GenerationStore,
        registry: BranchRegistry,
        state: NavigatorState | None = None,
    ):
        self.store = store
        self.registry = registry
        self.state = state or NavigatorState()

    def current(self, file_name: str) -> str | None:
        """Current generation id for a file, or None."""
        return self.state.current_by_file.get(file_name)

    def is_current(self, generation_id: str, file_name: str) -> bool:
        """True if ``generation_id`` is the current generation of ``file_name``."""
        return generation_id is not None and self.current(file_name) == generation_id

    def active_branch(self, file_name: str) -> str | None:
        """Id of the active branch for a file, or None."""
        return self.state.active_branch_by_file.get(file_name)

    def rewind_to(self, generation_id: str) -> str:
        """
        Make a generation current for its file and return its code.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        generation = self.store.get(generation_id)
        self.state.current_by_file[generation.file_name] = generation_id

        logger.debug(f"Rewound {generation.file_name} to {generation_id}")
        return generation.code

    def switch_branch(self, branch_id: str) -> str:
        """
        Make a branch the active context for its file and check out its head.

        Raises:
            NotFoundError: If the branch is unknown or retired.
        """
        branch = self.registry.get(branch_id)
        if branch.retired or branch.head_generation_id is None:
            raise NotFoundError("Branch", branch_id)

        code = self.rewind_to(branch.head_generation_id)
        self.state.active_branch_by_file[branch.file_name] = branch_id

        logger.debug(f"Switched {branch.file_name} to {branch.name}")
        return code

    def branch_to_advance(self, generation: Generation) -> str | None:
        """
        The active branch that a freshly added generation extends, if any.

        A generation extends the active branch only when it was appended on
        top of the branch head.
        """
        branch_id = self.active_branch(generation.file_name)
        if branch_id is None:
            return None

        branch = self.registry.get(branch_id)
        if not branch.retired and branch.head_generation_id == generation.parent_id:
            return branch_id
        return None

    def record_added(self, generation: Generation) -> None:
        """Advance the pointer (and the active branch, if extended) to a new generation."""
        branch_id = self.branch_to_advance(generation)

        if branch_id is not None:
            self.registry.advance_branch_head(branch_id, generation.id)
        elif generation.file_name in self.state.active_branch_by_file:
            left = self.state.active_branch_by_file.pop(generation.file_name)
            logger.debug(f"{generation.file_name} left branch context {left}")

        self.state.current_by_file[generation.file_name] = generation.id

    def set_current(self, file_name: str, generation_id: str | None) -> None:
        """Move the pointer directly (used by deletion)."""
        self.state.current_by_file[file_name] = generation_id

    def deactivate_branch(self, file_name: str) -> None:
        """Drop the active branch context of a file."""
        self.state.active_branch_by_file.pop(file_name, None)
