"""
Query facade - read-only projections of the lineage for the UI.

Nothing here mutates the store, the registry, or the navigator state.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from dnathreads.lineage.branch import Branch
from dnathreads.lineage.branches import BranchRegistry
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.navigator import Navigator
from dnathreads.lineage.store import GenerationStore


@dataclass
class Preview:
    """Code and description of a generation, for hover previews."""
    code: str
    description: str

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"code": self.code, "description": self.description}


@dataclass
class LineageTree:
    """
    Roots plus a child map for one file.

    Attributes:
        roots: Root generation ids in creation order.
        children: Child ids per generation id (every node has an entry).
    """
    roots: list[str] = field(default_factory=list)
    children: dict[str, list[str]] = field(default_factory=dict)


class QueryFacade:
    """
    Read-only views used to render the lineage.

    Rejected generations are included by default; pass
    ``include_rejected=False`` to filter them from listings.
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

    def _visible(self, ids: list[str], include_rejected: bool) -> list[str]:
        if include_rejected:
            return ids
        return [i for i in ids if not self.store.get(i).is_rejected]

    def get(self, generation_id: str) -> Generation:
        """Get a generation by id."""
        return self.store.get(generation_id)

    def preview_of(self, generation_id: str) -> Preview:
        """Code and description of a generation, without moving the pointer."""
        generation = self.store.get(generation_id)
        return Preview(code=generation.code, description=generation.description)

    def is_current(self, generation_id: str, file_name: str) -> bool:
        """True if the generation is the current one for the file."""
        return self.navigator.is_current(generation_id, file_name)

    def current_generation(self, file_name: str) -> Generation | None:
        """The current generation of a file, or None for an empty document."""
        current_id = self.navigator.current(file_name)
        if current_id is None:
            return None
        return self.store.get(current_id)

    def children_of(self, generation_id: str, include_rejected: bool = True) -> list[str]:
        """Child ids in creation order."""
        return self._visible(self.store.children_of(generation_id), include_rejected)

    def ancestors_of(self, generation_id: str) -> list[str]:
        """Ids from the generation up to its root."""
        return self.store.ancestors_of(generation_id)

    def path_to(self, generation_id: str) -> list[str]:
        """Root-first ancestor chain, for breadcrumbs."""
        return list(reversed(self.store.ancestors_of(generation_id)))

    def descendants_of(self, generation_id: str) -> list[str]:
        """Every descendant in depth-first pre-order."""
        return self.store.descendants_of(generation_id)

    def roots(self, file_name: str, include_rejected: bool = True) -> list[str]:
        """Root generation ids of a file."""
        return self._visible(self.store.roots(file_name), include_rejected)

    def generations(
        self,
        file_name: str | None = None,
        include_rejected: bool = True,
    ) -> list[Generation]:
        """Live generations in creation order."""
        return [
            g for g in self.store.generations(file_name)
            if include_rejected or not g.is_rejected
        ]

    def files(self) -> list[str]:
        """Files with at least one live generation."""
        return self.store.files()

    def list_branches(self, file_name: str, include_retired: bool = True) -> list[Branch]:
        """Branches of a file in creation order."""
        return self.registry.list_branches(file_name, include_retired=include_retired)

    def build_tree(self, file_name: str, include_rejected: bool = True) -> LineageTree:
        """
        Roots and child lists for one file.

        With ``include_rejected=False`` a rejected node is hidden together
        with its subtree.
        """
        tree = LineageTree(roots=self.roots(file_name, include_rejected))

        stack = list(tree.roots)
        while stack:
            generation_id = stack.pop()
            children = self.children_of(generation_id, include_rejected)
            tree.children[generation_id] = children
            stack.extend(children)

        return tree

    def tag_counts(self, file_name: str | None = None) -> dict[str, int]:
        """Number of live generations per tag."""
        counts = Counter(g.tag for g in self.store.generations(file_name))
        return dict(sorted(counts.items()))
