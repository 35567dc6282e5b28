"""
Generation store - the arena holding every generation and its edges.

This module implements the data layer of the lineage engine. Generations are
kept in a flat dict keyed by id; parent/child edges are stored as parent ids
plus a child index, never as object references.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable

from loguru import logger

from dnathreads.lineage.errors import CorruptGraphError, InvalidParentError, NotFoundError
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.hash import compute_code_hash, make_generation_id
from dnathreads.utils.helpers import utc_now


def sibling_order(generation: Generation) -> tuple[datetime, int]:
    """Sort key for siblings: creation time, then arena slot."""
    return (generation.created_at, generation.sequence)


class GenerationStore:
    """
    Append-only arena of generations.

    Ids are never reused: deleting a generation retires its id, and the
    sequence counter only ever grows. Every traversal is bounded by the
    number of live nodes so an accidental cycle surfaces as
    ``CorruptGraphError`` instead of an infinite loop.

    Attributes:
        clock: Callable returning the current time.
    """

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self.clock = clock or utc_now

        self._generations: dict[str, Generation] = {}
        self._children: dict[str, list[str]] = {}
        self._roots: list[str] = []
        self._retired_ids: set[str] = set()
        self._next_sequence = 0
        self._last_created_at: datetime | None = None

    def __len__(self) -> int:
        return len(self._generations)

    def __contains__(self, generation_id: object) -> bool:
        return generation_id in self._generations

    # =========================================================================
    # Creation
    # =========================================================================

    def validate_parent(self, parent_id: str | None, file_name: str) -> None:
        """
        Check that ``parent_id`` can parent a new generation of ``file_name``.

        Raises:
            InvalidParentError: If the parent is unknown, deleted, or belongs
                to another file.
        """
        if parent_id is None:
            return

        if parent_id in self._retired_ids:
            raise InvalidParentError(parent_id, "was deleted")

        parent = self._generations.get(parent_id)
        if parent is None:
            raise InvalidParentError(parent_id)

        if parent.file_name != file_name:
            raise InvalidParentError(
                parent_id, f"belongs to {parent.file_name}, not {file_name}"
            )

    def add(
        self,
        code: str,
        description: str,
        tag: str,
        file_name: str,
        parent_id: str | None = None,
    ) -> Generation:
        """
        Create and store a new generation.

        Args:
            code: Full text snapshot.
            description: Provenance label.
            tag: Generation mode.
            file_name: Logical file.
            parent_id: Explicit parent, or None for a new root.

        Returns:
            The stored generation.

        Raises:
            InvalidParentError: If ``parent_id`` cannot be used.
        """
        self.validate_parent(parent_id, file_name)

        created_at = self._next_timestamp()
        code_hash = compute_code_hash(code)

        sequence = self._next_sequence
        generation_id = make_generation_id(
            file_name, parent_id, code_hash, created_at.isoformat(), sequence
        )
        while generation_id in self._generations or generation_id in self._retired_ids:
            sequence += 1
            generation_id = make_generation_id(
                file_name, parent_id, code_hash, created_at.isoformat(), sequence
            )

        generation = Generation(
            id=generation_id,
            code=code,
            description=description,
            tag=tag,
            file_name=file_name,
            created_at=created_at,
            sequence=sequence,
            parent_id=parent_id,
            code_hash=code_hash,
        )

        self._next_sequence = sequence + 1
        self._last_created_at = created_at
        self._insert(generation)

        logger.debug(f"Added generation {generation_id} to {file_name} (parent={parent_id})")
        return generation

    def _next_timestamp(self) -> datetime:
        """Current clock reading, nudged forward to stay strictly increasing."""
        now = self.clock()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        return now

    def _insert(self, generation: Generation) -> None:
        self._generations[generation.id] = generation
        self._children.setdefault(generation.id, [])

        if generation.parent_id is None:
            self._roots.append(generation.id)
        else:
            self._children[generation.parent_id].append(generation.id)

    # =========================================================================
    # Lookup
    # =========================================================================

    def get(self, generation_id: str) -> Generation:
        """
        Retrieve a generation by id.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        generation = self._generations.get(generation_id)
        if generation is None:
            raise NotFoundError("Generation", generation_id)
        return generation

    def exists(self, generation_id: str) -> bool:
        """Check if a live generation exists."""
        return generation_id in self._generations

    def is_retired(self, generation_id: str) -> bool:
        """True when the id belonged to a generation that was deleted."""
        return generation_id in self._retired_ids

    def generations(self, file_name: str | None = None) -> list[Generation]:
        """All live generations in creation order, optionally for one file."""
        items = self._generations.values()
        if file_name is not None:
            items = [g for g in items if g.file_name == file_name]
        return sorted(items, key=sibling_order)

    def files(self) -> list[str]:
        """File names that have at least one live generation."""
        return sorted({g.file_name for g in self._generations.values()})

    def roots(self, file_name: str | None = None) -> list[str]:
        """Root generation ids in creation order."""
        roots = [self._generations[r] for r in self._roots]
        if file_name is not None:
            roots = [g for g in roots if g.file_name == file_name]
        return [g.id for g in sorted(roots, key=sibling_order)]

    # =========================================================================
    # Traversal
    # =========================================================================

    def children_of(self, generation_id: str) -> list[str]:
        """
        Child ids ordered by creation time.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
        """
        self.get(generation_id)
        return list(self._children[generation_id])

    def ancestors_of(self, generation_id: str) -> list[str]:
        """
        Ids from ``generation_id`` up to its root, inclusive.

        The walk is bounded by the number of live nodes.

        Raises:
            NotFoundError: If the id is unknown or was deleted.
            CorruptGraphError: If the walk revisits a node, exceeds the
                node count, or hits a dangling parent id.
        """
        self.get(generation_id)

        limit = len(self._generations)
        chain: list[str] = []
        seen: set[str] = set()
        current_id: str | None = generation_id

        while current_id is not None:
            if current_id in seen or len(chain) >= limit:
                logger.error(f"Cycle detected while walking ancestors of {generation_id}")
                raise CorruptGraphError(
                    f"Ancestor walk from {generation_id} revisited {current_id}"
                )

            generation = self._generations.get(current_id)
            if generation is None:
                logger.error(f"Dangling parent {current_id} below {chain[-1]}")
                raise CorruptGraphError(
                    f"Generation {chain[-1]} points at missing parent {current_id}"
                )

            seen.add(current_id)
            chain.append(current_id)
            current_id = generation.parent_id

        return chain

    def descendants_of(self, generation_id: str) -> list[str]:
        """
        All descendants of a generation in depth-first pre-order.

        The generation itself is not included.
        """
        self.get(generation_id)

        limit = len(self._generations)
        result: list[str] = []
        stack = list(reversed(self._children[generation_id]))

        while stack:
            current_id = stack.pop()
            if len(result) >= limit:
                logger.error(f"Descendant walk from {generation_id} exceeded {limit} nodes")
                raise CorruptGraphError(
                    f"Descendant walk from {generation_id} exceeded node count"
                )
            result.append(current_id)
            stack.extend(reversed(self._children[current_id]))

        return result

    def is_ancestor(self, ancestor_id: str, generation_id: str) -> bool:
        """True if ``ancestor_id`` is ``generation_id`` or one of its ancestors."""
        return ancestor_id in self.ancestors_of(generation_id)

    # =========================================================================
    # Mutation (used by lifecycle operations)
    # =========================================================================

    def update_status(self, generation: Generation) -> None:
        """Replace a stored generation with a copy that differs only in status."""
        stored = self.get(generation.id)
        if stored.with_status(generation.status) != generation:
            raise ValueError("Only the status of a generation can change")
        self._generations[generation.id] = generation

    def remove(self, generation_id: str) -> list[str]:
        """
        Remove a generation, handing its children to its parent.

        Children of a root become roots themselves. The removed id is
        retired and never handed out again.

        Returns:
            Ids of the reparented children, in sibling order.
        """
        generation = self.get(generation_id)
        parent_id = generation.parent_id
        children = self._children.pop(generation_id)

        for child_id in children:
            self._generations[child_id] = self._generations[child_id].with_parent(parent_id)

        if parent_id is None:
            self._roots.remove(generation_id)
            self._roots.extend(children)
        else:
            siblings = self._children[parent_id]
            siblings.remove(generation_id)
            siblings.extend(children)
            siblings.sort(key=lambda g: sibling_order(self._generations[g]))

        del self._generations[generation_id]
        self._retired_ids.add(generation_id)

        if children:
            logger.debug(f"Reparented {len(children)} children of {generation_id} to {parent_id}")
        logger.debug(f"Removed generation {generation_id}")
        return children

    # =========================================================================
    # Restore / integrity
    # =========================================================================

    def restore(
        self,
        generations: Iterable[Generation],
        retired: Iterable[Generation] = (),
    ) -> None:
        """
        Rebuild the arena from previously persisted records.

        Args:
            generations: Live generations.
            retired: Records of deleted generations; only their ids, sequence
                numbers and timestamps are kept so nothing is reused.
        """
        live = sorted(generations, key=sibling_order)
        retired = list(retired)

        self._generations.clear()
        self._children.clear()
        self._roots.clear()
        self._retired_ids = {g.id for g in retired}

        for generation in live:
            self._generations[generation.id] = generation
            self._children[generation.id] = []

        for generation in live:
            if generation.parent_id is None:
                self._roots.append(generation.id)
            elif generation.parent_id in self._children:
                self._children[generation.parent_id].append(generation.id)
            else:
                raise CorruptGraphError(
                    f"Generation {generation.id} points at missing parent {generation.parent_id}"
                )

        everything = live + retired
        if everything:
            self._next_sequence = max(g.sequence for g in everything) + 1
            self._last_created_at = max(g.created_at for g in everything)

        self.check_integrity()

    def check_integrity(self) -> None:
        """
        Verify the forest invariant for every live node.

        Raises:
            CorruptGraphError: On a cycle, dangling parent, or child index
                that disagrees with the stored parent ids.
        """
        for generation_id, generation in self._generations.items():
            self.ancestors_of(generation_id)

            if generation.parent_id is not None:
                if generation_id not in self._children.get(generation.parent_id, []):
                    raise CorruptGraphError(
                        f"Child index is missing {generation_id} under {generation.parent_id}"
                    )
            elif generation_id not in self._roots:
                raise CorruptGraphError(f"Root index is missing {generation_id}")
