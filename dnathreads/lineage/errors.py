"""Errors raised by the lineage engine."""


class LineageError(Exception):
    """Base class for all lineage engine errors."""


class NotFoundError(LineageError):
    """Reference to a nonexistent or deleted generation or branch id."""

    def __init__(self, kind: str, item_id: str):
        self.kind = kind
        self.item_id = item_id
        super().__init__(f"{kind} not found: {item_id}")


class InvalidParentError(LineageError):
    """A supplied parent id does not exist, was deleted, or cannot be used."""

    def __init__(self, parent_id: str | None, reason: str = "does not exist"):
        self.parent_id = parent_id
        self.reason = reason
        super().__init__(f"Invalid parent {parent_id}: {reason}")


class CorruptGraphError(LineageError):
    """An invariant check failed (e.g. ancestor traversal found a cycle)."""
