"""Generation data structure."""

from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from typing import Any, Literal

from dnathreads.lineage.hash import compute_code_hash


# Advisory status; rejection never removes a node from the graph
GenerationStatus = Literal["active", "rejected"]


@dataclass(frozen=True)
class Generation:
    """
    An immutable code snapshot in the lineage.
    
    Generations are snapshots rather than diffs: restoring one is a plain
    read of ``code``. Edges are stored as parent ids, never as object
    references, so the store can keep every node in a flat arena.
    
    Attributes:
        id: Opaque unique identifier, never reused.
        code: Full text of the snapshot.
        description: Human-readable provenance label.
        tag: Generation mode that produced the snapshot (e.g. "hex", "kex").
        file_name: Logical file this snapshot belongs to.
        created_at: Strictly increasing creation timestamp.
        sequence: Arena slot number, strictly increasing.
        parent_id: Generation this one was derived from (None for a root).
        status: "active" or "rejected".
        code_hash: Checksum of ``code``.
    """
    
    id: str
    code: str
    description: str
    tag: str
    file_name: str
    created_at: datetime
    sequence: int
    parent_id: str | None = None
    status: GenerationStatus = "active"
    code_hash: str = field(default="")
    
    def __post_init__(self) -> None:
        if not self.code_hash:
            object.__setattr__(self, "code_hash", compute_code_hash(self.code))
    
    @property
    def is_root(self) -> bool:
        """True when this generation has no parent."""
        return self.parent_id is None
    
    @property
    def is_rejected(self) -> bool:
        return self.status == "rejected"
    
    def with_status(self, status: GenerationStatus) -> "Generation":
        """Return a copy carrying a different status."""
        return replace(self, status=status)
    
    def with_parent(self, parent_id: str | None) -> "Generation":
        """Return a copy attached to a different parent."""
        return replace(self, parent_id=parent_id)
    
    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data
    
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Generation":
        """Create from dictionary."""
        created_at = data["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        
        return cls(
            id=data["id"],
            code=data["code"],
            description=data.get("description", ""),
            tag=data.get("tag", ""),
            file_name=data["file_name"],
            created_at=created_at,
            sequence=data["sequence"],
            parent_id=data.get("parent_id"),
            status=data.get("status", "active"),
            code_hash=data.get("code_hash", ""),
        )
    
    def __str__(self) -> str:
        """Human-readable representation."""
        marker = " (rejected)" if self.is_rejected else ""
        return f"{self.id} [{self.tag}] {self.description}{marker}"
    
    def __repr__(self) -> str:
        """Debug representation."""
        return f"Generation(id={self.id}, file={self.file_name}, parent={self.parent_id})"
