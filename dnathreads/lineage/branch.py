"""Branch data structure."""

from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any


@dataclass
class Branch:
    """
    A named pointer into the generation forest.
    
    A branch starts at the generation it was forked from and tracks the
    latest generation appended along that line of descent, similar to a
    git branch ref. Forking never copies generations.
    
    Attributes:
        id: Opaque identifier.
        origin_generation_id: Generation the branch was forked from.
        head_generation_id: Latest generation appended on this branch.
        file_name: File the origin generation belongs to.
        name: Display name ("Branch N").
        created_at: When this branch was created.
        retired: True once the branch no longer points at a live generation.
    """
    
    id: str
    origin_generation_id: str | None
    head_generation_id: str | None
    file_name: str
    name: str
    created_at: datetime
    retired: bool = False
    
    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = asdict(self)
        data["created_at"] = self.created_at.isoformat()
        return data
    
    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Branch":
        """Create from dictionary."""
        created_at = data["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        
        return cls(
            id=data["id"],
            origin_generation_id=data.get("origin_generation_id"),
            head_generation_id=data.get("head_generation_id"),
            file_name=data["file_name"],
            name=data.get("name", data["id"]),
            created_at=created_at,
            retired=data.get("retired", False),
        )
    
    def __str__(self) -> str:
        """Human-readable representation."""
        head = self.head_generation_id or "retired"
        return f"{self.name} -> {head}"
    
    def __repr__(self) -> str:
        """Debug representation."""
        return f"Branch(id={self.id}, origin={self.origin_generation_id}, head={self.head_generation_id})"
