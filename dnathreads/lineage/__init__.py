"""
Generation lineage ("DNA threads") for dnathreads.

This module keeps a versioned, branching history of AI-produced code
snapshots per file, supporting:
- Snapshot-based generations in an append-only arena
- Non-destructive rewind (checkout, not undo)
- Fork branches with advancing heads
- Soft rejection and reparenting deletion
"""

from dnathreads.lineage.errors import (
    CorruptGraphError,
    InvalidParentError,
    LineageError,
    NotFoundError,
)
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.branch import Branch
from dnathreads.lineage.store import GenerationStore
from dnathreads.lineage.branches import BranchRegistry
from dnathreads.lineage.navigator import Navigator, NavigatorState
from dnathreads.lineage.lifecycle import LifecycleOps
from dnathreads.lineage.queries import LineageTree, Preview, QueryFacade
from dnathreads.lineage.ledger import LineageLedger
from dnathreads.lineage.session import ThreadSession

__all__ = [
    "Generation",
    "Branch",
    "GenerationStore",
    "BranchRegistry",
    "Navigator",
    "NavigatorState",
    "LifecycleOps",
    "QueryFacade",
    "Preview",
    "LineageTree",
    "LineageLedger",
    "ThreadSession",
    "LineageError",
    "NotFoundError",
    "InvalidParentError",
    "CorruptGraphError",
]
