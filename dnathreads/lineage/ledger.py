"""
Lineage ledger - JSON mirror of the in-memory store.

The in-memory store is the source of truth during a session; the ledger is
written after each successful mutation so a later session can pick up where
this one stopped.

Layout::

    <root>/
        generations/<generation-id>.json
        branches/<branch-id>.json
        state.json
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterator, TypeVar

from loguru import logger

from dnathreads.lineage.branch import Branch
from dnathreads.lineage.errors import CorruptGraphError
from dnathreads.lineage.generation import Generation
from dnathreads.lineage.hash import compute_code_hash
from dnathreads.utils.helpers import ensure_dir


REMOVED_STATUS = "removed"

T = TypeVar("T")


@dataclass
class LedgerSnapshot:
    """Everything read back from a ledger directory."""
    generations: list[Generation] = field(default_factory=list)
    removed: list[Generation] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    state: dict[str, Any] = field(default_factory=dict)


class LineageLedger:
    """
    File-backed ledger for generations and branches.

    Records are never unlinked: a deleted generation is rewritten with status
    ``"removed"`` so its id and sequence number stay reserved.

    Attributes:
        root: Ledger directory.
        generations_dir: Directory for generation records.
        branches_dir: Directory for branch records.
        state_file: Navigator state file.
    """

    def __init__(self, root: Path):
        self.root = ensure_dir(root)
        self.generations_dir = ensure_dir(self.root / "generations")
        self.branches_dir = ensure_dir(self.root / "branches")
        self.state_file = self.root / "state.json"

    @staticmethod
    def _write_json(path: Path, data: dict[str, Any]) -> None:
        # Write beside the target and swap it in so a crash never leaves half a record
        tmp_path = path.with_name(f"{path.name}.tmp")
        tmp_path.write_text(
            json.dumps(data, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)

    @staticmethod
    def _read_json(path: Path) -> dict[str, Any]:
        """
        Read one record.

        Raises:
            CorruptGraphError: If the file is not a JSON object.
        """
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Unreadable ledger record {path}: {e}")
            raise CorruptGraphError(f"Unreadable ledger record {path.name}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptGraphError(f"Ledger record {path.name} is not a JSON object")
        return data

    @staticmethod
    def _parse_record(name: str, parse: Callable[[dict[str, Any]], T], data: dict[str, Any]) -> T:
        try:
            return parse(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed ledger record {name}: {e!r}")
            raise CorruptGraphError(f"Malformed ledger record {name}: {e!r}") from e

    # =========================================================================
    # Generation Records
    # =========================================================================

    def save_generation(self, generation: Generation) -> None:
        """Write (or rewrite) a live generation record."""
        self._write_json(self.generations_dir / f"{generation.id}.json", generation.to_dict())

    def mark_removed(self, generation: Generation) -> None:
        """Rewrite a generation record as removed."""
        data = generation.to_dict()
        data["status"] = REMOVED_STATUS
        self._write_json(self.generations_dir / f"{generation.id}.json", data)

    def iter_generation_records(self) -> Iterator[dict[str, Any]]:
        """Iterate over raw generation records."""
        for record_file in sorted(self.generations_dir.glob("*.json")):
            yield self._read_json(record_file)

    def count_generations(self) -> int:
        """Count generation records, including removed ones."""
        return len(list(self.generations_dir.glob("*.json")))

    # =========================================================================
    # Branch Records
    # =========================================================================

    def save_branch(self, branch: Branch) -> None:
        """Write (or rewrite) a branch record."""
        self._write_json(self.branches_dir / f"{branch.id}.json", branch.to_dict())

    def iter_branches(self) -> Iterator[Branch]:
        """Iterate over all branch records."""
        for record_file in sorted(self.branches_dir.glob("*.json")):
            yield self._parse_record(record_file.name, Branch.from_dict, self._read_json(record_file))

    # =========================================================================
    # Navigator State
    # =========================================================================

    def save_state(self, state: dict[str, Any]) -> None:
        """Write the navigator state."""
        self._write_json(self.state_file, state)

    def load_state(self) -> dict[str, Any]:
        """Read the navigator state (empty when none was saved)."""
        if not self.state_file.exists():
            return {}
        return self._read_json(self.state_file)

    # =========================================================================
    # Loading
    # =========================================================================

    def load(self) -> LedgerSnapshot:
        """
        Read the whole ledger.

        Raises:
            CorruptGraphError: If a record's code does not match its checksum,
                or a record cannot be parsed.
        """
        snapshot = LedgerSnapshot()

        for data in self.iter_generation_records():
            removed = data.get("status") == REMOVED_STATUS
            if removed:
                data = {**data, "status": "active"}

            generation = self._parse_record(f"{data.get('id')}.json", Generation.from_dict, data)
            if generation.code_hash != compute_code_hash(generation.code):
                logger.error(f"Checksum mismatch for generation {generation.id}")
                raise CorruptGraphError(f"Checksum mismatch for generation {generation.id}")

            if removed:
                snapshot.removed.append(generation)
            else:
                snapshot.generations.append(generation)

        snapshot.branches = list(self.iter_branches())
        snapshot.state = self.load_state()
        for key in ("current_by_file", "active_branch_by_file"):
            if not isinstance(snapshot.state.get(key, {}), dict):
                raise CorruptGraphError(f"Navigator state field {key} is not a mapping")

        logger.info(
            f"Loaded ledger {self.root}: {len(snapshot.generations)} generations, "
            f"{len(snapshot.removed)} removed, {len(snapshot.branches)} branches"
        )
        return snapshot
