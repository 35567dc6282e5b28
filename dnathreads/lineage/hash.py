"""Identifier and checksum helpers."""

import hashlib
import json
from typing import Any


def compute_hash(data: dict[str, Any]) -> str:
    """
    Compute SHA256 hash of a dictionary.
    
    The dictionary is serialized to JSON with sorted keys for deterministic hashing.
    
    Args:
        data: Dictionary to hash.
    
    Returns:
        Hexadecimal SHA256 hash string (first 16 characters for brevity).
    """
    serialized = json.dumps(data, sort_keys=True, ensure_ascii=False, default=str)
    full_hash = hashlib.sha256(serialized.encode("utf-8")).hexdigest()
    return full_hash[:16]


def compute_code_hash(code: str) -> str:
    """
    Checksum of a code snapshot.
    
    Stored alongside every persisted generation so a tampered or truncated
    ledger file is detected on load.
    """
    return hashlib.sha256(code.encode("utf-8")).hexdigest()[:16]


def make_generation_id(
    file_name: str,
    parent_id: str | None,
    code_hash: str,
    created_at: str,
    sequence: int,
) -> str:
    """Build an opaque generation id (``gen-`` + 16 hex chars)."""
    digest = compute_hash({
        "file_name": file_name,
        "parent_id": parent_id,
        "code_hash": code_hash,
        "created_at": created_at,
        "sequence": sequence,
    })
    return f"gen-{digest}"


def make_branch_id(origin_generation_id: str, created_at: str, sequence: int) -> str:
    """Build an opaque branch id (``branch-`` + 16 hex chars)."""
    digest = compute_hash({
        "origin": origin_generation_id,
        "created_at": created_at,
        "sequence": sequence,
    })
    return f"branch-{digest}"
