"""Utility functions for dnathreads."""

from dnathreads.utils.helpers import ensure_dir, utc_now

__all__ = ["ensure_dir", "utc_now"]
