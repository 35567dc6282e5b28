"""CLI module for dnathreads."""
