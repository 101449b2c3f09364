"""Resumable, idempotent backfill sweeps for derived search fields."""

__version__ = "0.1.0"
