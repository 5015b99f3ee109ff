"""
school_ingestion -- boundary mapping from storage-layer JSON to snapshots.

Turns the raw collections fetched by the external storage layer into an
immutable ``SchoolSnapshot``.  All parsing and normalisation (dates,
amounts, recurrence strings, payment frequencies) happens here, once.

Architecture:
    school_ingestion/ is a top-level package. Nothing in kernel/ or
    engines/ imports from ingestion.
"""

from school_ingestion.builder import SnapshotBuilder, SnapshotBuildResult, build_snapshot

__all__ = ["SnapshotBuilder", "SnapshotBuildResult", "build_snapshot"]
