"""Checkpoint store implementations."""

from mailmirror.infrastructure.checkpoints.file_store import (
    TIMESTAMP_FORMAT,
    FileCheckpointStore,
    format_timestamp,
    parse_timestamp,
)

__all__ = [
    "TIMESTAMP_FORMAT",
    "FileCheckpointStore",
    "format_timestamp",
    "parse_timestamp",
]
