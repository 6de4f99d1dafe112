# src/mailmirror/infrastructure/__init__.py
"""Infrastructure layer - mail stores, local archive, checkpoints and configuration."""

from mailmirror.infrastructure.archive import FileArchiveWriter
from mailmirror.infrastructure.checkpoints import FileCheckpointStore
from mailmirror.infrastructure.locking import RunLock
from mailmirror.infrastructure.settings import Settings, load_settings

__all__ = [
    # Settings
    "Settings",
    "load_settings",
    # Local storage
    "FileArchiveWriter",
    "FileCheckpointStore",
    "RunLock",
]
