"""Interfaces the sync engine depends on."""

from mailmirror.application.ports.archive_writer import ArchiveWriter
from mailmirror.application.ports.checkpoint_store import CheckpointStore
from mailmirror.application.ports.mail_store import FolderHandle, MailStore, MailStoreFactory

__all__ = [
    "ArchiveWriter",
    "CheckpointStore",
    "FolderHandle",
    "MailStore",
    "MailStoreFactory",
]
