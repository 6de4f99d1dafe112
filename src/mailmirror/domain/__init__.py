"""Domain entities and errors."""

from mailmirror.domain.entities.archived_file import ArchivedFile, Encoding
from mailmirror.domain.entities.message import MessageCandidate, MessageRef
from mailmirror.domain.errors import (
    ConfigurationError,
    MailStoreError,
    RunLockedError,
    StoreAction,
    StoreErrorKind,
    action_for,
)

__all__ = [
    "ArchivedFile",
    "Encoding",
    "MessageCandidate",
    "MessageRef",
    "ConfigurationError",
    "MailStoreError",
    "RunLockedError",
    "StoreAction",
    "StoreErrorKind",
    "action_for",
]
