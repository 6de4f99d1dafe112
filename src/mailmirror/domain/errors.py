"""Error taxonomy for the archiver."""

from __future__ import annotations

from enum import Enum


class StoreErrorKind(str, Enum):
    """Classification of mail store failures."""

    # The message vanished on the server; skip it and keep going.
    MESSAGE_GONE = "message_gone"
    # The folder or connection can no longer be used; stop this user.
    FOLDER_UNUSABLE = "folder_unusable"


class StoreAction(str, Enum):
    SKIP_MESSAGE = "skip_message"
    ABORT_USER = "abort_user"


class MailStoreError(Exception):
    """Raised by mail store implementations, tagged with a failure kind."""

    def __init__(self, kind: StoreErrorKind, message: str = "") -> None:
        super().__init__(message or kind.value)
        self.kind = kind

    @classmethod
    def gone(cls, message: str = "") -> "MailStoreError":
        return cls(StoreErrorKind.MESSAGE_GONE, message)

    @classmethod
    def unusable(cls, message: str = "") -> "MailStoreError":
        return cls(StoreErrorKind.FOLDER_UNUSABLE, message)


def action_for(kind: StoreErrorKind) -> StoreAction:
    """Decide what the sync driver does for a store failure of ``kind``."""
    if kind is StoreErrorKind.MESSAGE_GONE:
        return StoreAction.SKIP_MESSAGE
    return StoreAction.ABORT_USER


class ConfigurationError(Exception):
    """Invalid or unreadable configuration; fatal before any user is processed."""


class RunLockedError(Exception):
    """Another run already owns the checkpoint file and data directory."""
