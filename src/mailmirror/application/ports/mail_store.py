from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, ContextManager, Optional, Protocol

from mailmirror.domain.entities.message import MessageCandidate, MessageRef

@dataclass(frozen=True)
class FolderHandle:
    name: str
    message_count: int

class MailStore(Protocol):
    """Read-only view of one user's mailbox.

    Any method may raise ``MailStoreError`` tagged MESSAGE_GONE (skip the
    message) or FOLDER_UNUSABLE (stop processing this user).
    """

    def open_folder(self, name: str, readonly: bool = True) -> ContextManager[FolderHandle]: ...

    # received-date bounds are both exclusive
    def search(
        self, folder: FolderHandle, after: datetime, before: Optional[datetime] = None
    ) -> list[MessageRef]: ...

    def fetch_envelopes(self, folder: FolderHandle, refs: list[MessageRef]) -> list[MessageCandidate]: ...

    def list_all(self, folder: FolderHandle) -> list[MessageRef]: ...

    def get_header(self, folder: FolderHandle, ref: MessageRef, name: str) -> list[str]: ...

    def get_raw_content(self, folder: FolderHandle, ref: MessageRef) -> bytes: ...

    def close(self) -> None: ...

# user -> connected store, or None when no connection could be made
MailStoreFactory = Callable[[str], Optional[MailStore]]
