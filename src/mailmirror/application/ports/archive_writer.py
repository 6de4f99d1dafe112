from __future__ import annotations
from typing import Callable, Protocol

from mailmirror.domain.entities.archived_file import ArchivedFile
from mailmirror.domain.entities.message import MessageCandidate

class ArchiveWriter(Protocol):
    def locate(self, user: str, message: MessageCandidate) -> ArchivedFile: ...
    def write(self, target: ArchivedFile, content: Callable[[], bytes]) -> bool: ...
