from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

@dataclass(frozen=True)
class MessageRef:
    # Store-local handle (IMAP UID for the real store)
    folder: str
    uid: int

@dataclass(frozen=True)
class MessageCandidate:
    """Envelope of a message as returned by the mail store.

    Raw content is not carried here; it is fetched from the store through
    ``ref`` at write time.
    """
    ref: MessageRef
    sender: list[str] = field(default_factory=list)
    subject: Optional[str] = None
    received_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    message_ids: list[str] = field(default_factory=list)

    @property
    def primary_sender(self) -> str:
        return self.sender[0] if self.sender else ""
