"""Deterministic in-memory mail store, used for tests and dry runs."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from email.message import EmailMessage
from typing import Iterator, Optional

from mailmirror.application.ports.mail_store import FolderHandle, MailStore
from mailmirror.domain.entities.message import MessageCandidate, MessageRef
from mailmirror.domain.errors import MailStoreError, StoreErrorKind


@dataclass
class StoredMessage:
    uid: int
    sender: list[str] = field(default_factory=list)
    subject: Optional[str] = None
    received_date: Optional[datetime] = None
    sent_date: Optional[datetime] = None
    message_ids: list[str] = field(default_factory=list)
    raw: bytes = b""

    def candidate(self, folder: str) -> MessageCandidate:
        return MessageCandidate(
            ref=MessageRef(folder=folder, uid=self.uid),
            sender=list(self.sender),
            subject=self.subject,
            received_date=self.received_date,
            sent_date=self.sent_date,
            message_ids=list(self.message_ids),
        )


def build_raw(sender: list[str], subject: Optional[str], message_id: Optional[str], body: str) -> bytes:
    em = EmailMessage()
    if sender:
        em["From"] = ", ".join(sender)
    if subject is not None:
        em["Subject"] = subject
    if message_id:
        em["Message-ID"] = message_id
    em.set_content(body)
    return em.as_bytes()


class InMemoryMailStore(MailStore):
    """MailStore backed by dicts.

    Search results come back in descending UID order so callers cannot rely
    on the store's ordering. Failures can be scripted per operation and UID
    with ``fail``.
    """

    def __init__(self) -> None:
        self.folders: dict[str, dict[int, StoredMessage]] = {}
        self.failures: dict[tuple[str, Optional[int]], StoreErrorKind] = {}
        self.search_calls: list[tuple[datetime, Optional[datetime]]] = []
        self.content_fetches: list[int] = []
        self.close_count = 0
        self._next_uid = 1

    def add_message(
        self,
        folder: str,
        *,
        sender: Optional[list[str]] = None,
        subject: Optional[str] = None,
        received: Optional[datetime] = None,
        sent: Optional[datetime] = None,
        message_id: Optional[str] = None,
        body: str = "hello\n",
    ) -> MessageRef:
        sender = list(sender or [])
        uid = self._next_uid
        self._next_uid += 1
        self.folders.setdefault(folder, {})[uid] = StoredMessage(
            uid=uid,
            sender=sender,
            subject=subject,
            received_date=received,
            sent_date=sent,
            message_ids=[message_id] if message_id else [],
            raw=build_raw(sender, subject, message_id, body),
        )
        return MessageRef(folder=folder, uid=uid)

    def remove(self, ref: MessageRef) -> None:
        del self.folders[ref.folder][ref.uid]

    def fail(self, operation: str, kind: StoreErrorKind, uid: Optional[int] = None) -> None:
        """Make ``operation`` (search, fetch_envelopes, get_raw_content, ...) raise."""
        self.failures[(operation, uid)] = kind

    def _maybe_fail(self, operation: str, uid: Optional[int] = None) -> None:
        kind = self.failures.get((operation, uid)) or self.failures.get((operation, None))
        if kind is not None:
            raise MailStoreError(kind, f"scripted {operation} failure")

    def _message(self, ref: MessageRef) -> StoredMessage:
        try:
            return self.folders[ref.folder][ref.uid]
        except KeyError:
            raise MailStoreError.gone(f"Message {ref.uid} no longer in {ref.folder}") from None

    @contextmanager
    def open_folder(self, name: str, readonly: bool = True) -> Iterator[FolderHandle]:
        self._maybe_fail("open_folder")
        yield FolderHandle(name=name, message_count=len(self.folders.get(name, {})))

    def search(
        self, folder: FolderHandle, after: datetime, before: Optional[datetime] = None
    ) -> list[MessageRef]:
        self._maybe_fail("search")
        self.search_calls.append((after, before))
        hits = [
            m for m in self.folders.get(folder.name, {}).values()
            if m.received_date is not None
            and m.received_date > after
            and (before is None or m.received_date < before)
        ]
        return [MessageRef(folder=folder.name, uid=m.uid) for m in sorted(hits, key=lambda m: -m.uid)]

    def fetch_envelopes(self, folder: FolderHandle, refs: list[MessageRef]) -> list[MessageCandidate]:
        self._maybe_fail("fetch_envelopes")
        messages = self.folders.get(folder.name, {})
        return [messages[r.uid].candidate(folder.name) for r in refs if r.uid in messages]

    def list_all(self, folder: FolderHandle) -> list[MessageRef]:
        self._maybe_fail("list_all")
        return [MessageRef(folder=folder.name, uid=uid) for uid in self.folders.get(folder.name, {})]

    def get_header(self, folder: FolderHandle, ref: MessageRef, name: str) -> list[str]:
        self._maybe_fail("get_header", ref.uid)
        message = self._message(ref)
        if name.lower() == "message-id":
            return list(message.message_ids)
        return []

    def get_raw_content(self, folder: FolderHandle, ref: MessageRef) -> bytes:
        self._maybe_fail("get_raw_content", ref.uid)
        self.content_fetches.append(ref.uid)
        return self._message(ref).raw

    def close(self) -> None:
        self.close_count += 1
