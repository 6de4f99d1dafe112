"""
Pytest configuration and shared fixtures.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from mailmirror.application.use_cases.sync_mailboxes import SyncMailboxesUseCase
from mailmirror.domain.entities.message import MessageCandidate, MessageRef
from mailmirror.infrastructure.archive.writer import FileArchiveWriter
from mailmirror.infrastructure.checkpoints.file_store import FileCheckpointStore
from mailmirror.infrastructure.email.memory import InMemoryMailStore

UTC = timezone.utc
ALL_MAIL = "[Gmail]/All Mail"
DRAFTS = "[Gmail]/Drafts"
DOMAIN = "example.com"
NOW = datetime(2012, 6, 1, tzinfo=UTC)
OLDEST = datetime(2012, 1, 1, tzinfo=UTC)


def dt(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def candidate(
    uid: int,
    *,
    sender: Optional[list[str]] = None,
    subject: Optional[str] = "subject",
    received: Optional[datetime] = None,
    sent: Optional[datetime] = None,
    message_ids: Optional[list[str]] = None,
) -> MessageCandidate:
    return MessageCandidate(
        ref=MessageRef(folder=ALL_MAIL, uid=uid),
        sender=["x@y.com"] if sender is None else sender,
        subject=subject,
        received_date=received,
        sent_date=sent,
        message_ids=message_ids or [],
    )


class RecordingCheckpointStore(FileCheckpointStore):
    """File checkpoint store that also remembers every save."""

    def __init__(self, path):
        super().__init__(path)
        self.saves: list[dict] = []

    def save(self, checkpoints):
        self.saves.append(dict(checkpoints))
        super().save(checkpoints)


@pytest.fixture
def store() -> InMemoryMailStore:
    return InMemoryMailStore()


@pytest.fixture
def data_dir(tmp_path):
    return tmp_path / "data"


@pytest.fixture
def timestamp_file(tmp_path):
    return tmp_path / "timestamps.txt"


@pytest.fixture
def checkpoint_store(timestamp_file) -> RecordingCheckpointStore:
    return RecordingCheckpointStore(timestamp_file)


@pytest.fixture
def make_use_case(data_dir, checkpoint_store):
    """Build a use case over in-memory stores keyed by user."""

    def _make(stores: dict, **kwargs) -> SyncMailboxesUseCase:
        options = dict(
            users=list(stores),
            store_factory=lambda user: stores[user],
            checkpoint_store=checkpoint_store,
            writer=FileArchiveWriter(data_dir, DOMAIN),
            oldest_date=OLDEST,
            all_mail_folder=ALL_MAIL,
            drafts_folder=DRAFTS,
            clock=lambda: NOW,
        )
        options.update(kwargs)
        return SyncMailboxesUseCase(**options)

    return _make


class DayGranularMailStore(InMemoryMailStore):
    """In-memory store answering searches by whole days, like IMAP SINCE/BEFORE."""

    def search(self, folder, after, before=None):
        self._maybe_fail("search")
        self.search_calls.append((after, before))
        end = None
        if before is not None:
            end = before.date() if before.time() == datetime.min.time() else before.date() + timedelta(days=1)
        hits = [
            m for m in self.folders.get(folder.name, {}).values()
            if m.received_date is not None
            and m.received_date.date() >= after.date()
            and (end is None or m.received_date.date() < end)
        ]
        return [MessageRef(folder=folder.name, uid=m.uid) for m in sorted(hits, key=lambda m: -m.uid)]


@pytest.fixture
def day_store() -> DayGranularMailStore:
    return DayGranularMailStore()
