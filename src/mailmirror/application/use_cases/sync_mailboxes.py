"""Archive every configured user's mailbox, resuming from saved checkpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Callable, Iterable, Optional

from loguru import logger

from mailmirror.application.cursor import MessageCursor
from mailmirror.application.filters import FilterPipeline
from mailmirror.application.ports.archive_writer import ArchiveWriter
from mailmirror.application.ports.checkpoint_store import CheckpointStore
from mailmirror.application.ports.mail_store import MailStore, MailStoreFactory
from mailmirror.application.window_planner import WindowFetchPlanner, utcnow
from mailmirror.domain.errors import MailStoreError, StoreAction, action_for


# Save checkpoints every N processed messages
CHECKPOINT_EVERY = 100

HEADER_MESSAGE_ID = "Message-ID"


@dataclass
class UserSyncResult:
    """Outcome of one user's run."""
    user: str
    written: int = 0
    existing: int = 0
    skipped: int = 0
    error: Optional[str] = None

    @property
    def processed(self) -> int:
        return self.written + self.existing

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class SyncReport:
    users: list[UserSyncResult] = field(default_factory=list)

    @property
    def written(self) -> int:
        return sum(u.written for u in self.users)

    @property
    def existing(self) -> int:
        return sum(u.existing for u in self.users)

    @property
    def failed_users(self) -> list[str]:
        return [u.user for u in self.users if not u.ok]

    def for_user(self, user: str) -> UserSyncResult:
        for result in self.users:
            if result.user == user:
                return result
        raise KeyError(user)


class SyncMailboxesUseCase:
    """Incrementally mirror mailboxes to the archive.

    Flow per user:
    1. Connect to the user's mail store (skip the user if that fails)
    2. Collect Message-IDs of drafts
    3. Plan a windowed search from the user's checkpoint
    4. Filter and order candidates by sent date
    5. Write each message unless its archive path already exists
    6. Advance the checkpoint, saving it every CHECKPOINT_EVERY messages

    One user's failure never stops the run for the others.
    """

    def __init__(
        self,
        users: Iterable[str],
        store_factory: MailStoreFactory,
        checkpoint_store: CheckpointStore,
        writer: ArchiveWriter,
        oldest_date: datetime,
        ignore_from: Iterable[str] = (),
        max_per_run: int = 1000,
        fetch_window_days: int = 30,
        all_mail_folder: str = "[Gmail]/All Mail",
        drafts_folder: Optional[str] = "[Gmail]/Drafts",
        clock: Callable[[], datetime] = utcnow,
        only_users: Optional[Iterable[str]] = None,
    ) -> None:
        """Initialize the sync use case.

        Args:
            users: All configured users, archived in this order
            store_factory: Returns a connected store for a user, or None
            checkpoint_store: Where per-user timestamps are kept
            writer: Derives archive paths and writes message content
            oldest_date: Checkpoint for users without a saved one
            ignore_from: Sender addresses whose mail is never archived
            max_per_run: Max messages processed per user per run
            fetch_window_days: Size of each search window
            all_mail_folder: Folder holding every message of the mailbox
            drafts_folder: Folder whose messages are excluded (None disables)
            clock: Source of "now" for window planning
            only_users: Subset of users to back up this run; checkpoints of
                the others are kept untouched
        """
        if max_per_run <= 0:
            raise ValueError(f"max_per_run must be positive, got {max_per_run}")
        self.users = list(users)
        self.store_factory = store_factory
        self.checkpoint_store = checkpoint_store
        self.writer = writer
        self.oldest_date = oldest_date
        self.ignore_from = frozenset(ignore_from)
        self.max_per_run = max_per_run
        self.fetch_window_days = fetch_window_days
        self.all_mail_folder = all_mail_folder
        self.drafts_folder = drafts_folder
        self.clock = clock
        self.only_users = list(only_users) if only_users else None

    def run(self) -> SyncReport:
        """Archive all users once."""
        checkpoints = self.checkpoint_store.load(self.users, self.oldest_date)
        report = SyncReport()

        for user in self.only_users or self.users:
            logger.info(f"### Backing up [{user}]")
            result = UserSyncResult(user=user)
            report.users.append(result)
            try:
                self._sync_user(user, checkpoints, result)
            except MailStoreError as e:
                result.error = f"{e.kind.value}: {e}"
                logger.error(f"Error getting mail for user [{user}]: {e.kind.value}: {e}")
            except Exception as e:
                result.error = f"{type(e).__name__}: {e}"
                logger.exception(f"Error getting mail for user [{user}]: {type(e).__name__}: {e}")

        logger.info(
            f"Done: written={report.written}, existing={report.existing}, "
            f"failed_users={report.failed_users}"
        )
        return report

    def _sync_user(self, user: str, checkpoints: dict[str, datetime], result: UserSyncResult) -> None:
        store = self.store_factory(user)
        if store is None:
            result.error = "store unavailable"
            logger.warning(f"Store is unavailable for [{user}], skip")
            return

        try:
            self._archive(user, store, checkpoints, result)
        finally:
            store.close()

    def _draft_ids(self, store: MailStore) -> set[str]:
        """Collect Message-ID values of everything in the drafts folder."""
        ids: set[str] = set()
        if not self.drafts_folder:
            return ids

        with store.open_folder(self.drafts_folder, readonly=True) as folder:
            logger.info(f"Folder open OK: {folder.name} ({folder.message_count} messages)")
            for ref in store.list_all(folder):
                try:
                    ids.update(store.get_header(folder, ref, HEADER_MESSAGE_ID))
                except MailStoreError as e:
                    if action_for(e.kind) is not StoreAction.SKIP_MESSAGE:
                        raise
                    logger.warning(f"Draft {ref.uid} already removed: {e}")

        logger.info(f"Draft ids: {len(ids)}")
        return ids

    def _archive(
        self,
        user: str,
        store: MailStore,
        checkpoints: dict[str, datetime],
        result: UserSyncResult,
    ) -> None:
        fetch_from = checkpoints[user]
        drafts = self._draft_ids(store)
        planner = WindowFetchPlanner(store, self.fetch_window_days, clock=self.clock)

        with store.open_folder(self.all_mail_folder, readonly=True) as folder:
            logger.info(f"Folder open OK: {folder.name} ({folder.message_count} messages)")
            candidates = planner.plan(folder, fetch_from)
            filtered = FilterPipeline(drafts, self.ignore_from, fetch_from).apply(candidates)
            cursor = MessageCursor(filtered.admitted)

            count = 0
            try:
                while cursor.has_next() and count < self.max_per_run:
                    message = cursor.next()
                    try:
                        target = self.writer.locate(user, message)
                        written = self.writer.write(target, partial(store.get_raw_content, folder, message.ref))
                    except MailStoreError as e:
                        if action_for(e.kind) is StoreAction.SKIP_MESSAGE:
                            result.skipped += 1
                            logger.warning(f"Message {message.ref.uid} already removed: {e}")
                            continue
                        result.error = f"{e.kind.value}: {e}"
                        logger.error(f"Folder {folder.name} no longer usable for [{user}], stopping: {e}")
                        break

                    if written:
                        result.written += 1
                    else:
                        result.existing += 1
                    self._advance(checkpoints, user, message.received_date)

                    logger.info(f"{cursor} {target.path}" + ("" if written else ": EXISTS"))
                    count += 1
                    if count % CHECKPOINT_EVERY == 0:
                        self.checkpoint_store.save(checkpoints)
            finally:
                if count > 0:
                    self.checkpoint_store.save(checkpoints)

    @staticmethod
    def _advance(checkpoints: dict[str, datetime], user: str, received: datetime) -> None:
        # Messages are ordered by sent date, so received dates can step back.
        if received > checkpoints[user]:
            checkpoints[user] = received
