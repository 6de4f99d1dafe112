"""Windowed search planning over a mail folder."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from loguru import logger

from mailmirror.application.ports.mail_store import FolderHandle, MailStore
from mailmirror.domain.entities.message import MessageCandidate, MessageRef


# Messages without a sent date sort as if sent at this instant
SENT_DATE_SENTINEL = datetime(2000, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def sent_date_key(message: MessageCandidate) -> datetime:
    return message.sent_date or SENT_DATE_SENTINEL


def _has_new(candidates: list[MessageCandidate], after: datetime) -> bool:
    return any(c.received_date is not None and c.received_date > after for c in candidates)


class WindowFetchPlanner:
    """Find candidate messages received after a checkpoint.

    The search is bounded to ``window_days`` while the window end lies in the
    past. A bounded window holding nothing received after its start moves the
    search forward to the window end and tries again, so mailboxes with long
    gaps are walked window by window until one window has new messages or the
    window end reaches "now".

    Stores may answer searches at day granularity (IMAP SINCE/BEFORE), so a
    window can return messages from its start day that are not newer than
    the start. Such a window still counts as empty.
    """

    def __init__(
        self,
        store: MailStore,
        window_days: int = 30,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if window_days <= 0:
            raise ValueError(f"window_days must be positive, got {window_days}")
        self.store = store
        self.window = timedelta(days=window_days)
        self.clock = clock

    def _fetch(self, folder: FolderHandle, refs: list[MessageRef]) -> list[MessageCandidate]:
        if not refs:
            return []
        # one round trip for all envelopes of the window
        return self.store.fetch_envelopes(folder, refs)

    def search(
        self, folder: FolderHandle, fetch_from: datetime, now: Optional[datetime] = None
    ) -> list[MessageCandidate]:
        """Run the windowed search loop and return unordered candidates."""
        now = now or self.clock()
        window_from = fetch_from

        while True:
            window_end = window_from + self.window
            bounded = window_end < now
            before = window_end if bounded else None

            logger.info(
                f"Searching {folder.name}: received after {window_from.isoformat()}"
                + (f" and before {window_end.isoformat()}" if bounded else "")
            )
            refs = self.store.search(folder, window_from, before)
            logger.info(f"Search returned: {len(refs)}")

            candidates = self._fetch(folder, refs)
            if not bounded or _has_new(candidates, window_from):
                return candidates

            logger.info(f"No new messages in window, retrying from {window_end.isoformat()}")
            window_from = window_end

    def plan(self, folder: FolderHandle, fetch_from: datetime, now: Optional[datetime] = None) -> list[MessageCandidate]:
        """Return candidates sorted by sent date, not yet filtered."""
        return sorted(self.search(folder, fetch_from, now), key=sent_date_key)
