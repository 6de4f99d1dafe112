"""Application layer - sync engine and the ports it depends on."""

from mailmirror.application.cursor import MessageCursor
from mailmirror.application.filters import FilterPipeline, FilterReason
from mailmirror.application.use_cases.sync_mailboxes import SyncMailboxesUseCase, SyncReport, UserSyncResult
from mailmirror.application.window_planner import WindowFetchPlanner

__all__ = [
    "FilterPipeline",
    "FilterReason",
    "MessageCursor",
    "SyncMailboxesUseCase",
    "SyncReport",
    "UserSyncResult",
    "WindowFetchPlanner",
]
