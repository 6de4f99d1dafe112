"""Candidate filtering: drafts, unusable dates, malformed and ignored senders."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parseaddr
from enum import Enum
from typing import Iterable, Optional

from loguru import logger

from mailmirror.domain.entities.message import MessageCandidate


class FilterReason(str, Enum):
    """Why a candidate was excluded. Checked in declaration order."""

    DRAFT = "draft"
    NO_RECEIVED_DATE = "no_received_date"
    ALREADY_COVERED = "already_covered"
    EMPTY_SENDER = "empty_sender"
    IGNORED_SENDER = "ignored_sender"


def sender_address(sender: str) -> str:
    """Lower-cased addr-spec of a From entry ("Name <a@b>" -> "a@b")."""
    _, addr = parseaddr(sender)
    return (addr or sender).strip().lower()


def normalize_addresses(addresses: Iterable[str]) -> frozenset[str]:
    return frozenset(a.strip().lower() for a in addresses if a and a.strip())


@dataclass
class FilterResult:
    admitted: list[MessageCandidate]
    excluded: Counter = field(default_factory=Counter)

    @property
    def excluded_total(self) -> int:
        return sum(self.excluded.values())


class FilterPipeline:
    def __init__(self, drafts: Iterable[str], ignore_from: Iterable[str], fetch_from: datetime) -> None:
        self.drafts = frozenset(d.strip() for d in drafts)
        self.ignore_from = normalize_addresses(ignore_from)
        self.fetch_from = fetch_from

    def classify(self, message: MessageCandidate) -> Optional[FilterReason]:
        """Return the first matching exclusion reason, or None to admit."""
        if any(mid.strip() in self.drafts for mid in message.message_ids):
            return FilterReason.DRAFT
        if message.received_date is None:
            return FilterReason.NO_RECEIVED_DATE
        if message.received_date <= self.fetch_from:
            return FilterReason.ALREADY_COVERED
        if not message.sender:
            return FilterReason.EMPTY_SENDER
        if sender_address(message.primary_sender) in self.ignore_from:
            return FilterReason.IGNORED_SENDER
        return None

    def apply(self, candidates: Iterable[MessageCandidate]) -> FilterResult:
        result = FilterResult(admitted=[])
        for message in candidates:
            reason = self.classify(message)
            if reason is None:
                result.admitted.append(message)
                continue
            result.excluded[reason] += 1
            logger.debug(f"Excluding message {message.ref.uid} ({reason.value}): {message.subject!r}")

        if result.excluded:
            summary = ", ".join(f"{r.value}={n}" for r, n in sorted(result.excluded.items()))
            logger.info(f"Result filtered to: {len(result.admitted)} (excluded {summary})")
        else:
            logger.info(f"Result filtered to: {len(result.admitted)}")
        return result
