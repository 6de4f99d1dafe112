"""Archive naming.

Layout: data_dir/domain/YYYY/MM/DD/user_YYYYMMDDTHHMMSS_hash.mail[.zip|.gz]
"""

from __future__ import annotations

import hashlib
from pathlib import Path

from mailmirror.domain.entities.archived_file import Encoding
from mailmirror.domain.entities.message import MessageCandidate
from mailmirror.infrastructure.checkpoints.file_store import as_utc


MAIL_EXTENSION = ".mail"
HASH_LENGTH = 5


def _received(message: MessageCandidate):
    if message.received_date is None:
        raise ValueError(f"Message {message.ref.uid} has no received date")
    return as_utc(message.received_date)


def sender_subject_hash(message: MessageCandidate) -> str:
    # Short on purpose: only separates same-second messages from one sender
    text = message.primary_sender + (message.subject or "")
    return hashlib.md5(text.encode("utf-8")).hexdigest()[:HASH_LENGTH]


def derive_path(domain: str, data_dir: str | Path, message: MessageCandidate) -> Path:
    received = _received(message)
    return Path(data_dir) / domain / f"{received:%Y}" / f"{received:%m}" / f"{received:%d}"


def derive_filename(user: str, message: MessageCandidate, encoding: Encoding = Encoding.IDENTITY) -> str:
    received = _received(message)
    return f"{user}_{received:%Y%m%dT%H%M%S}_{sender_subject_hash(message)}{MAIL_EXTENSION}{encoding.suffix}"
