"""Flat-file checkpoint store: one ``user=timestamp`` line per user."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Mapping

from loguru import logger

from mailmirror.application.ports.checkpoint_store import CheckpointStore


TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return as_utc(value).strftime(TIMESTAMP_FORMAT)


def parse_timestamp(text: str) -> datetime:
    return as_utc(datetime.strptime(text.strip(), TIMESTAMP_FORMAT))


class FileCheckpointStore(CheckpointStore):
    """Store per-user last-seen received dates in a text file.

    The file is fully rewritten on every save; concurrent writers are not
    supported.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self, known_users: Iterable[str], default_date: datetime) -> dict[str, datetime]:
        """Load checkpoints for ``known_users``.

        Malformed lines and entries for users that are no longer configured
        are skipped. Users without an entry get ``default_date``.
        """
        users = list(known_users)
        result: dict[str, datetime] = {}

        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    for line in f:
                        self._parse_line(line.strip(), users, result)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Error loading user timestamps from {self.path}: {e}")

        for user in users:
            if user not in result:
                result[user] = as_utc(default_date)

        logger.info(f"Loaded timestamps from {self.path}")
        for user, ts in result.items():
            logger.info(f"  {user}={format_timestamp(ts)}")
        return result

    def _parse_line(self, line: str, users: list[str], result: dict[str, datetime]) -> None:
        if not line:
            return

        parts = line.split("=")
        if len(parts) != 2:
            logger.warning(f"Don't understand checkpoint line [{line}]")
            return

        user, raw = parts[0].strip(), parts[1]
        try:
            ts = parse_timestamp(raw)
        except ValueError:
            logger.warning(f"Unable to parse checkpoint timestamp [{raw}] for {user}")
            return

        if user not in users:
            logger.info(f"Ignore timestamp for user {user} (no longer configured)")
            return

        result[user] = ts

    def save(self, checkpoints: Mapping[str, datetime]) -> None:
        """Rewrite the file with all entries, oldest timestamp first."""
        entries = sorted(checkpoints.items(), key=lambda item: (as_utc(item[1]), item[0]))
        lines = [f"{user}={format_timestamp(ts)}" for user, ts in entries]

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                for line in lines:
                    f.write(line + "\n")
                f.flush()
        except OSError as e:
            logger.error(f"Error saving user timestamps to {self.path}: {e}")
            return

        logger.info(f"Saved {len(lines)} timestamps to {self.path}")
        for line in lines:
            logger.debug(f"  {line}")
