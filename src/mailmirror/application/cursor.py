from __future__ import annotations

from typing import Iterator, Sequence

from mailmirror.domain.entities.message import MessageCandidate


class MessageCursor(Iterator[MessageCandidate]):
    """Forward-only, single-pass cursor over an already materialized list."""

    def __init__(self, messages: Sequence[MessageCandidate]) -> None:
        self._messages = tuple(messages)
        self._index = 0

    def has_next(self) -> bool:
        return self._index < len(self._messages)

    def next(self) -> MessageCandidate:
        if not self.has_next():
            raise StopIteration
        message = self._messages[self._index]
        self._index += 1
        return message

    def progress(self) -> tuple[int, int]:
        return self._index, len(self._messages)

    def __next__(self) -> MessageCandidate:
        return self.next()

    def __iter__(self) -> "MessageCursor":
        return self

    def __len__(self) -> int:
        return len(self._messages)

    def __str__(self) -> str:
        index, total = self.progress()
        return f"{index}/{total}"
