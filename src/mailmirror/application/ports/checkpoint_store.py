from __future__ import annotations
from datetime import datetime
from typing import Iterable, Mapping, Protocol

class CheckpointStore(Protocol):
    def load(self, known_users: Iterable[str], default_date: datetime) -> dict[str, datetime]: ...
    def save(self, checkpoints: Mapping[str, datetime]) -> None: ...
