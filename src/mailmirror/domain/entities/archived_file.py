from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Encoding(str, Enum):
    """How raw message content is encoded on disk."""

    IDENTITY = "identity"
    ZIP = "zip"
    GZIP = "gzip"

    @property
    def suffix(self) -> str:
        return {Encoding.IDENTITY: "", Encoding.ZIP: ".zip", Encoding.GZIP: ".gz"}[self]


@dataclass(frozen=True)
class ArchivedFile:
    directory: Path
    filename: str
    encoding: Encoding = Encoding.IDENTITY

    @property
    def path(self) -> Path:
        return self.directory / self.filename
