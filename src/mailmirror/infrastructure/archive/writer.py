"""Write raw messages to the archive, never overwriting existing files."""

from __future__ import annotations

import gzip
import zipfile
from pathlib import Path
from typing import Callable

from loguru import logger

from mailmirror.application.ports.archive_writer import ArchiveWriter
from mailmirror.domain.entities.archived_file import ArchivedFile, Encoding
from mailmirror.domain.entities.message import MessageCandidate
from mailmirror.domain.errors import ConfigurationError
from mailmirror.infrastructure.archive.namer import derive_filename, derive_path


def encoding_from_flags(use_zip: bool = False, use_gzip: bool = False) -> Encoding:
    if use_zip and use_gzip:
        raise ConfigurationError("Both zip and gzip compression specified. Choose one")
    if use_zip:
        return Encoding.ZIP
    if use_gzip:
        return Encoding.GZIP
    return Encoding.IDENTITY


class FileArchiveWriter(ArchiveWriter):
    """Archive writer for a local directory tree."""

    def __init__(self, data_dir: str | Path, domain: str, encoding: Encoding = Encoding.IDENTITY) -> None:
        self.data_dir = Path(data_dir)
        self.domain = domain
        self.encoding = encoding

    def locate(self, user: str, message: MessageCandidate) -> ArchivedFile:
        return ArchivedFile(
            directory=derive_path(self.domain, self.data_dir, message),
            filename=derive_filename(user, message, self.encoding),
            encoding=self.encoding,
        )

    def write(self, target: ArchivedFile, content: Callable[[], bytes]) -> bool:
        """Write ``content()`` to ``target`` unless it already exists.

        Returns True if a file was written. Content is fetched before the file
        is created; a file left half written by a failed write is removed
        before the error propagates.
        """
        path = target.path
        if path.exists():
            return False

        path.parent.mkdir(parents=True, exist_ok=True)
        data = content()
        try:
            self._encode(path, target.encoding, data)
        except FileExistsError:
            return False
        except BaseException:
            path.unlink(missing_ok=True)
            logger.debug(f"Removed partial file {path}")
            raise
        return True

    @staticmethod
    def _encode(path: Path, encoding: Encoding, data: bytes) -> None:
        if encoding is Encoding.ZIP:
            with zipfile.ZipFile(path, "x", compression=zipfile.ZIP_DEFLATED) as zf:
                zf.writestr(path.name, data)
        elif encoding is Encoding.GZIP:
            with gzip.open(path, "xb") as gz:
                gz.write(data)
        else:
            with path.open("xb") as f:
                f.write(data)
                f.flush()
