"""Local archive: path derivation and idempotent writes."""

from mailmirror.infrastructure.archive.namer import derive_filename, derive_path, sender_subject_hash
from mailmirror.infrastructure.archive.writer import FileArchiveWriter, encoding_from_flags

__all__ = [
    "FileArchiveWriter",
    "derive_filename",
    "derive_path",
    "encoding_from_flags",
    "sender_subject_hash",
]
