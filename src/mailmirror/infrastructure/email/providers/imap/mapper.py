"""Map IMAP FETCH responses to domain objects."""

from __future__ import annotations

import re
from datetime import date, datetime
from email import policy
from email.parser import BytesParser
from typing import Optional

from loguru import logger

from mailmirror.domain.entities.message import MessageCandidate, MessageRef
from mailmirror.infrastructure.checkpoints.file_store import as_utc


ENVELOPE_HEADERS = ("FROM", "SUBJECT", "DATE", "MESSAGE-ID")

_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")
_UID_RE = re.compile(rb"UID (\d+)")
_INTERNALDATE_RE = re.compile(
    rb'INTERNALDATE "\s?(\d{1,2})-([A-Za-z]{3})-(\d{4}) (\d{2}):(\d{2}):(\d{2}) ([+-]\d{4})"'
)


def imap_date(value: date) -> str:
    """Format a date for SEARCH (``05-Mar-2012``), independent of locale."""
    return f"{value.day:02d}-{_MONTHS[value.month - 1]}-{value.year}"


def parse_internaldate(meta: bytes) -> Optional[datetime]:
    m = _INTERNALDATE_RE.search(meta)
    if not m:
        return None
    day, mon, year, hh, mm, ss, zone = (g.decode() for g in m.groups())
    month = _MONTHS.index(mon.capitalize()) + 1
    stamp = f"{year}-{month:02d}-{int(day):02d}T{hh}:{mm}:{ss}{zone}"
    return as_utc(datetime.strptime(stamp, "%Y-%m-%dT%H:%M:%S%z"))


def parse_uid(meta: bytes) -> Optional[int]:
    m = _UID_RE.search(meta)
    return int(m.group(1)) if m else None


def parse_uid_list(data: list) -> list[int]:
    if not data or not data[0]:
        return []
    return [int(x) for x in data[0].split()]


def fetch_parts(data: list) -> list[tuple[bytes, bytes]]:
    """(metadata, literal) pairs from a FETCH response, skipping separators."""
    return [(item[0], item[1]) for item in data if isinstance(item, tuple) and len(item) >= 2]


def _header_datetime(em, name: str) -> Optional[datetime]:
    try:
        header = em.get(name)
        dt = header.datetime if header is not None else None
    except (TypeError, ValueError, AttributeError):
        return None
    return as_utc(dt) if dt else None


def _addresses(em, name: str) -> list[str]:
    out: list[str] = []
    for header in em.get_all(name) or []:
        addresses = getattr(header, "addresses", None)
        if addresses:
            out.extend(str(a) for a in addresses)
        elif str(header).strip():
            out.append(str(header).strip())
    return out


def header_values(header_bytes: bytes, name: str) -> list[str]:
    em = BytesParser(policy=policy.default).parsebytes(header_bytes or b"", headersonly=True)
    return [str(v).strip() for v in (em.get_all(name) or []) if str(v).strip()]


def envelope_to_candidate(folder: str, meta: bytes, header_bytes: bytes) -> Optional[MessageCandidate]:
    uid = parse_uid(meta)
    if uid is None:
        logger.warning(f"FETCH response without UID: {meta[:80]!r}")
        return None

    em = BytesParser(policy=policy.default).parsebytes(header_bytes or b"", headersonly=True)
    subject = em.get("Subject")

    return MessageCandidate(
        ref=MessageRef(folder=folder, uid=uid),
        sender=_addresses(em, "From"),
        subject=str(subject) if subject is not None else None,
        received_date=parse_internaldate(meta),
        sent_date=_header_datetime(em, "Date"),
        message_ids=[str(v).strip() for v in (em.get_all("Message-ID") or []) if str(v).strip()],
    )
