from __future__ import annotations
import imaplib
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator, Optional

from loguru import logger

from mailmirror.application.ports.mail_store import FolderHandle, MailStore, MailStoreFactory
from mailmirror.domain.entities.message import MessageCandidate, MessageRef
from mailmirror.domain.errors import MailStoreError
from mailmirror.infrastructure.email.providers.imap.auth import (
    ImapAuthenticator,
    ImapCredentials,
    TokenProvider,
)
from mailmirror.infrastructure.email.providers.imap.mapper import (
    ENVELOPE_HEADERS,
    envelope_to_candidate,
    fetch_parts,
    header_values,
    imap_date,
    parse_uid_list,
)


def _quote(folder: str) -> str:
    return f'"{folder}"'


class ImapMailStore(MailStore):
    """Read-only MailStore over an authenticated imaplib connection.

    IMAP SEARCH only compares dates, so search bounds are widened to whole
    days; callers re-check received dates.
    """

    def __init__(self, conn: imaplib.IMAP4, email: str) -> None:
        self.email = email
        self._conn: Optional[imaplib.IMAP4] = conn

    @classmethod
    def connect(cls, authenticator: ImapAuthenticator, creds: ImapCredentials) -> "ImapMailStore":
        return cls(authenticator.login(creds), creds.email)

    @property
    def conn(self) -> imaplib.IMAP4:
        if self._conn is None:
            raise MailStoreError.unusable(f"Connection for {self.email} is closed")
        return self._conn

    def close(self) -> None:
        if self._conn:
            try:
                self._conn.logout()
            except (imaplib.IMAP4.error, OSError) as e:
                logger.debug(f"Logout for {self.email} failed: {e}")
            self._conn = None

    @contextmanager
    def _guard(self, what: str) -> Iterator[None]:
        """Translate connection-level failures into FOLDER_UNUSABLE."""
        try:
            yield
        except MailStoreError:
            raise
        except (imaplib.IMAP4.abort, OSError) as e:
            raise MailStoreError.unusable(f"{what} failed: {e}") from e
        except imaplib.IMAP4.error as e:
            raise MailStoreError.unusable(f"{what} rejected: {e}") from e

    def _check(self, typ: str, what: str) -> None:
        if typ != "OK":
            raise MailStoreError.unusable(f"{what} returned {typ}")

    @contextmanager
    def open_folder(self, name: str, readonly: bool = True) -> Iterator[FolderHandle]:
        with self._guard(f"SELECT {name}"):
            typ, data = self.conn.select(_quote(name), readonly=readonly)
            self._check(typ, f"SELECT {name}")
            count = int(data[0]) if data and data[0] else 0

        try:
            yield FolderHandle(name=name, message_count=count)
        finally:
            if self._conn is not None:
                try:
                    self._conn.close()
                except (imaplib.IMAP4.error, OSError) as e:
                    logger.debug(f"CLOSE {name} failed: {e}")

    def search(
        self, folder: FolderHandle, after: datetime, before: Optional[datetime] = None
    ) -> list[MessageRef]:
        criteria = ["SINCE", imap_date(after.date())]
        if before is not None:
            # BEFORE excludes the whole day, so move to the next one when a
            # time of day is set
            end = before.date() if before.time() == datetime.min.time() else before.date() + timedelta(days=1)
            criteria += ["BEFORE", imap_date(end)]

        with self._guard(f"SEARCH {folder.name}"):
            typ, data = self.conn.uid("SEARCH", None, *criteria)
            self._check(typ, "UID SEARCH")
        return [MessageRef(folder=folder.name, uid=uid) for uid in parse_uid_list(data)]

    def list_all(self, folder: FolderHandle) -> list[MessageRef]:
        with self._guard(f"SEARCH {folder.name}"):
            typ, data = self.conn.uid("SEARCH", None, "ALL")
            self._check(typ, "UID SEARCH")
        return [MessageRef(folder=folder.name, uid=uid) for uid in parse_uid_list(data)]

    def fetch_envelopes(self, folder: FolderHandle, refs: list[MessageRef]) -> list[MessageCandidate]:
        """Fetch dates and envelope headers for all refs in one command."""
        if not refs:
            return []

        uid_set = ",".join(str(r.uid) for r in refs)
        items = f"(UID INTERNALDATE BODY.PEEK[HEADER.FIELDS ({' '.join(ENVELOPE_HEADERS)})])"
        with self._guard(f"FETCH envelopes in {folder.name}"):
            typ, data = self.conn.uid("FETCH", uid_set, items)
            self._check(typ, "UID FETCH")

        candidates = []
        for meta, header_bytes in fetch_parts(data):
            candidate = envelope_to_candidate(folder.name, meta, header_bytes)
            if candidate is not None:
                candidates.append(candidate)

        if len(candidates) < len(refs):
            logger.warning(f"Envelopes for {len(refs) - len(candidates)} messages missing, already removed?")
        return candidates

    def _fetch_literal(self, ref: MessageRef, items: str) -> bytes:
        with self._guard(f"FETCH {ref.uid}"):
            typ, data = self.conn.uid("FETCH", str(ref.uid), items)
            self._check(typ, "UID FETCH")

        parts = fetch_parts(data)
        if not parts or parts[0][1] is None:
            raise MailStoreError.gone(f"Message {ref.uid} no longer in {ref.folder}")
        return parts[0][1]

    def get_header(self, folder: FolderHandle, ref: MessageRef, name: str) -> list[str]:
        raw = self._fetch_literal(ref, f"(BODY.PEEK[HEADER.FIELDS ({name.upper()})])")
        return header_values(raw, name)

    def get_raw_content(self, folder: FolderHandle, ref: MessageRef) -> bytes:
        return self._fetch_literal(ref, "(BODY.PEEK[])")


def imap_store_factory(
    domain: str,
    authenticator: ImapAuthenticator,
    password: Optional[str] = None,
    token_provider: Optional[TokenProvider] = None,
) -> MailStoreFactory:
    """Build a factory connecting ``user@domain`` for each user.

    Returns None from the factory when no credentials are available or the
    server refuses the connection.
    """

    def factory(user: str) -> Optional[ImapMailStore]:
        email = f"{user}@{domain}"
        token = token_provider(email) if token_provider else None
        if not token and not password:
            logger.warning(f"No credentials for {email}")
            return None

        creds = ImapCredentials(email=email, password=password, oauth_token=token)
        try:
            store = ImapMailStore.connect(authenticator, creds)
        except (imaplib.IMAP4.error, OSError) as e:
            logger.error(f"IMAP login for {email} failed: {e}")
            return None

        logger.info(f"IMAP store OK for {email}")
        return store

    return factory
