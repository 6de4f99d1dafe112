"""
Tests for the imaplib-backed mail store, against a scripted connection.
"""

import imaplib

import pytest

from conftest import ALL_MAIL, dt

from mailmirror.application.ports.mail_store import FolderHandle
from mailmirror.domain.entities.message import MessageRef
from mailmirror.domain.errors import MailStoreError, StoreErrorKind
from mailmirror.infrastructure.email.providers.imap.auth import xoauth2_string
from mailmirror.infrastructure.email.providers.imap.client import ImapMailStore, imap_store_factory
from mailmirror.infrastructure.email.providers.imap.mapper import imap_date, parse_internaldate

FOLDER = FolderHandle(name=ALL_MAIL, message_count=3)

HEADERS_101 = (
    b"From: Alice Example <Alice@Example.com>\r\n"
    b"Subject: Quarterly report\r\n"
    b"Date: Mon, 05 Mar 2012 09:00:00 +0100\r\n"
    b"Message-ID: <abc@example.com>\r\n\r\n"
)
HEADERS_102 = b"Subject: no sender\r\n\r\n"


class FakeImapConnection:
    """Minimal stand-in for imaplib.IMAP4 recording every call."""

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.closed = False
        self.logged_out = False

    def select(self, mailbox, readonly=False):
        self.calls.append(("SELECT", mailbox, readonly))
        return self.responses.get("SELECT", ("OK", [b"3"]))

    def uid(self, command, *args):
        self.calls.append((command, *args))
        response = self.responses[command]
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True
        return ("OK", [b""])

    def logout(self):
        self.logged_out = True
        return ("BYE", [b""])


@pytest.fixture
def conn():
    return FakeImapConnection()


@pytest.fixture
def imap(conn):
    return ImapMailStore(conn, "alice@example.com")


class TestMapper:
    def test_imap_date(self):
        assert imap_date(dt(2012, 3, 5).date()) == "05-Mar-2012"

    def test_internaldate_converted_to_utc(self):
        meta = b'1 (UID 7 INTERNALDATE " 5-Mar-2012 10:00:00 +0100")'
        assert parse_internaldate(meta) == dt(2012, 3, 5, 9, 0)

    def test_internaldate_missing(self):
        assert parse_internaldate(b"1 (UID 7)") is None


class TestSearch:
    """Test SEARCH criteria and result parsing."""

    def test_unbounded(self, imap, conn):
        conn.responses["SEARCH"] = ("OK", [b"3 1 2"])

        refs = imap.search(FOLDER, dt(2012, 1, 1, 12, 0))

        assert conn.calls[-1] == ("SEARCH", None, "SINCE", "01-Jan-2012")
        assert refs == [MessageRef(ALL_MAIL, 3), MessageRef(ALL_MAIL, 1), MessageRef(ALL_MAIL, 2)]

    def test_bounded_at_midnight(self, imap, conn):
        conn.responses["SEARCH"] = ("OK", [b""])

        assert imap.search(FOLDER, dt(2012, 1, 1), dt(2012, 1, 31)) == []
        assert conn.calls[-1] == ("SEARCH", None, "SINCE", "01-Jan-2012", "BEFORE", "31-Jan-2012")

    def test_bounded_with_time_includes_last_day(self, imap, conn):
        conn.responses["SEARCH"] = ("OK", [b""])

        imap.search(FOLDER, dt(2012, 1, 1), dt(2012, 1, 31, 8, 0))

        assert conn.calls[-1][-1] == "01-Feb-2012"

    def test_aborted_connection_is_unusable(self, imap, conn):
        conn.responses["SEARCH"] = imaplib.IMAP4.abort("socket error: EOF")

        with pytest.raises(MailStoreError) as exc:
            imap.search(FOLDER, dt(2012, 1, 1))
        assert exc.value.kind is StoreErrorKind.FOLDER_UNUSABLE

    def test_no_response_is_unusable(self, imap, conn):
        conn.responses["SEARCH"] = ("NO", [b"nope"])

        with pytest.raises(MailStoreError) as exc:
            imap.list_all(FOLDER)
        assert exc.value.kind is StoreErrorKind.FOLDER_UNUSABLE


class TestFetch:
    """Test batched envelope and content fetches."""

    def test_envelopes_in_one_command(self, imap, conn):
        conn.responses["FETCH"] = ("OK", [
            (b'1 (UID 101 INTERNALDATE "05-Mar-2012 08:30:00 +0000" BODY[HEADER.FIELDS (FROM SUBJECT DATE MESSAGE-ID)] {150}', HEADERS_101),
            b")",
            (b'2 (UID 102 INTERNALDATE "06-Mar-2012 00:00:00 +0000" BODY[HEADER.FIELDS (FROM SUBJECT DATE MESSAGE-ID)] {24}', HEADERS_102),
            b")",
        ])

        result = imap.fetch_envelopes(FOLDER, [MessageRef(ALL_MAIL, 101), MessageRef(ALL_MAIL, 102)])

        fetches = [c for c in conn.calls if c[0] == "FETCH"]
        assert len(fetches) == 1
        assert fetches[0][1] == "101,102"

        first, second = result
        assert first.ref == MessageRef(ALL_MAIL, 101)
        assert first.sender == ["Alice Example <Alice@Example.com>"]
        assert first.subject == "Quarterly report"
        assert first.received_date == dt(2012, 3, 5, 8, 30)
        assert first.sent_date == dt(2012, 3, 5, 8, 0)
        assert first.message_ids == ["<abc@example.com>"]
        assert second.sender == []
        assert second.sent_date is None

    def test_no_refs_no_fetch(self, imap, conn):
        assert imap.fetch_envelopes(FOLDER, []) == []
        assert conn.calls == []

    def test_raw_content(self, imap, conn):
        conn.responses["FETCH"] = ("OK", [(b"1 (UID 101 BODY[] {5}", b"hello"), b")"])

        assert imap.get_raw_content(FOLDER, MessageRef(ALL_MAIL, 101)) == b"hello"
        assert conn.calls[-1] == ("FETCH", "101", "(BODY.PEEK[])")

    def test_vanished_message_is_gone(self, imap, conn):
        conn.responses["FETCH"] = ("OK", [None])

        with pytest.raises(MailStoreError) as exc:
            imap.get_raw_content(FOLDER, MessageRef(ALL_MAIL, 101))
        assert exc.value.kind is StoreErrorKind.MESSAGE_GONE

    def test_header_values(self, imap, conn):
        conn.responses["FETCH"] = ("OK", [(b"1 (UID 5 BODY[HEADER.FIELDS (MESSAGE-ID)] {30}", b"Message-ID: <d@x>\r\n\r\n"), b")"])

        assert imap.get_header(FOLDER, MessageRef("[Gmail]/Drafts", 5), "Message-ID") == ["<d@x>"]


class TestFolderAndConnection:
    def test_open_folder_selects_read_only_and_closes(self, imap, conn):
        with imap.open_folder(ALL_MAIL) as folder:
            assert folder == FolderHandle(ALL_MAIL, 3)
            assert conn.calls[0] == ("SELECT", '"[Gmail]/All Mail"', True)
        assert conn.closed

    def test_select_failure_is_unusable(self, imap, conn):
        conn.responses["SELECT"] = ("NO", [b"no such folder"])

        with pytest.raises(MailStoreError) as exc:
            with imap.open_folder("missing"):
                pass
        assert exc.value.kind is StoreErrorKind.FOLDER_UNUSABLE

    def test_close_logs_out_once(self, imap, conn):
        imap.close()
        imap.close()

        assert conn.logged_out
        with pytest.raises(MailStoreError):
            imap.list_all(FOLDER)


class TestStoreFactory:
    def test_no_credentials_gives_none(self):
        factory = imap_store_factory("example.com", authenticator=None)
        assert factory("alice") is None

    def test_login_failure_gives_none(self):
        class RefusingAuthenticator:
            def login(self, creds):
                raise imaplib.IMAP4.error("AUTHENTICATIONFAILED")

        factory = imap_store_factory("example.com", RefusingAuthenticator(), password="secret")
        assert factory("alice") is None

    def test_token_provider_is_used(self, conn):
        seen = []

        class RecordingAuthenticator:
            def login(self, creds):
                seen.append(creds)
                return conn

        factory = imap_store_factory(
            "example.com", RecordingAuthenticator(), token_provider=lambda email: f"token-for-{email}"
        )
        store = factory("alice")

        assert isinstance(store, ImapMailStore)
        assert seen[0].email == "alice@example.com"
        assert seen[0].oauth_token == "token-for-alice@example.com"

    def test_xoauth2_string(self):
        assert xoauth2_string("a@b.com", "tok") == b"user=a@b.com\x01auth=Bearer tok\x01\x01"
