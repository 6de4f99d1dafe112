from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional
import imaplib

GMAIL_IMAP_HOST = "imap.gmail.com"
GMAIL_IMAP_PORT = 993

# email -> bearer token, or None when no token can be obtained
TokenProvider = Callable[[str], Optional[str]]


@dataclass(frozen=True)
class ImapCredentials:
    """
    Represents credentials for a single mailbox. Exactly one of
    password / oauth_token is expected to be set.
    """
    email: str
    password: Optional[str] = None
    oauth_token: Optional[str] = None


def xoauth2_string(email: str, token: str) -> bytes:
    return f"user={email}\x01auth=Bearer {token}\x01\x01".encode()


class ImapAuthenticator:
    """
    Responsible ONLY for establishing an authenticated IMAP connection.
    No folder logic, no fetching, no parsing.
    """

    def __init__(self, host: str = GMAIL_IMAP_HOST, port: int = GMAIL_IMAP_PORT) -> None:
        self.host = host
        self.port = port

    def login(self, creds: ImapCredentials) -> imaplib.IMAP4_SSL:
        """
        Returns an authenticated IMAP4_SSL connection, using XOAUTH2 when a
        bearer token is available and a plain LOGIN otherwise.
        """
        conn = imaplib.IMAP4_SSL(host=self.host, port=self.port)
        try:
            if creds.oauth_token:
                conn.authenticate("XOAUTH2", lambda _: xoauth2_string(creds.email, creds.oauth_token))
            else:
                conn.login(creds.email, creds.password or "")
        except Exception:
            conn.shutdown()
            raise
        return conn
