"""IMAP mail store (Gmail by default)."""

from mailmirror.infrastructure.email.providers.imap.auth import (
    GMAIL_IMAP_HOST,
    GMAIL_IMAP_PORT,
    ImapAuthenticator,
    ImapCredentials,
)
from mailmirror.infrastructure.email.providers.imap.client import ImapMailStore, imap_store_factory

__all__ = [
    "GMAIL_IMAP_HOST",
    "GMAIL_IMAP_PORT",
    "ImapAuthenticator",
    "ImapCredentials",
    "ImapMailStore",
    "imap_store_factory",
]
