"""One-shot mailbox backup: archive new mail for every configured user."""

from __future__ import annotations

import argparse
import sys

from loguru import logger

from mailmirror.application.use_cases.sync_mailboxes import SyncMailboxesUseCase, SyncReport
from mailmirror.domain.errors import ConfigurationError, RunLockedError
from mailmirror.infrastructure import FileArchiveWriter, FileCheckpointStore, RunLock, Settings, load_settings
from mailmirror.infrastructure.email.providers.imap import ImapAuthenticator, imap_store_factory


EXIT_OK = 0
EXIT_LOCKED = 1
EXIT_CONFIG = 2


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level.upper())


def build_use_case(settings: Settings, users: list[str] | None = None) -> SyncMailboxesUseCase:
    """Wire the IMAP store, local archive and checkpoint file from settings."""
    authenticator = ImapAuthenticator(settings.imap_host, settings.imap_port)
    password = settings.imap_password.get_secret_value() if settings.imap_password else None

    factory = imap_store_factory(
        domain=settings.domain,
        authenticator=authenticator,
        password=password,
        token_provider=lambda email: settings.token_for(email.partition("@")[0]),
    )

    return SyncMailboxesUseCase(
        users=settings.users,
        store_factory=factory,
        checkpoint_store=FileCheckpointStore(settings.timestamp_file),
        writer=FileArchiveWriter(settings.data_dir, settings.domain, settings.encoding),
        oldest_date=settings.oldest_date,
        ignore_from=settings.ignore_from,
        max_per_run=settings.max_per_run,
        fetch_window_days=settings.fetch_window_days,
        all_mail_folder=settings.all_mail_folder,
        drafts_folder=settings.drafts_folder or None,
        only_users=users,
    )


def print_summary(report: SyncReport) -> None:
    for result in report.users:
        status = "ok" if result.ok else f"FAILED ({result.error})"
        print(
            f"{result.user}: written={result.written} existing={result.existing} "
            f"skipped={result.skipped} {status}"
        )
    print(f"Archived {report.written} new messages ({report.existing} already present)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Archive mailboxes to local storage")
    parser.add_argument("settings", help="Settings file (key=value lines)")
    parser.add_argument("--max-per-run", type=int, default=None, help="Override max messages per user")
    parser.add_argument("--user", action="append", default=None, help="Only back up this user (repeatable)")
    parser.add_argument("--log-level", default=None, help="Override log level (DEBUG, INFO, ...)")
    args = parser.parse_args(argv)

    overrides = {}
    if args.max_per_run is not None:
        overrides["max_per_run"] = args.max_per_run

    try:
        settings = load_settings(args.settings, **overrides)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    configure_logging(args.log_level or settings.log_level)
    logger.info(f"Reading settings from {args.settings}")

    if args.user:
        unknown = [u for u in args.user if u not in settings.users]
        if unknown:
            print(f"Configuration error: users not configured: {', '.join(unknown)}", file=sys.stderr)
            return EXIT_CONFIG

    try:
        with RunLock(settings.lock_file):
            report = build_use_case(settings, args.user).run()
    except RunLockedError as e:
        logger.error(str(e))
        return EXIT_LOCKED

    print_summary(report)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
