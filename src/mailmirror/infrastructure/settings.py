"""Application settings using Pydantic Settings for configuration management."""

import os
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Annotated, Any

from pydantic import AliasChoices, Field, SecretStr, ValidationError, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from mailmirror.domain.entities.archived_file import Encoding
from mailmirror.domain.errors import ConfigurationError
from mailmirror.infrastructure.archive.writer import encoding_from_flags
from mailmirror.infrastructure.checkpoints.file_store import as_utc
from mailmirror.infrastructure.email.providers.imap.auth import GMAIL_IMAP_HOST, GMAIL_IMAP_PORT


DEFAULT_OLDEST_DATE = datetime(2012, 1, 1, tzinfo=timezone.utc)
OLDEST_DATE_FORMATS = ("%Y/%m/%d", "%Y-%m-%d")


def _alias(*names: str) -> AliasChoices:
    return AliasChoices(*names)


class Settings(BaseSettings):
    """Archiver settings loaded from a key=value settings file and the environment.

    Keys are accepted in snake_case or in the camelCase spelling of the
    Java-style properties files (``maxPerRun``, ``ignoreFrom``, ...).
    """

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # Application
    log_level: str = Field(default="INFO", validation_alias=_alias("log_level", "logLevel"))

    # Mailboxes
    users: Annotated[list[str], NoDecode] = Field(validation_alias=_alias("users"))
    domain: str = Field(validation_alias=_alias("domain"))
    ignore_from: Annotated[list[str], NoDecode] = Field(
        default_factory=list, validation_alias=_alias("ignore_from", "ignoreFrom")
    )

    # Run limits
    max_per_run: int = Field(default=1000, gt=0, validation_alias=_alias("max_per_run", "maxPerRun"))
    fetch_window_days: int = Field(default=30, gt=0, validation_alias=_alias("fetch_window_days", "fetchWindowDays"))
    oldest_date: datetime = Field(default=DEFAULT_OLDEST_DATE, validation_alias=_alias("oldest_date", "oldestDate"))

    # Output
    zip: bool = False
    gzip: bool = False
    data_dir: Path = Field(validation_alias=_alias("data_dir", "dataDir"))
    timestamp_file: Path = Field(validation_alias=_alias("timestamp_file", "timestampFile"))

    # IMAP
    imap_host: str = Field(default=GMAIL_IMAP_HOST, validation_alias=_alias("imap_host", "imapHost"))
    imap_port: int = Field(default=GMAIL_IMAP_PORT, validation_alias=_alias("imap_port", "imapPort"))
    all_mail_folder: str = Field(default="[Gmail]/All Mail", validation_alias=_alias("all_mail_folder", "allMailFolder"))
    drafts_folder: str = Field(default="[Gmail]/Drafts", validation_alias=_alias("drafts_folder", "draftsFolder"))
    imap_password: SecretStr | None = Field(default=None, validation_alias=_alias("imap_password", "imapPassword"))
    oauth_token: SecretStr | None = Field(default=None, validation_alias=_alias("oauth_token", "oauthToken"))
    # user -> bearer token, from "alice:token,bob:token"
    oauth_tokens: Annotated[dict[str, SecretStr], NoDecode] = Field(
        default_factory=dict, validation_alias=_alias("oauth_tokens", "oauthTokens")
    )

    @field_validator("users", "ignore_from", mode="before")
    @classmethod
    def _split_list(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @field_validator("ignore_from")
    @classmethod
    def _lower_addresses(cls, value: list[str]) -> list[str]:
        return [v.lower() for v in value]

    @field_validator("oauth_tokens", mode="before")
    @classmethod
    def _split_tokens(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        tokens = {}
        for entry in filter(None, (e.strip() for e in value.split(","))):
            user, _, token = (part.strip() for part in entry.partition(":"))
            if not user or not token:
                raise ValueError(f"oauth_tokens entry must be user:token, got {user!r}")
            tokens[user] = token
        return tokens

    @field_validator("users")
    @classmethod
    def _require_users(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("at least one user is required")
        return value

    @field_validator("oldest_date", mode="before")
    @classmethod
    def _parse_oldest_date(cls, value: Any) -> Any:
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        if isinstance(value, str):
            for fmt in OLDEST_DATE_FORMATS:
                try:
                    return datetime.strptime(value.strip(), fmt)
                except ValueError:
                    continue
        return value

    @field_validator("oldest_date")
    @classmethod
    def _oldest_date_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def _single_compression(self) -> "Settings":
        if self.zip and self.gzip:
            raise ValueError("Both zip and gzip compression specified. Choose one")
        return self

    @model_validator(mode="after")
    def _tokens_match_users(self) -> "Settings":
        # a bearer token authorizes exactly one mailbox
        if self.oauth_token is not None and len(self.users) > 1:
            raise ValueError("oauth_token only works with a single user, use oauth_tokens (user:token,...)")
        unknown = sorted(set(self.oauth_tokens) - set(self.users))
        if unknown:
            raise ValueError(f"oauth_tokens for users not configured: {', '.join(unknown)}")
        return self

    @computed_field
    @property
    def encoding(self) -> Encoding:
        """Output encoding derived from the zip/gzip flags."""
        return encoding_from_flags(self.zip, self.gzip)

    @computed_field
    @property
    def lock_file(self) -> Path:
        return self.timestamp_file.with_name(self.timestamp_file.name + ".lock")

    def token_for(self, user: str) -> str | None:
        """Bearer token for ``user``, or None to fall back to the password."""
        token = self.oauth_tokens.get(user) or self.oauth_token
        return token.get_secret_value() if token else None


def load_settings(path: str | Path | None = None, **overrides: Any) -> Settings:
    """Load settings from ``path`` (key=value lines) plus the environment.

    Raises ConfigurationError if the file is missing or unreadable, or the
    values do not validate.
    """
    if path is not None:
        path = Path(path)
        if not path.is_file() or not os.access(path, os.R_OK):
            raise ConfigurationError(f"Can't read from settings file {path.absolute()}")

    try:
        return Settings(_env_file=path, **overrides)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}") from e
