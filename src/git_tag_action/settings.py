"""Action inputs loaded with pydantic-settings."""

import os
from collections.abc import Mapping
from urllib.parse import urlsplit

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from git_tag_action.platforms.base import PlatformKind

# Environment variables consulted for a token, by platform, in priority order
TOKEN_ENV_VARS: dict[PlatformKind, tuple[str, ...]] = {
    PlatformKind.GITHUB: ("GITHUB_TOKEN",),
    PlatformKind.GITEA: ("GITEA_TOKEN", "GITHUB_TOKEN"),
    PlatformKind.BITBUCKET: ("BITBUCKET_TOKEN",),
    PlatformKind.GENERIC: ("GITHUB_TOKEN", "GITEA_TOKEN", "BITBUCKET_TOKEN"),
    PlatformKind.AUTO: ("GITHUB_TOKEN", "GITEA_TOKEN", "BITBUCKET_TOKEN"),
}


class ConfigurationError(ValueError):
    """Exception raised for missing or malformed inputs."""

    pass


def _strip_or_none(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class Settings(BaseSettings):
    """Action configuration loaded from ``INPUT_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="INPUT_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    tag_name: str = Field(description="Name of the tag to create or update")

    tag_message: str | None = Field(
        default=None,
        description="Annotated tag message; omit for a lightweight tag",
    )

    tag_sha: str | None = Field(
        default=None,
        description="Commit to tag (default: HEAD of the default branch)",
    )

    repository: str | None = Field(
        default=None,
        description="Repository URL or owner/repo (default: current checkout)",
    )

    token: str | None = Field(
        default=None,
        description="API token (default: resolved from platform environment variables)",
    )

    update_existing: bool = Field(default=False, description="Update the tag if it already exists")

    gpg_sign: bool = Field(default=False, description="GPG-sign the tag (requires tag_message)")

    gpg_key_id: str | None = Field(default=None, description="GPG key to sign with")

    repo_type: PlatformKind = Field(
        default=PlatformKind.AUTO,
        description="Platform: github, gitea, bitbucket, generic or auto",
    )

    base_url: str | None = Field(default=None, description="API base URL for self-hosted instances")

    ignore_cert_errors: bool = Field(
        default=False,
        description="Skip TLS certificate verification",
    )

    force: bool = Field(default=False, description="Overwrite an existing tag")

    verbose: bool = Field(default=False, description="Log HTTP traffic and git commands")

    push_tag: bool = Field(default=True, description="Push locally created tags to origin")

    git_user_name: str | None = Field(default=None, description="Tagger name override")

    git_user_email: str | None = Field(default=None, description="Tagger email override")

    @field_validator("tag_name")
    @classmethod
    def _validate_tag_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("tag_name is required")
        if "/" in value:
            raise ValueError(f"tag_name must not contain '/': {value}")
        return value

    @field_validator(
        "tag_message",
        "tag_sha",
        "repository",
        "token",
        "base_url",
        "git_user_name",
        "git_user_email",
    )
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        return _strip_or_none(value)

    @field_validator("gpg_key_id")
    @classmethod
    def _validate_gpg_key_id(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            raise ValueError("gpg_key_id must not be blank")
        return value.strip() if value is not None else None

    @field_validator("repo_type", mode="before")
    @classmethod
    def _parse_repo_type(cls, value: object) -> object:
        if isinstance(value, str):
            return PlatformKind.parse(value)
        return value

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        parts = urlsplit(value)
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ValueError(f"base_url must be a valid http(s) URL: {value}")
        return value

    @model_validator(mode="after")
    def _validate_signing(self) -> "Settings":
        if self.gpg_sign and not self.tag_message:
            raise ValueError("tag_message is required when gpg_sign is enabled")
        return self


def _describe(error: ValidationError) -> str:
    """First validation failure as a one-line, human-readable message."""
    first = error.errors()[0]
    field = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "missing":
        return f"{field} is required"
    message = first.get("msg", str(error))
    if message.startswith("Value error, "):
        message = message[len("Value error, ") :]
    return message


def load_settings(**overrides: object) -> Settings:
    """Load and validate the action inputs.

    Args:
        **overrides: Field values that take precedence over the environment.

    Returns:
        Validated settings.

    Raises:
        ConfigurationError: If an input is missing or malformed.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(_describe(e)) from e


def resolve_token(
    explicit: str | None,
    platform: PlatformKind,
    env: Mapping[str, str] | None = None,
) -> str | None:
    """Pick the API token for a platform.

    Args:
        explicit: Token passed as an input; always wins.
        platform: Resolved (or still unresolved) platform.
        env: Environment to read fallbacks from (default: os.environ).

    Returns:
        The token, or None if none is available.
    """
    if explicit:
        return explicit
    env = os.environ if env is None else env
    for name in TOKEN_ENV_VARS.get(platform, TOKEN_ENV_VARS[PlatformKind.AUTO]):
        value = env.get(name)
        if value:
            return value
    return None
