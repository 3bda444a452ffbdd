"""
Centralized configuration for the signature check.

Pydantic v2 settings management: values are resolved once at startup
from the GitHub Actions input variables (``INPUT_<NAME>``, hyphens
preserved) or from ``SIGNATORY_<NAME>`` fallbacks, validated strictly,
and treated as immutable for the rest of the run.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from signatory.app.schemas.signatures import DocumentMode


def _action_input(name: str) -> AliasChoices:
    """Environment names for an action input such as ``path-to-document``."""
    return AliasChoices(
        f"INPUT_{name.upper()}",
        f"SIGNATORY_{name.upper().replace('-', '_')}",
    )


# -------------------------------------------------------------------------
# Settings Model
# -------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Signature check settings parsed from the environment.

    Fails fast if the API token is missing or if a remote ledger is
    configured without the personal access token it requires.
    """

    # ---------------------------------------------------------------------
    # Credentials
    # ---------------------------------------------------------------------

    github_token: Annotated[
        SecretStr,
        Field(
            validation_alias=AliasChoices(
                "github_token",
                "GITHUB_TOKEN",
                "INPUT_GITHUB-TOKEN",
                "SIGNATORY_GITHUB_TOKEN",
            ),
            description="Token for the pull request's repository",
        ),
    ]

    personal_access_token: Annotated[
        Optional[SecretStr],
        Field(
            default=None,
            validation_alias=AliasChoices(
                "personal_access_token",
                "PERSONAL_ACCESS_TOKEN",
                "INPUT_PERSONAL-ACCESS-TOKEN",
                "SIGNATORY_PERSONAL_ACCESS_TOKEN",
            ),
            description=(
                "Token with repo scope. Required for a remote ledger "
                "repository and for workflow re-runs."
            ),
        ),
    ]

    api_url: Annotated[
        AnyHttpUrl,
        Field(
            default="https://api.github.com",
            validation_alias=AliasChoices(
                "api_url", "GITHUB_API_URL", "SIGNATORY_API_URL"
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Ledger location
    # ---------------------------------------------------------------------

    path_to_signatures: Annotated[
        str,
        Field(
            default="signatures/version1/cla.json",
            min_length=1,
            validation_alias=_action_input("path-to-signatures"),
        ),
    ]

    branch: Annotated[
        str,
        Field(default="main", min_length=1, validation_alias=_action_input("branch")),
    ]

    remote_organization_name: Annotated[
        Optional[str],
        Field(default=None, validation_alias=_action_input("remote-organization-name")),
    ]

    remote_repository_name: Annotated[
        Optional[str],
        Field(default=None, validation_alias=_action_input("remote-repository-name")),
    ]

    create_file_commit_message: Annotated[
        Optional[str],
        Field(default=None, validation_alias=_action_input("create-file-commit-message")),
    ]

    signed_commit_message: Annotated[
        Optional[str],
        Field(
            default=None,
            validation_alias=_action_input("signed-commit-message"),
            description=(
                "Template for ledger commits. Supports $contributorName, "
                "$owner, $repo and $pullRequestNo."
            ),
        ),
    ]

    # ---------------------------------------------------------------------
    # Signing rules
    # ---------------------------------------------------------------------

    path_to_document: Annotated[
        Optional[str],
        Field(
            default=None,
            validation_alias=_action_input("path-to-document"),
            description="URL of the governing agreement document",
        ),
    ]

    custom_pr_sign_comment: Annotated[
        str,
        Field(default="", validation_alias=_action_input("custom-pr-sign-comment")),
    ]

    use_dco_flag: Annotated[
        str,
        Field(
            default="false",
            validation_alias=_action_input("use-dco-flag"),
            description='"true" for DCO, "false" for CAA, anything else fails closed',
        ),
    ]

    allowlist: Annotated[
        str,
        Field(
            default="",
            validation_alias=_action_input("allowlist"),
            description="Comma-separated handles (wildcards allowed) exempt from signing",
        ),
    ]

    bot_login: Annotated[
        str,
        Field(default="github-actions[bot]", validation_alias=_action_input("bot-login")),
    ]

    # ---------------------------------------------------------------------
    # Diagnostics
    # ---------------------------------------------------------------------

    log_level: Annotated[
        str,
        Field(default="INFO", validation_alias=_action_input("log-level")),
    ]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
        frozen=True,
    )

    # ---------------------------------------------------------------------
    # Validators
    # ---------------------------------------------------------------------

    @field_validator("use_dco_flag")
    @classmethod
    def normalize_dco_flag(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("custom_pr_sign_comment")
    @classmethod
    def strip_sign_comment(cls, v: str) -> str:
        return v.strip()

    @field_validator(
        "path_to_document",
        "remote_organization_name",
        "remote_repository_name",
        "create_file_commit_message",
        "signed_commit_message",
    )
    @classmethod
    def blank_as_unset(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unsupported log level '{v}'")
        return level

    @model_validator(mode="after")
    def remote_ledger_requires_pat(self) -> "Settings":
        if self.is_remote_ledger and self.personal_access_token is None:
            raise ValueError(
                "remote-organization-name or remote-repository-name is set "
                "but PERSONAL_ACCESS_TOKEN is not configured."
            )
        return self

    # ---------------------------------------------------------------------
    # Derived values
    # ---------------------------------------------------------------------

    @property
    def document_mode(self) -> DocumentMode:
        return DocumentMode.from_flag(self.use_dco_flag)

    @property
    def is_remote_ledger(self) -> bool:
        return bool(self.remote_organization_name or self.remote_repository_name)

    @property
    def allowlist_patterns(self) -> List[str]:
        return [p.strip() for p in self.allowlist.split(",") if p.strip()]

    def ledger_token(self) -> SecretStr:
        if self.is_remote_ledger and self.personal_access_token is not None:
            return self.personal_access_token
        return self.github_token

    def workflow_token(self) -> SecretStr:
        # Re-run API calls need a PAT; fall back to the workflow token
        return self.personal_access_token or self.github_token


# -------------------------------------------------------------------------
# Settings Provider
# -------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings singleton for the process."""
    return Settings()
