"""
Run context for a single pull-request event.

Replaces process-wide mutable platform state: everything the engine
needs to know about the triggering event is resolved once, here, and
passed explicitly to each component.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunContext(BaseModel):
    """
    Immutable description of the event that triggered this run.
    """

    owner: str = Field(..., min_length=1)
    repo: str = Field(..., min_length=1)
    pull_request_number: int = Field(..., ge=1)

    event_name: str = Field(
        ...,
        description="Triggering event (pull_request_target, issue_comment, ...)",
    )
    workflow_name: str = Field(
        "",
        description="Name of the running workflow, used to locate its own runs",
    )
    actor: str = ""
    repository_id: Optional[int] = None
    server_url: str = "https://github.com"

    model_config = ConfigDict(frozen=True, extra="forbid")

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"

    def comment_url(self, comment_id: int) -> str:
        return (
            f"{self.server_url.rstrip('/')}/{self.owner}/{self.repo}"
            f"/pull/{self.pull_request_number}#issuecomment-{comment_id}"
        )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> "RunContext":
        """
        Load the run context from the GitHub Actions environment.

        The pull request number is taken from the event payload, which
        carries it under ``pull_request`` for pull request events and
        under ``issue`` for comment events.
        """
        repository = os.getenv("GITHUB_REPOSITORY", "")
        owner, _, repo = repository.partition("/")

        payload = cls._load_event_payload(os.getenv("GITHUB_EVENT_PATH"))

        number = (
            (payload.get("pull_request") or {}).get("number")
            or (payload.get("issue") or {}).get("number")
            or payload.get("number")
        )
        if number is None:
            raise RuntimeError(
                "Event payload does not reference a pull request; "
                "the signature check only runs on pull request events."
            )

        return cls(
            owner=owner,
            repo=repo,
            pull_request_number=int(number),
            event_name=os.getenv("GITHUB_EVENT_NAME", ""),
            workflow_name=os.getenv("GITHUB_WORKFLOW", ""),
            actor=os.getenv("GITHUB_ACTOR", ""),
            repository_id=(payload.get("repository") or {}).get("id"),
            server_url=os.getenv("GITHUB_SERVER_URL", "https://github.com"),
        )

    @staticmethod
    def _load_event_payload(event_path: Optional[str]) -> Dict[str, Any]:
        if not event_path:
            return {}
        path = Path(event_path)
        if not path.is_file():
            raise RuntimeError(f"GITHUB_EVENT_PATH does not exist: {path}")
        return json.loads(path.read_text(encoding="utf-8"))
