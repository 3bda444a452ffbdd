"""
GitHub REST API boundary schemas.

Payloads returned by the platform are decoded into these models once,
inside the API client. Only the fields the signature engine relies on
are declared; everything else the API sends is ignored.

These models are transport contracts, not domain records. Domain code
works with the records in ``signatory.app.schemas.signatures``.
"""

from __future__ import annotations

import base64
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class GitHubUser(BaseModel):
    login: str
    id: int
    type: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class IssueComment(BaseModel):
    """A pull-request (issue) comment."""

    id: int
    body: Optional[str] = None
    user: Optional[GitHubUser] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    html_url: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")

    @property
    def author_login(self) -> Optional[str]:
        return self.user.login if self.user is not None else None


class FileContent(BaseModel):
    """
    Repository file contents.

    ``sha`` is the blob SHA, used as the revision identifier for the
    next revision-gated write.
    """

    path: Optional[str] = None
    sha: str
    content: str = ""
    encoding: str = "base64"

    model_config = ConfigDict(frozen=True, extra="ignore")

    def decoded_text(self) -> str:
        if self.encoding != "base64":
            raise ValueError(f"Unsupported content encoding: {self.encoding}")
        # GitHub wraps base64 payloads at 60 columns
        return base64.b64decode("".join(self.content.split())).decode("utf-8")


class FileCommitContent(BaseModel):
    sha: str

    model_config = ConfigDict(frozen=True, extra="ignore")


class FileCommitResult(BaseModel):
    """Response of a contents create/update call."""

    content: Optional[FileCommitContent] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class PullRequestHead(BaseModel):
    ref: str
    sha: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class PullRequest(BaseModel):
    number: int
    head: PullRequestHead

    model_config = ConfigDict(frozen=True, extra="ignore")


class GitActor(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class GitCommit(BaseModel):
    author: Optional[GitActor] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class PullRequestCommit(BaseModel):
    """
    A commit on a pull request.

    ``author`` is the linked platform account and is ``None`` when the
    commit author's email is not linked to any account.
    """

    sha: str
    author: Optional[GitHubUser] = None
    commit: GitCommit = Field(default_factory=GitCommit)

    model_config = ConfigDict(frozen=True, extra="ignore")


class Workflow(BaseModel):
    id: int
    name: str

    model_config = ConfigDict(frozen=True, extra="ignore")


class WorkflowList(BaseModel):
    total_count: int = 0
    workflows: List[Workflow] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="ignore")


class WorkflowRun(BaseModel):
    id: int
    event: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None

    model_config = ConfigDict(frozen=True, extra="ignore")


class WorkflowRunList(BaseModel):
    total_count: int = 0
    workflow_runs: List[WorkflowRun] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True, extra="ignore")
