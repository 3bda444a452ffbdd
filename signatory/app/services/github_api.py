"""
GitHub REST API client.

Thin async wrapper over the endpoints the signature engine consumes:
issue comments, repository contents, pull request commits and Actions
workflow runs. Payloads are validated into the boundary models in
``signatory.app.schemas.github`` here, once, so the engine never sees
raw JSON.

The collaborator protocols below are what the engine depends on.
GitHubClient implements all of them; tests substitute in-memory fakes.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx
from pydantic import SecretStr
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from signatory.app.schemas.github import (
    FileCommitResult,
    FileContent,
    IssueComment,
    PullRequest,
    PullRequestCommit,
    WorkflowList,
    WorkflowRun,
    WorkflowRunList,
)

logger = logging.getLogger("signatory.github_api")


# ----------------------------------------------------------------------
# Errors
# ----------------------------------------------------------------------

class GitHubApiError(RuntimeError):
    """Raised when the platform answers with a non-success status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(GitHubApiError):
    """The requested resource does not exist (HTTP 404)."""


class RevisionConflictError(GitHubApiError):
    """
    A revision-gated contents write was rejected because the revision
    is stale (HTTP 409).

    Callers must re-read the file and re-apply their change.
    """


# ----------------------------------------------------------------------
# Collaborator interfaces
# ----------------------------------------------------------------------

class CommentStore(Protocol):
    async def list_comments(self, issue_number: int) -> List[IssueComment]:
        ...

    async def create_comment(self, issue_number: int, body: str) -> IssueComment:
        ...

    async def get_comment(self, comment_id: int) -> IssueComment:
        ...

    async def update_comment(self, comment_id: int, body: str) -> IssueComment:
        ...


class FileStore(Protocol):
    async def get_file_content(self, path: str, ref: str) -> FileContent:
        ...

    async def create_or_update_file_contents(
        self,
        path: str,
        *,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> str:
        ...


class CommitSource(Protocol):
    async def list_pull_request_commits(self, number: int) -> List[PullRequestCommit]:
        ...


class WorkflowControl(Protocol):
    async def get_pull_request(self, number: int) -> PullRequest:
        ...

    async def list_repo_workflows(self, *, page: int, per_page: int) -> WorkflowList:
        ...

    async def list_workflow_runs(
        self,
        workflow_id: int,
        *,
        branch: str,
        event: str,
    ) -> WorkflowRunList:
        ...

    async def get_workflow_run(self, run_id: int) -> WorkflowRun:
        ...

    async def rerun_workflow(self, run_id: int) -> None:
        ...


# ----------------------------------------------------------------------
# REST client
# ----------------------------------------------------------------------

class GitHubClient:
    """
    Async client for one repository on the GitHub REST API.

    A run may hold two instances: one for the pull request's repository
    and one for a remote repository that stores the ledger.
    """

    API_VERSION = "2022-11-28"
    PER_PAGE = 100

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        token: SecretStr,
        owner: str,
        repo: str,
        api_url: str = "https://api.github.com",
    ):
        self.client = http_client
        self._token = token
        self.owner = owner
        self.repo = repo
        self.base_url = str(api_url).rstrip("/")

    # ------------------------------------------------------------------
    # Request helpers
    # ------------------------------------------------------------------

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": self.API_VERSION,
        }

    def _repo_url(self, path: str) -> str:
        return f"{self.base_url}/repos/{self.owner}/{self.repo}{path}"

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        response = await self.client.request(
            method,
            url,
            params=params,
            json=json,
            headers=self._headers(),
        )
        if response.is_success:
            return response

        status = response.status_code
        message = f"{method} {url} failed with HTTP {status}"

        if status == 404:
            raise NotFoundError(message, status_code=status)

        logger.warning(
            "github_request_failed",
            extra={
                "method": method,
                "url": url,
                "status_code": status,
                "response_body": response.text[:500],
            },
        )

        if status == 409:
            raise RevisionConflictError(message, status_code=status)
        raise GitHubApiError(message, status_code=status)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(min=1, max=10),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        # Reads are idempotent and safe to retry on transport errors
        return await self._request("GET", url, params=params)

    async def _get_all_pages(
        self,
        url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        page = 1
        while True:
            response = await self._get(
                url,
                params={**(params or {}), "per_page": self.PER_PAGE, "page": page},
            )
            batch = response.json()
            items.extend(batch)
            if len(batch) < self.PER_PAGE:
                return items
            page += 1

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def list_comments(self, issue_number: int) -> List[IssueComment]:
        raw = await self._get_all_pages(
            self._repo_url(f"/issues/{issue_number}/comments")
        )
        return [IssueComment.model_validate(item) for item in raw]

    async def create_comment(self, issue_number: int, body: str) -> IssueComment:
        response = await self._request(
            "POST",
            self._repo_url(f"/issues/{issue_number}/comments"),
            json={"body": body},
        )
        return IssueComment.model_validate(response.json())

    async def get_comment(self, comment_id: int) -> IssueComment:
        response = await self._get(self._repo_url(f"/issues/comments/{comment_id}"))
        return IssueComment.model_validate(response.json())

    async def update_comment(self, comment_id: int, body: str) -> IssueComment:
        response = await self._request(
            "PATCH",
            self._repo_url(f"/issues/comments/{comment_id}"),
            json={"body": body},
        )
        return IssueComment.model_validate(response.json())

    # ------------------------------------------------------------------
    # Contents
    # ------------------------------------------------------------------

    async def get_file_content(self, path: str, ref: str) -> FileContent:
        response = await self._get(
            self._repo_url(f"/contents/{quote(path)}"),
            params={"ref": ref},
        )
        return FileContent.model_validate(response.json())

    async def create_or_update_file_contents(
        self,
        path: str,
        *,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> str:
        """
        Create or update a file. ``content`` must already be base64.

        Returns the new blob SHA (the next revision identifier).
        """
        payload: Dict[str, Any] = {
            "message": message,
            "content": content,
            "branch": branch,
        }
        if sha is not None:
            payload["sha"] = sha

        response = await self._request(
            "PUT",
            self._repo_url(f"/contents/{quote(path)}"),
            json=payload,
        )
        result = FileCommitResult.model_validate(response.json())
        if result.content is None:
            raise GitHubApiError(
                f"Contents write for {path} returned no blob SHA",
                status_code=response.status_code,
            )
        return result.content.sha

    # ------------------------------------------------------------------
    # Pull requests
    # ------------------------------------------------------------------

    async def get_pull_request(self, number: int) -> PullRequest:
        response = await self._get(self._repo_url(f"/pulls/{number}"))
        return PullRequest.model_validate(response.json())

    async def list_pull_request_commits(self, number: int) -> List[PullRequestCommit]:
        raw = await self._get_all_pages(self._repo_url(f"/pulls/{number}/commits"))
        return [PullRequestCommit.model_validate(item) for item in raw]

    # ------------------------------------------------------------------
    # Actions workflows
    # ------------------------------------------------------------------

    async def list_repo_workflows(self, *, page: int, per_page: int) -> WorkflowList:
        response = await self._get(
            self._repo_url("/actions/workflows"),
            params={"page": page, "per_page": per_page},
        )
        return WorkflowList.model_validate(response.json())

    async def list_workflow_runs(
        self,
        workflow_id: int,
        *,
        branch: str,
        event: str,
    ) -> WorkflowRunList:
        response = await self._get(
            self._repo_url(f"/actions/workflows/{workflow_id}/runs"),
            params={"branch": branch, "event": event},
        )
        return WorkflowRunList.model_validate(response.json())

    async def get_workflow_run(self, run_id: int) -> WorkflowRun:
        response = await self._get(self._repo_url(f"/actions/runs/{run_id}"))
        return WorkflowRun.model_validate(response.json())

    async def rerun_workflow(self, run_id: int) -> None:
        # Requires a token with repo scope; the default workflow token is refused
        await self._request("POST", self._repo_url(f"/actions/runs/{run_id}/rerun"))
