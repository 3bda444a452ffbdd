"""
Status-check re-run control.

Comment events (``issue_comment``) produce a status check that is
detached from the one the pull request's merge gate inspects, which
belongs to the last ``pull_request_target`` run. After a new signature
or a detected tampering, that run is re-executed so the gate reflects
the current signature state.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from signatory.app.context import RunContext
from signatory.app.services.github_api import GitHubApiError, WorkflowControl

logger = logging.getLogger("signatory.workflow_rerun")


PR_TARGET_EVENT = "pull_request_target"


class WorkflowNotFoundError(RuntimeError):
    """The running workflow could not be located in its repository."""


class WorkflowRerunner:

    WORKFLOWS_PER_PAGE = 30

    def __init__(self, *, workflows: WorkflowControl, context: RunContext) -> None:
        self._workflows = workflows
        self._context = context

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def rerun_last_workflow_if_required(self) -> bool:
        """
        Re-run the last ``pull_request_target`` run if it failed.

        Used after new signatures are recorded from a comment event.
        Returns whether a re-run was requested.
        """
        if self._context.event_name == "pull_request":
            logger.debug("rerun_not_required", extra={"event": "pull_request"})
            return False

        try:
            runs = await self._list_pr_target_runs()
            if not runs.workflow_runs:
                return False

            run_id = runs.workflow_runs[0].id
            run = await self._workflows.get_workflow_run(run_id)
        except (GitHubApiError, httpx.HTTPError) as exc:
            self._log_failure(exc)
            return False

        if run.conclusion != "failure":
            return False

        return await self._rerun(run_id)

    async def rerun_last_pr_workflow(self) -> bool:
        """
        Re-run the most recent ``pull_request_target`` run.

        Used when tampering is detected. Returns whether a re-run was
        requested.
        """
        if self._context.event_name in {"pull_request", PR_TARGET_EVENT}:
            logger.debug(
                "rerun_not_required",
                extra={"event": self._context.event_name},
            )
            return False

        try:
            runs = await self._list_pr_target_runs()
        except (GitHubApiError, httpx.HTTPError) as exc:
            self._log_failure(exc)
            return False

        pr_run = next(
            (run for run in runs.workflow_runs if run.event == PR_TARGET_EVENT),
            None,
        )
        if pr_run is None:
            logger.debug("no_pull_request_target_run_found")
            return False

        logger.info("tampering_rerun_requested", extra={"run_id": pr_run.id})
        return await self._rerun(pr_run.id)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _list_pr_target_runs(self):
        pull_request = await self._workflows.get_pull_request(
            self._context.pull_request_number
        )
        workflow_id = await self._get_self_workflow_id()
        return await self._workflows.list_workflow_runs(
            workflow_id,
            branch=pull_request.head.ref,
            event=PR_TARGET_EVENT,
        )

    async def _get_self_workflow_id(self) -> int:
        page = 1
        while True:
            listing = await self._workflows.list_repo_workflows(
                page=page,
                per_page=self.WORKFLOWS_PER_PAGE,
            )
            for workflow in listing.workflows:
                if workflow.name == self._context.workflow_name:
                    return workflow.id

            if listing.total_count <= page * self.WORKFLOWS_PER_PAGE:
                break
            page += 1

        raise WorkflowNotFoundError(
            f"Unable to locate workflow '{self._context.workflow_name}' "
            f"in {self._context.repository}; cannot trigger a re-run."
        )

    async def _rerun(self, run_id: int) -> bool:
        try:
            await self._workflows.rerun_workflow(run_id)
        except (GitHubApiError, httpx.HTTPError) as exc:
            self._log_failure(exc, run_id=run_id)
            return False
        logger.info("workflow_rerun_requested", extra={"run_id": run_id})
        return True

    @staticmethod
    def _log_failure(exc: Exception, run_id: Optional[int] = None) -> None:
        logger.warning(
            "workflow_rerun_failed",
            extra={
                "run_id": run_id,
                "error_type": type(exc).__name__,
                "status_code": getattr(exc, "status_code", None),
            },
        )
