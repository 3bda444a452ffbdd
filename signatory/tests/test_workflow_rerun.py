import httpx
import pytest

from signatory.app.schemas.github import Workflow, WorkflowRun, WorkflowRunList
from signatory.app.services.github_api import GitHubApiError
from signatory.app.services.workflow_rerun import (
    WorkflowNotFoundError,
    WorkflowRerunner,
)
from signatory.tests.fixtures.github_fakes import FakeGitHub, make_context, server_error

pytestmark = pytest.mark.anyio


def _github_with_runs(*runs: WorkflowRun) -> FakeGitHub:
    github = FakeGitHub()
    github.workflows = [
        Workflow(id=100 + i, name=f"Workflow {i}") for i in range(45)
    ] + [Workflow(id=7, name="CLA Assistant")]
    github.runs = list(runs)
    return github


async def test_failed_pr_target_run_is_rerun_after_new_signature():
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_workflow_if_required() is True
    assert github.reruns == [501]
    assert github.run_queries == [
        {"workflow_id": 7, "branch": "feature/widgets", "event": "pull_request_target"}
    ]


async def test_successful_run_is_left_alone():
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="success"),
    )
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_workflow_if_required() is False
    assert github.reruns == []


async def test_pull_request_event_never_reruns():
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    rerunner = WorkflowRerunner(
        workflows=github,
        context=make_context(event_name="pull_request"),
    )

    assert await rerunner.rerun_last_workflow_if_required() is False
    assert await rerunner.rerun_last_pr_workflow() is False
    assert github.reruns == []


async def test_tampering_reruns_latest_pr_target_run():
    github = _github_with_runs(
        WorkflowRun(id=502, event="pull_request_target", conclusion="success"),
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_pr_workflow() is True
    assert github.reruns == [502]


async def test_tampering_rerun_skipped_on_pr_target_event():
    github = _github_with_runs(
        WorkflowRun(id=502, event="pull_request_target", conclusion="success"),
    )
    rerunner = WorkflowRerunner(
        workflows=github,
        context=make_context(event_name="pull_request_target"),
    )

    assert await rerunner.rerun_last_pr_workflow() is False


async def test_rerun_failure_is_not_fatal():
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    github.fail_rerun = server_error("Resource not accessible by integration")
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_workflow_if_required() is False


async def test_unknown_workflow_name_is_fatal():
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    rerunner = WorkflowRerunner(
        workflows=github,
        context=make_context(workflow_name="Renamed Workflow"),
    )

    with pytest.raises(WorkflowNotFoundError):
        await rerunner.rerun_last_workflow_if_required()


@pytest.mark.parametrize(
    "error",
    [
        GitHubApiError("forbidden", status_code=403),
        httpx.ConnectError("unreachable"),
    ],
)
async def test_run_listing_failure_is_not_fatal(error):
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    github.fail_list_runs = error
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_workflow_if_required() is False
    assert await rerunner.rerun_last_pr_workflow() is False
    assert github.reruns == []


async def test_run_lookup_failure_is_not_fatal():
    # Listed run no longer exists when fetched
    github = _github_with_runs(
        WorkflowRun(id=501, event="pull_request_target", conclusion="failure"),
    )
    listed = list(github.runs)
    github.runs = []

    async def list_runs(workflow_id, *, branch, event):
        return WorkflowRunList(total_count=len(listed), workflow_runs=listed)

    github.list_workflow_runs = list_runs
    rerunner = WorkflowRerunner(workflows=github, context=make_context())

    assert await rerunner.rerun_last_workflow_if_required() is False
