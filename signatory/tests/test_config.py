import json
import os

import pytest
from pydantic import ValidationError

from signatory.app.config import Settings
from signatory.app.context import RunContext
from signatory.app.schemas.signatures import DocumentMode


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in list(os.environ):
        if name.upper().startswith(("INPUT_", "SIGNATORY_", "GITHUB_", "PERSONAL_ACCESS_TOKEN")):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("GITHUB_TOKEN", "ghs_test")


def _settings() -> Settings:
    return Settings(_env_file=None)


def test_defaults():
    settings = _settings()

    assert settings.github_token.get_secret_value() == "ghs_test"
    assert settings.path_to_signatures == "signatures/version1/cla.json"
    assert settings.branch == "main"
    assert settings.bot_login == "github-actions[bot]"
    assert settings.document_mode is DocumentMode.CAA
    assert settings.is_remote_ledger is False
    assert settings.ledger_token() == settings.github_token


def test_action_inputs_are_read_with_hyphens(monkeypatch):
    monkeypatch.setenv("INPUT_USE-DCO-FLAG", "  TRUE ")
    monkeypatch.setenv("INPUT_PATH-TO-DOCUMENT", "https://github.com/octo-org/widgets/blob/main/DCO.md")
    monkeypatch.setenv("INPUT_ALLOWLIST", "dependabot*, renovate[bot] ,")
    monkeypatch.setenv("INPUT_SIGNED-COMMIT-MESSAGE", "   ")

    settings = _settings()

    assert settings.document_mode is DocumentMode.DCO
    assert settings.path_to_document == "https://github.com/octo-org/widgets/blob/main/DCO.md"
    assert settings.allowlist_patterns == ["dependabot*", "renovate[bot]"]
    assert settings.signed_commit_message is None


def test_fallback_names_are_accepted(monkeypatch):
    monkeypatch.setenv("SIGNATORY_BRANCH", "signatures")
    monkeypatch.setenv("SIGNATORY_LOG_LEVEL", "debug")

    settings = _settings()

    assert settings.branch == "signatures"
    assert settings.log_level == "DEBUG"


def test_unrecognized_dco_flag_fails_closed(monkeypatch):
    monkeypatch.setenv("INPUT_USE-DCO-FLAG", "yes")

    assert _settings().document_mode is DocumentMode.UNRECOGNIZED


def test_remote_ledger_requires_personal_access_token(monkeypatch):
    monkeypatch.setenv("INPUT_REMOTE-ORGANIZATION-NAME", "octo-legal")

    with pytest.raises(ValidationError):
        _settings()

    monkeypatch.setenv("PERSONAL_ACCESS_TOKEN", "ghp_remote")
    settings = _settings()

    assert settings.is_remote_ledger is True
    assert settings.ledger_token().get_secret_value() == "ghp_remote"
    assert settings.workflow_token().get_secret_value() == "ghp_remote"


def test_unknown_log_level_is_rejected(monkeypatch):
    monkeypatch.setenv("INPUT_LOG-LEVEL", "LOUD")

    with pytest.raises(ValidationError):
        _settings()


def test_missing_token_is_rejected(monkeypatch):
    monkeypatch.delenv("GITHUB_TOKEN")

    with pytest.raises(ValidationError):
        _settings()


def test_run_context_from_comment_event(monkeypatch, tmp_path):
    event_path = tmp_path / "event.json"
    event_path.write_text(
        json.dumps({"issue": {"number": 42}, "repository": {"id": 1296269}}),
        encoding="utf-8",
    )
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(event_path))
    monkeypatch.setenv("GITHUB_EVENT_NAME", "issue_comment")
    monkeypatch.setenv("GITHUB_WORKFLOW", "CLA Assistant")
    monkeypatch.setenv("GITHUB_ACTOR", "alice")

    context = RunContext.from_env()

    assert context.repository == "octo-org/widgets"
    assert context.pull_request_number == 42
    assert context.repository_id == 1296269
    assert context.comment_url(7) == "https://github.com/octo-org/widgets/pull/42#issuecomment-7"


def test_run_context_requires_pull_request(monkeypatch, tmp_path):
    event_path = tmp_path / "event.json"
    event_path.write_text(json.dumps({"ref": "refs/heads/main"}), encoding="utf-8")
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo-org/widgets")
    monkeypatch.setenv("GITHUB_EVENT_PATH", str(event_path))

    with pytest.raises(RuntimeError):
        RunContext.from_env()
