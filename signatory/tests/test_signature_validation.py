import httpx
import pytest

from signatory.app.checks.signing_comment import SigningCommentRecognizer
from signatory.app.coordinator.validation import SignatureValidationEngine
from signatory.app.schemas.signatures import (
    ContributorIdentity,
    DocumentMode,
    InvalidationReason,
    Ledger,
)
from signatory.tests.fixtures.github_fakes import (
    BOT_LOGIN,
    CAA_PHRASE,
    FakeGitHub,
    make_record,
    server_error,
)

pytestmark = pytest.mark.anyio


ALICE = ContributorIdentity(name="alice", user_id=1)
BOB = ContributorIdentity(name="bob", user_id=2)


def _engine(github: FakeGitHub) -> SignatureValidationEngine:
    return SignatureValidationEngine(
        comments=github,
        recognizer=SigningCommentRecognizer(bot_login=BOT_LOGIN, mode=DocumentMode.CAA),
    )


async def test_intact_signature_stays_valid():
    github = FakeGitHub()
    github.add_comment("alice", 1, CAA_PHRASE, comment_id=42)
    ledger = Ledger(signed_contributors=[make_record("alice", 1, comment_id=42)])

    assert await _engine(github).validate(ledger, [ALICE]) == []


async def test_deleted_comment_is_detected():
    github = FakeGitHub()
    ledger = Ledger(signed_contributors=[make_record("alice", 1, comment_id=42)])

    (invalid,) = await _engine(github).validate(ledger, [ALICE])

    assert invalid.signer.name == "alice"
    assert invalid.signer.comment_id == 42
    assert invalid.reason is InvalidationReason.COMMENT_DELETED


async def test_author_change_is_an_edit_even_if_phrase_matches():
    github = FakeGitHub()
    github.add_comment("mallory", 66, CAA_PHRASE, comment_id=42)
    ledger = Ledger(signed_contributors=[make_record("alice", 1, comment_id=42)])

    (invalid,) = await _engine(github).validate(ledger, [ALICE])

    assert invalid.reason is InvalidationReason.COMMENT_EDITED


async def test_removed_phrase_is_an_edit():
    github = FakeGitHub()
    github.add_comment("alice", 1, CAA_PHRASE, comment_id=42)
    github.edit_comment(42, "never mind")
    ledger = Ledger(signed_contributors=[make_record("alice", 1, comment_id=42)])

    (invalid,) = await _engine(github).validate(ledger, [ALICE])

    assert invalid.reason is InvalidationReason.COMMENT_EDITED


@pytest.mark.parametrize(
    "error",
    [
        server_error(),
        httpx.ReadTimeout("timed out"),
    ],
)
async def test_fetch_errors_are_unverifiable(error):
    github = FakeGitHub()
    github.add_comment("alice", 1, CAA_PHRASE, comment_id=42)
    github.fail_get_comment[42] = error
    ledger = Ledger(signed_contributors=[make_record("alice", 1, comment_id=42)])

    (invalid,) = await _engine(github).validate(ledger, [ALICE])

    assert invalid.reason is InvalidationReason.UNVERIFIABLE


async def test_missing_provenance_is_unverifiable():
    github = FakeGitHub()
    ledger = Ledger(
        signed_contributors=[make_record("alice", 1, comment_id=None, pull_request_no=None)]
    )

    (invalid,) = await _engine(github).validate(ledger, [ALICE])

    assert invalid.reason is InvalidationReason.UNVERIFIABLE


async def test_only_active_records_of_current_contributors_are_checked():
    github = FakeGitHub()
    already_invalid = make_record("alice", 1, comment_id=42).invalidate(
        at="2024-02-01T00:00:00.000Z",
        reason=InvalidationReason.COMMENT_DELETED,
    )
    other_contributor = make_record("carol", 3, comment_id=43)
    ledger = Ledger(signed_contributors=[already_invalid, other_contributor])

    # Neither comment exists, but neither record is in the frontier
    assert await _engine(github).validate(ledger, [ALICE, BOB]) == []
