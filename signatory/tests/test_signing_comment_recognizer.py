import pytest

from signatory.app.checks.signing_comment import (
    SigningCommentRecognizer,
    normalize_comment,
)
from signatory.app.schemas.signatures import DocumentMode
from signatory.tests.fixtures.github_fakes import BOT_LOGIN, CAA_PHRASE, DCO_PHRASE


def _recognizer(mode: DocumentMode, custom_phrase: str = "") -> SigningCommentRecognizer:
    return SigningCommentRecognizer(
        bot_login=BOT_LOGIN,
        mode=mode,
        custom_phrase=custom_phrase,
    )


def test_custom_phrase_is_case_insensitive_exact_match():
    recognizer = _recognizer(DocumentMode.CAA, custom_phrase="I Agree")

    assert recognizer.is_signing_comment("i agree", "alice") is True
    assert recognizer.is_signing_comment("  I AGREE \n", "alice") is True
    assert recognizer.is_signing_comment("I agree to this", "alice") is False


def test_custom_phrase_replaces_canonical_phrase():
    recognizer = _recognizer(DocumentMode.CAA, custom_phrase="I Agree")

    assert recognizer.is_signing_comment(CAA_PHRASE, "alice") is False


def test_dco_mode_tolerates_whitespace_runs():
    recognizer = _recognizer(DocumentMode.from_flag("true"))

    assert recognizer.is_signing_comment(
        "I   have read the DCO document and I hereby sign the DCO",
        "alice",
    ) is True
    assert recognizer.is_signing_comment(
        "I have read the CAA document and I hereby sign the CAA",
        "alice",
    ) is False


def test_caa_mode_rejects_dco_phrase_and_extra_text():
    recognizer = _recognizer(DocumentMode.from_flag("false"))

    assert recognizer.is_signing_comment(CAA_PHRASE, "alice") is True
    assert recognizer.is_signing_comment(DCO_PHRASE, "alice") is False
    assert recognizer.is_signing_comment(CAA_PHRASE + " Thanks!", "alice") is False


@pytest.mark.parametrize(
    "mode, custom_phrase, body",
    [
        (DocumentMode.CAA, "", CAA_PHRASE),
        (DocumentMode.DCO, "", DCO_PHRASE),
        (DocumentMode.CAA, "I Agree", "I agree"),
    ],
)
def test_bot_comments_never_qualify(mode, custom_phrase, body):
    recognizer = _recognizer(mode, custom_phrase=custom_phrase)

    assert recognizer.is_signing_comment(body, BOT_LOGIN) is False


def test_unrecognized_mode_never_qualifies():
    recognizer = _recognizer(DocumentMode.from_flag("maybe"))

    assert recognizer.mode is DocumentMode.UNRECOGNIZED
    assert recognizer.is_signing_comment(CAA_PHRASE, "alice") is False
    assert recognizer.is_signing_comment(DCO_PHRASE, "alice") is False


def test_normalize_comment_does_not_touch_inner_whitespace():
    assert normalize_comment("  Hello   World \n") == "hello   world"
