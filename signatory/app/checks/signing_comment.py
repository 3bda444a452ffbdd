"""
Signing-comment recognition.

Decides whether a pull-request comment is a qualifying signature. The
same recognizer is used when a signature is first recorded and when it
is later re-validated, so the acceptance criterion is identical at both
points in time.

Decision order:
1. Comments by the automation's own bot identity never qualify.
2. A configured custom sign phrase must match exactly
   (trimmed, case-insensitive). Substrings do not qualify.
3. Otherwise the document mode selects the canonical DCO or CAA phrase.
   An unrecognized mode never qualifies.
"""

from __future__ import annotations

import re

from signatory.app.config import Settings
from signatory.app.schemas.signatures import DocumentMode


DCO_SIGNING_PHRASE = re.compile(
    r"i\s+have\s+read\s+the\s+dco\s+document\s+and\s+i\s+hereby\s+sign\s+the\s+dco"
)

CAA_SIGNING_PHRASE = re.compile(
    r"i\s+have\s+read\s+the\s+caa\s+document\s+and\s+i\s+hereby\s+sign\s+the\s+caa"
)


def normalize_comment(body: str) -> str:
    """Trimmed, case-folded form used only for phrase comparison."""
    return body.strip().casefold()


class SigningCommentRecognizer:

    def __init__(
        self,
        *,
        bot_login: str,
        mode: DocumentMode,
        custom_phrase: str = "",
    ) -> None:
        self._bot_login = bot_login
        self._mode = mode
        self._custom_phrase = normalize_comment(custom_phrase)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SigningCommentRecognizer":
        return cls(
            bot_login=settings.bot_login,
            mode=settings.document_mode,
            custom_phrase=settings.custom_pr_sign_comment,
        )

    @property
    def mode(self) -> DocumentMode:
        return self._mode

    def is_signing_comment(self, body: str, author: str | None) -> bool:
        if author == self._bot_login:
            return False

        comment = normalize_comment(body)

        if self._custom_phrase:
            return comment == self._custom_phrase

        if self._mode is DocumentMode.DCO:
            return DCO_SIGNING_PHRASE.fullmatch(comment) is not None
        if self._mode is DocumentMode.CAA:
            return CAA_SIGNING_PHRASE.fullmatch(comment) is not None

        return False
