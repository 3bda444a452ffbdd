"""
Signature re-validation.

Re-checks previously recorded signatures against the live state of
their source comments. A signature stands only while its comment still
exists, is still authored by the signer, and still qualifies under the
sign-phrase rules in effect now.

Only active records belonging to contributors of the current pull
request are re-checked. Settled history (invalidated records, other
contributors) is never revisited.

Failures err toward requiring a re-signature: anything that cannot be
verified is reported as ``unverifiable``.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import httpx

from signatory.app.checks.signing_comment import SigningCommentRecognizer
from signatory.app.schemas.signatures import (
    ContributorIdentity,
    InvalidSignature,
    InvalidationReason,
    Ledger,
    SignatureRecord,
)
from signatory.app.services.github_api import (
    CommentStore,
    GitHubApiError,
    NotFoundError,
)

logger = logging.getLogger("signatory.validation")


class SignatureValidationEngine:

    def __init__(
        self,
        *,
        comments: CommentStore,
        recognizer: SigningCommentRecognizer,
    ) -> None:
        self._comments = comments
        self._recognizer = recognizer

    async def validate(
        self,
        ledger: Ledger,
        current_committers: Sequence[ContributorIdentity],
    ) -> List[InvalidSignature]:
        """
        Return every frontier record whose evidence no longer holds,
        in ledger order.
        """
        committer_ids = {
            c.user_id for c in current_committers if c.user_id is not None
        }
        frontier = [
            record
            for record in ledger.signed_contributors
            if record.is_active and record.user_id in committer_ids
        ]

        invalid: List[InvalidSignature] = []
        for record in frontier:
            reason = await self._validate_single(record)
            if reason is None:
                continue
            invalid.append(InvalidSignature(signer=record, reason=reason))
            logger.warning(
                "signature_no_longer_valid",
                extra={
                    "signer": record.name,
                    "comment_id": record.comment_id,
                    "reason": reason.value,
                },
            )

        return invalid

    async def _validate_single(
        self,
        record: SignatureRecord,
    ) -> Optional[InvalidationReason]:
        if not record.comment_id or not record.pull_request_no:
            logger.info(
                "signature_unverifiable_missing_provenance",
                extra={"signer": record.name},
            )
            return InvalidationReason.UNVERIFIABLE

        try:
            comment = await self._comments.get_comment(record.comment_id)
        except NotFoundError:
            logger.info(
                "signing_comment_deleted",
                extra={"signer": record.name, "comment_id": record.comment_id},
            )
            return InvalidationReason.COMMENT_DELETED
        except (GitHubApiError, httpx.HTTPError) as exc:
            logger.warning(
                "signing_comment_fetch_failed",
                extra={
                    "signer": record.name,
                    "comment_id": record.comment_id,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return InvalidationReason.UNVERIFIABLE

        author = comment.author_login
        if author != record.name:
            logger.info(
                "signing_comment_author_mismatch",
                extra={"signer": record.name, "author": author},
            )
            return InvalidationReason.COMMENT_EDITED

        if not self._recognizer.is_signing_comment(comment.body or "", author):
            logger.info(
                "signing_phrase_removed",
                extra={"signer": record.name, "comment_id": record.comment_id},
            )
            return InvalidationReason.COMMENT_EDITED

        return None
