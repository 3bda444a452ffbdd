"""
Signature acquisition.

Scans a pull request's comments for qualifying signing comments from
contributors who have not signed yet, stamps each new signature with
the governing document's fingerprint, and publishes a receipt comment
quoting the contributor's original text.

The ledger is not written here. The caller appends ``new_signed`` and
persists it in a single revision-gated write.

Failure policy:
- fingerprint unavailable: signatures are recorded without document binding
- receipt creation failure: the signature is recorded without a receipt
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import httpx

from signatory.app.checks.signing_comment import SigningCommentRecognizer
from signatory.app.context import RunContext
from signatory.app.receipts.templates import render_receipt
from signatory.app.schemas.github import IssueComment
from signatory.app.schemas.signatures import (
    CommitterClassification,
    ContributorIdentity,
    DocumentFingerprint,
    ReceiptReference,
    SignatureAcquisitionResult,
    SignatureCandidate,
    SignatureRecord,
)
from signatory.app.services.document_hash import DocumentFingerprinter
from signatory.app.services.github_api import CommentStore, GitHubApiError

logger = logging.getLogger("signatory.acquisition")


class SignatureAcquisitionEngine:
    """
    Turns recognized signing comments into new signature records.

    Only contributors in the classification's ``not_signed`` partition
    can produce a new signature, and each of them at most once per run
    (their first qualifying comment wins).
    """

    def __init__(
        self,
        *,
        comments: CommentStore,
        recognizer: SigningCommentRecognizer,
        fingerprinter: DocumentFingerprinter,
        context: RunContext,
    ) -> None:
        self._comments = comments
        self._recognizer = recognizer
        self._fingerprinter = fingerprinter
        self._context = context

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def acquire(
        self,
        classification: CommitterClassification,
        committers: Sequence[ContributorIdentity],
    ) -> SignatureAcquisitionResult:
        comments = await self._comments.list_comments(
            self._context.pull_request_number
        )
        candidates = self._materialize(comments)

        recognized = [
            candidate
            for candidate in candidates
            if self._recognizer.is_signing_comment(candidate.body, candidate.name)
        ]

        not_signed_ids = classification.not_signed_ids()
        promoted: set[int] = set()
        new_candidates: List[SignatureCandidate] = []
        for candidate in recognized:
            if candidate.user_id in not_signed_ids and candidate.user_id not in promoted:
                promoted.add(candidate.user_id)
                new_candidates.append(candidate)

        new_signed: List[SignatureRecord] = []
        if new_candidates:
            fingerprint = await self._fingerprinter.fingerprint()
            for candidate in new_candidates:
                new_signed.append(await self._record(candidate, fingerprint))

        recognized_ids = {candidate.user_id for candidate in recognized}
        only_committers = [c for c in committers if c.user_id in recognized_ids]

        logger.info(
            "signature_acquisition_completed",
            extra={
                "recognized_comments": len(recognized),
                "new_signers": [r.name for r in new_signed],
            },
        )

        return SignatureAcquisitionResult(
            new_signed=new_signed,
            only_committers=only_committers,
            all_signed_flag=False,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _materialize(self, comments: Sequence[IssueComment]) -> List[SignatureCandidate]:
        candidates: List[SignatureCandidate] = []
        for comment in comments:
            # Comments from deleted accounts carry no identity
            if comment.user is None:
                continue
            candidates.append(
                SignatureCandidate(
                    name=comment.user.login,
                    user_id=comment.user.id,
                    comment_id=comment.id,
                    created_at=comment.created_at,
                    updated_at=comment.updated_at,
                    comment_url=self._context.comment_url(comment.id),
                    pull_request_no=self._context.pull_request_number,
                    repo_id=self._context.repository_id,
                    body=(comment.body or "").strip(),
                )
            )
        return candidates

    async def _record(
        self,
        candidate: SignatureCandidate,
        fingerprint: Optional[DocumentFingerprint],
    ) -> SignatureRecord:
        record = candidate.to_record()

        if fingerprint is not None:
            record = record.with_updates(
                document_url=fingerprint.url,
                document_hash=fingerprint.hash,
            )

        receipt = await self._publish_receipt(record, candidate.body, fingerprint)
        if receipt is not None:
            record = record.with_updates(
                receipt_comment_id=receipt.id,
                receipt_comment_url=receipt.url,
            )
        return record

    async def _publish_receipt(
        self,
        signer: SignatureRecord,
        original_comment: str,
        fingerprint: Optional[DocumentFingerprint],
    ) -> Optional[ReceiptReference]:
        body = render_receipt(
            signer=signer,
            original_comment=original_comment,
            document_label=self._recognizer.mode.label,
            document_url=self._fingerprinter.document_url,
            fingerprint=fingerprint,
        )

        try:
            created = await self._comments.create_comment(
                self._context.pull_request_number,
                body,
            )
        except (GitHubApiError, httpx.HTTPError) as exc:
            logger.warning(
                "receipt_creation_failed",
                extra={
                    "signer": signer.name,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None

        logger.info(
            "receipt_created",
            extra={"signer": signer.name, "receipt_comment_id": created.id},
        )
        return ReceiptReference(
            id=created.id,
            url=self._context.comment_url(created.id),
        )
