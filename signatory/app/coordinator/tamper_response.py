"""
Tamper response.

When previously recorded signatures are invalidated, each affected
receipt comment gets a tampering notice appended below its original
text, and the pull request's gating status check is refreshed so it
reflects the invalidated state.

Receipt updates are append-only and best-effort: a failed update is
logged and never aborts the run.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Sequence

import httpx

from signatory.app.receipts.templates import render_tampering_notice
from signatory.app.schemas.signatures import DocumentMode, InvalidSignature
from signatory.app.services.github_api import CommentStore, GitHubApiError
from signatory.app.services.workflow_rerun import WorkflowRerunner

logger = logging.getLogger("signatory.tamper_response")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class TamperResponseCoordinator:

    def __init__(
        self,
        *,
        comments: CommentStore,
        rerunner: WorkflowRerunner,
        document_mode: DocumentMode,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._comments = comments
        self._rerunner = rerunner
        self._document_mode = document_mode
        self._clock = clock

    async def annotate_receipts(self, invalid: Sequence[InvalidSignature]) -> List[int]:
        """
        Append a tampering notice to every receipt of an invalidated signer.

        Returns the ids of the receipt comments that were updated.
        """
        annotated: List[int] = []
        detected_at = self._clock()

        for item in invalid:
            signer = item.signer
            if signer.receipt_comment_id is None:
                logger.info("receipt_missing_for_signer", extra={"signer": signer.name})
                continue

            try:
                receipt = await self._comments.get_comment(signer.receipt_comment_id)
                notice = render_tampering_notice(
                    signer_name=signer.name,
                    reason=item.reason,
                    document_label=self._document_mode.label,
                    detected_at=detected_at,
                )
                await self._comments.update_comment(
                    signer.receipt_comment_id,
                    (receipt.body or "") + notice,
                )
            except (GitHubApiError, httpx.HTTPError) as exc:
                logger.warning(
                    "receipt_annotation_failed",
                    extra={
                        "signer": signer.name,
                        "receipt_comment_id": signer.receipt_comment_id,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                continue

            logger.info(
                "receipt_annotated",
                extra={
                    "signer": signer.name,
                    "receipt_comment_id": signer.receipt_comment_id,
                    "reason": item.reason.value,
                },
            )
            annotated.append(signer.receipt_comment_id)

        return annotated

    async def request_status_refresh(self) -> bool:
        return await self._rerunner.rerun_last_pr_workflow()
