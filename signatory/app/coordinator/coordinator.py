"""
Signature check coordinator.

One run handles one pull request event:

    1. Collect the pull request's contributors (policy exclusions applied)
    2. Read the ledger (creating it when missing)
    3. Re-validate recorded signatures; write back and annotate tampering
    4. Classify contributors against the ledger
    5. Acquire new signatures from comments; append them to the ledger
    6. Refresh the gating status check when the signature state changed

The coordinator enforces ordering and aggregates results. Recognition,
validation, and persistence rules live in the components it drives.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence
from uuid import uuid4

import httpx

from signatory.app.checks.committers import (
    classify_committers,
    collect_committers,
    exclude_by_policy,
)
from signatory.app.checks.signing_comment import SigningCommentRecognizer
from signatory.app.config import Settings
from signatory.app.context import RunContext
from signatory.app.coordinator.acquisition import SignatureAcquisitionEngine
from signatory.app.coordinator.tamper_response import TamperResponseCoordinator
from signatory.app.coordinator.validation import SignatureValidationEngine
from signatory.app.schemas.signatures import (
    ContributorIdentity,
    InvalidSignature,
    LedgerSnapshot,
    SignatureCheckReport,
)
from signatory.app.services.document_hash import DocumentFingerprinter
from signatory.app.services.github_api import CommitSource, GitHubClient
from signatory.app.services.ledger_store import LedgerStore
from signatory.app.services.workflow_rerun import WorkflowRerunner

# Events (observational only)
from signatory.app.events import (
    NullEventEmitter,
    SignatureEvent,
    SignatureEventEmitter,
    SignatureEventType,
)

logger = logging.getLogger("signatory.coordinator")


class SignatureCoordinator:

    def __init__(
        self,
        *,
        context: RunContext,
        commits: CommitSource,
        ledger_store: LedgerStore,
        validation: SignatureValidationEngine,
        acquisition: SignatureAcquisitionEngine,
        tamper_response: TamperResponseCoordinator,
        rerunner: WorkflowRerunner,
        bot_login: str = "github-actions[bot]",
        allowlist: Sequence[str] = (),
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. Every collaborator is
        injected; nothing is constructed implicitly.
        """
        self._context = context
        self._commits = commits
        self._ledger_store = ledger_store
        self._validation = validation
        self._acquisition = acquisition
        self._tamper_response = tamper_response
        self._rerunner = rerunner
        self._bot_login = bot_login
        self._allowlist = list(allowlist)

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        context: RunContext,
        *,
        http_client: httpx.AsyncClient,
    ) -> "SignatureCoordinator":
        """
        Construct a fully wired coordinator for a workflow run.

        The ledger may live in another repository; its client then
        authenticates with the personal access token.
        """
        api_url = str(settings.api_url)

        pr_repo = GitHubClient(
            http_client=http_client,
            token=settings.github_token,
            owner=context.owner,
            repo=context.repo,
            api_url=api_url,
        )
        ledger_repo = GitHubClient(
            http_client=http_client,
            token=settings.ledger_token(),
            owner=settings.remote_organization_name or context.owner,
            repo=settings.remote_repository_name or context.repo,
            api_url=api_url,
        )
        workflow_repo = GitHubClient(
            http_client=http_client,
            token=settings.workflow_token(),
            owner=context.owner,
            repo=context.repo,
            api_url=api_url,
        )

        recognizer = SigningCommentRecognizer.from_settings(settings)
        rerunner = WorkflowRerunner(workflows=workflow_repo, context=context)

        return cls(
            context=context,
            commits=pr_repo,
            ledger_store=LedgerStore(
                file_store=ledger_repo,
                context=context,
                path=settings.path_to_signatures,
                branch=settings.branch,
                document_label=settings.document_mode.label,
                create_message=settings.create_file_commit_message,
                signed_message_template=settings.signed_commit_message,
            ),
            validation=SignatureValidationEngine(
                comments=pr_repo,
                recognizer=recognizer,
            ),
            acquisition=SignatureAcquisitionEngine(
                comments=pr_repo,
                recognizer=recognizer,
                fingerprinter=DocumentFingerprinter(
                    http_client=http_client,
                    document_url=settings.path_to_document,
                ),
                context=context,
            ),
            tamper_response=TamperResponseCoordinator(
                comments=pr_repo,
                rerunner=rerunner,
                document_mode=settings.document_mode,
            ),
            rerunner=rerunner,
            bot_login=settings.bot_login,
            allowlist=settings.allowlist_patterns,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(
        self,
        *,
        run_id: Optional[str] = None,
        emitter: Optional[SignatureEventEmitter] = None,
    ) -> SignatureCheckReport:
        """
        Execute one signature check for the pull request in context.

        The emitter is strictly observational:
        - failures must not affect execution
        - events must not influence control flow
        """
        run_id = run_id or uuid4().hex
        emitter = emitter or NullEventEmitter()

        async def emit(event_type: SignatureEventType, **details: object) -> None:
            await emitter.emit(
                SignatureEvent(
                    run_id=run_id,
                    event_type=event_type,
                    details=details or None,
                )
            )

        await emit(
            SignatureEventType.RUN_STARTED,
            repository=self._context.repository,
            pull_request_number=self._context.pull_request_number,
            event_name=self._context.event_name,
        )

        try:
            # ----------------------------------------------------------
            # 1. Contributors
            # ----------------------------------------------------------
            commits = await self._commits.list_pull_request_commits(
                self._context.pull_request_number
            )
            committers, _ = exclude_by_policy(
                collect_committers(commits),
                bot_login=self._bot_login,
                allowlist=self._allowlist,
            )

            # ----------------------------------------------------------
            # 2. Ledger
            # ----------------------------------------------------------
            snapshot = await self._ledger_store.read()

            # ----------------------------------------------------------
            # 3. Re-validation and tamper write-back
            # ----------------------------------------------------------
            invalid = await self._validation.validate(snapshot.ledger, committers)
            if invalid:
                snapshot = await self._write_back_invalidations(snapshot, invalid, emit)

            # ----------------------------------------------------------
            # 4. Classification
            # ----------------------------------------------------------
            classification = classify_committers(snapshot.ledger, committers)

            # ----------------------------------------------------------
            # 5. Acquisition
            # ----------------------------------------------------------
            acquired = await self._acquisition.acquire(classification, committers)

            for record in acquired.new_signed:
                await emit(
                    SignatureEventType.SIGNATURE_RECORDED,
                    signer=record.name,
                    user_id=record.user_id,
                    comment_id=record.comment_id,
                    document_hash=record.document_hash,
                )
                if record.receipt_comment_id is not None:
                    await emit(
                        SignatureEventType.RECEIPT_CREATED,
                        signer=record.name,
                        receipt_comment_id=record.receipt_comment_id,
                    )

            if acquired.new_signed:
                snapshot = await self._ledger_store.append_signatures(
                    snapshot,
                    acquired.new_signed,
                )
                await emit(
                    SignatureEventType.LEDGER_WRITTEN,
                    operation="append",
                    revision=snapshot.revision,
                    records=len(acquired.new_signed),
                )

            # ----------------------------------------------------------
            # 6. Verdict
            # ----------------------------------------------------------
            commented_ids = {c.user_id for c in acquired.only_committers}
            now_signed: List[ContributorIdentity] = [
                *classification.signed,
                *(c for c in classification.not_signed if c.user_id in commented_ids),
            ]
            still_not_signed = [
                c for c in classification.not_signed if c.user_id not in commented_ids
            ]
            acquired = acquired.model_copy(
                update={
                    "all_signed_flag": not still_not_signed and not classification.unknown,
                }
            )

            # ----------------------------------------------------------
            # 7. Status check refresh
            # ----------------------------------------------------------
            if invalid:
                rerun = await self._tamper_response.request_status_refresh()
            elif acquired.new_signed:
                rerun = await self._rerunner.rerun_last_workflow_if_required()
            else:
                rerun = False

            if rerun:
                await emit(
                    SignatureEventType.WORKFLOW_RERUN_REQUESTED,
                    reason="tampering" if invalid else "new_signatures",
                )

            report = SignatureCheckReport(
                pull_request_number=self._context.pull_request_number,
                signed=[c.name for c in now_signed],
                not_signed=[c.name for c in still_not_signed],
                unknown=[c.name for c in classification.unknown],
                newly_signed=[r.name for r in acquired.new_signed],
                invalidated=invalid,
                all_signed=acquired.all_signed_flag,
                ledger_revision=snapshot.revision,
            )

            logger.info(
                "signature_check_completed",
                extra={
                    "pull_request_number": report.pull_request_number,
                    "all_signed": report.all_signed,
                    "not_signed": report.not_signed,
                    "unknown": report.unknown,
                    "newly_signed": report.newly_signed,
                    "invalidated": [i.signer.name for i in invalid],
                },
            )

            await emit(
                SignatureEventType.RUN_COMPLETED,
                all_signed=report.all_signed,
                report=report.model_dump(mode="json"),
            )
            return report

        except Exception as exc:
            await emit(
                SignatureEventType.RUN_FAILED,
                error=str(exc),
                exception_type=type(exc).__name__,
            )
            raise

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _write_back_invalidations(
        self,
        snapshot: LedgerSnapshot,
        invalid: List[InvalidSignature],
        emit,
    ) -> LedgerSnapshot:
        for item in invalid:
            await emit(
                SignatureEventType.SIGNATURE_INVALIDATED,
                signer=item.signer.name,
                comment_id=item.signer.comment_id,
                reason=item.reason.value,
            )

        updated = await self._ledger_store.mark_signatures_invalidated(snapshot, invalid)
        if updated.revision != snapshot.revision:
            await emit(
                SignatureEventType.LEDGER_WRITTEN,
                operation="invalidate",
                revision=updated.revision,
                records=len(invalid),
            )

        annotated = await self._tamper_response.annotate_receipts(invalid)
        for receipt_comment_id in annotated:
            await emit(
                SignatureEventType.RECEIPT_ANNOTATED,
                receipt_comment_id=receipt_comment_id,
            )

        return updated
