"""
Signature ledger persistence.

The ledger is a single JSON document stored in a repository file:

    {
      "signedContributors": [ ...SignatureRecord... ]
    }

It is pretty-printed (two-space indent), UTF-8, and sent base64-encoded
as the contents payload. Every write is gated by the revision (blob SHA)
read immediately before it. A stale revision raises
RevisionConflictError; the caller must re-read and re-apply, the store
never overwrites blindly.

Ledger mutation helpers in this module are pure: they return new Ledger
objects and leave their inputs untouched.
"""

from __future__ import annotations

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from signatory.app.context import RunContext
from signatory.app.schemas.signatures import (
    InvalidSignature,
    Ledger,
    LedgerSnapshot,
    SignatureRecord,
)
from signatory.app.services.github_api import (
    FileStore,
    NotFoundError,
    RevisionConflictError,
)

logger = logging.getLogger("signatory.ledger_store")


DEFAULT_CREATE_MESSAGE = "Creating file for storing CAA Signatures"


# ------------------------------------------------------------------
# Serialization
# ------------------------------------------------------------------


def utc_timestamp(moment: Optional[datetime] = None) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def serialize_ledger(ledger: Ledger) -> str:
    document = ledger.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(document, indent=2, ensure_ascii=False)


def encode_ledger(ledger: Ledger) -> str:
    """Base64 contents payload for the ledger file."""
    return base64.b64encode(serialize_ledger(ledger).encode("utf-8")).decode("ascii")


def decode_ledger(text: str) -> Ledger:
    if not text.strip():
        return Ledger()
    return Ledger.model_validate(json.loads(text))


# ------------------------------------------------------------------
# Pure ledger transitions
# ------------------------------------------------------------------


def append_records(ledger: Ledger, records: Sequence[SignatureRecord]) -> Ledger:
    return ledger.with_records([*ledger.signed_contributors, *records])


def apply_invalidations(
    ledger: Ledger,
    invalid: Sequence[InvalidSignature],
    *,
    invalidated_at: str,
) -> Ledger:
    """
    Mark the matching ledger entries invalidated.

    An entry matches on userId and comment_id and must still be active,
    so applying the same batch twice leaves the ledger unchanged after
    the first application. One timestamp is shared by the whole batch.
    """
    records = list(ledger.signed_contributors)

    for item in invalid:
        for index, record in enumerate(records):
            if (
                record.is_active
                and record.user_id == item.signer.user_id
                and record.comment_id == item.signer.comment_id
            ):
                records[index] = record.invalidate(
                    at=invalidated_at,
                    reason=item.reason,
                )
                break

    return ledger.with_records(records)


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------


class LedgerStore:
    """
    Reads and writes the ledger file through a FileStore.

    At most one append batch and one invalidation batch are written per
    run, each chained on the revision returned by the previous call.
    """

    def __init__(
        self,
        *,
        file_store: FileStore,
        context: RunContext,
        path: str,
        branch: str,
        document_label: str = "CAA",
        create_message: Optional[str] = None,
        signed_message_template: Optional[str] = None,
    ) -> None:
        self._files = file_store
        self._context = context
        self._path = path
        self._branch = branch
        self._document_label = document_label
        self._create_message = create_message or DEFAULT_CREATE_MESSAGE
        self._signed_message_template = signed_message_template

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def read(self) -> LedgerSnapshot:
        """
        Read the ledger and its revision.

        A missing ledger file is created empty, so the returned snapshot
        always carries a revision usable for the next write.
        """
        try:
            content = await self._files.get_file_content(self._path, self._branch)
        except NotFoundError:
            return await self._bootstrap()

        ledger = decode_ledger(content.decoded_text())
        logger.debug(
            "ledger_read",
            extra={
                "path": self._path,
                "revision": content.sha,
                "records": len(ledger.signed_contributors),
            },
        )
        return LedgerSnapshot(ledger=ledger, revision=content.sha)

    async def append_signatures(
        self,
        snapshot: LedgerSnapshot,
        records: Sequence[SignatureRecord],
    ) -> LedgerSnapshot:
        if not records:
            return snapshot

        ledger = append_records(snapshot.ledger, records)
        revision = await self._write(
            ledger,
            revision=snapshot.revision,
            message=self._signed_message(),
        )
        logger.info(
            "signatures_appended",
            extra={"signers": [r.name for r in records], "revision": revision},
        )
        return LedgerSnapshot(ledger=ledger, revision=revision)

    async def mark_signatures_invalidated(
        self,
        snapshot: LedgerSnapshot,
        invalid: Sequence[InvalidSignature],
        *,
        now: Optional[datetime] = None,
    ) -> LedgerSnapshot:
        if not invalid:
            return snapshot

        ledger = apply_invalidations(
            snapshot.ledger,
            invalid,
            invalidated_at=utc_timestamp(now),
        )
        if ledger == snapshot.ledger:
            return snapshot

        names = ", ".join(item.signer.name for item in invalid)
        revision = await self._write(
            ledger,
            revision=snapshot.revision,
            message=(
                f"Invalidated signatures: {names} "
                "(comments were deleted or edited)"
            ),
        )
        logger.info(
            "signatures_invalidated",
            extra={
                "signers": [item.signer.name for item in invalid],
                "revision": revision,
            },
        )
        return LedgerSnapshot(ledger=ledger, revision=revision)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _bootstrap(self) -> LedgerSnapshot:
        ledger = Ledger()
        revision = await self._write(ledger, revision=None, message=self._create_message)
        logger.info(
            "ledger_created",
            extra={"path": self._path, "branch": self._branch, "revision": revision},
        )
        return LedgerSnapshot(ledger=ledger, revision=revision)

    async def _write(
        self,
        ledger: Ledger,
        *,
        revision: Optional[str],
        message: str,
    ) -> str:
        try:
            return await self._files.create_or_update_file_contents(
                self._path,
                content=encode_ledger(ledger),
                message=message,
                branch=self._branch,
                sha=revision,
            )
        except RevisionConflictError:
            logger.warning(
                "ledger_revision_conflict",
                extra={"path": self._path, "revision": revision},
            )
            raise

    def _signed_message(self) -> str:
        ctx = self._context
        if self._signed_message_template:
            return (
                self._signed_message_template
                .replace("$contributorName", ctx.actor)
                .replace("$pullRequestNo", str(ctx.pull_request_number))
                .replace("$owner", ctx.owner)
                .replace("$repo", ctx.repo)
            )
        return (
            f"@{ctx.actor} has signed the {self._document_label} in "
            f"{ctx.owner}/{ctx.repo}#{ctx.pull_request_number}"
        )
