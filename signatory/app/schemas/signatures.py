"""
Signature ledger and classification schemas.

Defines the domain records used by the signature lifecycle engine:
contributor identities, persisted signature records, the ledger that
holds them, and the intermediate results passed between the recognizer,
classifier, acquisition and validation stages.

Persisted records keep the ledger file's historic JSON key names
(``userId``, ``pullRequestNo``, ``signedContributors``, ...) through
aliases. Python code uses the snake_case attribute names.

SignatureRecord lifecycle:
- created once, at signature acquisition
- may transition once from active to invalidated
- never reactivated, never deleted
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class InvalidationReason(str, Enum):
    """
    Why a previously recorded signature no longer stands.

    UNVERIFIABLE is treated exactly like COMMENT_EDITED for invalidation
    purposes: the contributor must re-sign.
    """

    COMMENT_DELETED = "comment_deleted"
    COMMENT_EDITED = "comment_edited"
    UNVERIFIABLE = "unverifiable"


class DocumentMode(str, Enum):
    """
    Which agreement the repository requires.

    Mapped once from the raw ``use-dco-flag`` input:
    ``"true"`` -> DCO, ``"false"`` -> CAA, anything else -> UNRECOGNIZED.
    """

    DCO = "dco"
    CAA = "caa"
    UNRECOGNIZED = "unrecognized"

    @classmethod
    def from_flag(cls, flag: Optional[str]) -> "DocumentMode":
        normalized = (flag or "").strip().lower()
        if normalized == "true":
            return cls.DCO
        if normalized == "false":
            return cls.CAA
        return cls.UNRECOGNIZED

    @property
    def label(self) -> str:
        """Human-readable document label used in receipts and notices."""
        return "DCO" if self is DocumentMode.DCO else "CAA"


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


class ContributorIdentity(BaseModel):
    """
    A pull-request contributor as observed on the platform.

    ``user_id`` is the stable numeric platform identity. It is ``None``
    only for commit authors with no linked platform account.
    """

    name: str
    user_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Ledger entries
# ---------------------------------------------------------------------------


class SignatureRecord(BaseModel):
    """
    A single persisted signature (ledger entry).

    Unknown keys written by other versions of the ledger are preserved
    so that a read-modify-write cycle never drops data.
    """

    # Identity
    name: str
    user_id: int = Field(
        ...,
        validation_alias=AliasChoices("userId", "id", "user_id"),
        serialization_alias="userId",
    )

    # Provenance
    pull_request_no: Optional[int] = Field(None, alias="pullRequestNo")
    comment_id: Optional[int] = None
    comment_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    repo_id: Optional[Union[int, str]] = Field(None, alias="repoId")

    # Document binding
    document_url: Optional[str] = None
    document_hash: Optional[str] = None

    # Receipt binding
    receipt_comment_id: Optional[int] = None
    receipt_comment_url: Optional[str] = None

    # Invalidation (one-way)
    invalidated_at: Optional[str] = None
    invalidated_reason: Optional[InvalidationReason] = None

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    @model_validator(mode="after")
    def _invalidation_fields_paired(self) -> "SignatureRecord":
        if (self.invalidated_at is None) != (self.invalidated_reason is None):
            raise ValueError(
                "invalidated_at and invalidated_reason must be set together"
            )
        return self

    @property
    def is_active(self) -> bool:
        return self.invalidated_at is None

    def invalidate(
        self,
        *,
        at: str,
        reason: InvalidationReason,
    ) -> "SignatureRecord":
        """
        Return the invalidated form of this record.

        Already invalidated records are returned unchanged, so the
        original timestamp and reason are never overwritten.
        """
        if not self.is_active:
            return self
        return self.model_copy(
            update={
                "invalidated_at": at,
                "invalidated_reason": InvalidationReason(reason),
            }
        )

    def with_updates(self, **changes: object) -> "SignatureRecord":
        """Return a copy with document or receipt bindings filled in."""
        return self.model_copy(update=changes)

    def to_json_dict(self) -> dict:
        """Serialize with ledger key names, omitting unset optional fields."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Ledger(BaseModel):
    """
    The persisted collection of signature records.

    Ordered, append-only except for the invalidation transition of
    individual records.
    """

    signed_contributors: List[SignatureRecord] = Field(
        default_factory=list,
        alias="signedContributors",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
    )

    def with_records(self, records: Sequence[SignatureRecord]) -> "Ledger":
        return self.model_copy(update={"signed_contributors": list(records)})


class LedgerSnapshot(BaseModel):
    """
    A ledger as read from (or written to) the file store, together with
    the revision identifier required for the next optimistic write.
    """

    ledger: Ledger
    revision: str

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


class CommitterClassification(BaseModel):
    """
    Three-way partition of a pull request's contributors.

    Partitions are disjoint and their union is the full contributor set.
    """

    signed: List[ContributorIdentity] = Field(default_factory=list)
    not_signed: List[ContributorIdentity] = Field(default_factory=list)
    unknown: List[ContributorIdentity] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def not_signed_ids(self) -> set[int]:
        return {c.user_id for c in self.not_signed if c.user_id is not None}


# ---------------------------------------------------------------------------
# Acquisition
# ---------------------------------------------------------------------------


class DocumentFingerprint(BaseModel):
    """SHA-256 of the governing document's exact content at signing time."""

    url: str
    hash: str

    model_config = ConfigDict(frozen=True)


class ReceiptReference(BaseModel):
    id: int
    url: str

    model_config = ConfigDict(frozen=True)


class SignatureCandidate(BaseModel):
    """
    A pull-request comment considered as a possible signature.

    ``body`` keeps the original casing. It is quoted into the receipt
    and never persisted in the ledger.
    """

    name: str
    user_id: int
    comment_id: int
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    comment_url: str
    pull_request_no: int
    repo_id: Optional[int] = None
    body: str = ""

    model_config = ConfigDict(frozen=True)

    def to_record(self) -> SignatureRecord:
        """Construct the ledger record for this candidate, without its body."""
        return SignatureRecord(
            name=self.name,
            user_id=self.user_id,
            pull_request_no=self.pull_request_no,
            comment_id=self.comment_id,
            comment_url=self.comment_url,
            created_at=self.created_at,
            updated_at=self.updated_at,
            repo_id=self.repo_id,
        )


class SignatureAcquisitionResult(BaseModel):
    """
    Outcome of scanning a pull request's comments for new signatures.

    ``all_signed_flag`` is always False when produced by the acquisition
    engine; the run coordinator decides whether to flip it.
    """

    new_signed: List[SignatureRecord] = Field(default_factory=list)
    only_committers: List[ContributorIdentity] = Field(default_factory=list)
    all_signed_flag: bool = False

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidSignature(BaseModel):
    signer: SignatureRecord
    reason: InvalidationReason

    model_config = ConfigDict(frozen=True)


# ---------------------------------------------------------------------------
# Run outcome
# ---------------------------------------------------------------------------


class SignatureCheckReport(BaseModel):
    """
    Result of a full signature check for one pull-request event.

    ``all_signed`` is what the status check reports.
    """

    pull_request_number: int
    signed: List[str] = Field(default_factory=list)
    not_signed: List[str] = Field(default_factory=list)
    unknown: List[str] = Field(default_factory=list)
    newly_signed: List[str] = Field(default_factory=list)
    invalidated: List[InvalidSignature] = Field(default_factory=list)
    all_signed: bool = False
    ledger_revision: Optional[str] = None

    model_config = ConfigDict(frozen=True)
