from __future__ import annotations

from typing import Any, Dict, Optional
from enum import Enum
from datetime import datetime, timezone
from uuid import uuid4, UUID

from pydantic import BaseModel, Field, ConfigDict


# ----------------------------------------------------------------------
# Event Types
# ----------------------------------------------------------------------
class SignatureEventType(str, Enum):
    """
    Progression events emitted during a signature check run.

    NOTE:
    New entries must preserve observational semantics.
    """

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------
    RUN_STARTED = "run_started"
    RUN_COMPLETED = "run_completed"
    RUN_FAILED = "run_failed"

    # ------------------------------------------------------------------
    # Validation / tamper response
    # ------------------------------------------------------------------
    SIGNATURE_INVALIDATED = "signature_invalidated"
    RECEIPT_ANNOTATED = "receipt_annotated"

    # ------------------------------------------------------------------
    # Acquisition
    # ------------------------------------------------------------------
    SIGNATURE_RECORDED = "signature_recorded"
    RECEIPT_CREATED = "receipt_created"

    # ------------------------------------------------------------------
    # Persistence / status check
    # ------------------------------------------------------------------
    LEDGER_WRITTEN = "ledger_written"
    WORKFLOW_RERUN_REQUESTED = "workflow_rerun_requested"


# ----------------------------------------------------------------------
# Event Model
# ----------------------------------------------------------------------
class SignatureEvent(BaseModel):
    """
    An immutable observation of a step within a signature check run.

    Events are strictly observational and never authoritative: the
    ledger file and receipt comments are the system of record.
    """

    event_id: UUID = Field(default_factory=uuid4)
    run_id: str = Field(..., description="Identifier of the signature check run")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    event_type: SignatureEventType

    # Optional contextual metadata (signer, reason, revision, ...)
    details: Optional[Dict[str, Any]] = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
    )
