"""
Receipt comment templates.

A receipt is a bot-authored comment that quotes a contributor's signing
comment verbatim. It is created once per new signature and is only ever
extended, by a single tampering notice, never rewritten.

Rendering is deterministic: the same inputs always produce the same
Markdown.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from signatory.app.schemas.signatures import (
    DocumentFingerprint,
    InvalidationReason,
    SignatureRecord,
)


RECEIPT_HEADING = "### Signature Recorded"
TAMPERING_HEADING = "## ⚠️ TAMPERING DETECTED"

_REASON_TEXT = {
    InvalidationReason.COMMENT_DELETED: "deleted their original signing comment",
    InvalidationReason.COMMENT_EDITED: (
        "edited their original signing comment to remove the signing phrase"
    ),
    InvalidationReason.UNVERIFIABLE: "has an unverifiable signature",
}


def format_timestamp(value: Optional[str | datetime]) -> str:
    """
    Render a timestamp as ``January 5, 2024 at 03:04 PM UTC``.

    ISO strings that cannot be parsed are returned as given.
    """
    if value is None:
        moment = datetime.now(timezone.utc)
    elif isinstance(value, datetime):
        moment = value
    else:
        try:
            moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)

    return f"{moment:%B} {moment.day}, {moment.year} at {moment:%I:%M %p} UTC"


def _blockquote(text: str) -> str:
    return "\n".join(f"> {line}" if line else ">" for line in text.splitlines() or [""])


def render_receipt(
    *,
    signer: SignatureRecord,
    original_comment: str,
    document_label: str,
    document_url: Optional[str],
    fingerprint: Optional[DocumentFingerprint],
) -> str:
    """
    Markdown body of a signature receipt.

    ``original_comment`` must be the contributor's original-case text,
    never the case-folded comparison copy.
    """
    lines = [
        RECEIPT_HEADING,
        "",
        f"@{signer.name} signed the {document_label} on "
        f"**{format_timestamp(signer.created_at)}** with the following comment:",
        "",
        _blockquote(original_comment),
        "",
        f"— [Original comment]({signer.comment_url}) by @{signer.name}",
        "",
    ]

    if document_url:
        lines.append(f"**Document:** [{document_label}]({document_url})")
    if fingerprint is not None:
        lines.append(f"**Document Hash (SHA-256):** `{fingerprint.hash}`")

    lines.extend(
        [
            "",
            "---",
            "*This receipt was automatically generated and serves as "
            "immutable proof of the above signature.*",
        ]
    )
    return "\n".join(lines)


def render_tampering_notice(
    *,
    signer_name: str,
    reason: InvalidationReason,
    document_label: str,
    detected_at: datetime,
) -> str:
    """
    Section appended to a receipt when its signature is invalidated.

    Starts with a divider so the original receipt text stays intact
    above it.
    """
    return (
        "\n\n---\n\n"
        f"{TAMPERING_HEADING}\n\n"
        f"**@{signer_name}** {_REASON_TEXT[InvalidationReason(reason)]} "
        f"on **{format_timestamp(detected_at)}**.\n\n"
        "> **Important:** Tampering with or deleting a signature comment "
        "does not void the original agreement. "
        f"The {document_label} was signed and recorded at the time shown above. "
        "This tampering has been logged and may result in consequences "
        "including loss of contribution privileges.\n\n"
        f"The contributor must re-sign the {document_label} to continue contributing."
    )
