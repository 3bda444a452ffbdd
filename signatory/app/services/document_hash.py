"""
Governing-document fingerprinting.

Fetches the agreement document (CAA/DCO) and computes the SHA-256 of
its exact content, so that each new signature records which version of
the document was agreed to.

Fingerprinting is best-effort: a missing URL, a failed fetch or a
non-success status yields no fingerprint and never blocks signature
acquisition.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from signatory.app.schemas.signatures import DocumentFingerprint
from signatory.app.utils.hashing import compute_sha256_hex

logger = logging.getLogger("signatory.document_hash")


_GITHUB_BLOB_URL = re.compile(
    r"^https://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/blob/(?P<path>.+)$"
)

_UNSET = object()


def convert_to_raw_url(url: str) -> str:
    """
    Convert a GitHub blob URL to its raw-content URL.

    Example:
        https://github.com/org/repo/blob/main/CAA.md
        -> https://raw.githubusercontent.com/org/repo/main/CAA.md

    Any other URL is returned unchanged.
    """
    match = _GITHUB_BLOB_URL.match(url)
    if match is None:
        return url
    return (
        "https://raw.githubusercontent.com/"
        f"{match['owner']}/{match['repo']}/{match['path']}"
    )


class DocumentFingerprinter:
    """
    Computes the fingerprint of the configured agreement document.

    The first result (including "no fingerprint") is kept for the rest
    of the run: all signers recorded in one run share one fetch.
    """

    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        document_url: Optional[str],
    ) -> None:
        self._client = http_client
        self._document_url = document_url
        self._result: object = _UNSET

    @property
    def document_url(self) -> Optional[str]:
        return self._document_url

    async def fingerprint(self) -> Optional[DocumentFingerprint]:
        if self._result is _UNSET:
            self._result = await self._compute()
        return self._result  # type: ignore[return-value]

    async def _compute(self) -> Optional[DocumentFingerprint]:
        if not self._document_url:
            logger.info("document_url_not_configured")
            return None

        fetch_url = convert_to_raw_url(self._document_url)

        try:
            response = await self._client.get(fetch_url, follow_redirects=True)
        except httpx.HTTPError as exc:
            logger.warning(
                "document_fetch_failed",
                extra={
                    "url": fetch_url,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            return None

        if not response.is_success:
            logger.warning(
                "document_fetch_failed",
                extra={
                    "url": fetch_url,
                    "status_code": response.status_code,
                    "reason": response.reason_phrase,
                },
            )
            return None

        digest = compute_sha256_hex(response.content)
        logger.info(
            "document_hash_computed",
            extra={"url": self._document_url, "hash_prefix": digest[:16]},
        )

        # The configured URL is recorded, not the rewritten raw URL
        return DocumentFingerprint(url=self._document_url, hash=digest)
