"""
Workflow entrypoint for the signature check.

Runs one check for the pull request that triggered the workflow and
reports the verdict through the process exit code:

    0  every contributor has a valid signature
    1  signatures are missing, or the run failed
    2  the action is misconfigured
"""

from __future__ import annotations

import asyncio
import logging
import sys
from importlib.metadata import PackageNotFoundError, version

import httpx
from pydantic import ValidationError

from signatory.app.config import Settings, get_settings
from signatory.app.context import RunContext
from signatory.app.coordinator.coordinator import SignatureCoordinator
from signatory.app.events import LoggingEventEmitter
from signatory.app.schemas.signatures import SignatureCheckReport

logger = logging.getLogger("signatory.main")


EXIT_ALL_SIGNED = 0
EXIT_NOT_SIGNED = 1
EXIT_INVALID_CONFIGURATION = 2


def get_app_version() -> str:
    try:
        return version("cla-signatory")
    except PackageNotFoundError:
        return "0.1.0"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_http_client() -> httpx.AsyncClient:
    """Shared transport for GitHub API calls and document fetches."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            timeout=30.0,
            connect=10.0,
        ),
        follow_redirects=True,
        headers={
            "User-Agent": f"cla-signatory/{get_app_version()}",
        },
    )


async def run_check(settings: Settings, context: RunContext) -> SignatureCheckReport:
    http_client = build_http_client()
    try:
        coordinator = SignatureCoordinator.from_settings(
            settings,
            context,
            http_client=http_client,
        )
        return await coordinator.run(emitter=LoggingEventEmitter())
    finally:
        await http_client.aclose()


def main() -> int:
    configure_logging()

    # ------------------------------------------------------------------
    # Load and validate configuration (FAIL FAST)
    # ------------------------------------------------------------------
    try:
        settings = get_settings()
    except ValidationError:
        logger.exception("invalid_signatory_configuration")
        return EXIT_INVALID_CONFIGURATION

    logging.getLogger().setLevel(settings.log_level)

    try:
        context = RunContext.from_env()
    except (RuntimeError, ValidationError):
        logger.exception("invalid_run_context")
        return EXIT_INVALID_CONFIGURATION

    logger.info(
        "signature_check_started",
        extra={
            "version": get_app_version(),
            "repository": context.repository,
            "pull_request_number": context.pull_request_number,
            "event_name": context.event_name,
            "document_mode": settings.document_mode.value,
        },
    )

    try:
        report = asyncio.run(run_check(settings, context))
    except Exception:
        logger.exception("signature_check_failed")
        return EXIT_NOT_SIGNED

    if report.all_signed:
        logger.info("all_contributors_signed")
        return EXIT_ALL_SIGNED

    logger.error(
        "contributors_must_sign",
        extra={
            "pull_request_number": report.pull_request_number,
            "not_signed": report.not_signed,
            "unknown": report.unknown,
        },
    )
    return EXIT_NOT_SIGNED


if __name__ == "__main__":
    sys.exit(main())
