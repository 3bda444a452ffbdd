"""
Committer classification against the signature ledger.

Partitions a pull request's contributors into signed, not signed and
unknown. Partitions are disjoint and together cover every contributor.

- signed:     an active (non-invalidated) record exists for the userId
- not signed: no record, or only invalidated records
- unknown:    no platform identity (commit author not linked to an
              account); such contributors cannot sign by comment

Accounts exempt by policy (the automation identity, bot accounts and
allowlisted handles) are removed before classification.
"""

from __future__ import annotations

import logging
from fnmatch import fnmatchcase
from typing import Iterable, List, Sequence, Tuple

from signatory.app.schemas.github import PullRequestCommit
from signatory.app.schemas.signatures import (
    CommitterClassification,
    ContributorIdentity,
    Ledger,
    SignatureRecord,
)

logger = logging.getLogger("signatory.committers")


def collect_committers(commits: Iterable[PullRequestCommit]) -> List[ContributorIdentity]:
    """
    Contributor identities from pull request commits, in first-seen order.

    Linked authors are deduplicated by userId, unlinked authors by name.
    """
    seen_ids: set[int] = set()
    seen_names: set[str] = set()
    committers: List[ContributorIdentity] = []

    for commit in commits:
        if commit.author is not None:
            if commit.author.id in seen_ids:
                continue
            seen_ids.add(commit.author.id)
            committers.append(
                ContributorIdentity(name=commit.author.login, user_id=commit.author.id)
            )
            continue

        name = (commit.commit.author.name if commit.commit.author else None) or "unknown"
        if name in seen_names:
            continue
        seen_names.add(name)
        committers.append(ContributorIdentity(name=name, user_id=None))

    return committers


def exclude_by_policy(
    committers: Sequence[ContributorIdentity],
    *,
    bot_login: str,
    allowlist: Sequence[str] = (),
) -> Tuple[List[ContributorIdentity], List[ContributorIdentity]]:
    """
    Split contributors into (eligible, excluded).

    Allowlist entries are matched case-insensitively and may use shell
    wildcards (``dependabot*``).
    """
    patterns = [p.lower() for p in allowlist]
    eligible: List[ContributorIdentity] = []
    excluded: List[ContributorIdentity] = []

    for committer in committers:
        handle = committer.name.lower()
        if (
            committer.name == bot_login
            or handle.endswith("[bot]")
            or any(fnmatchcase(handle, pattern) for pattern in patterns)
        ):
            excluded.append(committer)
        else:
            eligible.append(committer)

    if excluded:
        logger.info(
            "contributors_excluded_by_policy",
            extra={"contributors": [c.name for c in excluded]},
        )

    return eligible, excluded


def has_valid_signature(user_id: int, records: Iterable[SignatureRecord]) -> bool:
    """True if an active signature exists for ``user_id``."""
    return any(r.user_id == user_id and r.is_active for r in records)


def classify_committers(
    ledger: Ledger,
    committers: Sequence[ContributorIdentity],
    unknown: Sequence[ContributorIdentity] = (),
) -> CommitterClassification:
    signed: List[ContributorIdentity] = []
    not_signed: List[ContributorIdentity] = []
    unknown_out: List[ContributorIdentity] = []
    seen_ids: set[int] = set()

    for committer in committers:
        if committer.user_id is None:
            if committer not in unknown_out:
                unknown_out.append(committer)
            continue
        if committer.user_id in seen_ids:
            continue
        seen_ids.add(committer.user_id)

        if has_valid_signature(committer.user_id, ledger.signed_contributors):
            signed.append(committer)
        else:
            not_signed.append(committer)

    for committer in unknown:
        if committer.user_id is not None and committer.user_id in seen_ids:
            continue
        if committer not in unknown_out:
            unknown_out.append(committer)

    return CommitterClassification(
        signed=signed,
        not_signed=not_signed,
        unknown=unknown_out,
    )
