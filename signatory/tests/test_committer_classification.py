from signatory.app.checks.committers import (
    classify_committers,
    collect_committers,
    exclude_by_policy,
    has_valid_signature,
)
from signatory.app.schemas.signatures import (
    ContributorIdentity,
    InvalidationReason,
    Ledger,
)
from signatory.tests.fixtures.github_fakes import BOT_LOGIN, make_commit, make_record


ALICE = ContributorIdentity(name="alice", user_id=1)
BOB = ContributorIdentity(name="bob", user_id=2)
CAROL = ContributorIdentity(name="carol", user_id=3)


def test_collect_committers_dedupes_and_keeps_unlinked_authors():
    commits = [
        make_commit("alice", 1),
        make_commit("bob", 2),
        make_commit("alice", 1),
        make_commit(None, None, author_name="Local Dev"),
        make_commit(None, None, author_name="Local Dev"),
    ]

    committers = collect_committers(commits)

    assert committers == [
        ALICE,
        BOB,
        ContributorIdentity(name="Local Dev", user_id=None),
    ]


def test_partition_is_disjoint_and_complete():
    ledger = Ledger(signed_contributors=[make_record("alice", 1)])
    committers = [ALICE, BOB, CAROL]

    result = classify_committers(ledger, committers)

    signed_ids = {c.user_id for c in result.signed}
    not_signed_ids = {c.user_id for c in result.not_signed}

    assert signed_ids == {1}
    assert not_signed_ids == {2, 3}
    assert signed_ids.isdisjoint(not_signed_ids)
    assert signed_ids | not_signed_ids == {c.user_id for c in committers}
    assert result.unknown == []


def test_invalidated_record_does_not_count_as_signed():
    record = make_record("alice", 1).invalidate(
        at="2024-02-01T00:00:00.000Z",
        reason=InvalidationReason.COMMENT_DELETED,
    )
    ledger = Ledger(signed_contributors=[record])

    result = classify_committers(ledger, [ALICE])

    assert result.signed == []
    assert result.not_signed == [ALICE]
    assert has_valid_signature(1, ledger.signed_contributors) is False


def test_resigned_contributor_counts_as_signed():
    stale = make_record("alice", 1).invalidate(
        at="2024-02-01T00:00:00.000Z",
        reason=InvalidationReason.COMMENT_EDITED,
    )
    fresh = make_record("alice", 1, comment_id=77)
    ledger = Ledger(signed_contributors=[stale, fresh])

    result = classify_committers(ledger, [ALICE])

    assert result.signed == [ALICE]


def test_unlinked_authors_are_unknown():
    unlinked = ContributorIdentity(name="Local Dev", user_id=None)

    result = classify_committers(Ledger(), [ALICE, unlinked])

    assert result.not_signed == [ALICE]
    assert result.unknown == [unlinked]
    assert result.not_signed_ids() == {1}


def test_policy_excludes_bots_and_allowlisted_handles():
    committers = [
        ALICE,
        ContributorIdentity(name=BOT_LOGIN, user_id=41898282),
        ContributorIdentity(name="renovate[bot]", user_id=29139614),
        ContributorIdentity(name="Dependabot-Preview", user_id=27856297),
        BOB,
    ]

    eligible, excluded = exclude_by_policy(
        committers,
        bot_login=BOT_LOGIN,
        allowlist=["dependabot*", "bob"],
    )

    assert eligible == [ALICE]
    assert [c.name for c in excluded] == [
        BOT_LOGIN,
        "renovate[bot]",
        "Dependabot-Preview",
        "bob",
    ]
