"""Tests for grant aggregation and distribution planning.

Proves:
- Aggregation reduces votes to contribution lists and refuses
  inconsistent running totals.
- Each proposal is paid match + collected, in ascending id order.
- The leftover goes to the leftover recipient as the last instruction.
- The plan conserves the matching pool and its digest is stable.
"""

import pytest

from qfround.errors import InternalInvariantViolation
from qfround.matching.aggregator import aggregate
from qfround.matching.clr import clr_match
from qfround.matching.distribution import plan_distribution
from qfround.models.matching import RawGrant
from qfround.models.round import Coin, Proposal, Vote


def _proposal(proposal_id: int, collected: int) -> Proposal:
    return Proposal(
        id=proposal_id,
        title=f"Proposal {proposal_id}",
        description="",
        fund_address=f"fund_{proposal_id}",
        collected_funds=collected,
    )


def _vote(proposal_id: int, voter: str, amount: int) -> Vote:
    return Vote(proposal_id=proposal_id, voter=voter, fund=Coin("ucosm", amount))


def _reference_grants() -> list[RawGrant]:
    amounts = [7200, 12345, 4456, 60000]
    return [
        aggregate(_proposal(i, a), [_vote(i, f"voter_{i}", a)])
        for i, a in enumerate(amounts, 1)
    ]


class TestAggregate:
    def test_collects_contribution_amounts(self) -> None:
        votes = [_vote(1, "a", 100), _vote(1, "b", 25)]
        grant = aggregate(_proposal(1, 125), votes)
        assert grant.contribution_amounts == (100, 25)
        assert grant.collected_total == 125
        assert grant.recipient == "fund_1"

    def test_no_votes(self) -> None:
        grant = aggregate(_proposal(3, 0), [])
        assert grant.contribution_amounts == ()
        assert grant.collected_total == 0

    def test_running_total_mismatch_is_fatal(self) -> None:
        with pytest.raises(InternalInvariantViolation):
            aggregate(_proposal(1, 999), [_vote(1, "a", 100)])

    def test_foreign_vote_is_fatal(self) -> None:
        with pytest.raises(InternalInvariantViolation):
            aggregate(_proposal(1, 100), [_vote(2, "a", 100)])


class TestPlanDistribution:
    def test_reference_round_payments(self) -> None:
        grants = _reference_grants()
        result = clr_match(grants, 1_000_000)
        plan = plan_distribution(result, grants, Coin("ucosm", 1_000_000), "treasury")

        assert [(p.recipient, p.coin.amount) for p in plan.payments] == [
            ("fund_1", 84737 + 7200),
            ("fund_2", 147966 + 12345),
            ("fund_3", 52312 + 4456),
            ("fund_4", 714983 + 60000),
        ]
        assert plan.leftover.recipient == "treasury"
        assert plan.leftover.coin == Coin("ucosm", 2)
        assert plan.instructions[-1] is plan.leftover

    def test_conserves_pool(self) -> None:
        grants = _reference_grants()
        plan = plan_distribution(
            clr_match(grants, 1_000_000), grants, Coin("ucosm", 1_000_000), "treasury",
        )
        assert plan.total_paid - plan.total_collected == 1_000_000
        assert plan.total_collected == 7200 + 12345 + 4456 + 60000

    def test_payment_breakdown(self) -> None:
        grants = _reference_grants()
        plan = plan_distribution(
            clr_match(grants, 1_000_000), grants, Coin("ucosm", 1_000_000), "treasury",
        )
        for payment in plan.payments:
            assert payment.match_amount + payment.collected_amount == payment.coin.amount
            assert payment.coin.denom == "ucosm"

    def test_digest_is_stable(self) -> None:
        grants = _reference_grants()
        result = clr_match(grants, 1_000_000)
        first = plan_distribution(result, grants, Coin("ucosm", 1_000_000), "treasury")
        second = plan_distribution(result, grants, Coin("ucosm", 1_000_000), "treasury")
        assert first.plan_digest() == second.plan_digest()
        assert first.plan_digest().startswith("sha256:")

    def test_digest_changes_with_recipient(self) -> None:
        grants = _reference_grants()
        result = clr_match(grants, 1_000_000)
        a = plan_distribution(result, grants, Coin("ucosm", 1_000_000), "treasury")
        b = plan_distribution(result, grants, Coin("ucosm", 1_000_000), "other")
        assert a.plan_digest() != b.plan_digest()

    def test_budget_mismatch_is_fatal(self) -> None:
        grants = _reference_grants()
        result = clr_match(grants, 1_000_000)
        with pytest.raises(InternalInvariantViolation):
            plan_distribution(result, grants, Coin("ucosm", 999_999), "treasury")

    def test_grant_count_mismatch_is_fatal(self) -> None:
        grants = _reference_grants()
        result = clr_match(grants, 1_000_000)
        with pytest.raises(InternalInvariantViolation):
            plan_distribution(result, grants[:2], Coin("ucosm", 1_000_000), "treasury")
