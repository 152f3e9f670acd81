"""Distribution planner — turns match results into payment intents.

Each proposal receives its matching share plus every vote it collected:

    amount_i = match_i + collected_i

Instructions are emitted in ascending proposal id, then one instruction
sends the leftover to the configured recipient. The planner never moves
value itself; the host ledger applies the instructions.

Postcondition (checked, fatal on failure):
    sum(amount_i) - sum(collected_i) + leftover == budget
"""

from __future__ import annotations

from typing import Sequence

from qfround.errors import InternalInvariantViolation
from qfround.models.matching import (
    DistributionPlan,
    MatchResult,
    PaymentInstruction,
    RawGrant,
)
from qfround.models.round import Coin, check_u128


def plan_distribution(
    result: MatchResult,
    grants: Sequence[RawGrant],
    budget: Coin,
    leftover_recipient: str,
) -> DistributionPlan:
    """Build the ordered payment plan for a finished round."""
    if len(result.matches) != len(grants):
        raise InternalInvariantViolation(
            f"{len(result.matches)} matches for {len(grants)} grants"
        )
    if result.budget != budget.amount:
        raise InternalInvariantViolation(
            f"Match result budget {result.budget} != round budget {budget.amount}"
        )

    payments: list[PaymentInstruction] = []
    for match, grant in zip(result.matches, grants):
        if match.proposal_id != grant.proposal_id:
            raise InternalInvariantViolation(
                f"Match for proposal {match.proposal_id} paired with "
                f"grant for proposal {grant.proposal_id}"
            )
        amount = check_u128(match.amount + grant.collected_total, "payment")
        payments.append(PaymentInstruction(
            recipient=grant.recipient,
            coin=Coin(budget.denom, amount),
            proposal_id=grant.proposal_id,
            match_amount=match.amount,
            collected_amount=grant.collected_total,
        ))
    payments.sort(key=lambda p: p.proposal_id)

    plan = DistributionPlan(
        payments=tuple(payments),
        leftover=PaymentInstruction(
            recipient=leftover_recipient,
            coin=Coin(budget.denom, result.leftover),
        ),
        budget=budget,
        raw_total=result.raw_total,
    )

    conserved = plan.total_paid - plan.total_collected
    if conserved != budget.amount:
        raise InternalInvariantViolation(
            f"Distribution does not conserve the matching pool: "
            f"paid {plan.total_paid} - collected {plan.total_collected} "
            f"!= budget {budget.amount}"
        )
    return plan
