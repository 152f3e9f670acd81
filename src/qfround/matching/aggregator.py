"""Grant aggregator — reduces a proposal's votes to matching inputs.

The proposal's stored running total must equal the sum of its persisted
votes. A mismatch means the store is inconsistent, which is fatal.
"""

from __future__ import annotations

from typing import Sequence

from qfround.errors import InternalInvariantViolation
from qfround.models.matching import RawGrant
from qfround.models.round import Proposal, Vote


def aggregate(proposal: Proposal, votes: Sequence[Vote]) -> RawGrant:
    amounts: list[int] = []
    for vote in votes:
        if vote.proposal_id != proposal.id:
            raise InternalInvariantViolation(
                f"Vote by {vote.voter} for proposal {vote.proposal_id} "
                f"aggregated under proposal {proposal.id}"
            )
        amounts.append(vote.fund.amount)

    total = sum(amounts)
    if total != proposal.collected_funds:
        raise InternalInvariantViolation(
            f"Proposal {proposal.id}: collected_funds ({proposal.collected_funds}) "
            f"!= sum of votes ({total})"
        )

    return RawGrant(
        proposal_id=proposal.id,
        recipient=proposal.fund_address,
        contribution_amounts=tuple(amounts),
        collected_total=total,
    )
