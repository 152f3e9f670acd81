"""Phase clock — derives round phase from the externally supplied clock.

There is no stored status field. The proposal window and the voting
window are independent expirations; each operation checks the one it
cares about:

    CreateProposal        proposal window must be open
    VoteProposal          voting window must be open
    TriggerDistribution   voting window must be expired

``derive_phase`` summarises both windows for status reporting only.
"""

from __future__ import annotations

import enum

from qfround.errors import (
    ProposalPeriodExpired,
    VotingPeriodExpired,
    VotingPeriodNotExpired,
)
from qfround.models.round import BlockInfo, Expiration, RoundConfig


class RoundPhase(str, enum.Enum):
    ACCEPTING_PROPOSALS = "accepting_proposals"
    ACCEPTING_VOTES = "accepting_votes"
    CLOSED = "closed"


def is_open(expiration: Expiration, block: BlockInfo) -> bool:
    return not expiration.is_expired(block)


def require_proposal_window_open(config: RoundConfig, block: BlockInfo) -> None:
    if config.proposal_period.is_expired(block):
        raise ProposalPeriodExpired()


def require_voting_window_open(config: RoundConfig, block: BlockInfo) -> None:
    if config.voting_period.is_expired(block):
        raise VotingPeriodExpired()


def require_voting_window_expired(config: RoundConfig, block: BlockInfo) -> None:
    if not config.voting_period.is_expired(block):
        raise VotingPeriodNotExpired()


def derive_phase(config: RoundConfig, block: BlockInfo) -> RoundPhase:
    """Voting close wins; an open proposal window otherwise wins."""
    if config.voting_period.is_expired(block):
        return RoundPhase.CLOSED
    if is_open(config.proposal_period, block):
        return RoundPhase.ACCEPTING_PROPOSALS
    return RoundPhase.ACCEPTING_VOTES
