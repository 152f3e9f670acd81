"""Proposal registry and vote ledger over a key-value store.

Key layout:
    config                      RoundConfig singleton
    proposal_seq                last assigned proposal id (0 if none)
    proposal/<id:016x>          Proposal, id big-endian so key order == id order
    vote/<id:016x>/<voter>      Vote, one per (proposal, voter)

Both classes write only inside a store batch, so sequence advance and
proposal persistence (or vote and running total) land together or not
at all.
"""

from __future__ import annotations

from typing import Optional

from qfround.errors import (
    AddressAlreadyVotedProject,
    FundAmountOverflow,
    InternalInvariantViolation,
    ProposalNotFound,
)
from qfround.models.round import U128_MAX, Proposal, Vote
from qfround.persistence.kv_store import MemoryKVStore

PROPOSAL_SEQ_KEY = "proposal_seq"
PROPOSAL_PREFIX = "proposal/"
VOTE_PREFIX = "vote/"


def proposal_key(proposal_id: int) -> str:
    return PROPOSAL_PREFIX + proposal_id.to_bytes(8, "big").hex()


def vote_prefix(proposal_id: int) -> str:
    return VOTE_PREFIX + proposal_id.to_bytes(8, "big").hex() + "/"


def vote_key(proposal_id: int, voter: str) -> str:
    return vote_prefix(proposal_id) + voter


class ProposalRegistry:
    """Append-only sequence of proposals keyed by auto-incrementing id."""

    def __init__(self, store: MemoryKVStore) -> None:
        self._store = store

    def create(
        self,
        title: str,
        description: str,
        fund_address: str,
        metadata: bytes = b"",
    ) -> Proposal:
        """Assign the next id (starting at 1) and persist the proposal."""
        with self._store.batch():
            next_id = int(self._store.get(PROPOSAL_SEQ_KEY, 0)) + 1
            proposal = Proposal(
                id=next_id,
                title=title,
                description=description,
                fund_address=fund_address,
                metadata=metadata,
            )
            self._store.set(PROPOSAL_SEQ_KEY, next_id)
            self._store.set(proposal_key(next_id), proposal.to_dict())
        return proposal

    def get(self, proposal_id: int) -> Proposal:
        data = self._store.get(proposal_key(proposal_id))
        if data is None:
            raise ProposalNotFound(proposal_id)
        return Proposal.from_dict(data)

    def list_all(self) -> list[Proposal]:
        """All proposals, ascending by id."""
        return [Proposal.from_dict(v) for _, v in self._store.range(PROPOSAL_PREFIX)]

    def find_by_fund_address(self, fund_address: str) -> list[Proposal]:
        return [p for p in self.list_all() if p.fund_address == fund_address]

    @property
    def last_id(self) -> int:
        return int(self._store.get(PROPOSAL_SEQ_KEY, 0))

    def add_collected_funds(self, proposal_id: int, amount: int) -> Proposal:
        """Grow a proposal's running total. Only the vote path calls this."""
        proposal = self.get(proposal_id)
        total = proposal.collected_funds + amount
        if total > U128_MAX:
            raise FundAmountOverflow("collected funds", total)
        proposal.collected_funds = total
        self._store.set(proposal_key(proposal_id), proposal.to_dict())
        return proposal


class VoteLedger:
    """One vote per (proposal, voter). Never mutated once recorded."""

    def __init__(self, store: MemoryKVStore) -> None:
        self._store = store

    def exists(self, proposal_id: int, voter: str) -> bool:
        return self._store.has(vote_key(proposal_id, voter))

    def record(self, vote: Vote) -> None:
        if vote.fund.amount <= 0:
            raise InternalInvariantViolation(
                f"Vote amount must be positive, got {vote.fund.amount}"
            )
        if self.exists(vote.proposal_id, vote.voter):
            raise AddressAlreadyVotedProject(vote.voter, vote.proposal_id)
        self._store.set(vote_key(vote.proposal_id, vote.voter), vote.to_dict())

    def get(self, proposal_id: int, voter: str) -> Optional[Vote]:
        data = self._store.get(vote_key(proposal_id, voter))
        return Vote.from_dict(data) if data is not None else None

    def list_for_proposal(self, proposal_id: int) -> list[Vote]:
        """Votes for one proposal in key order (voter address ascending)."""
        return [Vote.from_dict(v) for _, v in self._store.range(vote_prefix(proposal_id))]

    def count(self) -> int:
        return sum(1 for _ in self._store.range(VOTE_PREFIX))
