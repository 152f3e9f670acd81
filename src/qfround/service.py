"""Round service — the funding round's state machine and public facade.

This is the only writer of the round's key-value store. It orchestrates:
- Round initialization (config + attached matching budget)
- Proposal creation (whitelist, proposal window, id sequence)
- Voting (whitelist, voting window, denomination, one vote per voter)
- Distribution (voting closed, admin only, CLR match, payment plan)
- Queries (proposal by id, by fund address, all proposals, status)

The round phase is never stored; every operation re-derives the windows
it depends on from the supplied BlockInfo.

Every mutating operation runs inside one store batch. A rejection
(RoundError) discards the batch and comes back as a failed ServiceResult
carrying the error code. InternalInvariantViolation also discards the
batch but is re-raised: the store is inconsistent and the caller must
not carry on as if a normal rejection happened.

Each accepted operation appends one audit event to the EventLog (if
wired) after its batch has committed, so a failed commit never leaves
an event behind. If that append fails the operation still succeeds:
the state change is durable, the result carries a warning and the
service is marked audit-degraded until restarted. check_round flags the
resulting log/state mismatch.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, Sequence

from qfround.config import RoundParams
from qfround.errors import (
    DistributionAlreadyExecuted,
    PersistenceFailure,
    ProposalPeriodExpired,
    RoundAlreadyInitialized,
    RoundError,
    RoundNotInitialized,
    VotingPeriodExpired,
)
from qfround.lifecycle.funds import extract_funding_coin
from qfround.lifecycle.guard import check_admin, check_whitelist
from qfround.lifecycle.phase_clock import (
    derive_phase,
    is_open,
    require_proposal_window_open,
    require_voting_window_expired,
    require_voting_window_open,
)
from qfround.lifecycle.registry import ProposalRegistry, VoteLedger
from qfround.matching.aggregator import aggregate
from qfround.matching.clr import compute_matches
from qfround.matching.distribution import plan_distribution
from qfround.models.matching import DistributionPlan
from qfround.models.round import BlockInfo, Coin, RoundConfig, Vote
from qfround.persistence.event_log import EventKind, EventLog, EventRecord
from qfround.persistence.kv_store import MemoryKVStore

logger = logging.getLogger(__name__)

CONFIG_KEY = "config"
DISTRIBUTION_KEY = "distribution_executed"


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_code: Optional[str] = None


class RoundService:
    """Quadratic-funding round facade.

    Usage:
        service = RoundService(MemoryKVStore())
        service.initialize_round("creator", block, params, [Coin("ucosm", 1_000_000)])

        result = service.create_proposal("alice", block, "Title", "Desc", "alice_fund")
        proposal_id = result.data["proposal_id"]

        service.vote_proposal("bob", block, proposal_id, [Coin("ucosm", 500)])

        # once the voting window has expired:
        result = service.trigger_distribution("admin", later_block)
        for instruction in result.data["plan"].instructions:
            ledger.apply(instruction)

    Persistence (optional):
        service = RoundService(JsonFileKVStore(path), event_log=EventLog(log_path))
    """

    def __init__(
        self,
        store: Optional[MemoryKVStore] = None,
        event_log: Optional[EventLog] = None,
    ) -> None:
        self._store = store if store is not None else MemoryKVStore()
        self._event_log = event_log
        self._proposals = ProposalRegistry(self._store)
        self._votes = VoteLedger(self._store)
        # Continue numbering from the persisted log to avoid ID collisions
        self._event_counter = event_log.count if event_log is not None else 0
        self._audit_degraded = False

    # ------------------------------------------------------------------
    # Round setup
    # ------------------------------------------------------------------

    def initialize_round(
        self,
        sender: str,
        block: BlockInfo,
        params: RoundParams,
        sent_funds: Sequence[Coin],
    ) -> ServiceResult:
        """Store the round config. The attached coin becomes the budget."""
        try:
            with self._transaction():
                if self._store.has(CONFIG_KEY):
                    raise RoundAlreadyInitialized()
                if params.proposal_period.is_expired(block):
                    raise ProposalPeriodExpired()
                if params.voting_period.is_expired(block):
                    raise VotingPeriodExpired()
                budget = extract_funding_coin(sent_funds, params.budget_denom)

                config = RoundConfig(
                    admin=params.admin,
                    leftover_recipient=params.leftover_recipient,
                    proposal_period=params.proposal_period,
                    voting_period=params.voting_period,
                    budget=budget,
                    algorithm=params.algorithm,
                    create_proposal_whitelist=params.create_proposal_whitelist,
                    vote_proposal_whitelist=params.vote_proposal_whitelist,
                )
                self._store.set(CONFIG_KEY, config.to_dict())
        except RoundError as e:
            return self._rejected("initialize_round", sender, e)

        warning = self._record_event(
            EventKind.ROUND_INITIALIZED, sender, block,
            {
                "admin": config.admin,
                "budget": config.budget.to_dict(),
                "algorithm": config.algorithm.value,
            },
        )

        logger.info(
            "Round initialized by %s with budget %s (%s)",
            sender, config.budget, config.algorithm.value,
        )
        data = {
            "budget": config.budget.to_dict(),
            "attributes": {"action": "initialize_round", "admin": config.admin},
        }
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def get_config(self) -> Optional[RoundConfig]:
        data = self._store.get(CONFIG_KEY)
        return RoundConfig.from_dict(data) if data is not None else None

    # ------------------------------------------------------------------
    # Proposals and votes
    # ------------------------------------------------------------------

    def create_proposal(
        self,
        sender: str,
        block: BlockInfo,
        title: str,
        description: str,
        fund_address: str,
        metadata: bytes = b"",
    ) -> ServiceResult:
        """Register a proposal while the proposal window is open."""
        try:
            with self._transaction():
                config = self._load_config()
                check_whitelist(config.create_proposal_whitelist, sender)
                require_proposal_window_open(config, block)

                proposal = self._proposals.create(
                    title=title,
                    description=description,
                    fund_address=fund_address,
                    metadata=metadata,
                )
        except RoundError as e:
            return self._rejected("create_proposal", sender, e)

        warning = self._record_event(
            EventKind.PROPOSAL_CREATED, sender, block,
            {
                "proposal_id": proposal.id,
                "title": proposal.title,
                "fund_address": proposal.fund_address,
            },
        )

        logger.info("Proposal %d created by %s", proposal.id, sender)
        data = {
            "proposal_id": proposal.id,
            "raw": proposal.id.to_bytes(8, "big"),
            "attributes": {
                "action": "create_proposal",
                "title": proposal.title,
                "proposal_id": str(proposal.id),
            },
        }
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def vote_proposal(
        self,
        sender: str,
        block: BlockInfo,
        proposal_id: int,
        sent_funds: Sequence[Coin],
    ) -> ServiceResult:
        """Record the sender's single vote on a proposal."""
        try:
            with self._transaction():
                config = self._load_config()
                check_whitelist(config.vote_proposal_whitelist, sender)
                require_voting_window_open(config, block)
                coin = extract_funding_coin(sent_funds, config.budget.denom)

                self._proposals.get(proposal_id)
                self._votes.record(Vote(proposal_id=proposal_id, voter=sender, fund=coin))
                proposal = self._proposals.add_collected_funds(proposal_id, coin.amount)
        except RoundError as e:
            return self._rejected("vote_proposal", sender, e)

        warning = self._record_event(
            EventKind.VOTE_CAST, sender, block,
            {
                "proposal_id": proposal_id,
                "amount": str(coin.amount),
                "collected_funds": str(proposal.collected_funds),
            },
        )

        logger.info(
            "Vote of %s by %s on proposal %d (collected %d)",
            coin, sender, proposal_id, proposal.collected_funds,
        )
        data = {
            "attributes": {
                "action": "vote_proposal",
                "proposal_key": str(proposal_id),
                "voter": sender,
                "collected_fund": str(proposal.collected_funds),
            },
        }
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    # ------------------------------------------------------------------
    # Distribution
    # ------------------------------------------------------------------

    def trigger_distribution(self, sender: str, block: BlockInfo) -> ServiceResult:
        """Compute the payment plan once voting has closed. Admin only.

        Succeeds at most once per round: the executed flag and plan
        digest are written in one batch.
        """
        try:
            with self._transaction():
                config = self._load_config()
                require_voting_window_expired(config, block)
                check_admin(config.admin, sender)
                if self._store.has(DISTRIBUTION_KEY):
                    raise DistributionAlreadyExecuted()

                plan = self._build_plan(config)
                digest = plan.plan_digest()
                self._store.set(DISTRIBUTION_KEY, {
                    "height": block.height,
                    "time": block.time,
                    "plan_digest": digest,
                })
        except RoundError as e:
            return self._rejected("trigger_distribution", sender, e)

        warning = self._record_event(
            EventKind.DISTRIBUTION_TRIGGERED, sender, block,
            {
                "plan_digest": digest,
                "payments": len(plan.payments),
                "leftover": str(plan.leftover.coin.amount),
            },
        )

        logger.info(
            "Distribution triggered by %s: %d payments, leftover %s, digest %s",
            sender, len(plan.payments), plan.leftover.coin, digest,
        )
        data = {
            "plan": plan,
            "plan_digest": digest,
            "messages": [i.to_dict() for i in plan.instructions],
            "attributes": {"action": "trigger_distribution"},
        }
        if warning:
            data["warning"] = warning
        return ServiceResult(success=True, data=data)

    def compute_plan(self) -> DistributionPlan:
        """Recompute the distribution plan from persisted state, read-only.

        No phase, admin or executed-flag checks. Used for previews and
        audit. Raises RoundError subclasses on precondition failures.
        """
        return self._build_plan(self._load_config())

    def _build_plan(self, config: RoundConfig) -> DistributionPlan:
        grants = [
            aggregate(proposal, self._votes.list_for_proposal(proposal.id))
            for proposal in self._proposals.list_all()
        ]
        result = compute_matches(config.algorithm, grants, config.budget.amount)
        return plan_distribution(
            result, grants, config.budget, config.leftover_recipient,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def proposal_by_id(self, proposal_id: int) -> ServiceResult:
        try:
            proposal = self._proposals.get(proposal_id)
        except RoundError as e:
            return ServiceResult(success=False, errors=[str(e)], error_code=e.code)
        return ServiceResult(success=True, data={"proposal": proposal})

    def all_proposals(self) -> ServiceResult:
        return ServiceResult(
            success=True, data={"proposals": self._proposals.list_all()},
        )

    def proposal_by_fund_address(self, fund_address: str) -> ServiceResult:
        return ServiceResult(
            success=True,
            data={"proposals": self._proposals.find_by_fund_address(fund_address)},
        )

    def status(self, block: BlockInfo) -> dict[str, Any]:
        """Summarise the round as seen at ``block``."""
        config = self.get_config()
        if config is None:
            return {"initialized": False}
        distribution = self._store.get(DISTRIBUTION_KEY)
        return {
            "initialized": True,
            "phase": derive_phase(config, block).value,
            "proposal_window_open": is_open(config.proposal_period, block),
            "voting_window_open": is_open(config.voting_period, block),
            "admin": config.admin,
            "budget": config.budget.to_dict(),
            "algorithm": config.algorithm.value,
            "proposals": self._proposals.last_id,
            "votes": self._votes.count(),
            "distribution_executed": distribution is not None,
            "distribution": distribution,
            "events": self._event_log.count if self._event_log is not None else None,
            "audit_degraded": self._audit_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """One store batch; write failures surface as PersistenceFailure."""
        try:
            with self._store.batch():
                yield
        except OSError as e:
            raise PersistenceFailure(f"Persistence failure: {e}") from e

    def _load_config(self) -> RoundConfig:
        config = self.get_config()
        if config is None:
            raise RoundNotInitialized()
        return config

    def _next_event_id(self) -> str:
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self,
        kind: EventKind,
        actor_id: str,
        block: BlockInfo,
        payload: dict[str, Any],
    ) -> Optional[str]:
        """Append an audit event once the operation's batch has committed.

        Returns a warning string if the append failed, else None. The
        event timestamp is wall-clock; the block's own height and time go
        into the payload unconverted.
        """
        if self._event_log is None:
            return None
        payload = dict(payload, height=block.height, time=block.time)
        event_id = self._next_event_id()
        try:
            self._event_log.append(EventRecord.create(
                event_id=event_id,
                event_kind=kind,
                actor_id=actor_id,
                payload=payload,
            ))
        except (ValueError, OSError) as e:
            self._audit_degraded = True
            logger.error(
                "State committed but audit event %s (%s) was not recorded: %s",
                event_id, kind.value, e,
            )
            return f"State committed but audit event was not recorded: {e}"
        return None

    def _rejected(self, operation: str, sender: str, error: RoundError) -> ServiceResult:
        logger.warning("%s by %s rejected: %s (%s)", operation, sender, error, error.code)
        return ServiceResult(success=False, errors=[str(error)], error_code=error.code)
