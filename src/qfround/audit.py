"""Round state audit — consistency checks over a persisted round.

Checks, in order:
- The proposal sequence equals the number of stored proposals, and ids
  run 1..N without gaps.
- Every vote is keyed under an existing proposal and carries the
  round's denomination.
- Each proposal's ``collected_funds`` equals the sum of its votes.
- If an event log is given, it holds exactly one event per stored state
  change (initialization, proposal, vote, distribution).
- Once voting could be closed, the distribution plan recomputed from
  state conserves the matching pool.

Nothing here mutates the store.
"""

from __future__ import annotations

from typing import Optional

from qfround.errors import CLRConstrainRequired, InternalInvariantViolation, RoundError
from qfround.lifecycle.registry import (
    PROPOSAL_PREFIX,
    PROPOSAL_SEQ_KEY,
    VOTE_PREFIX,
    vote_prefix,
)
from qfround.models.round import Proposal, RoundConfig, Vote
from qfround.persistence.event_log import EventKind, EventLog
from qfround.persistence.kv_store import MemoryKVStore
from qfround.service import CONFIG_KEY, DISTRIBUTION_KEY, RoundService


def check_round(
    store: MemoryKVStore, event_log: Optional[EventLog] = None,
) -> list[str]:
    """Return a list of violations; empty means the round is consistent."""
    errors: list[str] = []

    config_data = store.get(CONFIG_KEY)
    if config_data is None:
        if any(True for _ in store.range(PROPOSAL_PREFIX)):
            errors.append("Proposals stored for an uninitialized round")
        if event_log is not None and event_log.count:
            errors.append(
                f"Event log holds {event_log.count} events for an uninitialized round"
            )
        return errors
    config = RoundConfig.from_dict(config_data)

    # --- Proposal ids ---
    proposals = [Proposal.from_dict(v) for _, v in store.range(PROPOSAL_PREFIX)]
    seq = store.get(PROPOSAL_SEQ_KEY, 0)
    if seq != len(proposals):
        errors.append(
            f"Proposal sequence is {seq} but {len(proposals)} proposals are stored"
        )
    ids = [p.id for p in proposals]
    if ids != list(range(1, len(proposals) + 1)):
        errors.append(f"Proposal ids are not contiguous from 1: {ids}")

    # --- Votes ---
    known = set(ids)
    for key, value in store.range(VOTE_PREFIX):
        vote = Vote.from_dict(value)
        if vote.proposal_id not in known:
            errors.append(f"Vote {key} references unknown proposal {vote.proposal_id}")
        if vote.fund.denom != config.budget.denom:
            errors.append(
                f"Vote {key} is in {vote.fund.denom}, round denom is {config.budget.denom}"
            )
        if vote.fund.amount <= 0:
            errors.append(f"Vote {key} has non-positive amount {vote.fund.amount}")

    # --- Collected funds ---
    for proposal in proposals:
        total = sum(
            Vote.from_dict(v).fund.amount
            for _, v in store.range(vote_prefix(proposal.id))
        )
        if total != proposal.collected_funds:
            errors.append(
                f"Proposal {proposal.id} collected_funds {proposal.collected_funds} "
                f"!= sum of votes {total}"
            )

    # --- Event log ---
    if event_log is not None:
        expected = {
            EventKind.ROUND_INITIALIZED: 1,
            EventKind.PROPOSAL_CREATED: len(proposals),
            EventKind.VOTE_CAST: sum(1 for _ in store.range(VOTE_PREFIX)),
            EventKind.DISTRIBUTION_TRIGGERED: 1 if store.has(DISTRIBUTION_KEY) else 0,
        }
        for kind, count in expected.items():
            logged = len(event_log.events(kind))
            if logged != count:
                errors.append(
                    f"Event log has {logged} {kind.value} events, state implies {count}"
                )

    if errors:
        return errors

    # --- Conservation ---
    try:
        plan = RoundService(store).compute_plan()
    except CLRConstrainRequired:
        # Nothing to distribute yet; not a consistency problem.
        return errors
    except (RoundError, InternalInvariantViolation) as e:
        errors.append(f"Distribution plan cannot be computed: {e}")
        return errors

    if plan.total_paid - plan.total_collected != config.budget.amount:
        errors.append(
            f"Plan pays {plan.total_paid - plan.total_collected} from the pool, "
            f"budget is {config.budget.amount}"
        )
    if plan.leftover.coin.amount >= max(len(plan.payments), 1):
        errors.append(
            f"Leftover {plan.leftover.coin.amount} not below proposal count "
            f"{len(plan.payments)}"
        )
    return errors
