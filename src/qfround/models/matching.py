"""Matching and distribution models.

These are ephemeral: computed at distribution time from persisted
proposals and votes, never stored themselves. Anyone holding the same
proposal and vote sets recomputes the same plan and the same digest.

Invariants:
- RawGrant.collected_total == sum(RawGrant.contribution_amounts)
- MatchResult.budget == sum(match.amount) + MatchResult.leftover
- DistributionPlan preserves the matching pool exactly
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Optional

from qfround.models.round import Coin


@dataclass(frozen=True)
class RawGrant:
    """One proposal's votes reduced to what the matching formula needs."""
    proposal_id: int
    recipient: str
    contribution_amounts: tuple[int, ...]
    collected_total: int


@dataclass(frozen=True)
class GrantMatch:
    """Matching outcome for a single grant."""
    proposal_id: int
    recipient: str
    liberal_match: int
    amount: int


@dataclass(frozen=True)
class MatchResult:
    """Per-grant matches, in input order, plus the unallocated remainder."""
    matches: tuple[GrantMatch, ...]
    leftover: int
    budget: int
    raw_total: int

    @property
    def total_matched(self) -> int:
        return sum(m.amount for m in self.matches)


@dataclass(frozen=True)
class PaymentInstruction:
    """An intent for the host ledger: pay ``coin`` to ``recipient``.

    ``match_amount`` and ``collected_amount`` break the payment down for
    audit; their sum is ``coin.amount``. Leftover instructions carry no
    proposal id.
    """
    recipient: str
    coin: Coin
    proposal_id: Optional[int] = None
    match_amount: int = 0
    collected_amount: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "coin": self.coin.to_dict(),
            "proposal_id": self.proposal_id,
            "match_amount": str(self.match_amount),
            "collected_amount": str(self.collected_amount),
        }


@dataclass(frozen=True)
class DistributionPlan:
    """Ordered payments (ascending proposal id) followed by the leftover."""
    payments: tuple[PaymentInstruction, ...]
    leftover: PaymentInstruction
    budget: Coin
    raw_total: int = 0

    @property
    def instructions(self) -> list[PaymentInstruction]:
        """All instructions in emission order, leftover last."""
        return list(self.payments) + [self.leftover]

    @property
    def total_collected(self) -> int:
        return sum(p.collected_amount for p in self.payments)

    @property
    def total_paid(self) -> int:
        return sum(p.coin.amount for p in self.instructions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "budget": self.budget.to_dict(),
            "raw_total": str(self.raw_total),
            "payments": [p.to_dict() for p in self.payments],
            "leftover": self.leftover.to_dict(),
        }

    def plan_digest(self) -> str:
        """SHA-256 of the canonical JSON form. Stable across runs."""
        canonical = json.dumps(
            self.to_dict(), sort_keys=True, ensure_ascii=False,
        ).encode("utf-8")
        return f"sha256:{hashlib.sha256(canonical).hexdigest()}"
