"""Round models — config, clock readings, proposals and votes.

All monetary values are plain ``int`` in the round's single denomination.
No floats anywhere. Amounts must fit the unsigned 128-bit range used by
the host ledger; see ``check_u128``.

Serialization helpers (``to_dict`` / ``from_dict``) produce JSON-safe
dicts for the key-value store. Opaque proposal metadata is stored hex.
"""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Any, Optional

from qfround.errors import ArithmeticOverflow

U128_MAX = (1 << 128) - 1

_COIN_RE = re.compile(r"^(\d+)([a-zA-Z][a-zA-Z0-9/:._-]{1,127})$")


def check_u128(value: int, what: str = "amount") -> int:
    """Return ``value`` unchanged if it is a valid u128, else raise."""
    if value < 0 or value > U128_MAX:
        raise ArithmeticOverflow(f"{what} out of u128 range: {value}")
    return value


class MatchingAlgorithm(str, enum.Enum):
    """Closed set of matching formulas a round can select."""
    CAPITAL_CONSTRAINED_LIBERAL_RADICALISM = "capital_constrained_liberal_radicalism"


class ExpirationKind(str, enum.Enum):
    AT_HEIGHT = "at_height"
    AT_TIME = "at_time"
    NEVER = "never"


@dataclass(frozen=True)
class BlockInfo:
    """A reading of the monotonic clock: block height and unix seconds."""
    height: int
    time: int


@dataclass(frozen=True)
class Expiration:
    """When a window closes, evaluated against a BlockInfo.

    AT_HEIGHT expires once ``block.height >= value``, AT_TIME once
    ``block.time >= value``. NEVER stays open forever.
    """
    kind: ExpirationKind
    value: int = 0

    @classmethod
    def at_height(cls, height: int) -> Expiration:
        return cls(ExpirationKind.AT_HEIGHT, height)

    @classmethod
    def at_time(cls, time: int) -> Expiration:
        return cls(ExpirationKind.AT_TIME, time)

    @classmethod
    def never(cls) -> Expiration:
        return cls(ExpirationKind.NEVER)

    def is_expired(self, block: BlockInfo) -> bool:
        if self.kind == ExpirationKind.AT_HEIGHT:
            return block.height >= self.value
        if self.kind == ExpirationKind.AT_TIME:
            return block.time >= self.value
        return False

    def to_dict(self) -> dict[str, Any]:
        if self.kind == ExpirationKind.NEVER:
            return {"never": {}}
        return {self.kind.value: self.value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Expiration:
        if not isinstance(data, dict) or len(data) != 1:
            raise ValueError(f"Expiration must have exactly one key, got {data!r}")
        (key, value), = data.items()
        try:
            kind = ExpirationKind(key)
        except ValueError:
            raise ValueError(f"Unknown expiration kind: {key}") from None
        if kind == ExpirationKind.NEVER:
            return cls.never()
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise ValueError(f"Expiration {key} must be a non-negative integer")
        return cls(kind, value)

    def __str__(self) -> str:
        if self.kind == ExpirationKind.NEVER:
            return "never"
        return f"{self.kind.value}:{self.value}"


@dataclass(frozen=True)
class Coin:
    denom: str
    amount: int

    @classmethod
    def parse(cls, text: str) -> Coin:
        """Parse ``"1000ucosm"`` into ``Coin("ucosm", 1000)``."""
        match = _COIN_RE.match(text.strip())
        if match is None:
            raise ValueError(f"Invalid coin: {text!r}")
        return cls(denom=match.group(2), amount=int(match.group(1)))

    def to_dict(self) -> dict[str, Any]:
        return {"denom": self.denom, "amount": str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Coin:
        return cls(denom=data["denom"], amount=int(data["amount"]))

    def __str__(self) -> str:
        return f"{self.amount}{self.denom}"


def _whitelist_from(data: Any) -> Optional[tuple[str, ...]]:
    if data is None:
        return None
    return tuple(data)


@dataclass(frozen=True)
class RoundConfig:
    """Round configuration. Written once at initialization, never mutated.

    A whitelist of ``None`` means anyone may act; an empty tuple means
    nobody may.
    """
    admin: str
    leftover_recipient: str
    proposal_period: Expiration
    voting_period: Expiration
    budget: Coin
    algorithm: MatchingAlgorithm = MatchingAlgorithm.CAPITAL_CONSTRAINED_LIBERAL_RADICALISM
    create_proposal_whitelist: Optional[tuple[str, ...]] = None
    vote_proposal_whitelist: Optional[tuple[str, ...]] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "admin": self.admin,
            "leftover_recipient": self.leftover_recipient,
            "proposal_period": self.proposal_period.to_dict(),
            "voting_period": self.voting_period.to_dict(),
            "budget": self.budget.to_dict(),
            "algorithm": self.algorithm.value,
            "create_proposal_whitelist": (
                list(self.create_proposal_whitelist)
                if self.create_proposal_whitelist is not None else None
            ),
            "vote_proposal_whitelist": (
                list(self.vote_proposal_whitelist)
                if self.vote_proposal_whitelist is not None else None
            ),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoundConfig:
        return cls(
            admin=data["admin"],
            leftover_recipient=data["leftover_recipient"],
            proposal_period=Expiration.from_dict(data["proposal_period"]),
            voting_period=Expiration.from_dict(data["voting_period"]),
            budget=Coin.from_dict(data["budget"]),
            algorithm=MatchingAlgorithm(data["algorithm"]),
            create_proposal_whitelist=_whitelist_from(data.get("create_proposal_whitelist")),
            vote_proposal_whitelist=_whitelist_from(data.get("vote_proposal_whitelist")),
        )


@dataclass
class Proposal:
    """A funding proposal.

    Informational fields never change after creation; only
    ``collected_funds`` grows, once per accepted vote.
    """
    id: int
    title: str
    description: str
    fund_address: str
    metadata: bytes = b""
    collected_funds: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "fund_address": self.fund_address,
            "metadata": self.metadata.hex(),
            "collected_funds": str(self.collected_funds),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Proposal:
        return cls(
            id=int(data["id"]),
            title=data["title"],
            description=data["description"],
            fund_address=data["fund_address"],
            metadata=bytes.fromhex(data.get("metadata", "")),
            collected_funds=int(data.get("collected_funds", "0")),
        )


@dataclass(frozen=True)
class Vote:
    """One backer's contribution to one proposal. Immutable."""
    proposal_id: int
    voter: str
    fund: Coin

    def to_dict(self) -> dict[str, Any]:
        return {
            "proposal_id": self.proposal_id,
            "voter": self.voter,
            "fund": self.fund.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Vote:
        return cls(
            proposal_id=int(data["proposal_id"]),
            voter=data["voter"],
            fund=Coin.from_dict(data["fund"]),
        )
