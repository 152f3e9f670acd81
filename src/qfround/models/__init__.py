"""Core data models for a quadratic-funding round."""

from qfround.models.round import (
    BlockInfo,
    Coin,
    Expiration,
    ExpirationKind,
    MatchingAlgorithm,
    Proposal,
    RoundConfig,
    U128_MAX,
    Vote,
    check_u128,
)
from qfround.models.matching import (
    DistributionPlan,
    GrantMatch,
    MatchResult,
    PaymentInstruction,
    RawGrant,
)

__all__ = [
    "BlockInfo",
    "Coin",
    "Expiration",
    "ExpirationKind",
    "MatchingAlgorithm",
    "Proposal",
    "RoundConfig",
    "U128_MAX",
    "Vote",
    "check_u128",
    "DistributionPlan",
    "GrantMatch",
    "MatchResult",
    "PaymentInstruction",
    "RawGrant",
]
