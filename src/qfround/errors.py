"""Error taxonomy for a quadratic-funding round.

Every rejection a caller can see is a RoundError subclass carrying a
stable ``code``. The service layer turns these into failed
ServiceResults; nothing is written to the store when one is raised.

InternalInvariantViolation is different: it means the persisted round
state or the arithmetic is inconsistent. It is never converted into a
ServiceResult and always propagates to the caller.
"""

from __future__ import annotations

from typing import Optional


class RoundError(Exception):
    """Base class for every user-visible round failure."""

    code = "round_error"
    default_message = "Round operation failed"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


# -- Authorization ---------------------------------------------------------

class Unauthorized(RoundError):
    code = "unauthorized"
    default_message = "Unauthorized"


# -- Phase -----------------------------------------------------------------

class ProposalPeriodExpired(RoundError):
    code = "proposal_period_expired"
    default_message = "Proposal period expired"


class VotingPeriodExpired(RoundError):
    code = "voting_period_expired"
    default_message = "Voting period expired"


class VotingPeriodNotExpired(RoundError):
    code = "voting_period_not_expired"
    default_message = "Voting period not expired"


# -- Funds validation ------------------------------------------------------

class ExpectedCoinNotSent(RoundError):
    code = "expected_coin_not_sent"

    def __init__(self, coin_denom: str) -> None:
        self.coin_denom = coin_denom
        super().__init__(f"Expected coin not sent (expected: {coin_denom})")


class MultipleCoinsSent(RoundError):
    code = "multiple_coins_sent"
    default_message = "Multiple coins sent; exactly one is expected"


class WrongFundCoin(RoundError):
    code = "wrong_fund_coin"

    def __init__(self, expected: str, got: str) -> None:
        self.expected = expected
        self.got = got
        super().__init__(f"Wrong fund coin (expected: {expected}, got: {got})")


class FundAmountOverflow(RoundError):
    code = "fund_amount_overflow"

    def __init__(self, what: str, value: int) -> None:
        self.what = what
        self.value = value
        super().__init__(f"{what} exceeds the u128 range: {value}")


# -- Lookup ----------------------------------------------------------------

class ProposalNotFound(RoundError):
    code = "proposal_not_found"

    def __init__(self, proposal_id: int) -> None:
        self.proposal_id = proposal_id
        super().__init__(f"Proposal not found: {proposal_id}")


# -- Vote integrity --------------------------------------------------------

class AddressAlreadyVotedProject(RoundError):
    code = "address_already_voted_project"

    def __init__(self, voter: str, proposal_id: int) -> None:
        self.voter = voter
        self.proposal_id = proposal_id
        super().__init__(f"Address {voter} already voted on proposal {proposal_id}")


# -- Algorithm precondition ------------------------------------------------

class CLRConstrainRequired(RoundError):
    code = "clr_constrain_required"
    default_message = (
        "CLR budget constraint cannot be applied: "
        "no budget or no contributions to match"
    )


# -- Round lifecycle -------------------------------------------------------

class RoundNotInitialized(RoundError):
    code = "round_not_initialized"
    default_message = "Round has not been initialized"


class RoundAlreadyInitialized(RoundError):
    code = "round_already_initialized"
    default_message = "Round is already initialized; config is immutable"


class DistributionAlreadyExecuted(RoundError):
    code = "distribution_already_executed"
    default_message = "Distribution has already been executed for this round"


class PersistenceFailure(RoundError):
    """The store or the audit log could not be written. Nothing was applied."""
    code = "persistence_failure"
    default_message = "Persistence failure"


# -- Fatal -----------------------------------------------------------------

class InternalInvariantViolation(Exception):
    """Persisted state or arithmetic broke an invariant. Not recoverable."""


class ArithmeticOverflow(InternalInvariantViolation):
    """A value left the unsigned 128-bit range."""
