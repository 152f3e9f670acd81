"""Capital-Constrained Liberal Radicalism (CLR) matching.

For each grant the liberal match is the square of the sum of the integer
square roots of its individual contributions:

    liberal_i = (sum(isqrt(c) for c in contributions_i)) ** 2

Many small backers therefore beat one large backer for the same total.
The liberal matches are then scaled proportionally onto the budget,
multiplying before dividing so each match is floored exactly once:

    match_i = liberal_i * budget // sum(liberal)

    leftover = budget - sum(match_i)        (0 <= leftover < len(grants))

Everything is integer arithmetic. Python ints do not wrap, so the only
overflow concern is the host ledger's u128 range: contributions, liberal
matches, their total and every emitted match must fit in it, otherwise
ArithmeticOverflow is raised.

Algorithms are looked up by MatchingAlgorithm through ``compute_matches``.
Every registered function takes ``(grants, budget)`` and returns a
MatchResult with one GrantMatch per grant, in input order.
"""

from __future__ import annotations

import math
from typing import Callable, Sequence

from qfround.errors import CLRConstrainRequired, InternalInvariantViolation
from qfround.models.matching import GrantMatch, MatchResult, RawGrant
from qfround.models.round import MatchingAlgorithm, check_u128

MatchingFunction = Callable[[Sequence[RawGrant], int], MatchResult]


def liberal_match(contributions: Sequence[int]) -> int:
    """Unconstrained QF match for one grant. Empty contributions give 0."""
    root_sum = 0
    for amount in contributions:
        check_u128(amount, "contribution")
        root_sum += math.isqrt(amount)
    return check_u128(root_sum * root_sum, "liberal match")


def clr_match(grants: Sequence[RawGrant], budget: int) -> MatchResult:
    """Scale liberal matches onto ``budget``.

    Raises:
        CLRConstrainRequired: no grants, no budget, or nothing to match.
        ArithmeticOverflow: a value leaves the u128 range.
    """
    check_u128(budget, "budget")
    if not grants or budget == 0:
        raise CLRConstrainRequired()

    liberal = [liberal_match(g.contribution_amounts) for g in grants]
    raw_total = check_u128(sum(liberal), "liberal match total")
    if raw_total == 0:
        raise CLRConstrainRequired()

    matches = tuple(
        GrantMatch(
            proposal_id=grant.proposal_id,
            recipient=grant.recipient,
            liberal_match=lm,
            amount=lm * budget // raw_total,
        )
        for grant, lm in zip(grants, liberal)
    )

    leftover = budget - sum(m.amount for m in matches)
    if leftover < 0 or leftover >= len(grants):
        raise InternalInvariantViolation(
            f"CLR leftover {leftover} outside [0, {len(grants)}) for budget {budget}"
        )

    return MatchResult(
        matches=matches,
        leftover=leftover,
        budget=budget,
        raw_total=raw_total,
    )


_ALGORITHMS: dict[MatchingAlgorithm, MatchingFunction] = {
    MatchingAlgorithm.CAPITAL_CONSTRAINED_LIBERAL_RADICALISM: clr_match,
}


def compute_matches(
    algorithm: MatchingAlgorithm,
    grants: Sequence[RawGrant],
    budget: int,
) -> MatchResult:
    """Run the matching function registered for ``algorithm``."""
    fn = _ALGORITHMS.get(algorithm)
    if fn is None:
        raise ValueError(f"No matching function registered for {algorithm!r}")
    result = fn(grants, budget)
    if len(result.matches) != len(grants):
        raise InternalInvariantViolation(
            f"{algorithm.value} returned {len(result.matches)} matches "
            f"for {len(grants)} grants"
        )
    if result.total_matched + result.leftover != budget:
        raise InternalInvariantViolation(
            f"{algorithm.value} broke budget conservation: "
            f"{result.total_matched} + {result.leftover} != {budget}"
        )
    return result
