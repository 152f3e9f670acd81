"""Attached-funds validation.

Round initialization and voting both expect exactly one coin, in the
round denomination, with a positive amount.
"""

from __future__ import annotations

from typing import Sequence

from qfround.errors import (
    ExpectedCoinNotSent,
    FundAmountOverflow,
    MultipleCoinsSent,
    WrongFundCoin,
)
from qfround.models.round import U128_MAX, Coin


def extract_funding_coin(sent_funds: Sequence[Coin], expected_denom: str) -> Coin:
    """Return the single attached coin.

    Raises:
        ExpectedCoinNotSent: nothing attached, or a zero amount.
        MultipleCoinsSent: more than one coin attached.
        WrongFundCoin: the coin is not ``expected_denom``.
        FundAmountOverflow: the amount does not fit in a u128.
    """
    if not sent_funds:
        raise ExpectedCoinNotSent(expected_denom)
    if len(sent_funds) != 1:
        raise MultipleCoinsSent()
    coin = sent_funds[0]
    if coin.denom != expected_denom:
        raise WrongFundCoin(expected_denom, coin.denom)
    if coin.amount <= 0:
        raise ExpectedCoinNotSent(expected_denom)
    if coin.amount > U128_MAX:
        raise FundAmountOverflow("sent amount", coin.amount)
    return coin
