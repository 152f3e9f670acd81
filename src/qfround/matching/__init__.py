"""Matching — grant aggregation, CLR matching and distribution planning."""

from qfround.matching.aggregator import aggregate
from qfround.matching.clr import clr_match, compute_matches, liberal_match
from qfround.matching.distribution import plan_distribution

__all__ = [
    "aggregate",
    "clr_match",
    "compute_matches",
    "liberal_match",
    "plan_distribution",
]
