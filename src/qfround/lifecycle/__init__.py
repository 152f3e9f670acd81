"""Round lifecycle — admission, phase gating, proposals and votes."""

from qfround.lifecycle.guard import check_admin, check_whitelist
from qfround.lifecycle.phase_clock import RoundPhase, derive_phase
from qfround.lifecycle.registry import ProposalRegistry, VoteLedger

__all__ = [
    "check_admin",
    "check_whitelist",
    "RoundPhase",
    "derive_phase",
    "ProposalRegistry",
    "VoteLedger",
]
