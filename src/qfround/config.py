"""Round parameters and process settings.

RoundParams is the input to round initialization, usually read from a
JSON document:

    {
      "admin": "admin",
      "leftover_recipient": "treasury",
      "budget_denom": "ucosm",
      "proposal_period": {"at_height": 100},
      "voting_period": {"at_height": 200},
      "create_proposal_whitelist": null,
      "vote_proposal_whitelist": ["alice", "bob"],
      "algorithm": "capital_constrained_liberal_radicalism"
    }

Settings holds process-level options taken from the environment. A
``.env`` file, if present, is loaded first (existing variables win).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from qfround.models.round import Expiration, MatchingAlgorithm

DEFAULT_DATA_DIR = Path("data")
DEFAULT_LOG_LEVEL = "WARNING"


def _optional_whitelist(data: dict[str, Any], key: str) -> Optional[tuple[str, ...]]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(a, str) and a for a in value):
        raise ValueError(f"{key} must be null or a list of non-empty addresses")
    return tuple(value)


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value.strip()


@dataclass(frozen=True)
class RoundParams:
    """Everything needed to initialize a round except the attached budget."""
    admin: str
    leftover_recipient: str
    budget_denom: str
    proposal_period: Expiration
    voting_period: Expiration
    create_proposal_whitelist: Optional[tuple[str, ...]] = None
    vote_proposal_whitelist: Optional[tuple[str, ...]] = None
    algorithm: MatchingAlgorithm = MatchingAlgorithm.CAPITAL_CONSTRAINED_LIBERAL_RADICALISM

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RoundParams:
        """Validate and build params. Raises ValueError on malformed input."""
        if not isinstance(data, dict):
            raise ValueError("Round params must be a JSON object")
        for key in ("proposal_period", "voting_period"):
            if key not in data:
                raise ValueError(f"{key} is required")
        algorithm = data.get(
            "algorithm",
            MatchingAlgorithm.CAPITAL_CONSTRAINED_LIBERAL_RADICALISM.value,
        )
        try:
            algorithm = MatchingAlgorithm(algorithm)
        except ValueError:
            raise ValueError(f"Unknown matching algorithm: {algorithm}") from None

        return cls(
            admin=_required_str(data, "admin"),
            leftover_recipient=_required_str(data, "leftover_recipient"),
            budget_denom=_required_str(data, "budget_denom"),
            proposal_period=Expiration.from_dict(data["proposal_period"]),
            voting_period=Expiration.from_dict(data["voting_period"]),
            create_proposal_whitelist=_optional_whitelist(data, "create_proposal_whitelist"),
            vote_proposal_whitelist=_optional_whitelist(data, "vote_proposal_whitelist"),
            algorithm=algorithm,
        )

    @classmethod
    def from_file(cls, path: Path) -> RoundParams:
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))


@dataclass(frozen=True)
class Settings:
    """Process settings: where round state lives and how loud to log."""
    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> Settings:
        """Read QFROUND_DATA_DIR and QFROUND_LOG_LEVEL.

        ``env_file`` defaults to ``.env`` in the working directory.
        """
        load_dotenv(env_file or Path(".env"))
        data_dir = os.getenv("QFROUND_DATA_DIR")
        log_level = os.getenv("QFROUND_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper()
        return cls(
            data_dir=Path(data_dir) if data_dir else DEFAULT_DATA_DIR,
            log_level=log_level,
        )
