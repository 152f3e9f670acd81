"""Tests for round params parsing and environment settings."""

import json
from pathlib import Path

import pytest

from qfround.config import DEFAULT_DATA_DIR, RoundParams, Settings
from qfround.models.round import Expiration, MatchingAlgorithm


def _params_dict(**overrides) -> dict:
    data = {
        "admin": "admin",
        "leftover_recipient": "treasury",
        "budget_denom": "ucosm",
        "proposal_period": {"at_height": 100},
        "voting_period": {"at_time": 1_700_000_000},
        "create_proposal_whitelist": None,
        "vote_proposal_whitelist": ["alice", "bob"],
    }
    data.update(overrides)
    return data


class TestRoundParams:
    def test_from_dict(self) -> None:
        params = RoundParams.from_dict(_params_dict())
        assert params.proposal_period == Expiration.at_height(100)
        assert params.voting_period == Expiration.at_time(1_700_000_000)
        assert params.create_proposal_whitelist is None
        assert params.vote_proposal_whitelist == ("alice", "bob")
        assert params.algorithm == MatchingAlgorithm.CAPITAL_CONSTRAINED_LIBERAL_RADICALISM

    def test_from_file(self, tmp_path) -> None:
        path = tmp_path / "round.json"
        path.write_text(json.dumps(_params_dict(voting_period={"never": {}})))
        assert RoundParams.from_file(path).voting_period == Expiration.never()

    def test_missing_admin(self) -> None:
        with pytest.raises(ValueError, match="admin"):
            RoundParams.from_dict(_params_dict(admin=""))

    def test_missing_period(self) -> None:
        data = _params_dict()
        del data["voting_period"]
        with pytest.raises(ValueError, match="voting_period"):
            RoundParams.from_dict(data)

    def test_unknown_algorithm(self) -> None:
        with pytest.raises(ValueError, match="Unknown matching algorithm"):
            RoundParams.from_dict(_params_dict(algorithm="plain_quadratic"))

    def test_bad_whitelist(self) -> None:
        with pytest.raises(ValueError):
            RoundParams.from_dict(_params_dict(vote_proposal_whitelist="alice"))


def _clear_env(monkeypatch) -> None:
    # setenv first so undo also removes whatever load_dotenv adds
    for name in ("QFROUND_DATA_DIR", "QFROUND_LOG_LEVEL"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


class TestSettings:
    def test_defaults(self, tmp_path, monkeypatch) -> None:
        _clear_env(monkeypatch)
        settings = Settings.from_env(tmp_path / "missing.env")
        assert settings.data_dir == DEFAULT_DATA_DIR
        assert settings.log_level == "WARNING"

    def test_env_file(self, tmp_path, monkeypatch) -> None:
        _clear_env(monkeypatch)
        env_file = tmp_path / ".env"
        env_file.write_text("QFROUND_DATA_DIR=/var/lib/qfround\nQFROUND_LOG_LEVEL=debug\n")
        settings = Settings.from_env(env_file)
        assert settings.data_dir == Path("/var/lib/qfround")
        assert settings.log_level == "DEBUG"

    def test_existing_environment_wins(self, tmp_path, monkeypatch) -> None:
        _clear_env(monkeypatch)
        monkeypatch.setenv("QFROUND_LOG_LEVEL", "ERROR")
        env_file = tmp_path / ".env"
        env_file.write_text("QFROUND_LOG_LEVEL=INFO\n")
        assert Settings.from_env(env_file).log_level == "ERROR"
