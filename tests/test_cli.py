"""Tests for the qfround CLI — proves commands dispatch and persist a round."""

import json

import pytest

from qfround.cli import build_parser, main
from qfround.models.round import Coin


@pytest.fixture
def params_file(tmp_path):
    path = tmp_path / "round.json"
    path.write_text(json.dumps({
        "admin": "admin",
        "leftover_recipient": "treasury",
        "budget_denom": "ucosm",
        "proposal_period": {"at_height": 100},
        "voting_period": {"at_height": 200},
    }))
    return path


def _run(data_dir, *argv: str) -> int:
    return main(["--data-dir", str(data_dir), *argv, "--time", "1700000000"])


def _init(data_dir, params_file) -> int:
    return _run(
        data_dir, "init-round", "--params", str(params_file),
        "--sender", "creator", "--funds", "1000000ucosm", "--height", "1",
    )


class TestCLIParsing:
    def test_vote_command(self) -> None:
        args = build_parser().parse_args([
            "vote", "--sender", "bob", "--proposal-id", "3", "--funds", "50ucosm",
        ])
        assert args.command == "vote"
        assert args.proposal_id == 3
        assert args.funds == [Coin("ucosm", 50)]

    def test_repeated_funds(self) -> None:
        args = build_parser().parse_args([
            "vote", "--sender", "bob", "--proposal-id", "1",
            "--funds", "50ucosm", "--funds", "7uatom",
        ])
        assert len(args.funds) == 2

    def test_bad_coin_rejected(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([
                "vote", "--sender", "bob", "--proposal-id", "1", "--funds", "lots",
            ])

    def test_metadata_hex_decoded(self) -> None:
        args = build_parser().parse_args([
            "create-proposal", "--sender", "alice", "--title", "T",
            "--fund-address", "f", "--metadata", "cafe",
        ])
        assert args.metadata == b"\xca\xfe"

    def test_bad_metadata_hex_rejected(self, capsys) -> None:
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args([
                "create-proposal", "--sender", "alice", "--title", "T",
                "--fund-address", "f", "--metadata", "zz",
            ])
        assert exc.value.code == 2
        assert "--metadata" in capsys.readouterr().err


class TestCLIExecution:
    def test_no_command_shows_help(self) -> None:
        assert main([]) == 0

    def test_full_round(self, tmp_path, params_file, capsys) -> None:
        data_dir = tmp_path / "data"
        assert _init(data_dir, params_file) == 0
        assert _run(
            data_dir, "create-proposal", "--sender", "alice", "--title", "Docs",
            "--fund-address", "alice_fund", "--height", "5",
        ) == 0
        assert _run(
            data_dir, "vote", "--sender", "bob", "--proposal-id", "1",
            "--funds", "400ucosm", "--height", "150",
        ) == 0
        capsys.readouterr()

        assert _run(data_dir, "trigger-distribution", "--sender", "admin", "--height", "200") == 0
        output = json.loads(capsys.readouterr().out)
        assert output["messages"][0] == {
            "recipient": "alice_fund",
            "coin": {"denom": "ucosm", "amount": "1000400"},
            "proposal_id": 1,
            "match_amount": "1000000",
            "collected_amount": "400",
        }
        assert output["plan_digest"].startswith("sha256:")

        assert (data_dir / "state.json").exists()
        assert len((data_dir / "events.jsonl").read_text().splitlines()) == 4

    def test_rejection_exit_code(self, tmp_path, params_file, capsys) -> None:
        data_dir = tmp_path / "data"
        _init(data_dir, params_file)
        code = _run(data_dir, "trigger-distribution", "--sender", "admin", "--height", "10")
        assert code == 1
        assert "voting_period_not_expired" in capsys.readouterr().err

    def test_proposal_queries(self, tmp_path, params_file, capsys) -> None:
        data_dir = tmp_path / "data"
        _init(data_dir, params_file)
        _run(
            data_dir, "create-proposal", "--sender", "alice", "--title", "Docs",
            "--fund-address", "alice_fund", "--metadata", "cafe", "--height", "5",
        )
        capsys.readouterr()

        assert main(["--data-dir", str(data_dir), "proposal", "--id", "1"]) == 0
        proposal = json.loads(capsys.readouterr().out)["proposal"]
        assert proposal["title"] == "Docs"
        assert proposal["metadata"] == "cafe"

        assert main(["--data-dir", str(data_dir), "proposal", "--id", "9"]) == 1
        capsys.readouterr()

        assert main([
            "--data-dir", str(data_dir), "proposals", "--fund-address", "nobody",
        ]) == 0
        assert json.loads(capsys.readouterr().out)["proposals"] == []

    def test_status_and_invariants(self, tmp_path, params_file, capsys) -> None:
        data_dir = tmp_path / "data"
        _init(data_dir, params_file)
        capsys.readouterr()

        assert _run(data_dir, "status", "--height", "5") == 0
        status = json.loads(capsys.readouterr().out)
        assert status["phase"] == "accepting_proposals"

        assert main(["--data-dir", str(data_dir), "check-invariants"]) == 0
        assert "passed" in capsys.readouterr().out

    def test_invariants_flag_missing_event(self, tmp_path, params_file, capsys) -> None:
        data_dir = tmp_path / "data"
        _init(data_dir, params_file)
        (data_dir / "events.jsonl").write_text("")
        capsys.readouterr()

        assert main(["--data-dir", str(data_dir), "check-invariants"]) == 1
        assert "round_initialized" in capsys.readouterr().out

    def test_invalid_params_file(self, tmp_path) -> None:
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"admin": "admin"}))
        assert _init(tmp_path / "data", bad) == 1
