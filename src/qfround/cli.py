"""qfround CLI — command-line interface for a quadratic-funding round.

Usage:
    python -m qfround.cli init-round --params round.json --sender creator --funds 1000000ucosm --height 1
    python -m qfround.cli create-proposal --sender alice --title "Docs" --description "..." --fund-address alice_fund --height 5
    python -m qfround.cli vote --sender bob --proposal-id 1 --funds 500ucosm --height 150
    python -m qfround.cli trigger-distribution --sender admin --height 250
    python -m qfround.cli proposal --id 1
    python -m qfround.cli proposals [--fund-address alice_fund]
    python -m qfround.cli status --height 250
    python -m qfround.cli check-invariants

Round state lives in ``<data-dir>/state.json`` and the audit trail in
``<data-dir>/events.jsonl``. The data directory and log level default
to QFROUND_DATA_DIR / QFROUND_LOG_LEVEL (a ``.env`` file is honoured).
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path

from qfround.audit import check_round
from qfround.config import RoundParams, Settings
from qfround.models.round import BlockInfo, Coin
from qfround.persistence.event_log import EventLog
from qfround.persistence.kv_store import JsonFileKVStore
from qfround.service import RoundService, ServiceResult


def _make_service(data_dir: Path) -> RoundService:
    """Create a RoundService with durable persistence."""
    data_dir.mkdir(parents=True, exist_ok=True)
    store = JsonFileKVStore(storage_path=data_dir / "state.json")
    event_log = EventLog(storage_path=data_dir / "events.jsonl")
    return RoundService(store, event_log=event_log)


def _block(args: argparse.Namespace) -> BlockInfo:
    block_time = args.time if args.time is not None else int(time.time())
    return BlockInfo(height=args.height, time=block_time)


def _funds(args: argparse.Namespace) -> list[Coin]:
    return list(args.funds or [])


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=_json_default))
        return 0
    print(f"Failed [{result.error_code}]: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _json_default(value: object) -> object:
    if isinstance(value, bytes):
        return value.hex()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return str(value)


def cmd_init_round(args: argparse.Namespace) -> int:
    try:
        params = RoundParams.from_file(args.params)
    except (OSError, ValueError) as e:
        print(f"Invalid round params: {e}", file=sys.stderr)
        return 1
    service = _make_service(args.data_dir)
    return _report(service.initialize_round(args.sender, _block(args), params, _funds(args)))


def cmd_create_proposal(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    result = service.create_proposal(
        sender=args.sender,
        block=_block(args),
        title=args.title,
        description=args.description,
        fund_address=args.fund_address,
        metadata=args.metadata or b"",
    )
    return _report(result)


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    result = service.vote_proposal(args.sender, _block(args), args.proposal_id, _funds(args))
    return _report(result)


def cmd_trigger_distribution(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    return _report(service.trigger_distribution(args.sender, _block(args)))


def cmd_proposal(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    return _report(service.proposal_by_id(args.id))


def cmd_proposals(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    if args.fund_address:
        return _report(service.proposal_by_fund_address(args.fund_address))
    return _report(service.all_proposals())


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args.data_dir)
    print(json.dumps(service.status(_block(args)), indent=2, default=_json_default))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run round state consistency checks."""
    store = JsonFileKVStore(storage_path=args.data_dir / "state.json")
    try:
        event_log = EventLog(storage_path=args.data_dir / "events.jsonl")
    except ValueError as e:
        print(f"Invariant check failed:\n- Event log unreadable: {e}")
        return 1
    errors = check_round(store, event_log=event_log)
    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1
    print("Invariant check passed.")
    return 0


def _add_block_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--height", type=int, default=0, help="Current block height")
    parser.add_argument("--time", type=int, help="Current block time, unix seconds (default: now)")


def _add_sender_args(parser: argparse.ArgumentParser, funds: bool = False) -> None:
    parser.add_argument("--sender", required=True, help="Address sending the message")
    if funds:
        parser.add_argument(
            "--funds", action="append", type=Coin.parse,
            help="Attached coin, e.g. 1000ucosm (repeatable)",
        )


def build_parser(settings: Settings | None = None) -> argparse.ArgumentParser:
    settings = settings or Settings()
    parser = argparse.ArgumentParser(
        prog="qfround",
        description="Quadratic-funding round engine CLI",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=settings.data_dir,
        help=f"Directory holding round state (default: {settings.data_dir})",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.log_level})",
    )
    sub = parser.add_subparsers(dest="command")

    # init-round
    p_init = sub.add_parser("init-round", help="Initialize the round and fund its budget")
    p_init.add_argument("--params", type=Path, required=True, help="Round params JSON file")
    _add_sender_args(p_init, funds=True)
    _add_block_args(p_init)

    # create-proposal
    p_create = sub.add_parser("create-proposal", help="Create a funding proposal")
    _add_sender_args(p_create)
    p_create.add_argument("--title", required=True, help="Proposal title")
    p_create.add_argument("--description", default="", help="Proposal description")
    p_create.add_argument("--fund-address", required=True, help="Payout address")
    p_create.add_argument(
        "--metadata", type=bytes.fromhex, help="Opaque metadata, hex encoded",
    )
    _add_block_args(p_create)

    # vote
    p_vote = sub.add_parser("vote", help="Back a proposal with a contribution")
    _add_sender_args(p_vote, funds=True)
    p_vote.add_argument("--proposal-id", type=int, required=True, help="Proposal ID")
    _add_block_args(p_vote)

    # trigger-distribution
    p_dist = sub.add_parser("trigger-distribution", help="Compute the payout plan (admin)")
    _add_sender_args(p_dist)
    _add_block_args(p_dist)

    # queries
    p_prop = sub.add_parser("proposal", help="Show one proposal")
    p_prop.add_argument("--id", type=int, required=True, help="Proposal ID")

    p_props = sub.add_parser("proposals", help="List proposals")
    p_props.add_argument("--fund-address", help="Only proposals paying this address")

    p_status = sub.add_parser("status", help="Show round status")
    _add_block_args(p_status)

    sub.add_parser("check-invariants", help="Run round state consistency checks")

    return parser


def main(argv: list[str] | None = None) -> int:
    settings = Settings.from_env()
    parser = build_parser(settings)
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "init-round": cmd_init_round,
        "create-proposal": cmd_create_proposal,
        "vote": cmd_vote,
        "trigger-distribution": cmd_trigger_distribution,
        "proposal": cmd_proposal,
        "proposals": cmd_proposals,
        "status": cmd_status,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
