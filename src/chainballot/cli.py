"""ChainBallot CLI — command-line front end for a stored ballot box.

Usage:
    python -m chainballot.cli --admin 0xA11CE... status
    python -m chainballot.cli --as 0xA11CE... set-title "Favourite snack"
    python -m chainballot.cli --as 0xA11CE... set-choices Chips Fruit Nuts
    python -m chainballot.cli --as 0xA11CE... set-whitelist 0xB0B... 0xCA7...
    python -m chainballot.cli --as 0xA11CE... start
    python -m chainballot.cli --as 0xB0B... vote 1
    python -m chainballot.cli winner
    python -m chainballot.cli events --limit 10
    python -m chainballot.cli verify
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from chainballot import log
from chainballot.config import BallotConfig
from chainballot.persistence.event_log import EventKind, EventRecord
from chainballot.service import BallotService, ServiceResult


def format_identity(value: str) -> str:
    """Shorten long identities to 0x1234...abcd."""
    if not value:
        return "-"
    if len(value) <= 12:
        return value
    return f"{value[:6]}...{value[-4:]}"


def summarize_event(event: EventRecord) -> str:
    """One-line activity summary for an audit event."""
    p = event.payload
    kind = event.event_kind
    if kind == EventKind.POLL_TITLE_SET:
        return f"Poll title set: {p.get('title', '')}"
    if kind == EventKind.CHOICES_SET:
        return f"Choices updated ({p.get('count', 0)})"
    if kind == EventKind.WHITELIST_SET:
        return f"Whitelist updated ({p.get('count', 0)})"
    if kind == EventKind.WHITELIST_ADDED:
        return f"Whitelisted {format_identity(p.get('voter', ''))}"
    if kind == EventKind.WHITELIST_REMOVED:
        return f"Whitelist removed {format_identity(p.get('voter', ''))}"
    if kind == EventKind.ELECTION_STARTED:
        return f"Election started (epoch {event.epoch})"
    if kind == EventKind.ELECTION_ENDED:
        return f"Election ended (epoch {event.epoch})"
    if kind == EventKind.VOTE_CAST:
        return (
            f"Vote cast: {format_identity(p.get('voter', ''))} "
            f"-> choice #{p.get('choice_index')}"
        )
    return kind.value


def _make_service(args: argparse.Namespace) -> BallotService:
    """Open the ballot box under --data with durable persistence."""
    config = BallotConfig.from_env()
    log.configure(config.log_level)
    data_dir = args.data or config.data_dir
    administrator = args.admin or config.administrator
    return BallotService.open(
        BallotConfig(data_dir=data_dir, administrator=administrator, log_level=config.log_level)
    )


def _caller(args: argparse.Namespace) -> Optional[str]:
    return args.caller or args.admin or BallotConfig.from_env().administrator


def _report(result: ServiceResult, message: str) -> int:
    if result.success:
        print(message)
        if "warning" in result.data:
            print(f"Warning: {result.data['warning']}", file=sys.stderr)
        return 0
    kind = f"[{result.error_kind}] " if result.error_kind else ""
    print(f"Failed: {kind}{'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_set_title(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.set_poll_title(_caller(args), args.title)
    return _report(result, f"Poll title set: {result.data.get('poll_title')}")


def cmd_set_choices(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.set_choices(_caller(args), args.labels)
    return _report(result, f"Choices updated ({result.data.get('count')})")


def cmd_set_whitelist(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.set_whitelist(_caller(args), args.identities)
    return _report(result, f"Whitelist updated ({result.data.get('count')})")


def cmd_add_voter(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.add_to_whitelist(_caller(args), args.identity)
    message = "Whitelisted" if result.data.get("changed") else "Already whitelisted"
    return _report(result, f"{message} {args.identity}")


def cmd_remove_voter(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.remove_from_whitelist(_caller(args), args.identity)
    return _report(result, f"Whitelist removed {args.identity}")


def cmd_start(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.start_election(_caller(args))
    return _report(result, f"Election started (epoch {result.data.get('epoch')})")


def cmd_end(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.end_election(_caller(args))
    return _report(result, f"Election ended (epoch {result.data.get('epoch')})")


def cmd_vote(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.vote(_caller(args), args.index)
    return _report(result, f"Vote recorded for choice #{args.index}")


def cmd_voter_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    identity = args.identity or _caller(args)
    status = service.voter_status(identity)
    record = service.voter_record(identity)
    out = {
        "identity": identity,
        "whitelisted": status.whitelisted,
        "voted_this_epoch": status.voted_this_epoch,
        "choice_index": status.choice_index,
        "voted_utc": status.voted_utc.isoformat() if status.voted_utc else None,
    }
    if record is not None and not status.voted_this_epoch:
        out["last_voted_epoch"] = record.last_voted_epoch
    print(json.dumps(out, indent=2))
    return 0


def cmd_winner(args: argparse.Namespace) -> int:
    service = _make_service(args)
    w = service.winner()
    print(json.dumps({
        "index": w.index,
        "label": w.label,
        "votes": w.votes,
        "has_tie": w.has_tie,
        "has_winner": w.has_winner,
    }, indent=2))
    return 0


def cmd_events(args: argparse.Namespace) -> int:
    service = _make_service(args)
    events = service.recent_events(args.limit)
    if not events:
        print("No events yet.")
        return 0
    for event in events:
        print(
            f"{event.timestamp_utc}  {event.event_id}  {summarize_event(event)}  "
            f"({format_identity(event.event_hash.removeprefix('sha256:'))})"
        )
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    service = _make_service(args)
    result = service.verify()
    if result.success:
        print(json.dumps(result.data, indent=2))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chainballot",
        description="ChainBallot — permissioned single-election ballot box",
    )
    parser.add_argument(
        "--data",
        type=Path,
        default=None,
        help="Data directory (default: CHAINBALLOT_DATA_DIR or data/)",
    )
    parser.add_argument(
        "--admin",
        default=None,
        help="Administrator identity for a new ballot box (default: CHAINBALLOT_ADMIN)",
    )
    parser.add_argument(
        "--as", dest="caller", default=None,
        help="Identity making the call (default: the configured administrator)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show ballot box status")

    p_title = sub.add_parser("set-title", help="Set the poll title")
    p_title.add_argument("title", help="Poll title")

    p_choices = sub.add_parser("set-choices", help="Replace all choices")
    p_choices.add_argument("labels", nargs="+", help="Choice labels in order")

    p_wl = sub.add_parser("set-whitelist", help="Replace the whitelist")
    p_wl.add_argument("identities", nargs="+", help="Voter identities")

    p_add = sub.add_parser("add-voter", help="Whitelist one identity")
    p_add.add_argument("identity")

    p_rm = sub.add_parser("remove-voter", help="Remove one identity from the whitelist")
    p_rm.add_argument("identity")

    sub.add_parser("start", help="Start the next election")
    sub.add_parser("end", help="End the running election")

    p_vote = sub.add_parser("vote", help="Vote for a choice by index")
    p_vote.add_argument("index", type=int, help="Choice index")

    p_vs = sub.add_parser("voter-status", help="Show a voter's status")
    p_vs.add_argument("identity", nargs="?", default=None)

    sub.add_parser("winner", help="Show the current leader")

    p_events = sub.add_parser("events", help="Show recent audit events")
    p_events.add_argument("--limit", type=int, default=20, help="Number of events (default: 20)")

    sub.add_parser("verify", help="Recount the tally and check the audit chain")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "set-title": cmd_set_title,
        "set-choices": cmd_set_choices,
        "set-whitelist": cmd_set_whitelist,
        "add-voter": cmd_add_voter,
        "remove-voter": cmd_remove_voter,
        "start": cmd_start,
        "end": cmd_end,
        "vote": cmd_vote,
        "voter-status": cmd_voter_status,
        "winner": cmd_winner,
        "events": cmd_events,
        "verify": cmd_verify,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    try:
        return handler(args)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
