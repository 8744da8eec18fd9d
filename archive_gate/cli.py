from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime
from typing import Optional

from archive_gate.closed_hours import evaluate_gate, time_until_launch, utc_now
from archive_gate.config import get_settings


def _parse_instant(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 instant; naive values are local time."""
    if not value:
        return utc_now()
    return datetime.fromisoformat(value)


def _status(args: argparse.Namespace) -> int:
    config = get_settings().closed_hours
    overrides = {}
    if args.start_hour is not None:
        overrides["start_hour"] = args.start_hour
    if args.end_hour is not None:
        overrides["end_hour"] = args.end_hour
    if args.time_zone is not None:
        overrides["time_zone"] = args.time_zone
    if args.local:
        overrides["zone_aware"] = False
    if overrides:
        config = config.model_validate({**config.model_dump(), **overrides})

    snapshot = evaluate_gate(config, _parse_instant(args.at))
    print(snapshot.model_dump_json(indent=2))
    return 0


def _launch(args: argparse.Namespace) -> int:
    launch_at = get_settings().launch_at
    remaining = time_until_launch(launch_at, _parse_instant(args.at))
    print(
        json.dumps(
            {
                "launch_at": launch_at.isoformat(),
                "launched": remaining.is_zero,
                "remaining": remaining.model_dump(),
            },
            indent=2,
        )
    )
    return 0


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("archive_gate.main:app", host=args.host, port=args.port)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="archive-gate",
        description="Closed-hours gate for the Outside Observations archive.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    status = sub.add_parser("status", help="Print the gate state and countdown as JSON.")
    status.add_argument("--at", default=None, help="ISO-8601 instant to evaluate (default: now)")
    status.add_argument("--start-hour", type=int, default=None, help="Override CLOSED_START_HOUR")
    status.add_argument("--end-hour", type=int, default=None, help="Override CLOSED_END_HOUR")
    status.add_argument("--time-zone", default=None, help="Override CLOSED_TIMEZONE (IANA name)")
    status.add_argument(
        "--local",
        action="store_true",
        help="Ignore the configured zone and evaluate in local time.",
    )
    status.set_defaults(func=_status)

    launch = sub.add_parser("launch", help="Print the launch countdown as JSON.")
    launch.add_argument("--at", default=None, help="ISO-8601 instant to evaluate (default: now)")
    launch.set_defaults(func=_launch)

    serve = sub.add_parser("serve", help="Run the API server.")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)
    serve.set_defaults(func=_serve)

    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except ValueError as e:
        print(f"[archive-gate] Invalid input: {e}", file=sys.stderr)
        return 2
    except Exception as e:
        print(f"[archive-gate] Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
