from __future__ import annotations

import argparse
import json
import logging

from agent_loop.config.settings import get_settings
from agent_loop.orchestrator import Orchestrator


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="agent-loop",
        description="Run-cycle orchestrator for a long-running autonomous agent.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Start the HTTP control surface.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address.")
    serve.add_argument("--port", type=int, default=8787, help="Bind port.")

    run_once = subparsers.add_parser("run-once", help="Run a single cycle and print the snapshot.")
    run_once.add_argument(
        "--trigger",
        default="manual",
        choices=("manual", "startup", "interrupt"),
        help="Trigger recorded for the cycle.",
    )

    subparsers.add_parser("smoke", help="Load the run, refresh provider health and print the snapshot.")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    if args.command == "serve":
        import uvicorn

        from agent_loop.api.main import create_app

        uvicorn.run(create_app(settings_override=settings), host=args.host, port=args.port)
        return 0

    orchestrator = Orchestrator.from_settings(settings)
    orchestrator.init()
    if args.command == "smoke":
        snapshot = orchestrator.smoke()
    else:
        snapshot = orchestrator.run_once(args.trigger)
    print(json.dumps(snapshot.model_dump(mode="json"), indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
