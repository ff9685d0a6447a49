"""CLI entrypoint for cascade-hub."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any

from cascadehub.automation import get_response, open_panel, send, spawn_panel, trust_workspace
from cascadehub.config import Endpoint, TakeoverConfig, parse_endpoint
from cascadehub.context import TakeoverContext
from cascadehub.errors import MountFailure, SessionConnectionError
from cascadehub.locator import get_panel_state, list_panels
from cascadehub.mount import get_mount_status, mount, unmount
from cascadehub.overlay import root_present
from cascadehub.storage import (
    create_run_context,
    status_payload,
    tail_lines,
    write_status,
)


PUMP_INTERVAL_MS = 500


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return
    config = _config_from_args(args)
    if args.command == "status":
        _print(status_payload(config.runs_dir))
        return
    if args.command == "logs":
        logs_command(args.tail, config.runs_dir)
        return
    engine_command(args)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cascade-hub",
        description="Take over and automate Windsurf Cascade panels over the remote debugging protocol.",
    )
    endpoint = argparse.ArgumentParser(add_help=False)
    endpoint.add_argument(
        "--host", type=str, default=None, help="Remote debugging host, host:port or http://host:port."
    )
    endpoint.add_argument(
        "--port", type=int, default=None, help="Remote debugging port; overrides any port given with --host."
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("connect", parents=[endpoint], help="Check the connection and print the page title")

    mount_parser = subparsers.add_parser("mount", parents=[endpoint], help="Mount the replacement UI")
    mount_parser.add_argument(
        "--no-wait",
        action="store_true",
        help="Return right after mounting instead of serving bridge signals until interrupted.",
    )

    subparsers.add_parser("restore", parents=[endpoint], help="Remove the replacement UI and restore the host")

    send_parser = subparsers.add_parser("send", parents=[endpoint], help="Send a message to a panel")
    send_parser.add_argument("panel", type=int)
    send_parser.add_argument("message", type=str)
    send_parser.add_argument("--no-submit", action="store_true", help="Type without clicking send.")
    send_parser.add_argument("--no-clear", action="store_true", help="Keep existing draft text.")
    send_parser.add_argument("--wait", type=int, default=0, help="Wait up to MS for a stable response.")

    response_parser = subparsers.add_parser("response", parents=[endpoint], help="Read a panel's response")
    response_parser.add_argument("panel", type=int)
    response_parser.add_argument("--timeout", type=int, default=None)

    subparsers.add_parser("list", parents=[endpoint], help="List conversation panels")

    state_parser = subparsers.add_parser("state", parents=[endpoint], help="Show one panel's state")
    state_parser.add_argument("panel", type=int)

    subparsers.add_parser("spawn", parents=[endpoint], help="Open a new panel via the command palette")
    subparsers.add_parser("trust", parents=[endpoint], help="Dismiss the workspace trust dialog")
    subparsers.add_parser("open", parents=[endpoint], help="Open the Cascade panel")

    subparsers.add_parser("status", parents=[endpoint], help="Show latest run status")

    logs_parser = subparsers.add_parser("logs", parents=[endpoint], help="Tail logs for latest run")
    logs_parser.add_argument("--tail", type=int, default=200)
    return parser


def _config_from_args(args: argparse.Namespace) -> TakeoverConfig:
    config = TakeoverConfig.from_env()
    endpoint = config.endpoint
    host = getattr(args, "host", None)
    if host:
        try:
            endpoint = parse_endpoint(host)
        except ValueError as exc:
            raise SystemExit(str(exc)) from exc
    port = getattr(args, "port", None)
    if port is not None:
        endpoint = Endpoint(host=endpoint.host, port=port)
    return config.with_endpoint(endpoint)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _open_context(args: argparse.Namespace) -> TakeoverContext:
    config = _config_from_args(args)
    run = create_run_context(config.runs_dir)
    write_status(run=run, command=args.command, state="running", runs_dir=config.runs_dir)
    ctx = TakeoverContext(config=config, run=run)
    try:
        ctx.connect()
    except SessionConnectionError as exc:
        ctx.log(f"connect failed: {exc}")
        write_status(run=run, command=args.command, state="failed", runs_dir=config.runs_dir, detail=str(exc))
        raise SystemExit(f"Connection failed: {exc}") from exc
    return ctx


def _finish(ctx: TakeoverContext, command: str, state: str, detail: str | None = None) -> None:
    if ctx.run is None:
        return
    write_status(run=ctx.run, command=command, state=state, runs_dir=ctx.config.runs_dir, detail=detail)


def _pump(ctx: TakeoverContext) -> None:
    # Bridge and watcher callbacks are delivered while the page is waiting.
    try:
        while ctx.mount_record is not None:
            ctx.wait(PUMP_INTERVAL_MS)
            if not root_present(ctx):
                ctx.drop_mount("replacement root no longer in document")
    except KeyboardInterrupt:
        ctx.log("mount: interrupted")


def engine_command(args: argparse.Namespace) -> None:
    ctx = _open_context(args)
    state = "completed"
    detail = None
    try:
        payload = _dispatch(ctx, args)
        _print(payload)
    except MountFailure as exc:
        state = "failed"
        detail = f"mount failed at {exc.step}: {exc.message}"
        _print(exc.to_dict())
        raise SystemExit(1) from exc
    finally:
        _finish(ctx, args.command, state, detail)
        ctx.disconnect()


def _dispatch(ctx: TakeoverContext, args: argparse.Namespace) -> Any:
    command = args.command
    if command == "connect":
        return {"connected": True, "page_title": ctx.session.title(), "endpoint": ctx.config.endpoint.url}
    if command == "mount":
        result = mount(ctx)
        mounted = {**result.to_dict(), "status": get_mount_status(ctx)}
        if args.no_wait:
            return mounted
        _print(mounted)
        _pump(ctx)
        if ctx.mount_record is None:
            return {"mounted": False, "detail": "replacement UI closed in the document"}
        return unmount(ctx).to_dict()
    if command == "restore":
        return unmount(ctx, force=True).to_dict()
    if command == "send":
        sent = send(ctx, args.panel, args.message, clear=not args.no_clear, submit=not args.no_submit)
        if not args.wait or not sent.sent:
            return sent.to_dict()
        response = get_response(ctx, args.panel, args.wait)
        return {"send": sent.to_dict(), "response": response.to_dict()}
    if command == "response":
        return get_response(ctx, args.panel, args.timeout).to_dict()
    if command == "list":
        return [panel.to_dict() for panel in list_panels(ctx)]
    if command == "state":
        return get_panel_state(ctx, args.panel).to_dict()
    if command == "spawn":
        return spawn_panel(ctx).to_dict()
    if command == "trust":
        return trust_workspace(ctx)
    return open_panel(ctx)


def logs_command(tail_count: int, runs_dir: Path | None = None) -> None:
    payload = status_payload(runs_dir)
    if payload.get("status") == "no-runs":
        raise SystemExit("No runs available yet.")
    hub_log = Path(payload.get("log_path") or Path(payload["run_dir"]) / "hub.log")
    print("\n".join(tail_lines(hub_log, tail_count)))
