"""File storage helpers for takeover run logs and reports."""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any


RUNS_DIR = Path("runs")
STATUS_FILE = "status.json"


@dataclass(frozen=True)
class RunContext:
    run_id: str
    run_dir: Path
    hub_log: Path
    mount_report: Path
    extraction_report: Path


def create_run_context(runs_dir: Path | None = None) -> RunContext:
    base_dir = runs_dir or RUNS_DIR
    base_dir.mkdir(parents=True, exist_ok=True)
    run_dir: Path | None = None
    run_id = ""
    for attempt in range(100):
        base = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        suffix = f"-{attempt:02d}" if attempt else ""
        run_id = f"{base}{suffix}"
        candidate = base_dir / run_id
        if candidate.exists():
            continue
        candidate.mkdir(parents=True, exist_ok=False)
        run_dir = candidate
        break
    if run_dir is None:
        raise RuntimeError("Could not allocate unique run directory")
    return RunContext(
        run_id=run_id,
        run_dir=run_dir,
        hub_log=run_dir / "hub.log",
        mount_report=run_dir / "mount.json",
        extraction_report=run_dir / "extraction.json",
    )


def append_log(path: Path, message: str) -> None:
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"{stamp} {message.rstrip()}\n")


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def write_status(
    *,
    run: RunContext,
    command: str,
    state: str,
    runs_dir: Path | None = None,
    detail: str | None = None,
) -> None:
    payload: dict[str, Any] = {
        "run_id": run.run_id,
        "run_dir": str(run.run_dir),
        "command": command,
        "state": state,
        "log_path": str(run.hub_log),
        "updated_at_utc": datetime.now(timezone.utc).isoformat(),
    }
    if detail:
        payload["detail"] = detail
    write_json((runs_dir or RUNS_DIR) / STATUS_FILE, payload)


def status_payload(runs_dir: Path | None = None) -> dict[str, Any]:
    path = (runs_dir or RUNS_DIR) / STATUS_FILE
    if not path.exists():
        return {"status": "no-runs"}
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def tail_lines(path: Path, line_count: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8") as fh:
        lines = fh.readlines()
    return [line.rstrip("\n") for line in lines[-line_count:]]
