import json
import tempfile
import unittest
from pathlib import Path

from cascadehub.storage import (
    append_log,
    create_run_context,
    status_payload,
    tail_lines,
    write_json,
    write_status,
)


class StorageTests(unittest.TestCase):
    def test_run_context_allocates_unique_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runs = Path(tmp) / "runs"
            first = create_run_context(runs)
            second = create_run_context(runs)
            self.assertNotEqual(first.run_dir, second.run_dir)
            self.assertTrue(first.run_dir.is_dir())
            self.assertEqual(first.hub_log.name, "hub.log")
            self.assertEqual(first.mount_report.name, "mount.json")

    def test_append_log_and_tail(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log = Path(tmp) / "hub.log"
            for n in range(5):
                append_log(log, f"line {n}\n")
            lines = tail_lines(log, 2)
            self.assertEqual(len(lines), 2)
            self.assertTrue(lines[0].endswith("line 3"))
            self.assertTrue(lines[1].endswith("line 4"))
            self.assertEqual(tail_lines(Path(tmp) / "missing.log", 10), [])

    def test_status_round_trip(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runs = Path(tmp) / "runs"
            self.assertEqual(status_payload(runs), {"status": "no-runs"})
            run = create_run_context(runs)
            write_status(run=run, command="mount", state="running", runs_dir=runs, detail="x")
            payload = status_payload(runs)
            self.assertEqual(payload["run_id"], run.run_id)
            self.assertEqual(payload["command"], "mount")
            self.assertEqual(payload["detail"], "x")
            self.assertEqual(payload["log_path"], str(run.hub_log))

    def test_write_json_creates_parents(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "a" / "b.json"
            write_json(target, {"text": "ñ"})
            self.assertEqual(json.loads(target.read_text(encoding="utf-8")), {"text": "ñ"})


if __name__ == "__main__":
    unittest.main()
