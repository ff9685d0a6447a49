import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from unittest.mock import patch

from cascadehub.cli import _build_parser, _config_from_args, logs_command, main
from cascadehub.storage import append_log, create_run_context, write_status

from fake_host import make_context, sample_host


def _run(argv: list[str], ctx) -> str:
    buf = io.StringIO()
    with patch("sys.argv", ["cascade-hub", *argv]), patch(
        "cascadehub.cli._open_context", return_value=ctx
    ), redirect_stdout(buf):
        main()
    return buf.getvalue()


class CLITests(unittest.TestCase):
    def test_list_prints_panels(self) -> None:
        host = sample_host()
        panels = json.loads(_run(["list"], make_context(host)))
        self.assertEqual([p["key"] for p in panels], ["panel-1", "panel-2"])
        self.assertEqual(panels[0]["input_content"], "draft")
        self.assertTrue(panels[0]["button_enabled"])

    def test_state_for_missing_panel(self) -> None:
        payload = json.loads(_run(["state", "4"], make_context(sample_host())))
        self.assertEqual(payload["error"], "Panel 4 not found")
        self.assertEqual(payload["total_panels"], 2)

    def test_send_submits(self) -> None:
        host = sample_host()
        payload = json.loads(_run(["send", "1", "hello"], make_context(host)))
        self.assertTrue(payload["sent"])
        self.assertEqual(host.panels[1].submitted, ["hello"])

    def test_send_no_submit(self) -> None:
        host = sample_host()
        payload = json.loads(_run(["send", "0", "x", "--no-submit", "--no-clear"], make_context(host)))
        self.assertFalse(payload["sent"])
        self.assertEqual(payload["input_content"], "draftx")

    def test_spawn(self) -> None:
        host = sample_host()
        payload = json.loads(_run(["spawn"], make_context(host)))
        self.assertTrue(payload["spawned"])
        self.assertEqual(len(host.panels), 3)

    def test_trust_and_open(self) -> None:
        host = sample_host()
        self.assertEqual(json.loads(_run(["trust"], make_context(host)))["dismissed"], False)
        self.assertEqual(json.loads(_run(["open"], make_context(host))), {"opened": True})

    def test_connect_reports_title(self) -> None:
        payload = json.loads(_run(["connect"], make_context(sample_host())))
        self.assertTrue(payload["connected"])
        self.assertEqual(payload["page_title"], "Windsurf")

    def test_mount_no_wait_leaves_ui_in_place(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        payload = json.loads(_run(["mount", "--no-wait"], ctx))
        self.assertTrue(payload["success"])
        self.assertEqual(payload["status"]["state"], "mounted")
        self.assertEqual(len(host.roots), 1)
        self.assertIsNone(ctx.mount_record)

        restored = json.loads(_run(["restore"], make_context(host)))
        self.assertTrue(restored["restored"])
        self.assertEqual(host.roots, [])
        self.assertEqual([p.display for p in host.panels], ["", ""])

    def test_mount_serves_until_ui_closed_in_document(self) -> None:
        host = sample_host()
        host.schedule(1000, host.click_restore)
        output = _run(["mount"], make_context(host))
        self.assertIn('"success": true', output)
        self.assertIn("replacement UI closed in the document", output)
        self.assertEqual(host.roots, [])

    def test_mount_interrupted_restores_host(self) -> None:
        host = sample_host()

        def interrupt() -> None:
            raise KeyboardInterrupt

        host.schedule(1000, interrupt)
        output = _run(["mount"], make_context(host))
        self.assertIn('"restored": true', output)
        self.assertEqual(host.roots, [])
        self.assertIsNone(host.observer)

    def test_mount_failure_exits_nonzero(self) -> None:
        host = sample_host()
        host.fail_on = {"install-watcher"}
        buf = io.StringIO()
        with self.assertRaises(SystemExit) as raised, redirect_stdout(buf):
            with patch("sys.argv", ["cascade-hub", "mount", "--no-wait"]), patch(
                "cascadehub.cli._open_context", return_value=make_context(host)
            ):
                main()
        self.assertEqual(raised.exception.code, 1)
        payload = json.loads(buf.getvalue())
        self.assertFalse(payload["success"])
        self.assertEqual(payload["step"], "install_watcher")
        self.assertEqual(host.roots, [])

    def test_connection_failure_records_failed_status(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with patch.dict(os.environ, {"CASCADEHUB_RUNS_DIR": tmp}), patch(
                "sys.argv", ["cascade-hub", "list", "--port", "9"]
            ), patch("cascadehub.session.playwright_available", return_value=True), patch(
                "cascadehub.session.cdp_alive", return_value=False
            ):
                with self.assertRaises(SystemExit) as raised:
                    main()
            self.assertIn("Connection failed", str(raised.exception.code))
            status = json.loads((Path(tmp) / "status.json").read_text(encoding="utf-8"))
            self.assertEqual(status["state"], "failed")
            self.assertEqual(status["command"], "list")
            self.assertIn("127.0.0.1:9", status["detail"])

    def test_host_option_accepts_url_and_port_overrides(self) -> None:
        parser = _build_parser()
        with patch.dict(os.environ, {}, clear=True):
            config = _config_from_args(parser.parse_args(["list", "--host", "http://10.0.0.5:9555"]))
            self.assertEqual(config.endpoint.url, "http://10.0.0.5:9555")
            config = _config_from_args(parser.parse_args(["list", "--host", "box:9444", "--port", "9222"]))
            self.assertEqual(config.endpoint.url, "http://box:9222")
            config = _config_from_args(parser.parse_args(["list", "--port", "9100"]))
            self.assertEqual(config.endpoint.url, "http://127.0.0.1:9100")
            with self.assertRaises(SystemExit):
                _config_from_args(parser.parse_args(["list", "--host", "box:nope"]))

    def test_status_and_logs_read_latest_run(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            runs = Path(tmp)
            run = create_run_context(runs)
            write_status(run=run, command="mount", state="completed", runs_dir=runs)
            append_log(run.hub_log, "first")
            append_log(run.hub_log, "second")

            buf = io.StringIO()
            with patch.dict(os.environ, {"CASCADEHUB_RUNS_DIR": tmp}), patch(
                "sys.argv", ["cascade-hub", "status"]
            ), redirect_stdout(buf):
                main()
            self.assertEqual(json.loads(buf.getvalue())["command"], "mount")

            buf = io.StringIO()
            with redirect_stdout(buf):
                logs_command(1, runs)
            lines = buf.getvalue().splitlines()
            self.assertEqual(len(lines), 1)
            self.assertTrue(lines[0].endswith("second"))

    def test_logs_without_runs(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(SystemExit):
                logs_command(10, Path(tmp))

    def test_no_command_prints_help(self) -> None:
        buf = io.StringIO()
        with patch("sys.argv", ["cascade-hub"]), redirect_stdout(buf):
            main()
        self.assertIn("cascade-hub", buf.getvalue())


if __name__ == "__main__":
    unittest.main()
