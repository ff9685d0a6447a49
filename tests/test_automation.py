import unittest

from cascadehub import constants as C
from cascadehub.automation import get_response, open_panel, send, spawn_panel, trust_workspace
from cascadehub.context import TakeoverContext
from cascadehub.errors import NotConnectedError

from fake_host import FakeHostPage, FakePanel, make_context, sample_host


class SendTests(unittest.TestCase):
    def test_send_clears_types_and_submits(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        result = send(ctx, 0, "ok go")
        self.assertTrue(result.sent)
        self.assertEqual(result.message, "ok go")
        self.assertEqual(host.panels[0].submitted, ["ok go"])
        self.assertEqual(host.panels[0].input_text, "")
        self.assertEqual(host.panels[0].messages[-1].text, "ok go")

    def test_send_without_submit_leaves_text_in_compose(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        result = send(ctx, 0, "replacement", submit=False)
        self.assertFalse(result.sent)
        self.assertTrue(result.button_enabled)
        self.assertEqual(result.input_content, "replacement")
        self.assertEqual(host.panels[0].input_text, "replacement")
        self.assertEqual(host.panels[0].submitted, [])

    def test_send_without_clear_appends(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        send(ctx, 0, "!", clear=False, submit=False)
        self.assertEqual(host.panels[0].input_text, "draft!")
        self.assertEqual(host.cdp.key_events("keyDown"), [])

    def test_one_char_event_per_character(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        send(ctx, 1, "héllo", submit=False)
        chars = [event["text"] for event in host.cdp.key_events("char")]
        self.assertEqual(chars, list("héllo"))
        self.assertNotIn("Input.insertText", [method for method, _ in host.cdp.sent])

    def test_select_all_uses_configured_modifier(self) -> None:
        for modifier, bit in (("Control", 2), ("Meta", 4)):
            with self.subTest(modifier=modifier):
                host = sample_host()
                ctx = make_context(host, select_all_modifier=modifier)
                send(ctx, 0, "x", submit=False)
                downs = host.cdp.key_events("keyDown")
                self.assertEqual(downs[0], {"type": "keyDown", "key": modifier, "modifiers": bit})
                select = [e for e in downs if e["key"] == "a"][0]
                self.assertEqual(select["modifiers"], bit)
                self.assertEqual(select["code"], "KeyA")
                self.assertEqual(downs[2]["key"], "Backspace")

    def test_missing_panel_and_compose(self) -> None:
        host = FakeHostPage([FakePanel(has_compose=False)])
        ctx = make_context(host)
        self.assertEqual(send(ctx, 5, "x").error, "Panel 5 not found")
        self.assertEqual(send(ctx, 0, "x").error, "Compose surface not found in panel 0")
        self.assertEqual(host.cdp.sent, [])

    def test_unverified_focus_still_types(self) -> None:
        host = FakeHostPage([FakePanel(focusable=False)])
        ctx = make_context(host)
        send(ctx, 0, "abc", submit=False)
        self.assertEqual(len(host.cdp.key_events("char")), 3)

    def test_disabled_submit_reports_state(self) -> None:
        host = FakeHostPage([FakePanel(submit_locked=True)])
        ctx = make_context(host)
        result = send(ctx, 0, "wait")
        self.assertFalse(result.sent)
        self.assertFalse(result.button_enabled)
        self.assertEqual(result.input_content, "wait")
        self.assertEqual(host.panels[0].submitted, [])
        self.assertEqual(result.to_dict(), {"sent": False, "message": "", "button_enabled": False, "input_content": "wait"})

    def test_requires_connection(self) -> None:
        with self.assertRaises(NotConnectedError):
            send(TakeoverContext(), 0, "x")


class ResponseTests(unittest.TestCase):
    def test_stable_after_quiet_window(self) -> None:
        host = FakeHostPage([FakePanel()])
        panel = host.panels[0]
        panel.set_transcript("a")
        host.schedule(100, lambda: panel.set_transcript("ab"))
        host.schedule(300, lambda: panel.set_transcript("abc"))
        result = get_response(make_context(host), 0, 10000, clock=host.clock)
        self.assertTrue(result.stable)
        self.assertFalse(result.timeout)
        self.assertEqual(result.response, "abc")
        # last change at 300 ms is seen at 400 ms and dated to the 300 ms midpoint
        self.assertEqual(result.elapsed_ms, 800)

    def test_changing_text_times_out_with_last_text(self) -> None:
        host = FakeHostPage([FakePanel()])
        panel = host.panels[0]
        ticks = [0]

        def tick() -> None:
            ticks[0] += 1
            panel.set_transcript(f"token {ticks[0]}")
            host.schedule(host.now_ms + 50, tick)

        host.schedule(0, tick)
        result = get_response(make_context(host), 0, 2000, clock=host.clock)
        self.assertTrue(result.timeout)
        self.assertFalse(result.stable)
        self.assertTrue(result.response.startswith("token "))
        self.assertEqual(result.elapsed_ms, 2000)

    def test_empty_transcript_is_never_stable(self) -> None:
        host = FakeHostPage([FakePanel()])
        result = get_response(make_context(host), 0, 1500, clock=host.clock)
        self.assertTrue(result.timeout)
        self.assertEqual(result.response, "")
        self.assertEqual(result.elapsed_ms, 1500)

    def test_default_timeout_comes_from_config(self) -> None:
        host = FakeHostPage([FakePanel()])
        result = get_response(make_context(host), 0, clock=host.clock)
        self.assertEqual(result.elapsed_ms, C.RESPONSE_TIMEOUT_MS)


class SpawnTests(unittest.TestCase):
    def test_spawn_drives_command_palette(self) -> None:
        host = sample_host()
        ctx = make_context(host)
        result = spawn_panel(ctx)
        self.assertTrue(result.spawned)
        self.assertEqual((result.before_count, result.after_count, result.new_index), (2, 3, 0))
        self.assertEqual([e["key"] for e in host.cdp.key_events("keyDown")], ["Escape", "F1", "Enter"])
        inserted = [params["text"] for method, params in host.cdp.sent if method == "Input.insertText"]
        self.assertEqual(inserted, [C.SPAWN_COMMAND_TEXT])
        f1 = host.cdp.key_events("keyDown")[1]
        self.assertEqual(f1["windowsVirtualKeyCode"], 112)
        self.assertEqual(host.now_ms, 3300)

    def test_spawn_reports_failure_when_count_unchanged(self) -> None:
        host = sample_host()
        host.spawn_command = "Some other command"
        result = spawn_panel(make_context(host))
        self.assertFalse(result.spawned)
        self.assertEqual((result.before_count, result.after_count), (2, 2))


class HostDialogTests(unittest.TestCase):
    def test_trust_dialog_dismissed(self) -> None:
        host = sample_host()
        host.trust_dialog = "Yes, I trust the authors"
        result = trust_workspace(make_context(host))
        self.assertTrue(result["dismissed"])
        self.assertIsNone(host.trust_dialog)
        self.assertEqual(host.now_ms, C.TRUST_SETTLE_MS)

    def test_no_trust_dialog(self) -> None:
        host = sample_host()
        result = trust_workspace(make_context(host))
        self.assertEqual(result, {"dismissed": False, "noDialog": True})
        self.assertEqual(host.now_ms, 0)

    def test_open_panel(self) -> None:
        host = sample_host()
        self.assertEqual(open_panel(make_context(host)), {"opened": True})
        self.assertEqual(host.opened, 1)
        host.toggle_present = False
        result = open_panel(make_context(host))
        self.assertFalse(result["opened"])
        self.assertIn("toggle", result["error"])


if __name__ == "__main__":
    unittest.main()
