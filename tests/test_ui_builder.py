import unittest

from cascadehub import constants as C
from cascadehub.models import Conversation, ExtractionSnapshot, Message
from cascadehub.ui_builder import UINode, build_sub_panel, create_ui


def _conversation(index: int, key: str, messages=(), input_content: str = "") -> Conversation:
    return Conversation(
        index=index,
        key=key,
        messages=tuple(messages),
        transcript_text="",
        transcript_markup="<div>raw</div>",
        input_content=input_content,
    )


def _message_nodes(node: UINode) -> list[UINode]:
    return node.find_all(lambda n: C.MESSAGE_CLASS in n.classes)


class ReplacementUITests(unittest.TestCase):
    def test_two_messages_render_as_two_role_styled_blocks(self) -> None:
        conversation = _conversation(
            0,
            "panel-1",
            [Message("user", "hi", 0.0), Message("assistant", "hello", 0.0)],
        )
        sub = build_sub_panel(conversation, 0)
        blocks = _message_nodes(sub.conversation_area)
        self.assertEqual(len(blocks), 2)
        self.assertEqual([b.text for b in blocks], ["hi", "hello"])
        self.assertIn(f"{C.MESSAGE_CLASS}--user", blocks[0].classes)
        self.assertIn(f"{C.MESSAGE_CLASS}--assistant", blocks[1].classes)
        self.assertNotEqual(blocks[0].style["background"], blocks[1].style["background"])

    def test_host_markup_is_carried_as_literal_text(self) -> None:
        hostile = "<img src=x onerror=alert(1)>"
        sub = build_sub_panel(_conversation(0, "panel-1", [Message("assistant", hostile, 0.0)]), 0)
        payload = sub.node.to_payload()
        blocks = [n for n in _walk(payload) if C.MESSAGE_CLASS in n.get("classes", [])]
        self.assertEqual(blocks[0]["text"], hostile)
        self.assertNotIn("children", blocks[0])
        self.assertFalse(any("html" in key.lower() for node in _walk(payload) for key in node))

    def test_inline_handler_attributes_are_dropped(self) -> None:
        node = UINode("div", attrs={"title": "ok", "onclick": "steal()", "OnLoad": "x"})
        self.assertEqual(node.to_payload()["attrs"], {"title": "ok"})

    def test_compose_surface_is_seeded_and_send_carries_key(self) -> None:
        sub = build_sub_panel(_conversation(3, "panel-9", input_content="draft"), 1)
        self.assertTrue(sub.compose.editable)
        self.assertEqual(sub.compose.text, "draft")
        self.assertEqual(sub.submit.action, {"kind": "send", "panelIndex": 1, "panelKey": "panel-9"})
        self.assertIn(C.SUBMIT_CLASS, sub.submit.classes)

    def test_empty_conversation_shows_hint(self) -> None:
        sub = build_sub_panel(_conversation(0, "panel-1"), 0)
        self.assertEqual(_message_nodes(sub.conversation_area), [])
        self.assertIn("No messages yet", sub.conversation_area.children[0].text)

    def test_tree_structure(self) -> None:
        snapshot = ExtractionSnapshot(
            conversations=(_conversation(0, "panel-1"), _conversation(1, "panel-2")),
        )
        ui = create_ui(snapshot)
        self.assertEqual(ui.root.id, C.ROOT_ID)
        self.assertEqual(ui.panel_count, 2)
        self.assertEqual(ui.keys, ["panel-1", "panel-2"])
        self.assertEqual(ui.badge.text, "2")
        self.assertIsNone(ui.root.find(C.PLACEHOLDER_ID))

        slots = ui.status_strip.find_all(lambda n: "agent-slot" in n.classes)
        self.assertEqual([s.data["agent"] for s in slots], [name for name, _, _ in C.AGENT_ROSTER])
        self.assertEqual(len(slots), 6)

        actions = [n.action for n in ui.toolbar.iter() if n.action]
        self.assertIn({"kind": "signal", "signal": C.SIGNAL_SPAWN_PANEL}, actions)
        self.assertIn({"kind": "restore"}, actions)

    def test_controls_only_emit_known_actions(self) -> None:
        ui = create_ui(ExtractionSnapshot(conversations=(_conversation(0, "panel-1"),)))
        kinds = {n.action["kind"] for n in ui.root.iter() if n.action}
        self.assertLessEqual(kinds, {"signal", "send", "agent", "restore", "expand"})
        signals = {n.action["signal"] for n in ui.root.iter() if n.action and n.action["kind"] == "signal"}
        self.assertLessEqual(signals, set(C.SIGNAL_NAMES))

    def test_empty_snapshot_renders_placeholder(self) -> None:
        ui = create_ui(ExtractionSnapshot())
        self.assertEqual(ui.panel_count, 0)
        self.assertIsNotNone(ui.panels_container.find(C.PLACEHOLDER_ID))
        self.assertEqual(ui.badge.text, "0")

    def test_next_sub_panel_is_not_committed_until_asked(self) -> None:
        ui = create_ui(ExtractionSnapshot(conversations=(_conversation(0, "panel-1"),)))
        sub = ui.next_sub_panel(_conversation(0, "panel-2"))
        self.assertEqual(sub.ordinal, 1)
        self.assertEqual(ui.panel_count, 1)
        self.assertEqual(ui.badge.text, "1")
        ui.commit_sub_panel(sub)
        self.assertEqual(ui.keys, ["panel-1", "panel-2"])
        self.assertEqual(ui.badge.text, "2")

    def test_adding_a_panel_replaces_placeholder(self) -> None:
        ui = create_ui(ExtractionSnapshot())
        sub = ui.add_sub_panel(_conversation(0, "panel-5"))
        self.assertEqual(sub.ordinal, 0)
        self.assertIsNone(ui.panels_container.find(C.PLACEHOLDER_ID))
        self.assertEqual(ui.badge.text, "1")


def _walk(payload):
    yield payload
    for child in payload.get("children", []):
        yield from _walk(child)


if __name__ == "__main__":
    unittest.main()
