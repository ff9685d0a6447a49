import unittest
from unittest.mock import MagicMock, patch

from cascadehub.config import Endpoint
from cascadehub.context import TakeoverContext
from cascadehub.errors import NotConnectedError, SessionConnectionError
from cascadehub.session import RemoteSession, safe_page_title


class _RecordingCDP:
    def __init__(self) -> None:
        self.sent = []

    def send(self, method, params=None):
        self.sent.append((method, params))
        return {}


class RemoteSessionTests(unittest.TestCase):
    def test_connect_fails_when_playwright_missing(self) -> None:
        session = RemoteSession()
        with patch("cascadehub.session.playwright_available", return_value=False):
            with self.assertRaises(SessionConnectionError) as raised:
                session.connect(Endpoint())
        self.assertIn("pip install playwright", str(raised.exception))
        self.assertFalse(session.connected)

    def test_connect_fails_fast_when_endpoint_not_listening(self) -> None:
        session = RemoteSession()
        with patch("cascadehub.session.playwright_available", return_value=True), patch(
            "cascadehub.session.cdp_alive", return_value=False
        ):
            with self.assertRaises(SessionConnectionError) as raised:
                session.connect(Endpoint(port=9999))
        self.assertIn("9999", str(raised.exception))
        self.assertIsInstance(raised.exception, ConnectionError)

    def test_disconnect_is_idempotent(self) -> None:
        session = RemoteSession()
        session.disconnect()
        session.disconnect()
        self.assertFalse(session.connected)

        browser = MagicMock()
        pw = MagicMock()
        session = RemoteSession.attached(MagicMock(), _RecordingCDP())
        session._browser = browser
        session._playwright = pw
        session.disconnect()
        session.disconnect()
        browser.close.assert_called_once()
        pw.stop.assert_called_once()
        self.assertFalse(session.connected)

    def test_primitives_forward_verbatim(self) -> None:
        cdp = _RecordingCDP()
        session = RemoteSession.attached(MagicMock(), cdp)
        session.dispatch_key({"type": "keyDown", "key": "x"})
        session.dispatch_char("é")
        session.insert_text("Cascade in new tab")
        session.press_key("F1", code="F1", windows_virtual_key_code=112)
        self.assertEqual(
            cdp.sent,
            [
                ("Input.dispatchKeyEvent", {"type": "keyDown", "key": "x"}),
                ("Input.dispatchKeyEvent", {"type": "char", "text": "é"}),
                ("Input.insertText", {"text": "Cascade in new tab"}),
                (
                    "Input.dispatchKeyEvent",
                    {"type": "keyDown", "key": "F1", "code": "F1", "windowsVirtualKeyCode": 112},
                ),
                ("Input.dispatchKeyEvent", {"type": "keyUp", "key": "F1"}),
            ],
        )

    def test_primitives_require_connection(self) -> None:
        session = RemoteSession()
        with self.assertRaises(NotConnectedError):
            session.dispatch_char("a")
        with self.assertRaises(NotConnectedError):
            session.evaluate("() => 1")

    def test_bindings_are_exposed_once_per_page(self) -> None:
        page = MagicMock()
        session = RemoteSession.attached(page, _RecordingCDP())
        self.assertTrue(session.expose_binding("__b", lambda *_: None))
        self.assertFalse(session.expose_binding("__b", lambda *_: None))
        page.expose_binding.assert_called_once()

    def test_safe_page_title_swallows_errors(self) -> None:
        page = MagicMock()
        page.title.side_effect = RuntimeError("target closed")
        self.assertEqual(safe_page_title(page), "")
        self.assertEqual(safe_page_title(object()), "")


class TakeoverContextTests(unittest.TestCase):
    def test_context_connect_uses_configured_endpoint(self) -> None:
        session = MagicMock()
        session.connect.return_value = {"connected": True, "page_title": "Windsurf"}
        ctx = TakeoverContext(session=session)
        result = ctx.connect()
        self.assertTrue(result["connected"])
        session.connect.assert_called_once_with(ctx.config.endpoint)

    def test_signals_without_mount_are_rejected(self) -> None:
        ctx = TakeoverContext(session=RemoteSession())
        self.assertEqual(ctx.route_signal("send", {}), {"handled": False, "error": "not mounted"})
        self.assertFalse(ctx.route_panel_added({"generation": 1}))

    def test_require_connected(self) -> None:
        ctx = TakeoverContext(session=RemoteSession())
        with self.assertRaises(NotConnectedError):
            ctx.require_connected()


if __name__ == "__main__":
    unittest.main()
