"""Remote session: CDP connection to the host document and raw input injection."""

from __future__ import annotations

import importlib.util
import urllib.error
import urllib.request
from typing import Any, Callable

from cascadehub.config import Endpoint
from cascadehub.errors import NotConnectedError, SessionConnectionError


def playwright_available() -> bool:
    return importlib.util.find_spec("playwright.sync_api") is not None


def cdp_alive(endpoint: Endpoint) -> bool:
    url = f"{endpoint.url}/json/version"
    try:
        with urllib.request.urlopen(url, timeout=1.5) as resp:
            return resp.status == 200
    except (urllib.error.URLError, TimeoutError, OSError):
        return False


def safe_page_title(page: object) -> str:
    title_attr = getattr(page, "title", None)
    if not callable(title_attr):
        return ""
    try:
        value = title_attr()
    except Exception:
        return ""
    return str(value or "")


class RemoteSession:
    def __init__(self) -> None:
        self.endpoint: Endpoint | None = None
        self.page: Any = None
        self.cdp: Any = None
        self._browser: Any = None
        self._playwright: Any = None
        self._bindings: set[str] = set()

    @classmethod
    def attached(cls, page: Any, cdp: Any, endpoint: Endpoint | None = None) -> "RemoteSession":
        session = cls()
        session.page = page
        session.cdp = cdp
        session.endpoint = endpoint
        return session

    @property
    def connected(self) -> bool:
        return self.page is not None and self.cdp is not None

    def connect(self, endpoint: Endpoint) -> dict[str, Any]:
        # A second connect without disconnect replaces the handles; the old
        # connection stays open until its process exits.
        if not playwright_available():
            raise SessionConnectionError(
                "Playwright Python package is not installed. "
                "Install it with: pip install playwright"
            )
        if not cdp_alive(endpoint):
            raise SessionConnectionError(f"Remote debugging endpoint not reachable: {endpoint.url}")

        from playwright.sync_api import sync_playwright

        pw = sync_playwright().start()
        try:
            browser = pw.chromium.connect_over_cdp(endpoint.url)
        except Exception as exc:
            pw.stop()
            raise SessionConnectionError(f"CDP connect failed for {endpoint.url}: {exc}") from exc

        pages = [page for context in browser.contexts for page in context.pages]
        if not pages:
            try:
                browser.close()
            finally:
                pw.stop()
            raise SessionConnectionError(f"No document available at {endpoint.url}")

        page = pages[0]
        try:
            cdp = page.context.new_cdp_session(page)
        except Exception as exc:
            try:
                browser.close()
            finally:
                pw.stop()
            raise SessionConnectionError(f"Could not open input channel: {exc}") from exc

        self.endpoint = endpoint
        self.page = page
        self.cdp = cdp
        self._browser = browser
        self._playwright = pw
        self._bindings = set()
        return {"connected": True, "page_title": safe_page_title(page), "endpoint": endpoint.url}

    def disconnect(self) -> None:
        browser = self._browser
        pw = self._playwright
        self.page = None
        self.cdp = None
        self._browser = None
        self._playwright = None
        self._bindings = set()
        if browser is not None:
            try:
                browser.close()
            except Exception:
                pass
        if pw is not None:
            try:
                pw.stop()
            except Exception:
                pass

    def require_page(self) -> Any:
        if self.page is None:
            raise NotConnectedError()
        return self.page

    def _require_cdp(self) -> Any:
        if self.cdp is None:
            raise NotConnectedError()
        return self.cdp

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.require_page().evaluate(script, arg)

    def wait(self, ms: int) -> None:
        # wait_for_timeout also pumps exposed-binding callbacks.
        self.require_page().wait_for_timeout(max(0, int(ms)))

    def title(self) -> str:
        return safe_page_title(self.page)

    def reload(self) -> None:
        self.require_page().reload()

    def expose_binding(self, name: str, callback: Callable[..., Any]) -> bool:
        if name in self._bindings:
            return False
        self.require_page().expose_binding(name, callback)
        self._bindings.add(name)
        return True

    def dispatch_key(self, event: dict[str, Any]) -> None:
        self._require_cdp().send("Input.dispatchKeyEvent", event)

    def dispatch_char(self, text: str) -> None:
        self.dispatch_key({"type": "char", "text": text})

    def insert_text(self, text: str) -> None:
        self._require_cdp().send("Input.insertText", {"text": text})

    def press_key(
        self,
        key: str,
        *,
        code: str | None = None,
        windows_virtual_key_code: int | None = None,
        modifiers: int = 0,
    ) -> None:
        down: dict[str, Any] = {"type": "keyDown", "key": key}
        if code:
            down["code"] = code
        if windows_virtual_key_code is not None:
            down["windowsVirtualKeyCode"] = windows_virtual_key_code
        if modifiers:
            down["modifiers"] = modifiers
        self.dispatch_key(down)
        self.dispatch_key({"type": "keyUp", "key": key})
