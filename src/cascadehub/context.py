"""Takeover context: the session, configuration and mount state owned by one caller."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from cascadehub.config import Endpoint, TakeoverConfig
from cascadehub.errors import InvalidSignalError, NotConnectedError
from cascadehub.session import RemoteSession
from cascadehub.storage import RunContext, append_log

if TYPE_CHECKING:
    from cascadehub.action_bridge import ActionBridge
    from cascadehub.ui_builder import ReplacementUI
    from cascadehub.watcher import DynamicPanelWatcher


class MountState(str, Enum):
    UNMOUNTED = "unmounted"
    MOUNTING = "mounting"
    MOUNTED = "mounted"
    UNMOUNTING = "unmounting"


@dataclass
class MountRecord:
    root_id: str
    ui: "ReplacementUI"
    watcher: "DynamicPanelWatcher"
    bridge: "ActionBridge"
    hidden: int = 0
    handlers_extracted: int = 0
    mounted_at: float = field(default_factory=time.time)

    @property
    def panel_count(self) -> int:
        return self.ui.panel_count

    def summary(self, state: MountState) -> dict[str, Any]:
        return {
            "state": state.value,
            "root_id": self.root_id,
            "panel_count": self.panel_count,
            "handlers_extracted": self.handlers_extracted,
            "hidden": self.hidden,
            "watcher_active": self.watcher.active,
            "signals_handled": self.bridge.handled,
            "agents_toggled": list(self.bridge.toggled_agents),
            "mounted_at": self.mounted_at,
        }


class TakeoverContext:
    def __init__(
        self,
        config: TakeoverConfig | None = None,
        session: RemoteSession | None = None,
        run: RunContext | None = None,
    ) -> None:
        self.config = config or TakeoverConfig()
        self.session = session or RemoteSession()
        self.run = run
        self.state = MountState.UNMOUNTED
        self.mount_record: MountRecord | None = None
        # Routing targets for exposed bindings, which are registered once per
        # page and outlive any single mount.
        self.bridge: ActionBridge | None = None
        self.active_watcher: DynamicPanelWatcher | None = None

    def log(self, message: str) -> None:
        if self.run is None:
            return
        try:
            append_log(self.run.hub_log, message)
        except OSError:
            return

    @property
    def connected(self) -> bool:
        return self.session.connected

    def require_connected(self) -> None:
        if not self.session.connected:
            raise NotConnectedError()

    def connect(self, endpoint: Endpoint | None = None) -> dict[str, Any]:
        target = endpoint or self.config.endpoint
        result = self.session.connect(target)
        self.log(f"connected endpoint={target.url} title={result.get('page_title', '')!r}")
        return result

    def drop_mount(self, reason: str) -> None:
        """Forget the mount without touching the document (it is already gone)."""
        if self.mount_record is not None:
            self.log(f"mount record dropped: {reason}")
        if self.active_watcher is not None:
            self.active_watcher.active = False
        self.mount_record = None
        self.bridge = None
        self.active_watcher = None
        self.state = MountState.UNMOUNTED

    def disconnect(self) -> None:
        self.drop_mount("disconnect")
        was_connected = self.session.connected
        self.session.disconnect()
        if was_connected:
            self.log("disconnected")

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self.session.evaluate(script, arg)

    def wait(self, ms: int) -> None:
        self.session.wait(ms)

    def route_signal(self, name: Any, payload: Any = None) -> dict[str, Any]:
        bridge = self.bridge
        if bridge is None:
            self.log(f"signal {name!r} ignored: not mounted")
            return {"handled": False, "error": "not mounted"}
        try:
            return bridge.dispatch(name, payload)
        except InvalidSignalError as exc:
            self.log(f"signal rejected: {exc}")
            return {"handled": False, "error": str(exc)}

    def route_panel_added(self, payload: Any) -> bool:
        watcher = self.active_watcher
        if watcher is None:
            return False
        return watcher.handle_observed(payload)
