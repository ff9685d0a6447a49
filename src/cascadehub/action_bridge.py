"""Action bridge: the only path from the replacement UI to privileged automation.

The in-document tree raises CustomEvents named ``cascadehub-<signal>`` on
window. A listener installed at mount forwards them to an exposed binding,
which lands in ``TakeoverContext.route_signal`` and from there in
``ActionBridge.dispatch``. Payloads are validated here, not trusted.
"""

from __future__ import annotations

from typing import Any, Callable

from cascadehub import automation
from cascadehub import constants as C
from cascadehub.context import TakeoverContext
from cascadehub.errors import InvalidSignalError, TakeoverError
from cascadehub.locator import resolve_index
from cascadehub.models import SendResult, SpawnResult


SendOp = Callable[[TakeoverContext, int, str], SendResult]
SpawnOp = Callable[[TakeoverContext], SpawnResult]

_INSTALL_BRIDGE_JS = """
(args) => {
  /* cascadehub:install-bridge */
  if (window.__cascadehubBridge) return { installed: false, signals: args.signals };
  window.__cascadehubBridge = true;
  args.signals.forEach((name) => {
    window.addEventListener(args.eventPrefix + name, (event) => {
      const fn = window[args.binding];
      if (typeof fn === 'function') fn(name, (event && event.detail) || {});
    });
  });
  return { installed: true, signals: args.signals };
}
"""


def _as_index(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidSignalError("send: panelIndex must be a number")
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if not isinstance(value, int):
        raise InvalidSignalError(f"send: panelIndex must be an integer, got {value!r}")
    if value < 0:
        raise InvalidSignalError(f"send: panelIndex must not be negative, got {value}")
    return value


def parse_signal(name: Any, payload: Any = None) -> tuple[str, dict[str, Any]]:
    if name not in C.SIGNAL_NAMES:
        raise InvalidSignalError(f"Unknown signal: {name!r}")
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise InvalidSignalError(f"{name}: payload must be an object")

    if name == C.SIGNAL_SEND:
        message = payload.get("message")
        if not isinstance(message, str) or not message.strip():
            raise InvalidSignalError("send: message must be a non-empty string")
        key = payload.get("panelKey") or ""
        if not isinstance(key, str):
            raise InvalidSignalError("send: panelKey must be a string")
        return name, {"panelIndex": _as_index(payload.get("panelIndex")), "message": message, "panelKey": key}

    if name == C.SIGNAL_AGENT_TOGGLE:
        agent = payload.get("agent")
        if not isinstance(agent, str) or not agent.strip():
            raise InvalidSignalError("agent-toggle: agent must be a non-empty string")
        return name, {"agent": agent}

    return name, {}


def _signal_binding(ctx: TakeoverContext) -> Callable[..., Any]:
    def callback(source: Any, name: Any = None, payload: Any = None) -> dict[str, Any]:
        return ctx.route_signal(name, payload)

    return callback


class ActionBridge:
    def __init__(
        self,
        ctx: TakeoverContext,
        *,
        send_op: SendOp | None = None,
        spawn_op: SpawnOp | None = None,
    ) -> None:
        self.ctx = ctx
        self.send_op: SendOp = send_op or automation.send
        self.spawn_op: SpawnOp = spawn_op or automation.spawn_panel
        self.handled = 0
        self.toggled_agents: list[str] = []

    def install(self) -> None:
        self.ctx.session.expose_binding(C.SIGNAL_BINDING, _signal_binding(self.ctx))
        self.ctx.bridge = self
        self.ctx.evaluate(
            _INSTALL_BRIDGE_JS,
            {
                "signals": list(C.SIGNAL_NAMES),
                "eventPrefix": C.SIGNAL_EVENT_PREFIX,
                "binding": C.SIGNAL_BINDING,
            },
        )

    def detach(self) -> None:
        if self.ctx.bridge is self:
            self.ctx.bridge = None

    def dispatch(self, name: Any, payload: Any = None) -> dict[str, Any]:
        signal, data = parse_signal(name, payload)
        self.handled += 1
        try:
            if signal == C.SIGNAL_SEND:
                return self._send(data)
            if signal == C.SIGNAL_SPAWN_PANEL:
                return self._spawn()
        except TakeoverError as exc:
            self.ctx.log(f"signal {signal} failed: {exc}")
            return {"handled": False, "signal": signal, "error": str(exc)}
        agent = data["agent"]
        self.toggled_agents.append(agent)
        self.ctx.log(f"signal agent-toggle agent={agent}")
        return {"handled": True, "signal": signal, "agent": agent}

    def _send(self, data: dict[str, Any]) -> dict[str, Any]:
        index = data["panelIndex"]
        key = data["panelKey"]
        if key:
            # A stale key never falls back to the ordinal.
            current = resolve_index(self.ctx, key)
            if current is None:
                self.ctx.log(f"signal send: key {key} not found, not sent")
                return {"handled": False, "signal": C.SIGNAL_SEND, "error": f"Panel {key} not found"}
            index = current
        result = self.send_op(self.ctx, index, data["message"])
        self.ctx.log(f"signal send panel={index} key={key or '-'} sent={result.sent}")
        return {"handled": True, "signal": C.SIGNAL_SEND, "panelIndex": index, "result": result.to_dict()}

    def _spawn(self) -> dict[str, Any]:
        result = self.spawn_op(self.ctx)
        watcher = self.ctx.active_watcher
        watching = watcher is not None and watcher.active
        reloaded = False
        if result.spawned and (self.ctx.config.reload_after_spawn or not watching):
            self.ctx.log("signal spawn-panel: reloading document to pick up the new panel")
            self.ctx.drop_mount("document reloaded after spawn")
            self.ctx.session.reload()
            reloaded = True
        self.ctx.log(f"signal spawn-panel spawned={result.spawned} reloaded={reloaded}")
        return {
            "handled": True,
            "signal": C.SIGNAL_SPAWN_PANEL,
            "result": result.to_dict(),
            "reloaded": reloaded,
        }
