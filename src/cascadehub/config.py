"""Runtime configuration, with overrides read from CASCADEHUB_* environment variables."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

from cascadehub import constants as C


@dataclass(frozen=True)
class Endpoint:
    host: str = C.DEFAULT_HOST
    port: int = C.DEFAULT_PORT

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


def parse_endpoint(raw: str | int | None) -> Endpoint:
    text = str(raw if raw is not None else "").strip()
    if not text:
        return Endpoint()
    if text.isdigit():
        return Endpoint(port=int(text))
    if "://" not in text:
        text = f"http://{text}"
    try:
        parsed = urlparse(text)
        port = parsed.port
    except ValueError as exc:
        raise ValueError(f"Invalid remote debugging endpoint: {raw}") from exc
    host = parsed.hostname or C.DEFAULT_HOST
    return Endpoint(host=host, port=int(port or C.DEFAULT_PORT))


@dataclass(frozen=True)
class HostSelectors:
    container: str = C.CONTAINER_SELECTOR
    compose: str = C.COMPOSE_SELECTOR
    submit: str = C.SUBMIT_SELECTOR
    submit_disabled_class: str = C.SUBMIT_DISABLED_CLASS
    transcript: str = C.TRANSCRIPT_SELECTOR
    messages: tuple[str, ...] = C.MESSAGE_SELECTORS
    toggle: str = C.TOGGLE_SELECTOR
    command_entry: str = C.COMMAND_ENTRY_SELECTOR
    editor: str = C.EDITOR_SELECTOR
    aux_bar_id: str = C.AUX_BAR_ID
    tab: str = C.TAB_SELECTOR
    tab_label: str = C.TAB_LABEL
    trust_button: str = C.TRUST_BUTTON_SELECTOR
    trust_text: str = C.TRUST_BUTTON_TEXT

    def to_payload(self) -> dict[str, Any]:
        return {
            "container": self.container,
            "compose": self.compose,
            "submit": self.submit,
            "submitDisabledClass": self.submit_disabled_class,
            "transcript": self.transcript,
            "messages": ", ".join(self.messages),
            "toggle": self.toggle,
            "commandEntry": self.command_entry,
            "editor": self.editor,
            "auxBarId": self.aux_bar_id,
            "tab": self.tab,
            "tabLabel": self.tab_label,
            "trustButton": self.trust_button,
            "trustText": self.trust_text,
        }


@dataclass(frozen=True)
class Timings:
    focus_settle_ms: int = C.FOCUS_SETTLE_MS
    select_settle_ms: int = C.SELECT_SETTLE_MS
    clear_settle_ms: int = C.CLEAR_SETTLE_MS
    char_delay_ms: int = C.CHAR_DELAY_MS
    type_settle_ms: int = C.TYPE_SETTLE_MS
    poll_interval_ms: int = C.POLL_INTERVAL_MS
    quiet_ms: int = C.QUIET_MS
    response_timeout_ms: int = C.RESPONSE_TIMEOUT_MS
    escape_settle_ms: int = C.ESCAPE_SETTLE_MS
    palette_settle_ms: int = C.PALETTE_SETTLE_MS
    command_settle_ms: int = C.COMMAND_SETTLE_MS
    spawn_settle_ms: int = C.SPAWN_SETTLE_MS
    watcher_defer_ms: int = C.WATCHER_DEFER_MS
    layout_refresh_ms: int = C.LAYOUT_REFRESH_MS
    trust_settle_ms: int = C.TRUST_SETTLE_MS
    open_settle_ms: int = C.OPEN_SETTLE_MS


def default_select_all_modifier() -> str:
    return "Meta" if sys.platform == "darwin" else "Control"


@dataclass(frozen=True)
class TakeoverConfig:
    endpoint: Endpoint = field(default_factory=Endpoint)
    selectors: HostSelectors = field(default_factory=HostSelectors)
    timings: Timings = field(default_factory=Timings)
    spawn_command: str = C.SPAWN_COMMAND_TEXT
    select_all_modifier: str = field(default_factory=default_select_all_modifier)
    reload_after_spawn: bool = False
    input_preview_chars: int = C.INPUT_PREVIEW_CHARS
    runs_dir: Path = Path("runs")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "TakeoverConfig":
        env = os.environ if environ is None else environ
        try:
            endpoint = parse_endpoint(_env_str(env, "CASCADEHUB_HOST", C.DEFAULT_HOST))
        except ValueError:
            endpoint = Endpoint()
        if _env_str(env, "CASCADEHUB_PORT", ""):
            endpoint = replace(endpoint, port=_env_int(env, "CASCADEHUB_PORT", endpoint.port))
        selectors = HostSelectors(
            container=_env_str(env, "CASCADEHUB_CONTAINER_SELECTOR", C.CONTAINER_SELECTOR),
            tab_label=_env_str(env, "CASCADEHUB_TAB_LABEL", C.TAB_LABEL),
        )
        timings = Timings(
            char_delay_ms=_env_int(env, "CASCADEHUB_TYPING_DELAY_MS", C.CHAR_DELAY_MS),
            quiet_ms=_env_int(env, "CASCADEHUB_QUIET_MS", C.QUIET_MS),
        )
        modifier = _env_str(env, "CASCADEHUB_SELECT_ALL_MODIFIER", default_select_all_modifier())
        if modifier not in C.MODIFIER_BITS:
            modifier = default_select_all_modifier()
        return cls(
            endpoint=endpoint,
            selectors=selectors,
            timings=timings,
            spawn_command=_env_str(env, "CASCADEHUB_SPAWN_COMMAND", C.SPAWN_COMMAND_TEXT),
            select_all_modifier=modifier,
            reload_after_spawn=_env_flag(env, "CASCADEHUB_RELOAD_AFTER_SPAWN"),
            runs_dir=Path(_env_str(env, "CASCADEHUB_RUNS_DIR", "runs")),
        )

    def with_endpoint(self, endpoint: Endpoint) -> "TakeoverConfig":
        return replace(self, endpoint=endpoint)


def _env_str(env: Mapping[str, str], name: str, default: str) -> str:
    value = str(env.get(name, "") or "").strip()
    return value or default


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = str(env.get(name, "") or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= 0 else default


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return str(env.get(name, "0")).strip().lower() in {"1", "true", "yes", "on"}
