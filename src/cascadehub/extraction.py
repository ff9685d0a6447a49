"""Extraction engine: read-only snapshot of every panel before the takeover mutates anything.

The in-document half gathers raw records (text, markup, message segments,
listener descriptors). The Python half interprets them: role inference,
timestamps, handler capture variants and degraded-field bookkeeping.
Listener capture is best effort. Under CDP evaluation the privileged
introspection API is usually missing and the inline ``on*`` fallback is
frequently empty, so callers must handle ``NotAvailable``.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Any

from cascadehub import constants as C
from cascadehub.context import TakeoverContext
from cascadehub.locator import KEY_HELPER_JS
from cascadehub.models import (
    Conversation,
    ExtractedViaFallback,
    ExtractedViaIntrospection,
    ExtractionSnapshot,
    HandlerCapture,
    ListenerDescriptor,
    Message,
    NotAvailable,
    Panel,
)


PANEL_RECORD_JS = (
    KEY_HELPER_JS
    + """
  const listenersOf = (el) => {
    if (!el) return { mode: 'absent', events: {} };
    if (typeof window.getEventListeners === 'function') {
      try {
        const found = window.getEventListeners(el) || {};
        const events = {};
        Object.keys(found).forEach((name) => {
          events[name] = (found[name] || []).map((l) => ({
            source: 'listener',
            useCapture: !!l.useCapture,
            passive: !!l.passive,
            once: !!l.once,
          }));
        });
        return { mode: 'introspection', events };
      } catch (_e) {}
    }
    const events = {};
    try {
      for (const prop in el) {
        if (prop.startsWith('on') && typeof el[prop] === 'function') {
          events[prop.slice(2)] = [{ source: prop }];
        }
      }
    } catch (_e) {}
    return { mode: 'fallback', events };
  };
  const recordOf = (panel, index, sel) => {
    const input = panel.querySelector(sel.compose);
    const submit = panel.querySelector(sel.submit);
    const transcript = panel.querySelector(sel.transcript);
    const rect = panel.getBoundingClientRect();
    const segs = [...panel.querySelectorAll(sel.messages)]
      .filter((el) => !(input && (input === el || input.contains(el))));
    const messages = segs
      .filter((el) => !segs.some((other) => other !== el && other.contains(el)))
      .map((el) => ({
        classes: String((el.className && el.className.baseVal) ?? el.className ?? ''),
        role: el.getAttribute('role') || '',
        userAncestor: !!(el.parentElement && el.parentElement.closest('[class*="user"]')),
        text: el.innerText || '',
        timestamp: (el.dataset && el.dataset.timestamp) || null,
      }));
    return {
      key: keyOf(panel),
      index,
      visible: rect.width > 0 && rect.height > 0,
      hasCompose: !!input,
      hasSubmit: !!submit,
      hasTranscript: !!transcript,
      inputText: input ? (input.innerText || input.value || '') : '',
      transcriptText: transcript ? (transcript.innerText || '') : '',
      transcriptMarkup: transcript ? (transcript.innerHTML || '') : '',
      submitDisabled: submitDisabled(submit, sel),
      listeners: { compose: listenersOf(input), submit: listenersOf(submit) },
      messages,
    };
  };
"""
)

_EXTRACT_JS = (
    """
(args) => {
  /* cascadehub:extract */
  const sel = args.sel;
"""
    + PANEL_RECORD_JS
    + """
  const panels = [...document.querySelectorAll(sel.container)].map((p, i) => recordOf(p, i, sel));
  const toggle = document.querySelector(sel.toggle);
  const commandEntry = document.querySelector(sel.commandEntry);
  const hints = args.globalHints || [];
  const globals = Object.keys(window)
    .filter((k) => !k.startsWith('__cascadehub'))
    .filter((k) => hints.some((h) => k.toLowerCase().includes(h)))
    .filter((k) => { try { return !!window[k] && typeof window[k] === 'object'; } catch (_e) { return false; } })
    .slice(0, 50);
  let commandService = false;
  try {
    commandService = !!((window.vscode && window.vscode.commands)
      || document.querySelector('[data-vscode-context]'));
  } catch (_e) {}
  return {
    panels,
    aux: {
      toggle: !!toggle,
      toggleListeners: listenersOf(toggle),
      commandEntry: !!commandEntry,
      commandEntryListeners: listenersOf(commandEntry),
      editor: !!document.querySelector(sel.editor),
      apis: { monaco: !!window.monaco, vscode: !!window.vscode, commandService },
      globals,
    },
  };
}
"""
)


def _parse_timestamp(value: Any, default: float) -> float:
    if value is None or value == "":
        return default
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        text = str(value).strip()
        try:
            number = float(text)
        except ValueError:
            try:
                return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
            except ValueError:
                return default
    # Host timestamps are usually epoch milliseconds.
    return number / 1000.0 if number > 1e11 else number


def infer_role(raw: dict[str, Any]) -> str:
    classes = str(raw.get("classes") or "").lower().split()
    if "user" in classes or any(c.endswith("-user") or c.startswith("user-") for c in classes):
        return "user"
    if str(raw.get("role") or "").strip().lower() == "user":
        return "user"
    if raw.get("userAncestor"):
        return "user"
    return "assistant"


def parse_messages(raw_messages: Any, captured_at: float) -> tuple[Message, ...]:
    messages: list[Message] = []
    if not isinstance(raw_messages, list):
        return ()
    for item in raw_messages:
        if not isinstance(item, dict):
            continue
        text = str(item.get("text") or "").strip()
        if not text:
            continue
        messages.append(
            Message(
                role=infer_role(item),
                text=text,
                timestamp=_parse_timestamp(item.get("timestamp"), captured_at),
            )
        )
    return tuple(messages)


def parse_conversation(record: dict[str, Any], captured_at: float | None = None) -> Conversation:
    now = time.time() if captured_at is None else captured_at
    missing = tuple(
        name
        for name, flag in (
            ("compose", "hasCompose"),
            ("submit", "hasSubmit"),
            ("transcript", "hasTranscript"),
        )
        if not record.get(flag)
    )
    return Conversation(
        index=int(record.get("index") or 0),
        key=str(record.get("key") or ""),
        messages=parse_messages(record.get("messages"), now),
        transcript_text=str(record.get("transcriptText") or ""),
        transcript_markup=str(record.get("transcriptMarkup") or ""),
        input_content=str(record.get("inputText") or ""),
        missing=missing,
    )


def parse_handler_capture(raw: Any, wanted: tuple[str, ...] | None = None) -> HandlerCapture | None:
    if not isinstance(raw, dict):
        return NotAvailable(reason="no listener data returned")
    mode = str(raw.get("mode") or "")
    if mode == "absent":
        return None
    events = raw.get("events") if isinstance(raw.get("events"), dict) else {}
    listeners: list[ListenerDescriptor] = []
    for event, entries in sorted(events.items()):
        if wanted is not None and event not in wanted:
            continue
        for entry in entries if isinstance(entries, list) else []:
            entry = entry if isinstance(entry, dict) else {}
            listeners.append(
                ListenerDescriptor(
                    event=str(event),
                    source=str(entry.get("source") or "listener"),
                    use_capture=bool(entry.get("useCapture")),
                    passive=bool(entry.get("passive")),
                    once=bool(entry.get("once")),
                )
            )
    if mode == "introspection":
        return ExtractedViaIntrospection(listeners=tuple(listeners))
    if mode == "fallback" and listeners:
        return ExtractedViaFallback(listeners=tuple(listeners))
    if mode == "fallback":
        return NotAvailable(reason="introspection unavailable and no inline handlers found")
    return NotAvailable(reason=f"unknown capture mode {mode!r}")


def _panel_from_record(record: dict[str, Any]) -> Panel:
    return Panel(
        index=int(record.get("index") or 0),
        key=str(record.get("key") or ""),
        visible=bool(record.get("visible")),
        input_content=str(record.get("inputText") or ""),
        button_enabled=not bool(record.get("submitDisabled", True)),
    )


def build_snapshot(raw: Any, captured_at: float) -> ExtractionSnapshot:
    raw = raw if isinstance(raw, dict) else {}
    records = [r for r in raw.get("panels") or [] if isinstance(r, dict)]
    panels: list[Panel] = []
    conversations: list[Conversation] = []
    handlers: dict[str, HandlerCapture] = {}
    for position, record in enumerate(records):
        record = {**record, "index": position}
        panels.append(_panel_from_record(record))
        conversations.append(parse_conversation(record, captured_at))
        listeners = record.get("listeners") if isinstance(record.get("listeners"), dict) else {}
        compose = parse_handler_capture(listeners.get("compose"), C.COMPOSE_EVENTS)
        if compose is not None:
            handlers[f"panel_{position}_input"] = compose
        submit = parse_handler_capture(listeners.get("submit"), C.SUBMIT_EVENTS)
        if submit is not None:
            handlers[f"panel_{position}_send"] = submit

    aux = raw.get("aux") if isinstance(raw.get("aux"), dict) else {}
    if aux.get("toggle"):
        toggle = parse_handler_capture(aux.get("toggleListeners"))
        if toggle is not None:
            handlers["panel_toggle"] = toggle
    if aux.get("commandEntry"):
        palette = parse_handler_capture(aux.get("commandEntryListeners"))
        if palette is not None:
            handlers["command_entry"] = palette

    metadata = {
        "toggle_control": bool(aux.get("toggle")),
        "command_entry": bool(aux.get("commandEntry")),
        "editor": bool(aux.get("editor")),
        "host_apis": dict(aux.get("apis") or {}),
        "globals": [str(name) for name in aux.get("globals") or []],
        "shortcuts": {group: dict(keys) for group, keys in C.SHORTCUTS.items()},
    }
    return ExtractionSnapshot(
        panels=tuple(panels),
        conversations=tuple(conversations),
        handlers=handlers,
        metadata=metadata,
        captured_at=captured_at,
    )


def extract(ctx: TakeoverContext) -> ExtractionSnapshot:
    ctx.require_connected()
    raw = ctx.evaluate(
        _EXTRACT_JS,
        {"sel": ctx.config.selectors.to_payload(), "globalHints": list(C.GLOBAL_NAME_HINTS)},
    )
    snapshot = build_snapshot(raw, captured_at=time.time())
    if not snapshot.panels:
        ctx.log("extract: no conversation panels found (host markup may have changed)")
    for entry in snapshot.degraded:
        ctx.log(f"extract: degraded {entry}")
    return snapshot
