"""Privileged automation against host panels: send, response polling, spawning and host dialogs."""

from __future__ import annotations

import time
from typing import Any, Callable

from cascadehub import constants as C
from cascadehub.context import TakeoverContext
from cascadehub.locator import get_panel_state, panel_count
from cascadehub.models import ResponseResult, SendResult, SpawnResult


_FOCUS_COMPOSE_JS = """
(args) => {
  /* cascadehub:focus-compose */
  const panel = document.querySelectorAll(args.sel.container)[args.index];
  if (!panel) return { found: false };
  const input = panel.querySelector(args.sel.compose);
  if (!input) return { found: true, compose: false };
  panel.click();
  input.scrollIntoView({ block: 'center' });
  input.click();
  input.focus();
  const focused = document.activeElement === input || input.contains(document.activeElement);
  return { found: true, compose: true, focused };
}
"""

_CLICK_SUBMIT_JS = """
(args) => {
  /* cascadehub:click-submit */
  const panel = document.querySelectorAll(args.sel.container)[args.index];
  const buttons = panel ? [...panel.querySelectorAll(args.sel.submit)] : [];
  const btn = buttons.find((b) => !String(b.className || '').includes(args.sel.submitDisabledClass));
  if (!btn) return false;
  btn.click();
  return true;
}
"""

_READ_TRANSCRIPT_JS = """
(args) => {
  /* cascadehub:read-transcript */
  const panel = document.querySelectorAll(args.sel.container)[args.index];
  const area = panel ? panel.querySelector(args.sel.transcript) : null;
  return area ? (area.innerText || '') : '';
}
"""

_TRUST_WORKSPACE_JS = """
(args) => {
  /* cascadehub:trust-workspace */
  for (const btn of document.querySelectorAll(args.sel.trustButton)) {
    const text = btn.innerText || '';
    if (text.includes(args.sel.trustText)) {
      btn.click();
      return { dismissed: true, text };
    }
  }
  return { dismissed: false, noDialog: true };
}
"""

_OPEN_PANEL_JS = """
(args) => {
  /* cascadehub:open-panel */
  const btn = document.querySelector(args.sel.toggle);
  if (!btn) return { opened: false, error: 'Cascade toggle control not found' };
  btn.click();
  return { opened: true };
}
"""


def _args(ctx: TakeoverContext, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"sel": ctx.config.selectors.to_payload()}
    payload.update(extra)
    return payload


def _clear_compose(ctx: TakeoverContext) -> None:
    timings = ctx.config.timings
    modifier = ctx.config.select_all_modifier
    bit = C.MODIFIER_BITS.get(modifier, 0)
    session = ctx.session
    session.dispatch_key({"type": "keyDown", "key": modifier, "modifiers": bit})
    session.press_key("a", code="KeyA", windows_virtual_key_code=65, modifiers=bit)
    session.dispatch_key({"type": "keyUp", "key": modifier})
    ctx.wait(timings.select_settle_ms)
    session.press_key("Backspace", code="Backspace", windows_virtual_key_code=8)
    ctx.wait(timings.clear_settle_ms)


def send(
    ctx: TakeoverContext,
    index: int,
    message: str,
    *,
    clear: bool = True,
    submit: bool = True,
) -> SendResult:
    ctx.require_connected()
    timings = ctx.config.timings

    try:
        focus = ctx.evaluate(_FOCUS_COMPOSE_JS, _args(ctx, index=int(index)))
    except Exception as exc:
        ctx.log(f"send panel={index} focus failed: {exc}")
        return SendResult(sent=False, error=f"Focus failed: {exc}")
    focus = focus if isinstance(focus, dict) else {}
    if not focus.get("found"):
        return SendResult(sent=False, error=f"Panel {index} not found")
    if not focus.get("compose"):
        return SendResult(sent=False, error=f"Compose surface not found in panel {index}")
    if not focus.get("focused"):
        # The host editor often takes focus a tick later; typing still lands.
        ctx.log(f"send panel={index}: focus not verified, continuing")
    ctx.wait(timings.focus_settle_ms)

    if clear:
        _clear_compose(ctx)

    # One char event per character; the host's rich-text editor drops bulk input.
    for char in message:
        ctx.session.dispatch_char(char)
        ctx.wait(timings.char_delay_ms)
    ctx.wait(timings.type_settle_ms)

    state = get_panel_state(ctx, index)
    if not state.found:
        return SendResult(sent=False, error=state.error)
    if submit and state.button_enabled:
        clicked = False
        try:
            clicked = bool(ctx.evaluate(_CLICK_SUBMIT_JS, _args(ctx, index=int(index))))
        except Exception as exc:
            ctx.log(f"send panel={index} submit click failed: {exc}")
        if clicked:
            ctx.log(f"send panel={index} chars={len(message)} submitted")
            return SendResult(sent=True, message=message)
    ctx.log(
        f"send panel={index} not submitted button_enabled={state.button_enabled} "
        f"submit={submit}"
    )
    return SendResult(
        sent=False,
        button_enabled=state.button_enabled,
        input_content=state.input_content,
    )


def read_transcript(ctx: TakeoverContext, index: int) -> str | None:
    try:
        value = ctx.evaluate(_READ_TRANSCRIPT_JS, _args(ctx, index=int(index)))
    except Exception as exc:
        ctx.log(f"read_transcript panel={index} failed: {exc}")
        return None
    return str(value or "")


def get_response(
    ctx: TakeoverContext,
    index: int,
    timeout_ms: int | None = None,
    *,
    clock: Callable[[], float] = time.monotonic,
) -> ResponseResult:
    """Poll a panel's transcript until it stops changing.

    The text is stable once it has been non-empty and unchanged for the quiet
    duration. A change seen between two reads is dated to their midpoint, and
    the wait before the final read shrinks to what is left of the quiet
    window, so stability is reported about one quiet duration after the text
    really stopped changing. Exceeding ``timeout_ms`` returns the last text
    read with ``timeout=True``.
    """
    ctx.require_connected()
    timings = ctx.config.timings
    timeout = timings.response_timeout_ms if timeout_ms is None else max(0, int(timeout_ms))
    quiet = timings.quiet_ms
    poll = max(1, timings.poll_interval_ms)

    start = clock()
    last_text = ""
    last_change = start
    previous_read = start
    seen = False
    while True:
        text = read_transcript(ctx, index)
        now = clock()
        if text is not None and (not seen or text != last_text):
            last_change = (previous_read + now) / 2 if seen else now
            seen = True
            last_text = text
        previous_read = now
        elapsed = int(round((now - start) * 1000))
        since_change = int(round((now - last_change) * 1000))
        if last_text and since_change >= quiet:
            return ResponseResult(response=last_text, stable=True, elapsed_ms=elapsed)
        remaining = timeout - elapsed
        if remaining <= 0:
            break
        step = min(poll, quiet - since_change) if last_text else poll
        ctx.wait(max(1, min(step, remaining)))

    ctx.log(f"response panel={index} timed out after {elapsed}ms chars={len(last_text)}")
    return ResponseResult(response=last_text, timeout=True, elapsed_ms=elapsed)


def spawn_panel(ctx: TakeoverContext) -> SpawnResult:
    """Open a new panel through the command palette.

    The panel shortcut is not delivered over the remote input channel, so
    the palette is driven instead: Escape, F1, the command text, Enter.
    """
    ctx.require_connected()
    timings = ctx.config.timings
    session = ctx.session
    before = panel_count(ctx)

    session.press_key("Escape", code="Escape")
    ctx.wait(timings.escape_settle_ms)
    session.press_key("F1", code="F1", windows_virtual_key_code=112)
    ctx.wait(timings.palette_settle_ms)
    session.insert_text(ctx.config.spawn_command)
    ctx.wait(timings.command_settle_ms)
    session.press_key("Enter", code="Enter", windows_virtual_key_code=13)
    ctx.wait(timings.spawn_settle_ms)

    after = panel_count(ctx)
    # The host inserts new panels first in document order.
    result = SpawnResult(spawned=after > before, before_count=before, after_count=after, new_index=0)
    ctx.log(f"spawn spawned={result.spawned} before={before} after={after}")
    return result


def trust_workspace(ctx: TakeoverContext) -> dict[str, Any]:
    ctx.require_connected()
    try:
        result = ctx.evaluate(_TRUST_WORKSPACE_JS, _args(ctx))
    except Exception as exc:
        return {"dismissed": False, "error": str(exc)}
    result = result if isinstance(result, dict) else {"dismissed": False, "noDialog": True}
    if result.get("dismissed"):
        ctx.log("trust dialog dismissed")
        ctx.wait(ctx.config.timings.trust_settle_ms)
    return result


def open_panel(ctx: TakeoverContext) -> dict[str, Any]:
    ctx.require_connected()
    try:
        result = ctx.evaluate(_OPEN_PANEL_JS, _args(ctx))
    except Exception as exc:
        result = {"opened": False, "error": str(exc)}
    result = result if isinstance(result, dict) else {"opened": False, "error": "no result"}
    ctx.wait(ctx.config.timings.open_settle_ms)
    return result
