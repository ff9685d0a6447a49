"""Panel locator: read-only queries for conversation panels in the host document."""

from __future__ import annotations

from typing import Any

from cascadehub.context import TakeoverContext
from cascadehub.models import Panel, PanelStateResult


# Surrogate keys live in a WeakMap on window so stamping them leaves the
# host markup untouched.
KEY_HELPER_JS = """
  const keyOf = (el) => {
    const keys = window.__cascadehubKeys || (window.__cascadehubKeys = new WeakMap());
    let key = keys.get(el);
    if (!key) {
      window.__cascadehubKeySeq = (window.__cascadehubKeySeq || 0) + 1;
      key = 'panel-' + window.__cascadehubKeySeq;
      keys.set(el, key);
    }
    return key;
  };
  const submitDisabled = (btn, sel) =>
    !btn || String(btn.className || '').includes(sel.submitDisabledClass);
"""

_LIST_PANELS_JS = (
    """
(args) => {
  /* cascadehub:list-panels */
  const sel = args.sel;
"""
    + KEY_HELPER_JS
    + """
  return [...document.querySelectorAll(sel.container)].map((panel) => {
    const rect = panel.getBoundingClientRect();
    const input = panel.querySelector(sel.compose);
    return {
      key: keyOf(panel),
      visible: rect.width > 0 && rect.height > 0,
      inputText: input ? (input.innerText || input.value || '') : '',
      submitDisabled: submitDisabled(panel.querySelector(sel.submit), sel),
    };
  });
}
"""
)

_PANEL_STATE_JS = (
    """
(args) => {
  /* cascadehub:panel-state */
  const sel = args.sel;
"""
    + KEY_HELPER_JS
    + """
  const panels = document.querySelectorAll(sel.container);
  const panel = args.index >= 0 ? panels[args.index] : null;
  if (!panel) return { total: panels.length, panel: null };
  const rect = panel.getBoundingClientRect();
  const input = panel.querySelector(sel.compose);
  return {
    total: panels.length,
    panel: {
      key: keyOf(panel),
      visible: rect.width > 0 && rect.height > 0,
      inputText: input ? (input.innerText || input.value || '') : '',
      submitDisabled: submitDisabled(panel.querySelector(sel.submit), sel),
    },
  };
}
"""
)

_PANEL_COUNT_JS = """
(args) => {
  /* cascadehub:panel-count */
  return document.querySelectorAll(args.sel.container).length;
}
"""


def _selector_args(ctx: TakeoverContext, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"sel": ctx.config.selectors.to_payload()}
    payload.update(extra)
    return payload


def _panel_from_raw(index: int, raw: dict[str, Any], preview_chars: int | None = None) -> Panel:
    text = str(raw.get("inputText") or "")
    if preview_chars is not None:
        text = text[:preview_chars]
    return Panel(
        index=index,
        key=str(raw.get("key") or ""),
        visible=bool(raw.get("visible")),
        input_content=text,
        button_enabled=not bool(raw.get("submitDisabled", True)),
    )


def list_panels(ctx: TakeoverContext) -> list[Panel]:
    ctx.require_connected()
    try:
        raw = ctx.evaluate(_LIST_PANELS_JS, _selector_args(ctx))
    except Exception as exc:
        ctx.log(f"list_panels failed: {exc}")
        return []
    if not isinstance(raw, list):
        return []
    # Index is reassigned from document order on every call.
    return [
        _panel_from_raw(i, item, ctx.config.input_preview_chars)
        for i, item in enumerate(raw)
        if isinstance(item, dict)
    ]


def get_panel_state(ctx: TakeoverContext, index: int) -> PanelStateResult:
    ctx.require_connected()
    try:
        raw = ctx.evaluate(_PANEL_STATE_JS, _selector_args(ctx, index=int(index)))
    except Exception as exc:
        return PanelStateResult(index=index, total_panels=0, error=f"Panel state query failed: {exc}")
    raw = raw if isinstance(raw, dict) else {}
    total = int(raw.get("total") or 0)
    found = raw.get("panel")
    if not isinstance(found, dict):
        return PanelStateResult(index=index, total_panels=total, error=f"Panel {index} not found")
    panel = _panel_from_raw(index, found)
    return PanelStateResult(
        index=index,
        total_panels=total,
        key=panel.key,
        visible=panel.visible,
        input_content=panel.input_content,
        button_enabled=panel.button_enabled,
    )


def panel_count(ctx: TakeoverContext) -> int:
    ctx.require_connected()
    try:
        return int(ctx.evaluate(_PANEL_COUNT_JS, _selector_args(ctx)) or 0)
    except Exception as exc:
        ctx.log(f"panel_count failed: {exc}")
        return 0


def resolve_index(ctx: TakeoverContext, key: str) -> int | None:
    if not key:
        return None
    for panel in list_panels(ctx):
        if panel.key == key:
            return panel.index
    return None
