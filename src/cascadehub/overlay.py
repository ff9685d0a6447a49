"""Document-side rendering of the replacement tree and reversible hiding of host chrome."""

from __future__ import annotations

from typing import Any

from cascadehub import constants as C
from cascadehub.context import TakeoverContext
from cascadehub.locator import KEY_HELPER_JS
from cascadehub.ui_builder import STYLE_SHEET, ReplacementUI, SubPanel


# Hidden elements are remembered with their previous inline display so
# restore puts back exactly what was there.
HIDE_HELPER_JS = """
  const hiddenList = window.__cascadehubHidden || (window.__cascadehubHidden = []);
  const hideElement = (el) => {
    if (!el || el.style.display === 'none') return false;
    hiddenList.push({ el, prev: el.style.display });
    el.style.display = 'none';
    return true;
  };
  const restoreHidden = () => {
    const list = window.__cascadehubHidden || [];
    let restored = 0;
    list.forEach((item) => {
      if (item.el && item.el.style.display === 'none') {
        item.el.style.display = item.prev;
        restored += 1;
      }
    });
    window.__cascadehubHidden = [];
    return restored;
  };
"""

# Builds DOM from the payload produced by UINode.to_payload. Text goes through
# textContent only and inline on* attributes are dropped.
_BUILD_HELPER_JS = """
  const prefix = args.eventPrefix;
  const emit = (name, detail) =>
    window.dispatchEvent(new CustomEvent(prefix + name, { detail: detail || {} }));
  const bindAction = (el, action) => {
    if (action.kind === 'signal') {
      el.addEventListener('click', () => emit(action.signal, action.detail));
    } else if (action.kind === 'restore') {
      el.addEventListener('click', () => window.__cascadehubTeardown && window.__cascadehubTeardown());
    } else if (action.kind === 'expand') {
      el.addEventListener('click', () => {
        const panel = el.closest('.' + args.subPanelClass);
        if (!panel) return;
        panel.style.height = panel.style.height === action.collapsed ? action.expanded : action.collapsed;
      });
    } else if (action.kind === 'agent') {
      el.addEventListener('click', () => {
        el.dataset.status = el.dataset.status === 'active' ? 'idle' : 'active';
        emit(args.signals.agentToggle, { agent: action.agent });
      });
    } else if (action.kind === 'send') {
      el.addEventListener('click', () => {
        const panel = el.closest('.' + args.subPanelClass);
        const input = panel && panel.querySelector('.' + args.composeClass);
        const message = input ? input.innerText.trim() : '';
        if (!message) return;
        emit(args.signals.send, {
          panelIndex: Number(action.panelIndex),
          panelKey: action.panelKey || '',
          message,
        });
        input.textContent = '';
      });
    }
  };
  const build = (spec) => {
    const el = document.createElement(spec.tag);
    if (spec.id) el.id = spec.id;
    (spec.classes || []).forEach((c) => el.classList.add(c));
    Object.entries(spec.style || {}).forEach(([k, v]) => el.style.setProperty(k, v));
    Object.entries(spec.attrs || {}).forEach(([k, v]) => {
      if (!/^on/i.test(k)) el.setAttribute(k, v);
    });
    Object.entries(spec.data || {}).forEach(([k, v]) => { el.dataset[k] = v; });
    if (spec.editable) el.contentEditable = 'true';
    if (spec.text) el.textContent = spec.text;
    if (spec.action) bindAction(el, spec.action);
    (spec.children || []).forEach((child) => el.appendChild(build(child)));
    return el;
  };
"""

_TEARDOWN_HELPER_JS = """
  const teardown = () => {
    if (window.__cascadehubObserver) {
      window.__cascadehubObserver.disconnect();
      window.__cascadehubObserver = null;
    }
    const restored = restoreHidden();
    let removed = 0;
    document.querySelectorAll('#' + args.rootId).forEach((el) => { el.remove(); removed += 1; });
    const style = document.getElementById(args.styleId);
    if (style) style.remove();
    return { restored, removed };
  };
"""

_RENDER_ROOT_JS = (
    """
(args) => {
  /* cascadehub:render-root */
"""
    + HIDE_HELPER_JS
    + _BUILD_HELPER_JS
    + _TEARDOWN_HELPER_JS
    + """
  let replaced = 0;
  document.querySelectorAll('#' + args.rootId).forEach((el) => { el.remove(); replaced += 1; });
  if (!document.getElementById(args.styleId)) {
    const style = document.createElement('style');
    style.id = args.styleId;
    style.textContent = args.styleSheet;
    (document.head || document.documentElement).appendChild(style);
  }
  const root = build(args.spec);
  document.body.appendChild(root);
  window.__cascadehubBuild = build;
  window.__cascadehubTeardown = teardown;
  setTimeout(() => window.dispatchEvent(new Event('resize')), args.layoutRefreshMs);
  return { mounted: !!document.getElementById(args.rootId), replaced };
}
"""
)

_REMOVE_ROOT_JS = """
(args) => {
  /* cascadehub:remove-root */
  let removed = 0;
  document.querySelectorAll('#' + args.rootId).forEach((el) => { el.remove(); removed += 1; });
  const style = document.getElementById(args.styleId);
  if (style) style.remove();
  return removed;
}
"""

_ROOT_PRESENT_JS = """
(args) => {
  /* cascadehub:root-present */
  return !!document.getElementById(args.rootId);
}
"""

_HIDE_ORIGINALS_JS = (
    """
(args) => {
  /* cascadehub:hide-originals */
  const sel = args.sel;
"""
    + KEY_HELPER_JS
    + HIDE_HELPER_JS
    + """
  let hidden = 0;
  const keys = [];
  document.querySelectorAll(sel.container).forEach((panel) => {
    keys.push(keyOf(panel));
    if (hideElement(panel)) hidden += 1;
  });
  if (hideElement(document.getElementById(sel.auxBarId))) hidden += 1;
  document.querySelectorAll(sel.tab).forEach((tab) => {
    if ((tab.innerText || '').includes(sel.tabLabel) && hideElement(tab)) hidden += 1;
  });
  return { hidden, keys };
}
"""
)

_RESTORE_ORIGINALS_JS = (
    """
(args) => {
  /* cascadehub:restore-originals */
"""
    + HIDE_HELPER_JS
    + """
  return restoreHidden();
}
"""
)

_APPEND_SUB_PANEL_JS = (
    """
(args) => {
  /* cascadehub:append-sub-panel */
  const sel = args.sel;
"""
    + KEY_HELPER_JS
    + HIDE_HELPER_JS
    + """
  const container = document.getElementById(args.containerId);
  if (!container || typeof window.__cascadehubBuild !== 'function') {
    return { appended: false, hidden: false };
  }
  const placeholder = document.getElementById(args.placeholderId);
  if (placeholder) placeholder.remove();
  container.appendChild(window.__cascadehubBuild(args.spec));
  const badge = document.getElementById(args.badgeId);
  if (badge) badge.textContent = String(args.count);
  let hidden = false;
  document.querySelectorAll(sel.container).forEach((panel) => {
    if (keyOf(panel) === args.key) hidden = hideElement(panel) || hidden;
  });
  return { appended: true, hidden };
}
"""
)


def _tree_args(ctx: TakeoverContext, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "rootId": C.ROOT_ID,
        "styleId": C.STYLE_ID,
        "containerId": C.PANELS_CONTAINER_ID,
        "badgeId": C.BADGE_ID,
        "placeholderId": C.PLACEHOLDER_ID,
        "subPanelClass": C.SUB_PANEL_CLASS,
        "composeClass": C.COMPOSE_CLASS,
        "eventPrefix": C.SIGNAL_EVENT_PREFIX,
        "signals": {"send": C.SIGNAL_SEND, "agentToggle": C.SIGNAL_AGENT_TOGGLE},
        "sel": ctx.config.selectors.to_payload(),
    }
    payload.update(extra)
    return payload


def render_root(ctx: TakeoverContext, ui: ReplacementUI) -> dict[str, Any]:
    result = ctx.evaluate(
        _RENDER_ROOT_JS,
        _tree_args(
            ctx,
            spec=ui.to_payload(),
            styleSheet=STYLE_SHEET,
            layoutRefreshMs=ctx.config.timings.layout_refresh_ms,
        ),
    )
    result = result if isinstance(result, dict) else {}
    if not result.get("mounted"):
        raise RuntimeError("Replacement root was not inserted into the document")
    return result


def remove_root(ctx: TakeoverContext) -> int:
    return int(ctx.evaluate(_REMOVE_ROOT_JS, _tree_args(ctx)) or 0)


def root_present(ctx: TakeoverContext) -> bool:
    try:
        return bool(ctx.evaluate(_ROOT_PRESENT_JS, _tree_args(ctx)))
    except Exception:
        return False


def hide_originals(ctx: TakeoverContext) -> int:
    result = ctx.evaluate(_HIDE_ORIGINALS_JS, _tree_args(ctx))
    result = result if isinstance(result, dict) else {}
    return int(result.get("hidden") or 0)


def restore_originals(ctx: TakeoverContext) -> int:
    return int(ctx.evaluate(_RESTORE_ORIGINALS_JS, _tree_args(ctx)) or 0)


def append_sub_panel(ctx: TakeoverContext, sub: SubPanel, count: int) -> dict[str, Any]:
    result = ctx.evaluate(
        _APPEND_SUB_PANEL_JS,
        _tree_args(ctx, spec=sub.node.to_payload(), key=sub.key, count=count),
    )
    return result if isinstance(result, dict) else {"appended": False, "hidden": False}
