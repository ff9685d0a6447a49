"""Dynamic panel watcher: folds panels the host creates after mount into the replacement UI."""

from __future__ import annotations

import itertools
from typing import Any, Callable, Iterable

from cascadehub import constants as C
from cascadehub import overlay
from cascadehub.context import TakeoverContext
from cascadehub.extraction import PANEL_RECORD_JS, parse_conversation
from cascadehub.ui_builder import ReplacementUI


_INSTALL_WATCHER_JS = (
    """
(args) => {
  /* cascadehub:install-watcher */
  const sel = args.sel;
"""
    + PANEL_RECORD_JS
    + overlay.HIDE_HELPER_JS
    + """
  if (window.__cascadehubObserver) window.__cascadehubObserver.disconnect();
  const seen = new Set(args.known || []);
  const insideRoot = (node) => {
    const root = document.getElementById(args.rootId);
    return !!root && root.contains(node);
  };
  const collect = (node, selector) => {
    const found = node.matches(selector) ? [node] : [];
    return found.concat([...node.querySelectorAll(selector)]);
  };
  const handle = (panel) => {
    const key = keyOf(panel);
    if (seen.has(key)) return;
    seen.add(key);
    setTimeout(() => {
      const fn = window[args.binding];
      if (typeof fn !== 'function' || !panel.isConnected) return;
      const all = [...document.querySelectorAll(sel.container)];
      const index = all.indexOf(panel);
      if (index < 0) return;
      // Keys Python did not take are forgotten so the next mutation retries them.
      Promise.resolve(fn({ generation: args.generation, record: recordOf(panel, index, sel) }))
        .then((taken) => { if (!taken) seen.delete(key); })
        .catch(() => seen.delete(key));
    }, args.deferMs);
  };
  const observer = new MutationObserver((mutations) => {
    mutations.forEach((mutation) => {
      mutation.addedNodes.forEach((node) => {
        if (node.nodeType !== 1 || insideRoot(node)) return;
        collect(node, sel.container).forEach(handle);
        collect(node, sel.tab).forEach((tab) => {
          if ((tab.innerText || '').includes(sel.tabLabel)) hideElement(tab);
        });
      });
    });
  });
  observer.observe(document.body, { childList: true, subtree: true });
  window.__cascadehubObserver = observer;
  return { installed: true, generation: args.generation };
}
"""
)

_DISCONNECT_WATCHER_JS = """
(args) => {
  /* cascadehub:disconnect-watcher */
  if (!window.__cascadehubObserver) return false;
  window.__cascadehubObserver.disconnect();
  window.__cascadehubObserver = null;
  return true;
}
"""

_generations = itertools.count(1)


def disconnect_observer(ctx: TakeoverContext) -> bool:
    return bool(ctx.evaluate(_DISCONNECT_WATCHER_JS, {}))


def _panel_added_binding(ctx: TakeoverContext) -> Callable[..., Any]:
    def callback(source: Any, payload: Any = None) -> bool:
        return ctx.route_panel_added(payload)

    return callback


class DynamicPanelWatcher:
    def __init__(self, ctx: TakeoverContext, ui: ReplacementUI, known_keys: Iterable[str] = ()) -> None:
        self.ctx = ctx
        self.ui = ui
        # Dedupe is by surrogate key; positional indices shift on every spawn.
        self.processed: set[str] = {key for key in known_keys if key}
        self.generation = next(_generations)
        self.active = False
        self.added = 0

    def install(self) -> None:
        self.ctx.session.expose_binding(C.WATCHER_BINDING, _panel_added_binding(self.ctx))
        self.ctx.active_watcher = self
        self.ctx.evaluate(
            _INSTALL_WATCHER_JS,
            {
                "sel": self.ctx.config.selectors.to_payload(),
                "rootId": C.ROOT_ID,
                "binding": C.WATCHER_BINDING,
                "generation": self.generation,
                "known": sorted(self.processed),
                "deferMs": self.ctx.config.timings.watcher_defer_ms,
            },
        )
        self.active = True
        self.ctx.log(f"watcher installed generation={self.generation} known={len(self.processed)}")

    def handle_observed(self, payload: Any) -> bool:
        """Fold one observed panel into the UI; True only when it was added.

        The in-memory tree and ``processed`` change only after the document
        append succeeded, so a failed append leaves the key open for retry.
        """
        if not self.active or not isinstance(payload, dict):
            return False
        if payload.get("generation") != self.generation:
            self.ctx.log(f"watcher: dropped event from stale generation {payload.get('generation')!r}")
            return False
        record = payload.get("record")
        if not isinstance(record, dict):
            return False
        key = str(record.get("key") or "")
        if not key or key in self.processed:
            return False

        sub = self.ui.next_sub_panel(parse_conversation(record))
        try:
            result = overlay.append_sub_panel(self.ctx, sub, self.ui.panel_count + 1)
        except Exception as exc:
            self.ctx.log(f"watcher: append of {key} failed: {exc}")
            return False
        if not result.get("appended"):
            self.ctx.log(f"watcher: append of {key} skipped, panels container missing")
            return False
        self.ui.commit_sub_panel(sub)
        self.processed.add(key)
        self.added += 1
        self.ctx.log(
            f"watcher: added panel key={key} ordinal={sub.ordinal} "
            f"hidden={bool(result.get('hidden'))} total={self.ui.panel_count}"
        )
        return True

    def disconnect(self) -> bool:
        was_active = self.active
        self.active = False
        if self.ctx.active_watcher is self:
            self.ctx.active_watcher = None
        if not was_active:
            return False
        try:
            disconnect_observer(self.ctx)
        except Exception as exc:
            self.ctx.log(f"watcher disconnect failed: {exc}")
            return False
        self.ctx.log(f"watcher disconnected generation={self.generation} added={self.added}")
        return True
