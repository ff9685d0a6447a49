"""Replacement UI builder: the takeover interface as an in-memory node tree.

The tree is plain data. It is rendered into the host document by
``cascadehub.overlay`` using createElement and textContent only, so text
captured from the host can never be re-parsed as markup. Controls carry an
``action`` description instead of callbacks; the only actions that leave the
tree are the bridge signals.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

from cascadehub import constants as C
from cascadehub.models import Conversation, ExtractionSnapshot


ACCENT = "#00d4ff"
PANEL_HEIGHT = "400px"
PANEL_EXPANDED_HEIGHT = "600px"

STYLE_SHEET = f"""
#{C.ROOT_ID} * {{ box-sizing: border-box; }}
#{C.ROOT_ID} ::-webkit-scrollbar {{ width: 8px; height: 8px; }}
#{C.ROOT_ID} ::-webkit-scrollbar-track {{ background: rgba(0,0,0,0.2); }}
#{C.ROOT_ID} ::-webkit-scrollbar-thumb {{ background: rgba(0,212,255,0.3); border-radius: 4px; }}
#{C.ROOT_ID} ::-webkit-scrollbar-thumb:hover {{ background: rgba(0,212,255,0.5); }}
#{C.ROOT_ID} button:hover {{ opacity: 0.9; }}
#{C.ROOT_ID} .agent-slot:hover {{ border-color: {ACCENT}; }}
.{C.COMPOSE_CLASS}:empty:before {{ content: 'Type a message...'; color: #666; }}
.{C.COMPOSE_CLASS}:focus {{ border-color: {ACCENT}; background: rgba(0,212,255,0.05); }}
"""

_BUTTON_VARIANTS = {
    "default": {"background": "rgba(255,255,255,0.1)", "color": "#e0e0e0"},
    "primary": {"background": ACCENT, "color": "#1a1a2e"},
    "danger": {"background": "rgba(255,80,80,0.2)", "color": "#ff5050"},
    "small": {
        "background": "rgba(255,255,255,0.05)",
        "color": "#888",
        "padding": "4px 8px",
        "font-size": "11px",
    },
}


@dataclass
class UINode:
    tag: str
    id: str = ""
    classes: tuple[str, ...] = ()
    style: dict[str, str] = field(default_factory=dict)
    text: str = ""
    attrs: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)
    action: dict[str, Any] | None = None
    editable: bool = False
    children: list["UINode"] = field(default_factory=list)

    def append(self, child: "UINode") -> "UINode":
        self.children.append(child)
        return child

    def iter(self) -> Iterator["UINode"]:
        yield self
        for child in self.children:
            yield from child.iter()

    def find(self, node_id: str) -> "UINode | None":
        for node in self.iter():
            if node.id == node_id:
                return node
        return None

    def find_all(self, predicate: Callable[["UINode"], bool]) -> list["UINode"]:
        return [node for node in self.iter() if predicate(node)]

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"tag": self.tag}
        if self.id:
            payload["id"] = self.id
        if self.classes:
            payload["classes"] = list(self.classes)
        if self.style:
            payload["style"] = dict(self.style)
        if self.text:
            payload["text"] = self.text
        attrs = {k: v for k, v in self.attrs.items() if not k.lower().startswith("on")}
        if attrs:
            payload["attrs"] = attrs
        if self.data:
            payload["data"] = dict(self.data)
        if self.action:
            payload["action"] = dict(self.action)
        if self.editable:
            payload["editable"] = True
        if self.children:
            payload["children"] = [child.to_payload() for child in self.children]
        return payload


@dataclass
class SubPanel:
    key: str
    ordinal: int
    node: UINode
    conversation_area: UINode
    compose: UINode
    submit: UINode


@dataclass
class ReplacementUI:
    root: UINode
    toolbar: UINode
    badge: UINode
    status_strip: UINode
    panels_container: UINode
    sub_panels: list[SubPanel] = field(default_factory=list)

    @property
    def panel_count(self) -> int:
        return len(self.sub_panels)

    @property
    def keys(self) -> list[str]:
        return [sub.key for sub in self.sub_panels if sub.key]

    def next_sub_panel(self, conversation: Conversation) -> SubPanel:
        """Build the sub-panel that would come next without adding it to the tree."""
        return build_sub_panel(conversation, self.panel_count)

    def commit_sub_panel(self, sub: SubPanel) -> None:
        placeholder = self.panels_container.find(C.PLACEHOLDER_ID)
        if placeholder is not None:
            self.panels_container.children.remove(placeholder)
        self.panels_container.append(sub.node)
        self.sub_panels.append(sub)
        self.badge.text = str(self.panel_count)

    def add_sub_panel(self, conversation: Conversation) -> SubPanel:
        sub = self.next_sub_panel(conversation)
        self.commit_sub_panel(sub)
        return sub

    def to_payload(self) -> dict[str, Any]:
        return self.root.to_payload()


def _button(
    label: str,
    action: dict[str, Any],
    variant: str = "default",
    classes: tuple[str, ...] = (),
) -> UINode:
    style = {
        "border": "none",
        "border-radius": "6px",
        "padding": "8px 16px",
        "font-size": "12px",
        "font-weight": "600",
        "cursor": "pointer",
        "outline": "none",
    }
    style.update(_BUTTON_VARIANTS.get(variant, _BUTTON_VARIANTS["default"]))
    return UINode("button", classes=classes, style=style, text=label, action=action)


def _toolbar(count: int) -> tuple[UINode, UINode]:
    toolbar = UINode(
        "div",
        id=C.TOOLBAR_ID,
        style={
            "height": "56px",
            "background": "rgba(0,0,0,0.3)",
            "border-bottom": "1px solid rgba(255,255,255,0.1)",
            "display": "flex",
            "align-items": "center",
            "padding": "0 16px",
            "gap": "12px",
            "flex-shrink": "0",
        },
    )
    toolbar.append(
        UINode(
            "div",
            text=C.TITLE_TEXT,
            style={"font-size": "18px", "font-weight": "600", "color": ACCENT, "flex": "1"},
        )
    )
    badge = toolbar.append(
        UINode(
            "div",
            id=C.BADGE_ID,
            text=str(count),
            style={
                "background": ACCENT,
                "color": "#1a1a2e",
                "padding": "4px 10px",
                "border-radius": "12px",
                "font-size": "12px",
                "font-weight": "700",
            },
        )
    )
    toolbar.append(_button("+ New", {"kind": "signal", "signal": C.SIGNAL_SPAWN_PANEL}))
    toolbar.append(_button("✕", {"kind": "restore"}, "danger"))
    return toolbar, badge


def _status_strip(roster: tuple[tuple[str, str, str], ...]) -> UINode:
    strip = UINode(
        "div",
        id=C.STATUS_STRIP_ID,
        style={
            "background": "rgba(0,0,0,0.3)",
            "border-bottom": "1px solid rgba(255,255,255,0.1)",
            "padding": "16px",
            "flex-shrink": "0",
        },
    )
    strip.append(
        UINode(
            "div",
            text="⚡ Agent Hub",
            style={"font-size": "14px", "font-weight": "600", "margin-bottom": "12px", "color": ACCENT},
        )
    )
    grid = strip.append(
        UINode(
            "div",
            style={"display": "grid", "grid-template-columns": "repeat(3, 1fr)", "gap": "8px"},
        )
    )
    for name, glyph, status in roster:
        active = status == "active"
        slot = grid.append(
            UINode(
                "div",
                classes=("agent-slot",),
                data={"agent": name, "status": status},
                action={"kind": "agent", "agent": name},
                style={
                    "background": "rgba(0,212,255,0.2)" if active else "rgba(255,255,255,0.05)",
                    "border": f"1px solid {ACCENT if active else 'rgba(255,255,255,0.1)'}",
                    "border-radius": "8px",
                    "padding": "8px",
                    "text-align": "center",
                    "cursor": "pointer",
                },
            )
        )
        slot.append(UINode("div", text=glyph, style={"font-size": "20px", "margin-bottom": "4px"}))
        slot.append(
            UINode(
                "div",
                text=name,
                style={"font-size": "11px", "font-weight": "500", "color": ACCENT if active else "#888"},
            )
        )
    return strip


def _message_block(role: str, text: str) -> UINode:
    user = role == "user"
    return UINode(
        "div",
        classes=(C.MESSAGE_CLASS, f"{C.MESSAGE_CLASS}--{role}"),
        data={"role": role},
        text=text,
        style={
            "margin-bottom": "16px",
            "padding": "10px 12px",
            "border-radius": "8px",
            "white-space": "pre-wrap",
            "background": "rgba(0,212,255,0.1)" if user else "rgba(255,255,255,0.05)",
            "border-left": f"3px solid {ACCENT if user else '#888'}",
        },
    )


def build_sub_panel(conversation: Conversation, ordinal: int) -> SubPanel:
    node = UINode(
        "div",
        classes=(C.SUB_PANEL_CLASS,),
        data={"index": str(ordinal), "panelKey": conversation.key},
        style={
            "background": "rgba(0,0,0,0.2)",
            "display": "flex",
            "flex-direction": "column",
            "height": PANEL_HEIGHT,
            "flex-shrink": "0",
        },
    )
    header = node.append(
        UINode(
            "div",
            style={
                "padding": "8px 12px",
                "background": "rgba(0,0,0,0.3)",
                "border-bottom": "1px solid rgba(255,255,255,0.1)",
                "display": "flex",
                "align-items": "center",
                "gap": "8px",
                "flex-shrink": "0",
            },
        )
    )
    header.append(
        UINode(
            "div",
            text=f"Panel {ordinal}",
            style={"flex": "1", "font-size": "12px", "font-weight": "600", "color": "#888"},
        )
    )
    header.append(
        _button(
            "↕",
            {"kind": "expand", "collapsed": PANEL_HEIGHT, "expanded": PANEL_EXPANDED_HEIGHT},
            "small",
        )
    )

    area = node.append(
        UINode(
            "div",
            classes=("conversation-area",),
            style={
                "flex": "1",
                "overflow-y": "auto",
                "padding": "12px",
                "font-size": "13px",
                "line-height": "1.6",
            },
        )
    )
    if conversation.messages:
        for message in conversation.messages:
            area.append(_message_block(message.role, message.text))
    else:
        area.append(
            UINode(
                "div",
                text="No messages yet. Start a conversation below.",
                style={
                    "padding": "20px",
                    "text-align": "center",
                    "color": "#666",
                    "font-size": "13px",
                    "font-style": "italic",
                },
            )
        )

    row = node.append(
        UINode(
            "div",
            style={
                "padding": "12px",
                "background": "rgba(0,0,0,0.3)",
                "border-top": "1px solid rgba(255,255,255,0.1)",
                "display": "flex",
                "gap": "8px",
                "flex-shrink": "0",
            },
        )
    )
    compose = row.append(
        UINode(
            "div",
            classes=(C.COMPOSE_CLASS,),
            editable=True,
            text=conversation.input_content,
            data={"panelIndex": str(ordinal)},
            style={
                "flex": "1",
                "min-height": "40px",
                "max-height": "120px",
                "overflow-y": "auto",
                "padding": "10px 12px",
                "background": "rgba(255,255,255,0.05)",
                "border": "1px solid rgba(255,255,255,0.1)",
                "border-radius": "8px",
                "color": "#e0e0e0",
                "outline": "none",
                "font-size": "13px",
                "line-height": "1.5",
            },
        )
    )
    submit = row.append(
        _button(
            "Send",
            {"kind": "send", "panelIndex": ordinal, "panelKey": conversation.key},
            "primary",
            classes=(C.SUBMIT_CLASS,),
        )
    )
    submit.data["panelIndex"] = str(ordinal)
    return SubPanel(
        key=conversation.key,
        ordinal=ordinal,
        node=node,
        conversation_area=area,
        compose=compose,
        submit=submit,
    )


def create_ui(
    snapshot: ExtractionSnapshot,
    roster: tuple[tuple[str, str, str], ...] = C.AGENT_ROSTER,
) -> ReplacementUI:
    root = UINode(
        "div",
        id=C.ROOT_ID,
        style={
            "position": "fixed",
            "top": "0",
            "right": "0",
            "width": "450px",
            "height": "100vh",
            "background": "linear-gradient(135deg, #1a1a2e 0%, #16213e 100%)",
            "z-index": "999999",
            "display": "flex",
            "flex-direction": "column",
            "font-family": "-apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif",
            "color": "#e0e0e0",
            "box-shadow": "-4px 0 24px rgba(0,0,0,0.5)",
        },
    )
    toolbar, badge = _toolbar(len(snapshot.conversations))
    root.append(toolbar)
    strip = root.append(_status_strip(roster))
    container = root.append(
        UINode(
            "div",
            id=C.PANELS_CONTAINER_ID,
            style={
                "flex": "1",
                "overflow-y": "auto",
                "display": "flex",
                "flex-direction": "column",
                "gap": "1px",
                "background": "rgba(0,0,0,0.2)",
            },
        )
    )
    ui = ReplacementUI(
        root=root,
        toolbar=toolbar,
        badge=badge,
        status_strip=strip,
        panels_container=container,
    )
    if not snapshot.conversations:
        container.append(
            UINode(
                "div",
                id=C.PLACEHOLDER_ID,
                text='No Cascade panels found. Click "+ New" to create one.',
                style={"padding": "32px", "text-align": "center", "color": "#666", "font-size": "14px"},
            )
        )
        return ui
    for conversation in snapshot.conversations:
        ui.add_sub_panel(conversation)
    return ui
