"""Shared constants: host selectors, replacement-tree ids, signals and timings."""

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9333

# Host markup contract. If the host changes its markup these stop matching and
# queries come back empty rather than failing.
CONTAINER_SELECTOR = ".chat-client-root"
COMPOSE_SELECTOR = '[contenteditable="true"]'
SUBMIT_SELECTOR = "button.rounded-full"
SUBMIT_DISABLED_CLASS = "cursor-not-allowed"
TRANSCRIPT_SELECTOR = ".cascade-scrollbar"
MESSAGE_SELECTORS = (
    '[class*="message"]',
    '[class*="Message"]',
    ".prose",
    '[class*="markdown"]',
)
TOGGLE_SELECTOR = '[aria-label="Cascade (⌘L)"]'
COMMAND_ENTRY_SELECTOR = ".quick-input-widget"
EDITOR_SELECTOR = ".monaco-editor"
AUX_BAR_ID = "workbench.parts.auxiliarybar"
TAB_SELECTOR = '.tab, [role="tab"]'
TAB_LABEL = "Cascade"
TRUST_BUTTON_SELECTOR = ".dialog-buttons button, .monaco-dialog-box button, button"
TRUST_BUTTON_TEXT = "Yes, I trust"
SPAWN_COMMAND_TEXT = "Cascade in new tab"
GLOBAL_NAME_HINTS = ("cascade", "chat", "ai")

COMPOSE_EVENTS = ("input", "keydown", "keyup", "focus", "blur")
SUBMIT_EVENTS = ("click", "mousedown")

SHORTCUTS = {
    "cascade": {"toggle": "⌘L", "newTab": "⌘⇧I"},
    "general": {"commandPalette": "F1", "quickOpen": "⌘P"},
}

# Replacement tree.
ROOT_ID = "cascade-hub-ui"
STYLE_ID = "cascade-hub-styles"
TOOLBAR_ID = "cascade-hub-toolbar"
STATUS_STRIP_ID = "cascade-hub-agents"
PANELS_CONTAINER_ID = "cascade-hub-panels"
BADGE_ID = "cascade-hub-panel-count"
PLACEHOLDER_ID = "cascade-hub-empty"
TITLE_TEXT = "Cascade Hub"
SUB_PANEL_CLASS = "cascade-hub-panel"
COMPOSE_CLASS = "cascade-hub-input"
SUBMIT_CLASS = "cascade-hub-send"
MESSAGE_CLASS = "cascade-hub-message"

# Signals the replacement tree may emit. In the document they travel as
# CustomEvents named SIGNAL_EVENT_PREFIX + name on window.
SIGNAL_SEND = "send"
SIGNAL_SPAWN_PANEL = "spawn-panel"
SIGNAL_AGENT_TOGGLE = "agent-toggle"
SIGNAL_NAMES = (SIGNAL_SEND, SIGNAL_SPAWN_PANEL, SIGNAL_AGENT_TOGGLE)
SIGNAL_EVENT_PREFIX = "cascadehub-"
SIGNAL_BINDING = "__cascadehubSignal"
WATCHER_BINDING = "__cascadehubPanelAdded"

# (name, glyph, initial status)
AGENT_ROSTER = (
    ("Scout", "🔍", "active"),
    ("Builder", "🔨", "idle"),
    ("Reviewer", "✅", "idle"),
    ("Debugger", "🐛", "idle"),
    ("Optimizer", "⚡", "idle"),
    ("Tester", "🧪", "idle"),
)

# CDP Input.dispatchKeyEvent modifier bits.
MODIFIER_BITS = {"Alt": 1, "Control": 2, "Meta": 4, "Shift": 8}

INPUT_PREVIEW_CHARS = 50

FOCUS_SETTLE_MS = 200
SELECT_SETTLE_MS = 50
CLEAR_SETTLE_MS = 100
CHAR_DELAY_MS = 15
TYPE_SETTLE_MS = 200
POLL_INTERVAL_MS = 200
QUIET_MS = 500
RESPONSE_TIMEOUT_MS = 10000
ESCAPE_SETTLE_MS = 300
PALETTE_SETTLE_MS = 500
COMMAND_SETTLE_MS = 500
SPAWN_SETTLE_MS = 2000
WATCHER_DEFER_MS = 100
LAYOUT_REFRESH_MS = 100
TRUST_SETTLE_MS = 500
OPEN_SETTLE_MS = 1000
