"""Data models for panels, extracted conversations and operation result records."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Union


@dataclass(frozen=True)
class Panel:
    # index is positional and only valid until the next spawn or removal;
    # key is the surrogate identity stamped at first observation.
    index: int
    key: str
    visible: bool
    input_content: str
    button_enabled: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class PanelStateResult:
    index: int
    total_panels: int
    key: str = ""
    visible: bool = False
    input_content: str = ""
    button_enabled: bool = False
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.error is None:
            payload.pop("error")
        return payload


@dataclass(frozen=True)
class Message:
    role: str
    text: str
    timestamp: float


@dataclass(frozen=True)
class Conversation:
    index: int
    key: str
    messages: tuple[Message, ...]
    transcript_text: str
    # Kept for fidelity only; never rendered into the replacement tree.
    transcript_markup: str
    input_content: str
    missing: tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return bool(self.missing)


@dataclass(frozen=True)
class ListenerDescriptor:
    event: str
    source: str
    use_capture: bool = False
    passive: bool = False
    once: bool = False


@dataclass(frozen=True)
class ExtractedViaIntrospection:
    listeners: tuple[ListenerDescriptor, ...]
    kind: str = "introspection"


@dataclass(frozen=True)
class ExtractedViaFallback:
    listeners: tuple[ListenerDescriptor, ...]
    kind: str = "fallback"


@dataclass(frozen=True)
class NotAvailable:
    reason: str
    kind: str = "not_available"

    @property
    def listeners(self) -> tuple[ListenerDescriptor, ...]:
        return ()


HandlerCapture = Union[ExtractedViaIntrospection, ExtractedViaFallback, NotAvailable]


@dataclass(frozen=True)
class ExtractionSnapshot:
    panels: tuple[Panel, ...] = ()
    conversations: tuple[Conversation, ...] = ()
    handlers: dict[str, HandlerCapture] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    captured_at: float = 0.0

    @property
    def listener_count(self) -> int:
        return sum(len(capture.listeners) for capture in self.handlers.values())

    @property
    def degraded(self) -> list[str]:
        return [
            f"panel_{conv.index}:{name}"
            for conv in self.conversations
            for name in conv.missing
        ]

    def summary(self) -> dict[str, Any]:
        return {
            "panel_count": len(self.panels),
            "conversation_count": len(self.conversations),
            "handlers_extracted": len(self.handlers),
            "listeners_captured": self.listener_count,
            "handler_kinds": {name: capture.kind for name, capture in self.handlers.items()},
            "degraded": self.degraded,
            "captured_at": self.captured_at,
        }


@dataclass(frozen=True)
class SendResult:
    sent: bool
    message: str = ""
    error: str | None = None
    button_enabled: bool | None = None
    input_content: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass(frozen=True)
class ResponseResult:
    response: str
    stable: bool = False
    timeout: bool = False
    elapsed_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class SpawnResult:
    spawned: bool
    before_count: int
    after_count: int
    new_index: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class MountResult:
    success: bool
    panel_count: int
    conversation_count: int
    handlers_extracted: int
    listeners_captured: int
    hidden: int
    ui_mounted: bool
    remounted: bool = False
    degraded: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["degraded"] = list(self.degraded)
        return payload


@dataclass(frozen=True)
class UnmountResult:
    restored: bool
    restored_elements: int = 0
    removed_roots: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        if self.error is None:
            payload.pop("error")
        return payload
