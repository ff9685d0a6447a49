"""Mount/unmount controller: the reversible takeover of the host interface."""

from __future__ import annotations

import traceback
from typing import Any

from cascadehub import constants as C
from cascadehub import overlay
from cascadehub.action_bridge import ActionBridge, SendOp, SpawnOp
from cascadehub.context import MountRecord, MountState, TakeoverContext
from cascadehub.errors import MountFailure
from cascadehub.extraction import extract
from cascadehub.models import MountResult, UnmountResult
from cascadehub.storage import write_json
from cascadehub.ui_builder import ReplacementUI, create_ui
from cascadehub.watcher import DynamicPanelWatcher, disconnect_observer


def insert_ui(ctx: TakeoverContext, ui: ReplacementUI) -> dict[str, Any]:
    """Render ``ui`` as the only replacement root in the document.

    Any earlier root is removed and any earlier watcher disconnected first,
    so calling this twice leaves exactly one root and no stale observer.
    Registering the Mount Record is left to ``mount``.
    """
    previous = ctx.active_watcher
    if previous is not None:
        previous.disconnect()
    return overlay.render_root(ctx, ui)


def _rollback(ctx: TakeoverContext, watcher: DynamicPanelWatcher | None, bridge: ActionBridge | None) -> None:
    if bridge is not None:
        bridge.detach()
    if watcher is not None:
        watcher.disconnect()
    for name, undo in (("remove_root", overlay.remove_root), ("restore_originals", overlay.restore_originals)):
        try:
            undo(ctx)
        except Exception as exc:
            ctx.log(f"mount rollback: {name} failed: {exc}")


def _write_report(ctx: TakeoverContext, payload: dict[str, Any], summary: dict[str, Any] | None = None) -> None:
    if ctx.run is None:
        return
    try:
        write_json(ctx.run.mount_report, payload)
        if summary is not None:
            write_json(ctx.run.extraction_report, summary)
    except OSError as exc:
        ctx.log(f"mount report not written: {exc}")


def mount(
    ctx: TakeoverContext,
    *,
    send_op: SendOp | None = None,
    spawn_op: SpawnOp | None = None,
) -> MountResult:
    ctx.require_connected()
    remounted = False
    if ctx.state is MountState.MOUNTED:
        ctx.log("mount: already mounted, remounting")
        unmount(ctx)
        remounted = True

    ctx.state = MountState.MOUNTING
    ctx.log("mount: start")
    step = "extract"
    watcher: DynamicPanelWatcher | None = None
    bridge: ActionBridge | None = None
    try:
        snapshot = extract(ctx)
        step = "build_ui"
        ui = create_ui(snapshot)
        step = "insert_ui"
        insert_ui(ctx, ui)
        step = "install_watcher"
        watcher = DynamicPanelWatcher(ctx, ui, ui.keys)
        watcher.install()
        step = "hide_originals"
        hidden = overlay.hide_originals(ctx)
        step = "wire_bridge"
        bridge = ActionBridge(ctx, send_op=send_op, spawn_op=spawn_op)
        bridge.install()
    except Exception as exc:
        trace = traceback.format_exc()
        _rollback(ctx, watcher, bridge)
        ctx.state = MountState.UNMOUNTED
        ctx.mount_record = None
        failure = MountFailure(str(exc) or exc.__class__.__name__, trace=trace, step=step)
        ctx.log(f"mount failed at {step}: {failure.message}\n{trace}")
        _write_report(ctx, failure.to_dict())
        raise failure from exc

    ctx.mount_record = MountRecord(
        root_id=C.ROOT_ID,
        ui=ui,
        watcher=watcher,
        bridge=bridge,
        hidden=hidden,
        handlers_extracted=len(snapshot.handlers),
    )
    ctx.state = MountState.MOUNTED
    result = MountResult(
        success=True,
        panel_count=len(snapshot.panels),
        conversation_count=len(snapshot.conversations),
        handlers_extracted=len(snapshot.handlers),
        listeners_captured=snapshot.listener_count,
        hidden=hidden,
        ui_mounted=True,
        remounted=remounted,
        degraded=tuple(snapshot.degraded),
    )
    ctx.log(
        f"mount: mounted panels={result.panel_count} handlers={result.handlers_extracted} "
        f"hidden={hidden} remounted={remounted}"
    )
    _write_report(ctx, result.to_dict(), snapshot.summary())
    return result


def unmount(ctx: TakeoverContext, force: bool = False) -> UnmountResult:
    """Tear down the replacement UI and show the host interface again.

    With ``force`` the in-document teardown runs even when this context holds
    no Mount Record, which restores a takeover left behind by another process.
    """
    ctx.require_connected()
    record = ctx.mount_record
    if record is None and not force:
        return UnmountResult(restored=False, error="UI not mounted")

    ctx.state = MountState.UNMOUNTING
    ctx.log("unmount: start")
    if record is not None:
        record.bridge.detach()
        record.watcher.disconnect()
    ctx.mount_record = None
    try:
        if record is None:
            disconnect_observer(ctx)
        removed = overlay.remove_root(ctx)
        restored = overlay.restore_originals(ctx)
    except Exception as exc:
        ctx.log(f"unmount failed: {exc}")
        return UnmountResult(restored=False, error=f"Unmount failed: {exc}")
    finally:
        ctx.state = MountState.UNMOUNTED
    ctx.log(f"unmount: removed_roots={removed} restored_elements={restored}")
    return UnmountResult(restored=True, restored_elements=restored, removed_roots=removed)


def get_mount_status(ctx: TakeoverContext) -> dict[str, Any] | None:
    record = ctx.mount_record
    if record is None:
        return None
    status = record.summary(ctx.state)
    status["root_present"] = overlay.root_present(ctx) if ctx.connected else False
    return status
