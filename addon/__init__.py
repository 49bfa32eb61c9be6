bl_info = {
    "name": "Scene Batch Queue",
    "author": "SBQ",
    "version": (0, 3, 0),
    "blender": (3, 6, 0),
    "category": "System",
    "description": "Runs queued scene/UI batch files inside the open editor",
}

import os
import sys

import bpy
from bpy.props import EnumProperty, StringProperty
from bpy.types import AddonPreferences, Operator, Panel

from . import ui_progress

ADDON_ROOT = (__package__ or __name__).split(".")[0]

# the engine lives next to this folder when run from a checkout
if ui_progress.REPO_ROOT not in sys.path:
    sys.path.insert(0, ui_progress.REPO_ROOT)

# ───────── Watcher State ─────────
_WATCHER = None
_LAST_VERDICT = ""


class SBQ_AddonPreferences(AddonPreferences):
    bl_idname = ADDON_ROOT

    project_root: StringProperty(
        name="Project Root",
        description="Folder holding config/ and the queue directory (blank: next to the .blend file)",
        subtype="DIR_PATH",
        default="",
    )
    transport: EnumProperty(
        name="Transport",
        items=[
            ("files", "Drop Directory", "Poll <project>/queue for batch files"),
            ("rpc", "XML-RPC", "Accept batches over XML-RPC on localhost"),
        ],
        default="files",
    )

    def draw(self, context):
        col = self.layout.column()
        col.prop(self, "project_root")
        col.prop(self, "transport")


def _prefs(context):
    return context.preferences.addons[ADDON_ROOT].preferences


def _project_root(context) -> str:
    root = _prefs(context).project_root
    if root:
        return bpy.path.abspath(root)
    if bpy.data.filepath:
        return os.path.dirname(bpy.data.filepath)
    return ui_progress.REPO_ROOT


def _on_outcome(outcome):
    global _LAST_VERDICT
    _LAST_VERDICT = f"{outcome.batch_id}: {outcome.verdict}"
    if outcome.result is not None and not outcome.result.dry_run:
        # one undo step per applied batch
        try:
            bpy.ops.ed.undo_push(message=f"Batch {outcome.batch_id}")
        except RuntimeError as e:
            print(f"[SceneBatch] Failed to push undo: {e}")


def _watch_tick():
    """Runs on Blender's main thread; returns seconds until the next call."""
    if _WATCHER is None:
        return None
    return _WATCHER.tick()


def _start_watcher(context) -> bool:
    global _WATCHER
    from sbq_core.config import load_config
    from sbq_core.log import setup_logging
    from sbq_core.queue import make_watcher

    root = _project_root(context)
    prefs = _prefs(context)
    cfg = load_config(root, overrides={"host": {"name": "blender"},
                                       "queue": {"transport": prefs.transport}})
    setup_logging(cfg)
    watcher = make_watcher(cfg, on_outcome=_on_outcome)
    if prefs.transport == "rpc" and not watcher.queue.start():
        return False
    _WATCHER = watcher
    if not bpy.app.timers.is_registered(_watch_tick):
        bpy.app.timers.register(_watch_tick, first_interval=0.3, persistent=True)
    ui_progress.start_monitor(root)
    print(f"[SceneBatch] Watching {cfg['queue'].get('dir') if prefs.transport == 'files' else 'XML-RPC'}")
    return True


def _stop_watcher():
    global _WATCHER
    if bpy.app.timers.is_registered(_watch_tick):
        bpy.app.timers.unregister(_watch_tick)
    if _WATCHER is not None and hasattr(_WATCHER.queue, "stop"):
        _WATCHER.queue.stop()
    _WATCHER = None
    ui_progress.stop_monitor()


# ───────── Operators ─────────
class SBQ_OT_WatchStart(Operator):
    bl_idname = "sbq.watch_start"
    bl_label = "Start Watching"
    bl_description = "Start processing queued batch files"

    def execute(self, context):
        if _start_watcher(context):
            self.report({'INFO'}, "Batch queue watcher started")
        else:
            self.report({'ERROR'}, "Couldn't start the watcher (RPC port in use?)")
        return {'FINISHED'}


class SBQ_OT_WatchStop(Operator):
    bl_idname = "sbq.watch_stop"
    bl_label = "Stop Watching"

    def execute(self, context):
        _stop_watcher()
        self.report({'INFO'}, "Batch queue watcher stopped")
        return {'FINISHED'}


class SBQ_PT_Queue(Panel):
    bl_label = "Scene Batch Queue"
    bl_idname = "SBQ_PT_Queue"
    bl_space_type = 'VIEW_3D'
    bl_region_type = 'UI'
    bl_category = "Batch"

    def draw(self, context):
        layout = self.layout
        if _WATCHER is None:
            layout.operator("sbq.watch_start", icon="PLAY")
        else:
            layout.operator("sbq.watch_stop", icon="PAUSE")
            layout.label(text=f"Processed: {_WATCHER.processed}")
        if _LAST_VERDICT:
            layout.label(text=f"Last: {_LAST_VERDICT}")
        ui_progress.draw_progress(layout, context.window_manager)


_CLASSES = (SBQ_AddonPreferences, SBQ_OT_WatchStart, SBQ_OT_WatchStop, SBQ_PT_Queue)


def register():
    ui_progress.ensure_props()
    for c in _CLASSES:
        bpy.utils.register_class(c)


def unregister():
    _stop_watcher()
    for c in reversed(_CLASSES):
        bpy.utils.unregister_class(c)
    ui_progress.remove_props()
