# addon/ui_progress.py
import os, json, bpy

# --- find repo root (folder containing 'sbq_core' and 'addon') ---
HERE = os.path.abspath(os.path.dirname(__file__))
def _find_repo_root(start_dir: str, target: str = "sbq_core", max_up: int = 6):
    cur = start_dir
    for _ in range(max_up):
        if os.path.isdir(os.path.join(cur, target)): return cur
        parent = os.path.dirname(cur)
        if parent == cur: break
        cur = parent
    return None

REPO_ROOT = _find_repo_root(HERE) or HERE
_PROGRESS_PATH = os.path.join(REPO_ROOT, "logs", "progress.json")

# --- timer plumbing ---
_TIMER_RUNNING = False

def _tag_redraw():
    for window in bpy.context.window_manager.windows:
        for area in window.screen.areas:
            if area.type in {"VIEW_3D", "PROPERTIES"}:
                area.tag_redraw()

def _progress_timer():
    wm = bpy.context.window_manager
    try:
        with open(_PROGRESS_PATH, "r", encoding="utf-8") as f:
            data = json.load(f)
        wm.sbq_batch_id = str(data.get("job_id", ""))
        wm.sbq_state = str(data.get("state", "unknown"))
        wm.sbq_progress = max(0, min(100, int(data.get("progress", 0))))
    except FileNotFoundError:
        # no batch has run yet
        pass
    except (ValueError, OSError) as e:
        wm.sbq_state = f"error: {e!s}"[:128]

    _tag_redraw()
    return 0.5

def start_monitor(project_root: str = None):
    global _TIMER_RUNNING, _PROGRESS_PATH
    if project_root:
        _PROGRESS_PATH = os.path.join(project_root, "logs", "progress.json")
    if not _TIMER_RUNNING:
        bpy.app.timers.register(_progress_timer, first_interval=0.1, persistent=True)
        _TIMER_RUNNING = True

def stop_monitor():
    global _TIMER_RUNNING
    if _TIMER_RUNNING:
        if bpy.app.timers.is_registered(_progress_timer):
            bpy.app.timers.unregister(_progress_timer)
        _TIMER_RUNNING = False

def ensure_props():
    wm = bpy.types.WindowManager
    if not hasattr(wm, "sbq_progress"):
        wm.sbq_progress = bpy.props.IntProperty(name="Progress", min=0, max=100, default=0, subtype="PERCENTAGE")
    if not hasattr(wm, "sbq_batch_id"):
        wm.sbq_batch_id = bpy.props.StringProperty(name="Batch", default="")
    if not hasattr(wm, "sbq_state"):
        wm.sbq_state = bpy.props.StringProperty(name="State", default="idle")

def remove_props():
    wm = bpy.types.WindowManager
    for name in ("sbq_progress", "sbq_batch_id", "sbq_state"):
        if hasattr(wm, name):
            delattr(wm, name)

def draw_progress(layout, wm):
    col = layout.column(align=True)
    col.label(text=f"Batch: {wm.sbq_batch_id or '—'}")
    col.label(text=f"State: {wm.sbq_state or '—'}")
    col.prop(wm, "sbq_progress", text="Progress")
