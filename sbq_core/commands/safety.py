# sbq_core/commands/safety.py
import posixpath
from typing import Tuple

from .registry import REGISTRY


def is_allowed(action: str, cfg) -> Tuple[bool, str]:
    if REGISTRY.model_for(action) is None:
        return False, f"Unknown action {action!r}; known actions: {', '.join(REGISTRY.known())}"

    wl = {a.lower() for a in (cfg or {}).get("safety", {}).get("allowed_actions", [])}
    if wl and action.lower() not in wl:
        return False, f"Action {action} not allowed by configuration"
    return True, ""


def check_scene_path(path: str, cfg) -> Tuple[bool, str]:
    """Scene assets must stay inside the project's scene root."""
    p = path.replace("\\", "/").strip()
    if p.startswith("/") or (len(p) > 1 and p[1] == ":"):
        return False, f"Scene path must be project-relative, got {path!r}"

    norm = posixpath.normpath(p)
    if norm == ".." or norm.startswith("../"):
        return False, f"Scene path escapes the project: {path!r}"

    root = (cfg or {}).get("safety", {}).get("scene_root") or ""
    root = root.replace("\\", "/").strip("/")
    if root and not (norm == root or norm.startswith(root + "/")):
        return False, f"Scene path must be under {root}/, got {path!r}"
    return True, ""
