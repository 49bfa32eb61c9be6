"""
Name Resolver - maps logical scene/node names onto live host objects.

Priority order when resolving a scene:
1. Name given on the command
2. Session default (only when the command asked for session defaults)
3. Most recently modified scene (a guess, reported as such)

Parents resolve the same way, except step 3 is "scene root" for actions
that may live at the root (canvases) and a failure otherwise.

Resolution never creates anything.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sbq_core.errors import ReferenceNotFound
from sbq_core.hosts.base import HostPrimitives, NodeInfo, SceneInfo

log = logging.getLogger("sbq_core.resolver")

_MAX_LISTED = 20


@dataclass(frozen=True)
class Resolution:
    """Outcome of resolving one reference."""
    target: Any                 # SceneInfo, NodeInfo or None (scene root)
    method: str                 # explicit | session | latest_modified | scene_root
    confidence: float
    explanation: str

    @property
    def heuristic(self) -> bool:
        return self.method == "latest_modified"

    def to_dict(self) -> Dict[str, Any]:
        t = self.target
        if isinstance(t, SceneInfo):
            target = t.name
        elif isinstance(t, NodeInfo):
            target = t.path
        else:
            target = None
        return {
            "target": target,
            "method": self.method,
            "heuristic": self.heuristic,
            "confidence": self.confidence,
            "explanation": self.explanation,
        }


def _listing(names: List[str]) -> str:
    if not names:
        return "(none)"
    shown = ", ".join(names[:_MAX_LISTED])
    if len(names) > _MAX_LISTED:
        shown += f", ... ({len(names) - _MAX_LISTED} more)"
    return shown


class NameResolver:
    def __init__(self, host: HostPrimitives):
        self.host = host

    # --- scenes ---
    def _find_scene(self, name: str, origin: str) -> SceneInfo:
        scenes = self.host.list_scenes()
        for s in scenes:
            if s.name == name or s.path == name:
                return s
        raise ReferenceNotFound(
            f"Scene '{name}' ({origin}) not found. Known scenes: {_listing([s.name for s in scenes])}")

    def resolve_scene(self, name: Optional[str], session=None,
                      use_session: bool = False) -> Resolution:
        if name:
            return Resolution(self._find_scene(name, "explicit"), "explicit", 1.0,
                              f"Scene named on the command: {name}")

        if use_session and session is not None and session.scene:
            return Resolution(self._find_scene(session.scene, "from session"), "session", 0.9,
                              f"Session default scene: {session.scene}")

        scenes = self.host.list_scenes()
        if not scenes:
            raise ReferenceNotFound("No scene given and no scenes exist to fall back on")
        latest = max(scenes, key=lambda s: (s.modified, s.name))
        explanation = (f"No scene given; guessed most recently modified scene "
                       f"'{latest.name}' out of {len(scenes)}")
        log.warning(explanation)
        return Resolution(latest, "latest_modified", 0.5, explanation)

    # --- hierarchy nodes ---
    def find_node(self, scene: str, name: str) -> Optional[NodeInfo]:
        nodes = self.host.list_nodes(scene)
        if "/" in name:
            path = name.strip("/")
            return next((n for n in nodes if n.path == path), None)
        return next((n for n in nodes if n.name == name), None)

    def _find_parent(self, scene: str, name: str, origin: str) -> Tuple[NodeInfo, str]:
        node = self.find_node(scene, name)
        if node is None:
            found = [n.path for n in self.host.list_nodes(scene)]
            raise ReferenceNotFound(
                f"Parent '{name}' ({origin}) not found in scene '{scene}'. "
                f"Nodes in scene: {_listing(found)}")
        note = ""
        if "/" not in name:
            same = [n.path for n in self.host.list_nodes(scene) if n.name == name]
            if len(same) > 1:
                note = (f"; ambiguous: {len(same)} nodes named '{name}' ({_listing(same)}), "
                        f"took '{node.path}' (use a path to choose)")
                log.warning("Parent '%s' in scene '%s' matches %s; using %s",
                            name, scene, _listing(same), node.path)
        return node, note

    def resolve_parent(self, scene: str, name: Optional[str], session=None,
                       use_session: bool = False, allow_root: bool = False) -> Resolution:
        if name:
            node, note = self._find_parent(scene, name, "explicit")
            return Resolution(node, "explicit", 1.0, f"Parent named on the command: {name}{note}")

        if use_session and session is not None and session.parent:
            node, note = self._find_parent(scene, session.parent, "from session")
            return Resolution(node, "session", 0.9, f"Session default parent: {session.parent}{note}")

        if allow_root:
            return Resolution(None, "scene_root", 1.0, f"Placed at the root of '{scene}'")

        found = [n.path for n in self.host.list_nodes(scene)]
        raise ReferenceNotFound(
            f"No parent given and no session parent set for scene '{scene}'. "
            f"Nodes in scene: {_listing(found)}")
