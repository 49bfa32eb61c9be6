# sbq_core/hosts/preview.py
import logging
import posixpath
import time
from typing import Any, Callable, Dict, List, Optional

from .base import HostError, HostPrimitives, NodeInfo, SceneInfo, join_path

log = logging.getLogger(__name__)


class PreviewHost:
    """Copy-on-write view of another host for dry runs.

    Reads see the wrapped host plus whatever this preview "created"; nothing
    is ever passed through to the wrapped host's mutating primitives.
    """

    def __init__(self, inner: HostPrimitives, clock: Callable[[], float] = time.time):
        self.inner = inner
        self.name = f"preview:{inner.name}"
        self.scene_ext = getattr(inner, "scene_ext", "")
        self._clock = clock
        self._scenes: Dict[str, SceneInfo] = {}
        self._nodes: Dict[str, List[NodeInfo]] = {}

    def scene_types(self) -> List[str]:
        return self.inner.scene_types()

    def list_scenes(self) -> List[SceneInfo]:
        return self.inner.list_scenes() + list(self._scenes.values())

    def list_nodes(self, scene: str) -> List[NodeInfo]:
        base: List[NodeInfo] = []
        if scene not in self._scenes:
            base = self.inner.list_nodes(scene)
        return base + self._nodes.get(scene, [])

    def create_scene(self, name: str, path: str, setup: str, add_to_build: bool) -> SceneInfo:
        info = SceneInfo(name=name, path=posixpath.join(path, name + self.scene_ext),
                         modified=self._clock(), setup=setup, in_build=add_to_build)
        self._scenes[name] = info
        self._nodes[name] = []
        log.info("[dry-run] would create scene %s", info.path)
        return info

    def create_node(self, scene: str, parent_path: Optional[str], kind: str,
                    name: str, props: Dict[str, Any]) -> NodeInfo:
        known = {n.path for n in self.list_nodes(scene)}
        if parent_path is not None and parent_path not in known:
            raise HostError(f"No node {parent_path!r} in scene {scene}")
        node = NodeInfo(scene=scene, path=join_path(parent_path, name), name=name, kind=kind)
        self._nodes.setdefault(scene, []).append(node)
        log.info("[dry-run] would create %s %s:%s", kind, scene, node.path)
        return node

    def save_scene(self, scene: str) -> SceneInfo:
        for s in self.list_scenes():
            if s.name == scene:
                log.info("[dry-run] would save scene %s", s.path)
                return s
        raise HostError(f"No such scene: {scene}")
