# sbq_core/hosts/memory.py
"""
In-process host used headless and in tests.

Live state is kept in memory. A created scene is written to ``state_path``
straight away (the scene asset is saved on creation); nodes added later only
reach the file through save_scene. A second MemoryHost opened on the same
file therefore sees exactly what a restarted editor would see.
"""
import copy
import json
import logging
import os
import posixpath
import time
from typing import Any, Callable, Dict, List, Optional

from ..commands.schema import SCENE_TYPES
from .base import HostError, NodeInfo, SceneInfo, join_path

log = logging.getLogger(__name__)

# setups that come with a camera and a light, like the editor's default scene
_DEFAULT_OBJECTS = {"DefaultGameObjects", "3D", "URP", "HDRP"}


class MemoryHost:
    name = "memory"
    scene_ext = ".scene"

    def __init__(self, state_path: Optional[str] = None, clock: Callable[[], float] = time.time):
        self.state_path = state_path
        self._clock = clock
        self._scenes: Dict[str, Dict[str, Any]] = copy.deepcopy(self._load())

    # --- persistence ---
    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.state_path or not os.path.isfile(self.state_path):
            return {}
        with open(self.state_path, "r", encoding="utf-8") as f:
            return json.load(f).get("scenes", {})

    def _persist(self, scene: str) -> None:
        if not self.state_path:
            return
        saved = self._load()
        saved[scene] = copy.deepcopy(self._scenes[scene])
        os.makedirs(os.path.dirname(self.state_path) or ".", exist_ok=True)
        tmp = self.state_path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump({"scenes": saved}, f, indent=2)
        os.replace(tmp, self.state_path)

    def _scene(self, name: str) -> Dict[str, Any]:
        s = self._scenes.get(name)
        if s is None:
            raise HostError(f"No such scene: {name}")
        return s

    def _info(self, s: Dict[str, Any]) -> SceneInfo:
        return SceneInfo(name=s["name"], path=s["path"], modified=s["modified"],
                         setup=s["setup"], in_build=s["in_build"])

    # --- primitives ---
    def scene_types(self) -> List[str]:
        return list(SCENE_TYPES)

    def list_scenes(self) -> List[SceneInfo]:
        return [self._info(s) for s in self._scenes.values()]

    def list_nodes(self, scene: str) -> List[NodeInfo]:
        nodes = self._scene(scene)["nodes"]
        children: Dict[Optional[str], List[str]] = {}
        for path, n in nodes.items():
            children.setdefault(n["parent"], []).append(path)

        out: List[NodeInfo] = []

        def walk(parent):
            for path in children.get(parent, []):
                n = nodes[path]
                out.append(NodeInfo(scene=scene, path=path, name=n["name"], kind=n["kind"]))
                walk(path)

        walk(None)
        return out

    def create_scene(self, name: str, path: str, setup: str, add_to_build: bool) -> SceneInfo:
        asset = posixpath.join(path.replace("\\", "/"), name + self.scene_ext)
        if name in self._scenes or any(s["path"] == asset for s in self._scenes.values()):
            raise HostError(f"Scene already exists: {asset}")

        self._scenes[name] = {
            "name": name, "path": asset, "setup": setup,
            "in_build": bool(add_to_build), "modified": self._clock(), "nodes": {},
        }
        if setup in _DEFAULT_OBJECTS:
            for node_name, kind in (("Main Camera", "camera"), ("Directional Light", "light")):
                self._scenes[name]["nodes"][node_name] = {
                    "name": node_name, "kind": kind, "parent": None, "props": {}}
        self._persist(name)
        log.debug("Created scene %s (%s)", asset, setup)
        return self._info(self._scenes[name])

    def create_node(self, scene: str, parent_path: Optional[str], kind: str,
                    name: str, props: Dict[str, Any]) -> NodeInfo:
        s = self._scene(scene)
        if parent_path is not None and parent_path not in s["nodes"]:
            raise HostError(f"No node {parent_path!r} in scene {scene}")
        path = join_path(parent_path, name)
        if path in s["nodes"]:
            raise HostError(f"Node already exists: {scene}:{path}")
        s["nodes"][path] = {"name": name, "kind": kind, "parent": parent_path,
                            "props": copy.deepcopy(props)}
        s["modified"] = self._clock()
        return NodeInfo(scene=scene, path=path, name=name, kind=kind)

    def save_scene(self, scene: str) -> SceneInfo:
        s = self._scene(scene)
        s["modified"] = self._clock()
        self._persist(scene)
        return self._info(s)

    # --- inspection helpers (not part of the primitive surface) ---
    def node_props(self, scene: str, path: str) -> Dict[str, Any]:
        return copy.deepcopy(self._scene(scene)["nodes"][path]["props"])

    def touch(self, scene: str) -> None:
        self._scene(scene)["modified"] = self._clock()
