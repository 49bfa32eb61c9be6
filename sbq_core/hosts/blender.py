# sbq_core/hosts/blender.py
"""
Blender binding for the host primitives.

Scenes are bpy.data.scenes. UI nodes are empties linked into the scene and
parented under each other; the logical name/kind/properties are kept as
custom properties because Blender object names are global and may get a
".001" suffix.
"""
import os
import time
from typing import Any, Dict, List, Optional

import bpy

from ..commands.schema import SCENE_TYPES
from .base import HostError, NodeInfo, SceneInfo, join_path

_DEFAULT_OBJECTS = {"DefaultGameObjects", "3D", "URP", "HDRP"}


def _tag(id_block, name: str, kind: str) -> None:
    id_block["sbq_name"] = name
    id_block["sbq_kind"] = kind


class BlenderHost:
    name = "blender"
    scene_ext = ".blend"

    def __init__(self, cfg: Optional[Dict[str, Any]] = None):
        self.cfg = cfg or {}
        self.project_root = self.cfg.get("_repo_root") or os.getcwd()

    def _scene(self, name: str):
        sc = bpy.data.scenes.get(name)
        if sc is None:
            raise HostError(f"No such scene: {name}")
        return sc

    def _info(self, sc) -> SceneInfo:
        return SceneInfo(
            name=sc.name,
            path=sc.get("sbq_path", ""),
            modified=float(sc.get("sbq_modified", 0.0)),
            setup=sc.get("sbq_setup", "Empty"),
            in_build=bool(sc.get("sbq_in_build", False)),
        )

    def _touch(self, sc) -> None:
        sc["sbq_modified"] = time.time()

    def _node_objects(self, sc) -> Dict[str, Any]:
        """path -> object for every tagged object in the scene."""
        tagged = [o for o in sc.objects if o.get("sbq_kind")]
        out: Dict[str, Any] = {}

        def walk(objs, parent_path):
            for o in sorted(objs, key=lambda o: o.name):
                path = join_path(parent_path, o["sbq_name"])
                out[path] = o
                walk([c for c in o.children if c.get("sbq_kind")], path)

        walk([o for o in tagged if o.parent is None or not o.parent.get("sbq_kind")], None)
        return out

    # --- primitives ---
    def scene_types(self) -> List[str]:
        return list(SCENE_TYPES)

    def list_scenes(self) -> List[SceneInfo]:
        return [self._info(sc) for sc in bpy.data.scenes]

    def list_nodes(self, scene: str) -> List[NodeInfo]:
        sc = self._scene(scene)
        return [NodeInfo(scene=scene, path=p, name=o["sbq_name"], kind=o["sbq_kind"])
                for p, o in self._node_objects(sc).items()]

    def create_scene(self, name: str, path: str, setup: str, add_to_build: bool) -> SceneInfo:
        if bpy.data.scenes.get(name) is not None:
            raise HostError(f"Scene already exists: {name}")
        sc = bpy.data.scenes.new(name)
        sc["sbq_path"] = os.path.join(path, name + self.scene_ext).replace("\\", "/")
        sc["sbq_setup"] = setup
        sc["sbq_in_build"] = bool(add_to_build)

        if setup in _DEFAULT_OBJECTS:
            cam = bpy.data.objects.new("Main Camera", bpy.data.cameras.new("Main Camera"))
            _tag(cam, "Main Camera", "camera")
            sc.collection.objects.link(cam)
            sc.camera = cam
            light = bpy.data.objects.new("Directional Light", bpy.data.lights.new("Directional Light", "SUN"))
            _tag(light, "Directional Light", "light")
            sc.collection.objects.link(light)

        self._touch(sc)
        return self._info(sc)

    def create_node(self, scene: str, parent_path: Optional[str], kind: str,
                    name: str, props: Dict[str, Any]) -> NodeInfo:
        sc = self._scene(scene)
        nodes = self._node_objects(sc)
        parent = None
        if parent_path is not None:
            parent = nodes.get(parent_path)
            if parent is None:
                raise HostError(f"No node {parent_path!r} in scene {scene}")

        obj = bpy.data.objects.new(name, None)
        obj.empty_display_type = 'PLAIN_AXES'
        _tag(obj, name, kind)
        for k, v in props.items():
            if v is not None:
                obj[f"sbq_{k}"] = list(v) if isinstance(v, tuple) else v
        sc.collection.objects.link(obj)
        if parent is not None:
            obj.parent = parent
        pos = props.get("position") or props.get("world_position")
        if pos:
            obj.location = (pos[0], pos[1], pos[2] if len(pos) > 2 else 0.0)

        self._touch(sc)
        return NodeInfo(scene=scene, path=join_path(parent_path, name), name=name, kind=kind)

    def save_scene(self, scene: str) -> SceneInfo:
        sc = self._scene(scene)
        self._touch(sc)
        if bpy.data.filepath:
            result = bpy.ops.wm.save_mainfile()
        else:
            target = os.path.join(self.project_root, sc["sbq_path"])
            os.makedirs(os.path.dirname(target), exist_ok=True)
            result = bpy.ops.wm.save_as_mainfile(filepath=target)
        if result and 'CANCELLED' in result:
            raise HostError(f"Saving {scene} was cancelled")
        return self._info(sc)
