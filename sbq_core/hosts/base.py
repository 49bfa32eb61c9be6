# sbq_core/hosts/base.py
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol


class HostError(RuntimeError):
    """A host primitive refused or failed the request."""


@dataclass(frozen=True)
class SceneInfo:
    name: str
    path: str                 # asset path, e.g. Assets/Scenes/Menu.scene
    modified: float           # last write timestamp
    setup: str = "Empty"
    in_build: bool = False


@dataclass(frozen=True)
class NodeInfo:
    scene: str
    path: str                 # "/"-joined names from the scene root
    name: str
    kind: str

    @property
    def parent_path(self) -> Optional[str]:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else None


class HostPrimitives(Protocol):
    name: str
    def scene_types(self) -> List[str]: ...
    def list_scenes(self) -> List[SceneInfo]: ...
    def list_nodes(self, scene: str) -> List[NodeInfo]: ...          # hierarchy order
    def create_scene(self, name: str, path: str, setup: str,
                     add_to_build: bool) -> SceneInfo: ...
    def create_node(self, scene: str, parent_path: Optional[str], kind: str,
                    name: str, props: Dict[str, Any]) -> NodeInfo: ...
    def save_scene(self, scene: str) -> SceneInfo: ...


def join_path(parent_path: Optional[str], name: str) -> str:
    return f"{parent_path}/{name}" if parent_path else name
