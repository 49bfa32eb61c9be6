from .base import HostError, HostPrimitives, NodeInfo, SceneInfo
from .memory import MemoryHost
from .preview import PreviewHost
from .registry import get_host, list_hosts

__all__ = ["HostError", "HostPrimitives", "NodeInfo", "SceneInfo",
           "MemoryHost", "PreviewHost", "get_host", "list_hosts"]
