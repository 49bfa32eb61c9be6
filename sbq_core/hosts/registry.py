# sbq_core/hosts/registry.py
from typing import Any, Callable, Dict

from .memory import MemoryHost


def _memory(cfg: Dict[str, Any]):
    return MemoryHost(state_path=cfg.get("host", {}).get("state_path"))


def _blender(cfg: Dict[str, Any]):
    # bpy only exists inside Blender (or with the bpy wheel installed)
    from .blender import BlenderHost
    return BlenderHost(cfg)


_REGISTRY: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "memory": _memory,
    "blender": _blender,
}


def get_host(name: str, cfg: Dict[str, Any]):
    factory = _REGISTRY.get(name)
    if not factory:
        raise KeyError(f"Unknown host: {name}")
    return factory(cfg)


def list_hosts() -> list[str]:
    return sorted(_REGISTRY.keys())
