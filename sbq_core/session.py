# sbq_core/session.py
"""
Session Store - defaults that survive across separate invocations.

The record lives in one small JSON file per project and is always replaced
whole (temp file + os.replace), so readers never see a half-written state.
Concurrent writers from several processes are not supported.
"""
import json
import logging
import os
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionState:
    scene: Optional[str] = None
    parent: Optional[str] = None
    resolution: Optional[Tuple[int, int]] = None
    last_updated: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.scene is None and self.parent is None and self.resolution is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scene": self.scene,
            "parent": self.parent,
            "resolution": list(self.resolution) if self.resolution else None,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionState":
        res = data.get("resolution")
        return cls(
            scene=data.get("scene"),
            parent=data.get("parent"),
            resolution=(int(res[0]), int(res[1])) if res else None,
            last_updated=data.get("lastUpdated"),
        )


EMPTY_SESSION = SessionState()


def _atomic_write_json(path: str, payload: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = path + ".tmp"
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)
    os.replace(tmp, path)


class SessionStore:
    def __init__(self, path: str, clock: Callable[[], float] = time.time):
        self.path = path
        self._clock = clock

    def read(self) -> SessionState:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return SessionState.from_dict(json.load(f))
        except FileNotFoundError:
            return EMPTY_SESSION
        except (ValueError, TypeError, IndexError, AttributeError) as e:
            # a damaged record behaves like no session; the next write replaces it
            log.warning("Ignoring unreadable session file %s: %s", self.path, e)
            return EMPTY_SESSION

    def write(self, state: SessionState) -> SessionState:
        state = replace(state, last_updated=self._clock())
        _atomic_write_json(self.path, state.to_dict())
        return state

    def start(self, scene: Optional[str] = None, parent: Optional[str] = None,
              resolution: Optional[Tuple[int, int]] = None) -> SessionState:
        state = self.write(SessionState(scene=scene, parent=parent, resolution=resolution))
        log.info("Session started: scene=%s parent=%s resolution=%s", scene, parent, resolution)
        return state

    def set_parent(self, name: Optional[str]) -> SessionState:
        return self.write(replace(self.read(), parent=name))

    def clear(self) -> bool:
        try:
            os.remove(self.path)
        except FileNotFoundError:
            return False
        log.info("Session ended")
        return True


class OverlaySessionStore(SessionStore):
    """In-memory session used by dry runs; starts from another store's state."""

    def __init__(self, base: SessionStore):
        super().__init__(path="<overlay>", clock=base._clock)
        self._state = base.read()

    def read(self) -> SessionState:
        return self._state

    def write(self, state: SessionState) -> SessionState:
        self._state = replace(state, last_updated=self._clock())
        return self._state

    def clear(self) -> bool:
        had = not self._state.is_empty
        self._state = EMPTY_SESSION
        return had
