import logging
import os
import sys

import pytest

# Add repo root to path (parent of tests/)
_repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from sbq_core.config import load_config
from sbq_core.hosts.memory import MemoryHost
from sbq_core.pipeline import Pipeline
from sbq_core.session import SessionStore


class Clock:
    """Monotonic fake clock: every call is one second later."""

    def __init__(self, start: float = 1000.0):
        self.t = start

    def __call__(self) -> float:
        self.t += 1.0
        return self.t


def _make_batch(*commands, **top):
    data = {"version": "1.0", "commands": list(commands)}
    data.update(top)
    return data


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def cfg(tmp_path):
    return load_config(str(tmp_path), overrides={"logging": {"to_file": False}})


@pytest.fixture
def host(cfg, clock):
    return MemoryHost(state_path=cfg["host"]["state_path"], clock=clock)


@pytest.fixture
def session(cfg, clock):
    return SessionStore(cfg["session"]["path"], clock=clock)


@pytest.fixture
def pipeline(cfg, host, session):
    return Pipeline(cfg, host, session)


@pytest.fixture
def make_batch():
    return _make_batch


@pytest.fixture(autouse=True)
def _restore_logging():
    # the CLI reconfigures the "sbq_core" logger; keep tests independent
    logger = logging.getLogger("sbq_core")
    handlers, level = list(logger.handlers), logger.level
    yield
    for h in list(logger.handlers):
        if h not in handlers:
            logger.removeHandler(h)
            h.close()
    logger.setLevel(level)
