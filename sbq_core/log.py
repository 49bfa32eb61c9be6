# sbq_core/log.py
import logging
from typing import Any, Dict

PREFIX = "[SceneBatch]"
_FORMAT = PREFIX + " %(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(cfg: Dict[str, Any]) -> logging.Logger:
    """Configure the "sbq_core" logger tree from the config's logging block.

    Safe to call more than once (the host add-on re-registers on reload).
    """
    block = cfg.get("logging", {})
    level = getattr(logging, str(block.get("level", "INFO")).upper(), logging.INFO)

    root = logging.getLogger("sbq_core")
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()

    fmt = logging.Formatter(_FORMAT)
    stream = logging.StreamHandler()
    stream.setFormatter(fmt)
    root.addHandler(stream)

    if block.get("to_file") and block.get("path"):
        fh = logging.FileHandler(block["path"], encoding="utf-8")
        fh.setFormatter(fmt)
        root.addHandler(fh)

    return root
