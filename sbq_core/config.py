# sbq_core/config.py
import os, json, copy

_DEFAULTS = {
    "profile": "dev",
    "queue": {
        "dir": "queue",
        "transport": "files",          # "files" | "rpc"
        "poll_interval_s": 0.5,
        "max_interval_s": 5.0,
        "backoff": 2.0,
        "rpc_host": "127.0.0.1",
        "rpc_port": 8766,
    },
    "session": {"path": ".sbq/session.json"},
    "host": {"name": "memory", "state_path": ".sbq/host_state.json"},
    "safety": {"allowed_actions": [], "scene_root": "Assets"},
    "canvas": {"reference_width": 1920, "reference_height": 1080, "ensure_event_system": True},
    "logging": {"level": "INFO", "to_file": True, "path": "logs/sbq.log"},
}

# config keys holding repo-relative paths, as (section, key, is_dir)
_PATH_KEYS = (
    ("queue", "dir", True),
    ("session", "path", False),
    ("host", "state_path", False),
    ("logging", "path", False),
)


def _merge(a, b):
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(a.get(k), dict):
            _merge(a[k], v)
        else:
            a[k] = v
    return a


def load_config(repo_root=None, overrides=None):
    repo_root = os.path.abspath(repo_root or os.getcwd())
    cfg_path = os.environ.get("SBQ_CONFIG") or os.path.join(repo_root, "config", "config.json")

    data = {}
    if os.path.isfile(cfg_path):
        with open(cfg_path, "r", encoding="utf-8") as f:
            data = json.load(f)

    cfg = _merge(copy.deepcopy(_DEFAULTS), data)
    if overrides:
        _merge(cfg, overrides)

    # normalize to absolute paths and make sure their folders exist
    for section, key, is_dir in _PATH_KEYS:
        rel = cfg.get(section, {}).get(key)
        if not rel:
            continue
        path = rel if os.path.isabs(rel) else os.path.join(repo_root, rel)
        os.makedirs(path if is_dir else os.path.dirname(path), exist_ok=True)
        cfg[section][key] = path

    cfg["_repo_root"] = repo_root  # handy for relative paths elsewhere
    return cfg
