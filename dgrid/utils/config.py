"""
dgrid - Configuration Module
-----------
Settings persisted in ~/.dgrid.json.

ConfigCache keeps the file contents in memory. Reads never touch the disk
unless the cached copy is older than the TTL and there is nothing unsaved.
Writes only mark the cache dirty; the control loop flushes it periodically
and once more when the session closes.
"""
import copy
import json
import logging
import os
import threading
import time

logger = logging.getLogger(__name__)

# Configuration file path in user's home directory
CONFIG_FILE = os.path.expanduser("~/.dgrid.json")

CACHE_TTL = 30  # seconds

DEFAULT_CONFIG = {
    "word_wrap": False,
    "toast_duration": 3,
    "resize_step": 0.05,
    "tail_lines": 10,
    "stopped_tail_lines": 50,
    "debug": False,
    "compose_projects": {},
}


def _validated(raw):
    """Merge raw settings over the defaults, dropping anything malformed"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not isinstance(raw, dict):
        return config

    for key in ("word_wrap", "debug"):
        if isinstance(raw.get(key), bool):
            config[key] = raw[key]

    duration = raw.get("toast_duration")
    if isinstance(duration, (int, float)) and not isinstance(duration, bool):
        config["toast_duration"] = min(10, max(1, duration))

    step = raw.get("resize_step")
    if isinstance(step, (int, float)) and not isinstance(step, bool) and 0 < step <= 0.5:
        config["resize_step"] = float(step)

    for key in ("tail_lines", "stopped_tail_lines"):
        value = raw.get(key)
        if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
            config[key] = value

    projects = raw.get("compose_projects")
    if isinstance(projects, dict):
        for name, info in projects.items():
            if not isinstance(info, dict):
                continue
            files = info.get("config_files") or []
            if isinstance(files, str):
                files = [f for f in files.split(",") if f]
            config["compose_projects"][name] = {
                "config_files": [str(f) for f in files],
                "working_dir": str(info.get("working_dir") or ""),
            }
    return config


def load_config(path=CONFIG_FILE):
    """Load settings from file or use defaults"""
    try:
        if os.path.exists(path):
            with open(path, 'r') as f:
                return _validated(json.load(f))
    except (OSError, ValueError) as e:
        # If the file is unreadable or corrupt, use defaults
        logger.warning("ignoring unreadable config %s: %s", path, e)
    return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config, path=CONFIG_FILE):
    """Save settings to file, returns True on success"""
    try:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = path + ".tmp"
        with open(tmp_path, 'w') as f:
            json.dump(config, f, indent=2)
        os.replace(tmp_path, path)
        return True
    except OSError as e:
        logger.warning("could not save config %s: %s", path, e)
        return False


class ConfigCache:
    """Thread safe in-memory view of the config file"""

    def __init__(self, path=CONFIG_FILE, ttl=CACHE_TTL, clock=time.monotonic):
        self.path = path
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.RLock()
        self._config = load_config(path)
        self._loaded_at = clock()
        self._dirty = False

    @property
    def dirty(self):
        with self._lock:
            return self._dirty

    def _refresh(self):
        # Caller holds the lock
        if self._dirty or self._clock() - self._loaded_at < self.ttl:
            return
        self._config = load_config(self.path)
        self._loaded_at = self._clock()

    def get(self, key, default=None):
        with self._lock:
            self._refresh()
            value = self._config.get(key, default)
            return copy.deepcopy(value)

    def set(self, key, value):
        with self._lock:
            if self._config.get(key) == value:
                return
            self._config[key] = value
            self._dirty = True

    def project(self, name):
        """Compose metadata remembered for a project, or None"""
        with self._lock:
            self._refresh()
            info = self._config["compose_projects"].get(name)
            return copy.deepcopy(info) if info else None

    def update_project(self, name, config_files, working_dir):
        if not name or not (config_files or working_dir):
            return
        entry = {"config_files": list(config_files), "working_dir": working_dir or ""}
        with self._lock:
            projects = self._config["compose_projects"]
            if projects.get(name) == entry:
                return
            projects[name] = entry
            self._dirty = True

    def flush_if_dirty(self):
        """Write the cache to disk if anything changed, returns True if written"""
        with self._lock:
            if not self._dirty:
                return False
            snapshot = copy.deepcopy(self._config)
            self._dirty = False
        if save_config(snapshot, self.path):
            return True
        with self._lock:
            self._dirty = True
        return False
