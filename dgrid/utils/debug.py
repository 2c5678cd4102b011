"""
dgrid - Debug Logging Module
-----------
The terminal belongs to curses, so diagnostics go to a rotating file
(~/.dgrid/debug.log). Logging stays at WARNING until debug is switched on
through DGRID_DEBUG=1, the "debug" config key or the D key at runtime.
"""
import logging
import logging.handlers
import os

LOG_DIR = os.path.expanduser("~/.dgrid")
LOG_FILE = os.path.join(LOG_DIR, "debug.log")
MAX_LOG_BYTES = 10 * 1024 * 1024

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"

_handler = None


def env_debug_enabled():
    return os.environ.get("DGRID_DEBUG", "").lower() in ("1", "true", "yes", "on")


def setup_logging(enabled=False, log_file=LOG_FILE):
    """Attach the file handler to the dgrid logger"""
    global _handler
    root = logging.getLogger("dgrid")
    if _handler is None:
        try:
            os.makedirs(os.path.dirname(log_file), exist_ok=True)
            _handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=MAX_LOG_BYTES, backupCount=1, encoding="utf-8"
            )
        except OSError:
            # Read-only home, keep logging quiet rather than writing to the tty
            _handler = logging.NullHandler()
        _handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_handler)
        root.propagate = False
    set_debug(enabled)
    root.info("=== dgrid session started ===")
    return root


def set_debug(enabled):
    logging.getLogger("dgrid").setLevel(logging.DEBUG if enabled else logging.WARNING)


def debug_enabled():
    return logging.getLogger("dgrid").isEnabledFor(logging.DEBUG)


def toggle_debug():
    """Flip debug logging, returns the new state"""
    enabled = not debug_enabled()
    set_debug(enabled)
    logging.getLogger("dgrid").info("debug logging %s", "enabled" if enabled else "disabled")
    return enabled
