# kboot_bot/support/utils_log.py
# Provides event logging and structured output utilities.
# Logs go to output/logs/{module}.log and stdout; a failing log write never breaks an action.
# Session tokens and API passwords must never be passed to this module.

import json
import re
import threading
from pathlib import Path

from kboot_bot.support.utils_time import utc_now

_WRITE_LOCK = threading.Lock()

# Defaults until the config is loaded: info level, logging on, json lines
_SETTINGS = {
    "DEBUG_LOG_LEVEL": "info",
    "ENABLE_LOGGING": True,
    "LOG_FORMAT": "json",
}


def configure_log_settings(debug: bool = False, enable: bool = True, log_format: str = "json"):
    """
    Apply SYSTEM.DEBUG and friends from the loaded config.
    """
    _SETTINGS["DEBUG_LOG_LEVEL"] = "debug" if debug else "info"
    _SETTINGS["ENABLE_LOGGING"] = bool(enable)
    _SETTINGS["LOG_FORMAT"] = "text" if str(log_format).lower() == "text" else "json"


def get_log_settings():
    """
    Returns (DEBUG_LOG_LEVEL, ENABLE_LOGGING, LOG_FORMAT).
    """
    return _SETTINGS["DEBUG_LOG_LEVEL"], _SETTINGS["ENABLE_LOGGING"], _SETTINGS["LOG_FORMAT"]


def sanitize_filename(filename: str, max_length=100):
    """
    Sanitizes and truncates filename to avoid filesystem errors.
    """
    filename = re.sub(r"[^\w\-_\. ]", "_", filename)
    if len(filename) > max_length:
        filename = filename[:max_length]
    return filename


def get_logger(module_name: str):
    """
    Returns a bound logger object for the given module.
    Supports: .info(), .debug(), .error(), .warn(), .warning()
    """
    class BoundLogger:
        def info(self, message, extra=None):
            log_event(module_name, message, level="info", extra=extra)
        def debug(self, message, extra=None):
            log_event(module_name, message, level="debug", extra=extra)
        def error(self, message, extra=None):
            log_event(module_name, message, level="error", extra=extra)
        def warn(self, message, extra=None):
            log_event(module_name, message, level="warning", extra=extra)
        def warning(self, message, extra=None):
            self.warn(message, extra=extra)
    return BoundLogger()


def format_entry(entry: dict, log_format: str) -> str:
    if log_format == "json":
        return json.dumps(entry, ensure_ascii=False)
    line = f"[{entry['timestamp']}] {entry['level'].upper()} - {entry['module']}: {entry['message']}"
    if entry.get("extra"):
        line += f" | {json.dumps(entry['extra'], ensure_ascii=False)}"
    return line


def log_event(module: str, message: str, level: str = "info", extra: dict = None):
    """
    Logs runtime events to disk and prints to stdout.
    Debug entries are dropped unless SYSTEM.DEBUG is on.
    """
    DEBUG_LOG_LEVEL, ENABLE_LOGGING, LOG_FORMAT = get_log_settings()
    if not ENABLE_LOGGING:
        return

    level = (level or "info").lower()
    if DEBUG_LOG_LEVEL == "info" and level == "debug":
        return

    log_entry = {
        "timestamp": utc_now().isoformat(),
        "module": module,
        "level": level,
        "message": message,
    }
    if extra:
        log_entry["extra"] = extra

    line = format_entry(log_entry, LOG_FORMAT)
    print(line, flush=True)

    try:
        # Import here to avoid circular import at module level
        from kboot_bot.support.path_resolver import get_output_path
        log_path = Path(get_output_path("logs", f"{sanitize_filename(module)}.log"))
        with _WRITE_LOCK:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
    except OSError as e:
        print(f"[utils_log] ERROR: Failed to write log entry. {e}", flush=True)

