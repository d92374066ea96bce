# kboot_bot/config/error_handler_bot.py
# Error taxonomy for boot orchestration and centralized classified error logging.
# Every action-level error is a BootError; only ConfigError may end the process (startup only).

import traceback
from typing import Optional

from kboot_bot.support.utils_log import log_event


class BootError(Exception):
    """
    Base class for every orchestrated-action failure.
    `message` is the operator-facing summary, `detail` the raw diagnostic (tool output, HTTP body).
    """
    http_status = 500
    default_message = "Boot action failed"

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        self.detail = detail
        super().__init__(self.message)

    @property
    def category(self) -> str:
        return type(self).__name__


class ConfigError(BootError):
    default_message = "Failed to load configuration"


class ResolutionError(BootError):
    default_message = "Executable or configuration path could not be resolved"


class ProbeError(BootError):
    default_message = "Failed to query the process table"


class LaunchError(BootError):
    default_message = "Failed to launch process"


class ScriptError(BootError):
    default_message = "Login automation script failed"

    def __init__(self, message=None, detail=None, output: str = "", returncode: Optional[int] = None):
        super().__init__(message, detail)
        self.output = output or ""
        self.returncode = returncode


class AuthError(BootError):
    default_message = "Token exchange failed"

    def __init__(self, message=None, detail=None, status_code: Optional[int] = None):
        super().__init__(message, detail)
        self.status_code = status_code


class NotAuthenticatedError(BootError):
    http_status = 400
    default_message = "No session token; run API authenticate first"


class CrashedImmediatelyError(BootError):
    default_message = "Process exited immediately after launch"

    def __init__(self, message=None, detail=None, pid: Optional[int] = None):
        super().__init__(message, detail)
        self.pid = pid


ERROR_CATEGORIES = [
    "ConfigError",
    "ResolutionError",
    "ProbeError",
    "LaunchError",
    "ScriptError",
    "AuthError",
    "NotAuthenticatedError",
    "CrashedImmediatelyError",
]


def handle(exception: Exception, action: str = "unknown") -> str:
    """
    Public entry point for the orchestrator boundary.
    Logs the error in a structured form and returns its category.
    Unknown exception types are classified as "UnexpectedError".
    """
    category = exception.category if isinstance(exception, BootError) else "UnexpectedError"
    if category not in ERROR_CATEGORIES:
        category = "UnexpectedError"

    extra = {
        "action": action,
        "error_type": category,
        "raw_exception": str(exception),
    }
    if isinstance(exception, BootError) and exception.detail:
        extra["detail"] = exception.detail
    if category == "UnexpectedError":
        extra["stack_trace"] = traceback.format_exc(limit=5)

    log_event("error_handler_bot", f"{action} failed: {category}", level="error", extra=extra)
    return category
