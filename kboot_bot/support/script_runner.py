# kboot_bot/support/script_runner.py
# Runs the login-automation PowerShell script and waits for it to finish.
# Command: <interpreter> -NoProfile -NonInteractive -ExecutionPolicy Bypass -File <script> <args...>
# No retries here; the orchestrator makes a single attempt per operator action.

import subprocess
from pathlib import Path
from typing import Optional

from kboot_bot.config.error_handler_bot import ScriptError
from kboot_bot.support.utils_log import log_event

DEFAULT_INTERPRETER = "powershell.exe"
POLICY_ARGS = ["-NoProfile", "-NonInteractive", "-ExecutionPolicy", "Bypass"]


def _as_text(data) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return str(data)


class ScriptRunner:
    """
    capture_output=False discards stdout/stderr so operator secrets typed by the
    script never reach responses or logs.
    timeout is the supervisory limit in seconds (None waits forever); the script
    also enforces its own -TimeoutSeconds.
    """

    def __init__(self, interpreter: str = DEFAULT_INTERPRETER, capture_output: bool = True,
                 timeout: Optional[float] = None):
        self.interpreter = interpreter or DEFAULT_INTERPRETER
        self.capture_output = capture_output
        self.timeout = timeout

    def build_command(self, script_path: str, *args) -> list:
        return [self.interpreter, *POLICY_ARGS, "-File", str(script_path), *[str(a) for a in args]]

    def run(self, script_path: str, *args) -> str:
        """
        Returns the trimmed combined output ("" when capture is off).
        Raises ScriptError on spawn failure, non-zero exit, or supervisory timeout;
        the captured output is attached to the error.
        """
        if not Path(script_path).is_file():
            raise ScriptError(f"Login script not found: {script_path}")

        argv = self.build_command(script_path, *args)
        sink = subprocess.PIPE if self.capture_output else subprocess.DEVNULL
        log_event("script_runner", f"Running {Path(script_path).name}", level="debug",
                  extra={"interpreter": self.interpreter, "timeout": self.timeout})
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=sink,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            output = _as_text(e.output).strip() if self.capture_output else ""
            raise ScriptError(
                f"Login script timed out after {self.timeout:g}s",
                detail="supervisory timeout",
                output=output,
            ) from e
        except (OSError, subprocess.SubprocessError) as e:
            raise ScriptError("Failed to start script interpreter", detail=str(e)) from e

        output = (proc.stdout or "").strip() if self.capture_output else ""
        log_event("script_runner", f"{Path(script_path).name} exited with code {proc.returncode}",
                  extra={"output_chars": len(output)})
        if proc.returncode != 0:
            raise ScriptError(
                f"Login script exited with code {proc.returncode}",
                detail=f"exit code {proc.returncode}",
                output=output,
                returncode=proc.returncode,
            )
        return output
