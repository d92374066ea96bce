# kboot_bot/runtime/boot_orchestrator.py
"""
Boot sequencing for kabuStation and TradeWebApp.

Operator actions (one HTTP request each, one linear attempt, never retried):
  authenticate_terminal()  GET /bootauthkabus  probe -> launch+settle (if needed) -> login script
  api_authenticate()       GET /apiauth        API password -> token -> TokenStore
  launch_trade_client()    GET /bootapp        token -> launch TradeWebApp -> settle -> liveness probe
  report_pids()            GET /pid            last-known PIDs

Every BootError (and any unexpected exception) is caught here and returned as an
ok=False BootResult; nothing propagates to the web layer.

Known hazard: there is no cross-action lock. Two overlapping authenticate_terminal()
calls can both see "not running" and both launch kabuStation. Accepted for
single-operator use.
"""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional, Union

from kboot_bot.broker.token_gateway import TokenGateway
from kboot_bot.config.env_bot import BootConfig
from kboot_bot.config.error_handler_bot import (
    BootError,
    CrashedImmediatelyError,
    NotAuthenticatedError,
    ScriptError,
    handle,
)
from kboot_bot.runtime.boot_targets import (
    inject_token,
    resolve_kabus_target,
    resolve_login_script,
    resolve_tradeapp_target,
    resolve_tradeapp_url,
    tradeapp_exe_configured,
)
from kboot_bot.support.pid_registry import PidRegistry
from kboot_bot.support.process_launcher import ProcessLauncher, UrlOpener
from kboot_bot.support.process_probe import ProcessProbe, get_probe
from kboot_bot.support.script_runner import ScriptRunner
from kboot_bot.support.token_store import TokenStore
from kboot_bot.support.utils_log import log_event


@dataclass
class BootResult:
    ok: bool
    message: str
    error: Optional[str] = None
    detail: Optional[str] = None
    output: Optional[str] = None
    pid: Optional[int] = None
    pids: Optional[Union[List[int], Dict[str, Optional[int]]]] = None
    alive: Optional[Dict[str, bool]] = None
    started: Optional[bool] = None
    url: Optional[str] = None
    http_status: int = 200

    @classmethod
    def success(cls, message: str, **fields) -> "BootResult":
        fields.pop("error", None)
        fields.pop("detail", None)
        return cls(ok=True, message=message, **fields)

    @classmethod
    def failure(cls, exc: Exception, category: str, **fields) -> "BootResult":
        if isinstance(exc, BootError):
            return cls(ok=False, message=exc.message, error=category, detail=exc.detail,
                       http_status=exc.http_status, **fields)
        return cls(ok=False, message="Unexpected error during boot action", error=category,
                   detail=str(exc), http_status=500, **fields)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("http_status")
        return {k: v for k, v in data.items() if v is not None or k in ("ok", "message")}


class BootOrchestrator:
    def __init__(
        self,
        cfg: BootConfig,
        token_store: TokenStore,
        probe: ProcessProbe,
        launcher: ProcessLauncher,
        script_runner: ScriptRunner,
        gateway: TokenGateway,
        url_opener: Optional[UrlOpener] = None,
        pid_registry: Optional[PidRegistry] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.cfg = cfg
        self.token_store = token_store
        self.probe = probe
        self.launcher = launcher
        self.script_runner = script_runner
        self.gateway = gateway
        self.url_opener = url_opener or UrlOpener()
        self.pid_registry = pid_registry or PidRegistry()
        self.sleep = sleep

    # ------------------------------------------------------------------
    # Boundary
    # ------------------------------------------------------------------

    def _run(self, action: str, step: Callable[[dict], BootResult]) -> BootResult:
        ctx: Dict[str, Any] = {}
        try:
            result = step(ctx)
        except BootError as e:
            category = handle(e, action=action)
            if isinstance(e, ScriptError):
                ctx["output"] = e.output
            if isinstance(e, CrashedImmediatelyError) and e.pid is not None:
                ctx["pid"] = e.pid
            result = BootResult.failure(e, category, **ctx)
        except Exception as e:
            category = handle(e, action=action)
            result = BootResult.failure(e, category, **ctx)
        log_event("boot_orchestrator", f"{action} -> ok={result.ok}",
                  level="info" if result.ok else "warning",
                  extra={"error": result.error, "pid": result.pid, "started": result.started})
        return result

    # ------------------------------------------------------------------
    # Action A: launch (if needed) and log in to kabuStation
    # ------------------------------------------------------------------

    def authenticate_terminal(self) -> BootResult:
        return self._run("authenticate_terminal", self._authenticate_terminal)

    def _authenticate_terminal(self, ctx: dict) -> BootResult:
        kabus = self.cfg.kabus
        target = resolve_kabus_target(self.cfg)

        running = self.probe.find_pids(target.image_name)
        if not running:
            handle_ = self.launcher.launch(target.executable_path, target.arguments, target.working_directory)
            self.pid_registry.record("kabus", handle_.pid)
            ctx.update(started=True, pid=handle_.pid, pids=[handle_.pid])
            log_event("boot_orchestrator", f"kabuStation started; settling {kabus.settle_seconds:g}s",
                      extra={"pid": handle_.pid})
            self.sleep(kabus.settle_seconds)
        else:
            ctx.update(started=False, pids=running, pid=running[0])
            self.pid_registry.record("kabus", running[0])
            log_event("boot_orchestrator", "kabuStation already running", extra={"pids": running})

        script = resolve_login_script(self.cfg)
        output = self.script_runner.run(
            script,
            "-ExePath", target.executable_path,
            "-TimeoutSeconds", str(kabus.script_timeout_seconds),
        )
        ctx["output"] = output
        return BootResult.success("kabuStation login automation completed", **ctx)

    # ------------------------------------------------------------------
    # Action A': token exchange
    # ------------------------------------------------------------------

    def api_authenticate(self) -> BootResult:
        return self._run("api_authenticate", self._api_authenticate)

    def _api_authenticate(self, ctx: dict) -> BootResult:
        token = self.gateway.authenticate(self.cfg.system.apipw)
        self.token_store.set(token)
        log_event("boot_orchestrator", "Session token stored")
        return BootResult.success("kabuStation API token acquired")

    # ------------------------------------------------------------------
    # Action B: launch TradeWebApp with the stored token
    # ------------------------------------------------------------------

    def launch_trade_client(self) -> BootResult:
        return self._run("launch_trade_client", self._launch_trade_client)

    def _launch_trade_client(self, ctx: dict) -> BootResult:
        token = self.token_store.get()
        if token == "":
            raise NotAuthenticatedError()

        if not tradeapp_exe_configured(self.cfg):
            url = resolve_tradeapp_url(self.cfg)
            if url:
                ctx["url"] = url
                self.url_opener.open(url)
                return BootResult.success("TradeWebApp opened in the browser", **ctx)

        target = resolve_tradeapp_target(self.cfg)
        handle_ = self.launcher.launch(
            target.executable_path,
            inject_token(target.arguments, token),
            target.working_directory,
        )
        self.pid_registry.record("tradeapp", handle_.pid)
        ctx["pid"] = handle_.pid

        settle_ms = self.cfg.tradeapp.settle_ms
        self.sleep(settle_ms / 1000.0)
        if not self.probe.is_alive(handle_.pid):
            raise CrashedImmediatelyError(
                f"TradeWebApp exited within {settle_ms} ms of launch",
                detail="check the token and the TRADEAPP config file",
                pid=handle_.pid,
            )
        return BootResult.success("TradeWebApp launched", **ctx)

    # ------------------------------------------------------------------
    # PID report
    # ------------------------------------------------------------------

    def report_pids(self) -> BootResult:
        return self._run("report_pids", self._report_pids)

    def _report_pids(self, ctx: dict) -> BootResult:
        snapshot = self.pid_registry.snapshot()
        pids = {name: entry["pid"] for name, entry in snapshot.items()}
        alive = {name: (pid is not None and self.probe.is_alive(pid)) for name, pid in pids.items()}
        return BootResult.success("Last-known PIDs", pids=pids, alive=alive)


def build_orchestrator(cfg: BootConfig, token_store: Optional[TokenStore] = None) -> BootOrchestrator:
    """
    Wire the production collaborators from config.
    SCRIPT_GRACE_SECONDS = 0 disables the supervisory script timeout.
    """
    kabus = cfg.kabus
    supervisory = kabus.script_timeout_seconds + kabus.script_grace_seconds if kabus.script_grace_seconds > 0 else None
    return BootOrchestrator(
        cfg=cfg,
        token_store=token_store if token_store is not None else TokenStore(),
        probe=get_probe(cfg.system.probe),
        launcher=ProcessLauncher(),
        script_runner=ScriptRunner(
            interpreter=cfg.system.powershell,
            capture_output=cfg.system.capture_output,
            timeout=supervisory,
        ),
        gateway=TokenGateway(api_url=kabus.api_url, timeout=kabus.api_timeout),
    )
