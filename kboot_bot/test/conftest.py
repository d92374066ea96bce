# kboot_bot/test/conftest.py
# Shared fixtures: isolated log output, fake collaborators and a ready-made BootConfig.
# THESE TESTS MUST NEVER LAUNCH kabuStation, TradeWebApp OR POWERSHELL.

import threading

import pytest

from kboot_bot.config.env_bot import BootConfig
from kboot_bot.config.error_handler_bot import AuthError, LaunchError, ScriptError
from kboot_bot.runtime.boot_orchestrator import BootOrchestrator
from kboot_bot.support.pid_registry import PidRegistry
from kboot_bot.support.process_launcher import ProcessHandle
from kboot_bot.support.process_probe import ProcessProbe
from kboot_bot.support.token_store import TokenStore
from kboot_bot.support.utils_log import configure_log_settings


@pytest.fixture(autouse=True)
def isolated_output(tmp_path, monkeypatch):
    out = tmp_path / "output"
    monkeypatch.setenv("KBOOT_OUTPUT_DIR", str(out))
    for name in ("KABUSTATION_EXE", "LOCALAPPDATA", "TRADEAPP_EXE", "TRADEWEBAPP_URL", "KBOOT_HOST", "KBOOT_PORT"):
        monkeypatch.delenv(name, raising=False)
    configure_log_settings(debug=True)
    yield out
    configure_log_settings(debug=False)


class FakeProbe(ProcessProbe):
    name = "fake"

    def __init__(self, running=None, alive=True):
        self.running = {k.lower(): list(v) for k, v in (running or {}).items()}
        self.alive = alive
        self.calls = []

    def find_pids(self, image_name):
        self.calls.append(("find_pids", image_name))
        return list(self.running.get(image_name.lower(), []))

    def is_alive(self, pid):
        self.calls.append(("is_alive", pid))
        return self.alive(pid) if callable(self.alive) else self.alive


class FakeLauncher:
    def __init__(self, first_pid=4000, error=None):
        self.calls = []
        self._next = first_pid
        self.error = error
        self._lock = threading.Lock()

    def launch(self, path, args=None, working_dir=None):
        with self._lock:
            self.calls.append({"path": path, "args": list(args or []), "working_dir": working_dir})
            if self.error:
                raise LaunchError("Failed to launch", detail=self.error)
            pid = self._next
            self._next += 1
        return ProcessHandle(pid=pid, image_name=path.replace("\\", "/").rsplit("/", 1)[-1])


class FakeUrlOpener:
    def __init__(self):
        self.opened = []

    def open(self, url):
        self.opened.append(url)


class FakeScriptRunner:
    def __init__(self, output="login ok", fail=False):
        self.output = output
        self.fail = fail
        self.calls = []

    def run(self, script_path, *args):
        self.calls.append((script_path, args))
        if self.fail:
            raise ScriptError("Login script exited with code 1", detail="exit code 1", output=self.output, returncode=1)
        return self.output


class FakeGateway:
    def __init__(self, tokens=("tok-1",), error=None):
        self.tokens = list(tokens)
        self.error = error
        self.calls = []

    def authenticate(self, password):
        self.calls.append(password)
        if not (password or "").strip():
            raise AuthError("API password is not configured (SYSTEM.APIPW)")
        if self.error:
            raise AuthError(self.error)
        return self.tokens.pop(0) if len(self.tokens) > 1 else self.tokens[0]


class SleepRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def fake_exes(tmp_path):
    kabus = tmp_path / "kabuStation" / "KabuS.exe"
    kabus.parent.mkdir()
    kabus.write_text("")
    tradeapp = tmp_path / "tradeapp" / "TradeWebApp.exe"
    tradeapp.parent.mkdir()
    tradeapp.write_text("")
    conf = tmp_path / "tradeapp" / "tradeapp.toml"
    conf.write_text("")
    script = tmp_path / "cmd" / "Click-KabuStationLogin.ps1"
    script.parent.mkdir()
    script.write_text("exit 0")
    return {"kabus": str(kabus), "tradeapp": str(tradeapp), "conf": str(conf), "script": str(script)}


@pytest.fixture
def boot_config(fake_exes, tmp_path):
    cfg = BootConfig(source_path=str(tmp_path / "auth.toml"))
    cfg.system.apipw = "secret-pw"
    cfg.kabus.path = fake_exes["kabus"]
    cfg.kabus.login_script = "cmd/Click-KabuStationLogin.ps1"
    cfg.tradeapp.path = fake_exes["tradeapp"]
    cfg.tradeapp.conf = fake_exes["conf"]
    return cfg


@pytest.fixture
def make_orchestrator(boot_config):
    def _make(probe=None, launcher=None, script_runner=None, gateway=None, token_store=None, cfg=None):
        return BootOrchestrator(
            cfg=cfg or boot_config,
            token_store=token_store if token_store is not None else TokenStore(),
            probe=probe or FakeProbe(),
            launcher=launcher or FakeLauncher(),
            script_runner=script_runner or FakeScriptRunner(),
            gateway=gateway or FakeGateway(),
            url_opener=FakeUrlOpener(),
            pid_registry=PidRegistry(),
            sleep=SleepRecorder(),
        )
    return _make
