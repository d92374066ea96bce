# kboot_bot/test/test_boot_orchestrator.py
# Sequencing tests for the three operator actions and the PID report.
# THIS TEST MUST NEVER ATTEMPT TO LAUNCH REAL PROCESSES: all collaborators are fakes.

import threading

from conftest import FakeGateway, FakeLauncher, FakeProbe, FakeScriptRunner

from kboot_bot.config.error_handler_bot import ProbeError
from kboot_bot.support.token_store import TokenStore


def _assert_shape(result):
    data = result.to_dict()
    assert "ok" in data and "message" in data
    if data["ok"]:
        assert "error" not in data
    else:
        assert data["error"] and data["message"]
    return data


# ------------------------------
# Action A: authenticate terminal
# ------------------------------

def test_terminal_not_running_is_launched_then_settled_then_logged_in(make_orchestrator, boot_config):
    launcher = FakeLauncher(first_pid=1234)
    runner = FakeScriptRunner(output="pressed")
    orch = make_orchestrator(probe=FakeProbe(), launcher=launcher, script_runner=runner)

    result = orch.authenticate_terminal()
    data = _assert_shape(result)

    assert data["ok"] is True
    assert data["started"] is True
    assert data["pid"] == 1234
    assert data["output"] == "pressed"
    assert launcher.calls[0]["path"] == boot_config.kabus.path
    assert orch.sleep.calls == [10.0]
    script, args = runner.calls[0]
    assert script.endswith("Click-KabuStationLogin.ps1")
    assert args == ("-ExePath", boot_config.kabus.path, "-TimeoutSeconds", "60")
    assert orch.pid_registry.get("kabus") == 1234


def test_terminal_already_running_skips_launch_and_settle(make_orchestrator):
    probe = FakeProbe(running={"KabuS.exe": [777, 778]})
    launcher = FakeLauncher()
    runner = FakeScriptRunner()
    orch = make_orchestrator(probe=probe, launcher=launcher, script_runner=runner)

    data = _assert_shape(orch.authenticate_terminal())

    assert data["ok"] is True
    assert data["started"] is False
    assert data["pids"] == [777, 778]
    assert data["pid"] == 777
    assert launcher.calls == []
    assert orch.sleep.calls == []
    assert len(runner.calls) == 1


def test_terminal_process_table_is_queried_once(make_orchestrator):
    probe = FakeProbe(running={"KabuS.exe": [777]})
    orch = make_orchestrator(probe=probe)
    assert orch.authenticate_terminal().ok
    assert probe.calls == [("find_pids", "KabuS.exe")]

    probe = FakeProbe()
    orch = make_orchestrator(probe=probe)
    assert orch.authenticate_terminal().started is True
    assert probe.calls == [("find_pids", "KabuS.exe")]


def test_settle_delay_is_configurable(make_orchestrator, boot_config):
    boot_config.kabus.settle_seconds = 2.5
    boot_config.kabus.script_timeout_seconds = 15
    runner = FakeScriptRunner()
    orch = make_orchestrator(script_runner=runner)
    orch.authenticate_terminal()
    assert orch.sleep.calls == [2.5]
    assert runner.calls[0][1][-1] == "15"


def test_script_failure_reports_output_and_started_without_killing(make_orchestrator):
    launcher = FakeLauncher(first_pid=99)
    runner = FakeScriptRunner(output="window not found", fail=True)
    orch = make_orchestrator(launcher=launcher, script_runner=runner)

    result = orch.authenticate_terminal()
    data = _assert_shape(result)

    assert data["ok"] is False
    assert data["error"] == "ScriptError"
    assert data["output"] == "window not found"
    assert data["started"] is True
    assert data["pid"] == 99
    assert result.http_status == 500
    assert orch.pid_registry.get("kabus") == 99


def test_unresolvable_terminal_path_is_resolution_error(make_orchestrator, boot_config, tmp_path):
    boot_config.kabus.path = str(tmp_path / "missing" / "KabuS.exe")
    launcher = FakeLauncher()
    runner = FakeScriptRunner()
    orch = make_orchestrator(launcher=launcher, script_runner=runner)

    data = _assert_shape(orch.authenticate_terminal())
    assert data["ok"] is False
    assert data["error"] == "ResolutionError"
    assert launcher.calls == []
    assert runner.calls == []


def test_terminal_path_falls_back_to_env(make_orchestrator, boot_config, fake_exes, monkeypatch):
    boot_config.kabus.path = ""
    monkeypatch.setenv("KABUSTATION_EXE", fake_exes["kabus"])
    launcher = FakeLauncher()
    orch = make_orchestrator(launcher=launcher)
    assert orch.authenticate_terminal().ok is True
    assert launcher.calls[0]["path"] == fake_exes["kabus"]


def test_probe_failure_is_reported_not_raised(make_orchestrator):
    class BrokenProbe(FakeProbe):
        def find_pids(self, image_name):
            raise ProbeError("Failed to run tasklist", detail="not found")

    launcher = FakeLauncher()
    orch = make_orchestrator(probe=BrokenProbe(), launcher=launcher)
    data = _assert_shape(orch.authenticate_terminal())
    assert data["error"] == "ProbeError"
    assert data["detail"] == "not found"
    assert launcher.calls == []


def test_launch_failure_is_reported(make_orchestrator):
    runner = FakeScriptRunner()
    orch = make_orchestrator(launcher=FakeLauncher(error="permission denied"), script_runner=runner)
    data = _assert_shape(orch.authenticate_terminal())
    assert data["error"] == "LaunchError"
    assert runner.calls == []
    assert orch.sleep.calls == []


def test_overlapping_terminal_boots_can_double_launch(make_orchestrator):
    # Known hazard: no cross-action lock, both calls see "not running".
    barrier = threading.Barrier(2, timeout=5)

    class RacingProbe(FakeProbe):
        def find_pids(self, image_name):
            barrier.wait()
            return []

    launcher = FakeLauncher(first_pid=10)
    orch = make_orchestrator(probe=RacingProbe(), launcher=launcher)
    results = []
    threads = [threading.Thread(target=lambda: results.append(orch.authenticate_terminal())) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(results) == 2
    assert all(r.ok and r.started for r in results)
    assert len(launcher.calls) == 2
    assert orch.pid_registry.get("kabus") in (10, 11)


# ------------------------------
# Action A': API authenticate
# ------------------------------

def test_api_authenticate_stores_token_verbatim(make_orchestrator):
    store = TokenStore()
    orch = make_orchestrator(gateway=FakeGateway(tokens=(" tok with spaces ",)), token_store=store)
    data = _assert_shape(orch.api_authenticate())
    assert data["ok"] is True
    assert store.get() == " tok with spaces "
    assert "tok with spaces" not in str(data)


def test_api_authenticate_twice_overwrites(make_orchestrator):
    store = TokenStore()
    gateway = FakeGateway(tokens=("first", "second"))
    orch = make_orchestrator(gateway=gateway, token_store=store)
    assert orch.api_authenticate().ok
    assert store.get() == "first"
    assert orch.api_authenticate().ok
    assert store.get() == "second"
    assert gateway.calls == ["secret-pw", "secret-pw"]


def test_api_authenticate_empty_password_fails_without_side_effects(make_orchestrator, boot_config):
    boot_config.system.apipw = "   "
    store = TokenStore()
    launcher = FakeLauncher()
    runner = FakeScriptRunner()
    orch = make_orchestrator(token_store=store, launcher=launcher, script_runner=runner)
    data = _assert_shape(orch.api_authenticate())
    assert data["ok"] is False
    assert data["error"] == "AuthError"
    assert store.get() == ""
    assert launcher.calls == [] and runner.calls == []


def test_api_authenticate_failure_keeps_previous_token(make_orchestrator):
    store = TokenStore()
    store.set("old")
    orch = make_orchestrator(gateway=FakeGateway(error="http=401"), token_store=store)
    assert orch.api_authenticate().ok is False
    assert store.get() == "old"


# ------------------------------
# Action B: launch TradeWebApp
# ------------------------------

def test_launch_without_token_is_refused_and_never_launches(make_orchestrator):
    launcher = FakeLauncher()
    orch = make_orchestrator(launcher=launcher)
    result = orch.launch_trade_client()
    data = _assert_shape(result)
    assert data["ok"] is False
    assert data["error"] == "NotAuthenticatedError"
    assert result.http_status == 400
    assert launcher.calls == []


def test_launch_passes_conf_and_token_and_checks_survival(make_orchestrator, boot_config):
    store = TokenStore()
    store.set("tok-xyz")
    probe = FakeProbe(alive=True)
    launcher = FakeLauncher(first_pid=321)
    orch = make_orchestrator(probe=probe, launcher=launcher, token_store=store)

    data = _assert_shape(orch.launch_trade_client())

    assert data == {"ok": True, "message": "TradeWebApp launched", "pid": 321}
    call = launcher.calls[0]
    assert call["path"] == boot_config.tradeapp.path
    assert call["args"] == ["--config", boot_config.tradeapp.conf, "--token", "tok-xyz"]
    assert orch.sleep.calls == [0.5]
    assert ("is_alive", 321) in probe.calls
    assert orch.pid_registry.get("tradeapp") == 321


def test_launch_reports_immediate_crash_with_pid(make_orchestrator):
    store = TokenStore()
    store.set("tok")
    orch = make_orchestrator(probe=FakeProbe(alive=False), launcher=FakeLauncher(first_pid=654), token_store=store)
    data = _assert_shape(orch.launch_trade_client())
    assert data["ok"] is False
    assert data["error"] == "CrashedImmediatelyError"
    assert data["pid"] == 654


def test_launch_missing_conf_file_is_resolution_error(make_orchestrator, boot_config, tmp_path):
    boot_config.tradeapp.conf = str(tmp_path / "nope.toml")
    store = TokenStore()
    store.set("tok")
    launcher = FakeLauncher()
    orch = make_orchestrator(launcher=launcher, token_store=store)
    data = _assert_shape(orch.launch_trade_client())
    assert data["error"] == "ResolutionError"
    assert launcher.calls == []


def test_launch_without_conf_drops_config_flag(make_orchestrator, boot_config):
    boot_config.tradeapp.conf = ""
    store = TokenStore()
    store.set("tok")
    launcher = FakeLauncher()
    orch = make_orchestrator(launcher=launcher, token_store=store)
    assert orch.launch_trade_client().ok
    assert launcher.calls[0]["args"] == ["--token", "tok"]


def test_browser_variant_opens_url_when_no_executable(make_orchestrator, boot_config, monkeypatch):
    boot_config.tradeapp.path = ""
    monkeypatch.setenv("TRADEWEBAPP_URL", "http://localhost:5173/")
    store = TokenStore()
    store.set("tok")
    launcher = FakeLauncher()
    orch = make_orchestrator(launcher=launcher, token_store=store)
    data = _assert_shape(orch.launch_trade_client())
    assert data["ok"] is True
    assert data["url"] == "http://localhost:5173/"
    assert orch.url_opener.opened == ["http://localhost:5173/"]
    assert launcher.calls == []


def test_unconfigured_trade_client_is_resolution_error(make_orchestrator, boot_config):
    boot_config.tradeapp.path = ""
    store = TokenStore()
    store.set("tok")
    data = make_orchestrator(token_store=store).launch_trade_client().to_dict()
    assert data["error"] == "ResolutionError"


# ------------------------------
# End-to-end handoff and boundary
# ------------------------------

def test_full_handoff_uses_exactly_the_issued_token(make_orchestrator):
    store = TokenStore()
    launcher = FakeLauncher(first_pid=100)
    orch = make_orchestrator(gateway=FakeGateway(tokens=("T0KEN",)), launcher=launcher, token_store=store)

    assert orch.authenticate_terminal().ok
    assert orch.api_authenticate().ok
    assert orch.launch_trade_client().ok
    assert launcher.calls[-1]["args"][-1] == "T0KEN"


def test_unexpected_exception_becomes_failure(make_orchestrator):
    class ExplodingRunner(FakeScriptRunner):
        def run(self, script_path, *args):
            raise RuntimeError("boom")

    data = _assert_shape(make_orchestrator(script_runner=ExplodingRunner()).authenticate_terminal())
    assert data["ok"] is False
    assert data["error"] == "UnexpectedError"
    assert data["detail"] == "boom"


def test_report_pids(make_orchestrator):
    orch = make_orchestrator(probe=FakeProbe(alive=lambda pid: pid == 42))
    data = orch.report_pids().to_dict()
    assert data["pids"] == {"kabus": None, "tradeapp": None}
    assert data["alive"] == {"kabus": False, "tradeapp": False}

    orch.pid_registry.record("kabus", 42)
    orch.pid_registry.record("tradeapp", 43)
    data = orch.report_pids().to_dict()
    assert data["pids"] == {"kabus": 42, "tradeapp": 43}
    assert data["alive"] == {"kabus": True, "tradeapp": False}


def test_default_login_script_falls_back_to_bundled_copy(make_orchestrator, boot_config, tmp_path, monkeypatch):
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    boot_config.source_path = str(elsewhere / "auth.toml")
    runner = FakeScriptRunner()
    orch = make_orchestrator(script_runner=runner)

    assert orch.authenticate_terminal().ok
    script, _ = runner.calls[0]
    assert script.replace("\\", "/").endswith("kboot_bot/cmd/Click-KabuStationLogin.ps1")
