# kboot_bot/config/env_bot.py
# summary: Loads and validates the TOML boot configuration (auth.toml by default).
# Loading is explicit (load_config); nothing is read at module import time.
# Missing or unparseable configuration raises ConfigError, which is fatal at startup only.

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from kboot_bot.config.error_handler_bot import ConfigError
from kboot_bot.support.utils_log import log_event

DEFAULT_CONFIG_PATH = "auth.toml"
DEFAULT_API_URL = "http://localhost:18080/kabusapi"
DEFAULT_LOGIN_SCRIPT = str(Path("cmd") / "Click-KabuStationLogin.ps1")
DEFAULT_TRADEAPP_ARGS = ["--config", "{conf}", "--token", "{token}"]


@dataclass
class SystemConfig:
    apipw: str = ""
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 3000
    probe: str = "auto"
    powershell: str = "powershell.exe"
    capture_output: bool = True
    log_format: str = "json"


@dataclass
class KabusConfig:
    path: str = ""
    api_url: str = DEFAULT_API_URL
    api_timeout: float = 10.0
    login_script: str = DEFAULT_LOGIN_SCRIPT
    settle_seconds: float = 10.0
    script_timeout_seconds: int = 60
    script_grace_seconds: float = 30.0


@dataclass
class TradeAppConfig:
    path: str = ""
    conf: str = ""
    workdir: str = ""
    args: List[str] = field(default_factory=lambda: list(DEFAULT_TRADEAPP_ARGS))
    settle_ms: int = 500
    url: str = ""


@dataclass
class BootConfig:
    system: SystemConfig = field(default_factory=SystemConfig)
    kabus: KabusConfig = field(default_factory=KabusConfig)
    tradeapp: TradeAppConfig = field(default_factory=TradeAppConfig)
    source_path: Optional[str] = None

    @property
    def base_dir(self) -> Path:
        """Directory relative paths (login script, etc.) resolve against."""
        if self.source_path:
            return Path(self.source_path).resolve().parent
        return Path.cwd()


# TOML section -> {TOML key: (attribute, type)}
_SCHEMA = {
    "SYSTEM": {
        "APIPW": ("apipw", str),
        "DEBUG": ("debug", bool),
        "HOST": ("host", str),
        "PORT": ("port", int),
        "PROBE": ("probe", str),
        "POWERSHELL": ("powershell", str),
        "CAPTURE_OUTPUT": ("capture_output", bool),
        "LOG_FORMAT": ("log_format", str),
    },
    "KABUS": {
        "PATH": ("path", str),
        "API_URL": ("api_url", str),
        "API_TIMEOUT": ("api_timeout", float),
        "LOGIN_SCRIPT": ("login_script", str),
        "SETTLE_SECONDS": ("settle_seconds", float),
        "SCRIPT_TIMEOUT_SECONDS": ("script_timeout_seconds", int),
        "SCRIPT_GRACE_SECONDS": ("script_grace_seconds", float),
    },
    "TRADEAPP": {
        "PATH": ("path", str),
        "CONF": ("conf", str),
        "WORKDIR": ("workdir", str),
        "ARGS": ("args", list),
        "SETTLE_MS": ("settle_ms", int),
        "URL": ("url", str),
    },
}

_PROBE_CHOICES = ("auto", "tasklist", "psutil")


def _coerce(section: str, key: str, value: Any, kind: type) -> Any:
    where = f"{section}.{key}"
    if kind is bool:
        if not isinstance(value, bool):
            raise ConfigError(f"Invalid value for {where}: expected true/false", detail=repr(value))
        return value
    if kind is int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"Invalid value for {where}: expected an integer", detail=repr(value))
        if value < 0:
            raise ConfigError(f"Invalid value for {where}: must not be negative", detail=repr(value))
        return value
    if kind is float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"Invalid value for {where}: expected a number", detail=repr(value))
        if value < 0:
            raise ConfigError(f"Invalid value for {where}: must not be negative", detail=repr(value))
        return float(value)
    if kind is list:
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"Invalid value for {where}: expected a list of strings", detail=repr(value))
        return list(value)
    if not isinstance(value, str):
        raise ConfigError(f"Invalid value for {where}: expected a string", detail=repr(value))
    return value


def parse_config(data: Dict[str, Any], source_path: Optional[str] = None) -> BootConfig:
    """
    Build a BootConfig from an already-parsed TOML mapping.
    Unknown sections/keys are ignored; known keys are type-checked.
    """
    cfg = BootConfig(source_path=source_path)
    targets = {"SYSTEM": cfg.system, "KABUS": cfg.kabus, "TRADEAPP": cfg.tradeapp}

    for section, keys in _SCHEMA.items():
        raw = data.get(section, {})
        if not isinstance(raw, dict):
            raise ConfigError(f"Invalid configuration: [{section}] must be a table")
        for key, (attr, kind) in keys.items():
            if key in raw:
                setattr(targets[section], attr, _coerce(section, key, raw[key], kind))

    cfg.system.probe = cfg.system.probe.strip().lower() or "auto"
    if cfg.system.probe not in _PROBE_CHOICES:
        raise ConfigError(
            f"Invalid value for SYSTEM.PROBE: expected one of {', '.join(_PROBE_CHOICES)}",
            detail=cfg.system.probe,
        )
    if not (0 < cfg.system.port < 65536):
        raise ConfigError("Invalid value for SYSTEM.PORT: out of range", detail=str(cfg.system.port))
    return cfg


def load_config(path: str = DEFAULT_CONFIG_PATH) -> BootConfig:
    """
    Read and parse the TOML configuration file.
    Also loads a .env next to the config (and in the CWD) without overriding real env vars.
    Raises ConfigError on missing/unreadable/unparseable files.
    """
    p = Path(path).expanduser()
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise ConfigError(f"Failed to load config ({path})", detail=str(e)) from e

    try:
        data = tomllib.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Failed to parse config ({path})", detail=str(e)) from e

    cfg = parse_config(data, source_path=str(p))

    env_file = p.resolve().parent / ".env"
    if env_file.is_file():
        load_dotenv(dotenv_path=env_file, override=False)
    cwd_env = Path.cwd() / ".env"
    if cwd_env.is_file() and cwd_env.resolve() != env_file:
        load_dotenv(dotenv_path=cwd_env, override=False)

    log_event("env_bot", f"Loaded config from {p}", extra={"debug": cfg.system.debug, "probe": cfg.system.probe})
    return cfg


def getenv_stripped(name: str) -> str:
    return (os.environ.get(name) or "").strip()


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "SystemConfig",
    "KabusConfig",
    "TradeAppConfig",
    "BootConfig",
    "parse_config",
    "load_config",
    "getenv_stripped",
]
