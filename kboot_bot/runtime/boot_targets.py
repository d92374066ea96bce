# kboot_bot/runtime/boot_targets.py
# Resolves BootTargets (kabuStation, TradeWebApp) from config + environment at request time.
# Nothing here is cached or persisted; every action re-resolves.

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from kboot_bot.config.env_bot import BootConfig, getenv_stripped
from kboot_bot.config.error_handler_bot import ResolutionError
from kboot_bot.support.path_resolver import PACKAGE_ROOT, first_existing, resolve_relative

KABUS_DEFAULT_IMAGE = "KabuS.exe"


@dataclass
class BootTarget:
    executable_path: str
    working_directory: Optional[str] = None
    arguments: List[str] = field(default_factory=list)

    @property
    def image_name(self) -> str:
        return Path(self.executable_path).name


def kabus_candidates(cfg: BootConfig) -> List[str]:
    """
    Lookup order: [KABUS] PATH -> KABUSTATION_EXE -> %LOCALAPPDATA%/kabuStation/KabuS.exe
    """
    candidates = [cfg.kabus.path.strip(), getenv_stripped("KABUSTATION_EXE")]
    local_app_data = getenv_stripped("LOCALAPPDATA")
    if local_app_data:
        candidates.append(os.path.join(local_app_data, "kabuStation", KABUS_DEFAULT_IMAGE))
    return candidates


def resolve_kabus_target(cfg: BootConfig) -> BootTarget:
    exe = first_existing(kabus_candidates(cfg))
    if not exe:
        raise ResolutionError(
            "kabuStation executable not found. Set [KABUS] PATH in the config or the KABUSTATION_EXE env var."
        )
    return BootTarget(executable_path=exe)


def resolve_tradeapp_url(cfg: BootConfig) -> str:
    """[TRADEAPP] URL -> TRADEWEBAPP_URL; empty when neither is set."""
    return cfg.tradeapp.url.strip() or getenv_stripped("TRADEWEBAPP_URL")


def tradeapp_exe_configured(cfg: BootConfig) -> str:
    """[TRADEAPP] PATH -> TRADEAPP_EXE; empty when neither is set."""
    return cfg.tradeapp.path.strip() or getenv_stripped("TRADEAPP_EXE")


def resolve_tradeapp_target(cfg: BootConfig) -> BootTarget:
    """
    Executable and (optional) config file must exist when configured.
    Static arguments are the ARGS template; the token is filled in at launch.
    """
    exe = tradeapp_exe_configured(cfg)
    if not exe:
        raise ResolutionError(
            "TradeWebApp executable is not configured. Set [TRADEAPP] PATH or the TRADEAPP_EXE env var."
        )
    if not Path(exe).exists():
        raise ResolutionError(f"TradeWebApp executable not found: {exe}")

    conf = cfg.tradeapp.conf.strip()
    if conf and not Path(conf).exists():
        raise ResolutionError(f"TradeWebApp config file not found: {conf}")

    workdir = cfg.tradeapp.workdir.strip() or None
    if workdir and not Path(workdir).is_dir():
        raise ResolutionError(f"TradeWebApp working directory not found: {workdir}")

    return BootTarget(
        executable_path=exe,
        working_directory=workdir,
        arguments=build_tradeapp_args(cfg.tradeapp.args, conf),
    )


def build_tradeapp_args(template: List[str], conf: str) -> List[str]:
    """
    Fill "{conf}" in the ARGS template. When no config file is configured, the "{conf}"
    element and the flag directly before it are dropped. "{token}" is left for launch time.
    """
    args: List[str] = []
    for item in template:
        if "{conf}" in item:
            if not conf:
                if args and args[-1].startswith("-"):
                    args.pop()
                continue
            item = item.replace("{conf}", conf)
        args.append(item)
    return args


def inject_token(arguments: List[str], token: str) -> List[str]:
    """Substitute "{token}"; a template without the placeholder gets the token appended."""
    if not any("{token}" in a for a in arguments):
        return list(arguments) + [token]
    return [a.replace("{token}", token) for a in arguments]


def resolve_login_script(cfg: BootConfig) -> str:
    """
    Relative LOGIN_SCRIPT: config file directory -> CWD -> copy shipped inside kboot_bot.
    Returns the first candidate when none exists so the runner reports the configured path.
    """
    script = cfg.kabus.login_script.strip()
    if Path(script).expanduser().is_absolute():
        return str(Path(script).expanduser())
    candidates = [
        resolve_relative(script, cfg.base_dir),
        resolve_relative(script, Path.cwd()),
        resolve_relative(script, PACKAGE_ROOT),
    ]
    return first_existing(candidates) or candidates[0]
