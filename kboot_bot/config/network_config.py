# kboot_bot/config/network_config.py
# Provides getters for the panel's listen HOST and PORT.
# Precedence: CLI flag > KBOOT_HOST / KBOOT_PORT env > [SYSTEM] HOST / PORT > defaults.

import os
from typing import Optional

from kboot_bot.config.env_bot import BootConfig
from kboot_bot.support.utils_log import log_event

DEFAULT_HOST_IP = "127.0.0.1"
DEFAULT_PORT = 3000


def get_host_ip(cfg: Optional[BootConfig] = None, override: Optional[str] = None) -> str:
    """
    Returns the listen address. The panel is meant for localhost only.
    """
    host = (override or os.environ.get("KBOOT_HOST") or (cfg.system.host if cfg else "") or DEFAULT_HOST_IP).strip()
    if host not in ("127.0.0.1", "localhost", "::1"):
        log_event("network_config", f"Panel bound to non-loopback address {host}", level="warning")
    return host


def get_port(cfg: Optional[BootConfig] = None, override: Optional[int] = None) -> int:
    """
    Returns the listen port as int, falling back to the default on garbage env values.
    """
    if override:
        return int(override)
    env_port = os.environ.get("KBOOT_PORT")
    if env_port:
        try:
            return int(env_port)
        except ValueError:
            log_event("network_config", f"Ignoring invalid KBOOT_PORT={env_port!r}", level="warning")
    if cfg is not None:
        return cfg.system.port
    return DEFAULT_PORT
