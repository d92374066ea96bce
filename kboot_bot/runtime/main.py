# kboot_bot/runtime/main.py
# Entry point: load auth.toml, build the Flask panel, serve until terminated.
# Exits 1 only when the configuration cannot be loaded.

import argparse
import sys
from typing import List, Optional

from kboot_bot.config.env_bot import DEFAULT_CONFIG_PATH, load_config
from kboot_bot.config.error_handler_bot import ConfigError
from kboot_bot.config.network_config import get_host_ip, get_port
from kboot_bot.support.utils_log import configure_log_settings, log_event


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="kboot-panel", description="kabuStation / TradeWebApp boot panel")
    parser.add_argument("-c", "--config", default=DEFAULT_CONFIG_PATH, help="path to config file")
    parser.add_argument("--host", default=None, help="listen address (default from config)")
    parser.add_argument("--port", type=int, default=None, help="listen port (default from config)")
    return parser.parse_args(argv)


def _wait_for_enter() -> None:
    # Console windows close on exit; give the operator a chance to read the error
    if sys.stdin is not None and sys.stdin.isatty():
        try:
            input("Press Enter to exit...")
        except EOFError:
            pass


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        log_event("main", f"{e.message}: {e.detail}", level="error")
        _wait_for_enter()
        return 1

    configure_log_settings(debug=cfg.system.debug, log_format=cfg.system.log_format)

    from kboot_web.py.portal_web_main import create_app
    app = create_app(cfg)

    host = get_host_ip(cfg, args.host)
    port = get_port(cfg, args.port)
    log_event("main", f"Boot panel listening on http://{host}:{port}/")
    app.run(host=host, port=port, threaded=True, debug=False, use_reloader=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
