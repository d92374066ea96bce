# kboot_web/py/portal_web_main.py
# Flask app factory for the boot panel; all blueprints are registered up-front.
# The TokenStore and BootOrchestrator are owned by the app and reached through app.config.

import os
from typing import Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from kboot_bot.config.env_bot import BootConfig
from kboot_bot.config.error_handler_bot import handle
from kboot_bot.runtime.boot_orchestrator import BootOrchestrator, build_orchestrator
from kboot_bot.support.token_store import TokenStore
from kboot_bot.support.utils_log import log_event

BASE_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
TEMPLATE_FOLDER = os.path.join(BASE_DIR, "templates")
STATIC_FOLDER = os.path.join(BASE_DIR, "static")


def create_app(cfg: BootConfig, orchestrator: Optional[BootOrchestrator] = None) -> Flask:
    app = Flask(__name__, template_folder=TEMPLATE_FOLDER, static_folder=STATIC_FOLDER)
    app.json.ensure_ascii = False

    if orchestrator is None:
        orchestrator = build_orchestrator(cfg, TokenStore())
    app.config["BOOT_CONFIG"] = cfg
    app.config["BOOT_ORCHESTRATOR"] = orchestrator
    app.config["BOOT_TOKEN_STORE"] = orchestrator.token_store

    from kboot_web.py.main_web import main_blueprint
    from kboot_web.py.boot_web import boot_blueprint

    app.register_blueprint(main_blueprint)
    app.register_blueprint(boot_blueprint)

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"ok": False, "message": e.description, "error": e.name}), e.code

    @app.errorhandler(Exception)
    def unhandled_error(e):
        category = handle(e, action="http")
        return jsonify({"ok": False, "message": "Internal server error", "error": category}), 500

    routes = sorted(f"{rule.rule} -> {rule.endpoint}" for rule in app.url_map.iter_rules())
    log_event("portal_web_main", "Flask app created", level="debug", extra={"routes": routes})
    return app
