# kboot_web/py/boot_web.py
# Operator action endpoints. Each GET runs exactly one orchestrator action and returns its BootResult as JSON.
# No operator authentication: the panel is for exclusive local use (bind to localhost).

from flask import Blueprint, current_app, jsonify

boot_blueprint = Blueprint("boot_web", __name__)


def _orchestrator():
    return current_app.config["BOOT_ORCHESTRATOR"]


def _respond(result):
    return jsonify(result.to_dict()), result.http_status


@boot_blueprint.route("/bootauthkabus", methods=["GET"])
def boot_auth_kabus():
    """
    Launch kabuStation if it is not running, wait for it to settle, then run the login script.
    """
    return _respond(_orchestrator().authenticate_terminal())


@boot_blueprint.route("/apiauth", methods=["GET"])
def api_auth():
    """
    Exchange the configured API password for a session token and keep it in memory.
    """
    return _respond(_orchestrator().api_authenticate())


@boot_blueprint.route("/bootapp", methods=["GET"])
def boot_app():
    """
    Launch TradeWebApp with the stored token (400 when no token is held).
    """
    return _respond(_orchestrator().launch_trade_client())


@boot_blueprint.route("/pid", methods=["GET"])
def pid_report():
    return _respond(_orchestrator().report_pids())
