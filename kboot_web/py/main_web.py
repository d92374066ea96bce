# kboot_web/py/main_web.py

from flask import Blueprint, current_app, jsonify, render_template

main_blueprint = Blueprint("main", __name__)


@main_blueprint.route("/", methods=["GET"])
def index():
    token_store = current_app.config["BOOT_TOKEN_STORE"]
    return render_template("index.html", authenticated=token_store.is_authenticated())


@main_blueprint.route("/healthz", methods=["GET"])
def healthz():
    return jsonify({"status": "ok"}), 200
