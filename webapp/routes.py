"""HTTP routes for the configuration UI."""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any

from flask import (
    Blueprint,
    current_app,
    jsonify,
    redirect,
    render_template,
    request,
    send_from_directory,
    session,
    url_for,
)
from pydantic import ValidationError

from agent.database import LogDB
from agent.webhook import send_webhook
from shared_lib.schema import LoginForm, SaveForm, StoredConfig, Webhook
from shared_lib.security import hash_password, verify_password
from webapp.auth import auth, auth_assert
from webapp.publisher import ConfigCompiler

STATIC_DIR = Path(__file__).resolve().parent / "static"
# Credentials can only be created this soon after startup.
FIRST_SETUP_WINDOW_SECONDS = 5 * 60

bp = Blueprint(
    "webapp",
    __name__,
    template_folder="templates",
)


def _store():
    return current_app.config["CONFIG_STORE"]


def _payload() -> dict[str, Any]:
    return request.get_json(silent=True) or request.form.to_dict()


def _validation_error(exc: ValidationError) -> Any:
    detail = exc.errors(include_url=False, include_context=False)
    return jsonify({"error": "invalid request", "detail": detail}), 400


def _config_to_dict(config: StoredConfig) -> dict[str, Any]:
    return {
        "username": config.username,
        "lang": config.lang,
        "not_allow_wan_access": config.not_allow_wan_access,
        "check_ip_url": str(config.check_ip_url),
        "targets": [
            {"id": target.id, "hostname": target.hostname, "update_url": target.update_url}
            for target in config.targets
        ],
        "webhook": config.webhook.model_dump(),
    }


@bp.get("/static/<path:filename>")
@auth_assert
def static_files(filename: str) -> Any:
    return send_from_directory(STATIC_DIR, filename)


@bp.get("/favicon.ico")
@auth_assert
def favicon() -> Any:
    return send_from_directory(STATIC_DIR, "favicon.svg", mimetype="image/svg+xml")


@bp.get("/login")
@auth_assert
def login() -> str:
    config = _store().load_or_default()
    return render_template(
        "login.html",
        first_setup=not config.has_credentials,
        version=current_app.config["VERSION"],
    )


@bp.post("/loginFunc")
@auth_assert
def login_func() -> Any:
    try:
        form = LoginForm.model_validate(_payload())
    except ValidationError as exc:
        return _validation_error(exc)

    store = _store()
    config = store.load_or_default()
    if not config.has_credentials:
        elapsed = time.monotonic() - current_app.config["STARTED_AT"]
        if elapsed > FIRST_SETUP_WINDOW_SECONDS:
            current_app.logger.warning("Refused first-time setup %d seconds after startup", elapsed)
            return jsonify({"error": "first-time setup expired, restart the service and try again"}), 403
        store.save(
            config.model_copy(
                update={"username": form.username, "password_hash": hash_password(form.password)}
            )
        )
        current_app.logger.info("Created web UI credentials for %r", form.username)
    elif form.username != config.username or not verify_password(config.password_hash, form.password):
        current_app.logger.warning("Failed login for %r from %s", form.username, request.remote_addr)
        return jsonify({"error": "invalid username or password"}), 401

    session.clear()
    session["user"] = form.username
    return jsonify({"status": "ok"})


@bp.get("/")
@auth
def writing() -> str:
    config = _store().load_or_default()
    return render_template(
        "index.html",
        config=_config_to_dict(config),
        version=current_app.config["VERSION"],
    )


@bp.post("/save")
@auth
def save() -> Any:
    try:
        form = SaveForm.model_validate(_payload())
    except ValidationError as exc:
        return _validation_error(exc)

    compiler = ConfigCompiler(current_app.config["CRYPTO"])
    try:
        config = compiler.publish(_store(), form)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400
    except OSError as exc:
        current_app.logger.exception("Failed to save config to %s", _store().path)
        return jsonify({"error": "Unable to save configuration.", "detail": str(exc)}), 500

    if form.username and form.username != session.get("user"):
        session["user"] = form.username
    return jsonify({"status": "ok", "config": _config_to_dict(config)})


@bp.get("/logs")
@auth
def logs() -> Any:
    try:
        limit = int(request.args.get("limit", 50))
    except ValueError:
        return jsonify({"error": "limit must be an integer"}), 400
    log_db = LogDB(str(current_app.config["LOG_DB_PATH"]))
    try:
        rows = log_db.list_updates(max(1, min(limit, 500)))
    finally:
        log_db.close()
    return jsonify({"logs": rows})


@bp.post("/clearLog")
@auth
def clear_log() -> Any:
    log_db = LogDB(str(current_app.config["LOG_DB_PATH"]))
    try:
        removed = log_db.clear()
    finally:
        log_db.close()
    current_app.logger.info("Cleared %d update log entries", removed)
    return jsonify({"status": "ok", "removed": removed})


@bp.post("/webhookTest")
@auth
def webhook_test() -> Any:
    try:
        webhook = Webhook.model_validate(_payload())
    except ValidationError as exc:
        return _validation_error(exc)
    if not webhook.url:
        return jsonify({"error": "url is required"}), 400

    result = send_webhook(
        current_app.config["HTTP_SESSION"],
        webhook,
        ip="203.0.113.10",
        result="success",
        domains="example.com",
    )
    assert result is not None
    return jsonify(
        {"ok": result.ok, "status_code": result.status_code, "message": result.message}
    ), (200 if result.ok else 502)


@bp.get("/logout")
@auth
def logout() -> Any:
    session.clear()
    return redirect(url_for("webapp.login"))
