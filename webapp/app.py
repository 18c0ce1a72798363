"""Flask application factory for the DDNS web UI."""

from __future__ import annotations

import secrets
import time
from pathlib import Path

import requests
from flask import Flask

from agent.config_store import ConfigStore
from shared_lib.security import CryptoManager
from webapp.routes import bp


def create_app(
    store: ConfigStore,
    crypto: CryptoManager,
    session: requests.Session,
    log_db_path: str | Path,
    version: str,
) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__, static_folder=None)
    app.config.update(
        SECRET_KEY=secrets.token_hex(32),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Lax",
        CONFIG_STORE=store,
        CRYPTO=crypto,
        HTTP_SESSION=session,
        LOG_DB_PATH=str(log_db_path),
        VERSION=version,
        STARTED_AT=time.monotonic(),
    )
    app.register_blueprint(bp)
    return app
