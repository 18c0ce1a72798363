"""Request gates wrapped around every web route."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable

from flask import abort, current_app, jsonify, redirect, request, session, url_for

from shared_lib.validation import is_private_client


def _wan_blocked() -> bool:
    config = current_app.config["CONFIG_STORE"].load_or_default()
    return config.not_allow_wan_access and not is_private_client(request.remote_addr)


def auth(view: Callable[..., Any]) -> Callable[..., Any]:
    """Require a logged-in session."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if _wan_blocked():
            current_app.logger.warning("Rejected request from %s: WAN access is disabled", request.remote_addr)
            abort(403)
        if not session.get("user"):
            if request.method == "GET":
                return redirect(url_for("webapp.login"))
            return jsonify({"error": "login required"}), 401
        return view(*args, **kwargs)

    return wrapper


def auth_assert(view: Callable[..., Any]) -> Callable[..., Any]:
    """Allow anonymous access, still honouring the WAN restriction."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        if _wan_blocked():
            current_app.logger.warning("Rejected request from %s: WAN access is disabled", request.remote_addr)
            abort(403)
        return view(*args, **kwargs)

    return wrapper
