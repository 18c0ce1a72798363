"""Runs the web UI on its own thread and ends the process if it dies."""

from __future__ import annotations

import logging
import os
import socket
import threading
import time
import webbrowser
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from flask import Flask
from werkzeug.serving import make_server

from agent.lifecycle import Lifecycle
from agent.messages import msg
from shared_lib.validation import ListenAddress, is_global_unicast

GRACE_PERIOD_SECONDS = 60


class ServiceState(str, Enum):
    STARTING = "starting"
    LISTENING = "listening"
    FAILED = "failed"


class WebServiceError(RuntimeError):
    """The web service could not bind or stopped serving."""


def is_running_in_docker() -> bool:
    if os.environ.get("DDNS_IN_DOCKER"):
        return True
    return Path("/.dockerenv").exists() or Path("/run/.containerenv").exists()


def bind_listener(address: ListenAddress) -> socket.socket:
    """Open a listening TCP socket; raises OSError when the bind fails.

    An empty host listens on every IPv4 and IPv6 interface where the platform
    supports dual-stack sockets.
    """
    if address.ip is None and socket.has_dualstack_ipv6():
        return socket.create_server(
            ("", address.port),
            family=socket.AF_INET6,
            backlog=128,
            dualstack_ipv6=True,
        )
    family = socket.AF_INET6 if ":" in address.bind_host else socket.AF_INET
    return socket.create_server((address.bind_host, address.port), family=family, backlog=128)


def server_host(address: ListenAddress, listener: Any) -> str:
    """Host handed to werkzeug so it wraps ``listener`` with the right family."""
    if address.ip is None and getattr(listener, "family", None) == socket.AF_INET6:
        return "::"
    return address.bind_host


class WebServiceSupervisor:
    """Owns the web thread.

    Failures are logged, then after ``grace_period`` seconds the process is
    asked to exit with status 1 through ``lifecycle``. The main thread keeps
    running update cycles in the meantime.
    """

    def __init__(
        self,
        app_factory: Callable[[], Flask],
        address: ListenAddress,
        lifecycle: Lifecycle,
        config_exists: Callable[[], bool],
        grace_period: float = GRACE_PERIOD_SECONDS,
        listener_factory: Callable[[ListenAddress], Any] = bind_listener,
        server_factory: Callable[..., Any] = make_server,
        open_browser: Callable[[str], Any] = webbrowser.open,
    ) -> None:
        self._app_factory = app_factory
        self._address = address
        self._lifecycle = lifecycle
        self._config_exists = config_exists
        self._grace_period = grace_period
        self._listener_factory = listener_factory
        self._server_factory = server_factory
        self._open_browser = open_browser
        self._thread: Optional[threading.Thread] = None
        self.state = ServiceState.STARTING

    def start(self) -> threading.Thread:
        self._thread = threading.Thread(target=self._supervise, name="web-service", daemon=True)
        self._thread.start()
        return self._thread

    def _supervise(self) -> None:
        try:
            self._serve()
        except WebServiceError as exc:
            self.state = ServiceState.FAILED
            logging.error("%s", exc)
        except Exception:
            self.state = ServiceState.FAILED
            logging.exception("Web service crashed")
        logging.error(msg("web_exit"), self._grace_period)
        time.sleep(self._grace_period)
        self._lifecycle.request_exit(1)

    def _serve(self) -> None:
        app = self._app_factory()
        logging.info(msg("listening"), self._address)
        try:
            listener = self._listener_factory(self._address)
        except OSError as exc:
            raise WebServiceError(msg("listen_failed") % (self._address, exc)) from exc

        # werkzeug exits the process on bind errors, so it is handed a socket
        # that is already listening.
        try:
            server = self._server_factory(
                server_host(self._address, listener),
                self._address.port,
                app,
                threaded=True,
                fd=listener.fileno(),
            )
        except OSError as exc:
            raise WebServiceError(msg("listen_failed") % (self._address, exc)) from exc
        finally:
            listener.close()

        self.state = ServiceState.LISTENING
        self._auto_open_explorer()
        try:
            server.serve_forever()
        except Exception as exc:
            raise WebServiceError(f"Web service stopped: {exc}") from exc
        raise WebServiceError("Web service stopped unexpectedly")

    def _auto_open_explorer(self) -> None:
        if self._config_exists():
            return
        if is_running_in_docker():
            logging.info(msg("docker_hint"), self._address.port)
            return

        url = f"http://127.0.0.1:{self._address.port}"
        if is_global_unicast(self._address.ip):
            url = f"http://{self._address}"
        threading.Thread(target=self._open_url, args=(url,), name="open-browser", daemon=True).start()

    def _open_url(self, url: str) -> None:
        try:
            self._open_browser(url)
        except (webbrowser.Error, OSError) as exc:
            logging.warning("Could not open a browser for %s: %s; open it manually", url, exc)
