"""Blocks startup until outbound network access works."""

from __future__ import annotations

import logging
import threading
from typing import Optional, Sequence

from agent.messages import msg
from agent.resolver import HostResolver, LookupFailed

# Hosts the update cycle depends on; any one resolving is enough.
PROBE_ADDRESSES = (
    "https://api.ipify.org",
    "https://dynamicdns.park-your-domain.com",
    "https://www.cloudflare.com",
    "https://www.google.com",
    "https://www.alidns.com",
)
RETRY_DELAY_SECONDS = 5


class ConnectivityGate:
    """Waits, without a timeout, until one probe address resolves.

    Name-resolution failures switch ``resolver`` through ``backup_dns`` in
    turn. The gate only gives up early when ``stop_event`` is set.
    """

    def __init__(
        self,
        addresses: Sequence[str],
        resolver: HostResolver,
        backup_dns: Sequence[str] = (),
        retry_delay: float = RETRY_DELAY_SECONDS,
        stop_event: Optional[threading.Event] = None,
    ) -> None:
        if not addresses:
            raise ValueError("at least one probe address is required")
        self._addresses = list(addresses)
        self._resolver = resolver
        self._backup_dns = list(backup_dns)
        self._retry_delay = retry_delay
        self._stop_event = stop_event or threading.Event()
        self.attempts = 0

    def wait(self) -> bool:
        """Block until connectivity is confirmed.

        Returns False only when the stop event interrupted the wait.
        """
        retry_times = 0
        failed = False
        while True:
            for address in self._addresses:
                self.attempts += 1
                try:
                    self._resolver.lookup(address)
                except LookupFailed as exc:
                    logging.warning(msg("waiting_network"), exc)
                    logging.info(msg("retry_in"), self._retry_delay)
                    if self._backup_dns and (exc.dns_error or retry_times > 0):
                        server = self._backup_dns[retry_times % len(self._backup_dns)]
                        logging.warning(msg("dns_fallback"), server)
                        self._resolver.use(server)
                        retry_times += 1
                    failed = True
                    if self._stop_event.wait(self._retry_delay):
                        return False
                    continue

                if failed:
                    logging.info(msg("network_connected"))
                return True
