"""Host name resolution with optional custom and backup DNS servers."""

from __future__ import annotations

import ipaddress
import socket
from typing import Optional
from urllib.parse import urlparse

import dns.exception
import dns.resolver

BACKUP_DNS_ZH = ["223.5.5.5", "119.29.29.29", "114.114.114.114"]
BACKUP_DNS_DEFAULT = ["1.1.1.1", "8.8.8.8", "9.9.9.9"]


class LookupFailed(Exception):
    """A host name could not be resolved.

    ``dns_error`` is True when the resolver itself failed rather than the
    network path to it.
    """

    def __init__(self, host: str, reason: str, dns_error: bool = False) -> None:
        super().__init__(f"lookup {host}: {reason}")
        self.host = host
        self.dns_error = dns_error


def backup_dns_servers(custom_dns: Optional[str], lang: str) -> list[str]:
    if custom_dns:
        return [custom_dns]
    if lang == "zh":
        return list(BACKUP_DNS_ZH)
    return list(BACKUP_DNS_DEFAULT)


def parse_nameserver(value: str) -> tuple[str, int]:
    """Split ``8.8.8.8``, ``8.8.8.8:53`` or ``[2001:4860::8888]:53``."""
    value = value.strip()
    try:
        return str(ipaddress.ip_address(value)), 53
    except ValueError:
        pass
    if value.startswith("[") and "]" in value:
        host, _, port = value[1:].partition("]")
        port = port.lstrip(":")
    else:
        host, _, port = value.rpartition(":")
    try:
        return str(ipaddress.ip_address(host)), int(port or 53)
    except ValueError as exc:
        raise ValueError(f"invalid DNS server address {value!r}") from exc


def host_of(address: str) -> str:
    parsed = urlparse(address if "://" in address else f"//{address}")
    return parsed.hostname or address


class HostResolver:
    """Resolves host names through the system resolver or a chosen DNS server."""

    def __init__(self, nameserver: Optional[str] = None, timeout: float = 5.0) -> None:
        self._timeout = timeout
        self._nameserver: Optional[str] = None
        self._resolver: Optional[dns.resolver.Resolver] = None
        if nameserver:
            self.use(nameserver)

    @property
    def nameserver(self) -> Optional[str]:
        return self._nameserver

    def use(self, nameserver: str) -> None:
        host, port = parse_nameserver(nameserver)
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [host]
        resolver.port = port
        resolver.lifetime = self._timeout
        self._resolver = resolver
        self._nameserver = nameserver

    def lookup(self, address: str) -> list[str]:
        host = host_of(address)
        if self._resolver is None:
            return self._system_lookup(host)
        return self._dns_lookup(host)

    def _system_lookup(self, host: str) -> list[str]:
        try:
            infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except socket.gaierror as exc:
            raise LookupFailed(host, str(exc), dns_error=True) from exc
        except OSError as exc:
            raise LookupFailed(host, str(exc)) from exc
        return sorted({str(info[4][0]) for info in infos})

    def _dns_lookup(self, host: str) -> list[str]:
        assert self._resolver is not None
        addresses: list[str] = []
        last_error: Optional[Exception] = None
        for record_type in ("A", "AAAA"):
            try:
                answer = self._resolver.resolve(host, record_type)
            except (dns.resolver.NXDOMAIN, dns.resolver.NoAnswer, dns.resolver.NoNameservers) as exc:
                last_error = exc
                continue
            except dns.exception.Timeout as exc:
                raise LookupFailed(host, f"timeout querying {self._nameserver}") from exc
            addresses.extend(rdata.address for rdata in answer)
        if not addresses:
            raise LookupFailed(host, str(last_error or "no such host"), dns_error=True)
        return addresses
