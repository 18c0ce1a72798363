"""Address and URL validation helpers."""

from __future__ import annotations

import ipaddress
import socket
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlparse


class ListenAddressError(ValueError):
    """Raised when a listen address cannot be resolved as a TCP address."""


@dataclass(frozen=True)
class ListenAddress:
    host: str
    port: int
    ip: Optional[str] = None

    @property
    def bind_host(self) -> str:
        return self.ip or "0.0.0.0"

    def __str__(self) -> str:
        host = self.ip or ""
        if ":" in host:
            host = f"[{host}]"
        return f"{host}:{self.port}"


def _split_host_port(value: str) -> tuple[str, str]:
    if value.startswith("["):
        end = value.find("]")
        if end < 0:
            raise ListenAddressError(f"address {value}: missing ']' in address")
        host, rest = value[1:end], value[end + 1:]
        if not rest:
            raise ListenAddressError(f"address {value}: missing port in address")
        if not rest.startswith(":") or ":" in rest[1:]:
            raise ListenAddressError(f"address {value}: unexpected text after host")
        return host, rest[1:]

    if ":" not in value:
        raise ListenAddressError(f"address {value}: missing port in address")
    host, port = value.rsplit(":", 1)
    if ":" in host:
        raise ListenAddressError(f"address {value}: too many colons in address")
    return host, port


def _resolve_port(value: str, port: str) -> int:
    if port.isdigit():
        number = int(port)
        if number > 65535:
            raise ListenAddressError(f"address {value}: invalid port")
        return number
    if not port:
        return 0
    try:
        return socket.getservbyname(port, "tcp")
    except OSError as exc:
        raise ListenAddressError(f"address {value}: unknown port") from exc


def _resolve_host(value: str, host: str) -> Optional[str]:
    if not host:
        return None
    try:
        return str(ipaddress.ip_address(host.split("%", 1)[0]))
    except ValueError:
        pass
    try:
        infos = socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    except socket.gaierror as exc:
        raise ListenAddressError(f"address {value}: {exc.strerror or exc}") from exc
    if not infos:
        raise ListenAddressError(f"address {value}: no such host")
    return str(infos[0][4][0])


def parse_listen_address(value: str) -> ListenAddress:
    """Resolve ``host:port`` the way a TCP listener would.

    Accepts ``:9876``, ``127.0.0.1:80``, ``[::1]:80``, host names and service
    names for the port.
    """
    host, port = _split_host_port(value.strip())
    number = _resolve_port(value, port)
    return ListenAddress(host=host, port=number, ip=_resolve_host(value, host))


def is_global_unicast(ip: Optional[str]) -> bool:
    if not ip:
        return False
    address = ipaddress.ip_address(ip)
    return not (
        address.is_unspecified
        or address.is_loopback
        or address.is_multicast
        or address.is_link_local
        or (address.version == 4 and address == ipaddress.ip_address("255.255.255.255"))
    )


def is_private_client(remote_addr: Optional[str]) -> bool:
    """Whether a request origin is on loopback or a private network."""
    if not remote_addr:
        return False
    try:
        address = ipaddress.ip_address(remote_addr.split("%", 1)[0])
    except ValueError:
        return False
    if getattr(address, "ipv4_mapped", None):
        address = address.ipv4_mapped
    return address.is_loopback or address.is_private or address.is_link_local


def validate_url(value: str, *, allow_http: bool = False, allow_private: bool = False) -> None:
    parsed = urlparse(value)
    scheme = parsed.scheme.lower()
    allowed_schemes = {"https", "http"} if allow_http else {"https"}
    if scheme not in allowed_schemes:
        raise ValueError(
            "URL must use http:// or https://" if allow_http else "URL must use https://"
        )
    if not parsed.hostname:
        raise ValueError("URL must include a hostname")
    if allow_private:
        return

    host = parsed.hostname.lower()
    if host == "localhost":
        raise ValueError("URL hostname cannot be localhost")

    try:
        ip_address = ipaddress.ip_address(host)
    except ValueError:
        ip_address = None

    if ip_address and (
        ip_address.is_private
        or ip_address.is_loopback
        or ip_address.is_link_local
        or ip_address.is_reserved
        or ip_address.is_multicast
        or ip_address.is_unspecified
    ):
        raise ValueError("URL hostname cannot be a loopback or private IP")
