"""Command-line parsing and the values derived from it at startup."""

from __future__ import annotations

import argparse
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

import requests
import urllib3
from pydantic import BaseModel, ConfigDict, NonNegativeInt, PositiveInt

from agent._version import version as VERSION
from agent.config_store import default_config_path
from shared_lib.validation import ListenAddress, parse_listen_address

DEFAULT_LISTEN = ":9876"
DEFAULT_INTERVAL_SECONDS = 300
DEFAULT_CACHE_TIMES = 5


class ProcessConfiguration(BaseModel):
    """Flags for one process run; built once, never modified."""

    listen_address: str = DEFAULT_LISTEN
    update_interval_seconds: PositiveInt = DEFAULT_INTERVAL_SECONDS
    cache_threshold: NonNegativeInt = DEFAULT_CACHE_TIMES
    config_file_path: str = ""
    web_service_enabled: bool = True
    skip_certificate_verification: bool = False
    custom_dns_server: Optional[str] = None
    reset_password_value: Optional[str] = None
    version_string: str = VERSION

    model_config = ConfigDict(frozen=True, extra="forbid")


@dataclass(frozen=True)
class RuntimeContext:
    """Values derived during bootstrap and handed to every collaborator."""

    version: str
    config_path: Path
    cache_times: int
    custom_dns: Optional[str]
    listen: ListenAddress

    @property
    def log_db_path(self) -> Path:
        override = os.environ.get("DDNS_LOG_DB_PATH")
        if override:
            return Path(override)
        return self.config_path.with_name(".simple_ddns_history.db")

    @property
    def key_path(self) -> Path:
        return self.config_path.with_name(".simple_ddns.key")


@dataclass(frozen=True)
class NetworkSettings:
    skip_verify: bool = False
    custom_dns: Optional[str] = None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="simple-ddns",
        description="Keep DNS records pointed at this machine's public IP.",
        allow_abbrev=False,
    )
    parser.add_argument("-v", dest="version", action="store_true", help="print the version and exit")
    parser.add_argument("-l", dest="listen", default=DEFAULT_LISTEN, help="listen address (default %(default)s)")
    parser.add_argument(
        "-f",
        dest="every",
        type=int,
        default=DEFAULT_INTERVAL_SECONDS,
        help="update frequency in seconds (default %(default)s)",
    )
    parser.add_argument(
        "-cacheTimes",
        dest="cache_times",
        type=int,
        default=DEFAULT_CACHE_TIMES,
        help="unchanged-IP checks before a forced update (default %(default)s)",
    )
    parser.add_argument("-c", dest="config", default="", help="custom configuration file path")
    parser.add_argument("-noweb", dest="no_web", action="store_true", help="do not start the web service")
    parser.add_argument(
        "-skipVerify",
        dest="skip_verify",
        action="store_true",
        help="skip TLS certificate verification",
    )
    parser.add_argument("-dns", dest="dns", default="", help="custom DNS server, for example 8.8.8.8")
    parser.add_argument(
        "-resetPassword",
        dest="reset_password",
        default="",
        help="reset the web UI password to the given value and exit",
    )
    return parser


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    return build_parser().parse_args(argv)


def build_configuration(args: argparse.Namespace) -> ProcessConfiguration:
    return ProcessConfiguration(
        listen_address=args.listen,
        update_interval_seconds=args.every,
        cache_threshold=args.cache_times,
        config_file_path=args.config,
        web_service_enabled=not args.no_web,
        skip_certificate_verification=args.skip_verify,
        custom_dns_server=args.dns or None,
        reset_password_value=args.reset_password or None,
    )


def resolve_config_path(value: str) -> Path:
    if not value:
        return default_config_path()
    return Path(value).expanduser().absolute()


def build_runtime_context(config: ProcessConfiguration, listen: ListenAddress) -> RuntimeContext:
    return RuntimeContext(
        version=config.version_string,
        config_path=resolve_config_path(config.config_file_path),
        cache_times=config.cache_threshold,
        custom_dns=config.custom_dns_server,
        listen=listen,
    )


def validate_listen_address(config: ProcessConfiguration) -> ListenAddress:
    return parse_listen_address(config.listen_address)


def build_network_settings(config: ProcessConfiguration) -> NetworkSettings:
    return NetworkSettings(
        skip_verify=config.skip_certificate_verification,
        custom_dns=config.custom_dns_server,
    )


def build_session(settings: NetworkSettings) -> requests.Session:
    session = requests.Session()
    if settings.skip_verify:
        session.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        logging.warning("TLS certificate verification is disabled")
    return session


def configure_logging() -> None:
    level = os.environ.get("DDNS_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )
