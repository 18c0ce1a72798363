"""Entry point for the DDNS agent."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import requests
from pydantic import ValidationError

from agent._version import version as VERSION
from agent.bootstrap import (
    RuntimeContext,
    build_configuration,
    build_network_settings,
    build_runtime_context,
    build_session,
    configure_logging,
    parse_args,
    validate_listen_address,
)
from agent.config_store import ConfigError, ConfigNotFoundError, ConfigStore
from agent.connectivity import PROBE_ADDRESSES, ConnectivityGate
from agent.database import LogDB
from agent.lifecycle import Lifecycle
from agent.messages import init_lang, msg
from agent.resolver import HostResolver, backup_dns_servers
from agent.scheduler import UpdateScheduler
from agent.supervisor import WebServiceSupervisor
from agent.updater import DDNSUpdater
from shared_lib.schema import StoredConfig
from shared_lib.security import CryptoManager, load_or_create_key
from shared_lib.validation import ListenAddressError
from webapp import create_app


def probe_addresses(config: StoredConfig) -> list[str]:
    addresses = [str(config.check_ip_url)]
    addresses.extend(address for address in PROBE_ADDRESSES if address not in addresses)
    return addresses


class StartupSequencer:
    """Brings the agent up step by step; each step relies on the previous one.

    ``run`` returns the process exit status. With the web service enabled it
    only returns once the lifecycle has been asked to stop.
    """

    def __init__(self, lifecycle: Optional[Lifecycle] = None) -> None:
        self.lifecycle = lifecycle or Lifecycle()

    def run(self, argv: Optional[Sequence[str]] = None) -> int:
        args = parse_args(argv)
        if args.version:
            print(VERSION)
            return 0

        configure_logging()
        try:
            config = build_configuration(args)
            listen = validate_listen_address(config)
        except ListenAddressError as exc:
            logging.critical("Parse listen address failed! Exception: %s", exc)
            return 1
        except ValidationError as exc:
            logging.critical("Invalid command-line flags: %s", exc)
            return 1

        context = build_runtime_context(config, listen)
        store = ConfigStore(context.config_path)

        if config.reset_password_value:
            return self.reset_password(store, config.reset_password_value)

        settings = build_network_settings(config)
        session = build_session(settings)
        try:
            resolver = HostResolver(settings.custom_dns)
        except ValueError as exc:
            logging.critical("Invalid -dns value: %s", exc)
            return 1

        try:
            stored = store.load_or_default()
            store.compatible_config()
            crypto = CryptoManager(load_or_create_key(context.key_path))
        except (ConfigError, OSError, ValueError) as exc:
            logging.critical("Failed to load configuration from %s: %s", store.path, exc)
            return 1

        lang = init_lang(stored.lang)

        if config.web_service_enabled:
            self.start_web_service(context, store, crypto, session)

        gate = ConnectivityGate(
            probe_addresses(stored),
            resolver,
            backup_dns=backup_dns_servers(settings.custom_dns, lang),
            stop_event=self.lifecycle.stop_event,
        )
        if not gate.wait():
            return self.lifecycle.exit_code

        updater = DDNSUpdater(
            store,
            session,
            LogDB(str(context.log_db_path)),
            crypto,
            context.cache_times,
        )
        scheduler = UpdateScheduler(
            updater.run_once,
            config.update_interval_seconds,
            stop_event=self.lifecycle.stop_event,
        )
        try:
            scheduler.run()
        finally:
            updater.close()
        return self.lifecycle.exit_code

    def reset_password(self, store: ConfigStore, new_password: str) -> int:
        try:
            config = store.reset_password(new_password)
        except ConfigNotFoundError:
            logging.info(msg("config_not_found"), store.path)
            return 0
        except ConfigError as exc:
            logging.error("Cannot reset password: %s", exc)
            return 1
        logging.info(msg("password_reset"), config.username)
        return 0

    def start_web_service(
        self,
        context: RuntimeContext,
        store: ConfigStore,
        crypto: CryptoManager,
        session: requests.Session,
    ) -> WebServiceSupervisor:
        supervisor = WebServiceSupervisor(
            app_factory=lambda: create_app(
                store,
                crypto,
                session,
                context.log_db_path,
                context.version,
            ),
            address=context.listen,
            lifecycle=self.lifecycle,
            config_exists=store.exists,
        )
        supervisor.start()
        return supervisor


def main(argv: Optional[Sequence[str]] = None) -> int:
    return StartupSequencer().run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
