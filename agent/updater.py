"""Update cycle: compare the public IP and push it to every DNS target."""

from __future__ import annotations

import logging
from typing import Optional

import requests
from cryptography.fernet import InvalidToken

from agent.config_store import ConfigNotFoundError, ConfigStore
from agent.database import LogDB, UpdateRecord
from agent.webhook import send_webhook
from shared_lib.schema import StoredConfig
from shared_lib.security import CryptoManager


class IPCache:
    """Skips pushes for an unchanged IP until ``cache_times`` checks have passed."""

    def __init__(self, cache_times: int) -> None:
        self._cache_times = cache_times
        self._address: Optional[str] = None
        self._remaining = 0

    def check(self, address: Optional[str]) -> bool:
        """Return True when the address should be pushed."""
        if not address:
            return True
        if address != self._address or self._remaining <= 1:
            self._address = address
            self._remaining = self._cache_times + 1
            return True
        self._remaining -= 1
        return False

    def reset(self) -> None:
        self._address = None
        self._remaining = 0


class DDNSUpdater:
    """Runs update cycles for the targets in the cached configuration."""

    def __init__(
        self,
        store: ConfigStore,
        session: requests.Session,
        log_db: LogDB,
        crypto: CryptoManager,
        cache_times: int,
    ) -> None:
        self._store = store
        self._session = session
        self._db = log_db
        self._crypto = crypto
        self._ip_cache = IPCache(cache_times)
        self._last_config: Optional[StoredConfig] = None

    def _fetch_public_ip(self, config: StoredConfig) -> Optional[str]:
        try:
            response = self._session.get(str(config.check_ip_url), timeout=10)
            response.raise_for_status()
            return response.text.strip()
        except requests.RequestException as exc:
            logging.warning("Failed to fetch public IP: %s", exc)
            return None

    def _build_update_url(
        self,
        target_url: str,
        token: str,
        hostname: str,
        target_id: str,
        ip_address: Optional[str],
    ) -> str:
        format_values = {
            "token": token,
            "hostname": hostname,
            "id": target_id,
            "ip": ip_address or "",
        }
        try:
            return target_url.format(**format_values)
        except (KeyError, IndexError, ValueError):
            return target_url

    def run_once(self) -> None:
        try:
            config = self._store.get_cached()
        except ConfigNotFoundError:
            logging.info("No configuration saved yet; skipping update cycle.")
            return
        if not config.targets:
            logging.info("No DDNS targets configured; skipping update cycle.")
            return

        if config is not self._last_config:
            # Saved settings may list new targets; push everything once.
            self._ip_cache.reset()
            self._last_config = config

        current_ip = self._fetch_public_ip(config)
        if not self._ip_cache.check(current_ip):
            logging.info("Public IP %s unchanged; skipping update cycle.", current_ip)
            return

        failures = 0
        for target in config.targets:
            if not self._push_target(target.id, target.hostname, target.update_url,
                                     target.encrypted_token, current_ip):
                failures += 1

        result = "success" if failures == 0 else "failed"
        send_webhook(
            self._session,
            config.webhook,
            ip=current_ip or "",
            result=result,
            domains=",".join(target.hostname for target in config.targets),
        )

    def _push_target(
        self,
        target_id: str,
        hostname: str,
        update_url: str,
        encrypted_token: str,
        current_ip: Optional[str],
    ) -> bool:
        token: Optional[str] = None
        try:
            token = self._crypto.decrypt_str(encrypted_token)
            url = self._build_update_url(update_url, token, hostname, target_id, current_ip)
            response = self._session.get(url, timeout=20)
            response.raise_for_status()
            message = response.text.strip()
            self._db.log_update(
                UpdateRecord(
                    target_id=target_id,
                    status="success",
                    message=message,
                    response_code=response.status_code,
                    ip_address=current_ip,
                )
            )
            logging.info("Updated %s: %s", hostname, message)
            return True
        except requests.RequestException as exc:
            self._db.log_update(
                UpdateRecord(
                    target_id=target_id,
                    status="error",
                    message=str(exc),
                    response_code=getattr(exc.response, "status_code", None),
                    ip_address=current_ip,
                )
            )
            logging.warning("Update failed for %s: %s", hostname, exc)
        except InvalidToken:
            self._db.log_update(
                UpdateRecord(
                    target_id=target_id,
                    status="error",
                    message="token cannot be decrypted with the current key",
                    response_code=None,
                    ip_address=current_ip,
                )
            )
            logging.error("Token for %s cannot be decrypted; save it again from the web UI", hostname)
        except Exception:  # noqa: BLE001 - log and continue other targets
            logging.exception("Unexpected error while updating %s", hostname)
        finally:
            token = None
        return False

    def close(self) -> None:
        self._db.close()
