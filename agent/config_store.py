"""Cached access to the JSON configuration file."""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from agent.messages import detect_lang
from shared_lib.schema import CONFIG_VERSION, StoredConfig
from shared_lib.security import hash_password

DEFAULT_CONFIG_NAME = ".simple_ddns_config.json"


class ConfigError(Exception):
    """Base class for configuration file errors."""


class ConfigNotFoundError(ConfigError, FileNotFoundError):
    pass


class ConfigInvalidError(ConfigError, ValueError):
    pass


def default_config_path() -> Path:
    return Path.home() / DEFAULT_CONFIG_NAME


def migrate_payload(data: dict[str, Any]) -> bool:
    """Upgrade a raw payload written by an older release in place.

    Returns True when anything changed. Raises ConfigInvalidError when the
    fields it relies on have the wrong JSON type.
    """
    version = data.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise ConfigInvalidError(f"config version must be an integer, got {version!r}")
    if version >= CONFIG_VERSION:
        return False

    raw_targets = data.get("targets", [])
    if not isinstance(raw_targets, list):
        raise ConfigInvalidError("config targets must be a list")
    if not all(isinstance(target, dict) for target in raw_targets):
        raise ConfigInvalidError("every config target must be an object")

    if "ipv4_url" in data:
        legacy_url = data.pop("ipv4_url")
        data.setdefault("check_ip_url", legacy_url)

    legacy_password = data.pop("password", None)
    if legacy_password and not data.get("password_hash"):
        data["password_hash"] = hash_password(legacy_password)

    if not data.get("lang"):
        data["lang"] = detect_lang(None)

    targets: list[dict[str, Any]] = []
    for target in raw_targets:
        hostnames = [h.strip() for h in str(target.get("hostname", "")).split(",") if h.strip()]
        if len(hostnames) <= 1:
            targets.append(target)
            continue
        for index, hostname in enumerate(hostnames):
            targets.append({**target, "id": f"{target.get('id')}-{index}", "hostname": hostname})
    if "targets" in data:
        data["targets"] = targets

    data["version"] = CONFIG_VERSION
    return True


class ConfigStore:
    """Loads the configuration file at most once and keeps it in memory."""

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path else default_config_path()
        self._lock = threading.Lock()
        self._loaded = False
        self._config: Optional[StoredConfig] = None
        self._error: Optional[ConfigError] = None
        self._migrated = False

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def _load(self) -> StoredConfig:
        try:
            raw_payload = self._path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise ConfigNotFoundError(f"Config file not found at {self._path!s}") from exc

        try:
            data = json.loads(raw_payload)
        except json.JSONDecodeError as exc:
            raise ConfigInvalidError(
                f"Config file {self._path!s} is not valid JSON. "
                "Fix the file contents or save the configuration again from the web UI."
            ) from exc
        if not isinstance(data, dict):
            raise ConfigInvalidError(f"Config file {self._path!s} must hold a JSON object")

        self._migrated = migrate_payload(data)
        try:
            return StoredConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigInvalidError(f"Config file {self._path!s} is invalid: {exc}") from exc

    def get_cached(self) -> StoredConfig:
        """Return the cached config, loading the file on first use.

        A failed load is cached too; call ``reload`` to try again.
        """
        if not self._loaded:
            try:
                self._config = self._load()
                self._error = None
            except ConfigError as exc:
                self._config = None
                self._error = exc
            self._loaded = True
        if self._error is not None:
            raise self._error
        assert self._config is not None
        return self._config

    def reload(self) -> StoredConfig:
        self._loaded = False
        return self.get_cached()

    def load_or_default(self) -> StoredConfig:
        try:
            return self.get_cached()
        except ConfigNotFoundError:
            return StoredConfig(lang=detect_lang(None))

    def compatible_config(self) -> bool:
        """Persist the upgraded form of an older config file.

        Returns True when the file was rewritten.
        """
        try:
            config = self.get_cached()
        except ConfigNotFoundError:
            return False
        if not self._migrated:
            return False
        logging.info("Upgrading config file %s to version %d", self._path, CONFIG_VERSION)
        self.save(config)
        self._migrated = False
        return True

    def save(self, config: StoredConfig) -> None:
        payload = json.dumps(config.model_dump(mode="json"), indent=2)
        with self._lock:
            self._write_atomic(payload)
            self._config = config
            self._error = None
            self._loaded = True

    def reset_password(self, new_password: str) -> StoredConfig:
        config = self.get_cached()
        updated = config.model_copy(update={"password_hash": hash_password(new_password)})
        self.save(updated)
        return updated

    def _write_atomic(self, payload: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=self._path.parent,
            delete=False,
        ) as handle:
            handle.write(payload)
            temp_name = handle.name
        os.chmod(temp_name, 0o600)
        os.replace(temp_name, self._path)
