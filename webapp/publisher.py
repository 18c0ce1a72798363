"""Compile web UI form data into the stored configuration."""

from __future__ import annotations

from typing import Iterable

from agent.config_store import ConfigStore
from shared_lib.schema import DnsTarget, SaveForm, StoredConfig, TargetForm
from shared_lib.security import CryptoManager, hash_password
from shared_lib.validation import validate_url

DEFAULT_UPDATE_URL_TEMPLATE = (
    "https://dynamicdns.park-your-domain.com/update"
    "?host={hostname}&domain={domain}&password={token}&ip={ip}"
)


class ConfigCompiler:
    """Builds and publishes configurations with encrypted provider tokens."""

    def __init__(
        self,
        crypto: CryptoManager,
        update_url_template: str = DEFAULT_UPDATE_URL_TEMPLATE,
    ) -> None:
        self._crypto = crypto
        self._update_url_template = update_url_template

    def _split_hosts(self, hostnames: str) -> list[str]:
        hosts = [host.strip() for host in hostnames.split(",")]
        return [host for host in hosts if host]

    def _render_update_url(self, template: str, hostname: str, domain: str, target_id: str) -> str:
        try:
            update_url = template.format(
                hostname=hostname,
                domain=domain,
                token="{token}",
                ip="{ip}",
                id=target_id,
            )
        except (KeyError, IndexError, ValueError) as exc:
            raise ValueError(f"update URL template is invalid: {exc}") from exc
        validate_url(update_url.replace("{token}", "token").replace("{ip}", "0.0.0.0"))
        return update_url

    def _build_target(
        self,
        form: TargetForm,
        hostname: str,
        template: str,
        existing: dict[str, DnsTarget],
    ) -> DnsTarget:
        target_id = f"{hostname}.{form.domain}" if form.domain else hostname
        if form.token:
            encrypted_token = self._crypto.encrypt_str(form.token)
        elif target_id in existing:
            encrypted_token = existing[target_id].encrypted_token
        else:
            raise ValueError(f"token is required for {target_id}")
        return DnsTarget(
            id=target_id,
            hostname=hostname,
            update_url=self._render_update_url(template, hostname, form.domain, target_id),
            encrypted_token=encrypted_token,
        )

    def compile_targets(
        self,
        targets: Iterable[TargetForm],
        current: StoredConfig,
        template: str,
    ) -> list[DnsTarget]:
        existing = {target.id: target for target in current.targets}
        expanded_targets: list[DnsTarget] = []
        seen: set[str] = set()
        for target in targets:
            for hostname in self._split_hosts(target.hostnames):
                built = self._build_target(target, hostname, template, existing)
                if built.id in seen:
                    continue
                seen.add(built.id)
                expanded_targets.append(built)
        return expanded_targets

    def compile(self, form: SaveForm, current: StoredConfig) -> StoredConfig:
        updates: dict = {}
        if form.username:
            updates["username"] = form.username
        if form.password:
            updates["password_hash"] = hash_password(form.password)
        if form.lang:
            updates["lang"] = form.lang
        if form.not_allow_wan_access is not None:
            updates["not_allow_wan_access"] = form.not_allow_wan_access
        if form.check_ip_url is not None:
            validate_url(str(form.check_ip_url))
            updates["check_ip_url"] = form.check_ip_url
        if form.targets is not None:
            template = form.update_url_template or self._update_url_template
            updates["targets"] = self.compile_targets(form.targets, current, template)
        if form.webhook is not None:
            if form.webhook.url:
                validate_url(form.webhook.url, allow_http=True, allow_private=True)
            updates["webhook"] = form.webhook
        return current.model_copy(update=updates)

    def publish(self, store: ConfigStore, form: SaveForm) -> StoredConfig:
        config = self.compile(form, store.load_or_default())
        store.save(config)
        return config
