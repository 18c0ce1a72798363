"""Shared configuration schemas."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

CONFIG_VERSION = 2
DEFAULT_CHECK_IP_URL = "https://api.ipify.org"


class DnsTarget(BaseModel):
    id: str
    hostname: str
    update_url: str
    encrypted_token: str

    model_config = ConfigDict(extra="forbid")


class Webhook(BaseModel):
    url: str = ""
    request_body: str = ""

    model_config = ConfigDict(extra="forbid")


class StoredConfig(BaseModel):
    """Settings persisted to the configuration file and edited from the web UI."""

    version: int = CONFIG_VERSION
    username: str = ""
    password_hash: str = ""
    lang: str = "en"
    not_allow_wan_access: bool = True
    check_ip_url: HttpUrl = Field(default=DEFAULT_CHECK_IP_URL, validate_default=True)
    targets: List[DnsTarget] = Field(default_factory=list)
    webhook: Webhook = Field(default_factory=Webhook)

    model_config = ConfigDict(extra="forbid")

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password_hash)


class LoginForm(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TargetForm(BaseModel):
    hostnames: str
    domain: str = ""
    token: Optional[str] = None


class SaveForm(BaseModel):
    """Payload accepted by the /save route."""

    username: Optional[str] = None
    password: Optional[str] = None
    lang: Optional[str] = None
    not_allow_wan_access: Optional[bool] = None
    check_ip_url: Optional[HttpUrl] = None
    update_url_template: Optional[str] = None
    targets: Optional[List[TargetForm]] = None
    webhook: Optional[Webhook] = None

    model_config = ConfigDict(extra="forbid")
