"""Localized log messages."""

from __future__ import annotations

import os
from typing import Optional

_CATALOGS = {
    "en": {
        "listening": "Listening on %s",
        "listen_failed": "Failed to listen on %s, check whether the port is in use! %s",
        "docker_hint": "Running in Docker, open http://docker-host-ip:%d in a browser to configure",
        "config_not_found": "Config file %s not found, specify the path with -c",
        "password_reset": "Password reset for user %r",
        "waiting_network": "Waiting for network connection: %s",
        "retry_in": "Retrying in %d seconds...",
        "network_connected": "Network connected",
        "dns_fallback": "Local DNS failed! Using %s, a custom DNS server can be set with -dns",
        "web_exit": "Web service stopped, exiting in %d seconds",
    },
    "zh": {
        "listening": "监听 %s",
        "listen_failed": "监听端口 %s 发生异常, 请检查端口是否被占用! %s",
        "docker_hint": "Docker中运行, 请在浏览器中打开 http://docker主机IP:%d 进行配置",
        "config_not_found": "配置文件 %s 不存在, 可通过-c指定配置文件",
        "password_reset": "用户 %r 的密码已重置",
        "waiting_network": "等待网络连接: %s",
        "retry_in": "%d 秒后重试...",
        "network_connected": "网络已连接",
        "dns_fallback": "本机DNS异常! 将默认使用 %s, 可参考文档通过 -dns 自定义 DNS 服务器",
        "web_exit": "Web 服务已停止, %d 秒后退出",
    },
}

_active = "en"


def detect_lang(configured: Optional[str] = None) -> str:
    """Pick ``zh`` or ``en`` from the stored setting or the ``LANG`` environment."""
    lang = (configured or os.environ.get("LANG", "")).lower()
    return "zh" if lang.startswith("zh") else "en"


def init_lang(lang: Optional[str]) -> str:
    global _active
    _active = detect_lang(lang)
    return _active


def msg(key: str) -> str:
    return _CATALOGS[_active].get(key) or _CATALOGS["en"][key]
