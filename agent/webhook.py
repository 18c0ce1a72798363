"""Webhook delivery after update cycles."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Optional

import requests

from shared_lib.schema import Webhook


@dataclass
class WebhookResult:
    ok: bool
    message: str
    status_code: Optional[int] = None


def render_template(template: str, ip: str, result: str, domains: str) -> str:
    # Bodies are usually JSON, so str.format would trip over literal braces.
    for key, value in (("{ip}", ip), ("{result}", result), ("{domains}", domains)):
        template = template.replace(key, value)
    return template


def _content_type(body: str) -> str:
    try:
        json.loads(body)
    except ValueError:
        return "application/x-www-form-urlencoded"
    return "application/json"


def send_webhook(
    session: requests.Session,
    webhook: Webhook,
    ip: str,
    result: str,
    domains: str,
) -> Optional[WebhookResult]:
    """Call the configured webhook; returns None when none is configured.

    A request body switches the call from GET to POST.
    """
    if not webhook.url:
        return None

    url = render_template(webhook.url, ip, result, domains)
    try:
        if webhook.request_body:
            body = render_template(webhook.request_body, ip, result, domains)
            response = session.post(
                url,
                data=body.encode("utf-8"),
                headers={"Content-Type": _content_type(body)},
                timeout=20,
            )
        else:
            response = session.get(url, timeout=20)
        response.raise_for_status()
    except requests.RequestException as exc:
        logging.warning("Webhook call to %s failed: %s", url, exc)
        return WebhookResult(
            ok=False,
            message=str(exc),
            status_code=getattr(exc.response, "status_code", None),
        )

    logging.info("Webhook call to %s succeeded", url)
    return WebhookResult(ok=True, message=response.text.strip(), status_code=response.status_code)
