"""Outbound webhook node.

Config (camelCase keys as saved by the graph editor):
    url: Target URL, may contain {{variables}}
    method: POST (default), GET, PUT, PATCH, DELETE
    sendHeaders / headers: [{key, value}]
    sendBody / body:
        {
            "contentType": "json" | "form_urlencoded",
            "specify": "raw" | "params",
            "rawJson": '{"name": "{{contact.name}}"}',
            "params": [{key, value}]
        }
"""

import ipaddress
import json
from typing import Callable, List, Optional
from urllib.parse import urlencode, urlparse

import httpx
from pydantic import Field

from app.config import get_settings
from core.exceptions import WebhookDeliveryError
from nodes.base_node import BaseNodeHandler, NodeConfig
from nodes.services import NodeServices
from workflow.models import ActionContext, ActionResult
from workflow.variables import resolve_json_placeholders, resolve_variables

_BODY_METHODS = ("POST", "PUT", "PATCH")
_FORBIDDEN_HOSTS = ("localhost", "127.0.0.1", "::1")


def validate_url_safety(url: str) -> None:
    """Validate a webhook URL for SSRF protection.

    Blocks:
    - Non-HTTP(S) schemes
    - localhost aliases
    - Private, loopback, link-local and reserved IP literals

    Raises:
        ValueError: If URL is unsafe
    """
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ("http", "https"):
        raise ValueError(f"Unsupported scheme: {parsed.scheme}. Only HTTP and HTTPS allowed.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname")

    if hostname.lower() in _FORBIDDEN_HOSTS:
        raise ValueError("Connections to localhost are not allowed")

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        # Not an IP literal, a domain name is allowed
        return

    if ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_reserved:
        raise ValueError(f"Connections to private IP {hostname} are not allowed")


class KeyValue(NodeConfig):
    key: str = ""
    value: str = ""


class WebhookBody(NodeConfig):
    content_type: str = Field(default="json", alias="contentType")
    specify: str = "params"
    raw_json: str = Field(default="{}", alias="rawJson")
    params: List[KeyValue] = Field(default_factory=list)


class WebhookConfig(NodeConfig):
    url: Optional[str] = None
    method: str = "POST"
    send_headers: bool = Field(default=False, alias="sendHeaders")
    headers: List[KeyValue] = Field(default_factory=list)
    send_body: bool = Field(default=False, alias="sendBody")
    body: WebhookBody = Field(default_factory=WebhookBody)


class SendWebhookNode(BaseNodeHandler):
    """Call an external URL with data from the contact and trigger."""

    node_type = "send_webhook"
    display_name = "Send Webhook"
    description = "Send an HTTP request to an external URL"
    config_model = WebhookConfig

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        client_factory: Optional[Callable[[], httpx.AsyncClient]] = None,
    ):
        super().__init__(services)
        self._client_factory = client_factory or self._default_client

    @staticmethod
    def _default_client() -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=get_settings().WEBHOOK_TIMEOUT, follow_redirects=True)

    async def execute(self, context: ActionContext, config: WebhookConfig) -> ActionResult:
        if not config.url:
            return ActionResult(details="Webhook not sent: URL not configured.")

        variables = context.variables
        url = resolve_variables(config.url, variables)
        method = config.method.upper()

        if get_settings().WEBHOOK_BLOCK_PRIVATE_NETWORKS:
            try:
                validate_url_safety(url)
            except ValueError as e:
                raise WebhookDeliveryError(f"Webhook to {url} blocked: {e}") from e

        headers: dict[str, str] = {}
        if config.send_headers:
            for header in config.headers:
                if header.key:
                    headers[header.key] = resolve_variables(header.value, variables)

        content: Optional[str] = None
        if config.send_body and method in _BODY_METHODS:
            body = config.body
            if body.content_type == "json":
                headers["Content-Type"] = "application/json"
                if body.specify == "raw":
                    content = resolve_json_placeholders(body.raw_json or "{}", variables)
                else:
                    content = json.dumps({
                        p.key: resolve_variables(p.value, variables) for p in body.params if p.key
                    })
            elif body.content_type == "form_urlencoded":
                headers["Content-Type"] = "application/x-www-form-urlencoded"
                content = urlencode([
                    (p.key, resolve_variables(p.value, variables)) for p in body.params if p.key
                ])

        try:
            async with self._client_factory() as client:
                response = await client.request(method, url, headers=headers, content=content)
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(
                f"Failed to send webhook to {url}. Status: 0. Error: {e}"
            ) from e

        if response.is_error:
            raise WebhookDeliveryError(
                f"Failed to send webhook to {url}. Status: {response.status_code}. "
                f"Error: Request failed with status {response.status_code}: {response.text}",
                status_code=response.status_code,
            )

        return ActionResult(details=f"Webhook sent to {url}. Response: {response.status_code}")


WEBHOOK_NODE_TYPES = {
    "send_webhook": SendWebhookNode,
}
