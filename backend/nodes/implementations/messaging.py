"""Messaging action nodes (WhatsApp Cloud API through the messaging client).

Config:
    send_template: template_id, plus optional values for the template's
        numbered placeholders keyed as "{{1}}", "{{2}}", ... ("{{1}}" always
        resolves to the contact's name)
    send_text_message: message_text
    send_media: media_url, media_type (image|video|audio|document), caption
    send_interactive_message: message_text, buttons [{id, text}]

Every sent message is recorded through the message log; a logging failure
is reported but does not fail the node.
"""

import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from pydantic import Field

from app.config import get_settings
from core.exceptions import MissingCredentialsError, NodeExecutionError
from nodes.base_node import BaseNodeHandler, NodeConfig
from nodes.services import MetaConfig, NodeServices
from workflow.models import ActionContext, ActionResult, Contact, Profile
from workflow.variables import resolve_variables

logger = structlog.get_logger(__name__)

_NUMBERED_PLACEHOLDER = re.compile(r"\{\{\d+\}\}")


def get_meta_config(profile: Profile) -> MetaConfig:
    """Provider credentials from a profile.

    Raises:
        MissingCredentialsError: If any credential is missing.
    """
    config = MetaConfig(
        access_token=profile.get("meta_access_token") or "",
        waba_id=profile.get("meta_waba_id") or "",
        phone_number_id=profile.get("meta_phone_number_id") or "",
    )
    if not config.access_token or not config.waba_id or not config.phone_number_id:
        raise MissingCredentialsError(
            f"Meta configuration missing in profile for user {profile.get('id')}"
        )
    return config


def _message_id(response: Optional[Dict[str, Any]]) -> Optional[str]:
    messages = (response or {}).get("messages") or []
    return messages[0].get("id") if messages else None


class MessagingNode(BaseNodeHandler):
    """Shared plumbing for nodes that send a message to the contact."""

    async def log_sent_message(
        self,
        context: ActionContext,
        contact: Contact,
        content: str,
        response: Optional[Dict[str, Any]],
    ) -> None:
        message = {
            "contact_id": contact.get("id"),
            "automation_id": context.automation_id,
            "campaign_id": None,
            "content": content,
            "meta_message_id": _message_id(response),
            "status": "sent",
            "source": "automation",
            "type": "outbound",
            "sent_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self.services.message_log.log_sent_message(message, context.team_id)
        except Exception as e:
            logger.error(
                "Failed to log sent message",
                contact_id=contact.get("id"),
                automation_id=context.automation_id,
                error=str(e),
            )


# ─── Template ──────────────────────────────────────────────────

class SendTemplateConfig(NodeConfig):
    template_id: str = Field(min_length=1)


class SendTemplateNode(MessagingNode):
    """Send an approved message template.

    Provider template details (name, language) are cached per WABA for
    TEMPLATE_CACHE_TTL seconds; the cache lives as long as the handler.
    """

    node_type = "send_template"
    display_name = "Send Template"
    description = "Send a synced WhatsApp message template to the contact"
    config_model = SendTemplateConfig

    def __init__(self, services: Optional[NodeServices] = None, cache_ttl: Optional[float] = None):
        super().__init__(services)
        self._cache_ttl = get_settings().TEMPLATE_CACHE_TTL if cache_ttl is None else cache_ttl
        self._template_cache: dict[tuple[str, str], tuple[float, Dict[str, Any]]] = {}

    async def get_template_details(self, meta_config: MetaConfig, meta_id: str) -> Dict[str, Any]:
        key = (meta_config.waba_id, meta_id)
        cached = self._template_cache.get(key)
        now = time.monotonic()
        if cached and now - cached[0] < self._cache_ttl:
            return cached[1]

        details = await self.services.messaging.get_template(meta_config, meta_id)
        self._template_cache[key] = (now, details)
        return details

    async def execute(self, context: ActionContext, config: SendTemplateConfig) -> ActionResult:
        contact = self.require_contact(context)
        raw_config = context.node.config

        template = await self.services.templates.get_template(config.template_id)
        if template is None:
            raise NodeExecutionError(f"Template with ID {config.template_id} not found.")
        if not template.get("meta_id"):
            raise NodeExecutionError(
                f"Template '{template.get('template_name')}' is not synced with Meta and cannot be sent."
            )

        meta_config = get_meta_config(context.profile)
        provider_template = await self.get_template_details(meta_config, template["meta_id"])

        def resolve_placeholder(placeholder: str) -> str:
            raw = "{{contact.name}}" if placeholder == "{{1}}" else (raw_config.get(placeholder) or "")
            return resolve_variables(raw, context.variables)

        def parameters(text: str) -> List[Dict[str, str]]:
            return [
                {"type": "text", "text": resolve_placeholder(p)}
                for p in _NUMBERED_PLACEHOLDER.findall(text)
            ]

        components_by_type = {c.get("type"): c for c in template.get("components") or []}
        final_components: List[Dict[str, Any]] = []

        header = components_by_type.get("HEADER")
        if header and header.get("text"):
            params = parameters(header["text"])
            if params:
                final_components.append({"type": "header", "parameters": params})

        body = components_by_type.get("BODY")
        if body and body.get("text"):
            params = parameters(body["text"])
            if params:
                final_components.append({"type": "body", "parameters": params})

        buttons = components_by_type.get("BUTTONS")
        if buttons:
            for index, button in enumerate(buttons.get("buttons") or []):
                if button.get("type") == "URL" and button.get("url"):
                    params = parameters(button["url"])
                    if params:
                        final_components.append({
                            "type": "button",
                            "sub_type": "url",
                            "index": str(index),
                            "parameters": params,
                        })

        response = await self.services.messaging.send_template(
            meta_config,
            contact.get("phone"),
            provider_template.get("name"),
            provider_template.get("language"),
            final_components or None,
        )

        content = (body or {}).get("text") or "Template message"
        for placeholder in _NUMBERED_PLACEHOLDER.findall(content):
            content = content.replace(placeholder, resolve_placeholder(placeholder), 1)
        await self.log_sent_message(context, contact, content, response)

        return ActionResult(
            details=f"Template '{template.get('template_name')}' sent to {contact.get('name')}."
        )


# ─── Text / media / interactive ───────────────────────────────

class SendTextConfig(NodeConfig):
    message_text: str = Field(min_length=1)


class SendTextMessageNode(MessagingNode):
    node_type = "send_text_message"
    display_name = "Send Text Message"
    description = "Send a plain text message to the contact"
    config_model = SendTextConfig

    async def execute(self, context: ActionContext, config: SendTextConfig) -> ActionResult:
        contact = self.require_contact(context)
        meta_config = get_meta_config(context.profile)
        message = resolve_variables(config.message_text, context.variables)

        response = await self.services.messaging.send_text(meta_config, contact.get("phone"), message)
        await self.log_sent_message(context, contact, message, response)
        return ActionResult(details=f"Text message sent to {contact.get('name')}.")


class SendMediaConfig(NodeConfig):
    media_url: str = Field(min_length=1)
    media_type: str = Field(min_length=1)
    caption: Optional[str] = None


class SendMediaNode(MessagingNode):
    node_type = "send_media"
    display_name = "Send Media"
    description = "Send an image, video, audio or document to the contact"
    config_model = SendMediaConfig

    async def execute(self, context: ActionContext, config: SendMediaConfig) -> ActionResult:
        contact = self.require_contact(context)
        meta_config = get_meta_config(context.profile)
        media_url = resolve_variables(config.media_url, context.variables)
        caption = resolve_variables(config.caption, context.variables) if config.caption else None

        response = await self.services.messaging.send_media(
            meta_config, contact.get("phone"), config.media_type, media_url, caption
        )
        await self.log_sent_message(
            context, contact, caption or f"[Media: {config.media_type}] {media_url}", response
        )
        return ActionResult(details=f"Media ({config.media_type}) sent to {contact.get('name')}.")


class InteractiveButton(NodeConfig):
    text: str = ""


class SendInteractiveConfig(NodeConfig):
    message_text: str = Field(min_length=1)
    buttons: List[InteractiveButton]


class SendInteractiveMessageNode(MessagingNode):
    node_type = "send_interactive_message"
    display_name = "Send Interactive Message"
    description = "Send a message with reply buttons to the contact"
    config_model = SendInteractiveConfig

    async def execute(self, context: ActionContext, config: SendInteractiveConfig) -> ActionResult:
        contact = self.require_contact(context)
        meta_config = get_meta_config(context.profile)
        message = resolve_variables(config.message_text, context.variables)
        buttons = [
            {**button.model_dump(), "text": resolve_variables(button.text, context.variables)}
            for button in config.buttons
        ]

        response = await self.services.messaging.send_interactive(
            meta_config, contact.get("phone"), message, buttons
        )
        await self.log_sent_message(context, contact, message, response)
        return ActionResult(details=f"Interactive message sent to {contact.get('name')}.")


MESSAGING_NODE_TYPES = {
    "send_template": SendTemplateNode,
    "send_text_message": SendTextMessageNode,
    "send_media": SendMediaNode,
    "send_interactive_message": SendInteractiveMessageNode,
}
