"""Collaborator interfaces the node handlers call for side effects.

Storage, messaging-provider transport and event fan-out belong to the host
application. Handlers only depend on these protocols; each call acquires and
releases whatever resource the collaborator pools.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

Record = dict[str, Any]


@dataclass(frozen=True)
class MetaConfig:
    """WhatsApp Cloud API credentials taken from a profile."""

    access_token: str
    waba_id: str
    phone_number_id: str


class ContactStore(Protocol):
    async def update_contact(
        self,
        contact_id: str,
        *,
        tags: Optional[list[str]] = None,
        custom_fields: Optional[dict[str, Any]] = None,
    ) -> Optional[Record]:
        """Persist the given fields and return the stored contact (None if missing)."""
        ...


class DealStore(Protocol):
    async def create_deal(self, deal: Record) -> Record:
        ...

    async def get_latest_open_deal(self, contact_id: str) -> Optional[Record]:
        ...

    async def get_stage(self, stage_id: str) -> Optional[Record]:
        """Pipeline stage with at least ``type`` and ``pipeline_id``."""
        ...

    async def update_deal(
        self,
        deal_id: str,
        *,
        stage_id: str,
        status: str,
        closed_at: Optional[str],
    ) -> Record:
        ...


class TemplateStore(Protocol):
    async def get_template(self, template_id: str) -> Optional[Record]:
        """Stored template with ``template_name``, ``meta_id`` and ``components``."""
        ...


class MessagingClient(Protocol):
    """Outbound messaging provider. Send calls return the provider response,
    which carries the message id under ``messages[0].id``."""

    async def get_template(self, config: MetaConfig, meta_template_id: str) -> Record:
        """Provider-side template details with ``name`` and ``language``."""
        ...

    async def send_template(
        self,
        config: MetaConfig,
        to: str,
        template_name: str,
        language: str,
        components: Optional[list[Record]] = None,
    ) -> Record:
        ...

    async def send_text(self, config: MetaConfig, to: str, text: str) -> Record:
        ...

    async def send_media(
        self,
        config: MetaConfig,
        to: str,
        media_type: str,
        media_url: str,
        caption: Optional[str] = None,
    ) -> Record:
        ...

    async def send_interactive(
        self,
        config: MetaConfig,
        to: str,
        text: str,
        buttons: list[Record],
    ) -> Record:
        ...


class MessageLog(Protocol):
    async def log_sent_message(self, message: Record, team_id: str) -> None:
        ...


class EventPublisher(Protocol):
    async def publish(self, event_type: str, profile_id: str, data: Record) -> None:
        """Hand a CRM event to the ingestion side so other automations can react."""
        ...


@dataclass
class NodeServices:
    """Collaborators injected into the built-in node handlers."""

    contacts: ContactStore
    deals: DealStore
    templates: TemplateStore
    messaging: MessagingClient
    message_log: MessageLog
    events: EventPublisher
