"""In-memory collaborators and graph builders for the engine tests."""

from typing import Any, Optional
from uuid import uuid4

from nodes.services import MetaConfig
from workflow.hooks import ExecutionLifecycleHooks, HookName
from workflow.models import ActionContext, AutomationNode


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class FakeContactStore:
    def __init__(self, contacts: Optional[dict[str, dict]] = None):
        self.contacts = contacts if contacts is not None else {}
        self.updates: list[dict] = []

    async def update_contact(self, contact_id, *, tags=None, custom_fields=None):
        self.updates.append({"contact_id": contact_id, "tags": tags, "custom_fields": custom_fields})
        contact = self.contacts.get(contact_id)
        if contact is None:
            return None
        if tags is not None:
            contact = {**contact, "tags": tags}
        if custom_fields is not None:
            contact = {**contact, "custom_fields": custom_fields}
        self.contacts[contact_id] = contact
        return contact


class FakeDealStore:
    def __init__(self):
        self.deals: dict[str, dict] = {}
        self.stages: dict[str, dict] = {}

    async def create_deal(self, deal):
        stored = {**deal, "id": str(uuid4())}
        self.deals[stored["id"]] = stored
        return stored

    async def get_latest_open_deal(self, contact_id):
        open_deals = [
            d for d in self.deals.values()
            if d.get("contact_id") == contact_id and d.get("status") == "open"
        ]
        return open_deals[-1] if open_deals else None

    async def get_stage(self, stage_id):
        return self.stages.get(stage_id)

    async def update_deal(self, deal_id, *, stage_id, status, closed_at):
        deal = {**self.deals[deal_id], "stage_id": stage_id, "status": status, "closed_at": closed_at}
        self.deals[deal_id] = deal
        return deal


class FakeTemplateStore:
    def __init__(self):
        self.templates: dict[str, dict] = {}

    async def get_template(self, template_id):
        return self.templates.get(template_id)


class FakeMessagingClient:
    def __init__(self):
        self.sent: list[dict] = []
        self.template_lookups = 0
        self.provider_templates: dict[str, dict] = {}

    def _response(self) -> dict:
        return {"messages": [{"id": f"wamid.{len(self.sent)}"}]}

    async def get_template(self, config: MetaConfig, meta_template_id):
        self.template_lookups += 1
        return self.provider_templates[meta_template_id]

    async def send_template(self, config, to, template_name, language, components=None):
        self.sent.append({
            "kind": "template", "to": to, "name": template_name,
            "language": language, "components": components,
        })
        return self._response()

    async def send_text(self, config, to, text):
        self.sent.append({"kind": "text", "to": to, "text": text})
        return self._response()

    async def send_media(self, config, to, media_type, media_url, caption=None):
        self.sent.append({
            "kind": "media", "to": to, "media_type": media_type,
            "media_url": media_url, "caption": caption,
        })
        return self._response()

    async def send_interactive(self, config, to, text, buttons):
        self.sent.append({"kind": "interactive", "to": to, "text": text, "buttons": buttons})
        return self._response()


class FakeMessageLog:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: list[tuple[dict, str]] = []

    async def log_sent_message(self, message, team_id):
        if self.fail:
            raise RuntimeError("message log unavailable")
        self.messages.append((message, team_id))


class FakeEventPublisher:
    def __init__(self):
        self.events: list[tuple[str, Any, dict]] = []

    async def publish(self, event_type, profile_id, data):
        self.events.append((event_type, profile_id, data))


class HookRecorder:
    """Subscribes to every hook of a bus and records the calls in order."""

    def __init__(self, bus: ExecutionLifecycleHooks):
        self.calls: list[tuple] = []
        bus.add_handler(HookName.WORKFLOW_EXECUTE_BEFORE, lambda: self.calls.append(("workflowExecuteBefore",)))
        bus.add_handler(
            HookName.WORKFLOW_EXECUTE_AFTER,
            lambda status, details: self.calls.append(("workflowExecuteAfter", status, details)),
        )
        bus.add_handler(
            HookName.NODE_EXECUTE_BEFORE,
            lambda node: self.calls.append(("nodeExecuteBefore", node.id)),
        )
        bus.add_handler(
            HookName.NODE_EXECUTE_AFTER,
            lambda node, status, details: self.calls.append(("nodeExecuteAfter", node.id, status, details)),
        )

    def of(self, hook_name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == hook_name]


# ---------------------------------------------------------------------------
# Graph builders
# ---------------------------------------------------------------------------

def make_node(node_id: str, node_type: str, config: Optional[dict] = None, label: str = "") -> dict:
    """Node in the shape the graph editor saves."""
    return {
        "id": node_id,
        "type": "custom",
        "data": {"type": node_type, "label": label or node_type, "config": config or {}},
    }


def make_edge(source: str, target: str, handle: Optional[str] = None) -> dict:
    edge = {"source": source, "target": target}
    if handle:
        edge["sourceHandle"] = handle
    return edge


def make_automation(nodes: list, edges: list, **overrides) -> dict:
    return {
        "id": overrides.pop("id", "auto-1"),
        "teamId": overrides.pop("teamId", "team-1"),
        "name": overrides.pop("name", "Test Automation"),
        "status": overrides.pop("status", "active"),
        "nodes": nodes,
        "edges": edges,
        **overrides,
    }



def make_context(
    node_type: str,
    config: Optional[dict] = None,
    *,
    contact: Optional[dict] = None,
    profile: Optional[dict] = None,
    trigger: Any = None,
    node_id: str = "node-1",
    label: str = "",
) -> ActionContext:
    """ActionContext for calling a handler directly."""
    return ActionContext(
        profile=profile or {"id": "user-1"},
        contact=contact,
        trigger=trigger,
        node=AutomationNode.model_validate(make_node(node_id, node_type, config, label)),
        automation_id="auto-1",
        team_id="team-1",
    )
