"""Contact action nodes: tags and custom fields."""

import re
from typing import Any

from pydantic import Field

from core.constants import CrmEvent
from core.exceptions import NodeExecutionError
from nodes.base_node import BaseNodeHandler, NodeConfig
from workflow.models import ActionContext, ActionResult
from workflow.variables import resolve_variables


class TagConfig(NodeConfig):
    tag: str = Field(min_length=1)


class CustomFieldConfig(NodeConfig):
    field_name: str = Field(min_length=1)
    field_value: Any = ""


class AddTagNode(BaseNodeHandler):
    """Add a tag to the contact and announce it to tag-based triggers."""

    node_type = "add_tag"
    display_name = "Add Tag"
    description = "Add a tag to the contact"
    config_model = TagConfig

    async def execute(self, context: ActionContext, config: TagConfig) -> ActionResult:
        contact = self.require_contact(context)
        tag = resolve_variables(config.tag, context.variables)
        current_tags = list(contact.get("tags") or [])

        if tag in current_tags:
            return ActionResult(
                updated_contact=contact,
                details=f"Contact already has tag '{tag}'. No action taken.",
            )

        new_tags = list(dict.fromkeys([*current_tags, tag]))
        updated = await self.services.contacts.update_contact(contact["id"], tags=new_tags)
        if updated is None:
            raise NodeExecutionError("Failed to update contact after adding tag.")

        await self.services.events.publish(
            CrmEvent.TAG_ADDED.value,
            context.profile.get("id"),
            {"contact": updated, "tag": tag},
        )
        return ActionResult(updated_contact=updated, details=f"Tag '{tag}' added to contact.")


class RemoveTagNode(BaseNodeHandler):
    node_type = "remove_tag"
    display_name = "Remove Tag"
    description = "Remove a tag from the contact"
    config_model = TagConfig

    async def execute(self, context: ActionContext, config: TagConfig) -> ActionResult:
        contact = self.require_contact(context)
        tag = resolve_variables(config.tag, context.variables)
        new_tags = [t for t in (contact.get("tags") or []) if t != tag]

        updated = await self.services.contacts.update_contact(contact["id"], tags=new_tags)
        if updated is None:
            raise NodeExecutionError("Failed to update contact after removing tag.")
        return ActionResult(updated_contact=updated, details=f"Tag '{tag}' removed from contact.")


class SetCustomFieldNode(BaseNodeHandler):
    node_type = "set_custom_field"
    display_name = "Set Custom Field"
    description = "Set a custom field on the contact"
    config_model = CustomFieldConfig

    async def execute(self, context: ActionContext, config: CustomFieldConfig) -> ActionResult:
        contact = self.require_contact(context)
        field_name = re.sub(r"\s+", "_", resolve_variables(config.field_name, context.variables))
        field_value = resolve_variables(config.field_value or "", context.variables)

        custom_fields = {**(contact.get("custom_fields") or {}), field_name: field_value}
        updated = await self.services.contacts.update_contact(
            contact["id"], custom_fields=custom_fields
        )
        if updated is None:
            raise NodeExecutionError("Failed to update contact after setting custom field.")
        return ActionResult(
            updated_contact=updated,
            details=f"Field '{field_name}' set to '{field_value}'.",
        )


CONTACT_NODE_TYPES = {
    "add_tag": AddTagNode,
    "remove_tag": RemoveTagNode,
    "set_custom_field": SetCustomFieldNode,
}
