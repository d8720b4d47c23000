"""Trigger node handler.

By the time a trigger node runs, the ingestion side has already matched the
event (keyword, tag, button payload, stage) against the trigger's settings.
The node only acknowledges and lets the run follow its default edge.
"""

from typing import Any

from nodes.base_node import BaseNodeHandler
from workflow.models import ActionContext, ActionResult


class TriggerNode(BaseNodeHandler):
    """Acknowledge that the automation has been triggered."""

    node_type = "trigger"
    display_name = "Trigger"
    description = "Starting point of an automation"

    async def execute(self, context: ActionContext, config: Any) -> ActionResult:
        return ActionResult(details=f"Trigger '{context.node.label}' executed successfully.")
