"""Deal action nodes."""

import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import Field

from core.constants import CrmEvent, DealStatus
from core.exceptions import NodeExecutionError
from nodes.base_node import BaseNodeHandler, NodeConfig
from workflow.models import ActionContext, ActionResult
from workflow.variables import resolve_variables


class CreateDealConfig(NodeConfig):
    deal_name: str = Field(min_length=1)
    pipeline_id: str = Field(min_length=1)
    stage_id: str = Field(min_length=1)
    deal_value: Optional[Any] = None


class UpdateDealStageConfig(NodeConfig):
    stage_id: str = Field(min_length=1)


def _parse_value(raw: Any) -> float:
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(value) else value


class CreateDealNode(BaseNodeHandler):
    node_type = "create_deal"
    display_name = "Create Deal"
    description = "Open a new deal for the contact in a pipeline stage"
    config_model = CreateDealConfig

    async def execute(self, context: ActionContext, config: CreateDealConfig) -> ActionResult:
        contact = self.require_contact(context)
        deal_name = resolve_variables(config.deal_name, context.variables)
        deal_value = (
            _parse_value(resolve_variables(str(config.deal_value), context.variables))
            if config.deal_value not in (None, "")
            else 0.0
        )

        deal = await self.services.deals.create_deal({
            "name": deal_name,
            "value": deal_value,
            "pipeline_id": config.pipeline_id,
            "stage_id": config.stage_id,
            "contact_id": contact.get("id"),
            "team_id": context.team_id,
            "status": DealStatus.OPEN.value,
        })

        await self.services.events.publish(
            CrmEvent.DEAL_CREATED.value,
            context.profile.get("id"),
            {"contact": contact, "deal": deal},
        )
        return ActionResult(details=f'Deal "{deal_name}" created successfully.')


class UpdateDealStageNode(BaseNodeHandler):
    """Move the contact's latest open deal to another stage.

    Moving into a won/lost stage closes the deal.
    """

    node_type = "update_deal_stage"
    display_name = "Update Deal Stage"
    description = "Move the contact's latest open deal to a stage"
    config_model = UpdateDealStageConfig

    async def execute(self, context: ActionContext, config: UpdateDealStageConfig) -> ActionResult:
        contact = self.require_contact(context)
        deals = self.services.deals

        latest = await deals.get_latest_open_deal(contact.get("id"))
        if latest is None:
            return ActionResult(details="No open deal found for this contact. No action taken.")

        stage = await deals.get_stage(config.stage_id)
        if stage is None:
            raise NodeExecutionError(f"Pipeline stage with id {config.stage_id} not found.")

        status = latest.get("status") or DealStatus.OPEN.value
        closed_at = None
        if stage.get("type") in (DealStatus.WON.value, DealStatus.LOST.value):
            status = stage["type"]
            closed_at = datetime.now(timezone.utc).isoformat()

        updated = await deals.update_deal(
            latest["id"], stage_id=config.stage_id, status=status, closed_at=closed_at
        )

        await self.services.events.publish(
            CrmEvent.DEAL_STAGE_CHANGED.value,
            context.profile.get("id"),
            {"contact": contact, "deal": updated, "new_stage_id": config.stage_id},
        )
        return ActionResult(details=f'Deal "{latest.get("name")}" moved to the new stage.')


DEAL_NODE_TYPES = {
    "create_deal": CreateDealNode,
    "update_deal_stage": UpdateDealStageNode,
}
