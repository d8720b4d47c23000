"""Logic nodes: condition and random split.

Both only pick an outgoing handle; neither has side effects.
"""

import random
import re
from typing import Any, Callable, Optional

from core.constants import EdgeHandle
from nodes.base_node import BaseNodeHandler, NodeConfig
from nodes.services import NodeServices
from workflow.models import ActionContext, ActionResult
from workflow.variables import get_value_from_path, resolve_variables, stringify

_BRACES = re.compile(r"\{\{|\}\}")


class ConditionConfig(NodeConfig):
    field: str = ""
    operator: Optional[str] = None
    value: Any = ""


def evaluate_condition(source_value: Any, operator: Optional[str], value: Any) -> bool:
    """Case-insensitive comparison of a resolved field against a value.

    For list-valued fields ``equals`` tests membership exactly like
    ``contains``. Existing automations rely on this, so it is kept as is.
    Unknown operators never match.
    """
    needle = stringify(value).lower()

    if isinstance(source_value, (list, tuple)):
        items = [stringify(v).lower() for v in source_value]
        if operator in ("contains", "equals"):
            return needle in items
        if operator == "not_contains":
            return needle not in items
        return False

    haystack = stringify(source_value).lower()
    if operator == "contains":
        return needle in haystack
    if operator == "not_contains":
        return needle not in haystack
    if operator == "equals":
        return haystack == needle
    return False


class ConditionNode(BaseNodeHandler):
    """Branch on a contact/trigger field: handle 'yes' or 'no'."""

    node_type = "condition"
    display_name = "Condition"
    description = "Compare a contact or trigger field and branch yes/no"
    config_model = ConditionConfig

    async def execute(self, context: ActionContext, config: ConditionConfig) -> ActionResult:
        field_path = _BRACES.sub("", config.field).strip()
        value = resolve_variables(config.value, context.variables)
        source_value = get_value_from_path(context.variables, field_path)

        met = evaluate_condition(source_value, config.operator, value)

        details = (
            f"Condition evaluated: '{field_path}' ({stringify(source_value)}) "
            f"{config.operator} '{stringify(value)}'. Result: {'Yes' if met else 'No'}"
        )
        return ActionResult(
            next_node_handle=EdgeHandle.YES if met else EdgeHandle.NO,
            details=details,
        )


class SplitPathNode(BaseNodeHandler):
    """Send the run down path A or B with equal probability.

    ``chooser`` returns a float in [0, 1); values below 0.5 pick A. It defaults
    to the unseeded ``random.random``.
    """

    node_type = "split_path"
    display_name = "Split Path"
    description = "Randomly route the run to path A or B (50/50)"

    def __init__(
        self,
        services: Optional[NodeServices] = None,
        chooser: Callable[[], float] = random.random,
    ):
        super().__init__(services)
        self._chooser = chooser

    async def execute(self, context: ActionContext, config: Any) -> ActionResult:
        handle = EdgeHandle.A if self._chooser() < 0.5 else EdgeHandle.B
        return ActionResult(
            next_node_handle=handle,
            details=f"Path split randomly to branch {handle.value.upper()}.",
        )


LOGIC_NODE_TYPES = {
    "condition": ConditionNode,
    "split_path": SplitPathNode,
}
