"""
Base handler interface for all automation node types.

Every node type (trigger, contact action, messaging action, logic branch)
inherits from BaseNodeHandler and implements execute(). Each handler owns
the validation of its own slice of ``node.data.config`` through a pydantic
``config_model``.
"""

import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from core.exceptions import ContactRequiredError, InvalidNodeConfigError
from nodes.services import NodeServices
from workflow.models import ActionContext, ActionResult, Contact

logger = structlog.get_logger(__name__)


class NodeConfig(BaseModel):
    """Base config schema; unknown keys are kept for handlers that read them."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class BaseNodeHandler(ABC):
    """
    Abstract base class for node handlers.

    Subclasses must implement:
    - execute(context, config) -> ActionResult
    - node_type (class property)
    - display_name (class property)
    """

    node_type: str = "base"
    display_name: str = "Base Node"
    description: str = "Abstract base node"
    config_model: type[NodeConfig] = NodeConfig

    def __init__(self, services: Optional[NodeServices] = None):
        self.services = services

    @abstractmethod
    async def execute(self, context: ActionContext, config: Any) -> ActionResult:
        """
        Execute the node.

        Args:
            context: Per-visit action context
            config: Parsed instance of config_model

        Returns:
            ActionResult with details and optional handle / updated contact
        """
        pass

    async def __call__(self, context: ActionContext) -> ActionResult:
        """
        Parse config, then run the node with timing and logging.

        This is the entry point called by the workflow executor. Failures are
        logged and re-raised so the executor can fail the run.
        """
        config = self.parse_config(context)
        start = time.monotonic()
        try:
            result = await self.execute(context, config)
        except Exception as e:
            logger.error(
                "Node failed",
                node_type=self.node_type,
                node_id=context.node.id,
                automation_id=context.automation_id,
                error=str(e),
                duration_ms=round((time.monotonic() - start) * 1000, 2),
            )
            raise

        logger.info(
            "Node completed",
            node_type=self.node_type,
            node_id=context.node.id,
            automation_id=context.automation_id,
            handle=result.next_node_handle.value if result.next_node_handle else None,
            duration_ms=round((time.monotonic() - start) * 1000, 2),
        )
        return result

    def parse_config(self, context: ActionContext) -> Any:
        """Validate the node's raw config against config_model."""
        try:
            return self.config_model.model_validate(context.node.config or {})
        except ValidationError as e:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
                for err in e.errors()
            ]
            raise InvalidNodeConfigError(context.node.type, context.node.id, errors) from e

    def require_contact(self, context: ActionContext) -> Contact:
        """Contact of the run, or ContactRequiredError."""
        if not context.contact:
            raise ContactRequiredError(self.display_name)
        return context.contact

    @classmethod
    def get_config_schema(cls) -> Dict[str, Any]:
        """Return JSON schema for node configuration."""
        return cls.config_model.model_json_schema()
