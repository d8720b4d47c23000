"""
Node Handler Registry — maps node-type strings to handlers.

Built-in handlers are registered at construction; ``register`` keeps the
table open so new node types can be added without touching the executor.
A handler is any callable taking an ActionContext and returning an
ActionResult (or an awaitable of one).
"""

from typing import Any, Awaitable, Callable, Dict, Optional, Union

from core.constants import TRIGGER_NODE_TYPES
from core.exceptions import UnknownNodeTypeError
from nodes.base_node import BaseNodeHandler
from nodes.implementations.contact import CONTACT_NODE_TYPES
from nodes.implementations.deal import DEAL_NODE_TYPES
from nodes.implementations.logic import LOGIC_NODE_TYPES
from nodes.implementations.messaging import MESSAGING_NODE_TYPES
from nodes.implementations.trigger import TriggerNode
from nodes.implementations.webhook import WEBHOOK_NODE_TYPES
from nodes.services import NodeServices
from workflow.models import ActionContext, ActionResult

NodeHandler = Callable[[ActionContext], Union[ActionResult, Awaitable[ActionResult]]]


class NodeHandlerRegistry:
    """Central registry for all node type handlers."""

    def __init__(self, services: Optional[NodeServices] = None, register_builtins: bool = True):
        self._services = services
        self._handlers: Dict[str, NodeHandler] = {}
        if register_builtins:
            self._register_builtin_handlers()

    def _register_builtin_handlers(self):
        """Register all built-in node handlers."""
        # Triggers share a single handler
        trigger = TriggerNode(self._services)
        for node_type in sorted(TRIGGER_NODE_TYPES):
            self.register(node_type, trigger)

        for node_types in (
            CONTACT_NODE_TYPES,
            MESSAGING_NODE_TYPES,
            WEBHOOK_NODE_TYPES,
            DEAL_NODE_TYPES,
            LOGIC_NODE_TYPES,
        ):
            for node_type, handler_class in node_types.items():
                self.register(node_type, handler_class(self._services))

    def register(self, node_type: str, handler: NodeHandler):
        """Register (or replace) the handler for a node type."""
        if not callable(handler):
            raise TypeError(f"Handler for '{node_type}' must be callable")
        self._handlers[node_type] = handler

    def get(self, node_type: str) -> Optional[NodeHandler]:
        """Get a handler by node type string."""
        return self._handlers.get(node_type)

    def require(self, node_type: str) -> NodeHandler:
        """Get a handler or raise UnknownNodeTypeError."""
        handler = self._handlers.get(node_type)
        if handler is None:
            raise UnknownNodeTypeError(node_type)
        return handler

    def list_all(self) -> list:
        """List all registered node types with metadata."""
        entries: list[dict[str, Any]] = []
        for node_type, handler in self._handlers.items():
            if isinstance(handler, BaseNodeHandler):
                entries.append({
                    "node_type": node_type,
                    "display_name": handler.display_name,
                    "description": handler.description,
                    "config_schema": handler.get_config_schema(),
                })
            else:
                entries.append({
                    "node_type": node_type,
                    "display_name": getattr(handler, "__name__", node_type),
                    "description": (getattr(handler, "__doc__", None) or "").strip(),
                    "config_schema": {"type": "object", "properties": {}},
                })
        return entries

    @property
    def available_types(self) -> list:
        return list(self._handlers.keys())

    def __contains__(self, node_type: str) -> bool:
        return node_type in self._handlers
