"""Custom exceptions for the CRM automation engine."""

from typing import Optional


class AutomationError(Exception):
    """Base exception for the automation engine."""

    def __init__(self, message: str):
        """Initialize exception with message.

        Args:
            message: Exception message
        """
        self.message = message
        super().__init__(self.message)


# ─── Configuration errors (never retried) ─────────────────────

class ConfigurationError(AutomationError):
    """The automation graph or a node's configuration is structurally broken."""


class InvalidAutomationError(ConfigurationError):
    """Raw automation record could not be parsed."""

    def __init__(self, message: str = "Invalid automation definition"):
        super().__init__(message)


class UnknownNodeTypeError(ConfigurationError):
    """No handler is registered for a node type."""

    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"No handler found for node type: {node_type}")


class InvalidNodeConfigError(ConfigurationError):
    """A node's config does not match its handler's schema."""

    def __init__(self, node_type: str, node_id: str, errors: Optional[list[str]] = None):
        self.node_type = node_type
        self.node_id = node_id
        self.errors = errors or []
        detail = "; ".join(self.errors) if self.errors else "invalid configuration"
        super().__init__(f"Invalid config for '{node_type}' node {node_id}: {detail}")


class StartNodeNotFoundError(ConfigurationError):
    """No node to start the run from."""

    def __init__(self, message: str = "Start node not found"):
        super().__init__(message)


class GraphIntegrityError(ConfigurationError):
    """An edge points at a missing node, or the walk revisits a node."""


# ─── Handler errors ───────────────────────────────────────────

class NodeExecutionError(AutomationError):
    """A node handler could not complete its action."""


class ContactRequiredError(NodeExecutionError):
    """Action needs a contact but the run has none."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f'Action "{action}" requires a contact.')


class MissingCredentialsError(NodeExecutionError):
    """Profile lacks the provider credentials an action needs."""


class WebhookDeliveryError(NodeExecutionError):
    """Outbound webhook request failed."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class RunTimeoutError(AutomationError):
    """The caller-imposed run timeout elapsed."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Workflow timed out after {timeout}s")
