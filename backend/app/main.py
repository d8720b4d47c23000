"""CRM Automation Engine - runtime bootstrap.

Wires the long-lived pieces of the engine together once per process:

    runtime = create_runtime(services, automation_source, session_factory)
    await runtime.dispatcher.dispatch(profile, triggers, contact, payload)
"""

from dataclasses import dataclass
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from core.logging_config import setup_logging
from nodes.registry import NodeHandlerRegistry
from nodes.services import NodeServices
from triggers.dispatcher import AutomationDispatcher, AutomationSource
from workflow.engine import WorkflowExecutor
from workflow.execution_log import execution_log_hooks_factory, register_logging_hooks
from workflow.hooks import ExecutionLifecycleHooks, get_lifecycle_hooks

logger = structlog.get_logger(__name__)


@dataclass
class AutomationRuntime:
    """Process-wide engine components."""

    hooks: ExecutionLifecycleHooks
    registry: NodeHandlerRegistry
    executor: WorkflowExecutor
    dispatcher: AutomationDispatcher


def create_runtime(
    services: NodeServices,
    automations: AutomationSource,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    configure_logging: bool = True,
) -> AutomationRuntime:
    """Build the engine for this process.

    Args:
        services: Collaborators the node handlers call
        automations: Source the dispatcher loads automations from
        session_factory: Audit-log database sessions; without one runs are
            not persisted
        configure_logging: Set up structlog (disable when the host already has)
    """
    settings = get_settings()
    if configure_logging:
        setup_logging()

    hooks = register_logging_hooks(get_lifecycle_hooks())
    registry = NodeHandlerRegistry(services)
    executor = WorkflowExecutor(registry, hooks)

    run_hooks_factory = None
    if session_factory is not None and settings.EXECUTION_LOG_ENABLED:
        run_hooks_factory = execution_log_hooks_factory(session_factory)

    dispatcher = AutomationDispatcher(executor, automations, run_hooks_factory)

    logger.info(
        "Automation runtime ready",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        node_types=len(registry.available_types),
        execution_log=run_hooks_factory is not None,
    )
    return AutomationRuntime(
        hooks=hooks,
        registry=registry,
        executor=executor,
        dispatcher=dispatcher,
    )
