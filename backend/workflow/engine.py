"""Workflow Execution Engine — walks an automation graph node by node.

A run starts at the trigger node that fired and follows exactly one edge
after each node:

    workflowExecuteBefore
    for each node:
        nodeExecuteBefore(node)
        handler(ActionContext) -> ActionResult
        nodeExecuteAfter(node, status, details)
        next node = edge labelled result.next_node_handle (unlabelled when None)
    workflowExecuteAfter(status, details)

A handler failure ends the run as failed; a handle with no matching edge
ends it as succeeded. The executor keeps no state between runs, so one
instance serves any number of concurrent runs.
"""

import asyncio
import inspect
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import structlog

from core import metrics
from core.logging_config import run_log_context
from core.constants import EdgeHandle, ExecutionStatus, RunState
from core.exceptions import GraphIntegrityError, NodeExecutionError, RunTimeoutError
from nodes.registry import NodeHandlerRegistry
from workflow.hooks import ExecutionLifecycleHooks, HookName
from workflow.models import (
    ActionContext,
    ActionResult,
    Automation,
    AutomationNode,
    Contact,
    NodeOutcome,
    Profile,
    RunResult,
    sanitize_automation,
)
from workflow.navigator import GraphNavigator

logger = structlog.get_logger(__name__)

DEFAULT_NODE_DETAILS = "Executed successfully."
WORKFLOW_COMPLETED_DETAILS = "Workflow completed."
WORKFLOW_CANCELLED_DETAILS = "Workflow cancelled."


def _automation_id(automation: Any) -> str:
    if isinstance(automation, Automation):
        return automation.id
    if isinstance(automation, dict):
        return str(automation.get("id") or "")
    return ""


class _HookFanout:
    """Fires a hook on the process-wide bus, then on the run's own bus."""

    def __init__(self, *buses: Optional[ExecutionLifecycleHooks]):
        self._buses = [bus for bus in buses if bus is not None]

    async def __call__(self, hook_name: HookName, *args: Any) -> None:
        for bus in self._buses:
            await bus.run_hook(hook_name, *args)


class WorkflowExecutor:
    """Main workflow execution engine.

    Args:
        registry: Node handler registry used to dispatch each node.
        hooks: Process-wide lifecycle hook bus. Subscribers are shared by
            every run and must not be added while runs are in flight.
    """

    def __init__(
        self,
        registry: NodeHandlerRegistry,
        hooks: Optional[ExecutionLifecycleHooks] = None,
    ):
        self._registry = registry
        self._hooks = hooks

    async def execute(
        self,
        automation: Automation | dict,
        *,
        profile: Profile,
        contact: Optional[Contact] = None,
        trigger: Any = None,
        start_node_id: Optional[str] = None,
        trigger_type: Optional[str] = None,
        hooks: Optional[ExecutionLifecycleHooks] = None,
        timeout: Optional[float] = None,
    ) -> RunResult:
        """Execute one run of an automation.

        Args:
            automation: Sanitized automation (a raw record is sanitized here)
            profile: Tenant profile, including provider credentials
            contact: Contact the run acts on, if any
            trigger: Trigger payload made available as {{trigger.*}}
            start_node_id: Node that fired; takes precedence over trigger_type
            trigger_type: Start from the first node of this trigger type
            hooks: Run-scoped hook bus, fired after the process-wide one
            timeout: Abort the whole walk after this many seconds

        Returns:
            RunResult with final state, details and per-node outcomes.
            Never raises for handler or graph errors. A run cancelled from
            outside is closed as failed (hooks and metrics included) and the
            cancellation is re-raised.
        """
        fire = _HookFanout(self._hooks, hooks)
        result = RunResult(
            run_id=str(uuid.uuid4()),
            automation_id=_automation_id(automation),
            state=RunState.NOT_STARTED,
            contact=contact,
            started_at=datetime.now(timezone.utc),
        )
        with run_log_context(result.run_id, result.automation_id):
            await self._run(
                automation, result, fire,
                profile=profile,
                trigger=trigger,
                start_node_id=start_node_id,
                trigger_type=trigger_type,
                timeout=timeout,
            )
        return result

    async def _run(
        self,
        automation: Automation | dict,
        result: RunResult,
        fire: _HookFanout,
        *,
        profile: Profile,
        trigger: Any,
        start_node_id: Optional[str],
        trigger_type: Optional[str],
        timeout: Optional[float],
    ) -> None:
        """Drive one run through its states and fire the workflow hooks."""
        started = time.monotonic()
        result.state = RunState.RUNNING
        metrics.gauge_inc("automation_runs_in_progress")

        try:
            await fire(HookName.WORKFLOW_EXECUTE_BEFORE)
            logger.info("Workflow started", start_node_id=start_node_id, trigger_type=trigger_type)
            walk = self._walk(
                automation, result, fire,
                profile=profile,
                trigger=trigger,
                start_node_id=start_node_id,
                trigger_type=trigger_type,
            )
            if timeout:
                try:
                    await asyncio.wait_for(walk, timeout=timeout)
                except asyncio.TimeoutError:
                    raise RunTimeoutError(timeout)
            else:
                await walk
            result.state = RunState.SUCCEEDED
            result.details = WORKFLOW_COMPLETED_DETAILS
        except asyncio.CancelledError:
            # Cancelled from outside (caller timeout or shutdown): close the
            # run as failed, then let the cancellation propagate
            result.state = RunState.FAILED
            result.details = WORKFLOW_CANCELLED_DETAILS
            result.error_type = "CancelledError"
            logger.warning("Workflow cancelled")
            await self._finish(result, fire, started)
            raise
        except Exception as e:
            result.state = RunState.FAILED
            result.details = str(e)
            result.error_type = type(e).__name__
            logger.error("Workflow failed", error=str(e), error_type=result.error_type)

        await self._finish(result, fire, started)

    @staticmethod
    async def _finish(result: RunResult, fire: _HookFanout, started: float) -> None:
        """Record the final metrics and fire workflowExecuteAfter."""
        result.completed_at = datetime.now(timezone.utc)
        result.duration_ms = (time.monotonic() - started) * 1000
        metrics.gauge_dec("automation_runs_in_progress")
        metrics.inc("automation_runs_total", labels={"status": result.status.value})
        metrics.observe("automation_run_duration_seconds", result.duration_ms / 1000)

        await fire(HookName.WORKFLOW_EXECUTE_AFTER, result.status.value, result.details)
        logger.info(
            "Workflow finished",
            status=result.status.value,
            nodes_visited=len(result.node_outcomes),
            duration_ms=round(result.duration_ms, 2),
        )

    async def _walk(
        self,
        automation: Automation | dict,
        result: RunResult,
        fire: _HookFanout,
        *,
        profile: Profile,
        trigger: Any,
        start_node_id: Optional[str],
        trigger_type: Optional[str],
    ) -> None:
        """Visit nodes from the start node until there is no next node."""
        automation = sanitize_automation(automation)
        navigator = GraphNavigator(automation)
        current: Optional[AutomationNode] = navigator.find_start_node(start_node_id, trigger_type)
        visited: set[str] = set()

        while current is not None:
            if current.id in visited:
                raise GraphIntegrityError(f"Cycle detected: node {current.id} visited twice")
            visited.add(current.id)

            action = await self._execute_node(current, automation, result, fire, profile, trigger)
            if action.updated_contact is not None:
                result.contact = action.updated_contact

            current = navigator.next_node(current.id, action.next_node_handle)

    async def _execute_node(
        self,
        node: AutomationNode,
        automation: Automation,
        result: RunResult,
        fire: _HookFanout,
        profile: Profile,
        trigger: Any,
    ) -> ActionResult:
        """Dispatch one node and report it through the node hooks."""
        await fire(HookName.NODE_EXECUTE_BEFORE, node)
        started = time.monotonic()

        try:
            handler = self._registry.require(node.type)
            context = ActionContext(
                profile=profile,
                contact=result.contact,
                trigger=trigger,
                node=node,
                automation_id=automation.id,
                team_id=automation.team_id,
            )
            action = handler(context)
            if inspect.isawaitable(action):
                action = await action
            if action is None:
                action = ActionResult()
            elif not isinstance(action, ActionResult):
                raise NodeExecutionError(
                    f"Handler for '{node.type}' returned {type(action).__name__}, expected ActionResult"
                )
            if action.next_node_handle:
                action.next_node_handle = EdgeHandle(action.next_node_handle)
        except Exception as e:
            self._record(result, node, ExecutionStatus.FAILED, str(e), None, started)
            await fire(HookName.NODE_EXECUTE_AFTER, node, ExecutionStatus.FAILED.value, str(e))
            raise

        details = action.details or DEFAULT_NODE_DETAILS
        handle = action.next_node_handle.value if action.next_node_handle else None
        self._record(result, node, ExecutionStatus.SUCCESS, details, handle, started)
        await fire(HookName.NODE_EXECUTE_AFTER, node, ExecutionStatus.SUCCESS.value, details)
        return action

    @staticmethod
    def _record(
        result: RunResult,
        node: AutomationNode,
        status: ExecutionStatus,
        details: str,
        handle: Optional[str],
        started: float,
    ) -> None:
        result.node_outcomes.append(NodeOutcome(
            node_id=node.id,
            node_type=node.type,
            status=status,
            details=details,
            next_handle=handle,
            duration_ms=(time.monotonic() - started) * 1000,
        ))
        metrics.inc(
            "automation_node_executions_total",
            labels={"node_type": node.type, "status": status.value},
        )
