"""Automation Dispatcher — runs every automation a CRM event matched.

Trigger matching (which automation trigger nodes an event fires) happens
upstream; the dispatcher receives the matches as TriggerInfo pairs, loads
the automations, and starts one run per match, all runs concurrently.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Sequence

import structlog

from app.config import get_settings
from core.exceptions import InvalidAutomationError
from workflow.engine import WorkflowExecutor
from workflow.execution_log import RunHooksFactory
from workflow.models import Automation, Contact, Profile, RunResult, sanitize_automation

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TriggerInfo:
    """An automation trigger node that an event matched."""

    automation_id: str
    node_id: str


class AutomationSource(Protocol):
    """Loads raw automation records by id."""

    async def get_automations(self, automation_ids: Sequence[str]) -> Iterable[Any]: ...


class AutomationDispatcher:
    """Dispatches matched triggers to the workflow executor.

    Args:
        executor: Executor every run goes through
        automations: Source of automation records
        run_hooks_factory: Builds a run-scoped hook bus for each run
            (e.g. the audit log); None runs with the process-wide bus only
        timeout: Per-run timeout; defaults to WORKFLOW_RUN_TIMEOUT
    """

    def __init__(
        self,
        executor: WorkflowExecutor,
        automations: AutomationSource,
        run_hooks_factory: Optional[RunHooksFactory] = None,
        timeout: Optional[float] = None,
    ):
        self._executor = executor
        self._automations = automations
        self._run_hooks_factory = run_hooks_factory
        self._timeout = timeout if timeout is not None else get_settings().run_timeout

    async def dispatch(
        self,
        profile: Profile,
        triggers: Iterable[TriggerInfo],
        contact: Optional[Contact] = None,
        trigger_payload: Any = None,
    ) -> list[RunResult]:
        """Run each matched automation from its trigger node.

        Returns:
            Results of the runs that were started, in trigger order.
        """
        unique = list(dict.fromkeys(triggers))
        if not unique:
            return []

        log = logger.bind(profile_id=profile.get("id"), triggers=len(unique))
        automation_ids = list(dict.fromkeys(t.automation_id for t in unique))

        try:
            records = await self._automations.get_automations(automation_ids)
        except Exception as e:
            log.error("Failed to load automations", automation_ids=automation_ids, error=str(e))
            return []

        automations: dict[str, Automation] = {}
        for record in records:
            try:
                automation = sanitize_automation(record)
            except InvalidAutomationError as e:
                log.error("Skipping invalid automation", error=str(e))
                continue
            automations[automation.id] = automation

        runs = []
        for trigger in unique:
            automation = automations.get(trigger.automation_id)
            if automation is None:
                log.warning("Automation not found", automation_id=trigger.automation_id)
                continue
            if not automation.is_active:
                log.info(
                    "Skipping inactive automation",
                    automation_id=automation.id,
                    name=automation.name,
                    status=automation.status.value,
                )
                continue

            log.info(
                "Dispatching automation",
                automation_id=automation.id,
                name=automation.name,
                start_node_id=trigger.node_id,
            )
            hooks = self._run_hooks_factory(automation, contact) if self._run_hooks_factory else None
            runs.append(self._executor.execute(
                automation,
                profile=profile,
                contact=contact,
                trigger=trigger_payload,
                start_node_id=trigger.node_id,
                hooks=hooks,
                timeout=self._timeout,
            ))

        return list(await asyncio.gather(*runs))
