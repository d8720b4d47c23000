"""Lifecycle hook subscribers that record what runs did.

Two kinds of subscriber are provided:

- ``register_logging_hooks`` attaches structlog subscribers to a bus. They
  hold no per-run state, so they belong on the process-wide bus.
- ``create_execution_log_hooks`` builds a bus for ONE run that writes the
  audit tables (automation_runs, automation_node_logs, automation_node_stats).
  The run row id is kept between hooks, so these subscribers must never be
  shared by concurrent runs.

Database errors are not caught here; the hook bus logs and counts them and
the run continues.
"""

from typing import Any, Callable, Optional

import structlog
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.constants import ExecutionStatus
from db.models import AutomationNodeLog, AutomationNodeStat, AutomationRun
from workflow.hooks import ExecutionLifecycleHooks, HookName
from workflow.models import Automation, AutomationNode, Contact

logger = structlog.get_logger(__name__)

RunHooksFactory = Callable[[Automation, Optional[Contact]], ExecutionLifecycleHooks]

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def _log_workflow_before():
    logger.debug("Lifecycle: workflow execute before")


def _log_workflow_after(status: str, details: str):
    log = logger.info if status == ExecutionStatus.SUCCESS.value else logger.warning
    log("Lifecycle: workflow execute after", status=status, details=details)


def _log_node_before(node: AutomationNode):
    logger.debug("Lifecycle: node execute before", node_id=node.id, node_type=node.type)


def _log_node_after(node: AutomationNode, status: str, details: str):
    logger.info(
        "Lifecycle: node execute after",
        node_id=node.id,
        node_type=node.type,
        status=status,
        details=details,
    )


_LOGGING_SUBSCRIBERS = {
    HookName.WORKFLOW_EXECUTE_BEFORE: _log_workflow_before,
    HookName.WORKFLOW_EXECUTE_AFTER: _log_workflow_after,
    HookName.NODE_EXECUTE_BEFORE: _log_node_before,
    HookName.NODE_EXECUTE_AFTER: _log_node_after,
}


def register_logging_hooks(bus: ExecutionLifecycleHooks) -> ExecutionLifecycleHooks:
    """Attach structured-logging subscribers to every lifecycle hook.

    Idempotent: a subscriber already on the bus is not added again.
    """
    for name, subscriber in _LOGGING_SUBSCRIBERS.items():
        if subscriber not in bus.handlers(name):
            bus.add_handler(name, subscriber)
    return bus


class ExecutionLogRecorder:
    """Writes the audit rows of a single run.

    Args:
        session_factory: Async session factory for the audit database
        automation_id: Automation being run
        contact_id: Contact the run acts on, if any
        team_id: Owning team
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        automation_id: str,
        contact_id: Optional[str],
        team_id: str,
    ):
        self._session_factory = session_factory
        self.automation_id = automation_id
        self.contact_id = contact_id
        self.team_id = team_id
        self.run_id: Optional[str] = None

    async def on_workflow_before(self) -> None:
        async with self._session_factory() as session:
            run = AutomationRun(
                automation_id=self.automation_id,
                contact_id=self.contact_id,
                team_id=self.team_id,
                status=ExecutionStatus.RUNNING.value,
            )
            session.add(run)
            await session.commit()
            self.run_id = run.id

        logger.debug("Automation run recorded", run_id=self.run_id, automation_id=self.automation_id)

    async def on_workflow_after(self, status: str, details: str) -> None:
        if self.run_id is None:
            raise RuntimeError(f"No run row recorded for automation {self.automation_id}")

        async with self._session_factory() as session:
            run = await session.get(AutomationRun, self.run_id)
            if run is None:
                raise RuntimeError(f"Automation run {self.run_id} not found")
            run.status = status
            run.details = details
            await session.commit()

    async def on_node_after(self, node: AutomationNode, status: str, details: str) -> None:
        if self.run_id is None:
            raise RuntimeError(f"No run row recorded for automation {self.automation_id}")

        # The node log commits on its own so a failed counter update cannot lose it
        async with self._session_factory() as session:
            session.add(AutomationNodeLog(
                run_id=self.run_id,
                node_id=node.id,
                team_id=self.team_id,
                status=status,
                details=details,
            ))
            await session.commit()

        async with self._session_factory() as session:
            await session.execute(self._node_stat_upsert(session, node.id, status))
            await session.commit()

    def _node_stat_upsert(self, session: AsyncSession, node_id: str, status: str):
        """Single-statement insert-or-increment, safe under concurrent runs."""
        dialect = session.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is None:
            raise RuntimeError(f"Node stats upsert is not supported on {dialect}")

        succeeded = status == ExecutionStatus.SUCCESS.value
        counter = "success_count" if succeeded else "failed_count"
        table = AutomationNodeStat.__table__

        stmt = insert(table).values(
            automation_id=self.automation_id,
            node_id=node_id,
            team_id=self.team_id,
            success_count=1 if succeeded else 0,
            failed_count=0 if succeeded else 1,
        )
        return stmt.on_conflict_do_update(
            index_elements=[table.c.automation_id, table.c.node_id],
            set_={counter: table.c[counter] + 1, "updated_at": func.now()},
        )


def create_execution_log_hooks(
    session_factory: async_sessionmaker[AsyncSession],
    automation_id: str,
    contact_id: Optional[str],
    team_id: str,
) -> ExecutionLifecycleHooks:
    """Build a run-scoped hook bus that persists the run to the audit log."""
    recorder = ExecutionLogRecorder(session_factory, automation_id, contact_id, team_id)
    bus = ExecutionLifecycleHooks()
    bus.add_handler(HookName.WORKFLOW_EXECUTE_BEFORE, recorder.on_workflow_before)
    bus.add_handler(HookName.WORKFLOW_EXECUTE_AFTER, recorder.on_workflow_after)
    bus.add_handler(HookName.NODE_EXECUTE_AFTER, recorder.on_node_after)
    return bus


def execution_log_hooks_factory(session_factory: async_sessionmaker[AsyncSession]) -> RunHooksFactory:
    """Per-run hook factory for the dispatcher."""

    def factory(automation: Automation, contact: Optional[Contact]) -> ExecutionLifecycleHooks:
        contact_id: Any = (contact or {}).get("id")
        return create_execution_log_hooks(
            session_factory,
            automation.id,
            str(contact_id) if contact_id is not None else None,
            automation.team_id,
        )

    return factory
