"""Execution lifecycle hooks.

Observers (logging, audit persistence, metrics, notifications) subscribe to
four fixed points of a run instead of being wired into the executor:

    workflowExecuteBefore()                       once, before the first node
    workflowExecuteAfter(status, details)         once, after the last node
    nodeExecuteBefore(node)                       before each handler call
    nodeExecuteAfter(node, status, details)       after each handler settles

Subscribers run sequentially in registration order. A subscriber that raises
is logged and counted, and the remaining subscribers and the run continue.
"""

import inspect
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from core import metrics

logger = structlog.get_logger(__name__)


class HookName(str, Enum):
    """The four lifecycle extension points."""

    WORKFLOW_EXECUTE_BEFORE = "workflowExecuteBefore"
    WORKFLOW_EXECUTE_AFTER = "workflowExecuteAfter"
    NODE_EXECUTE_BEFORE = "nodeExecuteBefore"
    NODE_EXECUTE_AFTER = "nodeExecuteAfter"


HookHandler = Callable[..., Any]


class ExecutionLifecycleHooks:
    """Ordered, multi-subscriber registry for the lifecycle hooks."""

    def __init__(self):
        self._handlers: dict[HookName, list[HookHandler]] = {name: [] for name in HookName}
        self.error_count = 0

    def add_handler(self, hook_name: str | HookName, *handlers: HookHandler) -> None:
        """Append one or more subscribers to a hook.

        Raises:
            ValueError: If hook_name is not one of the four lifecycle hooks.
        """
        name = HookName(hook_name)
        for handler in handlers:
            if not callable(handler):
                raise TypeError(f"Hook handler for '{name.value}' must be callable")
        self._handlers[name].extend(handlers)

    def handlers(self, hook_name: str | HookName) -> tuple[HookHandler, ...]:
        """Subscribers of a hook, in call order."""
        return tuple(self._handlers[HookName(hook_name)])

    async def run_hook(self, hook_name: str | HookName, *args: Any) -> None:
        """Call every subscriber of a hook with args, awaiting coroutines."""
        name = HookName(hook_name)
        for handler in tuple(self._handlers[name]):
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.error_count += 1
                metrics.inc("automation_hook_errors_total", labels={"hook": name.value})
                logger.error(
                    "Lifecycle hook subscriber failed",
                    hook=name.value,
                    subscriber=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    exc_info=True,
                )


# Singleton
_hooks: Optional[ExecutionLifecycleHooks] = None


def get_lifecycle_hooks() -> ExecutionLifecycleHooks:
    """Get or create the process-wide hook bus."""
    global _hooks
    if _hooks is None:
        _hooks = ExecutionLifecycleHooks()
    return _hooks
