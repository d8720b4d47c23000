"""Automation graph models and per-run value objects.

The graph (Automation, AutomationNode, BackendEdge) is parsed once at the
boundary with pydantic; everything past ``sanitize_automation`` can rely on
``nodes`` and ``edges`` being lists and on edge handles being one of the
known labels.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from core.constants import AutomationStatus, EdgeHandle, ExecutionStatus, RunState
from core.exceptions import InvalidAutomationError

# Records owned by collaborators (contacts, profiles, trigger payloads)
# stay plain JSON mappings.
Contact = dict[str, Any]
Profile = dict[str, Any]


class NodeData(BaseModel):
    """Editor payload of a node."""

    model_config = ConfigDict(extra="allow", frozen=True)

    label: str = ""
    config: dict[str, Any] = Field(default_factory=dict)

    @field_validator("config", mode="before")
    @classmethod
    def _none_config(cls, value: Any) -> Any:
        return {} if value is None else value


class AutomationNode(BaseModel):
    """A typed unit of work in the graph."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    data: NodeData = Field(default_factory=NodeData)

    @model_validator(mode="before")
    @classmethod
    def _lift_data_type(cls, value: Any) -> Any:
        # Graph editor nodes carry the handler type under data.type; the outer
        # type is the editor's own node kind and only used as a fallback
        if isinstance(value, dict):
            data = value.get("data") or {}
            if isinstance(data, dict) and data.get("type"):
                return {**value, "type": data["type"]}
        return value

    @property
    def label(self) -> str:
        return self.data.label

    @property
    def config(self) -> dict[str, Any]:
        return self.data.config


class BackendEdge(BaseModel):
    """Directed link between two nodes, optionally labelled with a handle."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_node_id: str = Field(
        validation_alias=AliasChoices("sourceNodeId", "source", "source_node_id"),
    )
    source_handle: Optional[EdgeHandle] = Field(
        default=None,
        validation_alias=AliasChoices("sourceHandle", "source_handle"),
    )
    target_node_id: str = Field(
        validation_alias=AliasChoices("targetNodeId", "target", "target_node_id"),
    )

    @field_validator("source_handle", mode="before")
    @classmethod
    def _blank_handle(cls, value: Any) -> Any:
        return None if value == "" else value


class Automation(BaseModel):
    """Immutable snapshot of an automation for the duration of one run."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    team_id: str = Field(validation_alias=AliasChoices("teamId", "team_id"))
    name: str = ""
    status: AutomationStatus = AutomationStatus.ACTIVE
    nodes: list[AutomationNode] = Field(default_factory=list)
    edges: list[BackendEdge] = Field(default_factory=list)

    @field_validator("nodes", "edges", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @property
    def is_active(self) -> bool:
        return self.status == AutomationStatus.ACTIVE


def sanitize_automation(raw: Any) -> Automation:
    """Parse a raw automation record into a safe Automation.

    Null ``nodes``/``edges`` become empty lists; anything else that does not
    fit the graph model raises InvalidAutomationError.
    """
    if isinstance(raw, Automation):
        return raw
    try:
        return Automation.model_validate(raw)
    except ValidationError as e:
        automation_id = raw.get("id") if isinstance(raw, dict) else None
        raise InvalidAutomationError(
            f"Invalid automation {automation_id}: {e.error_count()} validation error(s)"
        ) from e


# ─── Per-run value objects ────────────────────────────────────

@dataclass
class ActionContext:
    """Everything a node handler sees for one node visit."""

    profile: Profile
    contact: Optional[Contact]
    trigger: Any
    node: AutomationNode
    automation_id: str
    team_id: str

    @property
    def variables(self) -> dict[str, Any]:
        """Namespace used to resolve ``{{path}}`` placeholders."""
        return {"contact": self.contact, "trigger": self.trigger}


@dataclass
class ActionResult:
    """What a node handler returns to the executor."""

    updated_contact: Optional[Contact] = None
    next_node_handle: Optional[EdgeHandle] = None
    details: Optional[str] = None


@dataclass
class NodeOutcome:
    """Audit record of a single node visit."""

    node_id: str
    node_type: str
    status: ExecutionStatus
    details: str
    next_handle: Optional[str] = None
    duration_ms: float = 0


@dataclass
class RunResult:
    """Final report of a workflow run."""

    run_id: str
    automation_id: str
    state: RunState
    details: str = ""
    error_type: Optional[str] = None
    contact: Optional[Contact] = None
    node_outcomes: list[NodeOutcome] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: float = 0

    @property
    def status(self) -> ExecutionStatus:
        """Status as reported through the lifecycle hooks."""
        if self.state == RunState.SUCCEEDED:
            return ExecutionStatus.SUCCESS
        if self.state == RunState.FAILED:
            return ExecutionStatus.FAILED
        return ExecutionStatus.RUNNING

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.SUCCEEDED

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "automation_id": self.automation_id,
            "state": self.state.value,
            "status": self.status.value,
            "details": self.details,
            "error_type": self.error_type,
            "node_outcomes": [
                {
                    "node_id": o.node_id,
                    "node_type": o.node_type,
                    "status": o.status.value,
                    "details": o.details,
                    "next_handle": o.next_handle,
                    "duration_ms": o.duration_ms,
                }
                for o in self.node_outcomes
            ],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }
