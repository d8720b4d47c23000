"""Audit-log models for automation runs."""

from typing import Optional

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.constants import ExecutionStatus
from db.base import BaseModel


class AutomationRun(BaseModel):
    """One execution of an automation for a contact.

    Attributes:
        id: Unique identifier (UUID string)
        automation_id: Automation that ran
        contact_id: Contact the run acted on, if any
        team_id: Owning team
        status: running, success or failed
        details: Final details reported by the run
        created_at: Creation timestamp
        updated_at: Last update timestamp
    """

    __tablename__ = "automation_runs"

    automation_id: Mapped[str] = mapped_column(nullable=False, index=True)
    contact_id: Mapped[Optional[str]] = mapped_column(nullable=True, index=True)
    team_id: Mapped[str] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        default=ExecutionStatus.RUNNING.value, index=True
    )
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    node_logs: Mapped[list["AutomationNodeLog"]] = relationship(
        "AutomationNodeLog",
        back_populates="run",
        cascade="all, delete-orphan",
        lazy="noload",
    )


class AutomationNodeLog(BaseModel):
    """Outcome of a single node visit within a run."""

    __tablename__ = "automation_node_logs"

    run_id: Mapped[str] = mapped_column(
        ForeignKey("automation_runs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    node_id: Mapped[str] = mapped_column(nullable=False, index=True)
    team_id: Mapped[str] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    run: Mapped["AutomationRun"] = relationship(
        "AutomationRun", back_populates="node_logs", lazy="select"
    )


class AutomationNodeStat(BaseModel):
    """Running success/failure counters per automation node."""

    __tablename__ = "automation_node_stats"

    automation_id: Mapped[str] = mapped_column(nullable=False, index=True)
    node_id: Mapped[str] = mapped_column(nullable=False)
    team_id: Mapped[str] = mapped_column(nullable=False)
    success_count: Mapped[int] = mapped_column(default=0)
    failed_count: Mapped[int] = mapped_column(default=0)

    __table_args__ = (
        UniqueConstraint("automation_id", "node_id", name="uq_automation_node_stats_node"),
    )
