"""Database models for the automation audit log.

This module imports all models to ensure they are registered
with SQLAlchemy's declarative base.
"""

from db.models.automation_run import AutomationNodeLog, AutomationNodeStat, AutomationRun

__all__ = [
    "AutomationRun",
    "AutomationNodeLog",
    "AutomationNodeStat",
]
