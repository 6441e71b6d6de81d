"""
Workflow Activity Logging Module

Provides per-workflow activity feeds for the coordinator canvas.
"""
from coordinator.logging.activity_log import (
    ActivityEntry,
    ActivityType,
    WorkflowActivityLog,
    get_activity_log,
    reset_activity_logs,
)

__all__ = [
    'ActivityEntry',
    'ActivityType',
    'WorkflowActivityLog',
    'get_activity_log',
    'reset_activity_logs',
]
