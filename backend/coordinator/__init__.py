"""
Agent Coordinator: visual multi-agent workflow canvas backend.

Packages:
    config/     Canvas configuration (env-overridable dataclasses)
    logging/    Per-workflow activity feed
    workflow/   Graph model, geometry, placement, drag-to-connect and
                the canvas controller that owns the workflow aggregate
"""

__version__ = "0.1.0"
