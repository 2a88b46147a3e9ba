"""
Core configuration and utilities for the Farmer Assistant.
"""

from farmer_assistant.core.deps import (
    depends_batch_workflow,
    depends_controller,
    depends_settings_store,
)

__all__ = ["depends_batch_workflow", "depends_controller", "depends_settings_store"]
