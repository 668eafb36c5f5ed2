"""
BIOGRAPH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML configuration with environment overrides
- data_loader: Polars-based table import/export and schema validation
- event_bus: Publish-subscribe between the explorer's subsystems
- logger: Graph mutation event log (in-memory ring + JSONL)
"""

from infrastructure.event_bus import EventBus, EventType, ExplorerEvent, get_event_bus
from infrastructure.logger import MutationLogger, MutationType, get_mutation_logger

__all__ = [
    "EventBus",
    "EventType",
    "ExplorerEvent",
    "get_event_bus",
    "MutationLogger",
    "MutationType",
    "get_mutation_logger",
]
