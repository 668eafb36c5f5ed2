"""
BIOGRAPH CORE - Central exports for core functionality.

This package provides:
- ontology / schemas: the vocabulary and records of an exploration graph
- graph_store: the canonical graph (rustworkx-backed)
- highlight / pathfinding: derived focus state and BFS paths
- interaction: the click-mode state machine
- merge / overlay: graph growth and the transient quantum overlay
- session: the async host-facing surface tying it all together

Only the dependency-free modules are re-exported here; import the rest
from their modules directly.
"""

from core.errors import (
    GraphError,
    DataIntegrityError,
    DuplicateIdError,
    DanglingLinkError,
    NodeNotFoundError,
    InvalidArgumentError,
    ExternalServiceError,
)
from core.ontology import NodeType, GraphDomain, LinkLabel
from core.schemas import NodeData, LinkData, GraphDataset

__all__ = [
    # Errors
    "GraphError",
    "DataIntegrityError",
    "DuplicateIdError",
    "DanglingLinkError",
    "NodeNotFoundError",
    "InvalidArgumentError",
    "ExternalServiceError",
    # Vocabulary
    "NodeType",
    "GraphDomain",
    "LinkLabel",
    # Records
    "NodeData",
    "LinkData",
    "GraphDataset",
]
