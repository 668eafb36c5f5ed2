"""
BIOGRAPH ERRORS - Exception taxonomy shared across the explorer.

Three classes of failure exist:
- Structural: the dataset itself is broken (DataIntegrityError and friends).
  Fatal to the operation that found it; nothing is partially applied.
- Caller: an operation was invoked with arguments it cannot accept
  (NodeNotFoundError, InvalidArgumentError). Raised before any work starts.
- Boundary: an asynchronous collaborator failed (ExternalServiceError).
  Recovered locally by the session and never allowed to touch graph state.

A pathfinding miss is not an error. find_path returns None for it.
"""
from typing import Optional


class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class DataIntegrityError(GraphError):
    """Raised when a dataset or merge would break an identity invariant."""
    pass


class DuplicateIdError(DataIntegrityError):
    """Raised when a node id already exists in the active dataset."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node already exists: {node_id}")


class DanglingLinkError(DataIntegrityError):
    """Raised when a link references a node that is not in the dataset."""
    def __init__(self, source_id: str, target_id: str, missing_id: str):
        self.source_id = source_id
        self.target_id = target_id
        self.missing_id = missing_id
        super().__init__(
            f"Link {source_id} -> {target_id} references unknown node: {missing_id}"
        )


class NodeNotFoundError(GraphError):
    """Raised when a node id is not in the graph."""
    def __init__(self, node_id: str):
        self.node_id = node_id
        super().__init__(f"Node not found: {node_id}")


class InvalidArgumentError(GraphError):
    """Raised when an operation is invoked in a state it cannot accept."""
    pass


class ExternalServiceError(Exception):
    """
    Raised when the reasoning service fails or returns a malformed response.

    Attributes:
        operation: Which boundary call failed ("enrich", "hypothesis", "validate")
        key: The request key (node id or query text), if any
    """
    def __init__(self, message: str, operation: str = "", key: Optional[str] = None):
        self.operation = operation
        self.key = key
        super().__init__(message)
