"""
BIOGRAPH PATHFINDING - Shortest Connection Between Two Entities

Breadth-first search over the undirected projection of the link set.

Each queue entry carries the node path walked so far and the link keys it
traversed, so the first entry that reaches the target is returned as is.
BFS explores in hop order, which makes that first path a shortest one.
Ties between equal-length paths are broken by adjacency order, i.e. by
the order links were authored.

A node is marked visited when it is dequeued, not when it is enqueued.
Several entries for the same node can therefore wait in the queue at once;
only the first to be processed expands it. The result is the same shortest
path, at some memory cost on dense graphs.

A miss returns None. It is a normal outcome ("no path"), not an error.
"""
from collections import deque
from typing import Deque, FrozenSet, List, Mapping, Optional, Sequence, Set, Tuple

import msgspec

from core.errors import InvalidArgumentError
from core.schemas import LinkData, link_key


class PathResult(msgspec.Struct, kw_only=True, frozen=True):
    """
    A discovered path.

    Attributes:
        node_sequence: Ids from start to end inclusive
        link_keys: "a-b" and "b-a" for every consecutive pair, so a stored
            link matches regardless of its orientation
    """
    node_sequence: List[str]
    link_keys: FrozenSet[str]

    @property
    def start(self) -> str:
        return self.node_sequence[0]

    @property
    def end(self) -> str:
        return self.node_sequence[-1]

    @property
    def hops(self) -> int:
        return len(self.node_sequence) - 1

    def contains_link(self, link: LinkData) -> bool:
        return path_link_matches(link, self.link_keys)


def link_keys_for(sequence: Sequence[str]) -> FrozenSet[str]:
    """Bidirectional link keys for consecutive pairs of a node sequence."""
    keys: Set[str] = set()
    for a, b in zip(sequence, sequence[1:]):
        keys.add(link_key(a, b))
        keys.add(link_key(b, a))
    return frozenset(keys)


def path_link_matches(link: LinkData, keys: FrozenSet[str]) -> bool:
    """True if a stored link lies on the path, in either orientation."""
    return link.key in keys or link.reverse_key in keys


def find_path(
    start_id: str,
    end_id: str,
    adjacency: Mapping[str, Sequence[str]],
) -> Optional[PathResult]:
    """
    Shortest path by hop count between two nodes.

    Args:
        start_id: Where the search begins
        end_id: Where it must arrive
        adjacency: Undirected adjacency projection (GraphStore.adjacency())

    Returns:
        PathResult, or None when end_id is unreachable from start_id

    Raises:
        InvalidArgumentError: If start_id == end_id
    """
    if start_id == end_id:
        raise InvalidArgumentError(f"Path endpoints must differ: {start_id}")

    queue: Deque[Tuple[List[str], FrozenSet[str]]] = deque()
    queue.append(([start_id], frozenset()))
    visited: Set[str] = set()

    while queue:
        path, keys = queue.popleft()
        node = path[-1]

        if node == end_id:
            return PathResult(node_sequence=path, link_keys=keys)

        if node in visited:
            continue
        visited.add(node)

        for neighbor in adjacency.get(node, ()):
            if neighbor in visited:
                continue
            queue.append((
                path + [neighbor],
                keys | {link_key(node, neighbor), link_key(neighbor, node)},
            ))

    return None


def find_path_in_store(store, start_id: str, end_id: str) -> Optional[PathResult]:
    """
    find_path over a GraphStore, checking that both endpoints exist.

    Raises:
        NodeNotFoundError: If either endpoint is not in the store
        InvalidArgumentError: If start_id == end_id
    """
    store.require_node(start_id)
    store.require_node(end_id)
    return find_path(start_id, end_id, store.adjacency())

