"""
BIOGRAPH HIGHLIGHT ENGINE - Focus and Dimming

Given a focal node, decide which nodes and links stay at full emphasis and
which get dimmed. Everything here is a pure function of (dataset, focal
node): nothing is cached and nothing is patched incrementally, so the
result can be recomputed from scratch on every read.
"""
from typing import FrozenSet, Iterable, List, Optional

import msgspec

from core.schemas import LinkData


class HighlightSet(msgspec.Struct, kw_only=True, frozen=True):
    """
    Derived highlight state.

    `focal_id` is kept alongside the set because a link touching the focal
    node is emphasized even when its far endpoint is not highlighted.
    """
    nodes: FrozenSet[str] = frozenset()
    is_active: bool = False
    focal_id: Optional[str] = None

    def contains(self, node_id: str) -> bool:
        return node_id in self.nodes


EMPTY_HIGHLIGHT = HighlightSet()


def highlight_for(store, focal_id: Optional[str]) -> HighlightSet:
    """
    Highlighted node set for a focal node: {focal} ∪ neighbors(focal).

    A None focal clears the highlight (inactive, empty). An id the store
    has never seen has no neighbors, so only the id itself is returned;
    callers that need existence guarantees check the store first.

    Args:
        store: Anything exposing adjacency() (normally a GraphStore)
        focal_id: The selected node, or None
    """
    if focal_id is None:
        return EMPTY_HIGHLIGHT

    neighbors = store.adjacency().get(focal_id, ())
    return HighlightSet(
        nodes=frozenset(neighbors) | {focal_id},
        is_active=True,
        focal_id=focal_id,
    )


def highlight_nodes(node_ids: Iterable[str], focal_id: Optional[str] = None) -> HighlightSet:
    """Highlight an explicit node set (paths, hypothesis turns)."""
    nodes = frozenset(node_ids)
    return HighlightSet(nodes=nodes, is_active=bool(nodes), focal_id=focal_id)


def is_link_emphasized(link: LinkData, highlight: HighlightSet) -> bool:
    """
    True if a link should render at full emphasis.

    Emphasized iff both endpoints are highlighted, or either endpoint is the
    focal node.
    """
    if not highlight.is_active:
        return False
    if highlight.focal_id is not None and link.touches(highlight.focal_id):
        return True
    return link.source_id in highlight.nodes and link.target_id in highlight.nodes


def emphasized_links(links: Iterable[LinkData], highlight: HighlightSet) -> List[LinkData]:
    """Filter a link sequence down to the emphasized ones."""
    return [l for l in links if is_link_emphasized(l, highlight)]
