"""
BIOGRAPH GRAPH STORE - The Canonical Graph

Owns the active domain's nodes and links and answers every structural
question the rest of the explorer asks: who is adjacent to whom, which
literature hangs off a node, how many components the graph has.

Architecture (The Bridge Pattern):
  Python Layer (Explorer Logic)
  - Uses string ids: "S", "ACE2", "Hyp-1733-4"
  - Calls: store.neighbors_of("ACE2"), store.merge(nodes, links)

  Bridge Layer (This File)
  - _node_map: Dict[str, int]  (id -> index)
  - _inv_map: Dict[int, str]   (index -> id)
  - _links: ordered link sequence (authoring order), ids only

  Rust Layer (rustworkx.PyDiGraph, multigraph)
  - Resolved links only
  - Component and degree analytics

The undirected adjacency projection is built by one scan over the link
sequence and cached against a mutation counter. It is the shared substrate
for highlighting and pathfinding, so it is rebuilt at most once per
mutation and never served stale.

Unresolved links: hypothesis merges may reference ids the dataset does not
contain. Those links are kept in the link sequence (the merge is not
rejected) but stay out of the rustworkx graph and out of the adjacency
projection until a node with that id arrives.
"""
import rustworkx as rx
from typing import Dict, Iterable, List, Optional, Set, Any
import logging

import msgspec
import polars as pl

from core.errors import (
    DanglingLinkError,
    DuplicateIdError,
    NodeNotFoundError,
)
from core.ontology import NodeType
from core.schemas import GraphDataset, LinkData, NodeData
from infrastructure.logger import MutationLogger, get_mutation_logger


logger = logging.getLogger("biograph.graph_store")


class GraphStore:
    """
    In-memory graph store backed by rustworkx.

    All public methods accept and return string ids; translation to
    rustworkx indices is internal.

    Usage:
        store = GraphStore()
        store.load(get_domain_dataset(GraphDomain.SARS_COV_2))

        store.neighbors_of("ACE2")        # {"S", "Camostat", ...}
        store.adjacency()["S"]            # ["ACE2", "TMPRSS2", ...]

        store.merge([new_node], [LinkData.create(new_node.id, "S", "BINDS")])

    Thread Safety:
        NOT thread-safe. Mutations happen inside UI event handlers on a
        single loop.
    """

    def __init__(
        self,
        domain: Optional[str] = None,
        mutation_logger: Optional[MutationLogger] = None,
    ):
        self.domain = domain
        self._mutations = mutation_logger or get_mutation_logger()
        self._version = 0
        self._reset()

    def _reset(self) -> None:
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=True)
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}
        self._links: List[LinkData] = []
        self._unresolved: List[LinkData] = []
        self._adjacency: Optional[Dict[str, List[str]]] = None
        self._adjacency_version = -1

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def node_count(self) -> int:
        return self._graph.num_nodes()

    @property
    def link_count(self) -> int:
        """Number of links, resolved or not."""
        return len(self._links)

    @property
    def is_empty(self) -> bool:
        return self.node_count == 0

    @property
    def version(self) -> int:
        """Mutation counter. Bumped by every load and merge."""
        return self._version

    # =========================================================================
    # MUTATION
    # =========================================================================

    def load(self, dataset: GraphDataset, domain: Optional[str] = None) -> None:
        """
        Replace the active dataset wholesale.

        The dataset is validated first; on failure the previous dataset
        stays active.

        Raises:
            DuplicateIdError: If two nodes share an id
            DanglingLinkError: If a link endpoint is not in the dataset
        """
        dataset.validate()

        self._reset()
        if domain is not None:
            self.domain = domain

        indices = self._graph.add_nodes_from(list(dataset.nodes))
        for node, idx in zip(dataset.nodes, indices):
            self._node_map[node.id] = idx
            self._inv_map[idx] = node.id

        self._graph.add_edges_from([
            (self._node_map[l.source_id], self._node_map[l.target_id], l)
            for l in dataset.links
        ])
        self._links = list(dataset.links)
        self._version += 1

        logger.info(
            f"Loaded dataset {self.domain or '<custom>'}: "
            f"{self.node_count} nodes, {self.link_count} links"
        )
        self._mutations.log_dataset_loaded(self.domain, self.node_count, self.link_count)

    def merge(
        self,
        new_nodes: Iterable[NodeData],
        new_links: Iterable[LinkData],
        allow_unresolved: bool = False,
        origin: str = "merge",
    ) -> None:
        """
        Append nodes and links to the active dataset.

        Duplicate labels are fine; duplicate ids are not. Validation runs
        before anything is written, so a rejected merge leaves the store
        exactly as it was.

        Args:
            new_nodes: Nodes to append (ids must be new)
            new_links: Links to append; endpoints must exist after the merge
            allow_unresolved: Keep links whose endpoints do not resolve
                instead of rejecting them (hypothesis turns only)
            origin: Who asked for the merge, for the mutation log

        Raises:
            DuplicateIdError: If a new node id already exists or repeats
            DanglingLinkError: If a link endpoint does not resolve and
                allow_unresolved is False
        """
        nodes = list(new_nodes)
        links = list(new_links)

        incoming: Set[str] = set()
        for node in nodes:
            if node.id in self._node_map or node.id in incoming:
                raise DuplicateIdError(node.id)
            incoming.add(node.id)

        known = incoming | self._node_map.keys()
        resolved: List[LinkData] = []
        unresolved: List[LinkData] = []
        for link in links:
            missing = next(
                (e for e in (link.source_id, link.target_id) if e not in known),
                None,
            )
            if missing is None:
                resolved.append(link)
            elif allow_unresolved:
                unresolved.append(link)
            else:
                raise DanglingLinkError(link.source_id, link.target_id, missing)

        # Validation passed; write.
        if nodes:
            indices = self._graph.add_nodes_from(nodes)
            for node, idx in zip(nodes, indices):
                self._node_map[node.id] = idx
                self._inv_map[idx] = node.id

        # Earlier unresolved links may resolve now.
        still_unresolved: List[LinkData] = []
        for link in self._unresolved:
            if link.source_id in self._node_map and link.target_id in self._node_map:
                resolved.append(link)
            else:
                still_unresolved.append(link)
        self._unresolved = still_unresolved + unresolved

        self._graph.add_edges_from([
            (self._node_map[l.source_id], self._node_map[l.target_id], l)
            for l in resolved
        ])
        self._links.extend(links)
        self._version += 1

        for link in unresolved:
            logger.warning(
                f"Merged unresolved link {link.source_id} -> {link.target_id} "
                f"({link.label})"
            )
        logger.debug(f"Merged {len(nodes)} nodes, {len(links)} links from {origin}")
        self._mutations.log_merge(
            origin,
            [n.id for n in nodes],
            len(links),
            unresolved_links=len(unresolved),
            domain=self.domain,
        )

    # =========================================================================
    # NODE ACCESS
    # =========================================================================

    def get_node(self, node_id: str) -> NodeData:
        """
        Retrieve a node by id.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)
        return self._graph[self._node_map[node_id]]

    def has_node(self, node_id: str) -> bool:
        return node_id in self._node_map

    def require_node(self, node_id: str) -> None:
        """Raise NodeNotFoundError unless node_id is in the graph."""
        if node_id not in self._node_map:
            raise NodeNotFoundError(node_id)

    @property
    def nodes(self) -> List[NodeData]:
        """Nodes in insertion order."""
        return [self._graph[self._node_map[nid]] for nid in self._node_map]

    @property
    def links(self) -> List[LinkData]:
        """Links in insertion order, including unresolved ones."""
        return list(self._links)

    @property
    def unresolved_links(self) -> List[LinkData]:
        return list(self._unresolved)

    def node_ids(self) -> List[str]:
        return list(self._node_map)

    def dataset(self) -> GraphDataset:
        """Snapshot of the active dataset."""
        return GraphDataset(nodes=self.nodes, links=self.links)

    # =========================================================================
    # ADJACENCY (shared by highlight and pathfinding)
    # =========================================================================

    def adjacency(self) -> Dict[str, List[str]]:
        """
        Undirected adjacency projection of the link sequence.

        Built by one scan over the links, registering both directions.
        Parallel links produce repeated entries; order follows the link
        sequence. Cached until the next mutation.
        """
        if self._adjacency is None or self._adjacency_version != self._version:
            adj: Dict[str, List[str]] = {nid: [] for nid in self._node_map}
            for link in self._links:
                s, t = link.source_id, link.target_id
                if s in adj and t in adj:
                    adj[s].append(t)
                    adj[t].append(s)
            self._adjacency = adj
            self._adjacency_version = self._version
        return self._adjacency

    def neighbors_of(self, node_id: str) -> Set[str]:
        """
        Nodes sharing at least one link with node_id, in either direction.

        Raises:
            NodeNotFoundError: If node doesn't exist
        """
        self.require_node(node_id)
        return set(self.adjacency()[node_id])

    # =========================================================================
    # QUERIES
    # =========================================================================

    def related_literature(self, node_id: str) -> List[NodeData]:
        """Literature nodes linked to node_id, in insertion order."""
        neighbors = self.neighbors_of(node_id)
        return [
            n for n in self.nodes
            if n.id in neighbors and n.type == NodeType.LITERATURE.value
        ]

    def search_nodes(self, query: str, literature_only: bool = False) -> List[NodeData]:
        """
        Case-insensitive node search.

        Standard mode matches label or id and returns nothing for an empty
        query. Literature mode restricts to Literature nodes, also matches
        DOI, authors, journal and year metadata, and lists every
        Literature node when the query is empty.
        """
        needle = query.lower()
        results: List[NodeData] = []

        for node in self.nodes:
            if literature_only:
                if node.type != NodeType.LITERATURE.value:
                    continue
                if not needle:
                    results.append(node)
                    continue
                fields = [node.label, node.id] + [
                    str(node.metadata.get(key, ""))
                    for key in ("doi", "authors", "journal", "year")
                ]
            else:
                if not needle:
                    continue
                fields = [node.label, node.id]

            if any(needle in f.lower() for f in fields):
                results.append(node)

        return results

    def present_node_types(self) -> List[str]:
        """Distinct node types in first-seen order (legend entries)."""
        seen: Dict[str, None] = {}
        for node in self.nodes:
            seen.setdefault(node.type, None)
        return list(seen)

    def get_nodes_by_type(self, node_type: str) -> List[NodeData]:
        return [n for n in self.nodes if n.type == node_type]

    def components(self) -> List[Set[str]]:
        """Weakly connected components as sets of ids, largest first."""
        comps = rx.weakly_connected_components(self._graph)
        result = [{self._inv_map[idx] for idx in comp} for comp in comps]
        return sorted(result, key=len, reverse=True)

    def degree(self, node_id: str) -> int:
        """Undirected degree over resolved links (parallel links count)."""
        self.require_node(node_id)
        idx = self._node_map[node_id]
        return self._graph.in_degree(idx) + self._graph.out_degree(idx)

    def stats(self) -> Dict[str, Any]:
        """Summary counts for CLI output and diagnostics."""
        type_counts: Dict[str, int] = {}
        for node in self.nodes:
            type_counts[node.type] = type_counts.get(node.type, 0) + 1

        return {
            "domain": self.domain,
            "nodes": self.node_count,
            "links": self.link_count,
            "unresolved_links": len(self._unresolved),
            "components": len(self.components()),
            "types": type_counts,
        }

    # =========================================================================
    # EXPORT (Polars)
    # =========================================================================

    def to_polars_nodes(self) -> pl.DataFrame:
        """Export nodes to a Polars DataFrame. Metadata is JSON-encoded."""
        nodes = self.nodes
        return pl.DataFrame(
            {
                "id": [n.id for n in nodes],
                "label": [n.label for n in nodes],
                "type": [n.type for n in nodes],
                "description": [n.description for n in nodes],
                "weight": [float(n.weight) for n in nodes],
                "metadata": [msgspec.json.encode(n.metadata).decode() for n in nodes],
            },
            schema=NODE_FRAME_SCHEMA,
        )

    def to_polars_links(self) -> pl.DataFrame:
        """Export links (resolved or not) to a Polars DataFrame."""
        return pl.DataFrame(
            {
                "source_id": [l.source_id for l in self._links],
                "target_id": [l.target_id for l in self._links],
                "label": [l.label for l in self._links],
            },
            schema=LINK_FRAME_SCHEMA,
        )

    # =========================================================================
    # INTERNAL UTILITIES
    # =========================================================================

    def __len__(self) -> int:
        return self.node_count

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._node_map

    def __repr__(self) -> str:
        return f"GraphStore(domain={self.domain!r}, nodes={self.node_count}, links={self.link_count})"


NODE_FRAME_SCHEMA = {
    "id": pl.Utf8,
    "label": pl.Utf8,
    "type": pl.Utf8,
    "description": pl.Utf8,
    "weight": pl.Float64,
    "metadata": pl.Utf8,
}

LINK_FRAME_SCHEMA = {
    "source_id": pl.Utf8,
    "target_id": pl.Utf8,
    "label": pl.Utf8,
}


# =============================================================================
# FACTORY FUNCTIONS
# =============================================================================

def create_store(dataset: Optional[GraphDataset] = None, domain: Optional[str] = None) -> GraphStore:
    """Create a GraphStore, optionally pre-loaded with a dataset."""
    store = GraphStore(domain=domain)
    if dataset is not None:
        store.load(dataset)
    return store

