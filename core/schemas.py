"""
BIOGRAPH SCHEMAS - The Grammar of the Explorer

If ontology.py is the Dictionary (defining the words we can use),
schemas.py is the Grammar (defining how we structure sentences).

This module defines the records that flow through the explorer:
- NodeData / LinkData / GraphDataset: the canonical graph
- EnrichmentData: per-node context fetched on demand (cached separately)
- HypothesisResult: structured output of a hypothesis turn
- ProposalValidation / HubProposal: community node proposals
- Serialization helpers for persistence and IPC

Design Principles:
1. STRICT TYPING: msgspec.Struct with no silent type coercion
2. IDS ONLY: links reference nodes by id; resolved views are read-time only
3. KW_ONLY: Enforce keyword arguments to prevent positional mix-ups
4. IMMUTABLE RECORDS: nodes and links are frozen once created
5. ENRICHMENT IS NOT THE NODE: its lifecycle is owned by a cache, not the graph
"""
import itertools
import time
from typing import Any, Dict, Iterator, List, Literal, Optional, Set

import msgspec

from core.errors import DanglingLinkError, DuplicateIdError
from core.ontology import DEFAULT_NODE_WEIGHT, NodeType


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

_id_counter: Iterator[int] = itertools.count(1)


def now_ms() -> int:
    """Wall-clock milliseconds, used as the readable part of generated ids."""
    return int(time.time() * 1000)


def generate_turn_id(prefix: str) -> str:
    """
    Generate an id for a node the explorer synthesizes.

    Format: "<prefix>-<ms timestamp>-<counter>". The process-wide counter
    keeps ids unique even when two are generated in the same millisecond.
    """
    return f"{prefix}-{now_ms()}-{next(_id_counter)}"


def link_key(source_id: str, target_id: str) -> str:
    """Key used for path matching: "source-target"."""
    return f"{source_id}-{target_id}"


# =============================================================================
# GRAPH RECORDS
# =============================================================================

class NodeData(msgspec.Struct, kw_only=True, frozen=True):
    """
    An entity in the exploration graph.

    Architecture Notes:
    - `id`: Stable business id, unique per dataset
    - `weight`: Visual size hint for the renderer, not a graph weight
    - `metadata`: Opaque bag (pdbId, doi, authors, journal, year, ...)
    """
    id: str
    label: str
    type: str                                  # NodeType.value
    description: str = ""
    weight: float = DEFAULT_NODE_WEIGHT
    metadata: Dict[str, Any] = msgspec.field(default_factory=dict)

    @classmethod
    def create(
        cls,
        id: str,
        label: str,
        type: "NodeType | str",
        description: str = "",
        **kwargs
    ) -> "NodeData":
        """Factory method accepting either a NodeType or its string value."""
        type_str = type.value if isinstance(type, NodeType) else type
        return cls(id=id, label=label, type=type_str, description=description, **kwargs)

    @property
    def node_type(self) -> NodeType:
        """Get type as NodeType enum."""
        return NodeType(self.type)


class LinkData(msgspec.Struct, kw_only=True, frozen=True):
    """
    A directed, labelled relation between two nodes.

    Direction is kept for display only; traversal treats links as undirected.
    Parallel links between the same pair with different labels are allowed.
    """
    source_id: str
    target_id: str
    label: str

    @classmethod
    def create(cls, source_id: str, target_id: str, label: str = "") -> "LinkData":
        """Factory method; accepts LinkLabel members for label."""
        label_str = getattr(label, "value", label)
        return cls(source_id=source_id, target_id=target_id, label=label_str)

    @property
    def key(self) -> str:
        return link_key(self.source_id, self.target_id)

    @property
    def reverse_key(self) -> str:
        return link_key(self.target_id, self.source_id)

    def touches(self, node_id: str) -> bool:
        """True if either endpoint is node_id."""
        return self.source_id == node_id or self.target_id == node_id


class GraphDataset(msgspec.Struct, kw_only=True):
    """
    One domain's graph: ordered nodes (authoring order) and ordered links.
    """
    nodes: List[NodeData] = msgspec.field(default_factory=list)
    links: List[LinkData] = msgspec.field(default_factory=list)

    def node_ids(self) -> Set[str]:
        return {n.id for n in self.nodes}

    def validate(self) -> None:
        """
        Check the identity invariants.

        Raises:
            DuplicateIdError: If two nodes share an id
            DanglingLinkError: If a link endpoint is not a node in this dataset
        """
        seen: Set[str] = set()
        for node in self.nodes:
            if node.id in seen:
                raise DuplicateIdError(node.id)
            seen.add(node.id)

        for link in self.links:
            for endpoint in (link.source_id, link.target_id):
                if endpoint not in seen:
                    raise DanglingLinkError(link.source_id, link.target_id, endpoint)

    def copy(self) -> "GraphDataset":
        """Shallow copy; records are frozen so sharing them is safe."""
        return GraphDataset(nodes=list(self.nodes), links=list(self.links))


# =============================================================================
# REASONING SERVICE RECORDS (camelCase on the wire)
# =============================================================================

class SourceRef(msgspec.Struct, kw_only=True):
    """A cited source: title and link."""
    title: str = ""
    uri: str = ""


class EnrichmentData(msgspec.Struct, kw_only=True, rename="camel"):
    """
    On-demand context for a single node.

    Cached by node id in the session, never stored on the node itself.
    """
    summary: str
    sources: List[SourceRef] = msgspec.field(default_factory=list)
    related_topics: List[str] = msgspec.field(default_factory=list)


class ReasoningTrace(msgspec.Struct, kw_only=True, rename="camel"):
    """Reasoning metadata attached to a hypothesis. Display-only."""
    intents_detected: List[str] = msgspec.field(default_factory=list)
    steps: List[str] = msgspec.field(default_factory=list)
    bias_check: str = ""
    confidence_score: float = 0.0
    quantum_stages: Optional[Dict[str, str]] = None


class HypothesisResult(msgspec.Struct, kw_only=True, rename="camel"):
    """
    Structured output of a hypothesis turn.

    Only `hypothesis`, `synthesis` and `relevant_node_ids` drive graph
    changes. Everything else is carried through for display.
    """
    hypothesis: str
    synthesis: str
    relevant_node_ids: List[str] = msgspec.field(default_factory=list)
    reasoning: Optional[ReasoningTrace] = None
    universal_reasoning: Optional[Dict[str, Any]] = None
    lore: Optional[Dict[str, Any]] = None
    serendipity_traces: List[str] = msgspec.field(default_factory=list)
    sources: List[SourceRef] = msgspec.field(default_factory=list)


class RefinedNode(msgspec.Struct, kw_only=True):
    """Label/description rewritten by the reviewer."""
    label: str
    description: str


class ProposalValidation(msgspec.Struct, kw_only=True, rename="camel"):
    """Reviewer verdict on a proposed node."""
    approved: bool
    critique: str = ""
    provenance_score: float = 0.0
    refined_node: Optional[RefinedNode] = None
    sources: List[SourceRef] = msgspec.field(default_factory=list)


ProposalStatus = Literal["approved", "rejected"]


class HubProposal(msgspec.Struct, kw_only=True, rename="camel"):
    """A reviewed community proposal, as listed in the hub panel."""
    id: str
    node_label: str
    node_type: str
    description: str
    status: ProposalStatus
    ai_critique: str = ""
    sources: List[SourceRef] = msgspec.field(default_factory=list)
    provenance_score: float = 0.0

    @property
    def approved(self) -> bool:
        return self.status == "approved"


# =============================================================================
# SERIALIZATION HELPERS
# =============================================================================

# Pre-compiled encoders/decoders, reused across the application

_json_encoder = msgspec.json.Encoder()
_dataset_decoder = msgspec.json.Decoder(type=GraphDataset)
_node_list_decoder = msgspec.json.Decoder(type=List[NodeData])
_link_list_decoder = msgspec.json.Decoder(type=List[LinkData])
_hypothesis_decoder = msgspec.json.Decoder(type=HypothesisResult)
_enrichment_decoder = msgspec.json.Decoder(type=EnrichmentData)


def serialize_dataset(dataset: GraphDataset) -> bytes:
    """Serialize a GraphDataset to JSON bytes."""
    return _json_encoder.encode(dataset)


def deserialize_dataset(data: bytes) -> GraphDataset:
    """Deserialize JSON bytes to a GraphDataset (not validated)."""
    return _dataset_decoder.decode(data)


def serialize_nodes(nodes: List[NodeData]) -> bytes:
    """Serialize a list of NodeData to JSON bytes."""
    return _json_encoder.encode(nodes)


def deserialize_nodes(data: bytes) -> List[NodeData]:
    """Deserialize JSON bytes to a list of NodeData."""
    return _node_list_decoder.decode(data)


def serialize_links(links: List[LinkData]) -> bytes:
    """Serialize a list of LinkData to JSON bytes."""
    return _json_encoder.encode(links)


def deserialize_links(data: bytes) -> List[LinkData]:
    """Deserialize JSON bytes to a list of LinkData."""
    return _link_list_decoder.decode(data)


def deserialize_hypothesis(data: bytes) -> HypothesisResult:
    """Decode a camelCase hypothesis payload."""
    return _hypothesis_decoder.decode(data)


def deserialize_enrichment(data: bytes) -> EnrichmentData:
    """Decode a camelCase enrichment payload."""
    return _enrichment_decoder.decode(data)


# =============================================================================
# MSGPACK SERIALIZATION (Binary Format for IPC)
# =============================================================================

_msgpack_encoder = msgspec.msgpack.Encoder()
_msgpack_dataset_decoder = msgspec.msgpack.Decoder(type=GraphDataset)


def serialize_dataset_msgpack(dataset: GraphDataset) -> bytes:
    """Serialize a GraphDataset to msgpack bytes (more compact than JSON)."""
    return _msgpack_encoder.encode(dataset)


def deserialize_dataset_msgpack(data: bytes) -> GraphDataset:
    """Deserialize msgpack bytes to a GraphDataset."""
    return _msgpack_dataset_decoder.decode(data)
