"""
Unit tests for core/graph_store.py - GraphStore

Tests the canonical graph including:
- Loading and replacing datasets
- Merging with identity checks (duplicates, dangling links)
- Unresolved hypothesis links
- Adjacency projection and cache invalidation
- Queries (literature, search, components, stats)
"""
import pytest

from core.errors import DanglingLinkError, DuplicateIdError, NodeNotFoundError
from core.graph_store import create_store
from core.ontology import NodeType
from core.schemas import GraphDataset, LinkData, NodeData
from infrastructure.logger import MutationType


# =============================================================================
# LOAD
# =============================================================================

def test_load_replaces_dataset(fresh_store, chain_dataset, dataset_factory):
    """
    Validate that load() replaces the active dataset wholesale.

    Verifies:
    - Counts match the new dataset
    - Nodes from the previous dataset are gone
    - The version counter advances
    """
    fresh_store.load(chain_dataset, domain="first")
    version = fresh_store.version

    fresh_store.load(dataset_factory(["X", "Y"], [("X", "Y")]), domain="second")

    assert fresh_store.node_count == 2
    assert fresh_store.link_count == 1
    assert not fresh_store.has_node("A")
    assert fresh_store.domain == "second"
    assert fresh_store.version > version


def test_load_preserves_authoring_order(chain_store):
    assert chain_store.node_ids() == ["A", "B", "C", "D"]
    assert [l.key for l in chain_store.links] == ["A-B", "B-C", "C-D"]


def test_load_invalid_dataset_keeps_previous(chain_store, dataset_factory):
    """
    Validate that a dataset with a dangling link is rejected before any write.

    Verifies:
    - DanglingLinkError names the missing endpoint
    - The previous dataset stays active
    """
    broken = dataset_factory(["X"], [("X", "Ghost")])

    with pytest.raises(DanglingLinkError) as exc_info:
        chain_store.load(broken)

    assert exc_info.value.missing_id == "Ghost"
    assert chain_store.node_ids() == ["A", "B", "C", "D"]


def test_load_duplicate_ids_rejected(fresh_store, dataset_factory):
    with pytest.raises(DuplicateIdError):
        fresh_store.load(dataset_factory(["A", "A"], []))
    assert fresh_store.is_empty


def test_load_logs_mutation(fresh_store, chain_dataset, mutation_logger):
    fresh_store.load(chain_dataset, domain="test")

    events = mutation_logger.get_events_by_type(MutationType.DATASET_LOADED.value)
    assert len(events) == 1


# =============================================================================
# MERGE
# =============================================================================

def test_merge_appends_nodes_and_links(chain_store):
    """
    Validate that merge() appends without disturbing existing order.

    Verifies:
    - New node is last
    - New link is last
    - New node is adjacent to its anchor
    """
    node = NodeData.create(id="E", label="E", type=NodeType.DRUG)
    chain_store.merge([node], [LinkData.create("E", "A", "TARGETS")])

    assert chain_store.node_ids()[-1] == "E"
    assert chain_store.links[-1].key == "E-A"
    assert "E" in chain_store.neighbors_of("A")


def test_merge_allows_duplicate_labels(chain_store):
    node = NodeData.create(id="A2", label="A", type=NodeType.DRUG)
    chain_store.merge([node], [])
    assert chain_store.get_node("A2").label == "A"


def test_merge_duplicate_id_leaves_store_untouched(chain_store):
    """
    Validate that a merge with a colliding id is rejected atomically.

    Verifies:
    - DuplicateIdError raised
    - Neither the valid node nor the links of the batch were written
    """
    fresh = NodeData.create(id="E", label="E", type=NodeType.DRUG)
    clash = NodeData.create(id="A", label="Again", type=NodeType.DRUG)
    version = chain_store.version

    with pytest.raises(DuplicateIdError) as exc_info:
        chain_store.merge([fresh, clash], [LinkData.create("E", "A", "X")])

    assert exc_info.value.node_id == "A"
    assert not chain_store.has_node("E")
    assert chain_store.link_count == 3
    assert chain_store.version == version


def test_merge_repeated_id_within_batch_rejected(chain_store):
    nodes = [NodeData.create(id="E", label="E", type=NodeType.DRUG)] * 2
    with pytest.raises(DuplicateIdError):
        chain_store.merge(nodes, [])


def test_merge_dangling_link_rejected(chain_store):
    with pytest.raises(DanglingLinkError):
        chain_store.merge([], [LinkData.create("A", "Nowhere", "X")])
    assert chain_store.link_count == 3


def test_merge_unresolved_links_kept_out_of_adjacency(chain_store):
    """
    Validate that allow_unresolved keeps links to unknown ids.

    Verifies:
    - Link is in the link sequence
    - Link is listed as unresolved
    - Adjacency ignores it
    """
    hyp = NodeData.create(id="H", label="Hypothesis", type=NodeType.HYPOTHESIS)
    chain_store.merge(
        [hyp],
        [LinkData.create("H", "A", "RELATES_TO"), LinkData.create("H", "Ghost", "RELATES_TO")],
        allow_unresolved=True,
    )

    assert chain_store.link_count == 5
    assert [l.target_id for l in chain_store.unresolved_links] == ["Ghost"]
    assert chain_store.adjacency()["H"] == ["A"]
    assert "Ghost" not in chain_store.adjacency()


def test_unresolved_link_resolves_when_node_arrives(chain_store):
    hyp = NodeData.create(id="H", label="Hypothesis", type=NodeType.HYPOTHESIS)
    chain_store.merge([hyp], [LinkData.create("H", "Later", "RELATES_TO")], allow_unresolved=True)

    chain_store.merge([NodeData.create(id="Later", label="Later", type=NodeType.GENE)], [])

    assert chain_store.unresolved_links == []
    assert "H" in chain_store.neighbors_of("Later")
    assert chain_store.degree("Later") == 1


def test_merge_logs_mutation(chain_store, mutation_logger):
    chain_store.merge([NodeData.create(id="E", label="E", type=NodeType.DRUG)], [], origin="test")

    events = mutation_logger.get_events_for_node("E")
    assert len(events) == 1


# =============================================================================
# ADJACENCY
# =============================================================================

def test_adjacency_is_undirected(chain_store):
    adj = chain_store.adjacency()
    assert adj["A"] == ["B"]
    assert adj["B"] == ["A", "C"]
    assert adj["D"] == ["C"]


def test_adjacency_cache_invalidated_by_merge(chain_store):
    """
    Validate that the cached projection is never served stale.

    Verifies:
    - Same object returned while nothing changes
    - Merge forces a rebuild that includes the new link
    """
    first = chain_store.adjacency()
    assert chain_store.adjacency() is first

    chain_store.merge([], [LinkData.create("A", "D", "SHORTCUT")])

    rebuilt = chain_store.adjacency()
    assert rebuilt is not first
    assert "D" in rebuilt["A"]


def test_parallel_links_repeat_in_adjacency(fresh_store, dataset_factory):
    dataset = dataset_factory(["A", "B"], [("A", "B")])
    dataset.links.append(LinkData.create("B", "A", "INHIBITS"))
    fresh_store.load(dataset)

    assert fresh_store.adjacency()["A"] == ["B", "B"]
    assert fresh_store.neighbors_of("A") == {"B"}


def test_neighbors_of_missing_node_raises(chain_store):
    with pytest.raises(NodeNotFoundError):
        chain_store.neighbors_of("Z")


# =============================================================================
# QUERIES
# =============================================================================

@pytest.fixture
def literature_store(fresh_store):
    nodes = [
        NodeData.create(id="ACE2", label="ACE2", type=NodeType.HUMAN_PROTEIN),
        NodeData.create(
            id="Paper:1",
            label="Spike binds ACE2",
            type=NodeType.LITERATURE,
            metadata={"doi": "10.1016/j.cell.2020.02.052", "authors": "Hoffmann M", "year": 2020},
        ),
        NodeData.create(id="Paper:2", label="Unrelated", type=NodeType.LITERATURE),
    ]
    links = [LinkData.create("Paper:1", "ACE2", "CITES")]
    fresh_store.load(GraphDataset(nodes=nodes, links=links))
    return fresh_store


def test_related_literature(literature_store):
    assert [n.id for n in literature_store.related_literature("ACE2")] == ["Paper:1"]


def test_search_standard_mode_matches_label_and_id(literature_store):
    assert [n.id for n in literature_store.search_nodes("ace2")] == ["ACE2", "Paper:1"]
    assert literature_store.search_nodes("") == []


def test_search_literature_mode(literature_store):
    """
    Validate literature search.

    Verifies:
    - Empty query lists every Literature node
    - Metadata fields (doi, authors, year) are searched
    - Non-literature nodes never match
    """
    assert [n.id for n in literature_store.search_nodes("", literature_only=True)] == [
        "Paper:1",
        "Paper:2",
    ]
    assert [n.id for n in literature_store.search_nodes("hoffmann", literature_only=True)] == [
        "Paper:1"
    ]
    assert [n.id for n in literature_store.search_nodes("2020", literature_only=True)] == [
        "Paper:1"
    ]
    assert literature_store.search_nodes("ACE2", literature_only=True)[0].id == "Paper:1"


def test_components_and_stats(fresh_store, dataset_factory):
    fresh_store.load(dataset_factory(["A", "B", "C"], [("A", "B")]), domain="test")

    assert fresh_store.components() == [{"A", "B"}, {"C"}]
    stats = fresh_store.stats()
    assert stats["nodes"] == 3
    assert stats["links"] == 1
    assert stats["components"] == 2
    assert stats["types"] == {NodeType.HUMAN_PROTEIN.value: 3}


def test_polars_export_round_trip(chain_store):
    nodes_df = chain_store.to_polars_nodes()
    links_df = chain_store.to_polars_links()

    assert nodes_df["id"].to_list() == ["A", "B", "C", "D"]
    assert links_df["source_id"].to_list() == ["A", "B", "C"]


def test_create_store_loads_dataset(chain_dataset):
    store = create_store(chain_dataset, domain="test")
    assert store.node_count == 4
    assert store.domain == "test"
