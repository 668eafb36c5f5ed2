"""
Unit tests for domain/fixtures.py - Seed Datasets
"""
import pytest

from core.graph_store import create_store
from core.ontology import GraphDomain, NodeType
from core.pathfinding import find_path_in_store
from domain.fixtures import get_domain_dataset, list_domains


EXPECTED_SIZES = {
    GraphDomain.SARS_COV_2: (27, 24),
    GraphDomain.ONCOLOGY: (8, 8),
    GraphDomain.AMR: (24, 25),
    GraphDomain.NEURO: (5, 4),
    GraphDomain.CLIMATE: (5, 4),
    GraphDomain.SYNBIO: (5, 3),
    GraphDomain.POLICY: (4, 3),
    GraphDomain.QUANTUM_HEALTH: (5, 5),
}


@pytest.mark.parametrize("domain", list(GraphDomain))
def test_every_domain_is_valid(domain):
    """
    Validate each bundled dataset.

    Verifies:
    - Unique ids and no dangling links
    - Expected node and link counts
    - Every node type is part of the vocabulary
    """
    dataset = get_domain_dataset(domain)
    dataset.validate()

    assert (len(dataset.nodes), len(dataset.links)) == EXPECTED_SIZES[domain]
    for node in dataset.nodes:
        NodeType(node.type)


def test_list_domains_in_menu_order():
    domains = list_domains()
    assert domains[0] == GraphDomain.SARS_COV_2
    assert set(domains) == set(EXPECTED_SIZES)


def test_domain_by_name_or_value():
    assert get_domain_dataset("CLIMATE").nodes == get_domain_dataset("Climate-Health").nodes
    with pytest.raises(ValueError):
        get_domain_dataset("Astrology")


def test_datasets_are_fresh_copies():
    first = get_domain_dataset(GraphDomain.NEURO)
    first.nodes.clear()
    assert len(get_domain_dataset(GraphDomain.NEURO).nodes) == 5


def test_sars_metadata_and_literature():
    store = create_store(get_domain_dataset(GraphDomain.SARS_COV_2))

    assert store.get_node("S").metadata == {"pdbId": "6VXX"}
    assert [n.id for n in store.related_literature("ACE2")] == ["Paper:Hoffmann"]


def test_synbio_biosensor_is_isolated():
    store = create_store(get_domain_dataset(GraphDomain.SYNBIO))
    assert store.neighbors_of("Biosensor") == set()
    assert find_path_in_store(store, "CRISPR-Cas9", "Biosensor") is None
