"""
Pytest configuration and shared fixtures for the BioGraph test suite.
"""
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset global singletons before each test to ensure isolation."""
    from agents.llm import reset_llm
    from infrastructure.config import reset_config
    from infrastructure.event_bus import reset_event_bus
    from infrastructure.logger import reset_mutation_logger

    reset_mutation_logger()
    reset_event_bus()
    reset_llm()
    reset_config()

    yield

    reset_mutation_logger()
    reset_event_bus()
    reset_llm()
    reset_config()


@pytest.fixture
def mutation_logger():
    """A private in-memory mutation logger."""
    from infrastructure.logger import LoggerConfig, MutationLogger
    return MutationLogger(LoggerConfig(enable_file_log=False))


@pytest.fixture
def fresh_store(mutation_logger):
    """An empty GraphStore."""
    from core.graph_store import GraphStore
    return GraphStore(mutation_logger=mutation_logger)


def make_dataset(node_ids, pairs, label="REL"):
    """Dataset of plain nodes and links from (source, target) pairs."""
    from core.ontology import NodeType
    from core.schemas import GraphDataset, LinkData, NodeData

    return GraphDataset(
        nodes=[NodeData.create(id=n, label=n, type=NodeType.HUMAN_PROTEIN) for n in node_ids],
        links=[LinkData.create(s, t, label) for s, t in pairs],
    )


@pytest.fixture
def dataset_factory():
    """make_dataset as a fixture."""
    return make_dataset


@pytest.fixture
def chain_dataset():
    """A - B - C - D."""
    return make_dataset(["A", "B", "C", "D"], [("A", "B"), ("B", "C"), ("C", "D")])


@pytest.fixture
def chain_store(fresh_store, chain_dataset):
    fresh_store.load(chain_dataset, domain="test")
    return fresh_store


@pytest.fixture
def fake_ai():
    """An AIService whose three calls are AsyncMocks with benign defaults."""
    from core.schemas import EnrichmentData, HypothesisResult, ProposalValidation

    ai = AsyncMock()
    ai.enrich_node.return_value = EnrichmentData(summary="enriched")
    ai.analyze_evidence.return_value = HypothesisResult(
        hypothesis="H",
        synthesis="S",
        relevant_node_ids=[],
    )
    ai.validate_proposal.return_value = ProposalValidation(approved=False, critique="no")
    return ai
