"""
Unit tests for core/session.py - ExplorerSession

Tests the two asynchronous boundaries and their recovery rules:
- Enrichment caching, in-flight dedup, failure recording
- Hypothesis turns, stale-response discard, failure isolation
- Path discovery triggering a hypothesis turn
- Proposal review, merge and focus
- Domain change resets
- Quantum overlay toggling
"""
import asyncio

import pytest

from core.errors import ExternalServiceError, InvalidArgumentError
from core.ontology import GraphDomain, NodeType
from core.schemas import EnrichmentData, HypothesisResult, ProposalValidation, RefinedNode
from core.session import VALIDATION_FAILED_CRITIQUE, ExplorerSession
from infrastructure.config import ExplorerConfig, ExplorerSection, OverlaySection
from infrastructure.event_bus import EventBus, EventType
from infrastructure.logger import MutationType


SARS_NODE_COUNT = 27


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def session(fake_ai, bus, mutation_logger):
    session = ExplorerSession(ai=fake_ai, bus=bus, mutation_logger=mutation_logger)
    yield session
    session.close()


def _record(bus, event_type):
    seen = []
    bus.subscribe(event_type, seen.append)
    return seen


def _gated(value):
    """Side effect that blocks until the returned event is set."""
    gate = asyncio.Event()

    async def effect(*args, **kwargs):
        await gate.wait()
        if isinstance(value, Exception):
            raise value
        return value

    return gate, effect


# =============================================================================
# CONSTRUCTION, DOMAIN AND LAYOUT
# =============================================================================

def test_session_starts_on_default_domain(session):
    assert session.domain == GraphDomain.SARS_COV_2
    assert session.store.node_count == SARS_NODE_COUNT
    assert session.store.node_ids()[0] == "S"
    assert session.view().mode == "browse"


def test_change_domain_resets_state(session, bus, mutation_logger):
    """
    Validate a domain switch.

    Verifies:
    - Store holds the new domain's dataset
    - Mode is Browse with nothing selected
    - Enrichment cache is emptied
    - DOMAIN_CHANGED is published and logged
    """
    changed = _record(bus, EventType.DOMAIN_CHANGED)
    session.machine.enter_pathfinding()
    session.enrichment_cache["S"] = EnrichmentData(summary="old")

    session.change_domain("AMR")

    assert session.domain == GraphDomain.AMR
    assert session.store.domain == GraphDomain.AMR.value
    assert not session.store.has_node("S")
    assert session.view().mode == "browse"
    assert not session.view().is_active
    assert session.enrichment_cache == {}
    assert changed[0].payload == {"domain": GraphDomain.AMR.value}
    assert len(mutation_logger.get_events_by_type(MutationType.DOMAIN_CHANGED.value)) == 1


def test_change_domain_unknown_raises(session):
    with pytest.raises(ValueError):
        session.change_domain("Astrology")
    assert session.domain == GraphDomain.SARS_COV_2


def test_set_layout(session):
    session.set_layout("dag-lr")
    assert session.layout == "dag-lr"
    session.set_layout("radial")
    assert session.layout == "radial"
    with pytest.raises(InvalidArgumentError):
        session.set_layout("spiral")
    with pytest.raises(InvalidArgumentError):
        session.set_layout("2d-force")


def test_click_without_event_loop_still_selects(session, fake_ai):
    outcome = session.click_node("ACE2")

    assert outcome.kind == "selected"
    assert session.view().focal_id == "ACE2"
    assert not session.is_enriching("ACE2")
    fake_ai.enrich_node.assert_not_called()


def test_session_defaults_come_from_config(fake_ai, bus, mutation_logger):
    config = ExplorerConfig(
        explorer=ExplorerSection(default_domain="Climate-Health", default_layout="dag-td"),
        overlay=OverlaySection(density=55.0),
    )
    session = ExplorerSession(ai=fake_ai, bus=bus, mutation_logger=mutation_logger, config=config)

    assert session.domain == GraphDomain.CLIMATE
    assert session.layout == "dag-td"
    assert session.overlay.density == 55.0
    session.close()


def test_explicit_domain_overrides_config(fake_ai, bus, mutation_logger):
    config = ExplorerConfig(explorer=ExplorerSection(default_domain="Climate-Health"))
    session = ExplorerSession(
        ai=fake_ai, bus=bus, mutation_logger=mutation_logger, domain="AMR", config=config,
    )

    assert session.domain == GraphDomain.AMR
    session.close()


# =============================================================================
# ENRICHMENT
# =============================================================================

@pytest.mark.asyncio
async def test_click_enriches_and_caches(session, fake_ai, bus):
    """
    Validate enrichment triggered by a Browse click.

    Verifies:
    - One service call per node
    - Result cached by node id
    - A second click does not call the service again
    """
    cached = _record(bus, EventType.ENRICHMENT_CACHED)

    session.click_node("ACE2")
    assert session.is_enriching("ACE2")
    await session.wait_idle()

    assert session.enrichment_for("ACE2").summary == "enriched"
    assert not session.is_enriching("ACE2")
    assert cached[0].payload == {"node_id": "ACE2"}

    session.click_node("ACE2")
    await session.wait_idle()
    assert fake_ai.enrich_node.await_count == 1
    node, domain = fake_ai.enrich_node.await_args.args
    assert node.id == "ACE2"
    assert domain == GraphDomain.SARS_COV_2.value


@pytest.mark.asyncio
async def test_enrichment_in_flight_is_deduplicated(session, fake_ai):
    gate, effect = _gated(EnrichmentData(summary="slow"))
    fake_ai.enrich_node.side_effect = effect

    session.click_node("S")
    session.click_node("ACE2")
    session.click_node("S")
    gate.set()
    await session.wait_idle()

    assert fake_ai.enrich_node.await_count == 2
    assert session.enrichment_for("S").summary == "slow"


@pytest.mark.asyncio
async def test_enrich_node_returns_cached(session, fake_ai):
    first = await session.enrich_node("NSP5")
    second = await session.enrich_node("NSP5")

    assert first is second
    assert fake_ai.enrich_node.await_count == 1


@pytest.mark.asyncio
async def test_enrichment_failure_recorded(session, fake_ai, bus):
    """
    Validate that a failed enrichment is recorded per node.

    Verifies:
    - Nothing is cached
    - The error message is kept for the node
    - ENRICHMENT_FAILED is published
    - Graph and selection are untouched
    """
    failed = _record(bus, EventType.ENRICHMENT_FAILED)
    fake_ai.enrich_node.side_effect = ExternalServiceError("timeout", operation="enrich", key="S")

    session.click_node("S")
    await session.wait_idle()

    assert session.enrichment_for("S") is None
    assert session.enrichment_error("S") == "timeout"
    assert failed[0].payload["node_id"] == "S"
    assert session.store.node_count == SARS_NODE_COUNT
    assert session.view().focal_id == "S"


@pytest.mark.asyncio
async def test_enrichment_retry_clears_error(session, fake_ai):
    fake_ai.enrich_node.side_effect = ExternalServiceError("down", operation="enrich")
    await session.enrich_node("S")
    assert session.enrichment_error("S") == "down"

    fake_ai.enrich_node.side_effect = None
    await session.enrich_node("S")

    assert session.enrichment_error("S") is None
    assert session.enrichment_for("S") is not None


@pytest.mark.asyncio
async def test_enrichment_dropped_after_domain_change(session, fake_ai):
    gate, effect = _gated(EnrichmentData(summary="late"))
    fake_ai.enrich_node.side_effect = effect

    session.click_node("S")
    await asyncio.sleep(0)
    session.change_domain(GraphDomain.ONCOLOGY)
    gate.set()
    await session.wait_idle()

    assert session.enrichment_cache == {}


@pytest.mark.asyncio
async def test_enrichment_requested_again_after_returning_to_domain(session, fake_ai):
    """
    Validate that a request abandoned by a domain switch is not reused.

    Verifies:
    - Clicking the same node after switching away and back issues a new request
    - The new response is cached once it arrives
    """
    gate, effect = _gated(EnrichmentData(summary="fresh"))
    fake_ai.enrich_node.side_effect = effect

    session.click_node("S")
    await asyncio.sleep(0)
    session.change_domain(GraphDomain.AMR)
    session.change_domain(GraphDomain.SARS_COV_2)

    session.click_node("S")
    assert session.is_enriching("S")
    gate.set()
    await session.wait_idle()

    assert fake_ai.enrich_node.await_count == 2
    assert session.enrichment_for("S").summary == "fresh"


@pytest.mark.asyncio
async def test_related_literature_for_focal_node(session):
    session.click_node("ACE2")

    assert [n.id for n in session.related_literature()] == ["Paper:Hoffmann"]
    assert session.related_literature("NSP13") == []


# =============================================================================
# HYPOTHESIS TURNS
# =============================================================================

@pytest.mark.asyncio
async def test_hypothesis_turn_merges_and_focuses(session, fake_ai, bus):
    """
    Validate one hypothesis turn from the open panel.

    Verifies:
    - Two nodes are merged
    - The turn is highlighted
    - The result is stored and HYPOTHESIS_APPLIED published
    """
    applied = _record(bus, EventType.HYPOTHESIS_APPLIED)
    fake_ai.analyze_evidence.return_value = HypothesisResult(
        hypothesis="TMPRSS2 inhibition blocks entry",
        synthesis="...",
        relevant_node_ids=["TMPRSS2", "S"],
    )
    session.machine.enter_hypothesis()

    turn = await session.analyze_hypothesis("How does camostat work?")

    assert session.store.node_count == SARS_NODE_COUNT + 2
    assert session.view().highlighted_nodes == {
        turn.query_node_id,
        turn.hypothesis_node_id,
        "TMPRSS2",
        "S",
    }
    assert session.hypothesis_result.hypothesis == "TMPRSS2 inhibition blocks entry"
    assert applied[0].payload["hypothesis_node_id"] == turn.hypothesis_node_id

    query, seed_nodes, domain = fake_ai.analyze_evidence.await_args.args
    assert query == "How does camostat work?"
    assert len(seed_nodes) == SARS_NODE_COUNT
    assert domain == GraphDomain.SARS_COV_2.value


@pytest.mark.asyncio
async def test_hypothesis_discarded_when_panel_closed(session, fake_ai):
    session.machine.enter_hypothesis()
    gate, effect = _gated(HypothesisResult(hypothesis="h", synthesis="s"))
    fake_ai.analyze_evidence.side_effect = effect

    task = asyncio.create_task(session.analyze_hypothesis("q"))
    await asyncio.sleep(0)
    session.machine.exit_hypothesis()
    gate.set()

    assert await task is None
    assert session.store.node_count == SARS_NODE_COUNT
    assert session.hypothesis_result is None


@pytest.mark.asyncio
async def test_hypothesis_discarded_after_domain_change(session, fake_ai):
    session.machine.enter_hypothesis()
    gate, effect = _gated(HypothesisResult(hypothesis="h", synthesis="s"))
    fake_ai.analyze_evidence.side_effect = effect

    task = asyncio.create_task(session.analyze_hypothesis("q"))
    await asyncio.sleep(0)
    session.change_domain(GraphDomain.NEURO)
    session.machine.enter_hypothesis()
    gate.set()

    assert await task is None
    assert session.store.node_count == 5


@pytest.mark.asyncio
async def test_latest_hypothesis_wins(session, fake_ai):
    """
    Validate that a newer query supersedes an older one still in flight.

    Verifies:
    - The newer turn is merged
    - The older response is discarded even though it arrives last
    """
    gates = {"first": asyncio.Event(), "second": asyncio.Event()}

    async def effect(query, seed_nodes, domain):
        await gates[query].wait()
        return HypothesisResult(hypothesis=query, synthesis="")

    fake_ai.analyze_evidence.side_effect = effect
    session.machine.enter_hypothesis()

    first = asyncio.create_task(session.analyze_hypothesis("first"))
    await asyncio.sleep(0)
    second = asyncio.create_task(session.analyze_hypothesis("second"))
    await asyncio.sleep(0)

    gates["second"].set()
    assert await second is not None
    gates["first"].set()
    assert await first is None

    assert session.hypothesis_result.hypothesis == "second"
    assert session.store.node_count == SARS_NODE_COUNT + 2


@pytest.mark.asyncio
async def test_reasking_in_flight_query_makes_it_latest(session, fake_ai):
    """
    Validate asking A, then B, then A again while A is still in flight.

    Verifies:
    - The repeated query shares the original request
    - A is merged and B is discarded, matching the panel's last query
    """
    gates = {"A": asyncio.Event(), "B": asyncio.Event()}

    async def effect(query, seed_nodes, domain):
        await gates[query].wait()
        return HypothesisResult(hypothesis=query, synthesis="")

    fake_ai.analyze_evidence.side_effect = effect
    session.machine.enter_hypothesis()

    first = asyncio.create_task(session.analyze_hypothesis("A"))
    await asyncio.sleep(0)
    second = asyncio.create_task(session.analyze_hypothesis("B"))
    await asyncio.sleep(0)
    again = asyncio.create_task(session.analyze_hypothesis("A"))
    await asyncio.sleep(0)

    gates["B"].set()
    assert await second is None
    gates["A"].set()
    turn = await again

    assert turn is not None
    assert await first == turn
    assert fake_ai.analyze_evidence.await_count == 2
    assert session.hypothesis_result.hypothesis == "A"
    assert session.store.node_count == SARS_NODE_COUNT + 2


@pytest.mark.asyncio
async def test_same_query_in_flight_is_deduplicated(session, fake_ai):
    gate, effect = _gated(HypothesisResult(hypothesis="h", synthesis="s"))
    fake_ai.analyze_evidence.side_effect = effect
    session.machine.enter_hypothesis()

    a = asyncio.create_task(session.analyze_hypothesis("q"))
    b = asyncio.create_task(session.analyze_hypothesis("q"))
    await asyncio.sleep(0)
    assert session.is_analyzing
    gate.set()

    assert await a == await b
    assert fake_ai.analyze_evidence.await_count == 1
    assert not session.is_analyzing


@pytest.mark.asyncio
async def test_hypothesis_failure_keeps_previous_result(session, fake_ai, bus):
    """
    Validate failure isolation at the hypothesis boundary.

    Verifies:
    - The error is recorded
    - The previous result and graph are unchanged
    - HYPOTHESIS_FAILED is published
    """
    failed = _record(bus, EventType.HYPOTHESIS_FAILED)
    session.machine.enter_hypothesis()
    await session.analyze_hypothesis("first")
    previous = session.hypothesis_result
    count = session.store.node_count

    fake_ai.analyze_evidence.side_effect = ExternalServiceError("quota", operation="hypothesis")
    assert await session.analyze_hypothesis("second") is None

    assert session.hypothesis_error == "quota"
    assert session.hypothesis_result is previous
    assert session.store.node_count == count
    assert failed[0].payload == {"query": "second", "error": "quota"}


@pytest.mark.asyncio
async def test_empty_query_clears_result(session):
    session.machine.enter_hypothesis()
    await session.analyze_hypothesis("first")
    assert session.view().is_active

    assert await session.analyze_hypothesis("   ") is None

    assert session.hypothesis_result is None
    assert not session.view().is_active
    assert session.store.node_count == SARS_NODE_COUNT + 2


@pytest.mark.asyncio
async def test_path_discovery_triggers_hypothesis(session, fake_ai, chain_dataset):
    """
    Validate the path -> hypothesis coupling through the event bus.

    Verifies:
    - A found path issues one hypothesis query describing the path
    - The turn is merged while the path search is still current
    - The path highlight is kept
    """
    session.store.load(chain_dataset, domain="test")
    session.machine.enter_pathfinding()

    session.click_node("A")
    session.click_node("D")
    await session.wait_idle()

    fake_ai.analyze_evidence.assert_awaited_once()
    query = fake_ai.analyze_evidence.await_args.args[0]
    assert "A -> B -> C -> D" in query
    assert session.store.node_count == 6
    assert session.view().path_status == "found"


@pytest.mark.asyncio
async def test_path_hypothesis_discarded_after_exit(session, fake_ai, chain_dataset):
    gate, effect = _gated(HypothesisResult(hypothesis="h", synthesis="s"))
    fake_ai.analyze_evidence.side_effect = effect
    session.store.load(chain_dataset, domain="test")
    session.machine.enter_pathfinding()

    session.click_node("A")
    session.click_node("D")
    await asyncio.sleep(0)
    session.machine.exit_pathfinding()
    gate.set()
    await session.wait_idle()

    assert session.store.node_count == 4


# =============================================================================
# PROPOSAL HUB
# =============================================================================

@pytest.mark.asyncio
async def test_approved_proposal_merged_and_focused(session, fake_ai, bus):
    """
    Validate an approved proposal.

    Verifies:
    - Reviewer refinements replace label and description
    - Node is merged with a link to the first dataset node
    - The new node becomes the focal node
    """
    reviewed = _record(bus, EventType.PROPOSAL_REVIEWED)
    fake_ai.validate_proposal.return_value = ProposalValidation(
        approved=True,
        critique="Well supported",
        provenance_score=0.9,
        refined_node=RefinedNode(label="Nirmatrelvir", description="Mpro inhibitor (refined)"),
    )

    proposal = await session.submit_proposal("nirmatrelvir", "DRUG", "Mpro inhibitor")
    await session.wait_idle()

    assert proposal.approved
    assert proposal.node_label == "Nirmatrelvir"
    assert proposal.node_type == NodeType.DRUG.value
    node = session.store.get_node(proposal.id)
    assert node.description == "Mpro inhibitor (refined)"
    assert "S" in session.store.neighbors_of(proposal.id)
    assert session.view().focal_id == proposal.id
    assert session.proposals == [proposal]
    assert reviewed[0].payload == {"id": proposal.id, "status": "approved"}


@pytest.mark.asyncio
async def test_rejected_proposal_not_merged(session):
    proposal = await session.submit_proposal("Garlic", "Drug/Compound", "Cures everything")

    assert proposal.status == "rejected"
    assert proposal.ai_critique == "no"
    assert not session.store.has_node(proposal.id)
    assert session.store.node_count == SARS_NODE_COUNT


@pytest.mark.asyncio
async def test_failed_review_counts_as_rejection(session, fake_ai):
    fake_ai.validate_proposal.side_effect = ExternalServiceError("bad json", operation="validate")

    proposal = await session.submit_proposal("X", "GENE", "Something")

    assert proposal.status == "rejected"
    assert proposal.ai_critique == VALIDATION_FAILED_CRITIQUE
    assert session.store.node_count == SARS_NODE_COUNT


@pytest.mark.asyncio
async def test_proposal_argument_checks(session, fake_ai):
    with pytest.raises(InvalidArgumentError):
        await session.submit_proposal("", "GENE", "desc")
    with pytest.raises(InvalidArgumentError):
        await session.submit_proposal("label", "GENE", "  ")
    with pytest.raises(ValueError):
        await session.submit_proposal("label", "NOT_A_TYPE", "desc")
    fake_ai.validate_proposal.assert_not_called()


# =============================================================================
# QUANTUM OVERLAY
# =============================================================================

def test_toggle_quantum_manual_ticks(session):
    session.set_quantum_density(0)

    assert session.toggle_quantum() is True
    state = session.quantum_tick()
    assert state.tick == 1
    assert state.is_empty

    assert session.toggle_quantum() is False
    assert session.overlay.state.is_empty


@pytest.mark.asyncio
async def test_toggle_quantum_with_loop(session):
    assert session.toggle_quantum(interval=0.001)
    await asyncio.sleep(0.01)
    assert session.overlay.is_running

    assert session.toggle_quantum() is False
    assert not session.overlay.is_running


def test_toggle_quantum_loop_uses_configured_interval(fake_ai, bus, mutation_logger):
    config = ExplorerConfig(overlay=OverlaySection(density=10.0, tick_interval=0.25))
    session = ExplorerSession(ai=fake_ai, bus=bus, mutation_logger=mutation_logger, config=config)
    started = []
    session.overlay.start = lambda node_ids, interval: started.append(interval)

    assert session.toggle_quantum(run_loop=True) is True
    assert started == [0.25]
    session.close()
