"""
BIOGRAPH EXPLORER SESSION - The Host-Facing Surface

One ExplorerSession per open explorer. It owns the canonical state (graph
store, interaction mode, overlay) and the two asynchronous boundaries:

- Enrichment: one request per node id in flight at a time within a
  domain. Results are cached by node id whatever node is focused when
  they arrive.
- Hypothesis: one request per query text in flight at a time within a
  domain; asking again makes that request the expected turn. A result is
  applied only if its turn is still the expected one and the interaction
  mode still accepts a hypothesis. Anything else is discarded.

Failures at either boundary are recorded (enrichment_errors,
hypothesis_error) and never reach the graph or the highlight state.

Everything synchronous (clicks, mode toggles, merges, view computation)
runs inline in the caller's event handler.

Defaults (start domain, layout, overlay density and tick interval, LLM
models) come from infrastructure.config unless passed explicitly.
"""
import asyncio
import logging
from typing import Dict, List, Optional, Tuple, Union

from agents.prompts import describe_path
from agents.reasoning import AIService, ReasoningService
from core.errors import ExternalServiceError, InvalidArgumentError
from core.graph_store import GraphStore
from core.interaction import ClickOutcome, InteractionStateMachine, ViewState
from core.merge import HypothesisTurn, MergeController
from core.ontology import DAG_MODES, GraphDomain, LayoutMode, parse_domain, parse_node_type
from core.overlay import OverlayState, QuantumOverlay
from core.schemas import (
    EnrichmentData,
    HubProposal,
    HypothesisResult,
    NodeData,
    ProposalValidation,
    generate_turn_id,
)
from domain.fixtures import get_domain_dataset
from infrastructure.config import ExplorerConfig, get_config
from infrastructure.event_bus import EventBus, EventType, ExplorerEvent
from infrastructure.logger import MutationLogger, get_mutation_logger


logger = logging.getLogger("biograph.session")

VALIDATION_FAILED_CRITIQUE = "Validation engine failed to process request."


class ExplorerSession:
    """
    Usage:
        session = ExplorerSession(ai=ReasoningService())
        session.change_domain(GraphDomain.AMR)

        session.click_node("S.aureus")        # enrichment scheduled
        await session.wait_idle()
        session.enrichment_for("S.aureus")

        session.machine.enter_hypothesis()
        turn = await session.analyze_hypothesis("Does efflux drive resistance?")
        session.view().highlighted_nodes      # turn.focus_ids
    """

    def __init__(
        self,
        ai: Optional[AIService] = None,
        domain: Union[GraphDomain, str, None] = None,
        bus: Optional[EventBus] = None,
        overlay: Optional[QuantumOverlay] = None,
        mutation_logger: Optional[MutationLogger] = None,
        config: Optional[ExplorerConfig] = None,
    ):
        self.config = config or get_config()
        self.bus = bus or EventBus()
        self.mutations = mutation_logger or get_mutation_logger()
        self.store = GraphStore(mutation_logger=self.mutations)
        self.machine = InteractionStateMachine(self.store, self.bus)
        self.merger = MergeController(self.store)
        self.overlay = overlay or QuantumOverlay(density=self.config.overlay.density)
        self._ai = ai

        self.domain: GraphDomain = parse_domain(domain or self.config.explorer.default_domain)
        self.layout: LayoutMode = "3d-force"
        self.set_layout(self.config.explorer.default_layout)

        self.enrichment_cache: Dict[str, EnrichmentData] = {}
        self.enrichment_errors: Dict[str, str] = {}
        # keyed by (domain epoch, node id)
        self._enrich_tasks: Dict[Tuple[int, str], asyncio.Task] = {}
        self._domain_epoch = 0

        self.hypothesis_result: Optional[HypothesisResult] = None
        self.hypothesis_error: Optional[str] = None
        # (domain epoch, query) -> (turn id, task)
        self._hypothesis_tasks: Dict[Tuple[int, str], Tuple[str, asyncio.Task]] = {}
        self._expected_turn: Optional[str] = None

        self.proposals: List[HubProposal] = []

        self.bus.subscribe_async(EventType.PATH_DISCOVERED, self._on_path_discovered)
        self.store.load(get_domain_dataset(self.domain), domain=self.domain.value)

    @property
    def ai(self) -> AIService:
        if self._ai is None:
            self._ai = ReasoningService(
                llm=self.config.structured_llm(),
                router=self.config.router(),
            )
        return self._ai

    def _publish(self, event_type: EventType, payload: dict) -> None:
        self.bus.publish(ExplorerEvent.now(event_type, payload, source="session"))

    # =========================================================================
    # DOMAIN AND LAYOUT
    # =========================================================================

    def change_domain(self, domain: Union[GraphDomain, str]) -> None:
        """
        Load another domain's seed dataset and reset all transient state.

        In-flight requests keep running but their results are discarded.

        Raises:
            ValueError: If the domain is unknown
        """
        new_domain = parse_domain(domain)
        dataset = get_domain_dataset(new_domain)

        self.store.load(dataset, domain=new_domain.value)
        self.domain = new_domain
        self._domain_epoch += 1

        self.machine.reset_for_domain_change()
        self.hypothesis_result = None
        self.hypothesis_error = None
        self._expected_turn = None
        self.enrichment_cache.clear()
        self.enrichment_errors.clear()
        self.overlay.reset()

        self.mutations.log_domain_changed(new_domain.value)
        logger.info(f"Domain changed to {new_domain.value} ({self.store.node_count} nodes)")
        self._publish(EventType.DOMAIN_CHANGED, {"domain": new_domain.value})

    def set_layout(self, layout: LayoutMode) -> None:
        if layout not in DAG_MODES:
            raise InvalidArgumentError(f"Unknown layout: {layout}")
        self.layout = layout

    # =========================================================================
    # SELECTION AND ENRICHMENT
    # =========================================================================

    def click_node(self, node_id: str) -> ClickOutcome:
        """
        Apply a click and, for a plain selection, start enrichment if the
        node has none cached and none in flight.

        Raises:
            InvalidArgumentError: If no dataset is loaded
            NodeNotFoundError: If node_id is not in the dataset
        """
        outcome = self.machine.click_node(node_id)
        if not outcome.needs_enrichment or node_id in self.enrichment_cache:
            return outcome

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No event loop running; enrichment for {node_id} not scheduled")
            return outcome
        self._enrichment_task(node_id, loop)
        return outcome

    def close_sidebar(self) -> None:
        self.machine.clear_selection()

    def _enrichment_task(
        self,
        node_id: str,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> asyncio.Task:
        key = (self._domain_epoch, node_id)
        task = self._enrich_tasks.get(key)
        if task is not None:
            logger.debug(f"Enrichment for {node_id} already in flight")
            return task

        node = self.store.get_node(node_id)
        loop = loop or asyncio.get_running_loop()
        task = loop.create_task(self._fetch_enrichment(node, self._domain_epoch))
        self._enrich_tasks[key] = task
        task.add_done_callback(lambda _t, key=key: self._enrich_tasks.pop(key, None))
        return task

    async def enrich_node(self, node_id: str) -> Optional[EnrichmentData]:
        """
        Fetch (or return cached) enrichment for a node.

        Returns:
            The enrichment, or None if the service failed or the domain
            changed while the request was in flight

        Raises:
            NodeNotFoundError: If node_id is not in the dataset
        """
        cached = self.enrichment_cache.get(node_id)
        if cached is not None:
            return cached
        return await self._enrichment_task(node_id)

    async def _fetch_enrichment(self, node: NodeData, epoch: int) -> Optional[EnrichmentData]:
        self.enrichment_errors.pop(node.id, None)
        try:
            data = await self.ai.enrich_node(node, self.domain.value)
        except ExternalServiceError as e:
            if epoch == self._domain_epoch:
                self.enrichment_errors[node.id] = str(e)
            self._publish(EventType.ENRICHMENT_FAILED, {"node_id": node.id, "error": str(e)})
            return None

        if epoch != self._domain_epoch:
            logger.info(f"Dropping enrichment for {node.id}: domain changed")
            return None

        self.enrichment_cache[node.id] = data
        self._publish(EventType.ENRICHMENT_CACHED, {"node_id": node.id})
        return data

    def enrichment_for(self, node_id: str) -> Optional[EnrichmentData]:
        return self.enrichment_cache.get(node_id)

    def enrichment_error(self, node_id: str) -> Optional[str]:
        return self.enrichment_errors.get(node_id)

    def is_enriching(self, node_id: str) -> bool:
        return (self._domain_epoch, node_id) in self._enrich_tasks

    def related_literature(self, node_id: Optional[str] = None) -> List[NodeData]:
        """Literature neighbors of node_id, or of the focal node."""
        node_id = node_id or self.view().focal_id
        if node_id is None or not self.store.has_node(node_id):
            return []
        return self.store.related_literature(node_id)

    # =========================================================================
    # HYPOTHESIS
    # =========================================================================

    @property
    def is_analyzing(self) -> bool:
        return bool(self._hypothesis_tasks)

    async def analyze_hypothesis(
        self,
        query: str,
        trigger: Optional[Tuple[str, str]] = None,
    ) -> Optional[HypothesisTurn]:
        """
        Ask the reasoning service about `query` and merge the answer.

        An empty query clears the current result and highlight instead.

        Args:
            query: Free text from the hypothesis panel or a path description
            trigger: (start, end) when the query came from a path search

        Returns:
            The merged turn, or None if nothing was applied
        """
        if not query.strip():
            self.hypothesis_result = None
            self.hypothesis_error = None
            self._expected_turn = None
            self.machine.clear_hypothesis_focus()
            return None

        key = (self._domain_epoch, query)
        in_flight = self._hypothesis_tasks.get(key)
        if in_flight is not None:
            turn_id, task = in_flight
            logger.debug(f"Hypothesis for {query!r} already in flight; expecting {turn_id} again")
        else:
            turn_id = generate_turn_id("Turn")
            task = asyncio.get_running_loop().create_task(
                self._run_hypothesis(query, trigger, self._domain_epoch, turn_id)
            )
            self._hypothesis_tasks[key] = (turn_id, task)
            task.add_done_callback(lambda _t, key=key: self._hypothesis_tasks.pop(key, None))

        self._expected_turn = turn_id
        self.hypothesis_error = None
        return await task

    async def _run_hypothesis(
        self,
        query: str,
        trigger: Optional[Tuple[str, str]],
        epoch: int,
        turn_id: str,
    ) -> Optional[HypothesisTurn]:
        seed_nodes = self.store.nodes

        try:
            result = await self.ai.analyze_evidence(query, seed_nodes, self.domain.value)
        except ExternalServiceError as e:
            if self._expected_turn == turn_id:
                self._expected_turn = None
                self.hypothesis_error = str(e)
            self._publish(EventType.HYPOTHESIS_FAILED, {"query": query, "error": str(e)})
            return None

        stale = (
            epoch != self._domain_epoch
            or self._expected_turn != turn_id
            or not self.machine.expects_hypothesis(trigger)
        )
        if stale:
            logger.info(f"Discarding stale hypothesis for turn {turn_id}")
            return None
        self._expected_turn = None

        merged = self.merger.merge_hypothesis(query, result, turn_id=turn_id)
        self.hypothesis_result = result
        self.machine.focus_hypothesis_turn(merged.turn)

        self._publish(EventType.GRAPH_MERGED, {
            "origin": "hypothesis",
            "node_ids": [n.id for n in merged.nodes],
            "link_count": len(merged.links),
        })
        self._publish(EventType.HYPOTHESIS_APPLIED, {
            "turn_id": turn_id,
            "hypothesis_node_id": merged.turn.hypothesis_node_id,
        })
        return merged.turn

    async def _on_path_discovered(self, event: ExplorerEvent) -> None:
        sequence = event.payload["node_sequence"]
        if not all(self.store.has_node(node_id) for node_id in sequence):
            logger.info("Path no longer in the graph; skipping hypothesis")
            return
        labels = [self.store.get_node(node_id).label for node_id in sequence]
        await self.analyze_hypothesis(
            describe_path(labels),
            trigger=(event.payload["start"], event.payload["end"]),
        )

    # =========================================================================
    # PROPOSAL HUB
    # =========================================================================

    async def submit_proposal(self, label: str, node_type: str, description: str) -> HubProposal:
        """
        Send a proposed node for review; merge and focus it if approved.

        A failed review counts as a rejection.

        Raises:
            InvalidArgumentError: If label or description is empty
            ValueError: If node_type is not a known node type
        """
        if not label.strip() or not description.strip():
            raise InvalidArgumentError("A proposal needs a label and a description")
        type_value = parse_node_type(node_type).value

        try:
            validation = await self.ai.validate_proposal(
                label, type_value, description, self.domain.value
            )
        except ExternalServiceError as e:
            logger.warning(f"Proposal review failed for {label!r}: {e}")
            validation = ProposalValidation(approved=False, critique=VALIDATION_FAILED_CRITIQUE)

        refined = validation.refined_node
        proposal = HubProposal(
            id=generate_turn_id("Prop"),
            node_label=refined.label if refined else label,
            node_type=type_value,
            description=refined.description if refined else description,
            status="approved" if validation.approved else "rejected",
            ai_critique=validation.critique,
            sources=list(validation.sources),
            provenance_score=validation.provenance_score,
        )
        self.proposals.append(proposal)
        self._publish(EventType.PROPOSAL_REVIEWED, {"id": proposal.id, "status": proposal.status})

        if proposal.approved:
            node, link = self.merger.merge_proposal(proposal)
            self._publish(EventType.GRAPH_MERGED, {
                "origin": "proposal",
                "node_ids": [node.id],
                "link_count": 1 if link else 0,
            })
            self.click_node(node.id)
        return proposal

    # =========================================================================
    # QUANTUM OVERLAY
    # =========================================================================

    def toggle_quantum(self, interval: Optional[float] = None, run_loop: bool = False) -> bool:
        """
        Switch the overlay on or off. With `run_loop` or an explicit
        `interval`, also start the background tick loop; the interval
        defaults to [overlay].tick_interval.

        Returns:
            The new enabled flag
        """
        if self.overlay.enabled:
            self.overlay.disable()
            return False
        if interval is None and not run_loop:
            self.overlay.enable()
        else:
            tick = interval if interval is not None else self.config.overlay.tick_interval
            self.overlay.start(self.store.node_ids, interval=tick)
        return True

    def set_quantum_density(self, density: float) -> None:
        self.overlay.set_density(density)

    def quantum_tick(self) -> OverlayState:
        return self.overlay.tick(self.store.node_ids())

    # =========================================================================
    # VIEW AND LIFECYCLE
    # =========================================================================

    def view(self) -> ViewState:
        return self.machine.view()

    async def wait_idle(self) -> None:
        """Wait until no enrichment, hypothesis or event handler is running."""
        while self._enrich_tasks or self._hypothesis_tasks or self.bus.pending_count:
            pending = list(self._enrich_tasks.values()) + [t for _, t in self._hypothesis_tasks.values()]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            await self.bus.drain()
            # let done-callbacks pop finished tasks
            await asyncio.sleep(0)

    def close(self) -> None:
        """Stop the overlay loop and cancel every in-flight request."""
        self.overlay.disable()
        for task in list(self._enrich_tasks.values()) + [t for _, t in self._hypothesis_tasks.values()]:
            task.cancel()
        self.bus.cancel_pending()
