"""
BIOGRAPH MERGE CONTROLLER - Growing the Graph

Folds reasoning-service output into the canonical graph:

- A hypothesis turn adds exactly two nodes (the user's Query and the AI's
  Hypothesis), one GENERATES link Query -> Hypothesis, and one RELATES_TO
  link from the Hypothesis to every node the service reported as relevant.
- An approved proposal adds one node of the proposer's type plus a
  PROPOSED_CONNECTION link to an anchor node (the first node of the
  dataset). That link only makes the new node reachable on screen; it is a
  placeholder, not a reviewed relation.

Generated ids carry a timestamp and a process-wide counter, so repeated
turns in one session never collide.

Relevant ids that match no node are NOT rejected. The link is created
anyway and the store keeps it as unresolved. Filtering those ids is a
product decision this module does not make; it logs them instead.
"""
from typing import List, Optional, Tuple
import logging

import msgspec

from core.ontology import (
    HYPOTHESIS_NODE_WEIGHT,
    PROPOSAL_NODE_WEIGHT,
    QUERY_NODE_WEIGHT,
    LinkLabel,
    NodeType,
)
from core.schemas import (
    HubProposal,
    HypothesisResult,
    LinkData,
    NodeData,
    generate_turn_id,
)


logger = logging.getLogger("biograph.merge")


class HypothesisTurn(msgspec.Struct, kw_only=True, frozen=True):
    """Ids introduced by one merged hypothesis turn."""
    turn_id: str
    query_node_id: str
    hypothesis_node_id: str
    relevant_node_ids: Tuple[str, ...] = ()

    @property
    def focus_ids(self) -> Tuple[str, ...]:
        """Query, Hypothesis, then every relevant id."""
        return (self.query_node_id, self.hypothesis_node_id) + self.relevant_node_ids


class HypothesisMerge(msgspec.Struct, kw_only=True, frozen=True):
    nodes: List[NodeData]
    links: List[LinkData]
    turn: HypothesisTurn


class MergeController:
    """
    Builds and applies graph augmentations.

    build_* methods are pure (they only synthesize records); merge_* methods
    also write the records into the store.
    """

    def __init__(self, store):
        self.store = store

    # =========================================================================
    # HYPOTHESIS TURNS
    # =========================================================================

    def build_hypothesis(
        self,
        query_text: str,
        result: HypothesisResult,
        turn_id: Optional[str] = None,
    ) -> HypothesisMerge:
        """Synthesize the nodes and links of one hypothesis turn."""
        turn_id = turn_id or generate_turn_id("Turn")
        query_id = generate_turn_id("Query")
        hyp_id = generate_turn_id("Hyp")

        query_node = NodeData.create(
            id=query_id,
            label="Evidence",
            type=NodeType.QUERY,
            description=query_text,
            weight=QUERY_NODE_WEIGHT,
            metadata={"turn_id": turn_id},
        )
        hyp_node = NodeData.create(
            id=hyp_id,
            label="Hypothesis",
            type=NodeType.HYPOTHESIS,
            description=result.hypothesis,
            weight=HYPOTHESIS_NODE_WEIGHT,
            metadata={"turn_id": turn_id},
        )

        links = [LinkData.create(query_id, hyp_id, LinkLabel.GENERATES)]
        links.extend(
            LinkData.create(hyp_id, rel_id, LinkLabel.RELATES_TO)
            for rel_id in result.relevant_node_ids
        )

        turn = HypothesisTurn(
            turn_id=turn_id,
            query_node_id=query_id,
            hypothesis_node_id=hyp_id,
            relevant_node_ids=tuple(result.relevant_node_ids),
        )
        return HypothesisMerge(nodes=[query_node, hyp_node], links=links, turn=turn)

    def merge_hypothesis(
        self,
        query_text: str,
        result: HypothesisResult,
        turn_id: Optional[str] = None,
    ) -> HypothesisMerge:
        """
        Build a hypothesis turn and write it into the store.

        Returns:
            The merged records and the turn's ids
        """
        merged = self.build_hypothesis(query_text, result, turn_id=turn_id)

        unresolved = [
            rel_id for rel_id in result.relevant_node_ids
            if not self.store.has_node(rel_id)
        ]
        if unresolved:
            logger.warning(
                f"Hypothesis {merged.turn.hypothesis_node_id} references "
                f"unknown nodes: {unresolved}"
            )

        self.store.merge(merged.nodes, merged.links, allow_unresolved=True, origin="hypothesis")
        logger.info(
            f"Merged hypothesis turn {merged.turn.turn_id}: "
            f"{len(merged.links) - 1} relevant links"
        )
        return merged

    # =========================================================================
    # PROPOSALS
    # =========================================================================

    def build_proposal(self, proposal: HubProposal) -> Tuple[NodeData, Optional[LinkData]]:
        """
        Synthesize the node (and anchor link) for an approved proposal.

        The anchor is the first node of the dataset. With an empty dataset
        there is nothing to anchor to and the link is None.
        """
        node = NodeData.create(
            id=proposal.id,
            label=proposal.node_label,
            type=proposal.node_type,
            description=proposal.description,
            weight=PROPOSAL_NODE_WEIGHT,
            metadata={"provenance_score": proposal.provenance_score},
        )

        anchor_ids = self.store.node_ids()
        if not anchor_ids:
            return node, None
        return node, LinkData.create(node.id, anchor_ids[0], LinkLabel.PROPOSED_CONNECTION)

    def merge_proposal(self, proposal: HubProposal) -> Tuple[NodeData, Optional[LinkData]]:
        """
        Write an approved proposal into the store.

        Raises:
            ValueError: If the proposal was not approved
            DuplicateIdError: If the proposal id is already a node id
        """
        if not proposal.approved:
            raise ValueError(f"Proposal {proposal.id} was not approved")

        node, link = self.build_proposal(proposal)
        self.store.merge([node], [link] if link else [], origin="proposal")
        logger.info(
            f"Merged proposal {node.id} ({node.type})"
            + (f" anchored at {link.target_id}" if link else " without anchor")
        )
        return node, link
