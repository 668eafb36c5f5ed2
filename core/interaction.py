"""
BIOGRAPH INTERACTION - The Mode State Machine

One tagged union decides what a node click means:

  Browse{focal}                 click selects a node and highlights its
                                neighborhood; may request enrichment
  Pathfinding{start, end, path} first click picks the start, second click
                                searches, third click starts over
  Hypothesis{focal, turn}       the hypothesis panel is open; clicks still
                                select like Browse, and the latest merged
                                turn is highlighted when nothing is selected

Pathfinding and Hypothesis exclude each other and exclude a Browse
selection. Panel visibility that does not touch graph state (the proposal
hub) lives in PanelFlags, outside the union.

Derived view state (highlighted nodes, emphasized link keys) is never
stored. view() rebuilds it from the mode and the store on every call.

Cross-mode coupling: a successful path search publishes PATH_DISCOVERED on
the event bus. The hypothesis subsystem subscribes to it and turns the path
into a hypothesis query. This coupling is intentional; the state machine
itself never calls the hypothesis subsystem.
"""
from typing import FrozenSet, Literal, Optional, Tuple, Union
import logging

import msgspec

from core.errors import InvalidArgumentError
from core.highlight import EMPTY_HIGHLIGHT, HighlightSet, highlight_for, highlight_nodes
from core.merge import HypothesisTurn
from core.ontology import is_synthetic
from core.pathfinding import PathResult, find_path
from infrastructure.event_bus import EventBus, EventType, ExplorerEvent


logger = logging.getLogger("biograph.interaction")


# =============================================================================
# MODES (tagged union)
# =============================================================================

class BrowseMode(msgspec.Struct, kw_only=True, frozen=True, tag="browse"):
    focal_id: Optional[str] = None


class PathfindingMode(msgspec.Struct, kw_only=True, frozen=True, tag="pathfinding"):
    start: Optional[str] = None
    end: Optional[str] = None
    path: Optional[PathResult] = None   # search result for (start, end)


class HypothesisMode(msgspec.Struct, kw_only=True, frozen=True, tag="hypothesis"):
    focal_id: Optional[str] = None
    turn: Optional[HypothesisTurn] = None


Mode = Union[BrowseMode, PathfindingMode, HypothesisMode]

_MODE_NAMES = {
    BrowseMode: "browse",
    PathfindingMode: "pathfinding",
    HypothesisMode: "hypothesis",
}


class PanelFlags(msgspec.Struct, kw_only=True):
    """Panel visibility flags. Independent of graph and mode state."""
    hub_open: bool = False


# =============================================================================
# OUTCOMES AND VIEW STATE
# =============================================================================

ClickKind = Literal["selected", "path_start", "path_found", "path_not_found"]
PathStatus = Literal["idle", "selecting", "found", "not_found"]


class ClickOutcome(msgspec.Struct, kw_only=True, frozen=True):
    """
    What a click did.

    `needs_enrichment` is True when the click selected a node whose type is
    eligible for enrichment; the caller still checks its cache.
    """
    kind: ClickKind
    node_id: str
    needs_enrichment: bool = False
    path: Optional[PathResult] = None


class ViewState(msgspec.Struct, kw_only=True, frozen=True):
    """Everything the renderer needs to dim, emphasize and trace."""
    mode: str
    highlight: HighlightSet = EMPTY_HIGHLIGHT
    path_link_keys: FrozenSet[str] = frozenset()
    path_status: PathStatus = "idle"
    focal_id: Optional[str] = None

    @property
    def highlighted_nodes(self) -> FrozenSet[str]:
        return self.highlight.nodes

    @property
    def is_active(self) -> bool:
        return self.highlight.is_active


# =============================================================================
# STATE MACHINE
# =============================================================================

class InteractionStateMachine:
    """
    Owns the current mode and applies transitions.

    Usage:
        machine = InteractionStateMachine(store, bus)
        machine.enter_pathfinding()
        machine.click_node("A")
        outcome = machine.click_node("D")   # path_found, PATH_DISCOVERED published
        machine.view().highlighted_nodes    # {"A", "B", "C", "D"}
    """

    def __init__(self, store, bus: Optional[EventBus] = None):
        self.store = store
        self.bus = bus or EventBus()
        self._mode: Mode = BrowseMode()
        self.panels = PanelFlags()

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def mode_name(self) -> str:
        return _MODE_NAMES[type(self._mode)]

    def _publish(self, event_type: EventType, payload: dict) -> None:
        self.bus.publish(ExplorerEvent.now(event_type, payload, source="interaction"))

    def _set_mode(self, mode: Mode) -> None:
        old = self.mode_name
        self._mode = mode
        new = self.mode_name
        if old != new:
            logger.debug(f"Mode {old} -> {new}")
            self._publish(EventType.MODE_CHANGED, {"from": old, "to": new})

    # =========================================================================
    # MODE TRANSITIONS
    # =========================================================================

    def enter_pathfinding(self) -> None:
        """Any state -> Pathfinding{none, none}. Clears selection and path."""
        self._set_mode(PathfindingMode())

    def exit_pathfinding(self) -> None:
        """Pathfinding -> Browse, with nothing selected."""
        if isinstance(self._mode, PathfindingMode):
            self._set_mode(BrowseMode())

    def toggle_pathfinding(self) -> None:
        if isinstance(self._mode, PathfindingMode):
            self.exit_pathfinding()
        else:
            self.enter_pathfinding()

    def enter_hypothesis(self) -> None:
        """Open the hypothesis panel. Closes the hub and any path search."""
        self.panels.hub_open = False
        if not isinstance(self._mode, HypothesisMode):
            self._set_mode(HypothesisMode())

    def exit_hypothesis(self) -> None:
        if isinstance(self._mode, HypothesisMode):
            self._set_mode(BrowseMode())

    def toggle_hypothesis(self) -> None:
        if isinstance(self._mode, HypothesisMode):
            self.exit_hypothesis()
        else:
            self.enter_hypothesis()

    def toggle_hub(self) -> None:
        """Open/close the proposal hub. Opening it closes the hypothesis panel."""
        self.panels.hub_open = not self.panels.hub_open
        if self.panels.hub_open:
            self.exit_hypothesis()

    def reset_for_domain_change(self) -> None:
        """Force Browse with nothing selected, whatever the current state."""
        self._set_mode(BrowseMode())

    def clear_selection(self) -> None:
        """Close the node sidebar: no focal node, no highlight."""
        if isinstance(self._mode, BrowseMode):
            self._mode = BrowseMode()
        elif isinstance(self._mode, HypothesisMode):
            self._mode = HypothesisMode()
        else:
            return
        self._publish(EventType.SELECTION_CLEARED, {})

    def focus_hypothesis_turn(self, turn: HypothesisTurn) -> bool:
        """
        Show a freshly merged turn in the hypothesis panel.

        Returns:
            False if the panel is not open (the turn is not shown)
        """
        if not isinstance(self._mode, HypothesisMode):
            return False
        self._mode = HypothesisMode(turn=turn)
        return True

    def clear_hypothesis_focus(self) -> None:
        if isinstance(self._mode, HypothesisMode):
            self._mode = HypothesisMode()

    def expects_hypothesis(self, trigger: Optional[Tuple[str, str]] = None) -> bool:
        """
        True if a hypothesis response may still be applied.

        Args:
            trigger: (start, end) of the path that requested it, or None for
                a query typed into the panel
        """
        if isinstance(self._mode, HypothesisMode):
            return True
        if trigger is not None and isinstance(self._mode, PathfindingMode):
            return (self._mode.start, self._mode.end) == trigger
        return False

    # =========================================================================
    # CLICKS
    # =========================================================================

    def click_node(self, node_id: str) -> ClickOutcome:
        """
        Apply a node click in the current mode.

        Raises:
            InvalidArgumentError: If no dataset is loaded
            NodeNotFoundError: If node_id is not in the dataset
        """
        if self.store.is_empty:
            raise InvalidArgumentError("No dataset loaded")
        node = self.store.get_node(node_id)

        mode = self._mode
        if isinstance(mode, PathfindingMode):
            return self._click_pathfinding(mode, node_id)

        if isinstance(mode, HypothesisMode):
            self._mode = HypothesisMode(focal_id=node_id, turn=mode.turn)
        else:
            self._mode = BrowseMode(focal_id=node_id)

        self._publish(EventType.NODE_SELECTED, {"node_id": node_id, "node_type": node.type})
        return ClickOutcome(
            kind="selected",
            node_id=node_id,
            needs_enrichment=not is_synthetic(node.type),
        )

    def _click_pathfinding(self, mode: PathfindingMode, node_id: str) -> ClickOutcome:
        if mode.start is None or mode.end is not None or node_id == mode.start:
            self._mode = PathfindingMode(start=node_id)
            return ClickOutcome(kind="path_start", node_id=node_id)

        start = mode.start
        path = find_path(start, node_id, self.store.adjacency())
        self._mode = PathfindingMode(start=start, end=node_id, path=path)

        if path is None:
            logger.info(f"No path between {start} and {node_id}")
            self._publish(EventType.PATH_NOT_FOUND, {"start": start, "end": node_id})
            return ClickOutcome(kind="path_not_found", node_id=node_id)

        logger.info(f"Path {start} -> {node_id}: {path.hops} hops")
        self._publish(EventType.PATH_DISCOVERED, {
            "start": start,
            "end": node_id,
            "node_sequence": list(path.node_sequence),
        })
        return ClickOutcome(kind="path_found", node_id=node_id, path=path)

    # =========================================================================
    # DERIVED VIEW
    # =========================================================================

    def view(self) -> ViewState:
        """Recompute the derived view state from mode and store."""
        mode = self._mode
        name = self.mode_name

        if isinstance(mode, BrowseMode):
            return ViewState(
                mode=name,
                highlight=highlight_for(self.store, mode.focal_id),
                focal_id=mode.focal_id,
            )

        if isinstance(mode, HypothesisMode):
            if mode.focal_id is not None:
                highlight = highlight_for(self.store, mode.focal_id)
            elif mode.turn is not None:
                highlight = highlight_nodes(mode.turn.focus_ids)
            else:
                highlight = EMPTY_HIGHLIGHT
            return ViewState(mode=name, highlight=highlight, focal_id=mode.focal_id)

        if mode.start is None:
            return ViewState(mode=name)
        if mode.end is None:
            return ViewState(
                mode=name,
                highlight=highlight_nodes([mode.start]),
                path_status="selecting",
            )
        if mode.path is None:
            return ViewState(
                mode=name,
                highlight=highlight_nodes([mode.start, mode.end]),
                path_status="not_found",
            )
        return ViewState(
            mode=name,
            highlight=highlight_nodes(mode.path.node_sequence),
            path_link_keys=mode.path.link_keys,
            path_status="found",
        )
