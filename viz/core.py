"""
BIOGRAPH VISUALIZATION CORE - The Renderer's Data Model

Bridges explorer state (graph store, view state, quantum overlay) and a 3D
force-graph renderer.

Architecture:
- NODE_COLORS: one base color per NodeType
- StyleContext: the per-frame styling callbacks (node color/size, link
  color/width/particles) as pure functions of the view
- VizNode/VizLink: render-ready records with styling already applied
- RenderFrame: canonical links + overlay links, flagged by origin
- serialize_frame_to_arrow: polars Arrow IPC for the browser

Styling precedence for links: overlay link > quantum mode > highlight
(path, then focal/highlight set) > default.
"""
import io
import math
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

import msgspec
import polars as pl

from core.highlight import HighlightSet
from core.interaction import ViewState
from core.ontology import DAG_MODES, DEFAULT_NODE_WEIGHT, LayoutMode, NodeType
from core.overlay import OverlayLink, OverlayState
from core.pathfinding import path_link_matches
from core.schemas import LinkData, NodeData


# =============================================================================
# COLOR PALETTES
# =============================================================================

NODE_COLORS: Dict[str, str] = {
    # Viral biology
    NodeType.VIRUS_PROTEIN.value: "#ef4444",
    NodeType.VIRAL_CAPSID.value: "#f472b6",
    NodeType.VIRAL_ENVELOPE.value: "#db2777",
    NodeType.VIRAL_MATRIX.value: "#9d174d",
    NodeType.VIRAL_NSP.value: "#a855f7",
    NodeType.VIRAL_SECRETED.value: "#c084fc",
    # Functional roles
    NodeType.FUNC_ENTRY.value: "#fca5a5",
    NodeType.FUNC_REPLICATION.value: "#fbbf24",
    NodeType.FUNC_PROTEASE.value: "#ef4444",
    NodeType.FUNC_IMMUNE_MOD.value: "#f97316",
    # Host and therapeutics
    NodeType.HUMAN_PROTEIN.value: "#3b82f6",
    NodeType.DRUG.value: "#10b981",
    NodeType.PHENOTYPE.value: "#f59e0b",
    NodeType.PATHWAY.value: "#8b5cf6",
    NodeType.VARIANT.value: "#ec4899",
    NodeType.VACCINE.value: "#06b6d4",
    NodeType.SURVEILLANCE.value: "#f97316",
    NodeType.DATASET.value: "#64748b",
    NodeType.LITERATURE.value: "#e2e8f0",
    NodeType.GO_TERM.value: "#84cc16",
    # Clinical / oncology
    NodeType.CLINICAL_TRIAL.value: "#0ea5e9",
    NodeType.PATIENT_COHORT.value: "#6366f1",
    NodeType.TUMOR_MARKER.value: "#f43f5e",
    # AMR and synthetic biology
    NodeType.GENE.value: "#d946ef",
    NodeType.BACTERIA.value: "#a3e635",
    NodeType.TOOL.value: "#22d3ee",
    # Climate and socioeconomic
    NodeType.POLLUTANT.value: "#71717a",
    NodeType.LOCATION.value: "#facc15",
    NodeType.EVENT.value: "#f43f5e",
    NodeType.SOCIO_ECONOMIC.value: "#8b5cf6",
    NodeType.COMORBIDITY.value: "#be123c",
    NodeType.COINFECTION.value: "#b91c1c",
    NodeType.ENVIRONMENTAL.value: "#15803d",
    # Policy
    NodeType.POLICY.value: "#6366f1",
    NodeType.ETHICS.value: "#fbbf24",
    NodeType.ACTOR.value: "#14b8a6",
    # Synthesized
    NodeType.QUERY.value: "#ffffff",
    NodeType.HYPOTHESIS.value: "#d946ef",
    "default": "#ffffff",
}

DIMMED_NODE_COLOR = "rgba(255, 255, 255, 0.1)"
PATH_LINK_COLOR = "#f97316"
FOCUS_LINK_COLOR = "#ffffff"
DIMMED_LINK_COLOR = "rgba(255, 255, 255, 0.02)"
DEFAULT_LINK_COLOR = "rgba(255,255,255,0.2)"
ENTANGLED_CYAN = "rgba(6,182,212,0.4)"
ENTANGLED_MAGENTA = "rgba(217,70,239,0.4)"

# Renderer time advanced per overlay tick
ANIMATION_STEP = 0.05

AnyLink = Union[LinkData, OverlayLink]


# =============================================================================
# STYLING
# =============================================================================

class StyleContext:
    """
    Styling callbacks for one frame.

    Usage:
        ctx = StyleContext.from_view(session.view(), overlay.state, quantum=True)
        ctx.node_color(node)
        ctx.link_width(link)
    """

    def __init__(
        self,
        highlight: HighlightSet,
        focal_id: Optional[str] = None,
        path_link_keys: FrozenSet[str] = frozenset(),
        quantum: bool = False,
        tick: float = 0.0,
    ):
        self.highlight = highlight
        self.focal_id = focal_id
        self.path_link_keys = path_link_keys
        self.quantum = quantum
        self.tick = tick

    @classmethod
    def from_view(
        cls,
        view: ViewState,
        overlay: Optional[OverlayState] = None,
        quantum: bool = False,
    ) -> "StyleContext":
        tick = overlay.tick * ANIMATION_STEP if (quantum and overlay is not None) else 0.0
        return cls(
            highlight=view.highlight,
            focal_id=view.focal_id,
            path_link_keys=view.path_link_keys,
            quantum=quantum,
            tick=tick,
        )

    @property
    def is_highlighting(self) -> bool:
        return self.highlight.is_active or self.focal_id is not None

    def _touches_focal(self, link: AnyLink) -> bool:
        return self.focal_id is not None and (
            link.source_id == self.focal_id or link.target_id == self.focal_id
        )

    def on_path(self, link: AnyLink) -> bool:
        return isinstance(link, LinkData) and path_link_matches(link, self.path_link_keys)

    # -- nodes ---------------------------------------------------------------

    def node_color(self, node: NodeData) -> str:
        base = NODE_COLORS.get(node.type, NODE_COLORS["default"])
        if self.quantum or not self.is_highlighting:
            return base
        if node.id == self.focal_id or self.highlight.contains(node.id):
            return base
        return DIMMED_NODE_COLOR

    def node_size(self, node: NodeData) -> float:
        size = (node.weight or DEFAULT_NODE_WEIGHT) * 1.5
        if self.quantum:
            phase = ord(node.id[0]) if node.id else 0
            size = max(1.0, size + math.sin(self.tick * 2 + phase) * 3)
        if node.id == self.focal_id:
            return size * 1.5
        return size

    # -- links ---------------------------------------------------------------

    def link_color(self, link: AnyLink) -> str:
        if isinstance(link, OverlayLink):
            return f"rgba(6,182,212,{link.opacity * 0.8})"
        if self.quantum:
            phase = math.sin(self.tick + len(link.source_id))
            return ENTANGLED_CYAN if phase > 0 else ENTANGLED_MAGENTA
        if not self.is_highlighting:
            return DEFAULT_LINK_COLOR
        if self.on_path(link):
            return PATH_LINK_COLOR
        if self._touches_focal(link) or (
            self.highlight.contains(link.source_id) and self.highlight.contains(link.target_id)
        ):
            return FOCUS_LINK_COLOR
        return DIMMED_LINK_COLOR

    def link_width(self, link: AnyLink) -> float:
        if isinstance(link, OverlayLink):
            return 0.0
        if self.quantum:
            return abs(math.sin(self.tick + len(link.target_id))) * 2 + 0.5
        if not self.is_highlighting:
            return 1.0
        if self.on_path(link):
            return 3.0
        if self._touches_focal(link):
            return 2.5
        if self.highlight.contains(link.source_id) and self.highlight.contains(link.target_id):
            return 1.5
        return 0.0

    def link_particles(self, link: AnyLink) -> int:
        if isinstance(link, OverlayLink):
            return 6
        if self.quantum:
            return 2
        if self.is_highlighting:
            if self.on_path(link):
                return 6
            if self._touches_focal(link):
                return 4
        return 0

    def link_particle_width(self, link: AnyLink) -> float:
        if isinstance(link, OverlayLink):
            pulse = math.sin(self.tick * 8) * 1.5
            return max(0.0, link.opacity * 3 + pulse)
        return 2.0 if self.quantum else 4.0

    @property
    def particle_speed(self) -> float:
        return 0.01 if self.quantum else 0.005


# =============================================================================
# RENDER RECORDS
# =============================================================================

class VizNode(msgspec.Struct, kw_only=True):
    """Render-ready node."""
    id: str
    label: str
    type: str
    color: str
    size: float
    description: str = ""
    is_focal: bool = False


class VizLink(msgspec.Struct, kw_only=True):
    """Render-ready link. Overlay links carry no label."""
    source: str
    target: str
    label: str
    color: str
    width: float
    particles: int = 0
    particle_width: float = 0.0
    is_overlay: bool = False
    on_path: bool = False


class RenderFrame(msgspec.Struct, kw_only=True):
    """Everything a renderer needs to draw one frame."""
    nodes: List[VizNode]
    links: List[VizLink]
    quantum_active: bool = False
    layout: str = "3d-force"
    dag_mode: Optional[str] = None
    particle_speed: float = 0.005

    @property
    def overlay_links(self) -> List[VizLink]:
        return [l for l in self.links if l.is_overlay]


def _viz_link(link: AnyLink, ctx: StyleContext) -> VizLink:
    return VizLink(
        source=link.source_id,
        target=link.target_id,
        label=getattr(link, "label", ""),
        color=ctx.link_color(link),
        width=ctx.link_width(link),
        particles=ctx.link_particles(link),
        particle_width=ctx.link_particle_width(link),
        is_overlay=isinstance(link, OverlayLink),
        on_path=ctx.on_path(link),
    )


def build_frame(
    store,
    view: ViewState,
    overlay: Optional[OverlayState] = None,
    quantum: bool = False,
    layout: LayoutMode = "3d-force",
) -> RenderFrame:
    """
    Style every node and link for the current view.

    Unresolved links are left out: the renderer cannot place an endpoint
    that does not exist. Overlay links are appended only in quantum mode.
    """
    ctx = StyleContext.from_view(view, overlay, quantum)

    nodes = [
        VizNode(
            id=n.id,
            label=n.label,
            type=n.type,
            color=ctx.node_color(n),
            size=ctx.node_size(n),
            description=n.description,
            is_focal=n.id == view.focal_id,
        )
        for n in store.nodes
    ]

    links = [
        _viz_link(l, ctx) for l in store.links
        if store.has_node(l.source_id) and store.has_node(l.target_id)
    ]
    if quantum and overlay is not None:
        links.extend(_viz_link(l, ctx) for l in overlay.links)

    return RenderFrame(
        nodes=nodes,
        links=links,
        quantum_active=quantum,
        layout=layout,
        dag_mode=DAG_MODES.get(layout),
        particle_speed=ctx.particle_speed,
    )


# =============================================================================
# ARROW IPC SERIALIZATION
# =============================================================================

def serialize_frame_to_arrow(frame: RenderFrame) -> Tuple[bytes, bytes]:
    """
    Serialize a RenderFrame to Apache Arrow IPC.

    Returns:
        Tuple of (nodes_arrow_bytes, links_arrow_bytes)
    """
    nodes_df = pl.DataFrame({
        "id": [n.id for n in frame.nodes],
        "label": [n.label for n in frame.nodes],
        "type": [n.type for n in frame.nodes],
        "color": [n.color for n in frame.nodes],
        "size": [n.size for n in frame.nodes],
        "is_focal": [n.is_focal for n in frame.nodes],
    }, schema={
        "id": pl.Utf8,
        "label": pl.Utf8,
        "type": pl.Utf8,
        "color": pl.Utf8,
        "size": pl.Float64,
        "is_focal": pl.Boolean,
    })

    links_df = pl.DataFrame({
        "source": [l.source for l in frame.links],
        "target": [l.target for l in frame.links],
        "label": [l.label for l in frame.links],
        "color": [l.color for l in frame.links],
        "width": [l.width for l in frame.links],
        "particles": [l.particles for l in frame.links],
        "particle_width": [l.particle_width for l in frame.links],
        "is_overlay": [l.is_overlay for l in frame.links],
    }, schema={
        "source": pl.Utf8,
        "target": pl.Utf8,
        "label": pl.Utf8,
        "color": pl.Utf8,
        "width": pl.Float64,
        "particles": pl.Int64,
        "particle_width": pl.Float64,
        "is_overlay": pl.Boolean,
    })

    nodes_buffer = io.BytesIO()
    links_buffer = io.BytesIO()

    nodes_df.write_ipc(nodes_buffer)
    links_df.write_ipc(links_buffer)

    return nodes_buffer.getvalue(), links_buffer.getvalue()
