"""
BIOGRAPH QUANTUM OVERLAY - Speculative Link Simulator

While quantum mode is on, the view shows a drifting set of transient links
between random node pairs. They suggest "what might be connected" and are
purely visual: they never enter the graph store.

Each tick:
1. DECAY: every overlay link loses a fixed amount of opacity; links at or
   below zero are dropped.
2. SAMPLE: with probability density/600 (0 at density 0, 1/6 at density
   100), and only when the dataset has more than five nodes, two distinct
   random nodes get a fresh link at full opacity.

step_overlay() is the whole algorithm as a pure reducer. QuantumOverlay
wraps it with the mutable bits a host needs (on/off, density, an asyncio
tick loop that is cancelled the moment the mode is switched off).
"""
import asyncio
import logging
import random
from typing import Callable, Optional, Sequence, Tuple

import msgspec


logger = logging.getLogger("biograph.overlay")

DECAY_STEP = 0.01
MIN_NODES = 5
DENSITY_DIVISOR = 600.0

_default_rng = random.Random()


class OverlayLink(msgspec.Struct, kw_only=True, frozen=True):
    """A transient link and its current opacity in (0, 1]."""
    source_id: str
    target_id: str
    opacity: float = 1.0


class OverlayState(msgspec.Struct, kw_only=True, frozen=True):
    links: Tuple[OverlayLink, ...] = ()
    tick: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.links


EMPTY_OVERLAY = OverlayState()


def clamp_density(density: float) -> float:
    return max(0.0, min(100.0, float(density)))


def sample_probability(density: float) -> float:
    """Per-tick chance of spawning a link for a density in [0, 100]."""
    return clamp_density(density) / DENSITY_DIVISOR


def step_overlay(
    prev: OverlayState,
    node_ids: Sequence[str],
    density: float,
    enabled: bool = True,
    rng: Optional[random.Random] = None,
    decay_step: float = DECAY_STEP,
    min_nodes: int = MIN_NODES,
) -> OverlayState:
    """
    Advance the overlay by one tick.

    Args:
        prev: Overlay state after the previous tick
        node_ids: Ids of the current dataset's nodes
        density: User density setting, clamped to [0, 100]
        enabled: Quantum mode flag; when off the result is always empty
        rng: Random source (module random if omitted)

    Returns:
        The next overlay state
    """
    if not enabled:
        return EMPTY_OVERLAY

    rng = rng or _default_rng

    links = []
    for link in prev.links:
        opacity = link.opacity - decay_step
        if opacity > 0:
            links.append(OverlayLink(
                source_id=link.source_id,
                target_id=link.target_id,
                opacity=opacity,
            ))

    probability = sample_probability(density)
    if probability > 0 and len(node_ids) > min_nodes and rng.random() < probability:
        source_id, target_id = rng.sample(list(node_ids), 2)
        links.append(OverlayLink(source_id=source_id, target_id=target_id, opacity=1.0))

    return OverlayState(links=tuple(links), tick=prev.tick + 1)


class QuantumOverlay:
    """
    Stateful wrapper around step_overlay for a host render loop.

    Usage:
        overlay = QuantumOverlay(density=40)
        overlay.enable()
        overlay.start(lambda: store.node_ids(), interval=0.05)
        ...
        overlay.disable()   # clears links and cancels the loop
    """

    def __init__(
        self,
        density: float = 30.0,
        rng: Optional[random.Random] = None,
        decay_step: float = DECAY_STEP,
        min_nodes: int = MIN_NODES,
    ):
        self._density = clamp_density(density)
        self._rng = rng or random.Random()
        self._decay_step = decay_step
        self._min_nodes = min_nodes
        self._enabled = False
        self._state = EMPTY_OVERLAY
        self._task: Optional[asyncio.Task] = None

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def density(self) -> float:
        return self._density

    @property
    def state(self) -> OverlayState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_density(self, density: float) -> None:
        self._density = clamp_density(density)

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        """Switch off: drop every overlay link and stop the tick loop now."""
        self._enabled = False
        self._state = EMPTY_OVERLAY
        self.stop()

    def reset(self) -> None:
        """Drop overlay links but keep the mode and loop as they are."""
        self._state = EMPTY_OVERLAY

    def tick(self, node_ids: Sequence[str]) -> OverlayState:
        """Advance one tick against the given node ids."""
        self._state = step_overlay(
            self._state,
            node_ids,
            self._density,
            enabled=self._enabled,
            rng=self._rng,
            decay_step=self._decay_step,
            min_nodes=self._min_nodes,
        )
        return self._state

    # =========================================================================
    # ASYNC TICK LOOP
    # =========================================================================

    async def run(self, node_ids: Callable[[], Sequence[str]], interval: float = 0.05) -> None:
        """Tick every `interval` seconds until disabled or cancelled."""
        logger.debug(f"Overlay loop started (interval={interval}s)")
        try:
            while self._enabled:
                self.tick(node_ids())
                await asyncio.sleep(interval)
        finally:
            logger.debug("Overlay loop stopped")

    def start(self, node_ids: Callable[[], Sequence[str]], interval: float = 0.05) -> asyncio.Task:
        """
        Schedule run() on the running loop. Enables the overlay.

        Raises:
            RuntimeError: If no event loop is running
        """
        self.enable()
        if self.is_running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run(node_ids, interval))
        return self._task

    def stop(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
