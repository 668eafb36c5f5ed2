"""
BIOGRAPH EVENT BUS - How the Explorer's Parts Hear About Each Other

The interaction state machine announces what happened (a node was picked,
a path was found, the mode flipped) and never calls the hypothesis or
enrichment code itself. Whoever cares subscribes here.

- Sync handlers run inline inside publish()
- Async handlers become tasks on the running loop and are tracked, so a
  session can await them (drain) or abandon them (cancel_pending)
- A handler that raises is logged; the publisher never sees the error

Usage:
    from infrastructure.event_bus import EventBus, ExplorerEvent, EventType

    bus = EventBus()

    async def on_path(event: ExplorerEvent):
        await explain(event.payload["node_sequence"])

    bus.subscribe_async(EventType.PATH_DISCOVERED, on_path)
    bus.publish(ExplorerEvent.now(
        EventType.PATH_DISCOVERED,
        {"node_sequence": ["A", "B", "C"]},
        source="interaction",
    ))
"""
from typing import Callable, List, Dict, Any, Optional, Set, Tuple
from enum import Enum
import msgspec
import asyncio
import time
from collections import defaultdict
import logging


logger = logging.getLogger("biograph.event_bus")


class EventType(str, Enum):
    """What an ExplorerEvent announces."""
    DOMAIN_CHANGED = "domain_changed"
    MODE_CHANGED = "mode_changed"
    NODE_SELECTED = "node_selected"
    SELECTION_CLEARED = "selection_cleared"
    PATH_DISCOVERED = "path_discovered"
    PATH_NOT_FOUND = "path_not_found"
    GRAPH_MERGED = "graph_merged"
    HYPOTHESIS_APPLIED = "hypothesis_applied"
    HYPOTHESIS_FAILED = "hypothesis_failed"
    ENRICHMENT_CACHED = "enrichment_cached"
    ENRICHMENT_FAILED = "enrichment_failed"
    PROPOSAL_REVIEWED = "proposal_reviewed"


class ExplorerEvent(msgspec.Struct, kw_only=True):
    """
    One announcement on the bus.

    `payload` is event specific (a node id, a path's node sequence, the new
    domain). `source` names the publishing component.
    """
    type: EventType
    payload: Dict[str, Any]
    timestamp: float
    source: str

    @classmethod
    def now(cls, type: EventType, payload: Dict[str, Any], source: str) -> "ExplorerEvent":
        return cls(type=type, payload=payload, timestamp=time.time(), source=source)


# (handler, is_async)
Subscription = Tuple[Callable[[ExplorerEvent], Any], bool]


class EventBus:
    """
    Per-event-type handler lists with tracked async delivery.

    Single event loop only; publish() is not thread-safe.
    """

    def __init__(self):
        self._handlers: Dict[EventType, List[Subscription]] = defaultdict(list)
        self._pending: Set[asyncio.Task] = set()

    # =========================================================================
    # SUBSCRIPTION
    # =========================================================================

    def _add(self, event_type: EventType, handler: Callable, is_async: bool) -> None:
        entry = (handler, is_async)
        if entry in self._handlers[event_type]:
            return
        self._handlers[event_type].append(entry)
        kind = "async" if is_async else "sync"
        logger.debug(f"{kind} handler {getattr(handler, '__name__', handler)} -> {event_type.value}")

    def subscribe(self, event_type: EventType, handler: Callable[[ExplorerEvent], None]) -> None:
        self._add(event_type, handler, is_async=False)

    def subscribe_async(self, event_type: EventType, handler: Callable[[ExplorerEvent], Any]) -> None:
        """Register a coroutine function; each publish schedules it as a task."""
        self._add(event_type, handler, is_async=True)

    def unsubscribe(self, event_type: EventType, handler: Callable) -> None:
        """Remove `handler` (sync or async registration) for `event_type`."""
        self._handlers[event_type] = [
            entry for entry in self._handlers[event_type] if entry[0] != handler
        ]

    def subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        if event_type is not None:
            return len(self._handlers[event_type])
        return sum(len(entries) for entries in self._handlers.values())

    # =========================================================================
    # DELIVERY
    # =========================================================================

    def publish(self, event: ExplorerEvent) -> None:
        """
        Deliver `event` to every handler registered for its type.

        Sync handlers have run by the time this returns. Async handlers are
        only scheduled; with no running loop they are skipped with a warning.
        """
        logger.debug(f"{event.source} published {event.type.value}")

        for handler, is_async in list(self._handlers[event.type]):
            if is_async:
                self._schedule(handler, event)
                continue
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Handler for {event.type.value} raised: {e}", exc_info=True)

    def _schedule(self, handler: Callable, event: ExplorerEvent) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running loop; dropped async delivery of {event.type.value}")
            return
        task = loop.create_task(self._deliver(handler, event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, handler: Callable, event: ExplorerEvent) -> None:
        try:
            await handler(event)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Async handler for {event.type.value} raised: {e}", exc_info=True)

    async def drain(self) -> None:
        """Wait for every scheduled async delivery, including ones scheduled meanwhile."""
        while self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)

    def cancel_pending(self) -> int:
        """Cancel unfinished async deliveries and return how many there were."""
        unfinished = [task for task in self._pending if not task.done()]
        for task in unfinished:
            task.cancel()
        return len(unfinished)

    @property
    def pending_count(self) -> int:
        return sum(1 for task in self._pending if not task.done())


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def reset_event_bus() -> None:
    """Forget the process-wide bus; the next get_event_bus() builds a new one."""
    global _event_bus
    _event_bus = None
