"""
BIOGRAPH MUTATION LOGGER - The Graph's Flight Recorder

Records every change to the canonical graph (dataset loads, merges of
hypothesis turns and approved proposals, domain switches) so a session can
be replayed or inspected after the fact.

Pieces:
- MutationLogger records events and fans them out
- EventBuffer keeps the recent history in memory
- FileLogger optionally appends NDJSON, one file per UTC day

Usage:
    mutations = MutationLogger()
    mutations.log_dataset_loaded("SARS-CoV-2", node_count=27, link_count=24)
    mutations.log_merge("hypothesis", node_ids=["Query-1", "Hyp-1"], link_count=3)
    history = mutations.get_events_for_node("Hyp-1")

Diagnostic text logging goes through the stdlib `logging` module under the
"biograph.*" logger names; this module records structured mutations only.
"""
import msgspec
from typing import Optional, List, Callable
from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from collections import deque
import itertools
import threading
import logging
import io


log = logging.getLogger("biograph.logger")


# =============================================================================
# EVENT RECORDS
# =============================================================================

class MutationType(str, Enum):
    """Types of graph mutations for event tracking."""
    DATASET_LOADED = "DATASET_LOADED"
    NODES_MERGED = "NODES_MERGED"
    DOMAIN_CHANGED = "DOMAIN_CHANGED"


class MutationEvent(msgspec.Struct, kw_only=True):
    """
    Individual mutation event.

    `origin` says who asked for the change: "load", "hypothesis",
    "proposal" or "import".
    """
    timestamp: str
    sequence: int
    mutation_type: str                  # MutationType value
    origin: str = "load"
    domain: Optional[str] = None
    node_ids: List[str] = msgspec.field(default_factory=list)
    node_count: int = 0
    link_count: int = 0
    unresolved_links: int = 0


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LoggerConfig:
    """Where mutations go besides memory."""
    enable_file_log: bool = False
    log_path: Optional[Path] = None     # NDJSON directory
    buffer_size: int = 10000            # events kept in memory

    def __post_init__(self):
        if self.log_path is None:
            self.log_path = Path("./workspace/logs")


# =============================================================================
# RING BUFFER
# =============================================================================

class EventBuffer:
    """
    Bounded, lock-guarded history of mutations.

    Once full the oldest event falls off. Sequence numbers keep counting
    across evictions so gaps show how much history was lost.
    """

    def __init__(self, max_size: int = 10000):
        self._events: deque[MutationEvent] = deque(maxlen=max_size)
        self._lock = threading.RLock()
        self._counter = itertools.count(1)

    def append(self, event: MutationEvent) -> None:
        with self._lock:
            self._events.append(event)

    def claim_sequence(self) -> int:
        with self._lock:
            return next(self._counter)

    def select(self, keep: Callable[[MutationEvent], bool]) -> List[MutationEvent]:
        with self._lock:
            return [e for e in self._events if keep(e)]

    def tail(self, n: int) -> List[MutationEvent]:
        with self._lock:
            if n <= 0:
                return []
            return list(self._events)[-n:]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)


# =============================================================================
# NDJSON SINK
# =============================================================================

def _log_file_name(day: str) -> str:
    return f"mutations_{day}.jsonl"


def _utc_day() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d")


class FileLogger:
    """
    Appends mutations to `<log_path>/mutations_<YYYY-MM-DD>.jsonl`.

    The handle rolls over when the UTC date changes.
    """

    def __init__(self, log_path: Path):
        self._dir = Path(log_path)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[io.TextIOWrapper] = None
        self._day: Optional[str] = None
        self._lock = threading.Lock()
        self._encoder = msgspec.json.Encoder()

    def write(self, event: MutationEvent) -> None:
        payload = self._encoder.encode(event) + b"\n"
        with self._lock:
            try:
                self._roll()
                self._handle.write(payload.decode("utf-8"))
                self._handle.flush()
            except OSError as e:
                log.error(f"Could not append mutation {event.sequence} to {self._dir}: {e}")

    def _roll(self) -> None:
        day = _utc_day()
        if day == self._day and self._handle is not None:
            return
        if self._handle is not None:
            self._handle.close()
        self._handle = (self._dir / _log_file_name(day)).open("a", encoding="utf-8")
        self._day = day

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None

    def read_log(self, date: str) -> List[MutationEvent]:
        """Events recorded on `date` (YYYY-MM-DD). Undecodable lines are skipped."""
        path = self._dir / _log_file_name(date)
        if not path.exists():
            return []

        decoder = msgspec.json.Decoder(type=MutationEvent)
        events: List[MutationEvent] = []
        for lineno, raw in enumerate(path.read_bytes().splitlines(), start=1):
            if not raw.strip():
                continue
            try:
                events.append(decoder.decode(raw))
            except msgspec.DecodeError:
                log.warning(f"Skipping corrupt line {lineno} of {path}")
        return events


# =============================================================================
# MUTATION LOGGER
# =============================================================================

class MutationLogger:
    """
    Records graph mutations to the ring buffer, the optional NDJSON sink
    and any subscribed callbacks.

    A failing subscriber is logged and skipped; it never blocks the
    mutation that triggered it.
    """

    def __init__(self, config: Optional[LoggerConfig] = None):
        self.config = config or LoggerConfig()
        self._buffer = EventBuffer(self.config.buffer_size)
        self._sink: Optional[FileLogger] = (
            FileLogger(self.config.log_path)
            if self.config.enable_file_log and self.config.log_path
            else None
        )
        self._listeners: List[Callable[[MutationEvent], None]] = []

    def _record(self, mutation_type: MutationType, **fields) -> MutationEvent:
        event = MutationEvent(
            timestamp=datetime.now(timezone.utc).isoformat(),
            sequence=self._buffer.claim_sequence(),
            mutation_type=mutation_type.value,
            **fields,
        )
        self._buffer.append(event)
        if self._sink is not None:
            self._sink.write(event)

        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                log.error(f"Mutation listener failed on {event.mutation_type}: {e}", exc_info=True)
        return event

    # =========================================================================
    # RECORDING
    # =========================================================================

    def log_dataset_loaded(
        self,
        domain: Optional[str],
        node_count: int,
        link_count: int,
    ) -> MutationEvent:
        """A dataset replaced the graph wholesale."""
        return self._record(
            MutationType.DATASET_LOADED,
            origin="load",
            domain=domain,
            node_count=node_count,
            link_count=link_count,
        )

    def log_merge(
        self,
        origin: str,
        node_ids: List[str],
        link_count: int,
        unresolved_links: int = 0,
        domain: Optional[str] = None,
    ) -> MutationEvent:
        """Nodes and links were appended to the active dataset."""
        return self._record(
            MutationType.NODES_MERGED,
            origin=origin,
            domain=domain,
            node_ids=list(node_ids),
            node_count=len(node_ids),
            link_count=link_count,
            unresolved_links=unresolved_links,
        )

    def log_domain_changed(self, domain: str) -> MutationEvent:
        return self._record(MutationType.DOMAIN_CHANGED, origin="session", domain=domain)

    # =========================================================================
    # QUERIES
    # =========================================================================

    def get_recent_events(self, n: int = 100) -> List[MutationEvent]:
        return self._buffer.tail(n)

    def get_events_since(self, timestamp: str) -> List[MutationEvent]:
        return self._buffer.select(lambda e: e.timestamp >= timestamp)

    def get_events_for_node(self, node_id: str) -> List[MutationEvent]:
        return self._buffer.select(lambda e: node_id in e.node_ids)

    def get_events_by_type(self, mutation_type: str) -> List[MutationEvent]:
        return self._buffer.select(lambda e: e.mutation_type == mutation_type)

    def subscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        self._listeners.append(callback)

    def unsubscribe(self, callback: Callable[[MutationEvent], None]) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def close(self) -> None:
        if self._sink is not None:
            self._sink.close()

    def __enter__(self) -> "MutationLogger":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


# =============================================================================
# PROCESS-WIDE INSTANCE
# =============================================================================

_mutation_logger: Optional[MutationLogger] = None


def get_mutation_logger() -> MutationLogger:
    global _mutation_logger
    if _mutation_logger is None:
        _mutation_logger = MutationLogger()
    return _mutation_logger


def configure_mutation_logger(config: LoggerConfig) -> MutationLogger:
    """Replace the process-wide logger, closing the old file sink."""
    global _mutation_logger
    reset_mutation_logger()
    _mutation_logger = MutationLogger(config)
    return _mutation_logger


def reset_mutation_logger() -> None:
    global _mutation_logger
    if _mutation_logger is not None:
        _mutation_logger.close()
    _mutation_logger = None


def configure_logging(level: str = "INFO") -> None:
    """Set up stdlib logging for the "biograph" logger tree."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
