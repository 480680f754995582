import threading
import time
from collections.abc import Callable
from enum import Enum

import structlog

from proxysql_exporter.collectors import collect_connection_pool, collect_query_digest
from proxysql_exporter.config import DEFAULT_SCRAPE_INTERVAL
from proxysql_exporter.connection import ConnectionManager
from proxysql_exporter.exceptions import ExporterError
from proxysql_exporter.sink import MetricSink

logger = structlog.get_logger(__name__)


class CollectorState(Enum):
    CONNECTING = "connecting"
    SAMPLING_CONNECTION_POOL = "sampling_connection_pool"
    SAMPLING_QUERY_DIGEST = "sampling_query_digest"
    HEALTHY = "healthy"
    FAILED = "failed"


class CollectionScheduler:
    """Drive the fixed interval collection cycle and the liveness gauge."""

    def __init__(
        self,
        connections: ConnectionManager,
        sink: MetricSink,
        query_digest_query: str,
        interval: float = DEFAULT_SCRAPE_INTERVAL,
        sleep_fn: Callable[[float], None] | None = None,
    ):
        self.connections = connections
        self.sink = sink
        self.query_digest_query = query_digest_query
        self.interval = interval
        self._sleep = sleep_fn or time.sleep
        self.total_cycles = 0
        self.last_state: CollectorState | None = None
        self.transitions: list[CollectorState] = []
        self._thread: threading.Thread | None = None

    def _enter(self, state: CollectorState) -> None:
        self.transitions.append(state)
        self.last_state = state

    def run_cycle(self) -> CollectorState:
        """Run one connect/sample pass and return HEALTHY or FAILED."""
        self.total_cycles += 1
        self.transitions = []
        stage = CollectorState.CONNECTING
        self._enter(stage)

        try:
            engine = self.connections.acquire()

            stage = CollectorState.SAMPLING_CONNECTION_POOL
            self._enter(stage)
            backends = collect_connection_pool(engine, self.sink)

            stage = CollectorState.SAMPLING_QUERY_DIGEST
            self._enter(stage)
            digests = collect_query_digest(engine, self.sink, self.query_digest_query)
        except ExporterError as e:
            self.sink.set_up(False)
            self._enter(CollectorState.FAILED)
            logger.error(
                "Collection cycle failed",
                cycle=self.total_cycles,
                stage=stage.value,
                error=str(e),
                retry_in=self.interval,
            )
            return CollectorState.FAILED

        self.sink.set_up(True)
        self._enter(CollectorState.HEALTHY)
        logger.debug(
            "Collection cycle completed",
            cycle=self.total_cycles,
            backends=backends,
            digests=digests,
        )
        return CollectorState.HEALTHY

    def run_forever(self) -> None:
        """Run cycles until the process exits. HEALTHY and FAILED wait the same interval."""
        try:
            while True:
                self.run_cycle()
                self._sleep(self.interval)
        except Exception as e:
            logger.error("Collector crashed", error=str(e))
            raise

    def start(self) -> threading.Thread:
        """Run the loop on a daemon thread and return it."""
        if self._thread is None:
            self._thread = threading.Thread(target=self.run_forever, name="proxysql-collector", daemon=True)
            self._thread.start()
            logger.info("Collector started", interval=self.interval)
        return self._thread
