# caduceus/analytics/orchestrator.py
#
# Analytics Orchestrator
# Drives the refresh cycle: fan out the six source fetches, fan the results
# into the RecordStore, run the aggregation pass and publish the snapshot.
# Cycle states: Idle -> Fetching -> Aggregating -> Ready | PartialFailure -> Idle.

import asyncio
import concurrent.futures
import logging
import threading
from datetime import date, datetime
from typing import Any, Awaitable, Callable, List, Optional

try:
    from config.settings import settings
    from data_processing.api_client import HospitalApiClient, SourceUnavailable
    from data_processing.loaders import Source
    from data_processing.record_store import RecordStore
except ImportError as e:
    logging.basicConfig(level="CRITICAL")
    logging.critical(f"FATAL ERROR in orchestrator.py: A core dependency is missing. {e}", exc_info=True)
    raise

from .aggregation import build_snapshot
from .models import AnalyticsSnapshot, RefreshState

logger = logging.getLogger(__name__)

Fetcher = Callable[[Source], Awaitable[Any]]
SnapshotListener = Callable[[AnalyticsSnapshot], None]
StateListener = Callable[[RefreshState], None]


class AnalyticsOrchestrator:
    """
    Owns the RecordStore and the published AnalyticsSnapshot.

    `fetcher` is an async callable returning the raw JSON list for a source;
    when omitted, each cycle opens a HospitalApiClient. `clock` is read once
    at the start of a cycle and that reading fixes "today" for the whole
    report.
    """

    def __init__(
        self,
        fetcher: Optional[Fetcher] = None,
        store: Optional[RecordStore] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._fetcher = fetcher
        self.store = store if store is not None else RecordStore()
        self._clock = clock
        self.state = RefreshState.IDLE
        self.snapshot: Optional[AnalyticsSnapshot] = None
        self.cycles_completed = 0
        self._driver: Optional[asyncio.Future] = None
        self._pending = False
        self._snapshot_listeners: List[SnapshotListener] = []
        self._state_listeners: List[StateListener] = []

    # --- Subscriptions ---

    def subscribe(self, listener: SnapshotListener) -> None:
        self._snapshot_listeners.append(listener)

    def subscribe_state(self, listener: StateListener) -> None:
        self._state_listeners.append(listener)

    def _set_state(self, state: RefreshState) -> None:
        self.state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"State listener failed on '{state.value}': {e}", exc_info=True)

    # --- Refresh ---

    @property
    def in_flight(self) -> bool:
        return self._driver is not None and not self._driver.done()

    async def refresh(self) -> Optional[AnalyticsSnapshot]:
        """
        Runs a refresh cycle, or joins the one already in flight.

        A request arriving while a cycle is fetching or aggregating marks one
        follow-up cycle as pending; any number of such requests collapse into
        that single follow-up. The caller resumes once the driver has no more
        pending work and receives the latest published snapshot.
        """
        if self.in_flight:
            self._pending = True
            logger.debug("Refresh requested while a cycle is in flight; coalescing.")
        else:
            self._driver = asyncio.ensure_future(self._drive())
        await asyncio.shield(self._driver)
        return self.snapshot

    async def _drive(self) -> None:
        while True:
            self._pending = False
            await self._run_cycle()
            if not self._pending:
                return

    async def _fetch_all(self) -> List[Any]:
        sources = list(Source)
        if self._fetcher is not None:
            return await asyncio.gather(*(self._fetcher(s) for s in sources), return_exceptions=True)
        async with HospitalApiClient() as client:
            return await asyncio.gather(*(client.fetch(s) for s in sources), return_exceptions=True)

    async def _run_cycle(self) -> Optional[AnalyticsSnapshot]:
        started = self._clock()
        as_of = started.date()
        self._set_state(RefreshState.FETCHING)
        logger.info(f"Refresh cycle started for {as_of.isoformat()}.")

        try:
            try:
                results = await self._fetch_all()
            except Exception as e:
                # Only reachable when the client itself cannot be opened.
                logger.error(f"Could not start source fetches: {e}", exc_info=True)
                results = [SourceUnavailable("Network error. Please check your connection.", s.value) for s in Source]

            self._set_state(RefreshState.AGGREGATING)
            return self._publish(results, as_of)
        except Exception as e:
            logger.error(
                f"Refresh cycle for {as_of.isoformat()} failed; keeping the previous snapshot: {e}", exc_info=True
            )
            return self.snapshot
        finally:
            self._set_state(RefreshState.IDLE)

    def _publish(self, results: List[Any], as_of: date) -> AnalyticsSnapshot:
        fetched_at = self._clock()
        for source, result in zip(Source, results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, SourceUnavailable):
                self.store.mark_failed(source, result.message)
            elif isinstance(result, BaseException):
                logger.error(f"Unexpected error fetching '{source.value}': {result!r}", exc_info=result)
                self.store.mark_failed(source, f"Failed to load {source.value.replace('_', ' ')} data.")
            else:
                self.store.replace(source, result, fetched_at)

        snapshot = build_snapshot(self.store, as_of, generated_at=fetched_at)
        self.snapshot = snapshot
        self.cycles_completed += 1
        self._set_state(snapshot.state)

        for listener in list(self._snapshot_listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}", exc_info=True)

        failed = [s.value for s in self.store.failed_sources()]
        if failed:
            logger.warning(f"Refresh cycle finished with unavailable sources: {', '.join(failed)}")
        else:
            logger.info("Refresh cycle finished; all sources loaded.")
        return snapshot

    async def run_periodic(
        self, interval_seconds: Optional[float] = None, stop_event: Optional[asyncio.Event] = None
    ) -> None:
        """Refreshes immediately and then every `interval_seconds` until `stop_event` is set."""
        interval = interval_seconds if interval_seconds is not None else settings.analytics.refresh_interval_seconds
        stop_event = stop_event or asyncio.Event()
        while not stop_event.is_set():
            try:
                await self.refresh()
            except Exception as e:
                logger.error(f"Periodic refresh failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue


class BackgroundRefresher:
    """
    Hosts an orchestrator's event loop in a daemon thread so a synchronous
    UI (Streamlit) can read snapshots and request refreshes.
    """

    def __init__(self, orchestrator: Optional[AnalyticsOrchestrator] = None, interval_seconds: Optional[float] = None):
        self.orchestrator = orchestrator or AnalyticsOrchestrator()
        self.interval_seconds = interval_seconds
        self._loop = asyncio.new_event_loop()
        self._stop_event: Optional[asyncio.Event] = None
        self._ready = threading.Event()
        self._thread = threading.Thread(target=self._run, name="caduceus-refresher", daemon=True)
        self.orchestrator.subscribe(lambda _snapshot: self._ready.set())

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._stop_event = asyncio.Event()
        try:
            self._loop.run_until_complete(
                self.orchestrator.run_periodic(self.interval_seconds, self._stop_event)
            )
        finally:
            self._loop.close()

    def start(self) -> 'BackgroundRefresher':
        if not self._thread.is_alive():
            self._thread.start()
            logger.info("Background refresher started.")
        return self

    def request_refresh(self) -> concurrent.futures.Future:
        """Thread-safe manual refresh; coalesces with any cycle in flight."""
        return asyncio.run_coroutine_threadsafe(self.orchestrator.refresh(), self._loop)

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        """Blocks until the first snapshot has been published."""
        return self._ready.wait(timeout)

    @property
    def snapshot(self) -> Optional[AnalyticsSnapshot]:
        return self.orchestrator.snapshot

    @property
    def state(self) -> RefreshState:
        return self.orchestrator.state

    def stop(self, timeout: float = 5.0) -> None:
        if self._stop_event is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._stop_event.set)
        self._thread.join(timeout)
