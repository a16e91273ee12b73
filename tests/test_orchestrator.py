import asyncio
from collections import Counter
from datetime import datetime

from analytics.models import RefreshState
from analytics.orchestrator import AnalyticsOrchestrator
from data_processing.api_client import AuthExpired, ServerError
from data_processing.loaders import Source


class FakeFetcher:
    """In-memory stand-in for the HTTP client; optionally blocks until released."""

    def __init__(self, payloads, failures=None, gated=False):
        self.payloads = payloads
        self.failures = dict(failures or {})
        self.calls = Counter()
        self.gated = gated
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def __call__(self, source):
        self.calls[source] += 1
        self.started.set()
        if self.gated:
            await self.release.wait()
        await asyncio.sleep(0)
        if source in self.failures:
            raise self.failures[source]
        return self.payloads[source]


class SteppingClock:
    def __init__(self, *moments):
        self.moments = list(moments)

    def __call__(self):
        if len(self.moments) > 1:
            return self.moments.pop(0)
        return self.moments[0]


def _clock():
    return datetime(2024, 5, 15, 9, 30)


def test_cycle_walks_the_state_machine(payloads):
    async def scenario():
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads), clock=_clock)
        states = []
        orchestrator.subscribe_state(states.append)
        snapshot = await orchestrator.refresh()
        return orchestrator, snapshot, states

    orchestrator, snapshot, states = asyncio.run(scenario())
    assert states == [RefreshState.FETCHING, RefreshState.AGGREGATING, RefreshState.READY, RefreshState.IDLE]
    assert orchestrator.state == RefreshState.IDLE
    assert snapshot is orchestrator.snapshot
    assert snapshot.state == RefreshState.READY
    assert snapshot.as_of.isoformat() == "2024-05-15"
    assert snapshot.ward_occupancy[0].occupied_beds == 2


def test_failed_source_yields_partial_failure(payloads):
    async def scenario():
        failures = {Source.WARDS: AuthExpired("Your session has expired. Please log in again.", "wards", 401)}
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads, failures), clock=_clock)
        states = []
        orchestrator.subscribe_state(states.append)
        snapshot = await orchestrator.refresh()
        return snapshot, states

    snapshot, states = asyncio.run(scenario())
    assert RefreshState.PARTIAL_FAILURE in states
    assert snapshot.state == RefreshState.PARTIAL_FAILURE
    assert snapshot.sources["wards"].error == "Your session has expired. Please log in again."
    assert snapshot.ward_occupancy == ()
    assert snapshot.workload.total_appointments == 12


def test_unexpected_fetch_errors_are_treated_as_unavailable(payloads):
    async def scenario():
        failures = {Source.PATIENTS: ValueError("bad payload")}
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads, failures), clock=_clock)
        return await orchestrator.refresh()

    snapshot = asyncio.run(scenario())
    assert not snapshot.sources["patients"].ok
    assert snapshot.sources["patients"].error == "Failed to load patients data."
    assert snapshot.demographics.total_patients == 0
    assert snapshot.appointments.rates.total == 12


def test_failure_keeps_last_successful_timestamp_but_not_records(payloads):
    first = datetime(2024, 5, 15, 9, 0)
    second = datetime(2024, 5, 15, 9, 5)

    async def scenario():
        fetcher = FakeFetcher(payloads)
        orchestrator = AnalyticsOrchestrator(fetcher=fetcher, clock=SteppingClock(first, first, second, second))
        await orchestrator.refresh()
        fetcher.failures[Source.WARDS] = ServerError("Server error occurred. Please try again later.", "wards", 500)
        return await orchestrator.refresh()

    snapshot = asyncio.run(scenario())
    wards = snapshot.sources["wards"]
    assert not wards.ok
    assert wards.last_updated == first
    assert wards.stale
    assert snapshot.sources["doctors"].last_updated == second
    assert snapshot.ward_occupancy == ()


def test_aggregation_crash_returns_to_idle_and_keeps_previous_snapshot(payloads, monkeypatch):
    async def scenario():
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads), clock=_clock)
        first = await orchestrator.refresh()

        def broken_build(*args, **kwargs):
            raise RuntimeError("aggregation exploded")

        monkeypatch.setattr("analytics.orchestrator.build_snapshot", broken_build)
        states = []
        orchestrator.subscribe_state(states.append)
        second = await orchestrator.refresh()
        return orchestrator, first, second, states

    orchestrator, first, second, states = asyncio.run(scenario())
    assert second is first
    assert orchestrator.snapshot is first
    assert orchestrator.cycles_completed == 1
    assert states == [RefreshState.FETCHING, RefreshState.AGGREGATING, RefreshState.IDLE]
    assert orchestrator.state == RefreshState.IDLE
    assert not orchestrator.in_flight


def test_refresh_requests_during_a_cycle_coalesce_into_one_follow_up(payloads):
    async def scenario():
        fetcher = FakeFetcher(payloads, gated=True)
        orchestrator = AnalyticsOrchestrator(fetcher=fetcher, clock=_clock)
        first = asyncio.ensure_future(orchestrator.refresh())
        await fetcher.started.wait()
        assert orchestrator.in_flight
        second = asyncio.ensure_future(orchestrator.refresh())
        third = asyncio.ensure_future(orchestrator.refresh())
        await asyncio.sleep(0)
        fetcher.release.set()
        results = await asyncio.gather(first, second, third)
        return orchestrator, fetcher, results

    orchestrator, fetcher, results = asyncio.run(scenario())
    assert orchestrator.cycles_completed == 2
    assert all(count == 2 for count in fetcher.calls.values())
    assert all(result is orchestrator.snapshot for result in results)
    assert not orchestrator.in_flight


def test_sequential_refreshes_each_run_a_cycle(payloads):
    async def scenario():
        fetcher = FakeFetcher(payloads)
        orchestrator = AnalyticsOrchestrator(fetcher=fetcher, clock=_clock)
        one = await orchestrator.refresh()
        two = await orchestrator.refresh()
        return orchestrator, one, two

    orchestrator, one, two = asyncio.run(scenario())
    assert orchestrator.cycles_completed == 2
    assert one is not two


def test_listeners_receive_published_snapshots_and_errors_are_contained(payloads):
    received = []

    def broken_listener(snapshot):
        raise RuntimeError("listener bug")

    async def scenario():
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads), clock=_clock)
        orchestrator.subscribe(broken_listener)
        orchestrator.subscribe(received.append)
        return await orchestrator.refresh()

    snapshot = asyncio.run(scenario())
    assert received == [snapshot]


def test_run_periodic_repeats_until_stopped(payloads):
    async def scenario():
        orchestrator = AnalyticsOrchestrator(fetcher=FakeFetcher(payloads), clock=_clock)
        stop = asyncio.Event()
        orchestrator.subscribe(lambda _s: stop.set() if orchestrator.cycles_completed >= 3 else None)
        await asyncio.wait_for(orchestrator.run_periodic(0.01, stop), timeout=5)
        return orchestrator

    orchestrator = asyncio.run(scenario())
    assert orchestrator.cycles_completed == 3
