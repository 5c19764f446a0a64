import asyncio

import pytest

from conftest import FAST_SCHEDULE, StubBackend
from zkflow.initializer import ServiceInitializer, missing_capabilities
from zkflow.retry import BackoffSchedule


@pytest.mark.asyncio
async def test_initialize_is_idempotent(stub_backend: StubBackend, initializer: ServiceInitializer) -> None:
    first = await initializer.initialize()
    second = await initializer.initialize()

    assert first.success and second.success
    assert initializer.is_ready()
    assert stub_backend.calls["connect"] == 1
    assert stub_backend.calls["probe"] == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_attempt() -> None:
    backend = StubBackend(probe_delay=0.3)
    initializer = ServiceInitializer(backend, schedule=FAST_SCHEDULE)

    results = await asyncio.gather(*(initializer.initialize() for _ in range(8)))

    assert all(result.success for result in results)
    assert backend.calls["connect"] == 1
    assert backend.calls["probe"] == 1


@pytest.mark.asyncio
async def test_missing_capability_fails_without_connecting(stub_backend: StubBackend) -> None:
    initializer = ServiceInitializer(
        stub_backend,
        schedule=FAST_SCHEDULE,
        capability_checks={"secure_random": lambda: False},
    )

    result = await initializer.initialize()

    assert not result.success
    assert result.error.kind == "InitializationError"
    assert result.error.detail["missing"] == ["secure_random"]
    assert stub_backend.calls["connect"] == 0
    assert not initializer.is_ready()


def test_unknown_capability_counts_as_missing() -> None:
    assert missing_capabilities(["secure_random", "quantum"]) == ["quantum"]


@pytest.mark.asyncio
async def test_readiness_exhaustion_reports_last_failure() -> None:
    backend = StubBackend(ready_after=100)
    schedule = BackoffSchedule(initial_delay=0.0, max_delay=0.0, max_attempts=3)
    initializer = ServiceInitializer(backend, schedule=schedule)

    result = await initializer.initialize()

    assert not result.success
    assert result.error.kind == "InitializationError"
    assert result.error.detail["attempts"] == 3
    assert "False" in result.error.detail["lastFailure"]
    assert backend.calls["probe"] == 3
    assert backend.closed == [{"session": 1}]


@pytest.mark.asyncio
async def test_probe_must_return_positive_result() -> None:
    class VagueBackend(StubBackend):
        async def readiness_probe(self, handle):
            self.calls["probe"] += 1
            return "ok"

    backend = VagueBackend()
    initializer = ServiceInitializer(backend, schedule=FAST_SCHEDULE)

    result = await initializer.initialize()

    assert not result.success
    assert backend.calls["probe"] == FAST_SCHEDULE.max_attempts


@pytest.mark.asyncio
async def test_failed_attempt_can_be_retried(stub_backend: StubBackend, initializer: ServiceInitializer) -> None:
    stub_backend.connect_error = ConnectionError("refused")
    failed = await initializer.initialize()
    assert not failed.success
    assert "refused" in failed.error.message
    assert initializer.attempted and not initializer.is_initialized

    stub_backend.connect_error = None
    recovered = await initializer.initialize()
    assert recovered.success
    assert initializer.is_ready()
    assert stub_backend.calls["connect"] == 2


@pytest.mark.asyncio
async def test_reset_forgets_handle(stub_backend: StubBackend, initializer: ServiceInitializer) -> None:
    await initializer.initialize()
    initializer.reset()

    assert not initializer.is_ready()
    assert initializer.handle is None
    assert not initializer.attempted
    assert stub_backend.closed == [{"session": 1}]

    await initializer.initialize()
    assert stub_backend.calls["connect"] == 2


@pytest.mark.asyncio
async def test_reset_disowns_in_flight_attempt() -> None:
    backend = StubBackend(probe_delay=0.05)
    initializer = ServiceInitializer(backend, schedule=FAST_SCHEDULE)

    stale = asyncio.create_task(initializer.initialize())
    await asyncio.sleep(0.01)
    initializer.reset()
    fresh = asyncio.create_task(initializer.initialize())
    await asyncio.sleep(0.01)
    initializer.reset()

    stale_result, fresh_result = await asyncio.gather(stale, fresh)

    assert not stale_result.success and not fresh_result.success
    assert "superseded" in stale_result.error.message
    assert not initializer.is_ready()
    assert initializer.handle is None
    assert not initializer.attempted
    assert {handle["session"] for handle in backend.closed} == {1, 2}

    result = await initializer.initialize()
    assert result.success
    assert initializer.handle == {"session": 3}
