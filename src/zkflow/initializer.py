"""One-time bring-up of the proving backend connection."""

from __future__ import annotations

import asyncio
import logging
import os
import threading
import time
from typing import Any, Callable, Dict, Iterable, List

from .backends.base import ProvingBackend
from .exceptions import InitializationError, ZkflowError
from .models import Stage, StageError, StageResult
from .retry import BackoffSchedule, RetryExhausted, wait_until_ready

logger = logging.getLogger(__name__)


def _has_secure_random() -> bool:
    try:
        os.urandom(1)
    except NotImplementedError:
        return False
    return True


def _has_threads() -> bool:
    worker = threading.Thread(target=lambda: None, daemon=True)
    try:
        worker.start()
    except RuntimeError:
        return False
    worker.join()
    return True


def _has_event_loop() -> bool:
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return False
    return True


CAPABILITY_CHECKS: Dict[str, Callable[[], bool]] = {
    "secure_random": _has_secure_random,
    "threads": _has_threads,
    "event_loop": _has_event_loop,
}


def missing_capabilities(required: Iterable[str],
                         checks: Dict[str, Callable[[], bool]] | None = None) -> List[str]:
    """Names from ``required`` the host cannot provide (unknown names count as missing)."""

    checks = CAPABILITY_CHECKS if checks is None else checks
    missing = []
    for name in required:
        check = checks.get(name)
        if check is None or not check():
            missing.append(name)
    return missing


class ServiceInitializer:
    """Owns the idempotent, coalesced initialization of a ``ProvingBackend``.

    Concurrent ``initialize()`` callers await the same in-flight task. A failed
    attempt leaves the initializer not ready; calling ``initialize()`` again
    starts a fresh attempt.
    """

    def __init__(
        self,
        backend: ProvingBackend,
        schedule: BackoffSchedule | None = None,
        extra_capabilities: Iterable[str] = (),
        capability_checks: Dict[str, Callable[[], bool]] | None = None,
    ):
        self.backend = backend
        self.schedule = schedule or BackoffSchedule()
        self.extra_capabilities = tuple(extra_capabilities)
        self.capability_checks = capability_checks
        self._handle: Any = None
        self._pending: asyncio.Task | None = None
        self._last_result: StageResult[None] | None = None
        self._initialized = False
        self._generation = 0

    @property
    def handle(self) -> Any:
        return self._handle

    @property
    def last_result(self) -> StageResult[None] | None:
        return self._last_result

    @property
    def attempted(self) -> bool:
        return self._last_result is not None

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def is_ready(self) -> bool:
        return self._initialized and self._handle is not None

    async def initialize(self) -> StageResult[None]:
        if self.is_ready():
            return self._last_result or StageResult.ok(stage=Stage.INITIALIZE.value)

        task = self._pending
        if task is None:
            task = asyncio.create_task(self._attempt(self._generation))
            self._pending = task
        return await asyncio.shield(task)

    def reset(self) -> None:
        """Forget the current handle; an attempt still in flight is disowned."""

        self._generation += 1
        handle, self._handle = self._handle, None
        self._pending = None
        self._last_result = None
        self._initialized = False
        self._release(handle)
        logger.info("Service initializer reset")

    def _release(self, handle: Any) -> None:
        if handle is None:
            return
        try:
            self.backend.close(handle)
        except Exception as exc:
            logger.warning("Closing backend handle failed: %s", exc)

    async def _attempt(self, generation: int) -> StageResult[None]:
        started = time.perf_counter()
        try:
            handle, attempts = await self._bring_up()
        except ZkflowError as exc:
            elapsed = (time.perf_counter() - started) * 1000
            if not isinstance(exc, InitializationError):
                exc = InitializationError(str(exc), exc.detail)
            logger.warning("Initialization failed: %s", exc)
            result = StageResult.fail(StageError.from_exception(exc, Stage.INITIALIZE, elapsed),
                                      stage=Stage.INITIALIZE.value)
        else:
            elapsed = (time.perf_counter() - started) * 1000
            if generation != self._generation:
                self._release(handle)
                logger.info("Initialization finished after a reset; handle discarded")
                error = InitializationError("Initialization superseded by reset")
                return StageResult.fail(StageError.from_exception(error, Stage.INITIALIZE, elapsed),
                                        stage=Stage.INITIALIZE.value)
            self._handle = handle
            self._initialized = True
            logger.info("Proving backend ready after %d probe(s) in %.1fms", attempts, elapsed)
            result = StageResult.ok(stage=Stage.INITIALIZE.value, durationMs=elapsed,
                                    probeAttempts=attempts)
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None
        if generation == self._generation:
            self._last_result = result
        return result

    async def _bring_up(self):
        required = list(self.backend.required_capabilities) + list(self.extra_capabilities)
        missing = missing_capabilities(dict.fromkeys(required), self.capability_checks)
        if missing:
            raise InitializationError(
                f"Host is missing required capabilities: {', '.join(missing)}",
                {"missing": missing},
            )

        logger.info("Initializing proving backend %s", type(self.backend).__name__)
        try:
            handle = await self.backend.connect()
        except ZkflowError as exc:
            raise InitializationError(f"Could not connect to proving backend: {exc}") from exc
        except Exception as exc:
            raise InitializationError(
                f"Could not connect to proving backend: {type(exc).__name__}: {exc}"
            ) from exc

        try:
            attempts = await wait_until_ready(lambda: self.backend.readiness_probe(handle),
                                              self.schedule)
        except RetryExhausted as exc:
            self._release(handle)
            raise InitializationError(
                f"Proving backend never became ready after {exc.attempts} attempts",
                {"attempts": exc.attempts, "lastFailure": exc.last_failure},
            ) from exc
        return handle, attempts
