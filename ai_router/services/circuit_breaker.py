"""
Circuit breaker for downstream AI calls.

One state machine per service name:
- CLOSED: normal operation, consecutive failures are counted
- OPEN: calls short-circuit to the fallback (or CircuitOpenError)
- HALF_OPEN: exactly one probe call is admitted after the cooldown

Transitions:
    CLOSED --threshold consecutive failures--> OPEN
    OPEN --cooldown elapsed--> HALF_OPEN (one probe)
    HALF_OPEN --probe succeeds--> CLOSED (counter reset)
    HALF_OPEN --probe fails--> OPEN (cooldown restarts)

Usage:
    breaker = CircuitBreaker()

    result = await breaker.execute(
        lambda: provider.chat(messages, options),
        service_name="ai_provider_groq",
    )

State is process-local and guarded by one threading.Lock per circuit, so it
is safe across asyncio tasks and worker threads.
"""
from __future__ import annotations

import asyncio
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from ai_router.config import get_logger, settings
from ai_router.exceptions import CircuitOpenError, classify
from ai_router.utils import maybe_await

logger = get_logger("services.circuit_breaker")

T = TypeVar("T")
Callback = Callable[[], Union[T, Awaitable[T]]]


class CircuitState(str, Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _Circuit:
    name: str
    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[float] = None
    probe_in_flight: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class CircuitBreaker:
    """
    Per-service-name circuit breaker.

    Args:
        failure_threshold: Consecutive failures before opening
        cooldown_seconds: Seconds in OPEN before a probe is admitted
        clock: Monotonic time source (injectable for tests)
    """

    def __init__(
        self,
        failure_threshold: int | None = None,
        cooldown_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.failure_threshold = settings.CIRCUIT_FAILURE_THRESHOLD if failure_threshold is None else failure_threshold
        self.cooldown_seconds = settings.CIRCUIT_COOLDOWN_SECONDS if cooldown_seconds is None else cooldown_seconds
        self._clock = clock
        self._circuits: dict[str, _Circuit] = {}
        self._table_lock = threading.Lock()

    def _circuit(self, name: str) -> _Circuit:
        with self._table_lock:
            circuit = self._circuits.get(name)
            if circuit is None:
                circuit = self._circuits[name] = _Circuit(name=name)
            return circuit

    def _retry_after(self, circuit: _Circuit) -> float:
        if circuit.opened_at is None:
            return 0.0
        return max(0.0, circuit.opened_at + self.cooldown_seconds - self._clock())

    # -- state machine ------------------------------------------------------

    def _admit(self, circuit: _Circuit) -> tuple[bool, bool]:
        """Returns (admitted, is_probe)."""
        with circuit.lock:
            if circuit.state == CircuitState.CLOSED:
                return True, False

            if circuit.state == CircuitState.OPEN:
                if self._retry_after(circuit) > 0:
                    return False, False
                circuit.state = CircuitState.HALF_OPEN
                circuit.probe_in_flight = True
                logger.info("Circuit '%s' OPEN -> HALF_OPEN, admitting probe", circuit.name)
                return True, True

            # HALF_OPEN: one probe at a time
            if circuit.probe_in_flight:
                return False, False
            circuit.probe_in_flight = True
            return True, True

    def _record_success(self, circuit: _Circuit, is_probe: bool) -> None:
        with circuit.lock:
            if is_probe:
                circuit.state = CircuitState.CLOSED
                circuit.consecutive_failures = 0
                circuit.opened_at = None
                circuit.probe_in_flight = False
                logger.info("Circuit '%s' HALF_OPEN -> CLOSED", circuit.name)
            elif circuit.state == CircuitState.CLOSED:
                circuit.consecutive_failures = 0

    def _record_failure(self, circuit: _Circuit, is_probe: bool, error: BaseException) -> None:
        with circuit.lock:
            circuit.consecutive_failures += 1
            if is_probe:
                circuit.state = CircuitState.OPEN
                circuit.opened_at = self._clock()
                circuit.probe_in_flight = False
                logger.warning("Circuit '%s' HALF_OPEN -> OPEN (probe failed: %s)", circuit.name, error)
            elif (
                circuit.state == CircuitState.CLOSED
                and circuit.consecutive_failures >= self.failure_threshold
            ):
                circuit.state = CircuitState.OPEN
                circuit.opened_at = self._clock()
                logger.warning(
                    "Circuit '%s' CLOSED -> OPEN after %d consecutive failures (last: %s)",
                    circuit.name,
                    circuit.consecutive_failures,
                    error,
                )

    def _release_probe(self, circuit: _Circuit, is_probe: bool) -> None:
        if not is_probe:
            return
        with circuit.lock:
            circuit.probe_in_flight = False

    # -- public API ---------------------------------------------------------

    async def execute(
        self,
        callback: Callback[T],
        service_name: str,
        fallback: Optional[Callback[T]] = None,
    ) -> T:
        """
        Run ``callback`` through the circuit for ``service_name``.

        Args:
            callback: Zero-arg callable, sync or async
            service_name: Circuit key (e.g. 'ai_provider_groq')
            fallback: Invoked instead of raising when the call is not admitted

        Raises:
            CircuitOpenError: Circuit not admitting calls and no fallback
            Exception: Whatever ``callback`` raised, unchanged
        """
        circuit = self._circuit(service_name)
        admitted, is_probe = self._admit(circuit)

        if not admitted:
            if fallback is not None:
                logger.info("Circuit '%s' is %s, using fallback", service_name, circuit.state.value)
                return await maybe_await(fallback())
            raise CircuitOpenError(service_name, self._retry_after(circuit))

        try:
            result = await maybe_await(callback())
        except asyncio.CancelledError:
            self._release_probe(circuit, is_probe)
            raise
        except Exception as e:
            if classify(e).counts_against_circuit:
                self._record_failure(circuit, is_probe, e)
            else:
                self._release_probe(circuit, is_probe)
            raise

        self._record_success(circuit, is_probe)
        return result

    def get_status(self, service_name: str) -> dict[str, Any]:
        """State snapshot for one circuit (CLOSED if never used)."""
        with self._table_lock:
            circuit = self._circuits.get(service_name)
        if circuit is None:
            circuit = _Circuit(name=service_name)
        with circuit.lock:
            return {
                "service_name": circuit.name,
                "state": circuit.state.value,
                "consecutive_failures": circuit.consecutive_failures,
                "retry_after_seconds": round(self._retry_after(circuit), 1)
                if circuit.state == CircuitState.OPEN else 0.0,
                "probe_in_flight": circuit.probe_in_flight,
                "failure_threshold": self.failure_threshold,
                "cooldown_seconds": self.cooldown_seconds,
            }

    def get_all_statuses(self) -> dict[str, dict[str, Any]]:
        with self._table_lock:
            names = sorted(self._circuits)
        return {name: self.get_status(name) for name in names}

    def reset(self, service_name: str | None = None) -> None:
        """Force one circuit (or all of them) back to CLOSED."""
        with self._table_lock:
            if service_name is None:
                self._circuits.clear()
            else:
                self._circuits.pop(service_name, None)
        logger.info("Circuit reset: %s", service_name or "all")
