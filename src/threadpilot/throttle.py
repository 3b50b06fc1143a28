"""Summary: Admission control for OpenAI calls: per-minute cap plus circuit breaker.

Importance: Stops runaway usage when events are re-delivered in a loop or OpenAI keeps failing.
Alternatives: Rely on OpenAI's own rate limiting and billing alerts.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from typing import Callable

from threadpilot.models import AdmissionDecision


logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0
DEFAULT_MAX_PER_MINUTE = 15
DEFAULT_CIRCUIT_FAILURES = 5
DEFAULT_CIRCUIT_SECONDS = 120

RATE_LIMITED = "rate_limited"
CIRCUIT_OPEN = "circuit_open"


@dataclass
class AdmissionState:
    """Mutable admission bookkeeping; ``circuit_open_until`` is 0 while closed."""

    recent_request_timestamps: list[float] = field(default_factory=list)
    consecutive_failures: int = 0
    circuit_open_until: float = 0.0


class AdmissionController:
    """Summary: Gate consulted before every extraction call.

    Importance: A failsafe, not a precise cost controller; thresholds favour simplicity.
    Alternatives: Token-bucket limiter with a shared store.

    Construct one per process and share it. ``allow`` and the ``record_*`` calls
    read then write the state without a lock, so two concurrent events can both
    take the last free slot. That overshoot is accepted.
    """

    def __init__(
        self,
        max_per_minute: int = DEFAULT_MAX_PER_MINUTE,
        circuit_failures: int = DEFAULT_CIRCUIT_FAILURES,
        circuit_seconds: int = DEFAULT_CIRCUIT_SECONDS,
        clock: Callable[[], float] = time.time,
        state: AdmissionState | None = None,
    ) -> None:
        self.max_per_minute = max(1, max_per_minute)
        self.circuit_failures = max(1, circuit_failures)
        self.circuit_seconds = circuit_seconds
        self._clock = clock
        self.state = state or AdmissionState()

    def allow(self) -> AdmissionDecision:
        """Summary: Decide whether a new OpenAI call may start now.

        Importance: An admitted call takes its window slot immediately; the caller must report its outcome.
        Alternatives: Count calls only after they complete.
        """

        now = self._clock()
        state = self.state
        if now < state.circuit_open_until:
            return AdmissionDecision(
                allowed=False,
                reason=CIRCUIT_OPEN,
                retry_after_seconds=math.ceil(state.circuit_open_until - now),
            )
        if state.circuit_open_until:
            state.circuit_open_until = 0.0

        cutoff = now - WINDOW_SECONDS
        state.recent_request_timestamps = [
            stamp for stamp in state.recent_request_timestamps if stamp > cutoff
        ]
        if len(state.recent_request_timestamps) >= self.max_per_minute:
            oldest = min(state.recent_request_timestamps)
            return AdmissionDecision(
                allowed=False,
                reason=RATE_LIMITED,
                retry_after_seconds=math.ceil(oldest + WINDOW_SECONDS - now),
            )
        state.recent_request_timestamps.append(now)
        return AdmissionDecision(allowed=True)

    def record_success(self) -> None:
        self.state.consecutive_failures = 0

    def record_failure(self) -> None:
        state = self.state
        state.consecutive_failures += 1
        if state.consecutive_failures >= self.circuit_failures:
            state.circuit_open_until = self._clock() + self.circuit_seconds
            logger.warning(
                "OpenAI circuit breaker open: %s consecutive failures. No OpenAI calls for %ss.",
                state.consecutive_failures,
                self.circuit_seconds,
            )
