import email.utils as eut
import math
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Union

from .errors import ProviderError, RateLimitExceeded
from .state import RetryState
from .types import RetryConfig

# "Please try again in 20 seconds", "retry after 3s", "try again in 500ms"
_HINT_RE = re.compile(
    r"(?:try again in|retry after)\s+(\d+(?:\.\d+)?)\s*(ms|milliseconds?|s|secs?|seconds?)?\b",
    re.IGNORECASE,
)


class ErrorKind(Enum):
    RATE_LIMITED = "rate_limited"
    TIMED_OUT = "timed_out"
    TRANSPORT_FAILED = "transport_failed"
    TERMINAL = "terminal"


RETRYABLE_KINDS = frozenset({ErrorKind.RATE_LIMITED, ErrorKind.TIMED_OUT})


@dataclass(frozen=True)
class ErrorClass:
    kind: ErrorKind
    error: Union[ProviderError, None] = None
    # Server-supplied wait in seconds (RATE_LIMITED only)
    hint: Union[float, None] = None

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


@dataclass(frozen=True)
class Wait:
    delay: float
    state: RetryState


@dataclass(frozen=True)
class Stop:
    error: ProviderError


def _finite_seconds(value: float) -> float:
    # "inf" and "nan" parse as floats but are not usable waits
    if not math.isfinite(value):
        raise ValueError(f"non-finite wait: {value}")
    return max(0.0, value)


def parse_retry_after(headers: dict[str, str], now: Union[float, None] = None) -> float:
    """Return the structured wait hint from response headers in seconds, or 0.0.

    ``retry-after-ms`` wins over ``Retry-After``; the latter may be delta-seconds
    or an HTTP-date (RFC 7231).
    """
    ra_ms = ra = None
    for k, v in headers.items():
        name = k.lower()
        if name == "retry-after-ms":
            ra_ms = v
        elif name == "retry-after":
            ra = v
    if ra_ms is not None:
        try:
            return _finite_seconds(float(ra_ms) / 1000.0)
        except ValueError:
            pass
    if ra is None:
        return 0.0
    try:
        return _finite_seconds(float(ra))
    except ValueError:
        try:
            ts = eut.parsedate_to_datetime(ra)
        except (TypeError, ValueError):
            return 0.0
        now = time.time() if now is None else now
        # Round up so a short delay is not truncated to zero
        return max(0.0, float(math.ceil(ts.timestamp() - now)))


def retry_hint_from_message(message: Union[str, None]) -> float:
    """Recover a wait hint embedded in an error message, or 0.0."""
    if not message:
        return 0.0
    m = _HINT_RE.search(message)
    if m is None:
        return 0.0
    value = float(m.group(1))
    if not math.isfinite(value):
        return 0.0
    unit = (m.group(2) or "s").lower()
    if unit.startswith("m"):
        value /= 1000.0
    return value


def retry_hint(headers: dict[str, str], message: Union[str, None]) -> Union[float, None]:
    hint = parse_retry_after(headers)
    if hint <= 0:
        hint = retry_hint_from_message(message)
    return hint if hint > 0 else None


class RetryPolicy:
    """Exponential backoff with a cap, overridable by a server hint.

    The policy holds configuration only; all per-call counters live in the
    ``RetryState`` passed in and returned by ``decide``.
    """

    def __init__(self, config: Union[RetryConfig, None] = None):
        self.config = config or RetryConfig()

    @property
    def max_retries(self) -> int:
        return self.config.max_retries

    def initial_state(self) -> RetryState:
        return RetryState(attempt=0, current_delay=self.config.initial_delay)

    def exhausted(self, state: RetryState) -> bool:
        """True once ``max_retries`` backoffs have been scheduled after the first send.

        Checked before each send, so a call makes at most ``max_retries + 1``
        sends. The wait scheduled after the final failure is still honored.
        """
        return state.attempt > self.config.max_retries

    def give_up(self, error: Union[ProviderError, None]) -> Stop:
        return Stop(
            error
            or RateLimitExceeded(
                f"Exceeded maximum retry attempts ({self.config.max_retries}) for rate limiting"
            )
        )

    def decide(self, error_class: ErrorClass, state: RetryState) -> Union[Wait, Stop]:
        if not error_class.retryable:
            return Stop(error_class.error or ProviderError(f"{error_class.kind.value} failure"))

        if self.exhausted(state):
            return self.give_up(error_class.error)

        if error_class.kind is ErrorKind.RATE_LIMITED and error_class.hint and error_class.hint > 0:
            return Wait(error_class.hint, state.held())

        delay = min(state.current_delay, self.config.max_delay)
        return Wait(delay, state.advanced(self.config.multiplier))


def coerce_policy(policy: Union[object, None]) -> RetryPolicy:
    """Turn None | RetryConfig | RetryPolicy into a RetryPolicy."""
    if policy is None:
        return RetryPolicy()
    if isinstance(policy, RetryPolicy):
        return policy
    if isinstance(policy, RetryConfig):
        return RetryPolicy(policy)
    raise TypeError("policy must be None, a RetryConfig or a RetryPolicy")
