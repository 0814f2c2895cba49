from dataclasses import dataclass


@dataclass(frozen=True)
class RetryState:
    attempt: int
    current_delay: float

    def advanced(self, multiplier: float) -> "RetryState":
        return RetryState(self.attempt + 1, self.current_delay * multiplier)

    def held(self) -> "RetryState":
        # server hint: count the attempt, keep the exponential counter
        return RetryState(self.attempt + 1, self.current_delay)
