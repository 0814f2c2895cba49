class ProviderError(Exception):
    """Base class for every failure surfaced by a dispatcher."""


class AuthError(ProviderError):
    """Credential or token fetch failed. Never retried."""


class RateLimitExceeded(ProviderError):
    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class RequestTimedOut(ProviderError):
    pass


class TransportFailed(ProviderError):
    """Connection refused, DNS failure, malformed URL and similar."""


class UpstreamError(ProviderError):
    def __init__(self, status_code: int, message: str, body: str | None = None):
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body


class UsageUnavailable(ProviderError):
    """The response carried no usable token accounting."""


class ConfigError(ValueError):
    pass
