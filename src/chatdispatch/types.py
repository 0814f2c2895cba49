from dataclasses import dataclass, field
from enum import Enum

DEFAULT_API_VERSION = "2024-10-21"
DEFAULT_MODEL = "gpt-4o"


class CredentialMode(Enum):
    API_KEY = "api_key"
    DEFAULT_CHAIN = "default_chain"


@dataclass(frozen=True)
class Credential:
    mode: CredentialMode
    # Only set in API_KEY mode
    secret: str | None = field(default=None, repr=False)


@dataclass(frozen=True)
class Token:
    value: str = field(repr=False)
    mode: CredentialMode
    # POSIX timestamp; None for static keys
    expires_on: float | None = None


@dataclass(frozen=True)
class AuthConfig:
    header: str = "Authorization"
    scheme: str = "Bearer"


@dataclass(frozen=True)
class EndpointConfig:
    base_url: str
    deployment_name: str
    api_version: str = DEFAULT_API_VERSION


@dataclass(frozen=True)
class RetryConfig:
    max_retries: int = 5
    # Backoff, in seconds
    initial_delay: float = 1.0
    max_delay: float = 32.0
    multiplier: float = 2.0

    # HTTP client timeout for a single send
    timeout: float = 600.0


@dataclass
class Usage:
    input_tokens: int | None = None
    output_tokens: int | None = None
    total_tokens: int | None = None


@dataclass
class ProviderUsage:
    model: str
    usage: Usage = field(default_factory=Usage)
