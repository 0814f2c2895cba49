from .adapters import AiohttpTransport, HttpxTransport, RequestsTransport, TransportResponse
from .credentials import (
    ApiKeyTokenSource,
    DefaultChainTokenSource,
    TokenSource,
    auth_headers,
    make_token_source,
    resolve_credential,
)
from .dispatcher import AsyncDispatcher, Dispatcher
from .endpoint import build_url
from .env import Settings, load_settings_from_env
from .errors import (
    AuthError,
    ConfigError,
    ProviderError,
    RateLimitExceeded,
    RequestTimedOut,
    TransportFailed,
    UpstreamError,
    UsageUnavailable,
)
from .policies import ErrorClass, ErrorKind, RetryPolicy, Stop, Wait, coerce_policy
from .provider import ChatProvider
from .state import RetryState
from .types import (
    AuthConfig,
    Credential,
    CredentialMode,
    EndpointConfig,
    ProviderUsage,
    RetryConfig,
    Token,
    Usage,
)

__all__ = [
    "EndpointConfig",
    "RetryConfig",
    "AuthConfig",
    "Credential",
    "CredentialMode",
    "Token",
    "Usage",
    "ProviderUsage",
    "RetryState",
    "RetryPolicy",
    "ErrorClass",
    "ErrorKind",
    "Wait",
    "Stop",
    "coerce_policy",
    "TokenSource",
    "ApiKeyTokenSource",
    "DefaultChainTokenSource",
    "resolve_credential",
    "make_token_source",
    "auth_headers",
    "build_url",
    "Dispatcher",
    "AsyncDispatcher",
    "ChatProvider",
    "TransportResponse",
    "RequestsTransport",
    "HttpxTransport",
    "AiohttpTransport",
    "Settings",
    "load_settings_from_env",
    "ProviderError",
    "AuthError",
    "RateLimitExceeded",
    "RequestTimedOut",
    "TransportFailed",
    "UpstreamError",
    "UsageUnavailable",
    "ConfigError",
]
