from urllib.parse import urlencode, urlsplit, urlunsplit

from .errors import TransportFailed
from .types import EndpointConfig

CHAT_COMPLETIONS_PATH = "/openai/deployments/{deployment}/chat/completions"


def build_url(config: EndpointConfig) -> str:
    """Compose the chat-completions URL for a deployment.

    Trailing slashes on the configured base path are dropped, so
    ``https://host`` and ``https://host/`` produce the same URL. Any query on
    the base is replaced by ``api-version``.
    """
    parts = urlsplit(config.base_url.strip())
    if not parts.scheme or not parts.netloc:
        raise TransportFailed(f"Invalid base URL: {config.base_url!r}")
    existing = parts.path.rstrip("/")
    path = existing + CHAT_COMPLETIONS_PATH.format(deployment=config.deployment_name)
    query = urlencode({"api-version": config.api_version})
    return urlunsplit((parts.scheme, parts.netloc, path, query, ""))
