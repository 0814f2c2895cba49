import asyncio
import logging
import threading
import time
from typing import Union

from .errors import AuthError
from .types import AuthConfig, Credential, CredentialMode, Token

COGNITIVE_SERVICES_SCOPE = "https://cognitiveservices.azure.com/.default"
# Refresh cached bearer tokens this many seconds before they expire
TOKEN_REFRESH_MARGIN = 300.0

# Header placement per credential mode; every CredentialMode must appear here.
AUTH_CONFIGS: dict[CredentialMode, AuthConfig] = {
    CredentialMode.API_KEY: AuthConfig(header="api-key", scheme=""),
    CredentialMode.DEFAULT_CHAIN: AuthConfig(header="Authorization", scheme="Bearer"),
}

logger = logging.getLogger("chatdispatch")


def resolve_credential(api_key: Union[str, None]) -> Credential:
    """Pick the credential mode from whether an API key is configured.

    A missing or empty key selects the default credential chain; that is a
    valid configuration, not an error.
    """
    if api_key:
        return Credential(CredentialMode.API_KEY, api_key)
    return Credential(CredentialMode.DEFAULT_CHAIN)


def auth_headers(token: Token, mode: Union[CredentialMode, None] = None) -> dict[str, str]:
    """Header carrying ``token``, placed for ``mode`` (the token's own mode by default)."""
    ac = AUTH_CONFIGS[mode or token.mode]
    return {ac.header: f"{ac.scheme} {token.value}".strip()}


class TokenSource:
    """Produces a currently valid token on demand.

    Subclasses implement ``fetch``; ``afetch`` defaults to calling it directly,
    which is fine for sources that never block.
    """

    mode: CredentialMode

    def fetch(self) -> Token:
        raise NotImplementedError

    async def afetch(self) -> Token:
        return self.fetch()

    def close(self) -> None:
        pass

    async def aclose(self) -> None:
        pass


class ApiKeyTokenSource(TokenSource):
    mode = CredentialMode.API_KEY

    def __init__(self, secret: str):
        if not secret:
            raise AuthError("API key mode requires a non-empty key")
        self._secret = secret

    def fetch(self) -> Token:
        return Token(self._secret, self.mode)


class DefaultChainTokenSource(TokenSource):
    """Bearer tokens from the Azure default credential chain.

    Environment credentials, managed identity, the Azure CLI and the other
    links of ``DefaultAzureCredential`` are tried in order by azure-identity.
    Tokens are cached until they get within ``refresh_margin`` of expiry.

    Args:
        scope: OAuth scope requested for each token
        credential: sync credential with ``get_token(scope)``; created lazily
        async_credential: async credential with ``await get_token(scope)``;
            created lazily
        refresh_margin: seconds before expiry at which a cached token is renewed
    """

    mode = CredentialMode.DEFAULT_CHAIN

    def __init__(
        self,
        scope: str = COGNITIVE_SERVICES_SCOPE,
        credential=None,
        async_credential=None,
        refresh_margin: float = TOKEN_REFRESH_MARGIN,
    ):
        self.scope = scope
        self.refresh_margin = refresh_margin
        self._credential = credential
        self._async_credential = async_credential
        self._own_credential = credential is None
        self._own_async_credential = async_credential is None
        self._cached: Union[Token, None] = None
        self._lock = threading.Lock()
        self._alock: Union[asyncio.Lock, None] = None

    def _still_valid(self, now: float) -> Union[Token, None]:
        tok = self._cached
        if tok is None or tok.expires_on is None:
            return None
        if tok.expires_on - self.refresh_margin <= now:
            return None
        return tok

    def _store(self, access_token) -> Token:
        tok = Token(
            access_token.token,
            self.mode,
            float(access_token.expires_on) if access_token.expires_on else None,
        )
        self._cached = tok
        return tok

    def fetch(self) -> Token:
        with self._lock:
            cached = self._still_valid(time.time())
            if cached is not None:
                return cached
            if self._credential is None:
                from azure.identity import DefaultAzureCredential  # noqa: PLC0415

                self._credential = DefaultAzureCredential()
            try:
                access_token = self._credential.get_token(self.scope)
            except Exception as e:
                logger.error(f"token fetch failed scope={self.scope}: {e}")
                raise AuthError(f"Failed to get authentication token: {e}") from e
            logger.debug(f"fetched bearer token scope={self.scope}")
            return self._store(access_token)

    async def afetch(self) -> Token:
        if self._alock is None:
            self._alock = asyncio.Lock()
        async with self._alock:
            cached = self._still_valid(time.time())
            if cached is not None:
                return cached
            if self._async_credential is None:
                from azure.identity.aio import DefaultAzureCredential  # noqa: PLC0415

                self._async_credential = DefaultAzureCredential()
            try:
                access_token = await self._async_credential.get_token(self.scope)
            except Exception as e:
                logger.error(f"token fetch failed scope={self.scope}: {e}")
                raise AuthError(f"Failed to get authentication token: {e}") from e
            logger.debug(f"fetched bearer token scope={self.scope}")
            return self._store(access_token)

    def close(self) -> None:
        if self._own_credential and self._credential is not None:
            self._credential.close()
            self._credential = None

    async def aclose(self) -> None:
        if self._own_async_credential and self._async_credential is not None:
            await self._async_credential.close()
            self._async_credential = None


def make_token_source(resolved: Credential, **kwargs) -> TokenSource:
    """Build the token source matching a resolved credential.

    kwargs are forwarded to DefaultChainTokenSource (scope, credential, ...).
    """
    if resolved.mode is CredentialMode.API_KEY:
        return ApiKeyTokenSource(resolved.secret)
    return DefaultChainTokenSource(**kwargs)
