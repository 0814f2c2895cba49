import asyncio
import json
import logging
import time
from typing import Any, Union

from .adapters import HttpxTransport, RequestsTransport, TransportResponse
from .credentials import (
    AUTH_CONFIGS,
    TokenSource,
    auth_headers,
    make_token_source,
    resolve_credential,
)
from .endpoint import build_url
from .env import DEFAULT_PREFIX, load_settings_from_env
from .errors import (
    AuthError,
    ConfigError,
    ProviderError,
    RateLimitExceeded,
    RequestTimedOut,
    TransportFailed,
    UpstreamError,
)
from .policies import ErrorClass, ErrorKind, Stop, coerce_policy, retry_hint
from .types import EndpointConfig, RetryConfig

# ---------- Common helpers ----------


def _error_message(resp: TransportResponse) -> str:
    """Best-effort human message from an error response body."""
    try:
        body = json.loads(resp.text) if resp.text else None
    except ValueError:
        body = None
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        if body.get("message"):
            return str(body["message"])
    if resp.text:
        return resp.text.strip()[:500]
    return f"HTTP {resp.status_code}"


def classify_response(resp: TransportResponse) -> Union[dict, ErrorClass]:
    """Return the decoded body for a 2xx JSON response, else its ErrorClass."""
    if 200 <= resp.status_code < 300:  # noqa: PLR2004, http status range
        try:
            body = json.loads(resp.text)
        except ValueError:
            body = None
        if isinstance(body, dict):
            return body
        return ErrorClass(
            ErrorKind.TERMINAL,
            UpstreamError(resp.status_code, "Response body is not a JSON object", resp.text),
        )
    message = _error_message(resp)
    if resp.status_code == 429:  # noqa: PLR2004, http status code can be constant
        hint = retry_hint(resp.headers, message)
        return ErrorClass(
            ErrorKind.RATE_LIMITED, RateLimitExceeded(message, retry_after=hint), hint
        )
    return ErrorClass(ErrorKind.TERMINAL, UpstreamError(resp.status_code, message, resp.text))


def classify_exception(error: ProviderError) -> ErrorClass:
    if isinstance(error, RequestTimedOut):
        return ErrorClass(ErrorKind.TIMED_OUT, error)
    if isinstance(error, TransportFailed):
        return ErrorClass(ErrorKind.TRANSPORT_FAILED, error)
    return ErrorClass(ErrorKind.TERMINAL, error)


# ---------- Base dispatcher (shared logic; I/O handled by subclasses) ----------


class _DispatcherBase:
    def __init__(
        self,
        endpoint: EndpointConfig,
        api_key: Union[str, None] = None,
        log_level: Union[int, None] = None,
        **kwargs,
    ):
        """Initialize a dispatcher.

        Args:
            endpoint (EndpointConfig): base URL, deployment and api version
            api_key (str | None): static key; None selects the default credential chain
            log_level (int | None): level for the "chatdispatch" logger
            kwargs:
            - token_source: TokenSource (overrides the one derived from api_key)
            - transport: transport adapter
            - retry_config: RetryConfig object
            - policy: RetryPolicy | RetryConfig
            - sleep: replacement for the backoff sleep function
            - scope / credential / async_credential: forwarded to the default chain
        """
        self.endpoint = endpoint
        self.credential = resolve_credential(api_key)
        rconf = kwargs.get("retry_config")
        self._policy = coerce_policy(kwargs.get("policy") or rconf)
        self.retry_config: RetryConfig = self._policy.config
        token_source = kwargs.get("token_source")
        if token_source is None:
            chain_kwargs = {
                k: kwargs[k] for k in ("scope", "credential", "async_credential") if k in kwargs
            }
            token_source = make_token_source(self.credential, **chain_kwargs)
        elif getattr(token_source, "mode", self.credential.mode) is not self.credential.mode:
            raise ConfigError(
                f"token_source mode {token_source.mode.value} does not match "
                f"credential mode {self.credential.mode.value}"
            )
        self.token_source: TokenSource = token_source
        self._logger = logging.getLogger("chatdispatch")
        if log_level is not None:
            self._logger.setLevel(log_level)

    @property
    def policy(self):
        return self._policy

    def describe(self) -> dict[str, str]:
        """Non-secret view of the configuration (safe to log or serialize)."""
        return {
            "endpoint": self.endpoint.base_url,
            "deployment_name": self.endpoint.deployment_name,
            "api_version": self.endpoint.api_version,
        }

    def __repr__(self):
        fields = ", ".join(f"{k}={v!r}" for k, v in self.describe().items())
        return f"{type(self).__name__}({fields})"

    def _headers(self, token) -> dict[str, str]:
        return {"Content-Type": "application/json", **auth_headers(token, self.credential.mode)}

    def _log_send(self, attempt: int, url: str):
        self._logger.debug(
            f"req start attempt={attempt} url={url} deployment={self.endpoint.deployment_name} "
            f"api_version={self.endpoint.api_version} auth={self.credential.mode.value} "
            f"header={AUTH_CONFIGS[self.credential.mode].header}"
        )

    def _give_up(self, state, last: Union[ErrorClass, None]) -> ProviderError:
        error = self._policy.give_up(last.error if last else None).error
        self._logger.error(
            f"giving up after attempts={state.attempt} max_retries={self._policy.max_retries}: "
            f"{error}"
        )
        return error

    def _log_success(self, attempt: int):
        self._logger.info(
            f"response received deployment={self.endpoint.deployment_name} attempts={attempt}"
        )

    def _log_decision(self, attempt: int, outcome: ErrorClass, decision):
        if isinstance(decision, Stop):
            self._logger.error(
                f"request failed attempt={attempt} kind={outcome.kind.value}: {decision.error}"
            )
            return
        source = "server hint" if outcome.hint else "backoff"
        self._logger.warning(
            f"{outcome.kind.value} attempt={attempt}/{self._policy.max_retries + 1}; "
            f"retrying after {decision.delay:.2f}s ({source})"
        )


# ---------- Sync dispatcher (requests) ----------


class Dispatcher(_DispatcherBase):
    def __init__(self, endpoint: EndpointConfig, api_key: Union[str, None] = None, **kwargs):
        super().__init__(endpoint, api_key, **kwargs)
        self.transport = kwargs.get("transport") or RequestsTransport(
            timeout=self.retry_config.timeout
        )
        self._sleep = kwargs.get("sleep") or time.sleep

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_PREFIX, env_path: Union[str, None] = None, **kwargs):
        settings = load_settings_from_env(prefix=prefix, env_path=env_path)
        kwargs.setdefault("retry_config", settings.retry)
        return cls(settings.endpoint, settings.api_key, **kwargs)

    def close(self):
        self.transport.close()
        self.token_source.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def _attempt(self, url: str, payload, attempt: int) -> Union[dict, ErrorClass]:
        try:
            token = self.token_source.fetch()
        except AuthError as e:
            return ErrorClass(ErrorKind.TERMINAL, e)
        self._log_send(attempt, url)
        try:
            resp = self.transport.send(url, self._headers(token), payload)
        except ProviderError as e:
            return classify_exception(e)
        self._logger.debug(f"req done attempt={attempt} status={resp.status_code}")
        return classify_response(resp)

    def execute(self, payload) -> dict[str, Any]:
        url = build_url(self.endpoint)
        state = self._policy.initial_state()
        last = None
        while True:
            if self._policy.exhausted(state):
                raise self._give_up(state, last)
            attempt = state.attempt + 1
            outcome = self._attempt(url, payload, attempt)
            if not isinstance(outcome, ErrorClass):
                self._log_success(attempt)
                return outcome
            decision = self._policy.decide(outcome, state)
            self._log_decision(attempt, outcome, decision)
            if isinstance(decision, Stop):
                raise decision.error
            self._sleep(decision.delay)
            state, last = decision.state, outcome


# ---------- Async dispatcher (httpx/aiohttp) ----------


class AsyncDispatcher(_DispatcherBase):
    def __init__(self, endpoint: EndpointConfig, api_key: Union[str, None] = None, **kwargs):
        super().__init__(endpoint, api_key, **kwargs)
        self.transport = kwargs.get("transport") or HttpxTransport(
            timeout=self.retry_config.timeout
        )
        self._sleep = kwargs.get("sleep") or asyncio.sleep

    @classmethod
    def from_env(cls, prefix: str = DEFAULT_PREFIX, env_path: Union[str, None] = None, **kwargs):
        settings = load_settings_from_env(prefix=prefix, env_path=env_path)
        kwargs.setdefault("retry_config", settings.retry)
        return cls(settings.endpoint, settings.api_key, **kwargs)

    async def aclose(self):
        await self.transport.aclose()
        await self.token_source.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
        return False

    async def _attempt(self, url: str, payload, attempt: int) -> Union[dict, ErrorClass]:
        # fresh token every attempt; a backoff sleep may outlive the previous one
        try:
            token = await self.token_source.afetch()
        except AuthError as e:
            return ErrorClass(ErrorKind.TERMINAL, e)
        self._log_send(attempt, url)
        try:
            resp = await self.transport.send(url, self._headers(token), payload)
        except ProviderError as e:
            return classify_exception(e)
        self._logger.debug(f"req done attempt={attempt} status={resp.status_code}")
        return classify_response(resp)

    async def execute(self, payload) -> dict[str, Any]:
        """POST ``payload`` to the deployment, retrying rate limits and timeouts.

        Returns the decoded JSON body. Raises the ProviderError subclass that
        ended the call: the first terminal error, or the last retryable one once
        ``max_retries`` is used up. Cancellation propagates from the send or the
        backoff sleep without further attempts.
        """
        url = build_url(self.endpoint)
        state = self._policy.initial_state()
        last = None
        while True:
            if self._policy.exhausted(state):
                raise self._give_up(state, last)
            attempt = state.attempt + 1
            outcome = await self._attempt(url, payload, attempt)
            if not isinstance(outcome, ErrorClass):
                self._log_success(attempt)
                return outcome
            decision = self._policy.decide(outcome, state)
            self._log_decision(attempt, outcome, decision)
            if isinstance(decision, Stop):
                raise decision.error
            await self._sleep(decision.delay)
            state, last = decision.state, outcome
