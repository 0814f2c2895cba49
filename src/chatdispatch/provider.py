import inspect
import json
import logging
from collections.abc import Sequence
from typing import Any, Callable

from .errors import UsageUnavailable
from .types import DEFAULT_MODEL, ProviderUsage, Usage

logger = logging.getLogger("chatdispatch")


class ChatProvider:
    """Runs one chat completion through a dispatcher.

    The payload builder, response parser and usage extractor are supplied by the
    caller; this class only sequences them around ``execute``.

    Args:
        dispatcher: Dispatcher or AsyncDispatcher
        build_request_payload: (model, system, messages, tools) -> dict
        parse_response: (body) -> domain message
        extract_usage: (body) -> Usage; may raise UsageUnavailable
        model: model name used for the payload and as the reported fallback
    """

    def __init__(
        self,
        dispatcher,
        build_request_payload: Callable[..., dict],
        parse_response: Callable[[dict], Any],
        extract_usage: Callable[[dict], Usage],
        model: str = DEFAULT_MODEL,
    ):
        self.dispatcher = dispatcher
        self.build_request_payload = build_request_payload
        self.parse_response = parse_response
        self.extract_usage = extract_usage
        self.model = model
        self._async = inspect.iscoroutinefunction(getattr(dispatcher, "execute", None))

    def complete(self, system: str, messages: Sequence, tools: Sequence = ()):
        if self._async:
            raise RuntimeError("Use 'await acomplete(...)' with an AsyncDispatcher.")
        payload = self.build_request_payload(self.model, system, messages, tools)
        body = self.dispatcher.execute(payload)
        return self._finish(payload, body)

    async def acomplete(self, system: str, messages: Sequence, tools: Sequence = ()):
        if not self._async:
            raise RuntimeError("Use complete(...) with a sync Dispatcher.")
        payload = self.build_request_payload(self.model, system, messages, tools)
        body = await self.dispatcher.execute(payload)
        return self._finish(payload, body)

    def _finish(self, payload: dict, body: dict):
        message = self.parse_response(body)
        try:
            usage = self.extract_usage(body)
        except UsageUnavailable as e:
            logger.debug(f"usage unavailable, reporting zero usage: {e}")
            usage = Usage()
        model = body.get("model") or self.model
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"completion model={model} usage={usage} "
                f"input={json.dumps(payload, default=str)} output={json.dumps(body, default=str)}"
            )
        return message, ProviderUsage(model, usage)
