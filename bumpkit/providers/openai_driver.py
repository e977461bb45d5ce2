from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import httpx

from ..context import Context
from ..exceptions import BumpkitTimeoutError, LLMError, LLMStatusError
from ..response import extract_text
from .base import BaseDriver
from .ratelimit import (
    RateLimitBudget,
    estimate_tokens,
    parse_retry_after,
    shared_budget,
)

if TYPE_CHECKING:  # pragma: no cover
    from ..config import LLMConfig
    from ..functions import FunctionSpec

logger = logging.getLogger(__name__)


class OpenAICompatibleDriver(BaseDriver):
    """Driver for OpenAI-compatible ``/chat/completions`` endpoints.

    Works against OpenAI itself and local servers such as Ollama or
    llama.cpp. Requests are paced by a shared :class:`RateLimitBudget`;
    a 429 answer is waited out and the same request is sent again.
    """

    def __init__(
        self,
        config: "LLMConfig",
        debug: bool = False,
        *,
        client: Optional[httpx.Client] = None,
        budget: Optional[RateLimitBudget] = None,
    ) -> None:
        super().__init__(config, debug)
        self._client = client or httpx.Client()
        self._owns_client = client is None
        self.budget = budget or shared_budget(config.base_url)
        self._request_timeout = float(config.request_timeout)

    @property
    def endpoint(self) -> str:
        return self.config.base_url.rstrip("/") + "/chat/completions"

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.config.resolve_api_key()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _timeout(self, ctx: Context) -> float:
        remaining = ctx.remaining()
        if remaining is None:
            return self._request_timeout
        return max(0.001, min(self._request_timeout, remaining))

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        functions: Sequence["FunctionSpec"],
        ctx: Context,
    ) -> str:
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        tools = [spec.to_tool() for spec in functions]
        return extract_text(self.complete(messages, tools, ctx))

    def complete(
        self,
        messages: List[Dict[str, str]],
        tools: List[Dict[str, Any]],
        ctx: Context,
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": self.config.model, "messages": messages}
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        body = json.dumps(payload).encode("utf-8")
        estimated = estimate_tokens(body)
        logger.info("Estimated token usage for request: %d", estimated)

        self.budget.wait_for_capacity(estimated, ctx)

        while True:
            ctx.check("LLM request")
            response = self._send(body, ctx)
            self.budget.update_from_headers(response.headers)

            if response.status_code == 429:
                wait = parse_retry_after(response.headers)
                logger.debug(
                    "Rate limit reached, waiting %.1fs before retry (estimated %d tokens)",
                    wait,
                    estimated,
                )
                ctx.sleep(wait, "rate limit wait")
                continue

            if response.status_code < 200 or response.status_code >= 300:
                text = response.text
                raise LLMStatusError(
                    f"HTTP {response.status_code}: {text}",
                    status_code=response.status_code,
                    body=text,
                )
            return self._decode(response)

    def _send(self, body: bytes, ctx: Context) -> httpx.Response:
        if self.debug:
            logger.debug("POST %s model=%s", self.endpoint, self.config.model)
        try:
            response = self._client.post(
                self.endpoint,
                content=body,
                headers=self._headers(),
                timeout=self._timeout(ctx),
            )
        except httpx.TimeoutException as exc:
            raise BumpkitTimeoutError("LLM request timed out") from exc
        except httpx.HTTPError as exc:
            raise LLMError("failed to send request") from exc
        # A cancellation may have arrived while the request was in flight.
        if ctx.cancelled:
            raise BumpkitTimeoutError("LLM request cancelled")
        return response

    @staticmethod
    def _decode(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMError("invalid response format") from exc
        if not isinstance(data, dict):
            raise LLMError("invalid response format")
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            raise LLMStatusError(
                str(error["message"]),
                status_code=response.status_code,
                body=response.text,
            )
        if not data.get("choices"):
            raise LLMError("no choices in response")
        return data

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
