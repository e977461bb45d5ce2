from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Sequence

from ..context import Context

if TYPE_CHECKING:  # pragma: no cover
    from ..config import LLMConfig
    from ..functions import FunctionSpec


class BaseDriver(ABC):
    """Abstract base for provider-specific chat completion transports.

    A driver owns the HTTP call pattern of one provider family: request
    shape, authentication, rate-limit handling and status mapping. Prompt
    rendering and envelope unwrapping stay in ``LLMClient`` so every
    provider is fed and read the same way.
    """

    def __init__(self, config: "LLMConfig", debug: bool = False) -> None:
        self.config = config
        self.debug = debug

    @abstractmethod
    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        functions: Sequence["FunctionSpec"],
        ctx: Context,
    ) -> str:
        """Return the assistant payload for one system/user exchange.

        Must raise ``LLMError`` (or a subclass) for transport, status and
        decoding failures, and ``BumpkitTimeoutError`` when ``ctx`` is
        cancelled or its deadline passes.
        """
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - default no-op
        """Release pooled connections, if any."""
