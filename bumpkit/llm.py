"""LLM integration for bumpkit.

``LLMClient`` turns a function spec and an input map into one model call:
inputs are narrowed to what the spec declares, both prompts are rendered
strictly, the driver performs the exchange and any ``summary``/``message``/
``content`` JSON envelope is unwrapped from the answer.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

from . import templates
from .config import SUPPORTED_PROVIDERS, Config, get_active_config
from .context import Context
from .exceptions import ConfigError, InputError, LLMError
from .functions import FunctionRegistry, FunctionSpec
from .providers.base import BaseDriver
from .providers.openai_driver import OpenAICompatibleDriver
from .response import unwrap_result

logger = logging.getLogger(__name__)


class LLMClient:
    """Provider-aware client for function-style LLM calls."""

    def __init__(
        self,
        config: Optional[Config] = None,
        debug: bool = False,
        *,
        driver: Optional[BaseDriver] = None,
        registry: Optional[FunctionRegistry] = None,
    ) -> None:
        self.debug = debug
        self.config = config or get_active_config()
        self.provider = self.config.llm.provider
        self.model = self.config.llm.model
        self.registry = registry or self.config.function_registry()

        if driver is not None:
            self._driver = driver
        elif self.provider in SUPPORTED_PROVIDERS:
            self._driver = OpenAICompatibleDriver(self.config.llm, debug=debug)
        else:
            raise ConfigError(f"unsupported provider: {self.provider}")

    @property
    def driver(self) -> BaseDriver:
        return self._driver

    def function(self, name: str) -> FunctionSpec:
        return self.registry.get(name)

    def call(self, name: str, inputs: Mapping[str, Any], ctx: Context) -> str:
        """Look up function ``name`` and call it."""
        return self.call_function(self.registry.get(name), inputs, ctx)

    def call_function(
        self, spec: FunctionSpec, inputs: Mapping[str, Any], ctx: Context
    ) -> str:
        """Render ``spec`` against ``inputs`` and return the model's answer.

        Raises:
            InputError: a required input is missing.
            TemplateError: a prompt references an absent key or fails to parse.
            LLMError: the exchange failed or produced nothing usable.
        """
        ctx.check(f"LLM function {spec.name}")
        selected = spec.select_inputs(inputs)
        missing = spec.missing_inputs(selected)
        if missing:
            raise InputError(
                f"missing required input for '{spec.name}': " + ", ".join(missing)
            )

        if "file" in selected:
            logger.info(
                "Calling LLM function: %s (model=%s, file=%s)",
                spec.name,
                self.model,
                selected["file"],
            )
        else:
            logger.info("Calling LLM function: %s (model=%s)", spec.name, self.model)

        system_prompt = templates.render(f"{spec.name}.system", spec.system_prompt, selected)
        user_prompt = templates.render(f"{spec.name}.user", spec.user_prompt, selected)

        started = time.monotonic()
        raw = self._driver.generate(system_prompt, user_prompt, [spec], ctx)
        result = unwrap_result(raw).strip()
        logger.debug(
            "LLM function %s finished in %.2fs", spec.name, time.monotonic() - started
        )
        if not result:
            raise LLMError(f"empty result from function '{spec.name}'")
        return result

    def close(self) -> None:
        self._driver.close()
