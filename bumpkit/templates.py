"""Prompt template rendering.

Templates are Jinja2 with ``StrictUndefined`` so a reference to a key that
is not present in the input map is an error rather than an empty string.
Go-template style placeholders (``{{.name}}``) are accepted for
compatibility with configuration files written for other tools.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping

from jinja2 import Environment, StrictUndefined, TemplateSyntaxError, UndefinedError

from .exceptions import TemplateError

logger = logging.getLogger(__name__)

_GO_PLACEHOLDER = re.compile(r"\{\{-?\s*\.([A-Za-z_][A-Za-z0-9_]*)\s*-?\}\}")


def _finalize(value: Any) -> Any:
    # Lists render as their natural text: "a, b, c".
    if isinstance(value, (list, tuple)):
        return ", ".join(str(item) for item in value)
    return value


_ENV = Environment(
    undefined=StrictUndefined,
    finalize=_finalize,
    keep_trailing_newline=True,
    autoescape=False,
)


def normalize_placeholders(text: str) -> str:
    """Rewrite ``{{.name}}`` placeholders to Jinja2 ``{{ name }}``."""
    return _GO_PLACEHOLDER.sub(r"{{ \1 }}", text)


def render(name: str, text: str, inputs: Mapping[str, Any]) -> str:
    """Render template ``text`` against ``inputs``.

    Raises:
        TemplateError: on a syntax error or a reference to a missing key.
    """
    source = normalize_placeholders(text)
    try:
        template = _ENV.from_string(source)
    except TemplateSyntaxError as exc:
        raise TemplateError(f"failed to parse template '{name}'") from exc
    try:
        result = template.render(**dict(inputs))
    except UndefinedError as exc:
        raise TemplateError(
            f"failed to execute template '{name}' (keys: {sorted(inputs)})"
        ) from exc
    logger.debug("Rendered template %s (%d chars)", name, len(result))
    return result
