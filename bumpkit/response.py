"""Extraction of usable text from chat-completion responses."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping

from .exceptions import LLMError

_PREAMBLES = ("Here's a summary:", "Summary:", "Response:", "Result:")
_ENVELOPE_FIELDS = ("summary", "message", "content")


def _first_choice(response: Mapping[str, Any]) -> Mapping[str, Any]:
    choices = response.get("choices") or []
    if not choices:
        raise LLMError("no choices in response")
    first = choices[0] or {}
    return first.get("message") or {}


def _strip_preambles(text: str) -> str:
    for prefix in _PREAMBLES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
    return text


def extract_text(response: Mapping[str, Any]) -> str:
    """Return the raw payload carried by the first choice.

    A tool call's argument string wins over message content. Content is
    trimmed and stripped of backticks and conversational lead-ins.
    """
    message = _first_choice(response)
    tool_calls: List[Dict[str, Any]] = message.get("tool_calls") or []
    if tool_calls:
        function = tool_calls[0].get("function") or {}
        return str(function.get("arguments") or "")

    content = message.get("content")
    if content:
        text = str(content).strip().replace("`", "")
        return _strip_preambles(text.strip())

    raise LLMError("empty response from LLM")


def unwrap_result(raw: str) -> str:
    """Pull a ``summary``/``message``/``content`` field out of a JSON object.

    Anything that is not a JSON object carrying one of those fields is
    returned untouched.
    """
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError):
        return raw
    if not isinstance(decoded, dict):
        return raw
    for key in _ENVELOPE_FIELDS:
        value = decoded.get(key)
        if isinstance(value, str) and value:
            return value
    return raw
