"""Conventional Commits header validation and LLM output cleanup."""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

VALID_TYPES = (
    "feat",
    "fix",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
    "chore",
    "ci",
    "build",
)
MAX_HEADER_LENGTH = 72
DEFAULT_PREFERRED_LINE_LENGTH = 72

SCOPE_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")
DESCRIPTION_PATTERN = re.compile(r"^[a-z][-a-z0-9 ]*[a-z0-9]$")

_ASSISTANT_PREFIXES = (
    "Here's a commit message:",
    "Commit message:",
    "Generated commit message:",
    "The commit message is:",
)


def clean_commit_message(message: str) -> str:
    """Normalize raw model output into a single candidate header line."""
    text = message.replace("`", "").replace('"', "").strip()
    for prefix in _ASSISTANT_PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):].strip()
    text = text.split("\n", 1)[0].strip()
    if text.endswith("."):
        text = text[:-1].rstrip()
    return text


def validate_commit_message(
    message: str, preferred_line_length: int = DEFAULT_PREFERRED_LINE_LENGTH
) -> str:
    """Check ``message`` against the Conventional Commits header grammar.

    Returns an empty string when the message is valid, otherwise a short
    diagnosis meant to be fed back to the model. Body lines longer than
    ``preferred_line_length`` are logged as warnings only.
    """
    if not message:
        return "empty message"

    lines = message.split("\n")
    header = lines[0]

    if len(header) > MAX_HEADER_LENGTH:
        return f"header too long ({len(header)} chars, max {MAX_HEADER_LENGTH})"

    if ":" not in header:
        return "missing colon separator"
    type_scope, rest = header.split(":", 1)

    commit_type = type_scope.split("(", 1)[0]
    if commit_type not in VALID_TYPES:
        return (
            f"invalid type '{commit_type}', must be one of: "
            + ", ".join(VALID_TYPES)
        )

    if "(" in type_scope:
        if not type_scope.endswith(")"):
            return "malformed scope - missing closing parenthesis"
        scope = type_scope[len(commit_type) + 1:-1]
        if not scope:
            return "empty scope"
        if not SCOPE_PATTERN.match(scope):
            return (
                "scope must be lowercase and contain only letters, "
                "numbers and hyphens"
            )
    elif type_scope != commit_type:
        return f"invalid type '{type_scope}', must be one of: " + ", ".join(VALID_TYPES)

    if not rest.startswith(" ") or rest.startswith("  "):
        return "must have exactly one space after colon"
    description = rest[1:]

    if description.endswith("."):
        return "description ends with period"
    if description != description.lower():
        return "description must be lowercase"
    if not DESCRIPTION_PATTERN.match(description):
        return (
            "description must start with lowercase letter and contain only "
            "lowercase letters, numbers, spaces and hyphens"
        )

    if len(lines) > 1:
        if lines[1] != "":
            return "must have blank line after header"
        for number, line in enumerate(lines[2:], start=3):
            if len(line) > preferred_line_length:
                logger.warning(
                    "Commit body line %d exceeds preferred length (%d > %d)",
                    number,
                    len(line),
                    preferred_line_length,
                )

    return ""


def is_valid_commit_message(
    message: str, preferred_line_length: int = DEFAULT_PREFERRED_LINE_LENGTH
) -> bool:
    diagnosis = validate_commit_message(message, preferred_line_length)
    if diagnosis:
        logger.warning("Invalid commit message %r: %s", message, diagnosis)
    return not diagnosis
