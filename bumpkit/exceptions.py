"""Exception hierarchy for bumpkit.

Every error carries a stable ``code`` so callers can discriminate failures,
and renders as ``code: message: context: cause`` for humans.
"""

from __future__ import annotations

from typing import Optional


class BumpkitError(Exception):
    """Base exception for all bumpkit failures."""

    code = "runtime_error"
    message = "runtime error occurred"

    def __init__(self, context: str = "") -> None:
        super().__init__(context)
        self.context = context

    def __str__(self) -> str:
        parts = [self.code, self.message]
        if self.context:
            parts.append(self.context)
        cause = self.__cause__
        if cause is not None and str(cause):
            parts.append(str(cause))
        return ": ".join(parts)


class ConfigError(BumpkitError):
    """Invalid or missing configuration (fatal at startup)."""

    code = "config_error"
    message = "configuration error"


class InputError(BumpkitError):
    """Malformed user or caller input."""

    code = "input_error"
    message = "invalid input"


class NoChangesError(BumpkitError):
    """No eligible files were found in the working tree."""

    code = "no_changes"
    message = "no changes to process"


class GitError(BumpkitError):
    """A repository operation failed."""

    code = "git_error"
    message = "git operation failed"


class LLMError(BumpkitError):
    """Transport, decoding or empty-response failure."""

    code = "llm_error"
    message = "LLM operation failed"


class LLMStatusError(LLMError):
    """The LLM endpoint answered with a non-success status."""

    code = "llm_status"
    message = "LLM returned an error status"

    def __init__(
        self,
        context: str = "",
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(context)
        self.status_code = status_code
        self.body = body


class LLMGenFailedError(LLMError):
    """The retry loop ran out of attempts without a valid message."""

    code = "llm_gen_failed"
    message = "failed to generate a valid commit message"

    def __init__(self, diagnosis: str, attempts: int) -> None:
        super().__init__(f"{diagnosis} (after {attempts} attempts)")
        self.diagnosis = diagnosis
        self.attempts = attempts


class TemplateError(BumpkitError):
    """A prompt template failed to parse or referenced a missing key."""

    code = "template_error"
    message = "template operation failed"


class ValidationError(BumpkitError):
    """A commit message or version suggestion failed validation."""

    code = "validate_error"
    message = "validation failed"


class VersionError(BumpkitError):
    """The version workflow is in a state that forbids the operation."""

    code = "version_error"
    message = "version operation failed"


class BumpkitTimeoutError(BumpkitError, TimeoutError):
    """A deadline was exceeded or the operation was cancelled."""

    code = "timeout_error"
    message = "operation timed out"
