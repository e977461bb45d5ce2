"""Commit message generation logic for bumpkit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .config import Config, get_active_config
from .context import Context, background
from .exceptions import BumpkitError, LLMGenFailedError, ValidationError
from .functions import GENERATE_COMMIT_MESSAGE, RETRY_COMMIT_MESSAGE
from .git import GitRepo
from .llm import LLMClient
from .summary import ChangeSummarizer, FileSummary, build_aggregate
from .validation import clean_commit_message, validate_commit_message

logger = logging.getLogger(__name__)


@dataclass
class CommitWorkflowState:
    """Snapshot of the interactive commit workflow."""

    message: str = ""
    files: List[str] = field(default_factory=list)
    has_changes: bool = False
    is_message_valid: bool = False
    last_error: str = ""
    can_commit: bool = False
    manually_edited: bool = False


class CommitGenerator:
    """Generates Conventional Commits messages for the working tree."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
        debug: bool = False,
        *,
        git_repo: Optional[GitRepo] = None,
        llm_client: Optional[LLMClient] = None,
    ) -> None:
        """Initialize the commit generator.

        Args:
            repo_path: Path to the Git repository. Defaults to config value.
            config: Optional configuration override.
            debug: Whether to enable debug output for LLM requests.
            git_repo: Pre-built repository handle.
            llm_client: Pre-built LLM client.
        """

        self._config = config or get_active_config()
        self.git_repo = git_repo or GitRepo(repo_path, self._config)
        self.llm_client = llm_client or LLMClient(self._config, debug=debug)
        self.summarizer = ChangeSummarizer(self.git_repo, self.llm_client)
        self.debug = debug
        self._generated: str = ""
        self._files: List[str] = []
        self._manual: str = ""
        self._last_error: str = ""

    @property
    def max_attempts(self) -> int:
        return max(1, int(self._config.llm.max_retries))

    def validate(self, message: str) -> str:
        return validate_commit_message(message, self._config.git.preferred_line_length)

    def summarize(self, ctx: Context) -> Tuple[str, str, List[FileSummary]]:
        """Summarize the working tree into ``(aggregate, branch, summaries)``."""
        summaries = self.summarizer.summarize(ctx)
        logger.info("Analyzing changes in %d files", len(summaries))
        branch = self.git_repo.get_current_branch()
        return build_aggregate(branch, summaries), branch, summaries

    def generate_from_summary(self, summary: str, branch: str, ctx: Context) -> str:
        """Run the validated retry loop over an aggregate summary.

        Only validation failures are retried; LLM, template and timeout
        errors propagate on the spot.

        Raises:
            LLMGenFailedError: every attempt produced an invalid message.
        """
        ctx = ctx.with_timeout(self._config.llm.commit_msg_timeout)
        attempts = self.max_attempts
        first = self.llm_client.function(GENERATE_COMMIT_MESSAGE)
        retry = self.llm_client.function(RETRY_COMMIT_MESSAGE)

        previous = ""
        diagnosis = ""
        for attempt in range(1, attempts + 1):
            ctx.check("commit message generation")
            inputs = {"summary": summary, "branch": branch}
            if attempt == 1:
                logger.info("Generating commit message")
                spec = first
            else:
                logger.info(
                    "Retrying commit message generation (attempt %d/%d): %s",
                    attempt,
                    attempts,
                    diagnosis,
                )
                spec = retry
                inputs.update(previous=previous, error=diagnosis)

            raw = self.llm_client.call_function(spec, spec.select_inputs(inputs), ctx)
            message = clean_commit_message(raw)
            logger.info("Proposed commit message (attempt %d): %s", attempt, message)

            invalid = self.validate(message)
            if not invalid:
                return message
            logger.warning("Invalid commit message %r: %s", message, invalid)
            previous, diagnosis = message, invalid

        logger.warning(
            "Failed to generate valid commit message after %d attempts: %s",
            attempts,
            diagnosis,
        )
        raise LLMGenFailedError(diagnosis, attempts)

    def generate_commit_message(
        self, ctx: Optional[Context] = None
    ) -> Tuple[str, List[str]]:
        """Summarize changes and return ``(message, files)``.

        Raises:
            NoChangesError: nothing eligible in the working tree.
        """
        ctx = ctx or background()
        ctx.check("commit message generation")
        aggregate, branch, summaries = self.summarize(ctx)
        logger.debug("Aggregate summary:\n%s", aggregate)
        message = self.generate_from_summary(aggregate, branch, ctx)
        files = [item.path for item in summaries]
        self._generated = message
        self._files = files
        return message, files

    def get_workflow_state(self, ctx: Optional[Context] = None) -> CommitWorkflowState:
        """Return the current workflow state, generating a message on first use."""
        if self._manual:
            files = self._files or self._eligible_files()
            diagnosis = self.validate(self._manual)
            valid = not diagnosis
            return CommitWorkflowState(
                message=self._manual,
                files=files,
                has_changes=bool(files),
                is_message_valid=valid,
                last_error=diagnosis,
                can_commit=valid and bool(files),
                manually_edited=True,
            )

        if not self._generated:
            try:
                self.generate_commit_message(ctx)
                self._last_error = ""
            except BumpkitError as exc:
                self._last_error = str(exc)
                self._files = self._eligible_files()

        valid = bool(self._generated) and not self.validate(self._generated)
        return CommitWorkflowState(
            message=self._generated,
            files=list(self._files),
            has_changes=bool(self._files),
            is_message_valid=valid,
            last_error=self._last_error,
            can_commit=valid and bool(self._files),
        )

    def _eligible_files(self) -> List[str]:
        return [entry.path for entry in self.summarizer.eligible_entries()]

    def set_manual_message(self, text: str) -> None:
        self._manual = text.strip()

    def clear_manual_message(self) -> None:
        self._manual = ""

    def regenerate(self, ctx: Optional[Context] = None) -> CommitWorkflowState:
        """Discard the cached message and generate a new one."""
        self._generated = ""
        self._last_error = ""
        return self.get_workflow_state(ctx)

    def commit(self, ctx: Optional[Context] = None) -> str:
        """Stage the workflow files and commit the current message.

        Returns the message that was committed.

        Raises:
            ValidationError: the current message is invalid or nothing to commit.
        """
        state = self.get_workflow_state(ctx)
        if not state.has_changes:
            raise ValidationError("nothing to commit")
        if not state.is_message_valid:
            raise ValidationError(
                f"refusing to commit invalid message: {state.last_error or state.message}"
            )
        self.git_repo.commit(state.message, state.files)
        self._generated = ""
        self._files = []
        self._manual = ""
        return state.message
