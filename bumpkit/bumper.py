"""Version bump analysis and application."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from .config import Config, VersionFile, get_active_config
from .context import Context, background
from .exceptions import NoChangesError, VersionError
from .functions import ANALYZE_VERSION_BUMP
from .git import GitRepo
from .llm import LLMClient
from .summary import ChangeSummarizer
from .version import DEFAULT_VERSION, Version, parse_suggestion, propose_version

logger = logging.getLogger(__name__)

NO_UNCOMMITTED_CHANGES = "no uncommitted changes"
# How far back to look for an existing bump commit.
RECENT_COMMIT_WINDOW = 10


def version_commit_message(version: Version) -> str:
    return f"chore(version): bump version to {version}"


@dataclass
class VersionWorkflowState:
    current: str
    proposed: str
    bump_kind: str = ""
    pre_release: str = ""
    files: List[str] = field(default_factory=list)
    has_tag: bool = False
    has_commit: bool = False
    needs_tag: bool = False
    needs_commit: bool = False
    sign: bool = False


class VersionBumper:
    """Determines, proposes and applies semantic version bumps."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
        debug: bool = False,
        *,
        git_repo: Optional[GitRepo] = None,
        llm_client: Optional[LLMClient] = None,
    ) -> None:
        self._config = config or get_active_config()
        self.git_repo = git_repo or GitRepo(repo_path, self._config)
        self._llm_client = llm_client
        self.debug = debug
        self.current, self.current_source = self.determine_current_version()
        self.proposed: Optional[Version] = None
        self.bump_kind = ""
        self.pre_release = ""

    @property
    def llm_client(self) -> LLMClient:
        # Built lazily; an initial or unchanged version needs no model.
        if self._llm_client is None:
            self._llm_client = LLMClient(self._config, debug=self.debug)
        return self._llm_client

    @property
    def files(self) -> List[VersionFile]:
        return list(self._config.version.files)

    def _path(self, rel: str) -> Path:
        return self.git_repo.repo_path / rel

    def determine_current_version(self) -> Tuple[Version, str]:
        """Resolve the current version and report where it came from.

        Order: the version file, then the highest ``v`` tag, then 0.1.0.
        """
        version_file = self._path(self._config.version.version_file)
        if version_file.is_file():
            text = version_file.read_text(encoding="utf-8").strip()
            try:
                version = Version.parse(text)
            except ValueError:
                logger.warning("Ignoring unparseable version file %s", version_file)
            else:
                logger.info("Current version %s determined from %s", version, version_file.name)
                return version, "file"

        tag = self.git_repo.find_last_version_tag()
        if tag:
            version = Version.parse(tag)
            logger.info("Current version %s determined from tag %s", version, tag)
            return version, "tag"

        logger.info("No version found, starting from %s", DEFAULT_VERSION)
        return DEFAULT_VERSION, "default"

    def _file_changes(self, ctx: Context) -> str:
        summarizer = ChangeSummarizer(self.git_repo, self.llm_client)
        try:
            summaries = summarizer.summarize(ctx)
        except NoChangesError:
            return NO_UNCOMMITTED_CHANGES
        return "\n".join(f"{item.path}: {item.summary}" for item in summaries)

    def commit_history(self) -> List[str]:
        last_tag = self.git_repo.find_last_version_tag()
        if last_tag:
            return self.git_repo.get_commit_messages_since(last_tag)
        return self.git_repo.get_all_commit_messages()

    def _has_worktree_changes(self) -> bool:
        return any(
            not self.git_repo.should_ignore(entry.path)
            for entry in self.git_repo.list_status()
        )

    def analyze_version_change(self, ctx: Optional[Context] = None) -> Version:
        """Ask the model for a bump and store the resulting proposal.

        Raises:
            ValidationError: the suggestion cannot be parsed or does not advance.
        """
        ctx = ctx or background()
        ctx.check("version analysis")

        if self.current_source == "default":
            logger.info("Initial version, proposing %s", self.current)
            return self._set_proposal(self.current, "", "")

        history = self.commit_history()
        if not self._has_worktree_changes():
            if not history:
                logger.info("No changes since last version, keeping %s", self.current)
                return self._set_proposal(self.current, "", "")
            file_changes = NO_UNCOMMITTED_CHANGES
        else:
            file_changes = self._file_changes(ctx)

        suggestion = self.llm_client.call(
            ANALYZE_VERSION_BUMP,
            {
                "current_version": str(self.current),
                "file_changes": file_changes,
                "commit_history": "\n".join(history),
                "breaking_keywords": list(self._config.version.breaking_keywords),
                "feature_keywords": list(self._config.version.feature_keywords),
            },
            ctx,
        )
        suggestion = suggestion.strip().split("\n", 1)[0].strip()
        logger.info("Version suggestion: %s", suggestion)
        kind, pre = parse_suggestion(suggestion, self.current)
        return self._set_proposal(propose_version(self.current, kind, pre), kind, pre)

    def propose_version_change(self, kind: str, pre_release: str = "") -> Version:
        """Propose a bump chosen by the caller instead of the model."""
        proposed = propose_version(self.current, kind, pre_release)
        return self._set_proposal(proposed, "" if kind == "none" else kind, pre_release)

    def _set_proposal(self, proposed: Version, kind: str, pre: str) -> Version:
        self.proposed = proposed
        self.bump_kind = kind
        self.pre_release = pre
        return proposed

    def clear_proposed_version(self) -> None:
        self.proposed = None
        self.bump_kind = ""
        self.pre_release = ""

    def _require_proposal(self) -> Version:
        if self.proposed is None:
            raise VersionError("no proposed version")
        return self.proposed

    def check_version_objects(self, version: Version) -> Tuple[bool, bool]:
        """Return ``(has_tag, has_commit)`` for ``version``."""
        has_tag = self.git_repo.has_tag(version.tag)
        expected = version_commit_message(version)
        recent = self.git_repo.get_recent_commit_subjects(RECENT_COMMIT_WINDOW)
        return has_tag, expected in recent

    def get_workflow_state(self) -> VersionWorkflowState:
        proposed = self._require_proposal()
        has_tag, has_commit = self.check_version_objects(proposed)
        git_cfg = self._config.version.git
        return VersionWorkflowState(
            current=str(self.current),
            proposed=str(proposed),
            bump_kind=self.bump_kind,
            pre_release=self.pre_release,
            files=[f.path for f in self.files],
            has_tag=has_tag,
            has_commit=has_commit,
            needs_tag=git_cfg.tag and not has_tag,
            needs_commit=bool(self.files) and git_cfg.commit and not has_commit,
            sign=git_cfg.sign,
        )

    def update_files(self, old: Version, new: Version) -> List[str]:
        """Rewrite configured files from ``old`` to ``new``; return changed paths."""
        changed: List[str] = []
        for entry in self.files:
            path = self._path(entry.path)
            logger.info("Updating version in %s", entry.path)
            try:
                content = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise VersionError(f"failed to read {entry.path}") from exc
            updated = content
            for pattern in entry.replace:
                updated = updated.replace(
                    pattern.replace("{version}", str(old)),
                    pattern.replace("{version}", str(new)),
                )
            if updated != content:
                try:
                    path.write_text(updated, encoding="utf-8")
                except OSError as exc:
                    raise VersionError(f"failed to write {entry.path}") from exc
                changed.append(entry.path)
        return changed

    def apply_version_change(self, ctx: Optional[Context] = None) -> VersionWorkflowState:
        """Update files, commit and tag as configured, skipping done steps.

        Raises:
            VersionError: there is no proposal to apply.
        """
        ctx = ctx or background()
        ctx.check("version apply")
        state = self.get_workflow_state()
        proposed = self._require_proposal()

        if not state.needs_tag and not state.needs_commit:
            logger.debug("No git changes required for %s", proposed)

        # Rewrites only match the old version text.
        if self.files and not state.has_commit:
            self.update_files(self.current, proposed)
        if state.needs_commit:
            self.git_repo.commit(
                version_commit_message(proposed),
                [f.path for f in self.files],
                sign=state.sign,
            )
        ctx.check("version apply")
        if state.needs_tag:
            self.git_repo.create_tag(proposed.tag, f"Version {proposed}", sign=state.sign)

        logger.info(
            "Version bump to %s completed (commit=%s, tag=%s)",
            proposed,
            state.needs_commit,
            state.needs_tag,
        )
        return self.get_workflow_state()
