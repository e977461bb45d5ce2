"""Git operations for bumpkit."""

from __future__ import annotations

import fnmatch
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .config import Config, get_active_config
from .exceptions import GitError
from .version import Version

logger = logging.getLogger(__name__)

DETACHED_HEAD = "DETACHED_HEAD"
NEW_FILE_MARKER = "[New File]"
DELETED_FILE_MARKER = "[Deleted File]"


def find_git_repo_root(start_path: Optional[Path] = None) -> Optional[Path]:
    """Return the top-level Git repository directory for ``start_path``.

    Attempts ``git rev-parse --show-toplevel`` first so worktrees and
    submodules are handled correctly. Falls back to walking parent
    directories looking for a ``.git`` directory or file. Returns ``None``
    when no Git repository can be found starting from ``start_path``.
    """

    path = Path(start_path or Path.cwd()).expanduser().resolve(strict=False)
    if path.is_file():
        path = path.parent

    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=path,
            capture_output=True,
            text=True,
            check=True,
        )
        top = result.stdout.strip()
        if top:
            return Path(top)
    except (subprocess.CalledProcessError, FileNotFoundError):
        pass

    for candidate in (path, *path.parents):
        git_meta = candidate / ".git"
        if git_meta.exists():
            return candidate

    return None


@dataclass(frozen=True)
class StatusEntry:
    """One working-tree change: status letter (A/M/D/R/C) and path."""

    status: str
    path: str
    orig_path: Optional[str] = None


def _status_letter(code: str) -> str:
    if code == "??":
        return "A"
    index, worktree = code[0], code[1]
    letter = index if index not in (" ", "?", "!") else worktree
    if letter in ("A", "M", "D", "R", "C"):
        return letter
    # Type changes and unmerged paths read as modifications.
    return "M"


def truncate_diff(diff: str, max_lines: int) -> str:
    """Keep the first ``max_lines`` lines, marking the cut with ``...``."""
    if max_lines <= 0:
        return diff
    lines = diff.split("\n")
    if len(lines) <= max_lines:
        return diff
    return "\n".join(lines[:max_lines]) + "\n..."


def should_ignore(
    path: str,
    patterns: Sequence[str],
    is_ignored=None,
) -> bool:
    """Return True when ``path`` matches a glob in ``patterns``.

    ``is_ignored`` is an optional callable consulted afterwards for the
    repository's own ignore rules.
    """
    name = Path(path).name
    for pattern in patterns:
        if fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern):
            return True
    if is_ignored is not None:
        return bool(is_ignored(path))
    return False


class GitRepo:
    """Handles Git repository operations."""

    def __init__(
        self,
        repo_path: Optional[str] = None,
        config: Optional[Config] = None,
    ) -> None:
        """Initialize Git repository handler."""

        self._config = config or get_active_config()
        self.repo_path = Path(repo_path or self._config.repo_path)
        if not self._is_git_repo():
            raise GitError(f"Not a Git repository: {self.repo_path}")

    def _is_git_repo(self) -> bool:
        """Check if the current directory is a Git repository."""
        try:
            self._run_git_command(["rev-parse", "--git-dir"])
            return True
        except GitError:
            return False

    def _run_git_command(self, args: List[str], strip: bool = True) -> str:
        """Run a Git command and return its output."""
        try:
            result = subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            cmd = " ".join(args)
            raise GitError(f"Git command failed: {cmd}\n{e.stderr}") from e
        except FileNotFoundError as exc:
            raise GitError("Git command not found. Please install Git.") from exc
        return result.stdout.strip() if strip else result.stdout

    def _succeeds(self, args: List[str]) -> bool:
        """Run a Git query and report whether it exited with status 0."""
        try:
            result = subprocess.run(
                ["git"] + args,
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitError("Git command not found. Please install Git.") from exc
        return result.returncode == 0

    def has_commits(self) -> bool:
        return self._succeeds(["rev-parse", "-q", "--verify", "HEAD"])

    def is_ignored(self, rel_path: str) -> bool:
        """Return True if path is ignored by gitignore.

        Uses 'git check-ignore -q'. A zero exit status means ignored; 1 means
        not ignored. Other return codes are treated as not ignored.
        """
        return self._succeeds(["check-ignore", "-q", rel_path])

    def should_ignore(self, path: str) -> bool:
        """Apply the configured ignore globs and, if enabled, gitignore rules."""
        git_cfg = self._config.git
        checker = self.is_ignored if git_cfg.include_gitignore else None
        return should_ignore(path, git_cfg.ignore, checker)

    def list_status(self) -> List[StatusEntry]:
        """Return working-tree changes in ``git status`` order.

        Untracked directories are expanded to their files and untracked
        files are reported as additions.
        """
        output = self._run_git_command(
            ["status", "--porcelain", "-z", "--untracked-files=all"], strip=False
        )
        fields = output.split("\0")
        entries: List[StatusEntry] = []
        i = 0
        while i < len(fields):
            item = fields[i]
            i += 1
            if len(item) < 4:
                continue
            code, path = item[:2], item[3:]
            letter = _status_letter(code)
            orig_path = None
            if "R" in code or "C" in code:
                # With -z the source path follows as its own field.
                orig_path = fields[i] if i < len(fields) else None
                i += 1
            entries.append(StatusEntry(letter, path, orig_path))
        return entries

    def get_current_branch(self) -> str:
        """Return the checked-out branch name, or ``DETACHED_HEAD``."""
        try:
            name = self._run_git_command(["symbolic-ref", "--short", "-q", "HEAD"])
        except GitError:
            return DETACHED_HEAD
        return name or DETACHED_HEAD

    def get_file_diff(self, entry: StatusEntry, max_lines: Optional[int] = None) -> str:
        """Return a textual diff for one status entry.

        New, deleted and renamed files start with a marker line; new files
        carry their content as added lines.
        """
        if max_lines is None:
            max_lines = self._config.git.max_diff_lines
        if entry.status == "D":
            return DELETED_FILE_MARKER
        if entry.status == "R":
            diff = f"[Renamed from {entry.orig_path or '?'}]"
            if self.has_commits():
                body = self._run_git_command(
                    ["diff", "HEAD", "-M", "--", entry.orig_path or entry.path, entry.path]
                )
                if body:
                    diff += "\n" + body
            return truncate_diff(diff, max_lines)
        if entry.status == "A" and not self._is_tracked(entry.path):
            return truncate_diff(self._new_file_diff(entry.path), max_lines)
        if self.has_commits():
            diff = self._run_git_command(["diff", "HEAD", "--", entry.path])
        else:
            diff = self._run_git_command(["diff", "--cached", "--", entry.path])
        if entry.status == "A":
            diff = f"{NEW_FILE_MARKER}\n{diff}" if diff else NEW_FILE_MARKER
        return truncate_diff(diff, max_lines)

    def _is_tracked(self, rel_path: str) -> bool:
        return self._succeeds(["ls-files", "--error-unmatch", "--", rel_path])

    def _new_file_diff(self, rel_path: str) -> str:
        full = self.repo_path / rel_path
        try:
            content = full.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return f"{NEW_FILE_MARKER}\nBinary file"
        except OSError as exc:
            raise GitError(f"Cannot read {rel_path}") from exc
        lines = [f"+{line}" for line in content.splitlines()]
        return "\n".join([NEW_FILE_MARKER] + lines)

    def list_tags(self) -> List[str]:
        output = self._run_git_command(["tag", "--list"])
        return [line.strip() for line in output.split("\n") if line.strip()]

    def has_tag(self, name: str) -> bool:
        return self._succeeds(["rev-parse", "-q", "--verify", f"refs/tags/{name}"])

    def find_last_version_tag(self) -> Optional[str]:
        """Return the ``v``-prefixed tag with the highest semantic version."""
        best: Optional[Version] = None
        best_tag: Optional[str] = None
        for tag in self.list_tags():
            if not tag.startswith("v"):
                continue
            try:
                version = Version.parse(tag)
            except ValueError:
                continue
            if best is None or version > best:
                best, best_tag = version, tag
        return best_tag

    def _log_messages(self, args: List[str]) -> List[str]:
        if not self.has_commits():
            return []
        output = self._run_git_command(["log", "--format=%B%x00"] + args, strip=False)
        return [msg.strip() for msg in output.split("\0") if msg.strip()]

    def get_commit_messages_since(self, tag: str) -> List[str]:
        """Return full commit messages reachable from HEAD but not ``tag``."""
        return self._log_messages([f"{tag}..HEAD"])

    def get_all_commit_messages(self) -> List[str]:
        return self._log_messages([])

    def get_recent_commit_subjects(self, count: int = 10) -> List[str]:
        if not self.has_commits():
            return []
        output = self._run_git_command(["log", f"-{count}", "--format=%s"])
        return output.split("\n") if output else []

    def stage_files(self, paths: Sequence[str]) -> None:
        """Stage the given paths, including deletions."""
        if not paths:
            return
        self._run_git_command(["add", "-A", "--"] + list(paths))

    def commit(
        self,
        message: str,
        paths: Optional[Sequence[str]] = None,
        sign: bool = False,
    ) -> None:
        """Stage ``paths`` (if any) and create a commit with ``message``."""
        if paths:
            self.stage_files(paths)
        args = ["commit"]
        if sign:
            args.append("-S")
        args += ["-m", message]
        self._run_git_command(args)
        logger.info("Created commit: %s", message.split("\n", 1)[0])

    def create_tag(self, name: str, message: str, sign: bool = False) -> None:
        """Create an annotated (or signed) tag at HEAD."""
        self._run_git_command(["tag", "-s" if sign else "-a", name, "-m", message])
        logger.info("Created tag %s", name)
