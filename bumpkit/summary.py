"""Per-file change summaries and the branch-labelled aggregate."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .context import Context
from .exceptions import NoChangesError
from .functions import GENERATE_FILE_SUMMARY
from .git import DELETED_FILE_MARKER, NEW_FILE_MARKER, GitRepo, StatusEntry
from .llm import LLMClient

logger = logging.getLogger(__name__)

MINOR_MARKERS = ("only formatting", "minor changes", "various fixes")


@dataclass(frozen=True)
class FileSummary:
    path: str
    status: str
    summary: str

    @property
    def is_minor(self) -> bool:
        return is_minor_summary(self.summary)


def is_minor_summary(summary: str) -> bool:
    lowered = summary.lower()
    return any(marker in lowered for marker in MINOR_MARKERS)


def _is_change_line(line: str) -> bool:
    if line.startswith("+++") or line.startswith("---"):
        return False
    return line.startswith("+") or line.startswith("-")


def filter_import_changes(diff: str) -> Tuple[str, bool]:
    """Drop unchanged lines inside ``import ( ... )`` blocks.

    Returns the filtered diff and whether it carries a significant change:
    any added or removed import, or any non-blank change elsewhere.
    """
    kept: List[str] = []
    in_block = False
    significant = False
    for line in diff.split("\n"):
        content = line[1:] if line[:1] in ("+", "-", " ") else line
        stripped = content.strip()
        if stripped.startswith("import ("):
            in_block = True
            kept.append(line)
            if _is_change_line(line):
                significant = True
            continue
        if in_block and stripped.startswith(")"):
            in_block = False

        if in_block:
            if _is_change_line(line):
                kept.append(line)
                significant = True
            continue
        kept.append(line)
        if _is_change_line(line) and stripped:
            significant = True
    return "\n".join(kept), significant


def clean_summary(text: str) -> str:
    """Reduce a model summary to one short line without a trailing period."""
    line = text.strip().split("\n", 1)[0].strip()
    return line.rstrip(".").strip()


def build_aggregate(branch: str, summaries: Sequence[FileSummary]) -> str:
    """Render the ``Changes on branch`` block fed to the commit prompt."""
    lines = [f"Changes on branch '{branch}':", ""]
    minor: List[str] = []
    for item in summaries:
        if item.is_minor:
            minor.append(item.path)
            continue
        lines.append(f"* {item.path}: {item.summary}")
    if minor:
        lines.append("")
        lines.append("Additional changes:")
        lines.extend(f"* {path}" for path in minor)
    return "\n".join(lines)


class ChangeSummarizer:
    """Summarizes every eligible working-tree change through the LLM."""

    def __init__(self, repo: GitRepo, llm: LLMClient) -> None:
        self.repo = repo
        self.llm = llm

    def eligible_entries(self) -> List[StatusEntry]:
        entries: List[StatusEntry] = []
        for entry in self.repo.list_status():
            if self.repo.should_ignore(entry.path):
                logger.debug("Ignoring %s", entry.path)
                continue
            entries.append(entry)
        return entries

    def summarize_file(self, entry: StatusEntry, ctx: Context) -> FileSummary:
        diff = self.repo.get_file_diff(entry)
        filtered, significant = filter_import_changes(diff)
        if filtered.startswith((NEW_FILE_MARKER, DELETED_FILE_MARKER)):
            significant = True
        raw = self.llm.call(
            GENERATE_FILE_SUMMARY,
            {
                "file": entry.path,
                "status": entry.status,
                "diff": filtered,
                "hasSignificantChanges": significant,
            },
            ctx,
        )
        summary = clean_summary(raw)
        logger.debug("Summary for %s: %s", entry.path, summary)
        return FileSummary(entry.path, entry.status, summary)

    def summarize(self, ctx: Context) -> List[FileSummary]:
        """Summarize eligible files in status order.

        Raises:
            NoChangesError: when nothing is left after ignore rules.
        """
        entries = self.eligible_entries()
        if not entries:
            raise NoChangesError("no eligible files in working tree")
        summaries: List[FileSummary] = []
        for entry in entries:
            ctx.check("file summary")
            summaries.append(self.summarize_file(entry, ctx))
        return summaries
