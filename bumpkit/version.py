"""Semantic versions, version suggestions and bump arithmetic."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import total_ordering
from typing import List, Optional, Tuple, Union

from .exceptions import ValidationError

BUMP_KINDS = ("major", "minor", "patch")
BUMP_NONE = ""

PRE_RELEASE_STAGES = ("alpha", "beta", "rc")
PRE_RELEASE_PATTERN = re.compile(r"^(alpha|beta|rc)(\d+)$")

_SEMVER = re.compile(
    r"^v?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-([0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def _pre_key(prerelease: str) -> List[Tuple[int, Union[int, str]]]:
    # Numeric identifiers sort before alphanumeric ones and compare as numbers.
    key: List[Tuple[int, Union[int, str]]] = []
    for part in prerelease.split("."):
        if part.isdigit():
            key.append((0, int(part)))
        else:
            key.append((1, part))
    return key


@total_ordering
@dataclass(frozen=True)
class Version:
    """A ``MAJOR.MINOR.PATCH[-prerelease]`` version ordered by semver rules."""

    major: int
    minor: int
    patch: int
    prerelease: str = ""

    @classmethod
    def parse(cls, text: str) -> "Version":
        """Parse ``text`` (optionally ``v``-prefixed, build metadata ignored).

        Raises:
            ValueError: when ``text`` is not a semantic version.
        """
        match = _SEMVER.match(text.strip())
        if not match:
            raise ValueError(f"invalid semantic version: {text!r}")
        major, minor, patch, pre = match.groups()
        return cls(int(major), int(minor), int(patch), pre or "")

    @property
    def base(self) -> "Version":
        return Version(self.major, self.minor, self.patch)

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def with_prerelease(self, prerelease: str) -> "Version":
        return Version(self.major, self.minor, self.patch, prerelease)

    def bump_major(self) -> "Version":
        return Version(self.major + 1, 0, 0)

    def bump_minor(self) -> "Version":
        return Version(self.major, self.minor + 1, 0)

    def bump_patch(self) -> "Version":
        return Version(self.major, self.minor, self.patch + 1)

    @property
    def tag(self) -> str:
        return f"v{self}"

    def _key(self):
        # A release sorts after every pre-release of the same base.
        pre = (1, []) if not self.prerelease else (0, _pre_key(self.prerelease))
        return (self.major, self.minor, self.patch, pre)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        return f"{core}-{self.prerelease}" if self.prerelease else core


DEFAULT_VERSION = Version(0, 1, 0)


def is_valid_prerelease(value: str) -> bool:
    return bool(PRE_RELEASE_PATTERN.match(value))


def _check_prerelease(value: str) -> None:
    if value and not is_valid_prerelease(value):
        raise ValidationError(
            f"invalid pre-release '{value}', expected alphaN, betaN or rcN"
        )


def _stage_rank(prerelease: str) -> Optional[Tuple[int, int]]:
    match = PRE_RELEASE_PATTERN.match(prerelease)
    if not match:
        return None
    return PRE_RELEASE_STAGES.index(match.group(1)), int(match.group(2))


def _advances(proposed: Version, current: Version) -> bool:
    # alphaN/betaN/rcN on the same base rank by stage, then by N as a number.
    new, old = _stage_rank(proposed.prerelease), _stage_rank(current.prerelease)
    if proposed.base == current.base and new and old:
        return new > old
    return proposed > current


def _derive_kind(proposed: Version, current: Version) -> str:
    for kind, new, old in (
        ("major", proposed.major, current.major),
        ("minor", proposed.minor, current.minor),
        ("patch", proposed.patch, current.patch),
    ):
        if new > old:
            return kind
        if new < old:
            raise ValidationError(
                f"suggested version {proposed} is lower than current {current}"
            )
    return BUMP_NONE


def parse_suggestion(text: str, current: Version) -> Tuple[str, str]:
    """Parse an LLM version suggestion into ``(bump_kind, prerelease)``.

    Accepted shapes: a full version (``2.0.0-alpha1``), ``kind:pre``
    (``minor:beta1``, ``patch:``), a bare pre-release (``rc2``) or
    ``stable``. A bump kind of ``""`` means no numeric increment.

    Raises:
        ValidationError: for any other shape or an invalid pre-release.
    """
    suggestion = text.strip()
    if not suggestion:
        raise ValidationError("empty version suggestion")

    if "." in suggestion:
        try:
            proposed = Version.parse(suggestion)
        except ValueError as exc:
            raise ValidationError(f"invalid version '{suggestion}'") from exc
        _check_prerelease(proposed.prerelease)
        return _derive_kind(proposed, current), proposed.prerelease

    parts = suggestion.split(":")
    if len(parts) == 2:
        kind, pre = parts[0].strip(), parts[1].strip()
    elif len(parts) == 1:
        kind = BUMP_NONE
        pre = "" if suggestion == "stable" else suggestion
    else:
        raise ValidationError(f"invalid version suggestion '{suggestion}'")

    if kind not in BUMP_KINDS and kind != BUMP_NONE:
        raise ValidationError(f"invalid bump type '{kind}'")
    _check_prerelease(pre)
    return kind, pre


def format_suggestion(kind: str, prerelease: str) -> str:
    """Compose the compact suggestion form that ``parse_suggestion`` reads."""
    if kind:
        return f"{kind}:{prerelease}"
    return prerelease or "stable"


def propose_version(current: Version, kind: str, prerelease: str) -> Version:
    """Apply a bump to ``current``.

    ``major``/``minor``/``patch`` always increment. With no bump kind the
    base version is kept, except that a pre-release on top of a stable
    version moves to the next patch first. The result must advance past
    ``current`` whenever a bump kind or pre-release was requested.

    Raises:
        ValidationError: invalid kind or pre-release, or no advancement.
    """
    if kind == "none":
        kind = BUMP_NONE
    _check_prerelease(prerelease)
    if kind == "major":
        base = current.bump_major()
    elif kind == "minor":
        base = current.bump_minor()
    elif kind == "patch":
        base = current.bump_patch()
    elif kind == BUMP_NONE:
        base = current.base
        if prerelease and not current.is_prerelease:
            base = base.bump_patch()
    else:
        raise ValidationError(f"invalid bump type '{kind}'")

    proposed = base.with_prerelease(prerelease)
    if (kind or prerelease) and not _advances(proposed, current):
        raise ValidationError(
            f"proposed version {proposed} does not advance current version {current}"
        )
    return proposed
