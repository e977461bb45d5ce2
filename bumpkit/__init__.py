"""bumpkit - LLM-assisted Conventional Commits and semantic version bumps."""

from importlib import import_module
from typing import TYPE_CHECKING

__version__ = "0.1.0"

# Public API (lazy-exported to avoid import-time side effects)
__all__ = [
    # Config
    "Config", "load_config",
    # LLM
    "LLMClient",
    # Git
    "GitRepo",
    # Workflows
    "CommitGenerator", "VersionBumper", "Version", "Context",
    # Exceptions
    "BumpkitError", "ConfigError", "GitError", "LLMError", "NoChangesError",
    "ValidationError",
]


def __getattr__(name: str):
    """Lazy attribute loader so ``import bumpkit`` stays cheap."""
    mapping = {
        "Config": ("bumpkit.config", "Config"),
        "load_config": ("bumpkit.config", "load_config"),
        "LLMClient": ("bumpkit.llm", "LLMClient"),
        "GitRepo": ("bumpkit.git", "GitRepo"),
        "CommitGenerator": ("bumpkit.commit", "CommitGenerator"),
        "VersionBumper": ("bumpkit.bumper", "VersionBumper"),
        "Version": ("bumpkit.version", "Version"),
        "Context": ("bumpkit.context", "Context"),
        "BumpkitError": ("bumpkit.exceptions", "BumpkitError"),
        "ConfigError": ("bumpkit.exceptions", "ConfigError"),
        "GitError": ("bumpkit.exceptions", "GitError"),
        "LLMError": ("bumpkit.exceptions", "LLMError"),
        "NoChangesError": ("bumpkit.exceptions", "NoChangesError"),
        "ValidationError": ("bumpkit.exceptions", "ValidationError"),
    }
    if name in mapping:
        mod_name, attr = mapping[name]
        mod = import_module(mod_name)
        value = getattr(mod, attr)
        globals()[name] = value  # cache for future access
        return value
    raise AttributeError(f"module 'bumpkit' has no attribute {name!r}")


if TYPE_CHECKING:
    from .bumper import VersionBumper
    from .commit import CommitGenerator
    from .config import Config, load_config
    from .context import Context
    from .exceptions import (
        BumpkitError,
        ConfigError,
        GitError,
        LLMError,
        NoChangesError,
        ValidationError,
    )
    from .git import GitRepo
    from .llm import LLMClient
    from .version import Version
