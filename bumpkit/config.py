"""Configuration management for bumpkit."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import ConfigError
from .functions import FunctionRegistry, FunctionSpec, default_function_specs, merge_specs
from .providers.ratelimit import parse_duration

CONFIG_FILE_NAME = ".bumpkit.yaml"

SUPPORTED_PROVIDERS = ("openai-compatible", "openai")

DEFAULT_BREAKING_KEYWORDS = ["!:", "BREAKING CHANGE:", "BREAKING-CHANGE:"]
DEFAULT_FEATURE_KEYWORDS = ["feat:", "feature:", "add:", "implement:"]

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass
class LoggingConfig:
    level: str = "info"
    output: str = "console"
    file_path: str = "bumpkit.log"
    environment: str = "development"


@dataclass
class LLMConfig:
    provider: str = "openai-compatible"
    model: str = "llama3.1:latest"
    base_url: str = "http://localhost:11434/v1"
    api_key: str = ""
    api_key_env: str = "OPENAI_API_KEY"
    max_retries: int = 3
    request_timeout: float = 30.0
    commit_msg_timeout: float = 30.0

    def resolve_api_key(self) -> str:
        """Return the configured key, else the one named by ``api_key_env``."""
        if self.api_key:
            return self.api_key
        if self.api_key_env:
            return os.environ.get(self.api_key_env, "")
        return ""


@dataclass
class GitConfig:
    include_gitignore: bool = True
    ignore: List[str] = field(default_factory=list)
    max_diff_lines: int = 10
    preferred_line_length: int = 72


@dataclass
class VersionFile:
    path: str
    replace: List[str] = field(default_factory=lambda: ["{version}"])


@dataclass
class VersionGitConfig:
    commit: bool = False
    tag: bool = True
    sign: bool = False


@dataclass
class VersionConfig:
    version_file: str = "VERSION"
    files: List[VersionFile] = field(default_factory=list)
    git: VersionGitConfig = field(default_factory=VersionGitConfig)
    breaking_keywords: List[str] = field(
        default_factory=lambda: list(DEFAULT_BREAKING_KEYWORDS)
    )
    feature_keywords: List[str] = field(
        default_factory=lambda: list(DEFAULT_FEATURE_KEYWORDS)
    )


@dataclass
class Config:
    """Runtime configuration for bumpkit."""

    repo_path: str = "."
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    git: GitConfig = field(default_factory=GitConfig)
    version: VersionConfig = field(default_factory=VersionConfig)
    # Configured function specs; built-in defaults fill in the rest by name.
    functions: List[FunctionSpec] = field(default_factory=list)

    def function_registry(self) -> FunctionRegistry:
        return FunctionRegistry(merge_specs(default_function_specs(), self.functions))

    def validate(self) -> None:
        """Raise ``ConfigError`` for settings the workflows cannot run with."""
        if self.llm.provider not in SUPPORTED_PROVIDERS:
            raise ConfigError(
                f"unsupported provider '{self.llm.provider}', only OpenAI-compatible "
                "endpoints are supported"
            )
        if not self.llm.base_url:
            raise ConfigError("llm.base_url is required")
        if not self.llm.model:
            raise ConfigError("llm.model is required")
        if self.llm.request_timeout <= 0:
            raise ConfigError("llm.request_timeout must be positive")
        if self.llm.commit_msg_timeout <= 0:
            raise ConfigError("llm.commit_msg_timeout must be positive")
        if self.git.max_diff_lines < 0:
            raise ConfigError("git.max_diff_lines must not be negative")
        if self.logging.output not in {"console", "file"}:
            raise ConfigError(f"unknown logging output '{self.logging.output}'")


_CONFIG_STATE: Dict[str, Optional[Config]] = {"active": None}


def _ensure_path(path_like: Optional[Path]) -> Path:
    if path_like is None:
        return Path.cwd().resolve(strict=False)
    return Path(path_like).expanduser().resolve(strict=False)


def _config_file(repo_root: Optional[Path] = None) -> Path:
    return _ensure_path(repo_root) / CONFIG_FILE_NAME


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _as_int(value: Any, key: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc


def _as_duration(value: Any, key: str) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    try:
        return parse_duration(str(value))
    except ValueError as exc:
        raise ConfigError(f"{key} is not a valid duration") from exc


def _as_str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list):
        raise ConfigError(f"{key} must be a list")
    return [str(item) for item in value]


def _section(data: Mapping[str, Any], key: str) -> Dict[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{key}' section must be a mapping")
    return dict(value)


def read_config_file(path: Path) -> Dict[str, Any]:
    """Return the parsed YAML mapping at ``path`` (empty if the file is absent)."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise ConfigError(f"failed to parse {path}") from exc
    except OSError as exc:
        raise ConfigError(f"failed to read {path}") from exc
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"{path} must contain a mapping")
    return dict(data)


def _apply_file(config: Config, data: Mapping[str, Any]) -> None:
    log = _section(data, "logging")
    for key in ("level", "output", "file_path", "environment"):
        if log.get(key) is not None:
            setattr(config.logging, key, str(log[key]))

    llm = _section(data, "llm")
    for key in ("provider", "model", "base_url", "api_key", "api_key_env"):
        if llm.get(key) is not None:
            setattr(config.llm, key, str(llm[key]))
    if llm.get("max_retries") is not None:
        config.llm.max_retries = _as_int(llm["max_retries"], "llm.max_retries")
    for key in ("request_timeout", "commit_msg_timeout"):
        if llm.get(key) is not None:
            setattr(config.llm, key, _as_duration(llm[key], f"llm.{key}"))

    git = _section(data, "git")
    if git.get("include_gitignore") is not None:
        config.git.include_gitignore = _as_bool(git["include_gitignore"])
    if git.get("ignore") is not None:
        config.git.ignore = _as_str_list(git["ignore"], "git.ignore")
    for key in ("max_diff_lines", "preferred_line_length"):
        if git.get(key) is not None:
            setattr(config.git, key, _as_int(git[key], f"git.{key}"))

    version = _section(data, "version")
    if version.get("version_file") is not None:
        config.version.version_file = str(version["version_file"])
    if version.get("files") is not None:
        files = version["files"]
        if not isinstance(files, list):
            raise ConfigError("version.files must be a list")
        config.version.files = []
        for entry in files:
            if not isinstance(entry, Mapping) or not entry.get("path"):
                raise ConfigError("each version.files entry needs a path")
            patterns = _as_str_list(entry.get("replace"), "version.files.replace")
            config.version.files.append(
                VersionFile(path=str(entry["path"]), replace=patterns or ["{version}"])
            )
    vgit = _section(version, "git")
    if vgit.get("commit") is not None:
        config.version.git.commit = _as_bool(vgit["commit"])
    if vgit.get("tag") is not None:
        config.version.git.tag = _as_bool(vgit["tag"])
    sign = vgit.get("sign", vgit.get("signage"))
    if sign is not None:
        config.version.git.sign = _as_bool(sign)
    for key in ("breaking_keywords", "feature_keywords"):
        if version.get(key) is not None:
            setattr(config.version, key, _as_str_list(version[key], f"version.{key}"))

    functions = data.get("functions")
    if functions is not None:
        if not isinstance(functions, list):
            raise ConfigError("'functions' must be a list")
        config.functions = [FunctionSpec.from_dict(entry) for entry in functions]


def _apply_env(config: Config, env: Mapping[str, str]) -> None:
    if env.get("BUMPKIT_LLM_PROVIDER"):
        config.llm.provider = env["BUMPKIT_LLM_PROVIDER"]
    if env.get("BUMPKIT_LLM_MODEL"):
        config.llm.model = env["BUMPKIT_LLM_MODEL"]
    if env.get("BUMPKIT_LLM_BASE_URL"):
        config.llm.base_url = env["BUMPKIT_LLM_BASE_URL"]
    if env.get("BUMPKIT_MAX_RETRIES"):
        config.llm.max_retries = _as_int(env["BUMPKIT_MAX_RETRIES"], "BUMPKIT_MAX_RETRIES")
    if env.get("BUMPKIT_LLM_REQUEST_TIMEOUT"):
        config.llm.request_timeout = _as_duration(
            env["BUMPKIT_LLM_REQUEST_TIMEOUT"], "BUMPKIT_LLM_REQUEST_TIMEOUT"
        )
    if env.get("BUMPKIT_LOG_LEVEL"):
        config.logging.level = env["BUMPKIT_LOG_LEVEL"]


def _apply_overrides(config: Config, overrides: Mapping[str, Any]) -> None:
    if overrides.get("provider"):
        config.llm.provider = str(overrides["provider"])
    if overrides.get("model"):
        config.llm.model = str(overrides["model"])
    if overrides.get("base_url"):
        config.llm.base_url = str(overrides["base_url"])
    if overrides.get("max_retries") is not None:
        config.llm.max_retries = _as_int(overrides["max_retries"], "max_retries")
    if overrides.get("log_level"):
        config.logging.level = str(overrides["log_level"])


def load_config(
    *,
    repo_root: Optional[Path] = None,
    config_file: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Config:
    """Build configuration from defaults, config file, environment and overrides."""

    overrides = overrides or {}
    env = os.environ if env is None else env

    repo_path_raw = overrides.get("repo_path") or env.get("BUMPKIT_REPO_PATH")
    repo_root = _ensure_path(Path(repo_path_raw) if repo_path_raw else repo_root)

    path = Path(config_file).expanduser() if config_file else _config_file(repo_root)
    if config_file and not path.exists():
        raise ConfigError(f"config file not found: {path}")

    config = Config(repo_path=str(repo_root))
    _apply_file(config, read_config_file(path))
    _apply_env(config, env)
    _apply_overrides(config, overrides)
    config.validate()
    # Surface missing or broken function specs at startup.
    config.function_registry()

    set_active_config(config)
    return config


def set_active_config(config: Config) -> None:
    _CONFIG_STATE["active"] = config


def get_active_config() -> Config:
    active = _CONFIG_STATE.get("active")
    if active is None:
        return load_config()
    return active


def clear_active_config() -> None:
    _CONFIG_STATE["active"] = None
