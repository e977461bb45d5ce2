"""Function specs and the registry that serves them.

A function spec describes one LLM call: the JSON-schema parameters sent to
the model as a tool definition, and the system/user prompt templates that
are rendered from the call inputs. Specs are data; the defaults below can
be overridden entry by entry from the configuration file.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .exceptions import ConfigError

GENERATE_FILE_SUMMARY = "generate_file_summary"
GENERATE_COMMIT_MESSAGE = "generate_commit_message"
RETRY_COMMIT_MESSAGE = "retry_commit_message"
ANALYZE_VERSION_BUMP = "analyze_version_bump"

REQUIRED_FUNCTIONS = (
    GENERATE_FILE_SUMMARY,
    GENERATE_COMMIT_MESSAGE,
    RETRY_COMMIT_MESSAGE,
    ANALYZE_VERSION_BUMP,
)


@dataclass(frozen=True)
class Property:
    type: str
    description: str = ""
    enum: Optional[List[str]] = None
    items: Optional[Dict[str, Any]] = None

    def to_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.items:
            schema["items"] = dict(self.items)
        return schema


@dataclass(frozen=True)
class Parameters:
    type: str = "object"
    properties: Dict[str, Property] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "properties": {
                name: prop.to_schema() for name, prop in self.properties.items()
            },
            "required": list(self.required),
        }


@dataclass(frozen=True)
class FunctionSpec:
    """A named, immutable description of one LLM function call."""

    name: str
    description: str
    parameters: Parameters
    system_prompt: str
    user_prompt: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FunctionSpec":
        """Build a spec from a configuration mapping."""
        if not isinstance(data, Mapping):
            raise ConfigError("function spec must be a mapping")
        name = str(data.get("name") or "").strip()
        if not name:
            raise ConfigError("function name is required")
        params = data.get("parameters") or {}
        if not isinstance(params, Mapping):
            raise ConfigError(f"parameters of function '{name}' must be a mapping")
        raw_props = params.get("properties") or {}
        if not isinstance(raw_props, Mapping):
            raise ConfigError(f"properties of function '{name}' must be a mapping")
        properties: Dict[str, Property] = {}
        for prop_name, prop in raw_props.items():
            prop = prop or {}
            if not isinstance(prop, Mapping):
                raise ConfigError(f"property '{prop_name}' of '{name}' must be a mapping")
            properties[str(prop_name)] = Property(
                type=str(prop.get("type") or "string"),
                description=str(prop.get("description") or ""),
                enum=[str(v) for v in prop["enum"]] if prop.get("enum") else None,
                items=dict(prop["items"]) if prop.get("items") else None,
            )
        return cls(
            name=name,
            description=str(data.get("description") or ""),
            parameters=Parameters(
                type=str(params.get("type") or ""),
                properties=properties,
                required=[str(r) for r in params.get("required") or []],
            ),
            system_prompt=str(data.get("system_prompt") or data.get("system") or ""),
            user_prompt=str(data.get("user_prompt") or data.get("user") or ""),
        )

    def validate(self) -> None:
        """Check the spec is usable; raises ``ConfigError`` otherwise."""
        if not self.name:
            raise ConfigError("function name is required")
        if not self.system_prompt.strip():
            raise ConfigError(f"system prompt is required for '{self.name}'")
        if not self.user_prompt.strip():
            raise ConfigError(f"user prompt is required for '{self.name}'")
        if not self.parameters.type:
            raise ConfigError(f"parameters type is required for '{self.name}'")
        if not self.parameters.properties:
            raise ConfigError(f"parameters properties are required for '{self.name}'")
        unknown = [
            r for r in self.parameters.required if r not in self.parameters.properties
        ]
        if unknown:
            raise ConfigError(
                f"required parameters not declared for '{self.name}': "
                + ", ".join(unknown)
            )

    def select_inputs(self, candidates: Mapping[str, Any]) -> Dict[str, Any]:
        """Keep only the candidate inputs this function declares."""
        return {k: v for k, v in candidates.items() if k in self.parameters.properties}

    def missing_inputs(self, inputs: Mapping[str, Any]) -> List[str]:
        return [name for name in self.parameters.required if name not in inputs]

    def to_tool(self) -> Dict[str, Any]:
        """Return the OpenAI ``tools`` entry for this function."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.to_schema(),
            },
        }


class FunctionRegistry:
    """Read-only lookup of function specs by name."""

    def __init__(
        self,
        specs: Iterable[FunctionSpec],
        required: Iterable[str] = REQUIRED_FUNCTIONS,
    ) -> None:
        self._specs: Dict[str, FunctionSpec] = {}
        for spec in specs:
            spec.validate()
            self._specs[spec.name] = spec
        missing = [name for name in required if name not in self._specs]
        if missing:
            raise ConfigError("missing required function: " + ", ".join(missing))

    def get(self, name: str) -> FunctionSpec:
        try:
            return self._specs[name]
        except KeyError:
            raise ConfigError(f"function '{name}' not found in configuration") from None

    def __contains__(self, name: object) -> bool:
        return name in self._specs

    def __len__(self) -> int:
        return len(self._specs)

    def names(self) -> List[str]:
        return list(self._specs)


def merge_specs(
    defaults: Iterable[FunctionSpec], overrides: Iterable[FunctionSpec]
) -> List[FunctionSpec]:
    """Replace default specs by name with configured ones, keeping order."""
    merged: Dict[str, FunctionSpec] = {spec.name: spec for spec in defaults}
    for spec in overrides:
        merged[spec.name] = spec
    return list(merged.values())


def default_function_specs() -> List[FunctionSpec]:
    return [FunctionSpec.from_dict(entry) for entry in DEFAULT_FUNCTIONS]


DEFAULT_FUNCTIONS: List[Dict[str, Any]] = [
    {
        "name": ANALYZE_VERSION_BUMP,
        "description": (
            "Analyze changes and suggest semantic version bump type and "
            "prerelease stage"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "current_version": {
                    "type": "string",
                    "description": (
                        "Current semantic version including any prerelease suffix"
                    ),
                },
                "file_changes": {
                    "type": "string",
                    "description": "Summary of file changes",
                },
                "commit_history": {
                    "type": "string",
                    "description": "Relevant commit messages since last version",
                },
                "breaking_keywords": {
                    "type": "array",
                    "description": "Keywords indicating breaking changes",
                    "items": {"type": "string"},
                },
                "feature_keywords": {
                    "type": "array",
                    "description": "Keywords indicating new features",
                    "items": {"type": "string"},
                },
            },
            "required": ["current_version", "file_changes", "commit_history"],
        },
        "system_prompt": """\
You are a semantic versioning expert. Return EXACTLY ONE LINE containing the version progression suggestion.

Valid Response Formats:
major:alpha1
minor:alpha1
patch:alpha1
alpha2
beta1
rc1
stable

NO OTHER TEXT OR EXPLANATION ALLOWED.

Version Progression Rules:
1. New Project Start (0.x.x):
    - Start with 0.1.0-alpha1
    - Progress through alpha/beta/rc to 0.1.0
    - Continue with 0.2.0-alpha1 for major changes

2. Pre-1.0 Development:
    - Use alpha for initial implementation
    - Use beta for feature-complete testing
    - Use rc when preparing for release
    - Progress to stable when production-ready

3. Post-1.0 Development:
    - Major changes start at alpha1
    - Progress through stages based on stability
    - Multiple alphas/betas allowed before rc
    - RC indicates release readiness

Stage Transition Guidelines:
- alpha -> beta: Feature complete, needs testing
- beta -> rc: Code complete, final testing
- rc -> stable: No significant issues found
- Stay in current stage if more work needed

REMEMBER: Return ONLY the version suggestion, nothing else.
""",
        "user_prompt": """\
Analyze these changes and suggest version progression.
Current version: {{ current_version }}

File Changes:
{{ file_changes }}

Commit History:
{{ commit_history }}

Breaking change keywords: {{ breaking_keywords }}
Feature keywords: {{ feature_keywords }}
""",
    },
    {
        "name": GENERATE_FILE_SUMMARY,
        "description": "Analyze git file changes and provide a concise summary",
        "parameters": {
            "type": "object",
            "properties": {
                "file": {"type": "string", "description": "The path of the file"},
                "status": {
                    "type": "string",
                    "description": "The git status of the file",
                    "enum": ["A", "M", "D", "R", "C"],
                },
                "diff": {"type": "string", "description": "The git diff content"},
                "hasSignificantChanges": {
                    "type": "boolean",
                    "description": "Whether there are significant non-import changes",
                },
            },
            "required": ["file", "status", "diff", "hasSignificantChanges"],
        },
        "system_prompt": """\
You are a code review assistant specializing in summarizing Git changes.
Your task is to analyze changes and provide clear, informative summaries.

Rules:
1. Provide a VERY concise summary under 40 characters
2. Focus on the core change only
3. Use simple, direct language
4. Never include file paths
5. Never use punctuation at the end
6. For minor changes, use standard phrases:
      - "update logging format"
      - "improve error handling"
      - "fix formatting"
      - "update documentation"

Examples:
  - "add JWT authentication"
  - "update logging format"
  - "improve error handling"
""",
        "user_prompt": """\
Provide a concise summary of the following file changes:
File: {{ file }}
Status: {{ status }}
Significant changes: {{ hasSignificantChanges }}
Changes:
{{ diff }}
""",
    },
    {
        "name": GENERATE_COMMIT_MESSAGE,
        "description": "Generate a conventional commit message",
        "parameters": {
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "Summary of all file changes",
                },
                "branch": {
                    "type": "string",
                    "description": "The current git branch name",
                },
            },
            "required": ["summary", "branch"],
        },
        "system_prompt": """\
You are a Conventional Commits expert. Generate a commit message following these EXACT rules:

FORMAT:
<type>(<scope>): <description>

WHERE:
- type: feat|fix|docs|style|refactor|perf|test|chore|ci|build
- scope: single lowercase word
- description: imperative, lowercase, no period, max 40 chars

TOTAL LENGTH MUST BE UNDER 72 CHARS

ALWAYS use this pattern:
1. Choose most specific type
2. Use shortest clear scope
3. Keep description brief

VALID EXAMPLES:
refactor(llm): update message handling
fix(config): improve validation
style(fmt): update code formatting

REMEMBER: Exactly one space after colon, no space before colon
""",
        "user_prompt": """\
Generate a commit message following the exact format above:
Branch: {{ branch }}

Changes:
{{ summary }}
""",
    },
    {
        "name": RETRY_COMMIT_MESSAGE,
        "description": (
            "Generate a commit message, learning from previous invalid attempt"
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "Summary of all file changes",
                },
                "branch": {
                    "type": "string",
                    "description": "The current git branch name",
                },
                "previous": {
                    "type": "string",
                    "description": "The previous invalid commit message",
                },
                "error": {
                    "type": "string",
                    "description": "The reason the previous attempt was invalid",
                },
            },
            "required": ["summary", "branch", "previous", "error"],
        },
        "system_prompt": """\
Previous attempt failed because: {{ error }}

STRICT FORMAT:
<type>(<scope>): <description>

RULES:
1. ALWAYS use this exact pattern
2. NO variations allowed
3. ONE space after colon
4. NO space before colon
5. Total length under 72 chars
6. Description under 40 chars, lowercase, no trailing period

VALID:
refactor(llm): update message format
fix(log): improve error handling
style(fmt): update formatting

INVALID:
refactor(llm):update format     # missing space after colon
fix(log) : improve handling     # space before colon
style(fmt): update all code formatting in multiple files  # too long
""",
        "user_prompt": """\
Generate a short, focused commit message for the MAIN change only.
Branch: {{ branch }}

Primary changes (pick one):
{{ summary }}

Previous attempt: {{ previous }}
Error: {{ error }}
""",
    },
]
