import pytest

from bumpkit.exceptions import ConfigError
from bumpkit.functions import (
    ANALYZE_VERSION_BUMP,
    GENERATE_COMMIT_MESSAGE,
    REQUIRED_FUNCTIONS,
    RETRY_COMMIT_MESSAGE,
    FunctionRegistry,
    FunctionSpec,
    default_function_specs,
    merge_specs,
)


def _spec(name="custom", **overrides):
    data = {
        "name": name,
        "description": "desc",
        "parameters": {
            "type": "object",
            "properties": {"summary": {"type": "string", "description": "s"}},
            "required": ["summary"],
        },
        "system_prompt": "system",
        "user_prompt": "{{ summary }}",
    }
    data.update(overrides)
    return FunctionSpec.from_dict(data)


def test_defaults_cover_required_functions():
    registry = FunctionRegistry(default_function_specs())
    for name in REQUIRED_FUNCTIONS:
        assert name in registry


def test_missing_required_function_fails_at_construction():
    specs = [s for s in default_function_specs() if s.name != RETRY_COMMIT_MESSAGE]
    with pytest.raises(ConfigError) as ei:
        FunctionRegistry(specs)
    assert RETRY_COMMIT_MESSAGE in str(ei.value)


def test_empty_prompt_is_rejected():
    with pytest.raises(ConfigError):
        FunctionRegistry([_spec(system_prompt="  ")], required=())


def test_required_parameter_must_be_declared():
    spec = _spec(
        parameters={
            "type": "object",
            "properties": {"summary": {"type": "string"}},
            "required": ["summary", "branch"],
        }
    )
    with pytest.raises(ConfigError):
        spec.validate()


def test_lookup_unknown_function():
    registry = FunctionRegistry([_spec()], required=())
    with pytest.raises(ConfigError):
        registry.get("nope")


def test_tool_payload_shape():
    tool = _spec().to_tool()
    assert tool["type"] == "function"
    assert tool["function"]["name"] == "custom"
    assert tool["function"]["parameters"] == {
        "type": "object",
        "properties": {"summary": {"type": "string", "description": "s"}},
        "required": ["summary"],
    }


def test_enum_and_items_survive_serialization():
    specs = {s.name: s for s in default_function_specs()}
    analyze = specs[ANALYZE_VERSION_BUMP].to_tool()["function"]["parameters"]
    assert analyze["properties"]["breaking_keywords"]["items"] == {"type": "string"}


def test_select_inputs_drops_undeclared_keys():
    spec = _spec()
    assert spec.select_inputs({"summary": "x", "extra": 1}) == {"summary": "x"}
    assert spec.missing_inputs({}) == ["summary"]


def test_configured_specs_override_defaults_by_name():
    custom = _spec(name=GENERATE_COMMIT_MESSAGE, user_prompt="custom {{ summary }}")
    merged = merge_specs(default_function_specs(), [custom])
    registry = FunctionRegistry(merged)
    assert registry.get(GENERATE_COMMIT_MESSAGE).user_prompt == "custom {{ summary }}"
    assert len(registry) == len(REQUIRED_FUNCTIONS)
