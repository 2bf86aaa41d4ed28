"""
Unit tests for ToolRegistry: construction, schemas and dispatch semantics.
"""
import os
import sys
import tempfile
from pathlib import Path

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conversation import ToolUseBlock
from file_tools import BUILTIN_TOOLS
from tool_registry import (
    INVALID_INPUT,
    TOOL_NOT_FOUND,
    ToolContext,
    ToolRegistry,
    tool,
)

CTX = ToolContext(workdir=Path("."))


@tool(
    name="echo",
    description="Echo the text back.",
    schema={
        "type": "object",
        "properties": {
            "text": {"type": "string"},
            "times": {"type": "integer"},
        },
        "required": ["text"],
    },
)
def echo_tool(context: ToolContext, text: str, times: int = 1) -> str:
    return text * times


@tool(
    name="explode",
    description="Always fails.",
    schema={"type": "object", "properties": {}},
)
def explode_tool(context: ToolContext) -> str:
    raise RuntimeError("boom")


def make_registry():
    return ToolRegistry([echo_tool, explode_tool])


def test_builtin_registry_names_and_schemas():
    registry = ToolRegistry(BUILTIN_TOOLS)

    assert registry.names() == ["read_file", "list_files", "edit_file"]
    for schema in registry.get_schemas():
        assert set(schema) == {"name", "description", "input_schema"}
        assert schema["input_schema"]["type"] == "object"
        assert schema["description"]


def test_duplicate_names_rejected():
    with pytest.raises(ValueError, match="Duplicate tool name"):
        ToolRegistry([echo_tool, echo_tool])


def test_registry_mapping_is_read_only():
    registry = make_registry()

    with pytest.raises(TypeError):
        registry.tools["sneaky"] = echo_tool
    assert "sneaky" not in registry
    assert len(registry) == 2


def test_dispatch_success():
    result = make_registry().dispatch(CTX, "toolu_1", "echo", {"text": "ab", "times": 2})

    assert result.tool_use_id == "toolu_1"
    assert result.content == "abab"
    assert result.is_error is False


def test_dispatch_unknown_tool():
    result = make_registry().dispatch(CTX, "toolu_2", "rm_rf", {"path": "/"})

    assert result.tool_use_id == "toolu_2"
    assert result.content == TOOL_NOT_FOUND
    assert result.is_error is True


def test_dispatch_handler_exception_becomes_error_result():
    result = make_registry().dispatch(CTX, "toolu_3", "explode", {})

    assert result.is_error is True
    assert result.content == "boom"


def test_dispatch_decodes_json_string_input():
    result = make_registry().dispatch(CTX, "toolu_4", "echo", '{"text": "hi"}')

    assert result.is_error is False
    assert result.content == "hi"


@pytest.mark.parametrize("raw_input", [
    "{not json",
    "[1, 2, 3]",
    42,
    ["text"],
    {"times": 3},
    {"text": 5},
    {"text": "x", "times": "3"},
    {"text": "x", "times": True},
])
def test_malformed_input_is_recoverable(raw_input):
    result = make_registry().dispatch(CTX, "toolu_5", "echo", raw_input)

    assert result.is_error is True
    assert result.content.startswith(INVALID_INPUT)


@pytest.mark.parametrize("name", ["read_file", "list_files", "edit_file"])
def test_malformed_input_uniform_for_builtin_tools(name):
    registry = ToolRegistry(BUILTIN_TOOLS)

    with tempfile.TemporaryDirectory() as tmpdir:
        result = registry.dispatch(ToolContext(workdir=Path(tmpdir)), "toolu_6", name, "{{{")

    assert result.is_error is True
    assert result.content.startswith(INVALID_INPUT)


def test_unknown_keys_are_ignored():
    result = make_registry().dispatch(CTX, "toolu_7", "echo", {"text": "ok", "extra": 1})

    assert result.is_error is False
    assert result.content == "ok"


def test_dispatch_logs_invocation(capsys):
    make_registry().dispatch(CTX, "toolu_8", "echo", {"text": "logged"})

    out = capsys.readouterr().out
    assert "echo" in out
    assert '"text": "logged"' in out


def test_dispatch_all_preserves_order():
    calls = [
        ToolUseBlock(id="a", name="echo", input={"text": "1"}),
        ToolUseBlock(id="b", name="missing", input={}),
        ToolUseBlock(id="c", name="echo", input={"text": "3"}),
    ]

    results = make_registry().dispatch_all(CTX, calls)

    assert [r.tool_use_id for r in results] == ["a", "b", "c"]
    assert [r.is_error for r in results] == [False, True, False]
    assert results[2].content == "3"
