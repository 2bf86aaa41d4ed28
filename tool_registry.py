"""
tool_registry.py - Immutable tool registry and dispatch

Tools are STATELESS descriptors: a name, a description for the model, an
explicit JSON schema, and a plain handler function. Context (the working
directory) is passed to the handler at call time, never stored on the tool.

    @tool(
        name="read_file",
        description="Read a file.",
        schema={"type": "object", "properties": {"path": {"type": "string"}}, "required": ["path"]},
    )
    def read_file(context: ToolContext, path: str) -> str:
        ...

    REGISTRY = ToolRegistry([read_file, ...])   # built once, never changes
    REGISTRY.dispatch(ctx, "toolu_1", "read_file", {"path": "a.txt"})

dispatch() never raises for tool-level problems. Unknown names, malformed
input and handler failures all come back as a ToolResultBlock with
is_error=True so the agent loop keeps going.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable

from langfuse import observe

from conversation import ToolResultBlock, ToolUseBlock

TOOL_NOT_FOUND = "tool not found"
INVALID_INPUT = "invalid input parameters"

_JSON_TYPES = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "object": dict,
    "array": list,
}


def _matches_type(value: Any, json_type: str | None) -> bool:
    expected = _JSON_TYPES.get(json_type)
    if expected is None:
        return True
    # bool is an int subclass but never a valid JSON number
    if isinstance(value, bool):
        return expected is bool
    return isinstance(value, expected)


class ToolInputError(ValueError):
    """Tool input could not be decoded or does not match the schema."""

    def __init__(self, message: str = INVALID_INPUT):
        super().__init__(message)


@dataclass
class ToolContext:
    """Passed to every handler. Relative tool paths resolve against workdir."""
    workdir: Path

    def resolve(self, path: str) -> Path:
        return self.workdir / path


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    input_schema: dict
    handler: Callable[..., str]

    def to_schema(self) -> dict:
        """Tool definition in the shape the Messages API expects."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }

    def parse_input(self, raw_input: Any) -> dict:
        """
        Normalize a raw model payload into handler keyword arguments.

        Accepts a dict or a JSON string encoding one. Anything else, missing
        required keys, or values of the wrong JSON type raise ToolInputError.
        Unknown keys are dropped.
        """
        if isinstance(raw_input, (str, bytes)):
            try:
                raw_input = json.loads(raw_input or "{}")
            except json.JSONDecodeError as e:
                raise ToolInputError(f"{INVALID_INPUT}: {e}") from e
        if raw_input is None:
            raw_input = {}
        if not isinstance(raw_input, dict):
            raise ToolInputError()

        properties = self.input_schema.get("properties", {})
        for key in self.input_schema.get("required", []):
            if key not in raw_input:
                raise ToolInputError(f"{INVALID_INPUT}: missing '{key}'")

        params = {}
        for key, value in raw_input.items():
            if key not in properties:
                continue
            if not _matches_type(value, properties[key].get("type")):
                raise ToolInputError(f"{INVALID_INPUT}: '{key}' must be {properties[key]['type']}")
            params[key] = value
        return params


def tool(name: str, description: str, schema: dict):
    """
    Decorator turning a handler function into a ToolDescriptor.

    The handler is called as handler(context, **params) and returns the
    string fed back to the model. Raise to report a tool error.
    """
    def decorator(func: Callable[..., str]) -> ToolDescriptor:
        return ToolDescriptor(
            name=name,
            description=description,
            input_schema=schema,
            handler=func,
        )

    return decorator


class ToolRegistry:
    """
    Closed mapping from tool name to descriptor.

    Built once from a fixed list. There is no register/unregister: the set
    of tools the model sees cannot change during a session.
    """

    def __init__(self, tools):
        tools_by_name = {}
        for t in tools:
            if t.name in tools_by_name:
                raise ValueError(f"Duplicate tool name: {t.name}")
            tools_by_name[t.name] = t
        self._tools = MappingProxyType(tools_by_name)

    @property
    def tools(self) -> MappingProxyType:
        return self._tools

    def get(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def get_schemas(self) -> list[dict]:
        return [t.to_schema() for t in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    @observe(name="ToolDispatch")
    def dispatch(self, context: ToolContext, tool_use_id: str, name: str, raw_input: Any) -> ToolResultBlock:
        """
        Execute one tool call. Blocks until the handler returns; there is no
        timeout.
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            return ToolResultBlock(tool_use_id=tool_use_id, content=TOOL_NOT_FOUND, is_error=True)

        log_tool_call(name, raw_input)

        try:
            params = descriptor.parse_input(raw_input)
            output = descriptor.handler(context, **params)
        except Exception as e:
            return ToolResultBlock(tool_use_id=tool_use_id, content=str(e) or type(e).__name__, is_error=True)

        return ToolResultBlock(tool_use_id=tool_use_id, content=output, is_error=False)

    def dispatch_all(self, context: ToolContext, tool_uses: list[ToolUseBlock]) -> list[ToolResultBlock]:
        """Run one model turn's tool calls in order, one at a time."""
        return [self.dispatch(context, tu.id, tu.name, tu.input) for tu in tool_uses]


def log_tool_call(name: str, raw_input: Any):
    if not isinstance(raw_input, str):
        raw_input = json.dumps(raw_input, ensure_ascii=False, default=str)
    print(f"\u001b[92mtool\u001b[0m: {name}({raw_input})")
