"""
inference_gateway.py - Model request/response boundary

The agent loop only needs one operation:

    send(conversation, tools) -> Message

AnthropicGateway implements it with the Messages API. Errors from the
SDK (network, auth, rate limits) are not caught here: they end the session.
Retries, if wanted, belong to the client (Anthropic(max_retries=...)).
"""

import json
import os
from typing import Protocol

from anthropic import Anthropic
from langfuse import observe

from conversation import ASSISTANT, Conversation, Message, TextBlock, ToolUseBlock


def debug_log_enabled() -> bool:
    # Read per call: .env is loaded after import
    return os.getenv("DEBUG_LOG", "false").lower() == "true"


def log_api_call(caller: str, system: str, messages: list, tools: list):
    if not debug_log_enabled():
        return
    print("\n" + "=" * 80)
    print(f"[API CALL] from: {caller}")
    print("=" * 80)
    print(json.dumps({
        "system": system,
        "messages": messages,
        "tools": tools
    }, ensure_ascii=False, indent=2, default=str))
    print("=" * 80 + "\n")


def log_api_response(caller: str, response):
    if not debug_log_enabled():
        return
    print("\n" + "=" * 80)
    print(f"[API RESPONSE] from: {caller}")
    print("=" * 80)
    print(response)
    print("=" * 80 + "\n")


class InferenceGateway(Protocol):
    def send(self, conversation: Conversation, tools: list[dict]) -> Message:
        ...


def message_from_response(response) -> Message:
    """Convert SDK content blocks to our Message, keeping text and tool_use only."""
    blocks = []
    for block in response.content:
        if block.type == "text":
            blocks.append(TextBlock(block.text))
        elif block.type == "tool_use":
            blocks.append(ToolUseBlock(id=block.id, name=block.name, input=block.input))
    return Message(role=ASSISTANT, content=blocks)


class AnthropicGateway:
    """Sends the full conversation and tool list on every call."""

    def __init__(self, client: Anthropic, model: str, max_tokens: int = 1024, system: str | None = None):
        self.client = client
        self.model = model
        self.max_tokens = max_tokens
        self.system = system

    @observe(name="Inference")
    def send(self, conversation: Conversation, tools: list[dict]) -> Message:
        messages = conversation.to_api()
        log_api_call("agent", self.system, messages, tools)

        kwargs = {}
        if self.system:
            kwargs["system"] = self.system
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=messages,
            tools=tools,
            **kwargs,
        )

        log_api_response("agent", response)
        return message_from_response(response)
