#!/usr/bin/env python3
"""
edit_agent.py - Local file-editing agent

The whole agent is one small state machine:

    WAIT_FOR_USER --(line of input)--> INFER
    WAIT_FOR_USER --(end of input)---> DONE
    INFER --(no tool_use blocks)-----> WAIT_FOR_USER   (print the text)
    INFER --(1+ tool_use blocks)-----> DISPATCH
    DISPATCH --(all results, 1 msg)--> INFER           (no user input read)

The model keeps control for as long as it keeps asking for tools. Tool
calls in one turn run in order, one at a time, and all of their results go
back to the model in a single user message.

Tools: read_file, list_files, edit_file (see file_tools.py).

Usage:
    python edit_agent.py
"""

import os
import sys
import uuid
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable

from anthropic import Anthropic
from dotenv import load_dotenv
from langfuse import get_client, observe

from conversation import Conversation, Message
from file_tools import BUILTIN_TOOLS
from inference_gateway import AnthropicGateway, InferenceGateway
from tool_registry import ToolContext, ToolRegistry

DEFAULT_MODEL = "claude-sonnet-4-5-20250929"
DEFAULT_MAX_TOKENS = 1024

EXIT_WORDS = ("exit", "quit", "q")


# =============================================================================
# Configuration
# =============================================================================

@dataclass(frozen=True)
class AgentConfig:
    model: str = DEFAULT_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    base_url: str | None = None
    langfuse_enabled: bool = False

    @classmethod
    def from_env(cls) -> "AgentConfig":
        return cls(
            model=os.getenv("MODEL_ID", DEFAULT_MODEL),
            max_tokens=int(os.getenv("MAX_TOKENS", DEFAULT_MAX_TOKENS)),
            base_url=os.getenv("ANTHROPIC_BASE_URL"),
            langfuse_enabled=bool(
                os.getenv("LANGFUSE_SECRET_KEY") and os.getenv("LANGFUSE_PUBLIC_KEY")
            ),
        )


def build_system_prompt(workdir: Path, registry: ToolRegistry) -> str:
    return f"""You are a coding agent at {workdir}.

Tools: {', '.join(registry.names())}.

Rules:
- Paths are relative to the working directory.
- Read a file before editing it. edit_file replaces only the first exact match of old_str.
- Prefer tools over prose. Act, don't just explain.
- After finishing, summarize what changed."""


# =============================================================================
# Console I/O
# =============================================================================

def read_user_input() -> str | None:
    """One line from the terminal, or None when the user is done."""
    while True:
        try:
            line = input("\u001b[94mYou\u001b[0m: ").strip()
        except (EOFError, KeyboardInterrupt):
            return None
        if not line:
            continue
        if line.lower() in EXIT_WORDS:
            return None
        return line


def print_model_text(text: str):
    print(f"\u001b[93mClaude\u001b[0m: {text}")


# =============================================================================
# Agent Loop
# =============================================================================

class LoopState(Enum):
    WAIT_FOR_USER = "wait_for_user"
    INFER = "infer"
    DISPATCH = "dispatch"
    DONE = "done"


class TurnLimitExceeded(Exception):
    """The model kept requesting tools past max_turns without handing back."""


class Agent:
    """
    Owns the conversation and drives it through the loop states.

    read_input returns None at end of input. display receives each text
    block the model produces.
    """

    def __init__(
        self,
        gateway: InferenceGateway,
        registry: ToolRegistry,
        context: ToolContext,
        read_input: Callable[[], str | None] = read_user_input,
        display: Callable[[str], None] = print_model_text,
        conversation: Conversation | None = None,
        max_turns: int | None = None,
    ):
        self.gateway = gateway
        self.registry = registry
        self.context = context
        self.read_input = read_input
        self.display = display
        self.conversation = conversation if conversation is not None else Conversation()
        self.max_turns = max_turns
        self.state = LoopState.WAIT_FOR_USER
        self._tool_rounds = 0

    def step(self) -> LoopState:
        handler = {
            LoopState.WAIT_FOR_USER: self._wait_for_user,
            LoopState.INFER: self._infer,
            LoopState.DISPATCH: self._dispatch,
        }.get(self.state)
        if handler is None:
            return self.state
        self.state = handler()
        return self.state

    def run(self) -> Conversation:
        while self.state is not LoopState.DONE:
            self.step()
        return self.conversation

    def _wait_for_user(self) -> LoopState:
        user_input = self.read_input()
        if user_input is None:
            return LoopState.DONE
        self.conversation.append(Message.user_text(user_input))
        self._tool_rounds = 0
        return LoopState.INFER

    def _infer(self) -> LoopState:
        message = self.gateway.send(self.conversation, self.registry.get_schemas())
        if not message.content:
            # The API rejects empty assistant turns in history, so drop it
            return LoopState.WAIT_FOR_USER
        self.conversation.append(message)

        for block in message.text_blocks():
            self.display(block.text)

        if not message.tool_uses():
            return LoopState.WAIT_FOR_USER
        return LoopState.DISPATCH

    def _dispatch(self) -> LoopState:
        self._tool_rounds += 1
        if self.max_turns is not None and self._tool_rounds > self.max_turns:
            raise TurnLimitExceeded(f"Reached max turns limit ({self.max_turns})")

        tool_uses = self.conversation.last().tool_uses()
        results = self.registry.dispatch_all(self.context, tool_uses)
        self.conversation.append(Message.tool_results(results))
        return LoopState.INFER


# =============================================================================
# Main REPL
# =============================================================================

def build_banner(workdir: Path, session_id: str, registry: ToolRegistry) -> str:
    quit_words = ", ".join(f"'{w}'" for w in EXIT_WORDS)
    return (
        f"Edit agent - {workdir}\n"
        f"Session: {session_id[:8]}...\n"
        f"Tools: {', '.join(registry.names())}\n"
        f"Chat with Claude (type {quit_words} or use ctrl-c to quit)\n"
    )


@observe(name="AgentSession")
def run_session(agent: Agent, session_id: str, tracing: bool = False) -> Conversation:
    if tracing:
        get_client().update_current_trace(session_id=session_id)
    return agent.run()


def main():
    load_dotenv(override=True)
    config = AgentConfig.from_env()

    workdir = Path.cwd()
    registry = ToolRegistry(BUILTIN_TOOLS)
    gateway = AnthropicGateway(
        client=Anthropic(base_url=config.base_url),
        model=config.model,
        max_tokens=config.max_tokens,
        system=build_system_prompt(workdir, registry),
    )
    agent = Agent(gateway, registry, ToolContext(workdir=workdir))

    session_id = str(uuid.uuid4())

    print(build_banner(workdir, session_id, registry))

    try:
        run_session(agent, session_id, tracing=config.langfuse_enabled)
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        if config.langfuse_enabled:
            get_client().flush()


if __name__ == "__main__":
    main()
