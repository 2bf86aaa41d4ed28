"""
conversation.py - Message types and the append-only conversation history

Content blocks mirror the Anthropic wire format:

    {"type": "text", "text": ...}
    {"type": "tool_use", "id": ..., "name": ..., "input": ...}
    {"type": "tool_result", "tool_use_id": ..., "content": ..., "is_error": ...}

A model turn with N tool_use blocks must be answered by exactly one user
message carrying N tool_result blocks before the model is asked anything
else. Conversation.append() refuses any message that breaks this pairing.
"""

from dataclasses import dataclass, field
from typing import Any, Iterator, Union

USER = "user"
ASSISTANT = "assistant"


class ConversationError(Exception):
    """Raised when a message would break the tool_use/tool_result pairing."""


@dataclass(frozen=True)
class TextBlock:
    text: str
    type: str = field(default="text", init=False)

    def to_api(self) -> dict:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class ToolUseBlock:
    """A tool invocation requested by the model."""
    id: str
    name: str
    input: Any
    type: str = field(default="tool_use", init=False)

    def to_api(self) -> dict:
        return {"type": self.type, "id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class ToolResultBlock:
    """Outcome of one dispatched tool call, fed back to the model."""
    tool_use_id: str
    content: str
    is_error: bool = False
    type: str = field(default="tool_result", init=False)

    def to_api(self) -> dict:
        return {
            "type": self.type,
            "tool_use_id": self.tool_use_id,
            "content": self.content,
            "is_error": self.is_error,
        }


ContentBlock = Union[TextBlock, ToolUseBlock, ToolResultBlock]


@dataclass(frozen=True)
class Message:
    role: str
    content: tuple

    def __post_init__(self):
        if self.role not in (USER, ASSISTANT):
            raise ValueError(f"Unknown role: {self.role!r}")
        # Accept any iterable of blocks but store it immutably
        object.__setattr__(self, "content", tuple(self.content))

    @classmethod
    def user_text(cls, text: str) -> "Message":
        return cls(role=USER, content=(TextBlock(text),))

    @classmethod
    def tool_results(cls, results: list) -> "Message":
        return cls(role=USER, content=tuple(results))

    def text_blocks(self) -> list[TextBlock]:
        return [b for b in self.content if b.type == "text"]

    def tool_uses(self) -> list[ToolUseBlock]:
        return [b for b in self.content if b.type == "tool_use"]

    def tool_results_blocks(self) -> list[ToolResultBlock]:
        return [b for b in self.content if b.type == "tool_result"]

    def to_api(self) -> dict:
        return {"role": self.role, "content": [b.to_api() for b in self.content]}


class Conversation:
    """
    Ordered, append-only history of messages.

    The only way to change a conversation is append(). Messages are frozen,
    so nothing already in the history can be edited, removed or reordered.
    """

    def __init__(self):
        self._messages: list[Message] = []

    def append(self, message: Message) -> None:
        self._check_pairing(message)
        self._messages.append(message)

    def _check_pairing(self, message: Message) -> None:
        results = message.tool_results_blocks()
        pending = self._pending_tool_ids()

        if pending and message.role == USER:
            answered = [r.tool_use_id for r in results]
            if sorted(answered) != sorted(pending):
                raise ConversationError(
                    f"Expected results for {sorted(pending)}, got {sorted(answered)}"
                )
            return

        if pending:
            raise ConversationError(
                f"Tool calls {sorted(pending)} must be answered before a new {message.role} turn"
            )
        if results:
            raise ConversationError("tool_result blocks without a preceding tool_use turn")

    def _pending_tool_ids(self) -> list[str]:
        last = self.last()
        if last is None or last.role != ASSISTANT:
            return []
        return [b.id for b in last.tool_uses()]

    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __getitem__(self, index):
        return self._messages[index]

    def to_api(self) -> list[dict]:
        return [m.to_api() for m in self._messages]
