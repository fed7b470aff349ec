"""Conversation, backend and dispatch data models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

Role = Literal["user", "assistant"]

ROLES: frozenset[str] = frozenset({"user", "assistant"})


class Turn(BaseModel):
    """One persisted, role-tagged message within a session."""

    id: int
    """Store-assigned sequence id, increasing in insertion order."""
    session_id: str
    role: Role
    content: str = Field(min_length=1)
    created_at: int
    """Unix millisecond timestamp. Replay order is ``(created_at, id)``."""

    def to_chat_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class ChatMessage(BaseModel):
    """A ``{role, content}`` pair in the format sent to the backend."""

    role: str
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class BackendReply(BaseModel):
    """Generated text returned by the backend."""

    content: str
    model: str | None = None
    finish_reason: str | None = None


class ChatResult(BaseModel):
    """Outcome of one conversational exchange."""

    session_id: str
    response_text: str


class OperationDescriptor(BaseModel):
    """Catalog entry advertised to the transport for one operation."""

    name: str
    description: str
    input_schema: dict[str, Any]


class ResultEnvelope(BaseModel):
    """
    Uniform success/failure wrapper returned by ``Dispatcher.invoke()``.

    Exactly one of ``payload`` (on success) or ``message`` (on failure) is set.
    """

    success: bool
    payload: str | None = None
    message: str | None = None

    @classmethod
    def ok(cls, payload: str) -> ResultEnvelope:
        return cls(success=True, payload=payload)

    @classmethod
    def fail(cls, message: str) -> ResultEnvelope:
        return cls(success=False, message=message)

    @property
    def text(self) -> str:
        """The payload on success, the error message on failure."""
        return (self.payload if self.success else self.message) or ""

    def to_tool_result(self) -> dict[str, Any]:
        """Render as the ``{isError, content}`` response shape of the transport."""
        return {"isError": not self.success, "content": self.text}
