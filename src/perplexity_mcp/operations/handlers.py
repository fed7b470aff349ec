"""Operation handlers and the data-driven operation table."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from jinja2 import Template

from perplexity_mcp.backend.client import AIBackendClient
from perplexity_mcp.conversation import ConversationService
from perplexity_mcp.models.conversation import ChatMessage, OperationDescriptor
from perplexity_mcp.operations import prompts
from perplexity_mcp.operations.arguments import (
    ApiFinderArguments,
    ChatArguments,
    DeprecatedCodeArguments,
    DocumentationArguments,
    OperationArguments,
    SearchArguments,
)

Handler = Callable[[OperationArguments], Awaitable[str]]


@dataclass(frozen=True)
class Operation:
    """One catalog entry: name, description, parameter model, and handler."""

    name: str
    description: str
    arguments: type[OperationArguments]
    handler: Handler

    @property
    def descriptor(self) -> OperationDescriptor:
        return OperationDescriptor(
            name=self.name,
            description=self.description,
            input_schema=self.arguments.input_schema(),
        )

    def parse(self, raw_args: object) -> OperationArguments:
        return self.arguments.parse(self.name, raw_args)  # type: ignore[arg-type]


class PromptHandler:
    """
    Stateless handler: render one user message, call the backend once,
    return its content verbatim.
    """

    def __init__(self, backend: AIBackendClient, template: str) -> None:
        self._backend = backend
        self._template: Template = prompts.compile_template(template)

    def build_message(self, args: OperationArguments) -> ChatMessage:
        return ChatMessage(role="user", content=prompts.render(self._template, args.model_dump()))

    async def __call__(self, args: OperationArguments) -> str:
        reply = await self._backend.generate([self.build_message(args)])
        return reply.content


class ChatHandler:
    """Stateful handler backed by :class:`ConversationService`."""

    def __init__(self, conversation: ConversationService) -> None:
        self._conversation = conversation

    async def __call__(self, args: OperationArguments) -> str:
        if not isinstance(args, ChatArguments):
            raise TypeError(f"expected ChatArguments, got {type(args).__name__}")
        result = await self._conversation.send_message(args.message, session_id=args.chat_id)
        return json.dumps(
            {"chat_id": result.session_id, "response": result.response_text},
            ensure_ascii=False,
        )


def build_operations(
    backend: AIBackendClient,
    conversation: ConversationService,
) -> list[Operation]:
    """The five operations, in catalog order."""
    return [
        Operation(
            name="chat_perplexity",
            description=(
                "Maintains ongoing conversations with Perplexity AI. Creates new chats "
                "or continues existing ones with full history context."
            ),
            arguments=ChatArguments,
            handler=ChatHandler(conversation),
        ),
        Operation(
            name="search",
            description=(
                "Perform a general search query to get comprehensive information on any topic"
            ),
            arguments=SearchArguments,
            handler=PromptHandler(backend, prompts.SEARCH),
        ),
        Operation(
            name="get_documentation",
            description=(
                "Get documentation and usage examples for a specific technology, library, or API"
            ),
            arguments=DocumentationArguments,
            handler=PromptHandler(backend, prompts.DOCUMENTATION),
        ),
        Operation(
            name="find_apis",
            description="Find and evaluate APIs that could be integrated into a project",
            arguments=ApiFinderArguments,
            handler=PromptHandler(backend, prompts.FIND_APIS),
        ),
        Operation(
            name="check_deprecated_code",
            description="Check if code or dependencies might be using deprecated features",
            arguments=DeprecatedCodeArguments,
            handler=PromptHandler(backend, prompts.CHECK_DEPRECATED_CODE),
        ),
    ]
