"""Operation catalog: parameter models, prompt templates, and handlers."""

from perplexity_mcp.operations.arguments import (
    ApiFinderArguments,
    ChatArguments,
    DeprecatedCodeArguments,
    DocumentationArguments,
    OperationArguments,
    SearchArguments,
)
from perplexity_mcp.operations.handlers import (
    ChatHandler,
    Operation,
    PromptHandler,
    build_operations,
)

__all__ = [
    "OperationArguments",
    "ChatArguments",
    "SearchArguments",
    "DocumentationArguments",
    "ApiFinderArguments",
    "DeprecatedCodeArguments",
    "Operation",
    "PromptHandler",
    "ChatHandler",
    "build_operations",
]
