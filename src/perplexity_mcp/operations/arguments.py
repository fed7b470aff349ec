"""Parameter models for each operation, and the JSON Schemas advertised from them."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from perplexity_mcp.errors import InvalidArgumentsError

DetailLevel = Literal["brief", "normal", "detailed"]


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value


RequiredText = Annotated[str, AfterValidator(_not_blank)]
OptionalText = Annotated[str | None, AfterValidator(_blank_to_none)]


class OperationArguments(BaseModel):
    """Base class for operation parameters. Unknown keys are ignored; types are strict."""

    model_config = ConfigDict(extra="ignore", strict=True, frozen=True)

    @classmethod
    def parse(cls, operation: str, raw: Mapping[str, Any] | None) -> OperationArguments:
        """
        Validate raw invocation arguments.

        Raises:
            InvalidArgumentsError: On a missing, empty, or mistyped parameter.
        """
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise InvalidArgumentsError(operation, "arguments must be an object")
        try:
            return cls.model_validate(dict(raw))
        except ValidationError as exc:
            raise InvalidArgumentsError(operation, _describe(exc)) from exc

    @classmethod
    def input_schema(cls) -> dict[str, Any]:
        """
        JSON Schema for the transport's tool listing.

        Optional parameters are flattened to their non-null branch so the
        schema reads ``{"type": "string"}`` rather than ``anyOf [string, null]``.
        """
        schema = cls.model_json_schema()
        properties: dict[str, Any] = {}
        for name, prop in schema.get("properties", {}).items():
            flat = dict(prop)
            branches = [b for b in flat.pop("anyOf", []) if b.get("type") != "null"]
            if branches:
                flat = {**branches[0], **flat}
            flat.pop("title", None)
            flat.pop("default", None)
            properties[name] = flat
        return {
            "type": "object",
            "properties": properties,
            "required": list(schema.get("required", [])),
        }


class ChatArguments(OperationArguments):
    message: RequiredText = Field(description="The message to send to Perplexity AI")
    chat_id: OptionalText = Field(
        default=None,
        description=(
            "Optional: ID of an existing chat to continue. "
            "If not provided, a new chat will be created."
        ),
    )


class SearchArguments(OperationArguments):
    query: RequiredText = Field(description="The search query or question")
    detail_level: DetailLevel | None = Field(
        default=None,
        description="Optional: Desired level of detail (brief, normal, detailed)",
    )


class DocumentationArguments(OperationArguments):
    query: RequiredText = Field(
        description="The technology, library, or API to get documentation for"
    )
    context: OptionalText = Field(
        default=None,
        description="Additional context or specific aspects to focus on",
    )


class ApiFinderArguments(OperationArguments):
    requirement: RequiredText = Field(
        description="The functionality or requirement you're looking to fulfill"
    )
    context: OptionalText = Field(
        default=None,
        description="Additional context about the project or specific needs",
    )


class DeprecatedCodeArguments(OperationArguments):
    code: RequiredText = Field(description="The code snippet or dependency to check")
    technology: RequiredText = Field(
        description="The technology or framework context (e.g., 'React', 'Node.js')"
    )


def _describe(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        field = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{field}: {err['msg']}")
    return "; ".join(parts)
