"""Jinja2 templates that turn operation parameters into a single outbound message."""

from __future__ import annotations

from typing import Any

from jinja2 import Environment, StrictUndefined, Template

_env = Environment(undefined=StrictUndefined, autoescape=False, keep_trailing_newline=False)

SEARCH = (
    "Please perform a comprehensive search on the following query: {{ query }}"
    "{% if detail_level %}\nPlease provide {{ detail_level }} level of detail in your response."
    "{% endif %}"
)

DOCUMENTATION = (
    "Please provide documentation and usage examples for {{ query }}."
    "{% if context %}\nFocus on the following aspects or context: {{ context }}{% endif %}"
)

FIND_APIS = (
    "Please find and evaluate APIs that could be integrated into a project "
    "to fulfill the following requirement: {{ requirement }}"
    "{% if context %}\nAdditional context about the project: {{ context }}{% endif %}"
    "\nFor each API, please provide:\n"
    "1. Name and brief description\n"
    "2. Main features relevant to the requirement\n"
    "3. Pricing model (free tier, paid, etc.)\n"
    "4. Ease of integration\n"
    "5. Documentation quality\n"
    "6. Community support and popularity\n"
    "7. Pros and cons"
)

CHECK_DEPRECATED_CODE = (
    "Please analyze the following {{ technology }} code or dependency for deprecated features:\n"
    "\n"
    "```\n"
    "{{ code }}\n"
    "```\n"
    "\n"
    "Please provide:\n"
    "1. Identification of any deprecated features, methods, or dependencies\n"
    "2. When each identified item was deprecated (if known)\n"
    "3. What the current recommended alternative is\n"
    "4. Example of how to update the code to use the recommended alternative\n"
    "5. Any potential breaking changes to be aware of when updating"
)


def compile_template(source: str) -> Template:
    return _env.from_string(source)


def render(template: Template, params: dict[str, Any]) -> str:
    return template.render(**params)
