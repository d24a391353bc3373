"""Jinja2 template rendering for scaffolded files and paths.

Provides the TemplateRenderer class which renders template strings (file
contents, include path patterns, descriptor instructions) against a variable
map.  Templates use the ``{{ var }}`` / ``{% tag %}`` syntax shared by Liquid
and Jinja2, plus the case-conversion filters registered below.
"""

from __future__ import annotations

import re
from typing import Any

from jinja2 import Environment


# ---------------------------------------------------------------------------
# Syntax detection
# ---------------------------------------------------------------------------

_TEMPLATE_SYNTAX = re.compile(r"\{\{.*?\}\}|\{%.*?%\}", re.DOTALL)


# ---------------------------------------------------------------------------
# TemplateRenderer
# ---------------------------------------------------------------------------


class TemplateRenderer:
    """Renders template strings with a variables context.

    Rendering is pure and synchronous; callers that touch the filesystem do
    so through a ``FileSystemPort`` and hand the text to :meth:`render_string`.
    Undefined variables render as empty strings.
    """

    def __init__(self) -> None:
        self.env = Environment(
            autoescape=False,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        # Register custom filters
        self.env.filters["slugify"] = _slugify_filter
        self.env.filters["pascalCase"] = _pascal_case_filter
        self.env.filters["camelCase"] = _camel_case_filter
        self.env.filters["kebabCase"] = _kebab_case_filter
        self.env.filters["snakeCase"] = _snake_case_filter
        self.env.filters["pascal_case"] = _pascal_case_filter
        self.env.filters["camel_case"] = _camel_case_filter
        self.env.filters["snake_case"] = _snake_case_filter

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render an inline template string with the provided context.

        Raises:
            jinja2.TemplateError: If the string is not a valid template.
        """
        template = self.env.from_string(template_string)
        return template.render(**context)

    def contains_template_syntax(self, text: str | None) -> bool:
        """Return ``True`` if *text* contains ``{{ ... }}`` or ``{% ... %}``."""
        if not text:
            return False
        return bool(_TEMPLATE_SYNTAX.search(text))

    def render_if_needed(self, text: str, context: dict[str, Any]) -> str:
        """Render *text* only when it contains template syntax."""
        if self.contains_template_syntax(text):
            return self.render_string(text, context)
        return text


# ---------------------------------------------------------------------------
# Jinja2 custom filters
# ---------------------------------------------------------------------------

def _split_words(value: str) -> list[str]:
    s1 = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", str(value))
    s2 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1 \2", s1)
    return [w for w in re.split(r"[^A-Za-z0-9]+", s2) if w]


def _slugify_filter(value: str) -> str:
    """Convert a string to a URL/filename-safe slug."""
    slug = re.sub(r"[^a-z0-9]+", "-", str(value).lower().strip())
    return slug.strip("-")


def _pascal_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``SomeThing``."""
    return "".join(word[:1].upper() + word[1:] for word in _split_words(value))


def _camel_case_filter(value: str) -> str:
    """Convert ``some-thing`` or ``some_thing`` to ``someThing``."""
    pascal = _pascal_case_filter(value)
    if pascal:
        return pascal[0].lower() + pascal[1:]
    return ""


def _kebab_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some_thing`` to ``some-thing``."""
    return "-".join(word.lower() for word in _split_words(value))


def _snake_case_filter(value: str) -> str:
    """Convert ``SomeThing`` or ``some-thing`` to ``some_thing``."""
    return "_".join(word.lower() for word in _split_words(value))
