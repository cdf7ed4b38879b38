"""Jinja2 rendering for provider URL templates and synthetic event text."""

from typing import Any
from urllib.parse import quote_plus

from jinja2 import Environment, StrictUndefined


def _urlencode(value: Any) -> str:
    return quote_plus(str(value))


class TemplateEngine:
    """Render short template strings with strict variable checking."""

    def __init__(self):
        """Initialize a string-only environment.

        Undefined variables raise instead of rendering as empty text, so a
        broken provider template fails loudly inside its adapter.
        """
        self.env = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self.env.filters["urlencode_plus"] = _urlencode
        self._cache: dict[str, Any] = {}

    def render_string(self, template_string: str, context: dict[str, Any]) -> str:
        """Render a template from a string.

        Args:
            template_string: Jinja2 template string
            context: Dictionary of template variables

        Returns:
            Rendered string, stripped of surrounding whitespace

        Raises:
            UndefinedError: If the template references a missing variable
            TemplateSyntaxError: If the template is malformed
        """
        template = self._cache.get(template_string)
        if template is None:
            template = self.env.from_string(template_string)
            self._cache[template_string] = template
        return template.render(**context).strip()


# Shared instance; templates are immutable once compiled
default_engine = TemplateEngine()
