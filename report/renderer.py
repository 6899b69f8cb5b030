"""
Comment rendering with Jinja2 templates.
Templates are looked up as `<name>.j2` in a templates directory, or given inline.
The template context holds every event property (dashes in keys become underscores),
the raw `properties` mapping, and an `its` helper for tracker specific markup.
"""

import os
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_SUFFIX = '.j2'


def default_templates_dir() -> str:
    return os.path.join(os.path.dirname(__file__), 'templates')


class ItsTemplateHelper:
    """Exposed to templates as `its`."""

    def __init__(self, its):
        self._its = its

    def format_link(self, url: str, caption: Optional[str] = None) -> str:
        return self._its.create_link_for_webui(url, caption or url)


def _context(properties: Dict[str, str], its) -> Dict[str, Any]:
    context: Dict[str, Any] = {key.replace('-', '_'): value for key, value in properties.items()}
    context['properties'] = dict(properties)
    context['its'] = ItsTemplateHelper(its)
    return context


class CommentRenderer:
    def __init__(self, templates_dir: Optional[str] = None):
        self.templates_dir = templates_dir or default_templates_dir()
        self.env = Environment(
            loader=FileSystemLoader(self.templates_dir),
            autoescape=select_autoescape(['html', 'xml'], default_for_string=False),
            keep_trailing_newline=False,
        )

    def render_template(self, name: str, properties: Dict[str, str], its) -> str:
        """Render the named template. Raises jinja2.TemplateNotFound for unknown names."""
        tmpl = self.env.get_template(name + TEMPLATE_SUFFIX)
        return tmpl.render(**_context(properties, its)).strip()

    def render_inline(self, source: str, properties: Dict[str, str], its) -> str:
        return self.env.from_string(source).render(**_context(properties, its)).strip()
