"""
HTML template rendering for ctx.render().

Templates are loaded with jinja2 from ServerConfig.view_path. The
Environment keeps compiled templates in its own cache, so each file is
read and compiled once per process. Output is HTML-escaped.

    renderer = TemplateRenderer("./views")
    html = renderer.render("index.html", {"title": "Home"})

Missing templates raise jinja2.TemplateNotFound and broken ones raise
jinja2.TemplateError; both reach the recovery boundary as a 500.
"""

from typing import Any, Mapping, Optional

from jinja2 import Environment, FileSystemLoader


class TemplateRenderer:
    def __init__(self, view_path: str, auto_reload: bool = False):
        self.view_path = view_path
        self._env = Environment(
            loader=FileSystemLoader(view_path),
            autoescape=True,
            auto_reload=auto_reload,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template: str, data: Optional[Mapping[str, Any]] = None) -> str:
        return self._env.get_template(template).render(dict(data or {}))
