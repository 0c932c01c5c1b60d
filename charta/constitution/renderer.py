"""CHARTA — Constitution Section Renderer.

Templates are Jinja2 markdown (``{{ scoring.rec }}``) rendered in a sandbox.
Undefined variables are errors: a section either renders completely or
raises ``TemplateRenderError`` naming its slug.
"""

from typing import Any, Dict

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from charta.core.errors import TemplateRenderError
from charta.core.logging import get_logger

logger = get_logger("constitution.renderer")


class TemplateRenderer:
    def __init__(self):
        self.env = SandboxedEnvironment(
            undefined=StrictUndefined,
            autoescape=False,
            keep_trailing_newline=True,
        )

    def render(self, slug: str, template_md: str, context: Dict[str, Any]) -> str:
        try:
            return self.env.from_string(template_md).render(**context)
        except Exception as e:
            logger.error(f"Failed to render template {slug}: {e}", extra={"slug": slug})
            raise TemplateRenderError(slug, str(e)) from e
