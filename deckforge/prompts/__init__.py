"""
Jinja2 prompt templates for deckforge.

Templates:
    expand_system.j2       Per-slide detail expansion, system role (varies by slide type)
    expand_user.j2         Per-slide detail expansion, context window
    outline_system.j2      Outline drafting, system role
    outline_user.j2        Outline drafting from a topic
    outline_regenerate.j2  Outline revision from an instruction

Author: Olivier Vitrac, PhD, HDR | olivier.vitrac@adservio.fr | Adservio | 2026-10-18
"""

from pathlib import Path
from typing import Any, List

from jinja2 import Environment, FileSystemLoader, StrictUndefined

_TEMPLATE_DIR = Path(__file__).parent

_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,  # Plain text prompts, not HTML
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=False,
    undefined=StrictUndefined,
)


def render_prompt(template_name: str, **kwargs: Any) -> str:
    """
    Render a prompt template with the given variables.

    Args:
        template_name: Template filename (e.g. "expand_user.j2")
        **kwargs: Variables to pass to the template

    Returns:
        Rendered prompt string
    """
    return _env.get_template(template_name).render(**kwargs)


def list_templates() -> List[str]:
    """List available prompt templates."""
    return sorted(p.name for p in _TEMPLATE_DIR.glob("*.j2"))
