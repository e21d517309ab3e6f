"""Jinja2 rendering for outgoing HTML email."""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


@lru_cache()
def get_environment() -> Environment:
    return Environment(
        loader=FileSystemLoader(TEMPLATE_DIR),
        autoescape=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_template(template_name: str, **context: Any) -> str:
    try:
        template = get_environment().get_template(template_name)
    except TemplateNotFound:
        logger.error("Template not found", extra={"template": template_name})
        raise
    return template.render(**context)


__all__ = ["get_environment", "render_template"]
