"""Jinja2 environment shared by every page.

Templates live in ``app/templates``. Renderers return ``Markup`` so a
rendered fragment can be passed into another template without being
escaped twice.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Callable

import jinja2
from fastapi.templating import Jinja2Templates
from markupsafe import Markup

from app.core.config import settings

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


def format_date(value: datetime | None) -> str:
    """``3/5/2026`` style date, empty for None."""
    if value is None:
        return ""
    return f"{value.month}/{value.day}/{value.year}"


def is_selected(current: Any, option: str) -> bool:
    """Whether ``option`` is the saved answer (or one of a multi-select's)."""
    if isinstance(current, list):
        return option in current
    return current is not None and str(current) == option


templates = Jinja2Templates(
    env=jinja2.Environment(
        loader=jinja2.FileSystemLoader(TEMPLATES_DIR),
        autoescape=jinja2.select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )
)
templates.env.globals["settings"] = settings
templates.env.filters["us_date"] = format_date
templates.env.tests["selected_in"] = lambda option, current: is_selected(current, option)


def render(name: str, **context: Any) -> Markup:
    return Markup(templates.get_template(name).render(**context))


def macro(name: str, macro_name: str) -> Callable[..., Markup]:
    """A macro exported by a template, callable from Python."""
    return getattr(templates.get_template(name).module, macro_name)
