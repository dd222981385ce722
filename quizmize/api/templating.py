"""
quizmize.api.templating — Jinja2 page rendering
=================================================
"""

from __future__ import annotations

from pathlib import Path

from starlette.requests import Request
from starlette.templating import Jinja2Templates

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


def render_error(request: Request, message: str, status_code: int):
    """The shared error page used by every HTML route."""
    return templates.TemplateResponse(
        request,
        "error.html",
        {"error": message, "status_code": status_code, "user": None},
        status_code=status_code,
    )
