"""
quizmize.api.routes.pages — Server-rendered pages
===================================================

Thin Jinja2 views over the same services the JSON API uses.  Errors raised
here are rendered as ``error.html`` by the handlers in
:mod:`quizmize.api.main`.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

from quizmize.api.deps import ConfigDep, EngineDep, OptionalAccount
from quizmize.api.templating import templates
from quizmize.database.engine import run_db
from quizmize.services import group_service, university_service

router = APIRouter(tags=["pages"], include_in_schema=False)


def _context(cfg, account, **extra) -> dict:
    return {"site_name": cfg.site_name, "site_tagline": cfg.site_tagline, "user": account, **extra}


@router.get("/", response_class=HTMLResponse)
def home(request: Request, account: OptionalAccount, cfg: ConfigDep):
    return templates.TemplateResponse(request, "home.html", _context(cfg, account))


@router.get("/groups", response_class=HTMLResponse)
async def groups_page(request: Request, account: OptionalAccount, cfg: ConfigDep, engine: EngineDep):
    groups = await run_db(group_service.list_groups, engine)
    return templates.TemplateResponse(request, "groups.html", _context(cfg, account, groups=groups))


@router.get("/universities", response_class=HTMLResponse)
async def universities_page(
    request: Request, account: OptionalAccount, cfg: ConfigDep, engine: EngineDep
):
    viewer = account.id if account else None
    universities = await run_db(university_service.list_universities, engine, viewer)
    return templates.TemplateResponse(
        request, "universities.html", _context(cfg, account, universities=universities)
    )


@router.get("/universities/{university_id}", response_class=HTMLResponse)
async def university_detail_page(
    university_id: int, request: Request, account: OptionalAccount,
    cfg: ConfigDep, engine: EngineDep,
):
    viewer = account.id if account else None
    university = await run_db(university_service.get_university, engine, university_id, viewer)
    return templates.TemplateResponse(
        request,
        "university_detail.html",
        _context(cfg, account, university=university, title=f"{university['name']} - {cfg.site_name}"),
    )
