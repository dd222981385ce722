"""
quizmize.api.auth — Signup, login & the JWT session cookie
============================================================
"""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, Field

from quizmize.api.deps import (
    COOKIE_NAME,
    TOKEN_MAX_AGE,
    ConfigDep,
    CurrentAccount,
    EngineDep,
    create_token,
)
from quizmize.config import QuizmizeConfig
from quizmize.database.engine import run_db
from quizmize.services import account_service, award_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/user", tags=["auth"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class Credentials(BaseModel):
    email: str = ""
    password: str = ""


class Signup(Credentials):
    full_name: str = Field("", alias="fullName")


class ProfileUpdate(BaseModel):
    full_name: str | None = Field(None, alias="fullName")
    email: str | None = None


class QuizHistoryEntry(BaseModel):
    quiz_topic: str = Field("", alias="quizTopic")
    subject: str = ""
    quiz_list: str = Field("", alias="quizList")
    score: int = 0
    total_questions: int = Field(0, alias="totalQuestions")
    xp: int = 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _session_response(account_id: int, status_code: int, cfg: QuizmizeConfig) -> JSONResponse:
    response = JSONResponse({"user": str(account_id)}, status_code=status_code)
    response.set_cookie(
        COOKIE_NAME,
        create_token(account_id),
        max_age=TOKEN_MAX_AGE,
        httponly=True,
        secure=cfg.cookie_secure,
        samesite="lax",
    )
    return response


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------
@router.post("/signup")
async def signup(body: Signup, engine: EngineDep, cfg: ConfigDep):
    account_id = await run_db(
        account_service.signup, engine, body.email, body.password, body.full_name
    )
    return _session_response(account_id, 201, cfg)


@router.post("/login")
async def login(body: Credentials, engine: EngineDep, cfg: ConfigDep):
    account_id = await run_db(account_service.login, engine, body.email, body.password)
    logger.info("Account %s logged in", account_id)
    return _session_response(account_id, 200, cfg)


@router.get("/logout")
def logout():
    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(COOKIE_NAME)
    return response


@router.get("/userdata")
async def userdata(account: CurrentAccount, engine: EngineDep, cfg: ConfigDep):
    return await run_db(account_service.get_profile, engine, account.id, cfg.account_policy)


@router.get("/xpHistory")
async def xp_history(account: CurrentAccount, engine: EngineDep):
    return await run_db(award_service.xp_history, engine, "account", account.id)


@router.post("/updateProfile")
async def update_profile(
    body: ProfileUpdate, account: CurrentAccount, engine: EngineDep, cfg: ConfigDep
):
    return await run_db(
        account_service.update_profile, engine, account.id,
        full_name=body.full_name, email=body.email, policy=cfg.account_policy,
    )


@router.post("/saveQuizHistory")
async def save_quiz_history(
    body: QuizHistoryEntry, account: CurrentAccount, engine: EngineDep, cfg: ConfigDep
):
    return await run_db(
        account_service.save_quiz_history, engine, account.id,
        quiz_topic=body.quiz_topic,
        subject=body.subject,
        quiz_list=body.quiz_list,
        score=body.score,
        total_questions=body.total_questions,
        xp=body.xp,
        policy=cfg.account_policy,
    )
