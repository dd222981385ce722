"""
quizmize.api.routes.missions — Group missions
===============================================
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from quizmize.api.deps import ConfigDep, CurrentAccount, EngineDep, HubDep
from quizmize.database.engine import run_db
from quizmize.engine.events import GroupEvent
from quizmize.services import mission_service
from quizmize.services.award_service import award_and_notify

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/groups/{group_id}/missions", tags=["missions"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class MissionQuestion(BaseModel):
    text: str = ""
    choices: list[str] = Field(default_factory=list)
    correct_answer: int | None = Field(None, alias="correctAnswer")
    explanation: str = ""


class MissionCreate(BaseModel):
    title: str
    description: str = ""
    type: str
    questions: list[MissionQuestion] = Field(default_factory=list)
    points: int = 100
    duration: int
    deadline: datetime | None = None


class AnswerBody(BaseModel):
    question_index: int = Field(alias="questionIndex")
    selected_answer: int = Field(alias="selectedAnswer")


# ---------------------------------------------------------------------------
# Missions
# ---------------------------------------------------------------------------
@router.get("")
async def list_missions(group_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(mission_service.list_missions, engine, group_id, account.id)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_mission(
    group_id: int, body: MissionCreate, account: CurrentAccount, engine: EngineDep
):
    questions = [
        {
            "text": q.text,
            "choices": q.choices,
            "correct_answer": q.correct_answer,
            "explanation": q.explanation,
        }
        for q in body.questions
    ]
    return await run_db(
        mission_service.create_mission, engine, group_id, account.id,
        title=body.title,
        mission_type=body.type,
        duration=body.duration,
        description=body.description,
        questions=questions,
        points=body.points,
        deadline=body.deadline,
    )


@router.get("/{mission_id}")
async def get_mission(group_id: int, mission_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(mission_service.get_mission, engine, group_id, mission_id, account.id)


@router.delete("/{mission_id}")
async def delete_mission(
    group_id: int, mission_id: int, account: CurrentAccount, engine: EngineDep
):
    await run_db(mission_service.delete_mission, engine, group_id, mission_id, account.id)
    return {"message": "Mission deleted"}


# ---------------------------------------------------------------------------
# Participation
# ---------------------------------------------------------------------------
@router.post("/{mission_id}/join")
async def join_mission(group_id: int, mission_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(mission_service.join_mission, engine, group_id, mission_id, account.id)


@router.post("/{mission_id}/answer")
async def answer(
    group_id: int, mission_id: int, body: AnswerBody, account: CurrentAccount,
    engine: EngineDep, hub: HubDep, cfg: ConfigDep,
):
    result = await run_db(
        mission_service.submit_answer, engine, group_id, mission_id, account.id,
        body.question_index, body.selected_answer,
        account_policy=cfg.account_policy,
    )
    if result["justCompleted"]:
        await award_and_notify(
            engine, hub, group_id, GroupEvent.MISSION_COMPLETED,
            metadata={"missionId": mission_id, "accountId": account.id},
            points=result["missionPoints"],
            policy=cfg.group_policy,
        )
    return result


@router.post("/{mission_id}/complete")
async def complete(group_id: int, mission_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(mission_service.complete_mission, engine, group_id, mission_id, account.id)


@router.api_route("/{mission_id}/progress", methods=["GET", "POST"])
async def progress(group_id: int, mission_id: int, account: CurrentAccount, engine: EngineDep):
    return await run_db(mission_service.get_progress, engine, group_id, mission_id, account.id)
