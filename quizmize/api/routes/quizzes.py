"""
quizmize.api.routes.quizzes — Subject & quiz catalog
======================================================

Topics, subjects, quiz topics, quiz lists and quiz pages.  Reads are
public; writes need a site admin account.
"""

from __future__ import annotations

from fastapi import APIRouter, Query, status
from pydantic import BaseModel, Field

from quizmize.api.deps import EngineDep, SiteAdmin
from quizmize.database.engine import run_db
from quizmize.services import quiz_service

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SubjectCreate(BaseModel):
    category: str
    name: str
    url: str = ""


class QuestionBody(BaseModel):
    question: str
    choices: list[str]
    answer: int


class QuizCreate(BaseModel):
    subject: str
    quiz_topic: str = Field(alias="quizTopic")
    quiz_list: str = Field(alias="quizList")
    questions: list[QuestionBody] = Field(default_factory=list)


class PageQuestion(QuestionBody):
    subject: str
    quiz_topic: str = Field(alias="quizTopic")
    quiz_list: str = Field(alias="quizList")


class NameBody(BaseModel):
    name: str


class RenameBody(BaseModel):
    new_name: str = Field(alias="newName")


class QuizTopicCreate(BaseModel):
    subject: str
    name: str
    url: str = ""
    total: int = 0
    done: int = 0


class ProgressBody(BaseModel):
    total: int | None = None
    done: int | None = None


class CardCreate(BaseModel):
    card_title: str = Field(alias="cardTitle")
    card_difficulty: str = Field("", alias="cardDifficulty")
    card_background: str = Field("", alias="cardBackground")
    url: str = ""


class RetitleBody(BaseModel):
    new_title: str = Field(alias="newTitle")


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------
@router.get("/topics")
async def list_topics(engine: EngineDep):
    return await run_db(quiz_service.list_topics, engine)


@router.post("/topics", status_code=status.HTTP_201_CREATED)
async def create_topic(body: NameBody, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.create_topic, engine, body.name)


@router.put("/topics/{name}")
async def rename_topic(name: str, body: RenameBody, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.rename_topic, engine, name, body.new_name)


@router.delete("/topics/{name}")
async def delete_topic(name: str, admin: SiteAdmin, engine: EngineDep):
    await run_db(quiz_service.delete_topic, engine, name)
    return {"message": "Topic deleted"}


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------
@router.get("/subjects")
async def list_subjects(engine: EngineDep, category: str | None = Query(None)):
    return await run_db(quiz_service.list_subjects, engine, category)


@router.post("/subjects", status_code=status.HTTP_201_CREATED)
async def create_subject(body: SubjectCreate, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.create_subject, engine, body.category, body.name, body.url)


@router.put("/subjects/{subject_id}")
async def rename_subject(subject_id: int, body: RenameBody, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.rename_subject, engine, subject_id, body.new_name)


@router.delete("/subjects/{subject_id}")
async def delete_subject(subject_id: int, admin: SiteAdmin, engine: EngineDep):
    await run_db(quiz_service.delete_subject, engine, subject_id)
    return {"message": "Subject deleted"}


# ---------------------------------------------------------------------------
# Quiz topics
# ---------------------------------------------------------------------------
@router.get("/quiz-topics")
async def list_quiz_topics(engine: EngineDep, subject: str | None = Query(None)):
    return await run_db(quiz_service.list_quiz_topics, engine, subject)


@router.post("/quiz-topics", status_code=status.HTTP_201_CREATED)
async def add_quiz_topic(body: QuizTopicCreate, admin: SiteAdmin, engine: EngineDep):
    return await run_db(
        quiz_service.add_quiz_topic, engine, body.subject, body.name, body.url,
        body.total, body.done,
    )


@router.put("/quiz-topics/{quiz_topic_id}")
async def rename_quiz_topic(
    quiz_topic_id: int, body: RenameBody, admin: SiteAdmin, engine: EngineDep
):
    return await run_db(quiz_service.rename_quiz_topic, engine, quiz_topic_id, body.new_name)


@router.patch("/quiz-topics/{quiz_topic_id}/progress")
async def update_quiz_topic_progress(
    quiz_topic_id: int, body: ProgressBody, admin: SiteAdmin, engine: EngineDep
):
    return await run_db(
        quiz_service.update_quiz_topic_progress, engine, quiz_topic_id,
        total=body.total, done=body.done,
    )


@router.delete("/quiz-topics/{quiz_topic_id}")
async def delete_quiz_topic(quiz_topic_id: int, admin: SiteAdmin, engine: EngineDep):
    await run_db(quiz_service.delete_quiz_topic, engine, quiz_topic_id)
    return {"message": "Quiz topic deleted"}


# ---------------------------------------------------------------------------
# Quiz lists
# ---------------------------------------------------------------------------
@router.get("/lists")
async def list_quiz_lists(
    engine: EngineDep, quiz_topic: str | None = Query(None, alias="quizTopic")
):
    return await run_db(quiz_service.list_quiz_lists, engine, quiz_topic)


@router.get("/lists/{quiz_topic}/{name}")
async def get_quiz_list(quiz_topic: str, name: str, engine: EngineDep):
    return await run_db(quiz_service.get_quiz_list, engine, quiz_topic, name)


@router.post("/lists/{quiz_topic}/{name}", status_code=status.HTTP_201_CREATED)
async def add_quiz_card(
    quiz_topic: str, name: str, body: CardCreate, admin: SiteAdmin, engine: EngineDep
):
    return await run_db(
        quiz_service.add_quiz_card, engine, quiz_topic, name,
        card_title=body.card_title,
        card_difficulty=body.card_difficulty,
        card_background=body.card_background,
        url=body.url,
    )


@router.patch("/lists/{quiz_topic}/{name}/{index}")
async def retitle_quiz_card(
    quiz_topic: str, name: str, index: int, body: RetitleBody,
    admin: SiteAdmin, engine: EngineDep,
):
    return await run_db(
        quiz_service.retitle_quiz_card, engine, quiz_topic, name, index, body.new_title
    )


@router.delete("/lists/{quiz_topic}/{name}/{index}")
async def delete_quiz_card(
    quiz_topic: str, name: str, index: int, admin: SiteAdmin, engine: EngineDep
):
    return await run_db(quiz_service.delete_quiz_card, engine, quiz_topic, name, index)


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------
@router.get("")
async def list_quizzes(
    engine: EngineDep,
    subject: str | None = Query(None),
    quiz_topic: str | None = Query(None, alias="quizTopic"),
):
    return await run_db(quiz_service.list_quizzes, engine, subject, quiz_topic)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_quiz(body: QuizCreate, admin: SiteAdmin, engine: EngineDep):
    return await run_db(
        quiz_service.create_quiz, engine, body.subject, body.quiz_topic, body.quiz_list,
        [q.model_dump() for q in body.questions],
    )


@router.post("/page-questions", status_code=status.HTTP_201_CREATED)
async def add_page_question(body: PageQuestion, admin: SiteAdmin, engine: EngineDep):
    return await run_db(
        quiz_service.add_page_question, engine, body.subject, body.quiz_topic, body.quiz_list,
        {"question": body.question, "choices": body.choices, "answer": body.answer},
    )


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: int, engine: EngineDep):
    return await run_db(quiz_service.get_quiz, engine, quiz_id)


@router.post("/{quiz_id}/questions", status_code=status.HTTP_201_CREATED)
async def add_question(quiz_id: int, body: QuestionBody, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.add_question, engine, quiz_id, body.model_dump())


@router.patch("/{quiz_id}/questions/{index}")
async def update_question(
    quiz_id: int, index: int, body: QuestionBody, admin: SiteAdmin, engine: EngineDep
):
    return await run_db(quiz_service.update_question, engine, quiz_id, index, body.model_dump())


@router.delete("/{quiz_id}/questions/{index}")
async def delete_question(quiz_id: int, index: int, admin: SiteAdmin, engine: EngineDep):
    return await run_db(quiz_service.delete_question, engine, quiz_id, index)
