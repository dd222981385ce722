"""
quizmize.services.quiz_service — Quiz Catalog
==============================================

The catalog is a browse tree:

* **Topics**: top-level headings.
* **Subjects**: grouped by category, each with a link.
* **Quiz topics**: per subject, with ``total`` / ``done`` progress counters.
* **Quiz lists**: ordered cards (title, difficulty, background, link)
  addressed by ``(quiz_topic, list_name)`` and edited by position.
* **Quizzes**: the question pages, addressed by
  ``(subject, quiz_topic, quiz_list)``; each holds an ordered list of
  ``{question, choices, answer}`` entries, ``answer`` indexing ``choices``.

Writes are for site admins; the route layer enforces that.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from quizmize.database.engine import get_session
from quizmize.database.models import Quiz, QuizCard, QuizTopic, Subject, Topic
from quizmize.errors import ConflictError, NotFoundError, ValidationError

if TYPE_CHECKING:
    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

TOPIC_TAKEN = "That topic already exists"
SUBJECT_TAKEN = "That subject already exists"
QUIZ_TOPIC_TAKEN = "Quiz topic already exists in this subject"
CARD_DIFFICULTY_MAX_LENGTH = 50


def _subject_dict(s: Subject) -> dict:
    return {"id": str(s.id), "category": s.category, "name": s.name, "url": s.url}


def _quiz_dict(q: Quiz) -> dict:
    return {
        "id": str(q.id),
        "subject": q.subject,
        "quizTopic": q.quiz_topic,
        "quizList": q.quiz_list,
        "questions": list(q.questions),
    }


def _required(value: str | None, what: str) -> str:
    text = (value or "").strip()
    if not text:
        raise ValidationError(f"{what} is required")
    return text


def validate_question(raw: dict) -> dict:
    """Normalize one catalog question; needs 2+ choices and a valid answer."""
    question = str(raw.get("question") or "").strip()
    choices = [str(c).strip() for c in raw.get("choices") or []]
    answer = raw.get("answer")
    if not question:
        raise ValidationError("Question text is required")
    if len(choices) < 2 or not all(choices):
        raise ValidationError("A question needs at least two non-empty choices")
    if isinstance(answer, bool) or not isinstance(answer, int) or not 0 <= answer < len(choices):
        raise ValidationError("Answer must be the index of one of the choices")
    return {"question": question, "choices": choices, "answer": answer}


# ---------------------------------------------------------------------------
# Topics
# ---------------------------------------------------------------------------
def _topic_dict(t: Topic) -> dict:
    return {"id": str(t.id), "name": t.name}


def _load_topic(session: Session, name: str) -> Topic:
    topic = session.scalar(select(Topic).where(Topic.name == name))
    if topic is None:
        raise NotFoundError("Topic not found")
    return topic


def _topic_taken(session: Session, name: str, exclude_id: int | None = None) -> bool:
    query = select(Topic.id).where(func.lower(Topic.name) == name.lower())
    if exclude_id is not None:
        query = query.where(Topic.id != exclude_id)
    return session.scalar(query) is not None


def list_topics(engine: Engine) -> list[dict]:
    with get_session(engine) as session:
        return [_topic_dict(t) for t in session.scalars(select(Topic).order_by(Topic.name)).all()]


def create_topic(engine: Engine, name: str) -> dict:
    name = _required(name, "Topic name")
    try:
        with get_session(engine) as session:
            if _topic_taken(session, name):
                raise ConflictError(TOPIC_TAKEN)
            topic = Topic(name=name)
            session.add(topic)
            session.flush()
            return _topic_dict(topic)
    except IntegrityError:
        raise ConflictError(TOPIC_TAKEN) from None


def rename_topic(engine: Engine, name: str, new_name: str) -> dict:
    new_name = _required(new_name, "New topic name")
    try:
        with get_session(engine) as session:
            topic = _load_topic(session, name)
            if _topic_taken(session, new_name, exclude_id=topic.id):
                raise ConflictError(TOPIC_TAKEN)
            topic.name = new_name
            session.flush()
            return _topic_dict(topic)
    except IntegrityError:
        raise ConflictError(TOPIC_TAKEN) from None


def delete_topic(engine: Engine, name: str) -> None:
    with get_session(engine) as session:
        session.delete(_load_topic(session, name))
    logger.info("Catalog topic %r deleted", name)


# ---------------------------------------------------------------------------
# Subjects
# ---------------------------------------------------------------------------
def list_subjects(engine: Engine, category: str | None = None) -> list[dict]:
    with get_session(engine) as session:
        query = select(Subject).order_by(Subject.category, Subject.name)
        if category:
            query = query.where(Subject.category == category)
        return [_subject_dict(s) for s in session.scalars(query).all()]


def create_subject(engine: Engine, category: str, name: str, url: str = "") -> dict:
    category, name = (category or "").strip(), (name or "").strip()
    if not category or not name:
        raise ValidationError("Category and name are required")
    try:
        with get_session(engine) as session:
            subject = Subject(category=category, name=name, url=(url or "").strip())
            session.add(subject)
            session.flush()
            return _subject_dict(subject)
    except IntegrityError:
        raise ConflictError(SUBJECT_TAKEN) from None


def rename_subject(engine: Engine, subject_id: int, new_name: str) -> dict:
    new_name = _required(new_name, "New subject name")
    try:
        with get_session(engine) as session:
            subject = session.get(Subject, subject_id)
            if subject is None:
                raise NotFoundError("Subject not found")
            subject.name = new_name
            session.flush()
            return _subject_dict(subject)
    except IntegrityError:
        raise ConflictError(SUBJECT_TAKEN) from None


def delete_subject(engine: Engine, subject_id: int) -> None:
    with get_session(engine) as session:
        subject = session.get(Subject, subject_id)
        if subject is None:
            raise NotFoundError("Subject not found")
        session.delete(subject)


# ---------------------------------------------------------------------------
# Quiz topics
# ---------------------------------------------------------------------------
def _quiz_topic_dict(t: QuizTopic) -> dict:
    return {
        "id": str(t.id),
        "subject": t.subject,
        "name": t.name,
        "url": t.url,
        "total": t.total,
        "done": t.done,
    }


def _counter(value: object, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValidationError(f"{what} must be a non-negative whole number")
    return value


def _check_progress(total: int, done: int) -> None:
    if done > total:
        raise ValidationError("Done cannot exceed the total")


def _load_quiz_topic(session: Session, quiz_topic_id: int) -> QuizTopic:
    topic = session.scalar(
        select(QuizTopic).where(QuizTopic.id == quiz_topic_id).with_for_update()
    )
    if topic is None:
        raise NotFoundError("Quiz topic not found")
    return topic


def _quiz_topic_taken(
    session: Session, subject: str, name: str, exclude_id: int | None = None
) -> bool:
    query = select(QuizTopic.id).where(
        QuizTopic.subject == subject, func.lower(QuizTopic.name) == name.lower()
    )
    if exclude_id is not None:
        query = query.where(QuizTopic.id != exclude_id)
    return session.scalar(query) is not None


def list_quiz_topics(engine: Engine, subject: str | None = None) -> list[dict]:
    with get_session(engine) as session:
        query = select(QuizTopic).order_by(QuizTopic.subject, QuizTopic.id)
        if subject:
            query = query.where(QuizTopic.subject == subject)
        return [_quiz_topic_dict(t) for t in session.scalars(query).all()]


def add_quiz_topic(
    engine: Engine,
    subject: str,
    name: str,
    url: str = "",
    total: int = 0,
    done: int = 0,
) -> dict:
    """Add a quiz topic under *subject*; names are unique per subject, ignoring case."""
    subject = _required(subject, "Subject")
    name = _required(name, "Quiz topic name")
    total, done = _counter(total, "Total"), _counter(done, "Done")
    _check_progress(total, done)
    try:
        with get_session(engine) as session:
            if _quiz_topic_taken(session, subject, name):
                raise ConflictError(QUIZ_TOPIC_TAKEN)
            topic = QuizTopic(
                subject=subject, name=name, url=(url or "").strip(), total=total, done=done
            )
            session.add(topic)
            session.flush()
            return _quiz_topic_dict(topic)
    except IntegrityError:
        raise ConflictError(QUIZ_TOPIC_TAKEN) from None


def rename_quiz_topic(engine: Engine, quiz_topic_id: int, new_name: str) -> dict:
    new_name = _required(new_name, "New quiz topic name")
    try:
        with get_session(engine) as session:
            topic = _load_quiz_topic(session, quiz_topic_id)
            if _quiz_topic_taken(session, topic.subject, new_name, exclude_id=topic.id):
                raise ConflictError(QUIZ_TOPIC_TAKEN)
            topic.name = new_name
            session.flush()
            return _quiz_topic_dict(topic)
    except IntegrityError:
        raise ConflictError(QUIZ_TOPIC_TAKEN) from None


def update_quiz_topic_progress(
    engine: Engine,
    quiz_topic_id: int,
    *,
    total: int | None = None,
    done: int | None = None,
) -> dict:
    """Set either counter; the pair must still satisfy ``0 <= done <= total``."""
    with get_session(engine) as session:
        topic = _load_quiz_topic(session, quiz_topic_id)
        new_total = topic.total if total is None else _counter(total, "Total")
        new_done = topic.done if done is None else _counter(done, "Done")
        _check_progress(new_total, new_done)
        topic.total, topic.done = new_total, new_done
        session.flush()
        return _quiz_topic_dict(topic)


def delete_quiz_topic(engine: Engine, quiz_topic_id: int) -> None:
    with get_session(engine) as session:
        session.delete(_load_quiz_topic(session, quiz_topic_id))


# ---------------------------------------------------------------------------
# Quiz lists (cards)
# ---------------------------------------------------------------------------
def _card_dict(card: QuizCard, index: int) -> dict:
    return {
        "index": index,
        "id": str(card.id),
        "cardTitle": card.card_title,
        "cardDifficulty": card.card_difficulty,
        "cardBackground": card.card_background,
        "url": card.url,
    }


def _list_dict(quiz_topic: str, list_name: str, cards: list[QuizCard]) -> dict:
    return {
        "quizTopic": quiz_topic,
        "name": list_name,
        "quizlist": [_card_dict(c, i) for i, c in enumerate(cards)],
    }


def _cards(session: Session, quiz_topic: str, list_name: str) -> list[QuizCard]:
    return list(session.scalars(
        select(QuizCard)
        .where(QuizCard.quiz_topic == quiz_topic, QuizCard.list_name == list_name)
        .order_by(QuizCard.id)
    ).all())


def _card_at(cards: list[QuizCard], index: int) -> QuizCard:
    if not 0 <= index < len(cards):
        raise NotFoundError("Quiz card not found")
    return cards[index]


def list_quiz_lists(engine: Engine, quiz_topic: str | None = None) -> list[dict]:
    """Every list, each with its cards in order."""
    with get_session(engine) as session:
        query = select(QuizCard).order_by(QuizCard.quiz_topic, QuizCard.list_name, QuizCard.id)
        if quiz_topic:
            query = query.where(QuizCard.quiz_topic == quiz_topic)
        grouped: dict[tuple[str, str], list[QuizCard]] = {}
        for card in session.scalars(query).all():
            grouped.setdefault((card.quiz_topic, card.list_name), []).append(card)
        return [_list_dict(topic, name, cards) for (topic, name), cards in grouped.items()]


def get_quiz_list(engine: Engine, quiz_topic: str, list_name: str) -> dict:
    with get_session(engine) as session:
        return _list_dict(quiz_topic, list_name, _cards(session, quiz_topic, list_name))


def add_quiz_card(
    engine: Engine,
    quiz_topic: str,
    list_name: str,
    *,
    card_title: str,
    card_difficulty: str = "",
    card_background: str = "",
    url: str = "",
) -> dict:
    """Append a card; the list comes into being with its first card."""
    quiz_topic = _required(quiz_topic, "Quiz topic")
    list_name = _required(list_name, "List name")
    card_title = _required(card_title, "Card title")
    card_difficulty = (card_difficulty or "").strip()
    if len(card_difficulty) > CARD_DIFFICULTY_MAX_LENGTH:
        raise ValidationError(
            f"Difficulty must be at most {CARD_DIFFICULTY_MAX_LENGTH} characters"
        )
    with get_session(engine) as session:
        session.add(QuizCard(
            quiz_topic=quiz_topic,
            list_name=list_name,
            card_title=card_title,
            card_difficulty=card_difficulty,
            card_background=(card_background or "").strip(),
            url=(url or "").strip(),
        ))
        session.flush()
        return _list_dict(quiz_topic, list_name, _cards(session, quiz_topic, list_name))


def retitle_quiz_card(
    engine: Engine, quiz_topic: str, list_name: str, index: int, new_title: str
) -> dict:
    new_title = _required(new_title, "New title")
    with get_session(engine) as session:
        cards = _cards(session, quiz_topic, list_name)
        _card_at(cards, index).card_title = new_title
        session.flush()
        return _list_dict(quiz_topic, list_name, cards)


def delete_quiz_card(engine: Engine, quiz_topic: str, list_name: str, index: int) -> dict:
    with get_session(engine) as session:
        cards = _cards(session, quiz_topic, list_name)
        session.delete(_card_at(cards, index))
        del cards[index]
        session.flush()
        return _list_dict(quiz_topic, list_name, cards)


# ---------------------------------------------------------------------------
# Quizzes
# ---------------------------------------------------------------------------
def _address(subject: str, quiz_topic: str, quiz_list: str) -> tuple[str, str, str]:
    subject, quiz_topic, quiz_list = (
        (subject or "").strip(), (quiz_topic or "").strip(), (quiz_list or "").strip()
    )
    if not subject or not quiz_topic or not quiz_list:
        raise ValidationError("Subject, quiz topic and quiz list are required")
    return subject, quiz_topic, quiz_list


def list_quizzes(
    engine: Engine, subject: str | None = None, quiz_topic: str | None = None
) -> list[dict]:
    with get_session(engine) as session:
        query = select(Quiz).order_by(Quiz.subject, Quiz.quiz_topic, Quiz.quiz_list)
        if subject:
            query = query.where(Quiz.subject == subject)
        if quiz_topic:
            query = query.where(Quiz.quiz_topic == quiz_topic)
        return [_quiz_dict(q) for q in session.scalars(query).all()]


def get_quiz(engine: Engine, quiz_id: int) -> dict:
    with get_session(engine) as session:
        quiz = session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found")
        return _quiz_dict(quiz)


def create_quiz(
    engine: Engine,
    subject: str,
    quiz_topic: str,
    quiz_list: str,
    questions: list[dict] | None = None,
) -> dict:
    subject, quiz_topic, quiz_list = _address(subject, quiz_topic, quiz_list)
    bank = [validate_question(q) for q in questions or []]
    try:
        with get_session(engine) as session:
            quiz = Quiz(subject=subject, quiz_topic=quiz_topic, quiz_list=quiz_list, questions=bank)
            session.add(quiz)
            session.flush()
            return _quiz_dict(quiz)
    except IntegrityError:
        raise ConflictError("That quiz already exists") from None


def _edit_questions(engine: Engine, quiz_id: int, edit) -> dict:
    with get_session(engine) as session:
        quiz = session.scalar(select(Quiz).where(Quiz.id == quiz_id).with_for_update())
        if quiz is None:
            raise NotFoundError("Quiz not found")
        questions = list(quiz.questions)
        edit(questions)
        quiz.questions = questions  # reassign so the JSON change is flushed
        session.flush()
        return _quiz_dict(quiz)


def _check_index(questions: list, index: int) -> None:
    if not 0 <= index < len(questions):
        raise NotFoundError("Question not found")


def add_question(engine: Engine, quiz_id: int, raw: dict) -> dict:
    question = validate_question(raw)
    return _edit_questions(engine, quiz_id, lambda qs: qs.append(question))


def add_page_question(
    engine: Engine, subject: str, quiz_topic: str, quiz_list: str, raw: dict
) -> dict:
    """Append to the quiz at this address, creating the quiz on first use."""
    subject, quiz_topic, quiz_list = _address(subject, quiz_topic, quiz_list)
    question = validate_question(raw)
    with get_session(engine) as session:
        quiz = session.scalar(
            select(Quiz)
            .where(
                Quiz.subject == subject,
                Quiz.quiz_topic == quiz_topic,
                Quiz.quiz_list == quiz_list,
            )
            .with_for_update()
        )
        if quiz is None:
            quiz = Quiz(
                subject=subject, quiz_topic=quiz_topic, quiz_list=quiz_list,
                questions=[question],
            )
            session.add(quiz)
        else:
            quiz.questions = [*quiz.questions, question]
        session.flush()
        return _quiz_dict(quiz)


def update_question(engine: Engine, quiz_id: int, index: int, raw: dict) -> dict:
    question = validate_question(raw)

    def edit(qs: list) -> None:
        _check_index(qs, index)
        qs[index] = question

    return _edit_questions(engine, quiz_id, edit)


def delete_question(engine: Engine, quiz_id: int, index: int) -> dict:
    def edit(qs: list) -> None:
        _check_index(qs, index)
        del qs[index]

    return _edit_questions(engine, quiz_id, edit)
