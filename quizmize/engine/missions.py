"""
quizmize.engine.missions — Mission Progress Tracker
====================================================

Pure participant state machine, no DB I/O::

    NotJoined → Joined → Answering → Completed

``current_question`` only moves forward and ``completed`` flips to true
exactly once, the moment the cursor reaches the question count.

System missions get their question bank from :func:`generate_system_questions`.
The bank is generated once when the mission is created and persisted with
it, so the questions a participant sees are the ones they are scored on.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, MutableSequence, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from quizmize.errors import ConflictError, ValidationError

logger = logging.getLogger(__name__)

CHOICES_PER_QUESTION = 4
QUESTIONS_PER_DAY = 5
MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = 7


class ParticipantLike(Protocol):
    account_id: int
    current_question: int
    score: int
    completed: bool
    completed_at: datetime | None
    answers: MutableSequence[Any]


@dataclass(frozen=True, slots=True)
class AnswerOutcome:
    is_correct: bool
    points_awarded: int
    correct_answer: int
    explanation: str
    just_completed: bool


# ---------------------------------------------------------------------------
# Question banks
# ---------------------------------------------------------------------------
def validate_duration(duration: object) -> int:
    if isinstance(duration, bool) or not isinstance(duration, int):
        raise ValidationError("Duration must be a whole number of days")
    if not MIN_DURATION_DAYS <= duration <= MAX_DURATION_DAYS:
        raise ValidationError(
            f"Duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days"
        )
    return duration


def validate_custom_questions(raw: Sequence[dict] | None) -> list[dict]:
    """Normalize a custom mission's questions; every field is required."""
    if not raw:
        raise ValidationError("Custom missions need at least one question")

    questions: list[dict] = []
    for i, q in enumerate(raw, start=1):
        text = str(q.get("text") or "").strip()
        choices = q.get("choices") or []
        correct = q.get("correct_answer", q.get("correctAnswer"))
        if not text:
            raise ValidationError(f"Question {i} is missing its text")
        if len(choices) != CHOICES_PER_QUESTION or not all(str(c).strip() for c in choices):
            raise ValidationError(f"Question {i} needs exactly {CHOICES_PER_QUESTION} choices")
        if isinstance(correct, bool) or not isinstance(correct, int) or not (
            0 <= correct < CHOICES_PER_QUESTION
        ):
            raise ValidationError(f"Question {i} has an invalid correct answer")
        questions.append({
            "text": text,
            "choices": [str(c).strip() for c in choices],
            "correct_answer": correct,
            "explanation": str(q.get("explanation") or "").strip(),
        })
    return questions


def _arithmetic_question(rng: random.Random) -> dict:
    op = rng.choice(("+", "-", "×"))
    if op == "×":
        a, b = rng.randint(2, 12), rng.randint(2, 12)
        answer = a * b
    elif op == "-":
        a, b = rng.randint(10, 99), rng.randint(1, 9)
        answer = a - b
    else:
        a, b = rng.randint(10, 99), rng.randint(10, 99)
        answer = a + b

    distractors: set[int] = set()
    while len(distractors) < CHOICES_PER_QUESTION - 1:
        candidate = answer + rng.choice((-10, -2, -1, 1, 2, 10))
        if candidate != answer and candidate >= 0:
            distractors.add(candidate)

    choices = [answer, *sorted(distractors)]
    rng.shuffle(choices)
    return {
        "text": f"What is {a} {op} {b}?",
        "choices": [str(c) for c in choices],
        "correct_answer": choices.index(answer),
        "explanation": f"{a} {op} {b} = {answer}",
    }


def generate_system_questions(
    duration: int, rng: random.Random | None = None
) -> list[dict]:
    """Build ``duration * 5`` four-choice questions for a system mission."""
    duration = validate_duration(duration)
    rng = rng or random.Random()
    return [_arithmetic_question(rng) for _ in range(duration * QUESTIONS_PER_DAY)]


def points_per_question(points: int, question_count: int) -> int:
    if question_count <= 0:
        return 0
    return points // question_count


# ---------------------------------------------------------------------------
# Participant state machine
# ---------------------------------------------------------------------------
def is_open(status: str, deadline: datetime | None, now: datetime | None = None) -> bool:
    """A mission accepts joins while active and before its deadline."""
    if status != "active":
        return False
    if deadline is None:
        return True
    now = now or datetime.now(UTC)
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=UTC)
    return now <= deadline


def effective_status(status: str, deadline: datetime | None, now: datetime | None = None) -> str:
    """An active mission whose deadline has passed reads as completed."""
    if status == "active" and not is_open(status, deadline, now):
        return "completed"
    return status


def ensure_can_join(
    participants: Sequence[ParticipantLike],
    account_id: int,
    *,
    status: str,
    deadline: datetime | None,
    now: datetime | None = None,
) -> None:
    if not is_open(status, deadline, now):
        raise ValidationError("Mission is not active")
    if any(str(p.account_id) == str(account_id) for p in participants):
        raise ConflictError("You have already joined this mission")


def record_answer(
    participant: ParticipantLike,
    questions: Sequence[dict],
    question_index: object,
    selected_answer: object,
    *,
    points: int,
    answer_factory: Callable[..., Any],
    now: datetime | None = None,
) -> AnswerOutcome:
    """Score one answer and advance the participant's cursor.

    Answers are appended, never edited.  The cursor jumps to
    ``question_index + 1``; indexes behind the cursor are rejected so it
    can only move forward.
    """
    if participant.completed:
        raise ValidationError("Mission already completed")
    if isinstance(question_index, bool) or not isinstance(question_index, int):
        raise ValidationError("questionIndex must be an integer")
    if not 0 <= question_index < len(questions):
        raise ValidationError("Invalid question index")
    if question_index < participant.current_question:
        raise ValidationError("Question already answered")
    if isinstance(selected_answer, bool) or not isinstance(selected_answer, int) or not (
        0 <= selected_answer < CHOICES_PER_QUESTION
    ):
        raise ValidationError("selectedAnswer must be between 0 and 3")

    now = now or datetime.now(UTC)
    question = questions[question_index]
    correct = int(question["correct_answer"])
    is_correct = selected_answer == correct

    participant.answers.append(answer_factory(
        question_index=question_index,
        selected_answer=selected_answer,
        is_correct=is_correct,
        answered_at=now,
    ))

    awarded = points_per_question(points, len(questions)) if is_correct else 0
    participant.score += awarded
    participant.current_question = question_index + 1

    just_completed = False
    if participant.current_question >= len(questions):
        participant.completed = True
        participant.completed_at = now
        just_completed = True
        logger.debug(
            "Participant %s completed mission with score %d",
            participant.account_id, participant.score,
        )

    return AnswerOutcome(
        is_correct=is_correct,
        points_awarded=awarded,
        correct_answer=correct,
        explanation=str(question.get("explanation") or ""),
        just_completed=just_completed,
    )


def public_questions(questions: Sequence[dict], *, reveal: bool = False) -> list[dict]:
    """Questions as shown to a participant; answers hidden until *reveal*."""
    shown = []
    for i, q in enumerate(questions):
        item = {"index": i, "text": q["text"], "choices": list(q["choices"])}
        if reveal:
            item["correctAnswer"] = q["correct_answer"]
            item["explanation"] = q.get("explanation", "")
        shown.append(item)
    return shown
