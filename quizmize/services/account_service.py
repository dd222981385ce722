"""
quizmize.services.account_service — Accounts, Credentials & Quiz History
=========================================================================

Signup and login report problems per field (``{"email": ..., "password":
...}``) so the signup/login forms can show each message next to its input.
Emails are stored lower-cased; the unique index on ``accounts.email`` is
the final word on duplicates.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from werkzeug.security import check_password_hash, generate_password_hash

from quizmize.constants import ACCOUNT_POLICY, LevelingPolicy, xp_for_level
from quizmize.database.engine import get_session
from quizmize.database.models import Account, QuizAttempt
from quizmize.errors import ConflictError, NotFoundError, ValidationError
from quizmize.services.award_service import apply_award, lock_account

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

EMAIL_TAKEN = "That email is already registered"
EMAIL_UNKNOWN = "That email is not registered"
PASSWORD_WRONG = "That password is incorrect"


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------
def account_dict(account: Account, policy: LevelingPolicy = ACCOUNT_POLICY) -> dict:
    return {
        "id": str(account.id),
        "email": account.email,
        "fullName": account.full_name,
        "xp": account.xp,
        "level": account.level,
        "totalXp": account.total_xp,
        "requiredXp": xp_for_level(account.level, policy),
        "isAdmin": account.is_admin,
        "createdAt": account.created_at.isoformat() if account.created_at else None,
    }


def _attempt_dict(a: QuizAttempt) -> dict:
    return {
        "quizTopic": a.quiz_topic,
        "subject": a.subject,
        "quizList": a.quiz_list,
        "score": a.score,
        "totalQuestions": a.total_questions,
        "xp": a.xp,
        "date": a.taken_at.date().isoformat() if a.taken_at else None,
    }


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------
def normalize_email(raw: str | None) -> str:
    return (raw or "").strip().lower()


def _email_error(email: str) -> str | None:
    if not email:
        return "Please enter an email"
    try:
        validate_email(email, check_deliverability=False)
    except EmailNotValidError:
        return "Please enter a valid email"
    return None


def _password_error(password: str) -> str | None:
    if not password:
        return "Please enter a password"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Minimum password length is {MIN_PASSWORD_LENGTH} characters"
    return None


def _email_taken(session, email: str, *, exclude_id: int | None = None) -> bool:
    query = select(Account.id).where(func.lower(Account.email) == email)
    if exclude_id is not None:
        query = query.where(Account.id != exclude_id)
    return session.scalar(query) is not None


# ---------------------------------------------------------------------------
# Signup / login
# ---------------------------------------------------------------------------
def signup(engine: Engine, email: str, password: str, full_name: str = "") -> int:
    """Create an account and return its id.

    Raises :class:`ValidationError` / :class:`ConflictError` with
    ``field_errors`` keyed by ``email`` and ``password``.
    """
    email = normalize_email(email)
    password = password or ""
    errors = {"email": _email_error(email) or "", "password": _password_error(password) or ""}
    if errors["email"] or errors["password"]:
        raise ValidationError("Invalid signup", field_errors=errors)

    try:
        with get_session(engine) as session:
            if _email_taken(session, email):
                raise ConflictError(
                    EMAIL_TAKEN, field_errors={"email": EMAIL_TAKEN, "password": ""}
                )
            account = Account(
                email=email,
                password_hash=generate_password_hash(password),
                full_name=(full_name or "").strip(),
            )
            session.add(account)
            session.flush()
            account_id = account.id
    except IntegrityError:
        raise ConflictError(
            EMAIL_TAKEN, field_errors={"email": EMAIL_TAKEN, "password": ""}
        ) from None

    logger.info("Account %s signed up", account_id)
    return account_id


def login(engine: Engine, email: str, password: str) -> int:
    """Verify credentials; returns the account id."""
    email = normalize_email(email)
    with get_session(engine) as session:
        account = session.scalar(select(Account).where(func.lower(Account.email) == email))
        if account is None:
            raise ValidationError(
                EMAIL_UNKNOWN, field_errors={"email": EMAIL_UNKNOWN, "password": ""}
            )
        if not check_password_hash(account.password_hash, password or ""):
            raise ValidationError(
                PASSWORD_WRONG, field_errors={"email": "", "password": PASSWORD_WRONG}
            )
        return account.id


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------
def get_account(engine: Engine, account_id: int) -> Account | None:
    with get_session(engine) as session:
        return session.get(Account, account_id)


def get_profile(
    engine: Engine, account_id: int, policy: LevelingPolicy = ACCOUNT_POLICY
) -> dict:
    with get_session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account not found")
        data = account_dict(account, policy)
        data["quizHistory"] = [_attempt_dict(a) for a in account.quiz_attempts]
        data["missionHistory"] = [
            {
                "missionId": str(m.mission_id) if m.mission_id else None,
                "groupId": str(m.group_id),
                "title": m.mission_title,
                "score": m.score,
                "completedAt": m.completed_at.isoformat() if m.completed_at else None,
            }
            for m in account.mission_completions
        ]
        return data


def update_profile(
    engine: Engine,
    account_id: int,
    *,
    full_name: str | None = None,
    email: str | None = None,
    policy: LevelingPolicy = ACCOUNT_POLICY,
) -> dict:
    with get_session(engine) as session:
        account = session.get(Account, account_id)
        if account is None:
            raise NotFoundError("Account not found")

        if email is not None:
            email = normalize_email(email)
            err = _email_error(email)
            if err:
                raise ValidationError(err, field_errors={"email": err})
            if _email_taken(session, email, exclude_id=account.id):
                raise ConflictError(EMAIL_TAKEN, field_errors={"email": EMAIL_TAKEN})
            account.email = email
        if full_name is not None:
            full_name = full_name.strip()
            if not full_name:
                raise ValidationError("Full name cannot be empty")
            account.full_name = full_name

        session.flush()
        return account_dict(account, policy)


# ---------------------------------------------------------------------------
# Quiz history
# ---------------------------------------------------------------------------
def save_quiz_history(
    engine: Engine,
    account_id: int,
    *,
    quiz_topic: str = "",
    subject: str = "",
    quiz_list: str = "",
    score: int = 0,
    total_questions: int = 0,
    xp: int = 0,
    policy: LevelingPolicy = ACCOUNT_POLICY,
) -> dict:
    """Append a quiz attempt and award its XP through the account curve.

    An attempt with ``xp <= 0`` is recorded without an award.
    """
    if score < 0 or total_questions < 0:
        raise ValidationError("Score and question count cannot be negative")
    if total_questions and score > total_questions:
        raise ValidationError("Score cannot exceed the number of questions")

    with get_session(engine) as session:
        account = lock_account(session, account_id)
        account.quiz_attempts.append(QuizAttempt(
            quiz_topic=quiz_topic,
            subject=subject,
            quiz_list=quiz_list,
            score=score,
            total_questions=total_questions,
            xp=max(xp, 0),
        ))

        award = None
        if xp > 0:
            award = apply_award(
                session, account, xp, "quiz_completed",
                {"quizTopic": quiz_topic, "subject": subject, "quizList": quiz_list},
                policy=policy,
            )
        session.flush()
        return {
            "message": "Quiz history saved successfully.",
            "xp": account.xp,
            "level": account.level,
            "leveledUp": bool(award and award.leveled_up),
        }
