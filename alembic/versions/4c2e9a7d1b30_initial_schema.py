"""Initial schema: accounts, groups, missions, universities, chat, quiz catalog

Revision ID: 4c2e9a7d1b30
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '4c2e9a7d1b30'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _pk() -> sa.Column:
    return sa.Column("id", sa.Integer, primary_key=True, autoincrement=True)


def _fk(name: str, target: str, *, nullable: bool = False, ondelete: str = "CASCADE",
        primary_key: bool = False) -> sa.Column:
    return sa.Column(
        name, sa.Integer, sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable, primary_key=primary_key,
    )


def _ts(name: str = "created_at", *, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=nullable, server_default=sa.func.now()
    )


def upgrade() -> None:
    # --- accounts ---
    op.create_table(
        "accounts",
        _pk(),
        sa.Column("email", sa.String(254), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("xp", sa.Integer, server_default="0"),
        sa.Column("level", sa.Integer, server_default="1"),
        sa.Column("total_xp", sa.Integer, server_default="0"),
        sa.Column("is_admin", sa.Boolean, server_default=sa.false()),
        _ts(),
    )

    # --- groups ---
    op.create_table(
        "groups",
        _pk(),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("specialization", sa.String(100), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("level", sa.Integer, server_default="1"),
        sa.Column("xp", sa.Integer, server_default="0"),
        sa.Column("total_xp", sa.Integer, server_default="0"),
        sa.Column("required_xp", sa.Integer, server_default="3000"),
        _ts(),
    )
    op.create_table(
        "group_members",
        _pk(),
        _fk("group_id", "groups.id"),
        _fk("account_id", "accounts.id"),
        sa.Column("role", sa.String(20), nullable=False, server_default="Member"),
        _ts("joined_at"),
        sa.UniqueConstraint("group_id", "account_id", name="uq_group_members_group_account"),
    )
    op.create_table(
        "posts",
        _pk(),
        _fk("group_id", "groups.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("content", sa.Text, nullable=False),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("ix_posts_group_created", "posts", ["group_id", "created_at"])
    op.create_table(
        "post_votes",
        _fk("post_id", "posts.id", primary_key=True),
        _fk("account_id", "accounts.id", primary_key=True),
        sa.Column("value", sa.Integer, nullable=False),
        _ts("voted_at"),
    )
    op.create_table(
        "comments",
        _pk(),
        _fk("post_id", "posts.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("votes", sa.Integer, server_default="0"),
        _ts(),
    )

    # --- missions ---
    op.create_table(
        "missions",
        _pk(),
        _fk("group_id", "groups.id"),
        _fk("created_by", "accounts.id"),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("type", sa.String(10), nullable=False),
        sa.Column("questions", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.Column("points", sa.Integer, server_default="100"),
        sa.Column("duration", sa.Integer, nullable=False),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        _ts(),
        _ts("updated_at"),
    )
    op.create_index("ix_missions_group_created", "missions", ["group_id", "created_at"])
    op.create_index("ix_missions_status", "missions", ["status"])
    op.create_table(
        "mission_participants",
        _pk(),
        _fk("mission_id", "missions.id"),
        _fk("account_id", "accounts.id"),
        _ts("joined_at"),
        sa.Column("current_question", sa.Integer, server_default="0"),
        sa.Column("score", sa.Integer, server_default="0"),
        sa.Column("completed", sa.Boolean, server_default=sa.false()),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "mission_id", "account_id", name="uq_mission_participants_mission_account"
        ),
    )
    op.create_index(
        "ix_mission_participants_account", "mission_participants", ["account_id"]
    )
    op.create_table(
        "mission_answers",
        _pk(),
        _fk("participant_id", "mission_participants.id"),
        sa.Column("question_index", sa.Integer, nullable=False),
        sa.Column("selected_answer", sa.Integer, nullable=False),
        sa.Column("is_correct", sa.Boolean, nullable=False),
        sa.Column("answered_at", sa.DateTime(timezone=True), nullable=False),
    )

    # --- per-account history ---
    op.create_table(
        "quiz_attempts",
        _pk(),
        _fk("account_id", "accounts.id"),
        sa.Column("quiz_topic", sa.String(200), server_default=""),
        sa.Column("subject", sa.String(200), server_default=""),
        sa.Column("quiz_list", sa.String(200), server_default=""),
        sa.Column("score", sa.Integer, server_default="0"),
        sa.Column("total_questions", sa.Integer, server_default="0"),
        sa.Column("xp", sa.Integer, server_default="0"),
        _ts("taken_at"),
    )
    op.create_table(
        "mission_completions",
        _pk(),
        _fk("account_id", "accounts.id"),
        _fk("mission_id", "missions.id", nullable=True, ondelete="SET NULL"),
        sa.Column("group_id", sa.Integer, nullable=False),
        sa.Column("mission_title", sa.String(200), nullable=False),
        sa.Column("score", sa.Integer, server_default="0"),
        _ts("completed_at"),
    )

    # --- universities ---
    op.create_table(
        "universities",
        _pk(),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
        sa.Column("description", sa.String(500), server_default=""),
        sa.Column("location", sa.String(30), nullable=False),
        sa.Column("website", sa.String(300), server_default=""),
        sa.Column(
            "logo_url", sa.String(300), server_default="/assets/default-university-logo.png"
        ),
        sa.Column("join_code", sa.String(8), nullable=False, unique=True),
        sa.Column("is_public", sa.Boolean, server_default=sa.false()),
        sa.Column("allow_student_registration", sa.Boolean, server_default=sa.true()),
        sa.Column("max_members", sa.Integer, server_default="10000"),
        _ts(),
        _ts("updated_at"),
    )
    op.create_table(
        "university_members",
        _pk(),
        _fk("university_id", "universities.id"),
        _fk("account_id", "accounts.id"),
        sa.Column("role", sa.String(20), nullable=False),
        _ts("joined_at"),
        sa.UniqueConstraint(
            "university_id", "account_id", name="uq_university_members_univ_account"
        ),
    )
    op.create_table(
        "university_posts",
        _pk(),
        _fk("university_id", "universities.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("author_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(1000), nullable=False),
        _ts(),
        _ts("updated_at"),
    )
    op.create_table(
        "university_post_likes",
        _fk("post_id", "university_posts.id", primary_key=True),
        _fk("account_id", "accounts.id", primary_key=True),
        _ts("liked_at"),
    )
    op.create_table(
        "university_comments",
        _pk(),
        _fk("post_id", "university_posts.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("author_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(500), nullable=False),
        _ts(),
    )
    op.create_table(
        "faculties",
        _pk(),
        _fk("university_id", "universities.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.String(300), server_default=""),
        sa.Column("contact_email", sa.String(254), nullable=True),
        _fk("dean_id", "accounts.id", nullable=True, ondelete="SET NULL"),
    )
    op.create_table(
        "courses",
        _pk(),
        _fk("faculty_id", "faculties.id"),
        sa.Column("course_code", sa.String(20), nullable=False),
        sa.Column("course_name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("credits", sa.Integer, server_default="3"),
        sa.Column("level", sa.Integer, nullable=False),
        _fk("teacher_id", "accounts.id"),
        sa.UniqueConstraint("faculty_id", "course_code", name="uq_courses_faculty_code"),
    )
    op.create_table(
        "classrooms",
        _pk(),
        _fk("course_id", "courses.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("section", sa.String(50), server_default=""),
        sa.Column("schedule_day", sa.String(10), nullable=True),
        sa.Column("schedule_time", sa.String(50), nullable=True),
        sa.Column("schedule_location", sa.String(200), nullable=True),
    )
    op.create_table(
        "classroom_students",
        _fk("classroom_id", "classrooms.id", primary_key=True),
        _fk("account_id", "accounts.id", primary_key=True),
        _ts("joined_at"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
    )
    op.create_table(
        "course_posts",
        _pk(),
        _fk("course_id", "courses.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("author_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(1000), nullable=False),
        sa.Column("post_type", sa.String(20), nullable=False, server_default="general"),
        _ts(),
        _ts("updated_at"),
    )
    op.create_table(
        "course_post_likes",
        _fk("post_id", "course_posts.id", primary_key=True),
        _fk("account_id", "accounts.id", primary_key=True),
        _ts("liked_at"),
    )
    op.create_table(
        "course_comments",
        _pk(),
        _fk("post_id", "course_posts.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("author_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(500), nullable=False),
        _ts(),
    )

    # --- chat ---
    op.create_table(
        "chat_messages",
        _pk(),
        _fk("group_id", "groups.id"),
        _fk("author_id", "accounts.id"),
        sa.Column("author_name", sa.String(200), nullable=False),
        sa.Column("content", sa.String(500), nullable=False),
        _ts(),
    )
    op.create_index(
        "ix_chat_messages_group_created", "chat_messages", ["group_id", "created_at"]
    )

    # --- xp_log ---
    op.create_table(
        "xp_log",
        _pk(),
        sa.Column("entity_type", sa.String(10), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("source", sa.String(50), nullable=False),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
        sa.Column("level_before", sa.Integer, nullable=False),
        sa.Column("level_after", sa.Integer, nullable=False),
        _ts(),
    )
    op.create_index("ix_xp_log_entity", "xp_log", ["entity_type", "entity_id"])

    # --- quiz catalog ---
    op.create_table(
        "subjects",
        _pk(),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("url", sa.String(300), server_default=""),
        sa.UniqueConstraint("category", "name", name="uq_subjects_category_name"),
    )
    op.create_table(
        "quizzes",
        _pk(),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("quiz_topic", sa.String(200), nullable=False),
        sa.Column("quiz_list", sa.String(200), nullable=False),
        sa.Column("questions", postgresql.JSONB, nullable=False, server_default="[]"),
        sa.UniqueConstraint(
            "subject", "quiz_topic", "quiz_list", name="uq_quizzes_subject_topic_list"
        ),
    )


def downgrade() -> None:
    for table in (
        "quizzes", "subjects", "xp_log", "chat_messages",
        "course_comments", "course_post_likes", "course_posts",
        "classroom_students", "classrooms", "courses", "faculties",
        "university_comments", "university_post_likes", "university_posts",
        "university_members", "universities",
        "mission_completions", "quiz_attempts",
        "mission_answers", "mission_participants", "missions",
        "comments", "post_votes", "posts", "group_members", "groups",
        "accounts",
    ):
        op.drop_table(table)
