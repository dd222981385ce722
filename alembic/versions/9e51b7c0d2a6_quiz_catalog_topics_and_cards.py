"""Quiz catalog: topics, quiz topics with progress counters, quiz list cards

Revision ID: 9e51b7c0d2a6
Revises: 4c2e9a7d1b30
Create Date: 2026-10-21 14:03:17.902114

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '9e51b7c0d2a6'
down_revision: str | Sequence[str] | None = '4c2e9a7d1b30'
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "topics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(200), nullable=False, unique=True),
    )
    op.create_table(
        "quiz_topics",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("subject", sa.String(200), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("url", sa.String(300), server_default=""),
        sa.Column("total", sa.Integer, server_default="0"),
        sa.Column("done", sa.Integer, server_default="0"),
        sa.UniqueConstraint("subject", "name", name="uq_quiz_topics_subject_name"),
    )
    op.create_table(
        "quiz_cards",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("quiz_topic", sa.String(200), nullable=False),
        sa.Column("list_name", sa.String(200), nullable=False),
        sa.Column("card_title", sa.String(200), nullable=False),
        sa.Column("card_difficulty", sa.String(50), server_default=""),
        sa.Column("card_background", sa.String(300), server_default=""),
        sa.Column("url", sa.String(300), server_default=""),
    )
    op.create_index("ix_quiz_cards_topic_list", "quiz_cards", ["quiz_topic", "list_name"])


def downgrade() -> None:
    op.drop_index("ix_quiz_cards_topic_list", table_name="quiz_cards")
    op.drop_table("quiz_cards")
    op.drop_table("quiz_topics")
    op.drop_table("topics")
