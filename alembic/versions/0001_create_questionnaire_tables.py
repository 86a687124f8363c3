"""
Create questionnaire tables targeted by the legacy data migration

Revision ID: 0001
Revises:
Create Date: 2026-01-12
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("location", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=True),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        _timestamp("modified_at"),
        sa.PrimaryKeyConstraint("id", name="pk_companies"),
        sa.UniqueConstraint("bubble_id", name="uq_companies_bubble_id"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column(
            "company_id",
            sa.String(length=36),
            sa.ForeignKey("companies.id", ondelete="SET NULL", name="fk_users_company"),
            nullable=True,
        ),
        sa.Column("role", sa.String(length=32), nullable=False, server_default="user"),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        _timestamp("modified_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("bubble_id", name="uq_users_bubble_id"),
    )
    op.create_index("idx_users_company", "users", ["company_id"], unique=False)

    op.create_table(
        "sections",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("help_text", sa.Text(), nullable=True),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_sections"),
        sa.UniqueConstraint("bubble_id", name="uq_sections_bubble_id"),
    )

    op.create_table(
        "subsections",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "section_id",
            sa.String(length=36),
            sa.ForeignKey("sections.id", ondelete="CASCADE", name="fk_subsections_section"),
            nullable=True,
        ),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_subsections"),
        sa.UniqueConstraint("bubble_id", name="uq_subsections_bubble_id"),
    )
    op.create_index("idx_subsections_section", "subsections", ["section_id"], unique=False)

    op.create_table(
        "tags",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_tags"),
        sa.UniqueConstraint("bubble_id", name="uq_tags_bubble_id"),
    )

    op.create_table(
        "questions",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("response_type", sa.String(length=64), nullable=True),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("section_sort_number", sa.Float(), nullable=True),
        sa.Column("subsection_sort_number", sa.Float(), nullable=True),
        sa.Column(
            "subsection_id",
            sa.String(length=36),
            sa.ForeignKey("subsections.id", ondelete="SET NULL", name="fk_questions_subsection"),
            nullable=True,
        ),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_questions"),
        sa.UniqueConstraint("bubble_id", name="uq_questions_bubble_id"),
    )
    op.create_index("idx_questions_subsection", "questions", ["subsection_id"], unique=False)

    op.create_table(
        "question_tags",
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("questions.id", ondelete="CASCADE", name="fk_question_tags_question"),
            nullable=False,
        ),
        sa.Column(
            "tag_id",
            sa.String(length=36),
            sa.ForeignKey("tags.id", ondelete="CASCADE", name="fk_question_tags_tag"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("question_id", "tag_id", name="pk_question_tags"),
    )

    op.create_table(
        "choices",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("questions.id", ondelete="CASCADE", name="fk_choices_question"),
            nullable=True,
        ),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_choices"),
        sa.UniqueConstraint("bubble_id", name="uq_choices_bubble_id"),
    )
    op.create_index("idx_choices_question", "choices", ["question_id"], unique=False)

    op.create_table(
        "list_table_columns",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("order_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("response_type", sa.String(length=64), nullable=True),
        sa.Column("choice_options", sa.JSON(), nullable=True),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_list_table_columns"),
        sa.UniqueConstraint("bubble_id", name="uq_list_table_columns_bubble_id"),
    )

    op.create_table(
        "sheets",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "company_id",
            sa.String(length=36),
            sa.ForeignKey("companies.id", ondelete="SET NULL", name="fk_sheets_company"),
            nullable=True,
        ),
        sa.Column(
            "created_by",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL", name="fk_sheets_created_by"),
            nullable=True,
        ),
        sa.Column("status", sa.String(length=64), nullable=True),
        sa.Column("bubble_id", sa.String(length=64), nullable=True),
        _timestamp("created_at"),
        _timestamp("modified_at"),
        sa.PrimaryKeyConstraint("id", name="pk_sheets"),
        sa.UniqueConstraint("bubble_id", name="uq_sheets_bubble_id"),
    )
    op.create_index("idx_sheets_company", "sheets", ["company_id"], unique=False)

    op.create_table(
        "sheet_tags",
        sa.Column(
            "sheet_id",
            sa.String(length=36),
            sa.ForeignKey("sheets.id", ondelete="CASCADE", name="fk_sheet_tags_sheet"),
            nullable=False,
        ),
        sa.Column(
            "tag_id",
            sa.String(length=36),
            sa.ForeignKey("tags.id", ondelete="CASCADE", name="fk_sheet_tags_tag"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("sheet_id", "tag_id", name="pk_sheet_tags"),
    )

    op.create_table(
        "answers",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column(
            "sheet_id",
            sa.String(length=36),
            sa.ForeignKey("sheets.id", ondelete="CASCADE", name="fk_answers_sheet"),
            nullable=False,
        ),
        sa.Column(
            "question_id",
            sa.String(length=36),
            sa.ForeignKey("questions.id", ondelete="CASCADE", name="fk_answers_question"),
            nullable=True,
        ),
        sa.Column("text_value", sa.Text(), nullable=True),
        sa.Column("number_value", sa.Float(), nullable=True),
        sa.Column("boolean_value", sa.Boolean(), nullable=True),
        _timestamp("date_value"),
        sa.Column(
            "choice_id",
            sa.String(length=36),
            sa.ForeignKey("choices.id", ondelete="SET NULL", name="fk_answers_choice"),
            nullable=True,
        ),
        sa.Column("list_table_row_id", sa.String(length=64), nullable=True),
        sa.Column(
            "list_table_column_id",
            sa.String(length=36),
            sa.ForeignKey("list_table_columns.id", ondelete="SET NULL", name="fk_answers_list_table_column"),
            nullable=True,
        ),
        sa.Column("comment_text", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("modified_at"),
        sa.PrimaryKeyConstraint("id", name="pk_answers"),
    )
    op.create_index("idx_answers_sheet_question", "answers", ["sheet_id", "question_id"], unique=False)
    op.create_index("idx_answers_choice", "answers", ["choice_id"], unique=False)


def downgrade() -> None:
    op.drop_index("idx_answers_choice", table_name="answers")
    op.drop_index("idx_answers_sheet_question", table_name="answers")
    op.drop_table("answers")
    op.drop_table("sheet_tags")
    op.drop_index("idx_sheets_company", table_name="sheets")
    op.drop_table("sheets")
    op.drop_table("list_table_columns")
    op.drop_index("idx_choices_question", table_name="choices")
    op.drop_table("choices")
    op.drop_table("question_tags")
    op.drop_index("idx_questions_subsection", table_name="questions")
    op.drop_table("questions")
    op.drop_table("tags")
    op.drop_index("idx_subsections_section", table_name="subsections")
    op.drop_table("subsections")
    op.drop_table("sections")
    op.drop_index("idx_users_company", table_name="users")
    op.drop_table("users")
    op.drop_table("companies")
