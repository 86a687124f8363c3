from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Boolean, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import DateTime, TypeDecorator

from compliance_migration.db.base import Base


def utcnow() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def new_uuid() -> str:
    return str(uuid.uuid4())


class UTCDateTime(TypeDecorator[datetime]):
    """Timestamp column that always round-trips as an aware UTC datetime."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            # sqlite stores naive text; keep everything in UTC
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


_ID = String(36)


class Company(Base):
    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class User(Base):
    __tablename__ = "users"
    __table_args__ = (Index("idx_users_company", "company_id"),)

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(320))
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    company_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    role: Mapped[str] = mapped_column(String(32), default="user")
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class Section(Base):
    __tablename__ = "sections"

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    order_number: Mapped[int] = mapped_column(Integer, default=1)
    help_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class Subsection(Base):
    __tablename__ = "subsections"
    __table_args__ = (Index("idx_subsections_section", "section_id"),)

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    order_number: Mapped[int] = mapped_column(Integer, default=1)
    section_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("sections.id", ondelete="CASCADE"), nullable=True
    )
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class Tag(Base):
    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class Question(Base):
    __tablename__ = "questions"
    __table_args__ = (Index("idx_questions_subsection", "subsection_id"),)

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    order_number: Mapped[int] = mapped_column(Integer, default=1)
    section_sort_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    subsection_sort_number: Mapped[float | None] = mapped_column(Float, nullable=True)
    subsection_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("subsections.id", ondelete="SET NULL"), nullable=True
    )
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class QuestionTag(Base):
    __tablename__ = "question_tags"

    question_id: Mapped[str] = mapped_column(
        _ID, ForeignKey("questions.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[str] = mapped_column(_ID, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


class Choice(Base):
    __tablename__ = "choices"
    __table_args__ = (Index("idx_choices_question", "question_id"),)

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    content: Mapped[str] = mapped_column(Text)
    order_number: Mapped[int] = mapped_column(Integer, default=1)
    question_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("questions.id", ondelete="CASCADE"), nullable=True
    )
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class ListTableColumn(Base):
    __tablename__ = "list_table_columns"

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    order_number: Mapped[int] = mapped_column(Integer, default=1)
    response_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    choice_options: Mapped[Any | None] = mapped_column(JSON, nullable=True)
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class Sheet(Base):
    __tablename__ = "sheets"
    __table_args__ = (Index("idx_sheets_company", "company_id"),)

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(Text)
    version: Mapped[int] = mapped_column(Integer, default=1)
    company_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("companies.id", ondelete="SET NULL"), nullable=True
    )
    created_by: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    status: Mapped[str | None] = mapped_column(String(64), default="draft", nullable=True)
    bubble_id: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


class SheetTag(Base):
    __tablename__ = "sheet_tags"

    sheet_id: Mapped[str] = mapped_column(_ID, ForeignKey("sheets.id", ondelete="CASCADE"), primary_key=True)
    tag_id: Mapped[str] = mapped_column(_ID, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True)


class Answer(Base):
    __tablename__ = "answers"
    __table_args__ = (
        Index("idx_answers_sheet_question", "sheet_id", "question_id"),
        Index("idx_answers_choice", "choice_id"),
    )

    id: Mapped[str] = mapped_column(_ID, primary_key=True, default=new_uuid)
    sheet_id: Mapped[str] = mapped_column(_ID, ForeignKey("sheets.id", ondelete="CASCADE"))
    question_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("questions.id", ondelete="CASCADE"), nullable=True
    )
    text_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    number_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    boolean_value: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    date_value: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    choice_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("choices.id", ondelete="SET NULL"), nullable=True
    )
    list_table_row_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    list_table_column_id: Mapped[str | None] = mapped_column(
        _ID, ForeignKey("list_table_columns.id", ondelete="SET NULL"), nullable=True
    )
    comment_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)
    modified_at: Mapped[datetime | None] = mapped_column(UTCDateTime, default=utcnow, nullable=True)


__all__ = [
    "Answer",
    "Choice",
    "Company",
    "ListTableColumn",
    "Question",
    "QuestionTag",
    "Section",
    "Sheet",
    "SheetTag",
    "Subsection",
    "Tag",
    "UTCDateTime",
    "User",
    "new_uuid",
    "utcnow",
]
