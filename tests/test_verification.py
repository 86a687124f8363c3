from __future__ import annotations

import pytest

from compliance_migration.services.bubble.verification import verify_import
from tests.factories import (
    AnswerFactory,
    ChoiceFactory,
    CompanyFactory,
    QuestionFactory,
    QuestionTagFactory,
    SheetFactory,
    SheetTagFactory,
    TagFactory,
)


def _populate():
    company = CompanyFactory()
    tag = TagFactory()
    question = QuestionFactory()
    QuestionTagFactory(question_id=question.id, tag_id=tag.id)
    choice = ChoiceFactory(question_id=question.id)
    sheet = SheetFactory(company_id=company.id)
    SheetTagFactory(sheet_id=sheet.id, tag_id=tag.id)
    AnswerFactory(sheet_id=sheet.id, question_id=question.id, choice_id=choice.id)
    return sheet, question


def test_empty_store_fails_verification(engine, db_session):
    report = verify_import(engine)

    assert report.failed
    failed = {result.check for result in report.by_status("FAIL")}
    assert {"companies", "questions", "sheets", "answers", "question_tags"} <= failed
    assert {result.check for result in report.by_status("WARN")} == {"answer_choices", "sheet_tags"}
    assert report.counts["answers"] == 0


def test_populated_store_passes(engine, db_session):
    _populate()

    report = verify_import(engine)

    assert not report.failed
    assert report.by_status("WARN") == []
    assert report.counts["answers"] == 1
    assert report.counts["sheet_tags"] == 1


def test_answers_without_question_fail(engine, db_session):
    sheet, _ = _populate()
    AnswerFactory(sheet_id=sheet.id, question_id=None)

    report = verify_import(engine)

    assert [result.check for result in report.by_status("FAIL")] == ["answer_questions"]


def test_dangling_choice_reference_fails(engine, db_session):
    if engine.dialect.name != "sqlite":
        pytest.skip("foreign keys reject dangling references")
    sheet, question = _populate()
    AnswerFactory(sheet_id=sheet.id, question_id=question.id, choice_id="missing-choice")

    report = verify_import(engine)

    assert [result.check for result in report.by_status("FAIL")] == ["answer_choice_refs"]
