from __future__ import annotations

import itertools

from sqlalchemy import func, select

from compliance_migration.models import (
    Answer,
    Choice,
    Company,
    Question,
    QuestionTag,
    Sheet,
    SheetTag,
    Subsection,
    Tag,
    User,
)
from compliance_migration.services.bubble.exporter import BubbleExport
from compliance_migration.services.bubble.importer import BubbleImporter, ImportStats, round_half_up


def _export(**overrides) -> BubbleExport:
    data = dict(
        companies=[
            {"_id": "c1", "Name": "Acme Paper", "location text": "Oulu", "Show as supplier": True},
            {"_id": "c2", "Name": "Retail Co", "Show as supplier": False},
        ],
        users=[
            {"_id": "u1", "email": "jane@acme.test", "First Name": "Jane", "Last Name": "Doe", "Company": "c1"},
            {"_id": "u2", "Admin": True},
        ],
        sections=[{"_id": "sec1", "Name": "Food Contact", "Order": 1.5}],
        subsections=[{"_id": "sub1", "Name": "General", "Order": 2, "Parent_Section": "sec1"}],
        tags=[{"_id": "t1", "Name": "HQ2.1"}, {"_id": "t2"}],
        questions=[
            {"_id": "q1", "Name": "Is the product food contact compliant?", "Type": "Select one", "Order": 1,
             "Parent Subsection": "sub1", "Tags": ["t1", "t2"]},
            {"_id": "q2", "Name": "Substances list", "Type": "List Table", "ID": 2.5, "Tags": "t1"},
        ],
        choices=[
            {"_id": "ch1", "Content": "Yes", "Parent Question": "q1", "Order": 1},
            {"_id": "ch2", "Choice Text": "No", "Parent Question": "q1", "Order": 2},
        ],
        list_table_columns=[{"_id": "col1", "Name": "CAS", "Input Type": "text"}],
        sheets=[
            {"_id": "s1", "Name": "Widget", "Company": "c1", "Created By": "u1", "Status": "Submitted",
             "Modified Date": "2023-01-01T00:00:00Z", "Tags": ["t1"]},
            {"_id": "s2", "Name": "WIDGET", "Company": "c1", "Created By": "u1", "Status": "In Progress",
             "Modified Date": "2023-06-01T00:00:00Z", "Tags": ["t2"]},
            {"_id": "s3", "Name": "Gadget", "Sup Assigned to": "c1", "Modified Date": "2023-02-01T00:00:00Z"},
        ],
        answers=[
            # scalar answer given on both versions; the newer edit wins
            {"_id": "a1", "Sheet": "s1", "Parent Question": "q1", "Choice": "ch2",
             "Modified Date": "2023-07-01T00:00:00Z"},
            {"_id": "a2", "Sheet": "s2", "Parent Question": "q1", "Choice": "ch1",
             "Modified Date": "2023-03-01T00:00:00Z"},
            # table rows only survive from the latest version
            {"_id": "a3", "Sheet": "s1", "Parent Question": "q2", "text": "old row",
             "List Table Row": "r1", "List Table Column": "col1"},
            {"_id": "a4", "Sheet": "s2", "Parent Question": "q2", "text": "50-00-0",
             "List Table Row": "r2", "List Table Column": "col1"},
            {"_id": "a5", "Sheet": "s3", "Parent Question": "q2", "text-area": "free text"},
            {"_id": "a6", "Sheet": "missing", "Parent Question": "q1", "text": "orphan"},
            {"Sheet": "s1", "text": "no id"},
        ],
    )
    data.update(overrides)
    return BubbleExport(**data)


def _count(engine, model) -> int:
    with engine.connect() as conn:
        return conn.execute(select(func.count()).select_from(model)).scalar_one()


def test_round_half_up_matches_legacy_rounding():
    assert round_half_up(1.5) == 2
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4) == 2
    assert round_half_up(None) == 1
    assert round_half_up(0) == 1


def test_import_all_builds_composite_sheets_and_latest_answers(engine, db_session):
    summary = BubbleImporter(engine).import_all(_export())

    assert summary.stats("companies").written == 2
    assert summary.stats("tags").skipped == 1
    assert summary.stats("answers").skipped >= 3
    assert summary.composite_sheets == 2

    with engine.connect() as conn:
        companies = {row.bubble_id: row for row in conn.execute(select(Company))}
        assert companies["c1"].type == "supplier"
        assert companies["c1"].location == "Oulu"
        assert companies["c2"].type == "customer"

        users = {row.bubble_id: row for row in conn.execute(select(User))}
        assert users["u1"].full_name == "Jane Doe"
        assert users["u1"].company_id == companies["c1"].id
        assert users["u2"].email == "user-u2@placeholder.com"
        assert users["u2"].role == "admin"

        subsection = conn.execute(select(Subsection)).one()
        assert subsection.order_number == 2

        questions = {row.bubble_id: row for row in conn.execute(select(Question))}
        assert questions["q1"].subsection_id == subsection.id
        assert questions["q2"].order_number == 3

        tag = conn.execute(select(Tag)).one()
        question_tags = conn.execute(select(QuestionTag.question_id).where(QuestionTag.tag_id == tag.id)).scalars()
        assert set(question_tags) == {questions["q1"].id, questions["q2"].id}

        choices = {row.bubble_id: row for row in conn.execute(select(Choice))}
        assert choices["ch2"].content == "No"

        sheets = {row.bubble_id: row for row in conn.execute(select(Sheet))}
        assert set(sheets) == {"s2", "s3"}
        widget = sheets["s2"]
        assert widget.name == "WIDGET"
        assert widget.version == 2
        assert widget.status == "In Progress"
        assert widget.company_id == companies["c1"].id
        assert widget.created_by == users["u1"].id
        assert sheets["s3"].status == "draft"
        assert conn.execute(select(SheetTag.tag_id).where(SheetTag.sheet_id == widget.id)).scalars().all() == [tag.id]

        answers = conn.execute(select(Answer)).all()
        widget_answers = [row for row in answers if row.sheet_id == widget.id]
        scalar = [row for row in widget_answers if row.list_table_row_id is None]
        assert len(scalar) == 1
        assert scalar[0].choice_id == choices["ch2"].id
        table = [row for row in widget_answers if row.list_table_row_id is not None]
        assert [(row.list_table_row_id, row.text_value) for row in table] == [("r2", "50-00-0")]
        gadget_answers = [row for row in answers if row.sheet_id == sheets["s3"].id]
        assert [row.text_value for row in gadget_answers] == ["free text"]
        assert len(answers) == 3


def test_reimport_keeps_ids_and_does_not_duplicate_answers(engine, db_session):
    importer = BubbleImporter(engine)
    importer.import_all(_export())
    with engine.connect() as conn:
        first_ids = dict(conn.execute(select(Sheet.bubble_id, Sheet.id)).all())

    summary = importer.import_all(_export())

    with engine.connect() as conn:
        assert dict(conn.execute(select(Sheet.bubble_id, Sheet.id)).all()) == first_ids
        assert {row for row in conn.execute(select(Answer.sheet_id)).scalars()} <= set(first_ids.values())
    assert _count(engine, Answer) == 3
    assert _count(engine, Company) == 2
    assert _count(engine, SheetTag) == 1
    assert summary.answers_inserted == 3


def test_import_answers_only_uses_stored_mappings(engine, db_session):
    importer = BubbleImporter(engine)
    export = _export()
    importer.import_all(export)

    summary = importer.import_answers_only(export)

    assert summary.composite_sheets == 2
    assert summary.answers_inserted == 3
    assert _count(engine, Answer) == 3


def test_answer_batch_falls_back_to_single_rows(engine, db_session, caplog):
    counter = itertools.count(1)
    importer = BubbleImporter(engine, batch_size=10)
    importer.import_all(_export(answers=[]))
    with engine.connect() as conn:
        sheet_id = conn.execute(select(Sheet.id).where(Sheet.bubble_id == "s3")).scalar_one()

    rows = [{"id": f"answer-{next(counter)}", "sheet_id": sheet_id, "text_value": "ok"} for _ in range(3)]
    rows.insert(1, {"id": "answer-bad", "sheet_id": None, "text_value": "broken"})

    stats = importer.insert_answer_batches(rows)

    assert stats.processed == 4
    assert stats.written == 3
    assert stats.errors == 1
    assert _count(engine, Answer) == 3
    assert "E-IMP-001 answers answer-bad" in caplog.text


def test_failed_entity_write_is_counted_and_logged(engine, db_session, caplog):
    importer = BubbleImporter(engine)
    stats = ImportStats()

    persisted = importer._upsert(Company, {"id": "company-bad", "name": None, "bubble_id": "c-bad"}, stats)

    assert persisted is None
    assert stats.errors == 1
    assert stats.written == 0
    assert "E-IMP-001 companies c-bad" in caplog.text
    assert _count(engine, Company) == 0


def test_unparseable_and_unmapped_records_are_counted(engine, db_session):
    export = _export(
        companies=[{"_id": "c1", "Name": "Acme"}, {"Name": "no id"}],
        sheets=[{"_id": "s9", "Name": "Lonely", "Company": "unknown", "Tags": ["t-missing"]}],
        answers=[{"_id": "a1", "Sheet": "s9", "Parent Question": "q-missing"}],
    )

    summary = BubbleImporter(engine).import_all(export)

    assert summary.stats("companies").skipped == 1
    assert summary.stats("sheet_tags").processed == 0
    assert summary.reconciliation["skipped"] == 1
    with engine.connect() as conn:
        sheet = conn.execute(select(Sheet)).one()
    assert sheet.company_id is None
    assert _count(engine, Answer) == 0
