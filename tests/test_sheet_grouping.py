from __future__ import annotations

import itertools
import random

from compliance_migration.schemas.legacy import LegacySheet
from compliance_migration.services.bubble.id_map import IdMappings
from compliance_migration.services.bubble.sheet_grouping import (
    build_sheet_groups,
    group_key,
    plan_composite_sheets,
)


def _sheet(legacy_id: str, name: str | None, company: str | None = "c1", modified: str | None = None, **extra):
    raw = {"_id": legacy_id, "Name": name, "Company": company, "Modified Date": modified}
    raw.update(extra)
    return LegacySheet.model_validate(raw)


def _ids():
    counter = itertools.count(1)
    return lambda: f"composite-{next(counter)}"


def test_group_key_is_case_insensitive_and_uses_assigned_company():
    assert group_key(_sheet("s1", "Widget A")) == "widget a|c1"
    assert group_key(_sheet("s2", None, company=None, **{"Sup Assigned to": "c9"})) == "unknown product|c9"


def test_versions_collapse_case_insensitively_and_latest_wins():
    sheets = [
        _sheet("s1", "Widget A", modified="2023-01-01T00:00:00Z"),
        _sheet("s2", "widget a", modified="2023-06-01T00:00:00Z"),
        _sheet("s3", "Widget B", modified="2023-03-01T00:00:00Z"),
    ]

    groups = build_sheet_groups(sheets)

    assert len(groups) == 2
    widget_a = groups["widget a|c1"]
    assert widget_a.latest.id == "s2"
    assert widget_a.version_count == 2
    assert widget_a.legacy_ids == ["s2", "s1"]


def test_grouping_is_independent_of_input_order_with_equal_timestamps():
    sheets = [
        _sheet("s1", "Widget", modified="2023-01-01T00:00:00Z"),
        _sheet("s2", "Widget", modified="2023-01-01T00:00:00Z"),
        _sheet("s3", "WIDGET", modified="2023-01-01T00:00:00Z"),
        _sheet("s4", "Gadget", modified=None),
        _sheet("s5", "Gadget", modified=None),
    ]
    expected = {key: (group.latest.id, group.name, group.legacy_ids) for key, group in build_sheet_groups(sheets).items()}

    rng = random.Random(7)
    for _ in range(20):
        shuffled = sheets[:]
        rng.shuffle(shuffled)
        result = {key: (group.latest.id, group.name, group.legacy_ids) for key, group in build_sheet_groups(shuffled).items()}
        assert result == expected


def test_tag_ids_are_unioned_across_versions():
    sheets = [
        _sheet("s1", "Widget", modified="2023-01-01T00:00:00Z", Tags=["t1", "t2"]),
        _sheet("s2", "Widget", modified="2023-02-01T00:00:00Z", Tags=["t2", "t3"]),
    ]

    group = build_sheet_groups(sheets)["widget|c1"]

    assert group.tag_ids() == ["t2", "t3", "t1"]


def test_plan_composite_sheets_records_mappings():
    sheets = [
        _sheet("s1", "Widget", modified="2023-01-01T00:00:00Z", Tags=["t1"], Status="Complete"),
        _sheet("s2", "Widget", modified="2023-02-01T00:00:00Z", Tags=["t2"], **{"Created By": "u1"}),
    ]
    mappings = IdMappings(company={"c1": "company-1"}, user={"u1": "user-1"}, tag={"t1": "tag-1"})

    plans = plan_composite_sheets(build_sheet_groups(sheets), mappings, id_factory=_ids())

    assert len(plans) == 1
    plan = plans[0]
    assert plan.id == "composite-1"
    assert mappings.sheet == {"s1": "composite-1", "s2": "composite-1"}
    assert mappings.latest_legacy_sheet == {"composite-1": "s2"}
    assert plan.values["version"] == 2
    assert plan.values["bubble_id"] == "s2"
    assert plan.values["company_id"] == "company-1"
    assert plan.values["created_by"] == "user-1"
    assert plan.values["status"] == "draft"
    # t2 has no mapping and is dropped
    assert plan.tag_ids == ("tag-1",)
