from __future__ import annotations

import json

from backend.app.schemas.profiles import ParentProfile, StudentProfile


def test_student_profile_reads_parent_id_variants():
    assert StudentProfile.parse({"parent_id": "p-1"}).parent_id == "p-1"
    assert StudentProfile.parse({"parentId": "p-2"}).parent_id == "p-2"
    assert StudentProfile.parse({"parent": "p-3", "grade": 7}).parent_id == "p-3"


def test_student_profile_accepts_serialized_json():
    assert StudentProfile.parse(json.dumps({"parentId": "p-4"})).parent_id == "p-4"


def test_student_profile_without_parent():
    assert StudentProfile.parse(None).parent_id is None
    assert StudentProfile.parse({}).parent_id is None
    assert StudentProfile.parse("   ").parent_id is None


def test_malformed_student_profile_is_ignored(caplog):
    profile = StudentProfile.parse("{not json")

    assert profile.parent_id is None
    assert "malformed student profile" in caplog.text


def test_parent_profile_reads_children_variants():
    assert ParentProfile.parse({"child_ids": ["s-1", "s-2"]}).child_ids == {"s-1", "s-2"}
    assert ParentProfile.parse({"childIds": ["s-3"]}).child_ids == {"s-3"}
    assert ParentProfile.parse({"children": ["s-4"]}).child_ids == {"s-4"}


def test_parent_profile_reads_nested_assignments():
    profile = ParentProfile.parse({"assignments": {"childIds": ["s-5", None]}})

    assert profile.child_ids == {"s-5"}


def test_parent_profile_defaults_to_no_children():
    assert ParentProfile.parse(None).child_ids == set()
    assert ParentProfile.parse({"phone": "555"}).child_ids == set()
    assert ParentProfile.parse("[1, 2]").child_ids == set()
