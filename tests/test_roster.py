"""Unit tests for roster union, filtering and sorting."""

from datetime import datetime, timezone

import pytest

from devstats.models import StudentRecord
from devstats.roster import (
    class_label,
    union_rosters,
    filter_students,
    sort_students,
)


NOW = datetime(2025, 2, 1, tzinfo=timezone.utc)


def names(records):
    return [record.name for record in records]


def test_class_label():
    assert class_label("CSE_A_2025") == "CSE A 2025"


def test_union_rosters_tags_sections():
    """Union keeps class order and tags every student with its class."""
    original = StudentRecord(name="Ada", roll_number=1)
    rosters = {
        "CSE_A": [original],
        "CSE_B": [StudentRecord(name="Grace", roll_number=1), StudentRecord(name="Alan", roll_number=2)],
    }

    students = union_rosters(rosters)

    assert names(students) == ["Ada", "Grace", "Alan"]
    assert [s.section for s in students] == ["CSE A", "CSE B", "CSE B"]
    # Source rosters are left untouched
    assert original.section is None


def test_filter_students_search():
    """Search covers name, roll number and section."""
    students = [
        StudentRecord(name="Ada Lovelace", roll_number=101, section="CSE A"),
        StudentRecord(name="Grace Hopper", roll_number=202, section="CSE B"),
    ]

    assert names(filter_students(students, "ada")) == ["Ada Lovelace"]
    assert names(filter_students(students, "202")) == ["Grace Hopper"]
    assert names(filter_students(students, "cse b")) == ["Grace Hopper"]
    assert names(filter_students(students, "")) == ["Ada Lovelace", "Grace Hopper"]


def test_filter_students_activity():
    """Active means a LeetCode submission within the last three days."""
    students = [
        StudentRecord(name="Recent", lc_lastsubmission="2025-01-31T09:00:00Z"),
        StudentRecord(name="Old", lc_lastsubmission="2025-01-10"),
        StudentRecord(name="Unknown", lc_lastsubmission="unknown"),
    ]

    assert names(filter_students(students, activity="active", now=NOW)) == ["Recent"]
    assert names(filter_students(students, activity="inactive", now=NOW)) == ["Old", "Unknown"]
    assert len(filter_students(students, activity="all", now=NOW)) == 3

    with pytest.raises(ValueError):
        filter_students(students, activity="sleeping", now=NOW)


def test_sort_students_by_name():
    """Names sort case-insensitively in both directions."""
    students = [StudentRecord(name="bob"), StudentRecord(name="Alice"), StudentRecord(name="carol")]

    assert names(sort_students(students, "name", "asc")) == ["Alice", "bob", "carol"]
    assert names(sort_students(students, "name", "desc")) == ["carol", "bob", "Alice"]


def test_sort_students_by_ranking_puts_unranked_last():
    """Unranked students trail the ranked ones whatever the direction."""
    students = [
        StudentRecord(name="Unranked", lc_ranking=0),
        StudentRecord(name="Mid", lc_ranking=5000),
        StudentRecord(name="Missing"),
        StudentRecord(name="Top", lc_ranking="1,200"),
    ]

    assert names(sort_students(students, "lc_ranking", "asc")) == ["Top", "Mid", "Unranked", "Missing"]
    assert names(sort_students(students, "lc_ranking", "desc")) == ["Mid", "Top", "Unranked", "Missing"]


def test_sort_students_by_date_and_number():
    """Dates sort chronologically and counters numerically."""
    students = [
        StudentRecord(name="Mid", last_commit_date="2025-01-15", git_followers="1,200"),
        StudentRecord(name="Late", last_commit_date="2025-01-30T10:00:00Z", git_followers=300),
        StudentRecord(name="Early", last_commit_date="2024-12-01", git_followers=5),
    ]

    assert names(sort_students(students, "last_commit_date", "desc")) == ["Late", "Mid", "Early"]
    assert names(sort_students(students, "git_followers", "asc")) == ["Early", "Late", "Mid"]


def test_sort_students_rejects_bad_input():
    """Unknown fields and directions are rejected."""
    students = [StudentRecord(name="A")]

    with pytest.raises(ValueError):
        sort_students(students, "name", "sideways")
    with pytest.raises(ValueError):
        sort_students(students, "favourite_colour")
