"""Roster helpers for the student table: class union, search, activity filter and sorting."""

from datetime import datetime, timedelta
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from devstats.models import StudentRecord
from devstats.parsers import parse_date, resolve_now, to_number


ALL_CLASSES_KEY = "__all_classes__"
ACTIVE_WINDOW_DAYS = 3

ACTIVITY_FILTERS = ("all", "active", "inactive")
DATE_FIELDS = ("last_commit_date", "lc_lastsubmission")
NUMERIC_FIELDS = (
    "git_followers", "git_following", "git_public_repo", "git_original_repo", "git_authored_repo",
    "lc_total_solved", "lc_easy", "lc_medium", "lc_hard", "lc_cur_streak", "lc_max_streak",
)


def class_label(table_name: str) -> str:
    """Human-readable class name ("CSE_A" -> "CSE A")."""
    return table_name.replace("_", " ")


def union_rosters(rosters: Dict[str, Sequence[StudentRecord]]) -> List[StudentRecord]:
    """Concatenate per-class rosters, tagging each student with its class label."""
    students: List[StudentRecord] = []
    for table_name, roster in rosters.items():
        section = class_label(table_name)
        students.extend(student.model_copy(update={"section": section}) for student in roster)
    return students


def filter_students(
    records: Sequence[StudentRecord],
    search: Optional[str] = None,
    activity: str = "all",
    now: Optional[datetime] = None,
) -> List[StudentRecord]:
    """
    Apply the student table's search box and activity filter.

    Args:
        records: Students of the current cohort
        search: Substring matched against name, roll number and section
        activity: "all", "active" (LeetCode submission within 3 days) or "inactive"
        now: Reference time for the activity filter

    Returns:
        The matching students in their original order
    """
    if activity not in ACTIVITY_FILTERS:
        raise ValueError(
            f"Unknown activity filter '{activity}'. Expected one of: {', '.join(ACTIVITY_FILTERS)}"
        )

    query = (search or "").strip().lower()
    filtered = [
        student for student in records
        if not query
        or query in (student.name or "").lower()
        or query in str(student.roll_number if student.roll_number is not None else "").lower()
        or (student.section and query in student.section.lower())
    ]

    if activity == "all":
        return filtered

    cutoff = resolve_now(now) - timedelta(days=ACTIVE_WINDOW_DAYS)

    def is_active(student: StudentRecord) -> bool:
        last_submission = parse_date(student.lc_lastsubmission)
        return last_submission is not None and last_submission >= cutoff

    if activity == "active":
        return [student for student in filtered if is_active(student)]
    return [student for student in filtered if not is_active(student)]


def _sort_value(student: StudentRecord, field: str) -> Any:
    value = getattr(student, field, None)
    if field in DATE_FIELDS:
        return parse_date(value)
    if field in NUMERIC_FIELDS:
        return to_number(value, 0)
    if isinstance(value, str):
        return value.lower()
    return value


def _compare(a: Any, b: Any) -> int:
    # Missing values sort before anything else in ascending order
    if a is None or b is None:
        return (a is not None) - (b is not None)
    try:
        return (a > b) - (a < b)
    except TypeError:
        return (str(a) > str(b)) - (str(a) < str(b))


def sort_students(
    records: Sequence[StudentRecord],
    field: str = "name",
    direction: str = "asc",
) -> List[StudentRecord]:
    """
    Sort the student table by a record field.

    Dates compare chronologically and strings case-insensitively. For
    ``lc_ranking`` unranked students (0, negative or missing) always come
    last, whichever the direction.
    """
    if direction not in ("asc", "desc"):
        raise ValueError(f"Unknown sort direction '{direction}'. Expected 'asc' or 'desc'")
    sign = 1 if direction == "asc" else -1

    if field == "lc_ranking":
        def compare_ranking(a: StudentRecord, b: StudentRecord) -> int:
            a_rank = to_number(a.lc_ranking, 0)
            b_rank = to_number(b.lc_ranking, 0)
            a_missing, b_missing = a_rank <= 0, b_rank <= 0
            if a_missing and b_missing:
                return 0
            if a_missing:
                return 1
            if b_missing:
                return -1
            return sign * _compare(a_rank, b_rank)

        return sorted(records, key=cmp_to_key(compare_ranking))

    if field not in StudentRecord.model_fields:
        raise ValueError(f"Unknown sort field '{field}'")

    return sorted(
        records,
        key=cmp_to_key(lambda a, b: sign * _compare(_sort_value(a, field), _sort_value(b, field))),
    )
