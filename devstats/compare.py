"""Student comparison: daily activity series and top-N radar profiles."""

from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from devstats.metrics import compute_class_stats, compute_student_metrics
from devstats.models import RadarPoint, SeriesPoint, StudentComparison, StudentMetrics, StudentRecord
from devstats.parsers import parse_date, resolve_now, to_number


# Trailing ranges end today and include it
SERIES_RANGES: Dict[str, int] = {
    '7d': 7,
    '14d': 14,
    '30d': 30,
    '365d': 365,
}
SERIES_RANGE_KEYS = tuple(SERIES_RANGES) + ('all', 'custom')
DEFAULT_CUSTOM_DAYS = 7

MIN_COMPARE = 2
MAX_COMPARE = 3

RADAR_METRICS: Tuple[Tuple[str, str], ...] = (
    ('combined_score', 'Combined'),
    ('github_score', 'GitHub'),
    ('leetcode_score', 'LeetCode'),
    ('contributions30', 'GH 30d'),
    ('submissions30', 'LC 30d'),
    ('total_badges', 'Badges'),
)


def daily_counts(history: Optional[Mapping[str, Any]]) -> Dict[date, float]:
    """Collapse a date -> count history onto UTC calendar days; bad entries are dropped."""
    counts: Dict[date, float] = {}
    for date_key, value in (history or {}).items():
        parsed = parse_date(date_key)
        count = to_number(value, None)
        if parsed is None or count is None:
            continue
        counts[parsed.date()] = count
    return counts


def series_bounds(
    range_key: str,
    counts: Mapping[date, float],
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> Optional[Tuple[date, date]]:
    """
    First and last day shown for *range_key*, or None when nothing can be shown.

    ``all`` spans the first to the last recorded day. ``custom`` uses
    *start*/*end* (a lone start is a single day, no bounds at all is the
    last week) and never reaches past today.
    """
    today = resolve_now(now).date()

    if range_key in SERIES_RANGES:
        return today - timedelta(days=SERIES_RANGES[range_key] - 1), today
    if range_key == 'all':
        if not counts:
            return None
        return min(counts), max(counts)
    if range_key == 'custom':
        if start is None and end is None:
            return today - timedelta(days=DEFAULT_CUSTOM_DAYS - 1), today
        if start is None:
            return None
        last = end if end is not None else start
        return min(start, today), min(last, today)

    raise ValueError(
        f"Unknown range '{range_key}'. Expected one of: {', '.join(SERIES_RANGE_KEYS)}"
    )


def history_series(
    history: Optional[Mapping[str, Any]],
    range_key: str = '30d',
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[SeriesPoint]:
    """
    Zero-filled daily series of a sparse activity history.

    Args:
        history: ``gh_contribution_history`` or ``lc_submission_history``
        range_key: One of 7d, 14d, 30d, 365d, all, custom
        start: First day of a custom range
        end: Last day of a custom range
        now: Reference time (defaults to the current time)

    Returns:
        One point per day, oldest first
    """
    counts = daily_counts(history)
    bounds = series_bounds(range_key, counts, start, end, now)
    if bounds is None:
        return []

    first, last = bounds
    return [
        SeriesPoint(date=day.date().isoformat(), count=counts.get(day.date(), 0))
        for day in pd.date_range(first, last, freq='D')
    ]


def find_students(
    students: Sequence[StudentRecord], roll_numbers: Sequence[str]
) -> Tuple[List[StudentRecord], List[str]]:
    """Students matching *roll_numbers* in request order, plus the roll numbers not found."""
    found: List[StudentRecord] = []
    missing: List[str] = []
    for roll_number in roll_numbers:
        # The all-classes view can hold the same roll number once per class
        matches = [s for s in students if str(s.roll_number) == str(roll_number)]
        if matches:
            found.extend(matches)
        else:
            missing.append(str(roll_number))
    return found, missing


def compare_students(
    cohort: Sequence[StudentRecord],
    selected: Sequence[StudentRecord],
    range_key: str = '30d',
    start: Optional[date] = None,
    end: Optional[date] = None,
    now: Optional[datetime] = None,
) -> List[StudentComparison]:
    """Score each selected student against *cohort* and attach their activity series."""
    if not MIN_COMPARE <= len(selected) <= MAX_COMPARE:
        raise ValueError(f"Compare between {MIN_COMPARE} and {MAX_COMPARE} students, got {len(selected)}")

    now = resolve_now(now)
    stats = compute_class_stats(cohort, now=now)
    return [
        StudentComparison(
            metrics=compute_student_metrics(student, stats, now=now),
            github_series=history_series(student.gh_contribution_history, range_key, start, end, now),
            leetcode_series=history_series(student.lc_submission_history, range_key, start, end, now),
        )
        for student in selected
    ]


def radar_key(metric: StudentMetrics) -> str:
    return f"student_{metric.base.roll_number}"


def radar_profile(metrics: Sequence[StudentMetrics]) -> List[RadarPoint]:
    """Each student's radar values as a percentage of the best among *metrics*."""
    if not metrics:
        return []

    points = []
    for key, label in RADAR_METRICS:
        values = [to_number(getattr(metric, key), 0) for metric in metrics]
        best = max(values + [0]) or 1
        points.append(RadarPoint(
            metric=key,
            label=label,
            values={
                radar_key(metric): round(value / best * 100.0, 1)
                for metric, value in zip(metrics, values)
            },
        ))
    return points
