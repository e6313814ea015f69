"""Heuristic detection of implausible single-day activity spikes."""

from datetime import datetime, timedelta
from typing import List, Mapping, Optional, Sequence, Any

from devstats.models import StudentRecord, SuspiciousActivity, SuspiciousStudent
from devstats.parsers import parse_date, resolve_now, to_number


WINDOW_DAYS = 30
LEETCODE_SUBMISSION_THRESHOLD = 35
LEETCODE_PROGRESS_THRESHOLD = 8
GITHUB_COMMIT_THRESHOLD = 50


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _daily_spikes(
    history: Optional[Mapping[str, Any]],
    threshold: float,
    window_start: datetime,
    now: datetime,
) -> List[tuple]:
    spikes = []
    for date_key, raw_count in (history or {}).items():
        date = parse_date(date_key)
        if date is None or not (window_start <= date <= now):
            continue
        count = to_number(raw_count, 0)
        if count > threshold:
            spikes.append((date_key, count))
    return spikes


def _progress_jumps(record: StudentRecord, window_start: datetime, now: datetime) -> List[tuple]:
    snapshots = record.lc_progress_history or []
    if len(snapshots) < 2:
        return []

    dated = []
    for snapshot in snapshots:
        timestamp = parse_date(snapshot.timestamp)
        if timestamp is not None:
            dated.append((timestamp, to_number(snapshot.count, 0)))
    dated.sort(key=lambda item: item[0], reverse=True)
    recent = [item for item in dated if window_start <= item[0] <= now]

    # Only adjacent snapshots inside the window are compared
    jumps = []
    for (current_ts, current_count), (_, next_count) in zip(recent, recent[1:]):
        increase = current_count - next_count
        if increase > LEETCODE_PROGRESS_THRESHOLD:
            jumps.append((current_ts, increase))
    return jumps


def detect_suspicious_activities(
    record: StudentRecord,
    now: Optional[datetime] = None,
) -> List[SuspiciousActivity]:
    """
    Flag implausible bursts in a student's last 30 days of activity.

    Checks LeetCode submissions per day (> 35), jumps between consecutive
    solved-count snapshots (> 8) and GitHub contributions per day (> 50).
    Every triggered check is returned; a clean student yields an empty list.
    """
    now = resolve_now(now)
    window_start = now - timedelta(days=WINDOW_DAYS)
    activities: List[SuspiciousActivity] = []

    for date_key, count in _daily_spikes(
        record.lc_submission_history, LEETCODE_SUBMISSION_THRESHOLD, window_start, now
    ):
        activities.append(SuspiciousActivity(
            type="leetcode_submissions",
            reason=f"{_fmt(count)} LeetCode submissions on {date_key}",
            value=count,
            threshold=LEETCODE_SUBMISSION_THRESHOLD,
        ))

    for timestamp, increase in _progress_jumps(record, window_start, now):
        activities.append(SuspiciousActivity(
            type="leetcode_progress",
            reason=f"+{_fmt(increase)} problems detected on {timestamp.date().isoformat()}",
            value=increase,
            threshold=LEETCODE_PROGRESS_THRESHOLD,
        ))

    for date_key, count in _daily_spikes(
        record.gh_contribution_history, GITHUB_COMMIT_THRESHOLD, window_start, now
    ):
        activities.append(SuspiciousActivity(
            type="github_commits",
            reason=f"{_fmt(count)} GitHub commits on {date_key}",
            value=count,
            threshold=GITHUB_COMMIT_THRESHOLD,
        ))

    return activities


def get_suspicious_students(
    cohort: Sequence[StudentRecord],
    now: Optional[datetime] = None,
) -> List[SuspiciousStudent]:
    """Students with at least one flag, most flags first (ties keep roster order)."""
    now = resolve_now(now)
    flagged = [
        SuspiciousStudent(student=student, activities=detect_suspicious_activities(student, now))
        for student in cohort
    ]
    flagged = [item for item in flagged if item.activities]
    flagged.sort(key=lambda item: len(item.activities), reverse=True)
    return flagged


def format_suspicious_reason(activities: Sequence[SuspiciousActivity]) -> str:
    if not activities:
        return ""
    if len(activities) == 1:
        return activities[0].reason
    return " • ".join(activity.reason for activity in activities)
