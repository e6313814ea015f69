"""Cohort-relative scoring of GitHub and LeetCode activity."""

import math
from datetime import datetime
from typing import List, Optional, Sequence

from devstats.models import ClassStats, StudentMetrics, StudentRecord
from devstats.parsers import (
    HISTORY_WINDOW_DAYS,
    count_badges,
    days_since,
    resolve_now,
    sum_all_entries,
    sum_history_entries,
    to_number,
)


NO_RANKING_SENTINEL = 5_000_000

# Freshness used when the last commit date is unknown
UNKNOWN_FRESHNESS = 0.6

GITHUB_WEIGHTS = {
    'contributions': 0.40,
    'followers': 0.15,
    'repos': 0.15,
    'freshness': 0.05,
    'badges': 0.25,
}

LEETCODE_WEIGHTS = {
    'total_submissions': 0.15,
    'weighted_solved': 0.30,
    'current_streak': 0.10,
    'max_streak': 0.20,
    'ranking': 0.15,
    'badges': 0.10,
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values, like the dashboard does."""
    return int(math.floor(value + 0.5))


def percentile(value: float, max_value: float) -> float:
    """
    Normalize *value* against the cohort maximum.

    Args:
        value: Student's value for a metric
        max_value: Cohort maximum for the same metric

    Returns:
        Ratio clamped to [0, 1]; 0 when the cohort maximum is not positive
    """
    if max_value <= 0:
        return 0.0
    return max(0.0, min(value / max_value, 1.0))


def repo_footprint(public_repos: float, authored_repos: float, original_repos: float) -> float:
    return public_repos * 0.5 + authored_repos * 1.2 + original_repos * 1.5


def weighted_solved(easy: float, medium: float, hard: float) -> float:
    return easy * 1 + medium * 2 + hard * 4


def _last_commit(record: StudentRecord) -> Optional[str]:
    return record.last_commit_date or record.last_commit_day


def compute_class_stats(cohort: Sequence[StudentRecord], now: Optional[datetime] = None) -> ClassStats:
    """Collect the per-metric maxima of a cohort in a single pass."""
    now = resolve_now(now)
    stats = ClassStats(best_ranking=NO_RANKING_SENTINEL)

    for student in cohort:
        total_solved = to_number(student.lc_total_solved, 0)
        current_streak = to_number(student.lc_cur_streak, 0)
        max_streak = max(current_streak, to_number(student.lc_max_streak, 0))
        ranking = to_number(student.lc_ranking, 0)

        weighted = weighted_solved(
            to_number(student.lc_easy, 0),
            to_number(student.lc_medium, 0),
            to_number(student.lc_hard, 0),
        )
        footprint = repo_footprint(
            to_number(student.git_public_repo, 0),
            to_number(student.git_authored_repo, 0),
            to_number(student.git_original_repo, 0),
        )

        stats.max_total_solved = max(stats.max_total_solved, total_solved)
        stats.max_total_submissions = max(
            stats.max_total_submissions, sum_all_entries(student.lc_submission_history)
        )
        stats.max_weighted_solved = max(stats.max_weighted_solved, weighted)
        stats.max_current_streak = max(stats.max_current_streak, current_streak)
        stats.max_max_streak = max(stats.max_max_streak, max_streak)
        stats.max_leetcode_badges = max(stats.max_leetcode_badges, count_badges(student.lc_badges))
        stats.max_contributions30 = max(
            stats.max_contributions30,
            sum_history_entries(student.gh_contribution_history, HISTORY_WINDOW_DAYS, now),
        )
        stats.max_followers = max(stats.max_followers, to_number(student.git_followers, 0))
        stats.max_repo_footprint = max(stats.max_repo_footprint, footprint)
        stats.max_github_badges = max(stats.max_github_badges, count_badges(student.git_badges))

        if 0 < ranking < stats.best_ranking:
            stats.best_ranking = ranking

    return stats


def _freshness(last_commit_days: Optional[int]) -> float:
    if last_commit_days is None:
        return UNKNOWN_FRESHNESS
    ratio = 1 - min(last_commit_days, HISTORY_WINDOW_DAYS) / HISTORY_WINDOW_DAYS
    return max(0.0, min(ratio, 1.0))


def _ranking_ratio(ranking: float, best_ranking: float) -> float:
    # Lower rank numbers are better; unranked students score 0
    if ranking <= 0 or best_ranking <= 0:
        return 0.0
    return max(0.0, min(1.0, best_ranking / ranking))


def compute_student_metrics(
    record: StudentRecord,
    stats: ClassStats,
    now: Optional[datetime] = None,
) -> StudentMetrics:
    """
    Compute one student's metrics and 0-100 scores relative to a cohort.

    Args:
        record: Raw student record
        stats: Maxima of the cohort the student is compared against
        now: Reference time for the trailing windows (defaults to now, UTC)

    Returns:
        StudentMetrics wrapping *record*
    """
    now = resolve_now(now)

    followers = to_number(record.git_followers, 0)
    public_repos = to_number(record.git_public_repo, 0)
    authored_repos = to_number(record.git_authored_repo, 0)
    original_repos = to_number(record.git_original_repo, 0)

    contributions30 = sum_history_entries(record.gh_contribution_history, HISTORY_WINDOW_DAYS, now)
    submissions30 = sum_history_entries(record.lc_submission_history, HISTORY_WINDOW_DAYS, now)
    total_submissions = sum_all_entries(record.lc_submission_history)

    github_badges = count_badges(record.git_badges)
    leetcode_badges = count_badges(record.lc_badges)
    last_commit_days = days_since(_last_commit(record), now)

    total_solved = max(0, to_number(record.lc_total_solved, 0))
    easy_solved = max(0, to_number(record.lc_easy, 0))
    medium_solved = max(0, to_number(record.lc_medium, 0))
    hard_solved = max(0, to_number(record.lc_hard, 0))
    current_streak = max(0, to_number(record.lc_cur_streak, 0))
    max_streak = max(current_streak, to_number(record.lc_max_streak, 0))

    github_raw = (
        percentile(contributions30, stats.max_contributions30) * GITHUB_WEIGHTS['contributions']
        + percentile(followers, stats.max_followers) * GITHUB_WEIGHTS['followers']
        + percentile(
            repo_footprint(public_repos, authored_repos, original_repos),
            stats.max_repo_footprint,
        ) * GITHUB_WEIGHTS['repos']
        + _freshness(last_commit_days) * GITHUB_WEIGHTS['freshness']
        + percentile(github_badges, stats.max_github_badges) * GITHUB_WEIGHTS['badges']
    )

    leetcode_raw = (
        percentile(total_submissions, stats.max_total_submissions) * LEETCODE_WEIGHTS['total_submissions']
        + percentile(
            weighted_solved(easy_solved, medium_solved, hard_solved),
            stats.max_weighted_solved,
        ) * LEETCODE_WEIGHTS['weighted_solved']
        + percentile(current_streak, stats.max_current_streak) * LEETCODE_WEIGHTS['current_streak']
        + percentile(max_streak, stats.max_max_streak) * LEETCODE_WEIGHTS['max_streak']
        + _ranking_ratio(to_number(record.lc_ranking, 0), stats.best_ranking) * LEETCODE_WEIGHTS['ranking']
        + percentile(leetcode_badges, stats.max_leetcode_badges) * LEETCODE_WEIGHTS['badges']
    )

    github_score = round_half_up(github_raw * 100)
    leetcode_score = round_half_up(leetcode_raw * 100)
    acceptance_rate = (total_solved / total_submissions) * 100 if total_submissions > 0 else 0.0

    return StudentMetrics(
        base=record,
        contributions30=contributions30,
        submissions30=submissions30,
        total_submissions=total_submissions,
        github_score=github_score,
        leetcode_score=leetcode_score,
        combined_score=round_half_up((github_score + leetcode_score) / 2),
        followers=followers,
        public_repos=public_repos,
        authored_repos=authored_repos,
        original_repos=original_repos,
        total_solved=total_solved,
        easy_solved=easy_solved,
        medium_solved=medium_solved,
        hard_solved=hard_solved,
        current_streak=current_streak,
        max_streak=max_streak,
        github_badges=github_badges,
        leetcode_badges=leetcode_badges,
        total_badges=github_badges + leetcode_badges,
        last_commit_days=last_commit_days,
        acceptance_rate=acceptance_rate,
    )


def compute_cohort_metrics(cohort: Sequence[StudentRecord], now: Optional[datetime] = None) -> List[StudentMetrics]:
    """Score every student of *cohort* against the cohort's own maxima."""
    now = resolve_now(now)
    stats = compute_class_stats(cohort, now)
    return [compute_student_metrics(student, stats, now) for student in cohort]


def preview_student_metrics(record: StudentRecord, now: Optional[datetime] = None) -> StudentMetrics:
    """Metrics for a student compared only against themselves."""
    return compute_cohort_metrics([record], now)[0]
