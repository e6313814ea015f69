"""Unit tests for the cohort scoring engine."""

from datetime import datetime, timedelta, timezone

import pytest

from devstats.models import StudentRecord
from devstats.metrics import (
    NO_RANKING_SENTINEL,
    percentile,
    compute_class_stats,
    compute_student_metrics,
    compute_cohort_metrics,
    preview_student_metrics,
)


NOW = datetime(2025, 2, 1, tzinfo=timezone.utc)


def build_student(**overrides) -> StudentRecord:
    within_window = (NOW - timedelta(days=5)).isoformat()
    earlier = (NOW - timedelta(days=45)).isoformat()

    data = {
        "name": "Alice Smith",
        "roll_number": 101,
        "github_username": "alice",
        "leetcode_username": "alice_lc",
        "git_followers": 50,
        "git_following": 12,
        "git_public_repo": 8,
        "git_original_repo": 3,
        "git_authored_repo": 5,
        "last_commit_date": within_window,
        "git_badges": '["star", "pull-shark"]',
        "lc_total_solved": 320,
        "lc_easy": 150,
        "lc_medium": 130,
        "lc_hard": 40,
        "lc_ranking": 4800,
        "lc_lastsubmission": within_window,
        "lc_lastacceptedsubmission": within_window,
        "lc_cur_streak": 18,
        "lc_max_streak": 40,
        "lc_badges": '{"gold":2,"silver":1}',
        "lc_language": "TypeScript, C++",
        "gh_contribution_history": {
            within_window[:10]: 6,
            earlier[:10]: 20,
        },
        "lc_submission_history": {
            within_window[:10]: 9,
            earlier[:10]: 50,
        },
    }
    data.update(overrides)
    return StudentRecord(**data)


def test_percentile():
    """Test clamped cohort normalization."""
    assert percentile(5, 0) == 0
    assert percentile(5, -3) == 0
    assert percentile(5, 10) == 0.5
    assert percentile(20, 10) == 1.0
    assert percentile(-1, 10) == 0.0


def test_preview_counts_history_and_badges():
    """Window sums, badge counts and commit recency for a single student."""
    metrics = preview_student_metrics(build_student(), now=NOW)

    assert metrics.contributions30 == 6
    assert metrics.submissions30 == 9
    assert metrics.total_submissions == 59
    assert metrics.github_badges == 2
    assert metrics.leetcode_badges == 3
    assert metrics.total_badges == 5
    assert metrics.last_commit_days == 5
    assert metrics.acceptance_rate == pytest.approx(320 / 59 * 100)

    for score in (metrics.github_score, metrics.leetcode_score, metrics.combined_score):
        assert 0 <= score <= 100


def test_missing_histories_and_zero_badges():
    """Students without histories or badges score zero on those counters."""
    student = build_student(
        gh_contribution_history=None,
        lc_submission_history=None,
        git_badges="0",
        lc_badges="[]",
    )

    metrics = preview_student_metrics(student, now=NOW)

    assert metrics.contributions30 == 0
    assert metrics.submissions30 == 0
    assert metrics.total_badges == 0
    assert metrics.acceptance_rate == 0


def test_higher_activity_scores_higher():
    """A stronger student beats the baseline on every score."""
    base_student = build_student()
    recent = (NOW - timedelta(days=2)).isoformat()[:10]
    high_performer = build_student(
        name="Bob Jones",
        roll_number=102,
        git_followers=120,
        git_public_repo=15,
        git_authored_repo=9,
        git_original_repo=6,
        git_badges='["star", "pull-shark", "yolo", "quickdraw"]',
        lc_total_solved=450,
        lc_easy=180,
        lc_medium=200,
        lc_hard=70,
        lc_ranking=2100,
        lc_cur_streak=30,
        lc_max_streak=60,
        lc_badges='{"gold":4,"silver":2}',
        gh_contribution_history={recent: 40},
        lc_submission_history={recent: 30, "2024-11-01": 80},
    )

    base_metrics, high_metrics = compute_cohort_metrics([base_student, high_performer], now=NOW)

    assert high_metrics.github_score > base_metrics.github_score
    assert high_metrics.leetcode_score > base_metrics.leetcode_score
    assert high_metrics.combined_score > base_metrics.combined_score


def test_difficulty_weighting_is_monotonic():
    """Solving more problems at every difficulty raises the LeetCode score."""
    base_student = build_student()
    boosted = build_student(roll_number=102, lc_easy=160, lc_medium=140, lc_hard=50)

    base_metrics, boosted_metrics = compute_cohort_metrics([base_student, boosted], now=NOW)

    assert boosted_metrics.leetcode_score > base_metrics.leetcode_score
    assert boosted_metrics.combined_score >= base_metrics.combined_score


def test_harder_problems_outrank_easier_ones():
    """Two students differing only in solved counts are ordered by weighted difficulty."""
    student_a = build_student(name="A", lc_total_solved=320, lc_easy=150, lc_medium=130, lc_hard=40)
    student_b = build_student(name="B", lc_total_solved=380, lc_easy=170, lc_medium=156, lc_hard=54)

    metrics_a, metrics_b = compute_cohort_metrics([student_a, student_b], now=NOW)

    assert metrics_b.leetcode_score > metrics_a.leetcode_score


def test_scores_stay_within_bounds():
    """Scores are integers in [0, 100] across a mixed cohort."""
    cohort = [
        build_student(),
        build_student(name="Zero", lc_ranking=0, git_followers=0, lc_badges="N/A", git_badges=""),
        build_student(name="Strings", git_followers="1,200", lc_total_solved="1,024", lc_easy="900"),
        StudentRecord(name="Empty"),
    ]

    for metrics in compute_cohort_metrics(cohort, now=NOW):
        for score in (metrics.github_score, metrics.leetcode_score, metrics.combined_score):
            assert isinstance(score, int)
            assert 0 <= score <= 100


def test_all_zero_cohort():
    """An all-zero cohort scores zero apart from the neutral freshness default."""
    metrics = compute_cohort_metrics([StudentRecord(name="A"), StudentRecord(name="B")], now=NOW)

    for item in metrics:
        # 0.6 freshness * 5% weight, then (3 + 0) / 2 rounds half up
        assert item.github_score == 3
        assert item.leetcode_score == 0
        assert item.combined_score == 2
        assert item.last_commit_days is None


def test_last_commit_days():
    """Commit recency is None when unknown and falls back to last_commit_day."""
    assert preview_student_metrics(build_student(last_commit_date=None), now=NOW).last_commit_days is None
    assert preview_student_metrics(build_student(last_commit_date="soon"), now=NOW).last_commit_days is None

    fallback = build_student(last_commit_date=None, last_commit_day="2025-01-22")
    assert preview_student_metrics(fallback, now=NOW).last_commit_days == 10


def test_compute_class_stats():
    """Cohort maxima and best ranking."""
    cohort = [
        build_student(lc_ranking=0),
        build_student(lc_ranking=9600, git_followers=75, lc_cur_streak=50, lc_max_streak=20),
        build_student(lc_ranking=4800),
        build_student(lc_ranking=-1),
    ]

    stats = compute_class_stats(cohort, now=NOW)

    assert stats.best_ranking == 4800
    assert stats.max_followers == 75
    assert stats.max_current_streak == 50
    # max streak is never below the current streak
    assert stats.max_max_streak == 50
    assert stats.max_contributions30 == 6
    assert stats.max_total_submissions == 59
    assert stats.max_weighted_solved == 150 + 130 * 2 + 40 * 4
    assert stats.max_repo_footprint == pytest.approx(8 * 0.5 + 5 * 1.2 + 3 * 1.5)


def test_compute_class_stats_empty():
    """Empty cohort yields zero maxima and the no-ranking sentinel."""
    stats = compute_class_stats([], now=NOW)

    assert stats.max_total_solved == 0
    assert stats.max_contributions30 == 0
    assert stats.max_github_badges == 0
    assert stats.best_ranking == NO_RANKING_SENTINEL


def test_unranked_student_gets_no_ranking_credit():
    """Ranking only contributes for ranked students."""
    ranked = build_student(lc_ranking=4800)
    unranked = build_student(lc_ranking=0)
    stats = compute_class_stats([ranked, unranked], now=NOW)

    ranked_metrics = compute_student_metrics(ranked, stats, now=NOW)
    unranked_metrics = compute_student_metrics(unranked, stats, now=NOW)

    # 15% ranking weight is the only difference
    assert ranked_metrics.leetcode_score - unranked_metrics.leetcode_score == 15


def test_oversized_counters_do_not_raise():
    """Counters too large for a float are treated as missing."""
    student = build_student(git_followers=10 ** 400, lc_total_solved=10 ** 400)

    metrics = preview_student_metrics(student, now=NOW)

    assert metrics.followers == 0
    assert metrics.total_solved == 0
    assert 0 <= metrics.combined_score <= 100
