"""Leaderboard ranking, search and class overview over computed metrics."""

from typing import Dict, List, Optional, Sequence

import pandas as pd

from devstats.models import ClassOverview, LeaderboardEntry, StudentMetrics


SORT_METRICS: Dict[str, str] = {
    'combined_score': 'Overall score blending GitHub and LeetCode',
    'github_score': 'GitHub activity score',
    'leetcode_score': 'LeetCode problem-solving score',
    'contributions30': 'GitHub contributions in the last 30 days',
    'submissions30': 'LeetCode submissions in the last 30 days',
    'total_solved': 'Total LeetCode problems solved',
    'current_streak': 'Current LeetCode streak',
    'total_badges': 'GitHub and LeetCode badges',
    'total_submissions': 'All-time LeetCode submissions',
}

MIN_TOP_N = 2
MAX_TOP_N = 15
HIGH_PERFORMER_SCORE = 50

EXPORT_COLUMNS = [
    'name',
    'roll_number',
    'section',
    'github_username',
    'leetcode_username',
    'combined_score',
    'github_score',
    'leetcode_score',
    'contributions30',
    'submissions30',
    'total_submissions',
    'acceptance_rate',
    'followers',
    'public_repos',
    'authored_repos',
    'original_repos',
    'total_solved',
    'easy_solved',
    'medium_solved',
    'hard_solved',
    'current_streak',
    'max_streak',
    'github_badges',
    'leetcode_badges',
    'total_badges',
    'last_commit_days',
]


def filter_metrics(metrics: Sequence[StudentMetrics], search: Optional[str]) -> List[StudentMetrics]:
    """Keep students whose name, roll number or usernames contain *search*."""
    query = (search or "").strip().lower()
    if not query:
        return list(metrics)

    def matches(metric: StudentMetrics) -> bool:
        base = metric.base
        targets = [base.name, base.roll_number, base.github_username, base.leetcode_username]
        return any(query in str(target).lower() for target in targets if target)

    return [metric for metric in metrics if matches(metric)]


def rank_metrics(metrics: Sequence[StudentMetrics], sort_metric: str = 'combined_score') -> List[StudentMetrics]:
    """Sort descending by *sort_metric*; ties keep their input order."""
    if sort_metric not in SORT_METRICS:
        raise ValueError(
            f"Unknown sort metric '{sort_metric}'. Expected one of: {', '.join(SORT_METRICS)}"
        )
    return sorted(metrics, key=lambda metric: getattr(metric, sort_metric), reverse=True)


def effective_top_n(top_n: int, count: int) -> int:
    """
    Clamp the requested top-N to [2, 15], then to the number of students.

    An empty list keeps the clamped request so the UI control stays stable.
    """
    capped = min(MAX_TOP_N, max(MIN_TOP_N, top_n))
    if count == 0:
        return capped
    return min(capped, max(1, count))


def build_leaderboard(
    metrics: Sequence[StudentMetrics],
    sort_metric: str = 'combined_score',
    search: Optional[str] = None,
    top_n: int = 10,
) -> List[LeaderboardEntry]:
    ranked = rank_metrics(filter_metrics(metrics, search), sort_metric)
    limit = effective_top_n(top_n, len(ranked))
    return [
        LeaderboardEntry(rank=position, metrics=metric)
        for position, metric in enumerate(ranked[:limit], start=1)
    ]


def metrics_frame(metrics: Sequence[StudentMetrics]) -> pd.DataFrame:
    """Flatten metrics into one DataFrame row per student for export."""
    rows = []
    for metric in metrics:
        row = metric.model_dump(exclude={'base'})
        base = metric.base
        row.update({
            'name': base.name,
            'roll_number': base.roll_number,
            'section': base.section,
            'github_username': base.github_username,
            'leetcode_username': base.leetcode_username,
        })
        rows.append(row)
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def _rate(part: int, total: int) -> float:
    return round(part / total * 100.0, 1)


def class_overview(metrics: Sequence[StudentMetrics]) -> Optional[ClassOverview]:
    """Summary counts and rates for a cohort, or None when it is empty."""
    if not metrics:
        return None

    df = metrics_frame(metrics)
    total = len(df)

    active = int(((df['contributions30'] > 0) | (df['submissions30'] > 0)).sum())
    with_streaks = int((df['current_streak'] > 0).sum())
    submitters = df.loc[df['total_submissions'] > 0, 'acceptance_rate']
    avg_acceptance = float(submitters.mean()) if not submitters.empty else 0.0
    high_performers = int((df['combined_score'] >= HIGH_PERFORMER_SCORE).sum())

    # idxmax returns the first maximum, so earlier students win ties
    top = metrics[int(df['combined_score'].idxmax())]
    top_name = (top.base.name or "").split(" ")[0]

    return ClassOverview(
        total_students=total,
        active_students=active,
        activity_rate=_rate(active, total),
        students_with_streaks=with_streaks,
        streak_rate=_rate(with_streaks, total),
        avg_acceptance_rate=round(avg_acceptance, 1),
        top_performer=top_name,
        top_performer_score=top.combined_score,
        high_performers=high_performers,
        high_performer_rate=_rate(high_performers, total),
    )
