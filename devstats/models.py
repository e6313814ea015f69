"""Data models for the Student Dev-Stats Dashboard."""

from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict


# Counters arrive as numbers or as scraped strings like "1,234"
Numeric = Optional[Union[int, float, str]]


class ProgressSnapshot(BaseModel):
    """Cumulative LeetCode solved-count at a point in time."""
    timestamp: Optional[str] = None
    count: Numeric = None


class StudentRecord(BaseModel):
    """One student row as returned by the data API."""
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = ""
    roll_number: Optional[Union[int, str]] = None
    github_username: Optional[str] = None
    leetcode_username: Optional[str] = None

    git_followers: Numeric = None
    git_following: Numeric = None
    git_public_repo: Numeric = None
    git_original_repo: Numeric = None
    git_authored_repo: Numeric = None
    last_commit_date: Optional[str] = None
    last_commit_day: Optional[str] = None
    git_badges: Optional[str] = None

    lc_total_solved: Numeric = None
    lc_easy: Numeric = None
    lc_medium: Numeric = None
    lc_hard: Numeric = None
    lc_ranking: Numeric = None
    lc_lastsubmission: Optional[str] = None
    lc_lastacceptedsubmission: Optional[str] = None
    lc_cur_streak: Numeric = None
    lc_max_streak: Numeric = None
    lc_badges: Optional[str] = None
    lc_language: Optional[str] = None

    gh_contribution_history: Optional[Dict[str, Any]] = None
    lc_submission_history: Optional[Dict[str, Any]] = None
    lc_progress_history: Optional[List[ProgressSnapshot]] = None

    section: Optional[str] = None


class ClassStats(BaseModel):
    """Per-metric maxima across one cohort snapshot."""
    max_total_solved: float = 0
    max_total_submissions: float = 0
    max_weighted_solved: float = 0
    max_current_streak: float = 0
    max_max_streak: float = 0
    best_ranking: float = 5_000_000
    max_leetcode_badges: float = 0
    max_contributions30: float = 0
    max_followers: float = 0
    max_repo_footprint: float = 0
    max_github_badges: float = 0


class StudentMetrics(BaseModel):
    """Cohort-relative metrics for a single student."""
    base: StudentRecord
    contributions30: float
    submissions30: float
    total_submissions: float
    github_score: int
    leetcode_score: int
    combined_score: int
    followers: float
    public_repos: float
    authored_repos: float
    original_repos: float
    total_solved: float
    easy_solved: float
    medium_solved: float
    hard_solved: float
    current_streak: float
    max_streak: float
    github_badges: float
    leetcode_badges: float
    total_badges: float
    last_commit_days: Optional[int] = None
    acceptance_rate: float


ActivityType = Literal["leetcode_submissions", "leetcode_progress", "github_commits"]


class SuspiciousActivity(BaseModel):
    """A single heuristic flag raised for a student."""
    type: ActivityType
    reason: str
    value: float
    threshold: float


class SuspiciousStudent(BaseModel):
    student: StudentRecord
    activities: List[SuspiciousActivity]


class LeaderboardEntry(BaseModel):
    rank: int
    metrics: StudentMetrics


class ClassOverview(BaseModel):
    """Headline numbers for the class summary cards."""
    total_students: int
    active_students: int
    activity_rate: float
    students_with_streaks: int
    streak_rate: float
    avg_acceptance_rate: float
    top_performer: str
    top_performer_score: int
    high_performers: int
    high_performer_rate: float


class StudentRow(BaseModel):
    """Student table row with its suspicious-activity flags."""
    student: StudentRecord
    activities: List[SuspiciousActivity]
    suspicious_reason: str


class LastUpdateEntry(BaseModel):
    table_name: str
    changed_at: str


class Notification(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    rollnumber: Union[int, str]
    table_name: str
    reason: str


class UpdateResponse(BaseModel):
    source_table: str
    target_table: str
    updated: int
    errors: List[str]


class RemoveNotificationRequest(BaseModel):
    table_name: str
    roll_number: Union[int, str]


class RemoveNotificationResponse(BaseModel):
    ok: bool
    removed: int


class SeriesPoint(BaseModel):
    date: str
    count: float


class StudentComparison(BaseModel):
    """Side-by-side metrics and daily activity for one compared student."""
    metrics: StudentMetrics
    github_series: List[SeriesPoint]
    leetcode_series: List[SeriesPoint]


class RadarPoint(BaseModel):
    """One radar axis: each student's value as a percentage of the best."""
    metric: str
    label: str
    values: Dict[str, float]
