"""Practice exam catalog: per-user status, grouping and sorting."""

from .grouping import (
    CertificationGroup,
    ExamSort,
    GroupedStats,
    SortDirection,
    SortField,
    available_exams,
    build_grouped_view,
    filter_by_enrollment,
    filter_by_status,
    group_by_category,
    group_by_certification,
    grouped_stats,
    next_recommended_exam,
    sort_exams,
    sort_exams_within_groups,
    sort_groups,
)
from .status import ExamWithStatus, annotate_exams

__all__ = [
    "CertificationGroup",
    "ExamSort",
    "ExamWithStatus",
    "GroupedStats",
    "SortDirection",
    "SortField",
    "annotate_exams",
    "available_exams",
    "build_grouped_view",
    "filter_by_enrollment",
    "filter_by_status",
    "group_by_category",
    "group_by_certification",
    "grouped_stats",
    "next_recommended_exam",
    "sort_exams",
    "sort_exams_within_groups",
    "sort_groups",
]
