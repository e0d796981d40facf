"""
Grouping, sorting and filtering of the practice exam catalog.

The flat list of annotated exams becomes one group per certification:

    group_by_certification -> filters -> sort_groups -> sort_exams_within_groups

Every sort falls back to the exam's stored sort_order so repeated renders
come out in the same order.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from certprep.exam.models import CatalogFilters, Category, Certification, ExamStatus
from certprep.exam.progress import mean_rounded

from .status import ExamWithStatus


class SortField(str, Enum):
    NAME = "name"
    STATUS = "status"
    SCORE = "score"
    UPDATED_AT = "updated_at"
    CATEGORY = "category"
    SORT_ORDER = "sort_order"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class ExamSort:
    field: SortField = SortField.NAME
    direction: SortDirection = SortDirection.ASC

    @property
    def descending(self) -> bool:
        return self.direction == SortDirection.DESC


STATUS_PRIORITY = {
    ExamStatus.IN_PROGRESS: 0,
    ExamStatus.NOT_STARTED: 1,
    ExamStatus.COMPLETED: 2,
}


@dataclass
class CertificationGroup:
    """One certification and its exams, as shown in exam pickers."""

    certification: Certification
    is_enrolled: bool
    exams: list[ExamWithStatus] = field(default_factory=list)

    @property
    def category(self) -> Category:
        return self.certification.category


@dataclass(frozen=True)
class GroupedStats:
    total_certifications: int = 0
    total_exams: int = 0
    enrolled_certifications: int = 0
    completed_exams: int = 0
    in_progress_exams: int = 0
    not_started_exams: int = 0
    average_score: int = 0
    best_score: int = 0


def collation_key(text: str) -> tuple[str, str]:
    """
    Locale-style sort key: accents and case are ignored first, then the
    raw string breaks ties so the order is total.
    """
    decomposed = unicodedata.normalize("NFKD", text)
    base = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return base.casefold(), text


# ========================================
# Grouping
# ========================================


def group_by_certification(exams: Iterable[ExamWithStatus]) -> list[CertificationGroup]:
    """
    Group exams by certification, preserving first-seen order.

    The group's certification, category and enrollment flag come from the
    first exam seen for that certification.
    """
    groups: dict[str, CertificationGroup] = {}
    for exam in exams:
        cert_id = exam.certification.id
        group = groups.get(cert_id)
        if group is None:
            group = CertificationGroup(certification=exam.certification, is_enrolled=exam.is_enrolled)
            groups[cert_id] = group
        group.exams.append(exam)
    return list(groups.values())


def group_by_category(exams: Iterable[ExamWithStatus]) -> dict[str, list[CertificationGroup]]:
    """Certification groups bucketed by category name."""
    categories: dict[str, list[CertificationGroup]] = {}
    for group in group_by_certification(exams):
        categories.setdefault(group.category.name, []).append(group)
    return categories


# ========================================
# Sorting
# ========================================


def sort_groups(
    groups: Sequence[CertificationGroup],
    direction: SortDirection = SortDirection.ASC,
) -> list[CertificationGroup]:
    """Order groups by certification name."""
    return sorted(
        groups,
        key=lambda g: (collation_key(g.certification.name), g.certification.id),
        reverse=direction == SortDirection.DESC,
    )


def _sort_value(exam: ExamWithStatus, sort_field: SortField):
    if sort_field == SortField.NAME:
        return collation_key(exam.name)
    if sort_field == SortField.STATUS:
        return STATUS_PRIORITY[exam.status]
    if sort_field == SortField.SCORE:
        return exam.best_score or 0
    if sort_field == SortField.UPDATED_AT:
        return exam.updated_at.timestamp() if exam.updated_at else float("-inf")
    if sort_field == SortField.CATEGORY:
        return collation_key(exam.category_name)
    return exam.sort_order


def sort_exams(exams: Iterable[ExamWithStatus], sort: ExamSort) -> list[ExamWithStatus]:
    """
    Sort exams by the selected field.

    Ties always fall back to sort_order ascending (then ID), whatever
    the direction. Python's sort is stable under reverse=True, so the
    fallback order survives a descending primary sort.
    """
    baseline = sorted(exams, key=lambda e: (e.sort_order, e.id))
    if sort.field == SortField.SORT_ORDER and not sort.descending:
        return baseline
    return sorted(baseline, key=lambda e: _sort_value(e, sort.field), reverse=sort.descending)


def sort_exams_within_groups(
    groups: Iterable[CertificationGroup], sort: ExamSort
) -> list[CertificationGroup]:
    return [replace(g, exams=sort_exams(g.exams, sort)) for g in groups]


# ========================================
# Filtering
# ========================================


def filter_exams(exams: Iterable[ExamWithStatus], filters: CatalogFilters) -> list[ExamWithStatus]:
    """Apply exam-level filters before grouping."""
    kept = []
    for exam in exams:
        if filters.category_id and exam.certification.category.id != filters.category_id:
            continue
        if filters.certification_id and exam.certification.id != filters.certification_id:
            continue
        if filters.free_only and not exam.certification.is_free:
            continue
        kept.append(exam)
    return kept


def filter_by_enrollment(
    groups: Iterable[CertificationGroup], enrolled_only: bool = False
) -> list[CertificationGroup]:
    if not enrolled_only:
        return list(groups)
    return [g for g in groups if g.is_enrolled]


def filter_by_status(
    groups: Iterable[CertificationGroup], status: ExamStatus | None = None
) -> list[CertificationGroup]:
    """Keep only exams with the given status, dropping groups left empty."""
    if status is None:
        return list(groups)
    filtered = (replace(g, exams=[e for e in g.exams if e.status == status]) for g in groups)
    return [g for g in filtered if g.exams]


def build_grouped_view(
    exams: Iterable[ExamWithStatus],
    filters: CatalogFilters | None = None,
    sort: ExamSort | None = None,
) -> list[CertificationGroup]:
    """Full pipeline behind the grouped practice exam listing."""
    filters = filters or CatalogFilters()
    sort = sort or ExamSort()

    groups = group_by_certification(filter_exams(exams, filters))
    groups = filter_by_enrollment(groups, filters.enrolled_only)
    groups = filter_by_status(groups, filters.status)
    groups = sort_groups(groups, SortDirection.ASC)
    return sort_exams_within_groups(groups, sort)


# ========================================
# Derived views
# ========================================


def grouped_stats(groups: Sequence[CertificationGroup]) -> GroupedStats:
    counts = {status: 0 for status in ExamStatus}
    scores: list[int] = []
    total_exams = 0
    for group in groups:
        total_exams += len(group.exams)
        for exam in group.exams:
            counts[exam.status] += 1
            if exam.best_score is not None:
                scores.append(exam.best_score)

    return GroupedStats(
        total_certifications=len(groups),
        total_exams=total_exams,
        enrolled_certifications=sum(1 for g in groups if g.is_enrolled),
        completed_exams=counts[ExamStatus.COMPLETED],
        in_progress_exams=counts[ExamStatus.IN_PROGRESS],
        not_started_exams=counts[ExamStatus.NOT_STARTED],
        average_score=mean_rounded(scores),
        best_score=max(scores) if scores else 0,
    )


def available_exams(groups: Iterable[CertificationGroup]) -> list[ExamWithStatus]:
    """Exams the user can take right now: enrolled and not completed."""
    return [
        exam
        for group in groups
        if group.is_enrolled
        for exam in group.exams
        if exam.status in (ExamStatus.NOT_STARTED, ExamStatus.IN_PROGRESS)
    ]


def next_recommended_exam(groups: Sequence[CertificationGroup]) -> ExamWithStatus | None:
    """
    Pick what to study next.

    Priority: an enrolled exam in progress, then an enrolled exam not yet
    started, then a free exam not yet started. Within a tier, the first
    match in group-then-exam order wins.
    """
    tiers = (
        (lambda g: g.is_enrolled, ExamStatus.IN_PROGRESS),
        (lambda g: g.is_enrolled, ExamStatus.NOT_STARTED),
        (lambda g: g.certification.is_free, ExamStatus.NOT_STARTED),
    )
    for group_matches, status in tiers:
        for group in groups:
            if not group_matches(group):
                continue
            for exam in group.exams:
                if exam.status == status:
                    return exam
    return None
