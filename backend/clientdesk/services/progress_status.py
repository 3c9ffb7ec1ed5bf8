"""Status calculator — completion counts, percentage and overdue state.

All functions are pure over already-loaded steps.
"""

from collections.abc import Iterable
from datetime import datetime

from clientdesk.schemas.progress import (
    HierarchicalStep,
    PackageProgress,
    ProgressOverview,
    ProgressSnapshot,
    ProgressStatus,
    ProgressStepOut,
    StepDetail,
)
from clientdesk.services.deadlines import milestone_statuses
from clientdesk.services.hierarchy import build_hierarchy
from clientdesk.utils.dates import utcnow


def completion_percentage(completed: int, total: int) -> int:
    """Whole-number percentage, halves rounded up; 0 when there are no steps."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)


def is_step_overdue(step: ProgressStepOut, now: datetime | None = None) -> bool:
    """A step is overdue when it is not completed and its deadline has passed.

    A step due exactly at `now` is not yet overdue.
    """
    if step.completed or step.deadline is None:
        return False
    return (now or utcnow()) > step.deadline


def compute_status(
    steps: Iterable[ProgressStepOut] | None,
    now: datetime | None = None,
) -> ProgressStatus:
    """Aggregate the flat, persisted step list of a client.

    Virtual package nodes never count toward totals.
    """
    now = now or utcnow()
    steps = [s for s in (steps or []) if not getattr(s, "is_virtual", False)]
    total = len(steps)
    completed = sum(1 for s in steps if s.completed)
    overdue = sum(1 for s in steps if is_step_overdue(s, now))
    return ProgressStatus(
        completed_steps=completed,
        total_steps=total,
        percentage=completion_percentage(completed, total),
        overdue_count=overdue,
        has_overdue=overdue > 0,
    )


def package_status(node: HierarchicalStep, now: datetime | None = None) -> ProgressStatus:
    """Status of one package: its own setup step (if persisted) plus its children."""
    members = [] if node.is_virtual else [node]
    members.extend(node.children)
    return compute_status(members, now)


def step_detail(step: ProgressStepOut, now: datetime | None = None) -> StepDetail:
    now = now or utcnow()
    return StepDetail(
        **step.model_dump(),
        overdue=is_step_overdue(step, now),
        milestones=milestone_statuses(step, now),
    )


def build_overview(snapshot: ProgressSnapshot, now: datetime | None = None) -> ProgressOverview:
    """Client-level status, per-package status and the step tree in one view."""
    now = now or utcnow()
    roots = build_hierarchy(
        snapshot.steps, snapshot.packages, snapshot.components,
        now=now, client_id=snapshot.client_id,
    )
    packages = [
        PackageProgress(
            step_id=node.id,
            package_name=node.package_name,
            is_virtual=node.is_virtual,
            status=package_status(node, now),
            milestones=milestone_statuses(node, now),
        )
        for node in roots
        if node.is_package
    ]
    return ProgressOverview(
        client_id=snapshot.client_id,
        status=compute_status(snapshot.steps, now),
        packages=packages,
        steps=roots,
    )
