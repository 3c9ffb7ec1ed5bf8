"""Deadline manager — per-step milestones: onboarding, first draft, second draft.

Each milestone carries its own deadline, completion flag and completion
date.  Milestone state is independent of the step's own completion: a
step can be complete with milestones open and vice versa.
"""

import enum
import logging
import re
from datetime import datetime, timedelta

from clientdesk.config import settings
from clientdesk.middleware.exceptions import InvalidInputError
from clientdesk.schemas.progress import MilestoneStatus, ProgressStepOut
from clientdesk.utils.dates import parse_timestamp, utcnow

logger = logging.getLogger("clientdesk.deadlines")


class Milestone(str, enum.Enum):
    ONBOARDING = "onboarding"
    FIRST_DRAFT = "first_draft"
    SECOND_DRAFT = "second_draft"

    @classmethod
    def parse(cls, value: "str | Milestone") -> "Milestone":
        """Accept `first_draft`, `first-draft` or `firstDraft`."""
        if isinstance(value, cls):
            return value
        token = re.sub(r"(?<!^)(?=[A-Z])", "_", str(value or "").strip())
        token = token.replace("-", "_").lower()
        try:
            return cls(token)
        except ValueError:
            raise InvalidInputError(f"Unknown milestone: {value}", field="milestone") from None

    @property
    def deadline_field(self) -> str:
        return f"{self.value}_deadline"

    @property
    def completed_field(self) -> str:
        return f"{self.value}_completed"

    @property
    def completed_date_field(self) -> str:
        return f"{self.value}_completed_date"


def milestone_offsets() -> dict[Milestone, int]:
    return {
        Milestone.ONBOARDING: settings.onboarding_offset_days,
        Milestone.FIRST_DRAFT: settings.first_draft_offset_days,
        Milestone.SECOND_DRAFT: settings.second_draft_offset_days,
    }


def default_milestone_deadlines(now: datetime | None = None) -> dict[str, datetime]:
    """Default milestone deadlines relative to `now` (7 / 14 / 21 days)."""
    now = now or utcnow()
    return {
        milestone.deadline_field: now + timedelta(days=days)
        for milestone, days in milestone_offsets().items()
    }


def is_milestone_overdue(
    deadline: datetime | None,
    completed: bool,
    now: datetime | None = None,
) -> bool:
    if completed or deadline is None:
        return False
    return (now or utcnow()) > deadline


def milestone_statuses(step: ProgressStepOut, now: datetime | None = None) -> list[MilestoneStatus]:
    now = now or utcnow()
    statuses = []
    for milestone in Milestone:
        deadline = getattr(step, milestone.deadline_field)
        completed = bool(getattr(step, milestone.completed_field))
        statuses.append(MilestoneStatus(
            milestone=milestone.value,
            deadline=deadline,
            completed=completed,
            completed_date=getattr(step, milestone.completed_date_field),
            overdue=is_milestone_overdue(deadline, completed, now),
        ))
    return statuses


# ── Mutations ────────────────────────────────────────────────

async def update_milestone_deadline(store, step_id: str, milestone, new_date):
    """Set one milestone deadline; other milestones are untouched.

    Past dates are accepted (the milestone shows as overdue) and logged.

    Raises:
        InvalidInputError: unknown milestone, unparseable date, virtual step id
        ResourceNotFoundError: no such step
    """
    milestone = Milestone.parse(milestone)
    if new_date is None or (isinstance(new_date, str) and not new_date.strip()):
        raise InvalidInputError("Milestone deadline is required", field="deadline")
    try:
        deadline = parse_timestamp(new_date)
    except ValueError as exc:
        raise InvalidInputError(f"Invalid milestone deadline: {new_date!r}", field="deadline") from exc

    step = await store.update_step(step_id, {milestone.deadline_field: deadline})
    if deadline < utcnow():
        logger.warning(
            "Milestone %s of step %s set to past deadline %s",
            milestone.value, step_id, deadline.isoformat(),
        )
    else:
        logger.info(
            "Milestone %s of step %s due %s", milestone.value, step_id, deadline.isoformat(),
        )
    return step


async def set_milestone_completion(
    store,
    step_id: str,
    milestone,
    completed: bool,
    completed_date: datetime | None = None,
):
    """Complete or reopen one milestone.  Reopening clears its date."""
    milestone = Milestone.parse(milestone)
    if completed:
        when = parse_timestamp(completed_date) if completed_date else utcnow()
    else:
        when = None
    return await store.update_step(step_id, {
        milestone.completed_field: bool(completed),
        milestone.completed_date_field: when,
    })
