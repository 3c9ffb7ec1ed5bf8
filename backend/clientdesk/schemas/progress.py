"""Pydantic schemas for progress steps, the step hierarchy, and status."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from clientdesk.schemas.validators import validate_required_text


# ── Snapshots (engine inputs) ───────────────────────────────

class CommentOut(BaseModel):
    id: str
    step_id: str
    username: str
    text: str = ""
    attachment_url: str | None = None
    attachment_type: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProgressStepOut(BaseModel):
    id: str
    client_id: str
    package_id: str | None = None
    component_id: str | None = None
    title: str
    description: str | None = None
    deadline: datetime | None = None
    completed: bool = False
    completed_date: datetime | None = None
    important: bool = False

    onboarding_deadline: datetime | None = None
    first_draft_deadline: datetime | None = None
    second_draft_deadline: datetime | None = None
    onboarding_completed: bool = False
    first_draft_completed: bool = False
    second_draft_completed: bool = False
    onboarding_completed_date: datetime | None = None
    first_draft_completed_date: datetime | None = None
    second_draft_completed_date: datetime | None = None

    created_at: datetime | None = None
    updated_at: datetime | None = None
    comments: list[CommentOut] = []

    model_config = {"from_attributes": True}


class PackageRef(BaseModel):
    """The slice of an invoice the hierarchy builder needs."""
    id: str
    package_name: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ComponentRef(BaseModel):
    """The slice of a component the hierarchy builder needs."""
    id: str
    name: str
    invoice_id: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ProgressSnapshot(BaseModel):
    """Everything loaded for one client in a single read."""
    client_id: str
    steps: list[ProgressStepOut] = []
    packages: list[PackageRef] = []
    components: list[ComponentRef] = []


# ── Derived views ───────────────────────────────────────────

class HierarchicalStep(ProgressStepOut):
    """Read-only projection: a step decorated with its place in the tree."""
    is_package: bool = False
    is_virtual: bool = False
    package_name: str | None = None
    # Package / component the node was matched to, by key or by title.
    matched_package_id: str | None = None
    matched_component_id: str | None = None
    children: list["HierarchicalStep"] = []


class ProgressStatus(BaseModel):
    completed_steps: int = 0
    total_steps: int = 0
    percentage: int = 0
    overdue_count: int = 0
    has_overdue: bool = False


class MilestoneStatus(BaseModel):
    milestone: str
    deadline: datetime | None = None
    completed: bool = False
    completed_date: datetime | None = None
    overdue: bool = False


class PackageProgress(BaseModel):
    step_id: str
    package_name: str | None
    is_virtual: bool
    status: ProgressStatus
    milestones: list[MilestoneStatus]


class ProgressOverview(BaseModel):
    client_id: str
    status: ProgressStatus
    packages: list[PackageProgress]
    steps: list[HierarchicalStep]


class StepDetail(ProgressStepOut):
    overdue: bool = False
    milestones: list[MilestoneStatus] = []


# ── Mutations ───────────────────────────────────────────────

class ProgressStepCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: str | None = None
    deadline: datetime
    important: bool = False
    package_id: str | None = None
    component_id: str | None = None
    onboarding_deadline: datetime | None = None
    first_draft_deadline: datetime | None = None
    second_draft_deadline: datetime | None = None

    @field_validator("title")
    @classmethod
    def title_required(cls, v: str) -> str:
        return validate_required_text(v)


class ProgressStepUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    deadline: datetime | None = None
    important: bool | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, v: str | None) -> str | None:
        if v is not None:
            return validate_required_text(v)
        return v

    @field_validator("important")
    @classmethod
    def important_not_null(cls, v: bool | None) -> bool:
        # Omit the field to leave it unchanged.
        if v is None:
            raise ValueError("important must be true or false")
        return v


class StepCompletionRequest(BaseModel):
    completed: bool
    completed_date: datetime | None = None


class StepCompletionResult(BaseModel):
    step: ProgressStepOut
    cascaded_ids: list[str] = []


class MilestoneUpdate(BaseModel):
    # Kept as a raw string so an unparseable date is reported by the
    # deadline manager rather than rejected wholesale at the edge.
    deadline: str | None = None
    completed: bool | None = None
    completed_date: datetime | None = None


class SyncResult(BaseModel):
    created: list[ProgressStepOut]


class BackfillResult(BaseModel):
    linked_packages: int
    linked_components: int
