"""Progress tracking router.

Endpoints:
    GET    /api/clients/{client_id}/progress/                      Overview (status, packages, tree)
    GET    /api/clients/{client_id}/progress/status                Completion / overdue status
    GET    /api/clients/{client_id}/progress/steps                 Hierarchical step list
    POST   /api/clients/{client_id}/progress/steps                 Create step
    POST   /api/clients/{client_id}/progress/sync                  Create missing steps from packages
    POST   /api/clients/{client_id}/progress/backfill-links        Persist title matches as keys
    GET    /api/progress/steps/{step_id}                           Step detail
    PATCH  /api/progress/steps/{step_id}                           Update step fields
    DELETE /api/progress/steps/{step_id}                           Delete step
    POST   /api/progress/steps/{step_id}/completion                Toggle completion (cascades)
    PATCH  /api/progress/steps/{step_id}/milestones/{milestone}    Update one milestone
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.database import get_db
from clientdesk.schemas.progress import (
    BackfillResult,
    HierarchicalStep,
    MilestoneUpdate,
    ProgressOverview,
    ProgressStatus,
    ProgressStepCreate,
    ProgressStepOut,
    ProgressStepUpdate,
    StepCompletionRequest,
    StepCompletionResult,
    StepDetail,
    SyncResult,
)
from clientdesk.services.completion import set_step_completion
from clientdesk.services.deadlines import (
    Milestone,
    set_milestone_completion,
    update_milestone_deadline,
)
from clientdesk.services.hierarchy import build_hierarchy
from clientdesk.services.progress_status import build_overview, compute_status, step_detail
from clientdesk.services.step_store import StepStore
from clientdesk.services.step_sync import backfill_step_links, sync_client_steps

router = APIRouter()


# ── Client-scoped ────────────────────────────────────────────

@router.get("/clients/{client_id}/progress/", response_model=ProgressOverview)
async def get_progress_overview(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Everything the progress tracker shows for one client."""
    snapshot = await StepStore(db).load_snapshot(client_id)
    return build_overview(snapshot)


@router.get("/clients/{client_id}/progress/status", response_model=ProgressStatus)
async def get_progress_status(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    snapshot = await StepStore(db).load_snapshot(client_id)
    return compute_status(snapshot.steps)


@router.get("/clients/{client_id}/progress/steps", response_model=list[HierarchicalStep])
async def list_progress_steps(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Package nodes first (in package order), then standalone steps."""
    snapshot = await StepStore(db).load_snapshot(client_id)
    return build_hierarchy(
        snapshot.steps, snapshot.packages, snapshot.components, client_id=client_id,
    )


@router.post(
    "/clients/{client_id}/progress/steps",
    response_model=ProgressStepOut,
    status_code=201,
)
async def create_progress_step(
    client_id: str,
    body: ProgressStepCreate,
    db: AsyncSession = Depends(get_db),
):
    step = await StepStore(db).create_step(client_id, **body.model_dump())
    return ProgressStepOut.model_validate(step)


@router.post("/clients/{client_id}/progress/sync", response_model=SyncResult)
async def sync_progress_steps(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Create setup and component steps for packages that lack them."""
    created = await sync_client_steps(StepStore(db), client_id)
    return SyncResult(created=[ProgressStepOut.model_validate(s) for s in created])


@router.post("/clients/{client_id}/progress/backfill-links", response_model=BackfillResult)
async def backfill_progress_links(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    return await backfill_step_links(StepStore(db), client_id)


# ── Step-scoped ──────────────────────────────────────────────

@router.get("/progress/steps/{step_id}", response_model=StepDetail)
async def get_progress_step(
    step_id: str,
    db: AsyncSession = Depends(get_db),
):
    step = await StepStore(db).get_step(step_id)
    return step_detail(ProgressStepOut.model_validate(step))


@router.patch("/progress/steps/{step_id}", response_model=StepDetail)
async def update_progress_step(
    step_id: str,
    body: ProgressStepUpdate,
    db: AsyncSession = Depends(get_db),
):
    """Edit title, description, deadline or importance.

    Completion and milestones have dedicated endpoints.
    """
    step = await StepStore(db).update_step(step_id, body.model_dump(exclude_unset=True))
    return step_detail(ProgressStepOut.model_validate(step))


@router.delete("/progress/steps/{step_id}", status_code=204)
async def delete_progress_step(
    step_id: str,
    db: AsyncSession = Depends(get_db),
):
    await StepStore(db).delete_step(step_id)


@router.post("/progress/steps/{step_id}/completion", response_model=StepCompletionResult)
async def set_progress_step_completion(
    step_id: str,
    body: StepCompletionRequest,
    db: AsyncSession = Depends(get_db),
):
    """Complete or reopen a step.

    On a package step the change is applied to its matched component
    steps.  A partial failure returns 207 with the failed child ids.
    """
    return await set_step_completion(
        StepStore(db), step_id, body.completed, completed_date=body.completed_date,
    )


@router.patch("/progress/steps/{step_id}/milestones/{milestone}", response_model=StepDetail)
async def update_progress_milestone(
    step_id: str,
    milestone: str,
    body: MilestoneUpdate,
    db: AsyncSession = Depends(get_db),
):
    Milestone.parse(milestone)
    store = StepStore(db)
    step = None
    if body.deadline is not None:
        step = await update_milestone_deadline(store, step_id, milestone, body.deadline)
    if body.completed is not None:
        step = await set_milestone_completion(
            store, step_id, milestone, body.completed, completed_date=body.completed_date,
        )
    if step is None:
        step = await store.get_step(step_id)
    return step_detail(ProgressStepOut.model_validate(step))
