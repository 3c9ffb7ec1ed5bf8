"""Completion cascade.

Toggling a package step's completion applies the same state to the
component steps currently matched under it.  The cascade runs one way only:
completing every child never completes the package.

The parent is committed first.  Each child is then updated and committed
on its own, so a failure part-way leaves earlier children updated and is
reported as PartialCascadeFailure listing exactly which ids failed.  If the
children cannot be read at all the call raises CollaboratorUnavailable;
the parent change stays committed.
"""

import enum
import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from clientdesk.config import settings
from clientdesk.middleware.exceptions import (
    ClientDeskException,
    CollaboratorUnavailable,
    PartialCascadeFailure,
)
from clientdesk.schemas.progress import (
    HierarchicalStep,
    ProgressStepOut,
    StepCompletionResult,
)
from clientdesk.services.hierarchy import build_hierarchy, claimed_children, find_node
from clientdesk.services.step_store import UNAVAILABLE_ERRORS, StepStore
from clientdesk.utils.dates import parse_timestamp, utcnow

logger = logging.getLogger("clientdesk.completion")


class CascadePolicy(str, enum.Enum):
    PACKAGE_TO_CHILDREN = "package_to_children"
    NONE = "none"


def configured_policy() -> CascadePolicy:
    return CascadePolicy(settings.completion_cascade)


def cascade_targets(node: HierarchicalStep | None, policy: CascadePolicy) -> list[str]:
    """Ids of the children a completion change on `node` propagates to."""
    if policy is CascadePolicy.NONE or node is None or not node.is_package:
        return []
    return claimed_children(node)


async def set_step_completion(
    store: StepStore,
    step_id: str,
    completed: bool,
    completed_date: datetime | None = None,
    policy: CascadePolicy | None = None,
) -> StepCompletionResult:
    """Complete or reopen a step, cascading to package children per `policy`.

    Raises:
        InvalidInputError: virtual package node id
        ResourceNotFoundError: no such step
        PartialCascadeFailure: the parent changed but some children did not
        CollaboratorUnavailable: the parent changed but its children could
            not be read; retrying the same call is safe
    """
    policy = policy or configured_policy()
    if completed:
        when = parse_timestamp(completed_date) if completed_date else utcnow()
    else:
        when = None
    fields = {"completed": bool(completed), "completed_date": when}

    step = await store.update_step(step_id, dict(fields))
    await store.commit()
    result_step = ProgressStepOut.model_validate(step)
    logger.info(
        "Step %s marked %s", step_id, "completed" if completed else "not completed",
    )

    if policy is CascadePolicy.NONE:
        return StepCompletionResult(step=result_step)

    try:
        snapshot = await store.load_snapshot(result_step.client_id, degrade=False)
    except UNAVAILABLE_ERRORS as exc:
        await store.rollback()
        logger.error("Cascade from %s could not load its children: %s", step_id, exc)
        raise CollaboratorUnavailable(
            "Step store", f"step {step_id} was updated but its children were not reached",
        ) from exc
    roots = build_hierarchy(
        snapshot.steps, snapshot.packages, snapshot.components,
        client_id=result_step.client_id,
    )
    targets = cascade_targets(find_node(roots, step_id), policy)

    updated_ids: list[str] = []
    failed_ids: list[str] = []
    for child_id in targets:
        try:
            await store.update_step(child_id, dict(fields))
            await store.commit()
        except (ClientDeskException, SQLAlchemyError) as exc:
            await store.rollback()
            logger.warning("Cascade from %s to child %s failed: %s", step_id, child_id, exc)
            failed_ids.append(child_id)
        else:
            updated_ids.append(child_id)

    if failed_ids:
        raise PartialCascadeFailure(step_id, failed_ids, updated_ids)

    if updated_ids:
        logger.info("Cascaded completion from %s to %d children", step_id, len(updated_ids))
    return StepCompletionResult(step=result_step, cascaded_ids=updated_ids)
