"""Step store — the system of record for progress steps.

Wraps an AsyncSession with the operations the progress engine needs:

    list_steps / get_step / create_step / update_step / delete_step
    list_packages / list_components          (package & component provider)
    load_snapshot                            (one consistent read for a client)

Writes enforce the completion invariant: `completed` is true exactly when
`completed_date` is set.  Reads that feed display aggregations go through
`load_snapshot`, which degrades to an empty snapshot when the database is
unreachable unless the caller asks otherwise; every other operation
propagates errors to the caller.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.middleware.exceptions import (
    CollaboratorUnavailable,
    InvalidInputError,
    ResourceNotFoundError,
)
from clientdesk.models.client import Client
from clientdesk.models.component import Component
from clientdesk.models.invoice import Invoice
from clientdesk.models.progress_step import ProgressStep
from clientdesk.schemas.progress import (
    ComponentRef,
    PackageRef,
    ProgressSnapshot,
    ProgressStepOut,
)
from clientdesk.utils.dates import parse_timestamp, utcnow

logger = logging.getLogger(__name__)

# Ids with this prefix belong to display-only package nodes and are never stored.
VIRTUAL_ID_PREFIX = "virtual-"

UPDATABLE_FIELDS = frozenset({
    "title", "description", "deadline", "completed", "completed_date", "important",
    "package_id", "component_id",
    "onboarding_deadline", "first_draft_deadline", "second_draft_deadline",
    "onboarding_completed", "first_draft_completed", "second_draft_completed",
    "onboarding_completed_date", "first_draft_completed_date", "second_draft_completed_date",
})

_TIMESTAMP_FIELDS = frozenset({
    "deadline", "completed_date",
    "onboarding_deadline", "first_draft_deadline", "second_draft_deadline",
    "onboarding_completed_date", "first_draft_completed_date", "second_draft_completed_date",
})

# Read failures that mean "the store is not reachable", not "the data is bad".
UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, CollaboratorUnavailable, OSError)


def is_virtual_id(step_id: str | None) -> bool:
    return bool(step_id) and step_id.startswith(VIRTUAL_ID_PREFIX)


def _coerce_timestamps(fields: dict) -> dict:
    coerced = {}
    for key, value in fields.items():
        if key in _TIMESTAMP_FIELDS and value is not None:
            try:
                value = parse_timestamp(value)
            except ValueError as exc:
                raise InvalidInputError(f"Invalid date for {key}: {value!r}", field=key) from exc
        coerced[key] = value
    return coerced


class StepStore:
    """Async CRUD over progress steps for one database session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def commit(self) -> None:
        await self.db.commit()

    async def rollback(self) -> None:
        await self.db.rollback()

    # ── Clients / packages / components ──────────────────────

    async def require_client(self, client_id: str) -> Client:
        client = await self.db.get(Client, client_id)
        if client is None:
            raise ResourceNotFoundError("Client", client_id)
        return client

    async def list_packages(self, client_id: str) -> list[Invoice]:
        result = await self.db.execute(
            select(Invoice)
            .where(Invoice.client_id == client_id)
            .order_by(Invoice.created_at, Invoice.id)
        )
        return list(result.scalars().all())

    async def list_components(self, client_id: str) -> list[Component]:
        result = await self.db.execute(
            select(Component)
            .where(Component.client_id == client_id)
            .order_by(Component.created_at, Component.id)
        )
        return list(result.scalars().all())

    # ── Steps ────────────────────────────────────────────────

    async def list_steps(self, client_id: str) -> list[ProgressStep]:
        result = await self.db.execute(
            select(ProgressStep)
            .where(ProgressStep.client_id == client_id)
            .order_by(ProgressStep.created_at)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_step(self, step_id: str) -> ProgressStep:
        if is_virtual_id(step_id):
            raise InvalidInputError(
                f"Step {step_id} is a display-only package node and is not stored",
                field="step_id",
            )
        result = await self.db.execute(
            select(ProgressStep)
            .where(ProgressStep.id == step_id)
            .execution_options(populate_existing=True)
        )
        step = result.scalar_one_or_none()
        if step is None:
            raise ResourceNotFoundError("Progress step", step_id)
        return step

    async def create_step(self, client_id: str, **fields) -> ProgressStep:
        """Insert a step.  `title` and `deadline` are required."""
        title = (fields.pop("title", None) or "").strip()
        if not title:
            raise InvalidInputError("Step title is required", field="title")
        if fields.get("deadline") is None:
            raise InvalidInputError("Step deadline is required", field="deadline")

        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown step fields: {', '.join(sorted(unknown))}")

        await self.require_client(client_id)
        fields = _coerce_timestamps(fields)
        completed = bool(fields.pop("completed", False))
        completed_date = fields.pop("completed_date", None)
        if completed and completed_date is None:
            completed_date = utcnow()
        if not completed:
            completed_date = None

        step = ProgressStep(
            client_id=client_id,
            title=title,
            completed=completed,
            completed_date=completed_date,
            important=bool(fields.pop("important", False)),
            onboarding_completed=False,
            first_draft_completed=False,
            second_draft_completed=False,
            comments=[],
            **fields,
        )
        self.db.add(step)
        await self.db.flush()
        logger.info("Created progress step %s (%s) for client %s", step.id, title, client_id)
        return step

    async def update_step(self, step_id: str, fields: dict) -> ProgressStep:
        """Apply a partial update.

        Setting `completed=False` clears `completed_date`; setting
        `completed=True` without a date keeps an existing date or stamps now.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Unknown step fields: {', '.join(sorted(unknown))}")
        if "title" in fields and not (fields["title"] or "").strip():
            raise InvalidInputError("Step title is required", field="title")
        if "deadline" in fields and fields["deadline"] is None:
            raise InvalidInputError("Step deadline is required", field="deadline")

        fields = _coerce_timestamps(fields)
        step = await self.get_step(step_id)

        if "completed" in fields:
            if fields["completed"]:
                fields["completed_date"] = (
                    fields.get("completed_date") or step.completed_date or utcnow()
                )
            else:
                fields["completed_date"] = None
        elif fields.get("completed_date") is not None and not step.completed:
            raise InvalidInputError(
                "completed_date can only be set on a completed step",
                field="completed_date",
            )

        for key, value in fields.items():
            setattr(step, key, value)
        await self.db.flush()
        return step

    async def delete_step(self, step_id: str) -> None:
        step = await self.get_step(step_id)
        await self.db.delete(step)
        await self.db.flush()
        logger.info("Deleted progress step %s", step_id)

    # ── Snapshot ─────────────────────────────────────────────

    async def load_snapshot(self, client_id: str, degrade: bool = True) -> ProgressSnapshot:
        """Read steps, packages and components for one client.

        Display aggregations must not crash a view, so an unreachable store
        yields an empty snapshot (0 steps, 0 %).  Write paths pass
        `degrade=False` and get the underlying error instead.
        """
        try:
            steps = await self.list_steps(client_id)
            packages = await self.list_packages(client_id)
            components = await self.list_components(client_id)
            return ProgressSnapshot(
                client_id=client_id,
                steps=[ProgressStepOut.model_validate(s) for s in steps],
                packages=[PackageRef.model_validate(p) for p in packages],
                components=[ComponentRef.model_validate(c) for c in components],
            )
        except UNAVAILABLE_ERRORS as exc:
            if not degrade:
                raise
            logger.warning(
                "Step store unavailable while loading progress for client %s: %s",
                client_id, exc,
            )
            await self.db.rollback()
            return ProgressSnapshot(client_id=client_id)


def stamp(value: datetime | None) -> str | None:
    """ISO-8601 rendering used in log lines and CLI output."""
    return value.isoformat() if value else None
