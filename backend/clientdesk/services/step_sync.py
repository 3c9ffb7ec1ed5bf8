"""Step sync — create missing progress steps from a client's packages.

For every package the client has bought:

  - a "<package> - Package Setup" step, important, due in
    `package_setup_days`, with default milestone deadlines
  - one step per component, titled after the component, due one
    `component_step_days` interval after the previous one

Components with no package get a step of their own.  Existing steps are
detected by correlation key or by a case-insensitive title match, so
running the sync twice creates nothing the second time.  A step found by
title gets the matching package_id / component_id written onto it, so the
hierarchy builder attaches it by key even when the case differs.

`backfill_step_links` writes the keys of title-matched steps back to the
store so later builds no longer depend on titles.
"""

import logging
from datetime import datetime, timedelta

from clientdesk.config import settings
from clientdesk.models.progress_step import ProgressStep
from clientdesk.schemas.progress import (
    BackfillResult,
    ComponentRef,
    PackageRef,
    ProgressStepOut,
)
from clientdesk.services.deadlines import default_milestone_deadlines
from clientdesk.services.hierarchy import build_hierarchy, package_setup_title
from clientdesk.services.step_store import StepStore
from clientdesk.utils.dates import utcnow

logger = logging.getLogger("clientdesk.step_sync")


def _title_key(title: str | None) -> str:
    return (title or "").strip().lower()


async def sync_client_steps(
    store: StepStore,
    client_id: str,
    now: datetime | None = None,
) -> list[ProgressStep]:
    """Create the steps a client's packages and components imply.

    Returns the newly created steps (empty when already in sync).
    """
    now = now or utcnow()
    await store.require_client(client_id)
    existing = await store.list_steps(client_id)
    packages = await store.list_packages(client_id)
    components = await store.list_components(client_id)

    legacy = [s for s in existing if s.package_id is None and s.component_id is None]
    used: set[str] = set()
    linked: list[str] = []

    async def take_legacy(title: str, **keys) -> bool:
        """Claim an unlinked step titled `title` and write `keys` onto it."""
        for step in legacy:
            if step.id not in used and _title_key(step.title) == _title_key(title):
                used.add(step.id)
                await store.update_step(step.id, keys)
                linked.append(step.id)
                return True
        return False

    linked_packages = {s.package_id for s in existing if s.package_id and not s.component_id}
    linked_components = {s.component_id for s in existing if s.component_id}
    created: list[ProgressStep] = []

    for package in packages:
        setup_title = package_setup_title(package.package_name)
        if package.id not in linked_packages and not await take_legacy(
            setup_title, package_id=package.id,
        ):
            step = await store.create_step(
                client_id,
                title=setup_title,
                description=f"Complete the setup and delivery of {package.package_name} package",
                deadline=now + timedelta(days=settings.package_setup_days),
                important=True,
                package_id=package.id,
                **default_milestone_deadlines(now),
            )
            created.append(step)

        package_components = [c for c in components if c.invoice_id == package.id]
        for index, component in enumerate(package_components, start=1):
            if component.id in linked_components or await take_legacy(
                component.name, package_id=package.id, component_id=component.id,
            ):
                continue
            step = await store.create_step(
                client_id,
                title=component.name,
                description=f"Complete {component.name} for {package.package_name}",
                deadline=now + timedelta(days=index * settings.component_step_days),
                package_id=package.id,
                component_id=component.id,
            )
            created.append(step)

    for component in components:
        if component.invoice_id is not None:
            continue
        if component.id in linked_components or await take_legacy(
            component.name, component_id=component.id,
        ):
            continue
        step = await store.create_step(
            client_id,
            title=component.name,
            description=f"Complete {component.name}",
            deadline=now + timedelta(days=settings.component_step_days),
            component_id=component.id,
        )
        created.append(step)

    if linked:
        logger.info("Linked %d existing progress steps for client %s", len(linked), client_id)
    if created:
        logger.info("Created %d progress steps for client %s", len(created), client_id)
    return created


async def backfill_step_links(store: StepStore, client_id: str) -> BackfillResult:
    """Persist package_id / component_id on steps that were matched by title."""
    await store.require_client(client_id)
    steps = await store.list_steps(client_id)
    packages = await store.list_packages(client_id)
    components = await store.list_components(client_id)

    roots = build_hierarchy(
        [ProgressStepOut.model_validate(s) for s in steps],
        [PackageRef.model_validate(p) for p in packages],
        [ComponentRef.model_validate(c) for c in components],
        client_id=client_id,
    )

    linked_packages = 0
    linked_components = 0
    for root in roots:
        if root.is_package and not root.is_virtual and root.package_id is None:
            await store.update_step(root.id, {"package_id": root.matched_package_id})
            linked_packages += 1
        for child in root.children:
            if child.component_id is None:
                await store.update_step(child.id, {
                    "package_id": child.matched_package_id,
                    "component_id": child.matched_component_id,
                })
                linked_components += 1

    logger.info(
        "Backfilled links for client %s: %d packages, %d components",
        client_id, linked_packages, linked_components,
    )
    return BackfillResult(linked_packages=linked_packages, linked_components=linked_components)
