"""Hierarchy builder — groups a client's flat progress steps into a package tree.

Output order:
  1. One node per package, in the client's package order.  The node is the
     package's setup step; when a package has components but no setup step a
     virtual (never persisted) node is synthesized with default milestones.
     Component steps of the package hang off the node as `children`, sorted
     by creation time.
  2. Every step not claimed above, as a standalone root, sorted by creation time.

Correlation:
  - Explicit keys first: a step with `package_id` (and no `component_id`) is
    that package's setup step; a step with `component_id` belongs to that
    component.
  - Legacy title matching for steps with neither key:
        "<package_name> - Package Setup"   → package setup step
        title == component.name            → component step
    Title matching only considers the component's own package, and a step
    claimed once is never claimed again within the same build.

The builder is pure: no I/O, no module state, missing input yields [].
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from clientdesk.schemas.progress import (
    ComponentRef,
    HierarchicalStep,
    PackageRef,
    ProgressStepOut,
)
from clientdesk.services.deadlines import default_milestone_deadlines
from clientdesk.services.step_store import VIRTUAL_ID_PREFIX
from clientdesk.utils.dates import utcnow

PACKAGE_SETUP_SUFFIX = " - Package Setup"


def package_setup_title(package_name: str) -> str:
    return f"{package_name}{PACKAGE_SETUP_SUFFIX}"


def package_name_from_title(title: str | None) -> str | None:
    """Return the package name encoded in a setup-step title, else None."""
    if title and title.endswith(PACKAGE_SETUP_SUFFIX):
        return title[: -len(PACKAGE_SETUP_SUFFIX)]
    return None


def _is_unlinked(step: ProgressStepOut) -> bool:
    return step.package_id is None and step.component_id is None


def _creation_key(step: ProgressStepOut) -> datetime:
    return step.created_at or datetime.min


def _find_package_step(
    package: PackageRef,
    steps: list[ProgressStepOut],
    claimed: set[str],
) -> ProgressStepOut | None:
    for step in steps:
        if step.id in claimed:
            continue
        if step.package_id == package.id and step.component_id is None:
            return step

    wanted = package_setup_title(package.package_name)
    for step in steps:
        if step.id in claimed or not _is_unlinked(step):
            continue
        if step.title == wanted:
            return step
    return None


def _find_component_step(
    component: ComponentRef,
    steps: list[ProgressStepOut],
    claimed: set[str],
) -> ProgressStepOut | None:
    for step in steps:
        if step.id not in claimed and step.component_id == component.id:
            return step

    for step in steps:
        if step.id in claimed or not _is_unlinked(step):
            continue
        if step.title == component.name and package_name_from_title(step.title) is None:
            return step
    return None


def _virtual_package_node(
    package: PackageRef,
    client_id: str,
    now: datetime,
) -> HierarchicalStep:
    milestones = default_milestone_deadlines(now)
    return HierarchicalStep(
        id=f"{VIRTUAL_ID_PREFIX}{package.id}",
        client_id=client_id,
        package_id=package.id,
        title=package_setup_title(package.package_name),
        description=f"Complete the setup and delivery of {package.package_name} package",
        deadline=milestones["second_draft_deadline"],
        important=True,
        created_at=package.created_at,
        is_package=True,
        is_virtual=True,
        package_name=package.package_name,
        matched_package_id=package.id,
        **milestones,
    )


def _as_node(step: ProgressStepOut, **extra) -> HierarchicalStep:
    return HierarchicalStep(**step.model_dump(), **extra)


def build_hierarchy(
    steps: Iterable[ProgressStepOut] | None,
    packages: Iterable[PackageRef] | None,
    components: Iterable[ComponentRef] | None,
    now: datetime | None = None,
    client_id: str | None = None,
) -> list[HierarchicalStep]:
    """Build the package → component tree for one client's steps.

    Args:
        steps: the client's progress steps, in store order
        packages: the client's packages, in package order
        components: the client's components
        now: reference time for virtual-node milestone defaults
        client_id: owner stamped on virtual nodes (defaults to the steps' owner)
    """
    steps = list(steps or [])
    packages = list(packages or [])
    components = list(components or [])
    now = now or utcnow()
    if client_id is None and steps:
        client_id = steps[0].client_id

    claimed: set[str] = set()
    roots: list[HierarchicalStep] = []

    for package in packages:
        package_components = [c for c in components if c.invoice_id == package.id]

        package_step = _find_package_step(package, steps, claimed)
        if package_step is not None:
            claimed.add(package_step.id)

        child_nodes: list[HierarchicalStep] = []
        for component in package_components:
            child = _find_component_step(component, steps, claimed)
            if child is not None:
                claimed.add(child.id)
                child_nodes.append(_as_node(
                    child,
                    package_name=package.package_name,
                    matched_package_id=package.id,
                    matched_component_id=component.id,
                ))
        child_nodes.sort(key=_creation_key)

        if package_step is not None:
            roots.append(_as_node(
                package_step,
                is_package=True,
                package_name=package.package_name,
                matched_package_id=package.id,
                children=child_nodes,
            ))
        elif package_components:
            node = _virtual_package_node(package, client_id or "", now)
            node.children = child_nodes
            roots.append(node)

    known_packages = {p.package_name for p in packages}
    standalone = [
        step for step in steps
        if step.id not in claimed
        and package_name_from_title(step.title) not in known_packages
    ]
    standalone.sort(key=_creation_key)
    roots.extend(_as_node(step) for step in standalone)
    return roots


def claimed_children(node: HierarchicalStep) -> list[str]:
    """Ids of the persisted children currently matched under a package node."""
    return [child.id for child in node.children if not child.is_virtual]


def find_node(roots: list[HierarchicalStep], step_id: str) -> HierarchicalStep | None:
    for root in roots:
        if root.id == step_id:
            return root
        for child in root.children:
            if child.id == step_id:
                return child
    return None
