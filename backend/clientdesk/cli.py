"""Management CLI for progress tracking.

Usage:
    python -m clientdesk.cli create-tables              # Create any missing tables
    python -m clientdesk.cli sync-steps <client_id>     # Create steps for packages/components
    python -m clientdesk.cli backfill-links <client_id> # Persist title matches as keys
    python -m clientdesk.cli progress <client_id>       # Print status and step tree
"""

import asyncio
import sys

from clientdesk.database import async_session, create_tables
from clientdesk.schemas.progress import HierarchicalStep
from clientdesk.services.progress_status import build_overview
from clientdesk.services.step_store import StepStore, stamp
from clientdesk.services.step_sync import backfill_step_links, sync_client_steps


async def sync_steps(client_id: str) -> None:
    async with async_session() as db:
        created = await sync_client_steps(StepStore(db), client_id)
        await db.commit()
    if not created:
        print("Steps already in sync.")
        return
    for step in created:
        print(f"  + {step.title} (due {stamp(step.deadline)})")
    print(f"\n{len(created)} step(s) created")


async def backfill_links(client_id: str) -> None:
    async with async_session() as db:
        result = await backfill_step_links(StepStore(db), client_id)
        await db.commit()
    print(f"  Packages linked:   {result.linked_packages}")
    print(f"  Components linked: {result.linked_components}")


def _print_node(node: HierarchicalStep, indent: str = "  ") -> None:
    mark = "x" if node.completed else " "
    suffix = " (virtual)" if node.is_virtual else ""
    print(f"{indent}[{mark}] {node.title}{suffix}  due {stamp(node.deadline)}")
    for child in node.children:
        _print_node(child, indent + "    ")


async def show_progress(client_id: str) -> None:
    async with async_session() as db:
        snapshot = await StepStore(db).load_snapshot(client_id)
    overview = build_overview(snapshot)
    status = overview.status
    print(
        f"{status.completed_steps}/{status.total_steps} steps complete "
        f"({status.percentage}%), {status.overdue_count} overdue"
    )
    for node in overview.steps:
        _print_node(node)


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    cmd = argv[0] if argv else ""
    arg = argv[1] if len(argv) > 1 else ""

    if cmd == "create-tables":
        asyncio.run(create_tables())
        print("Tables created.")
    elif cmd == "sync-steps" and arg:
        asyncio.run(sync_steps(arg))
    elif cmd == "backfill-links" and arg:
        asyncio.run(backfill_links(arg))
    elif cmd == "progress" and arg:
        asyncio.run(show_progress(arg))
    else:
        print("Usage: python -m clientdesk.cli [create-tables|sync-steps|backfill-links|progress] <client_id>")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
