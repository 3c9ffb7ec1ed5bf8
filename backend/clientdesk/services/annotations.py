"""Annotations — comments on steps, and files/links on clients.

Comments belong to one step and are listed oldest first.  Files and links
belong to a client as a whole and are listed newest first.  None of these
feed status calculation.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.middleware.exceptions import InvalidInputError, ResourceNotFoundError
from clientdesk.models.client_file import ClientFile, ClientLink
from clientdesk.models.progress_step import StepComment
from clientdesk.schemas.annotation import ClientFileCreate, ClientLinkCreate, CommentCreate
from clientdesk.services.step_store import StepStore

logger = logging.getLogger(__name__)


# ── Step comments ────────────────────────────────────────────

async def list_comments(db: AsyncSession, step_id: str) -> list[StepComment]:
    await StepStore(db).get_step(step_id)
    result = await db.execute(
        select(StepComment)
        .where(StepComment.step_id == step_id)
        .order_by(StepComment.created_at, StepComment.id)
    )
    return list(result.scalars().all())


async def add_comment(db: AsyncSession, step_id: str, body: CommentCreate) -> StepComment:
    """Attach a comment to a step.

    Raises:
        InvalidInputError: neither text nor attachment given
        ResourceNotFoundError: no such step
    """
    text = (body.text or "").strip()
    if not text and not body.attachment_url:
        raise InvalidInputError("A comment needs text or an attachment", field="text")

    step = await StepStore(db).get_step(step_id)
    comment = StepComment(
        step_id=step.id,
        username=body.username,
        text=text,
        attachment_url=body.attachment_url,
        attachment_type=body.attachment_type if body.attachment_url else None,
    )
    db.add(comment)
    await db.flush()
    logger.info("Comment %s added to step %s by %s", comment.id, step_id, body.username)
    return comment


async def delete_comment(db: AsyncSession, step_id: str, comment_id: str) -> None:
    comment = await db.get(StepComment, comment_id)
    if comment is None or comment.step_id != step_id:
        raise ResourceNotFoundError("Comment", comment_id)
    await db.delete(comment)
    await db.flush()


# ── Client files ─────────────────────────────────────────────

async def list_files(db: AsyncSession, client_id: str) -> list[ClientFile]:
    await StepStore(db).require_client(client_id)
    result = await db.execute(
        select(ClientFile)
        .where(ClientFile.client_id == client_id)
        .order_by(ClientFile.created_at.desc())
    )
    return list(result.scalars().all())


async def add_file(db: AsyncSession, client_id: str, body: ClientFileCreate) -> ClientFile:
    """Record a file whose bytes were already uploaded to object storage."""
    await StepStore(db).require_client(client_id)
    client_file = ClientFile(client_id=client_id, **body.model_dump())
    db.add(client_file)
    await db.flush()
    logger.info("File %s recorded for client %s", body.file_name, client_id)
    return client_file


async def delete_file(db: AsyncSession, client_id: str, file_id: str) -> None:
    """Remove the file record.  The stored object itself is left in place."""
    client_file = await db.get(ClientFile, file_id)
    if client_file is None or client_file.client_id != client_id:
        raise ResourceNotFoundError("File", file_id)
    await db.delete(client_file)
    await db.flush()


# ── Client links ─────────────────────────────────────────────

async def list_links(db: AsyncSession, client_id: str) -> list[ClientLink]:
    await StepStore(db).require_client(client_id)
    result = await db.execute(
        select(ClientLink)
        .where(ClientLink.client_id == client_id)
        .order_by(ClientLink.created_at.desc())
    )
    return list(result.scalars().all())


async def add_link(db: AsyncSession, client_id: str, body: ClientLinkCreate) -> ClientLink:
    await StepStore(db).require_client(client_id)
    link = ClientLink(client_id=client_id, **body.model_dump())
    db.add(link)
    await db.flush()
    return link


async def delete_link(db: AsyncSession, client_id: str, link_id: str) -> None:
    link = await db.get(ClientLink, link_id)
    if link is None or link.client_id != client_id:
        raise ResourceNotFoundError("Link", link_id)
    await db.delete(link)
    await db.flush()
