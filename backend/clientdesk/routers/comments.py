"""Step comments router.

Endpoints:
    GET    /api/progress/steps/{step_id}/comments                 List comments (oldest first)
    POST   /api/progress/steps/{step_id}/comments                 Add comment
    DELETE /api/progress/steps/{step_id}/comments/{comment_id}    Delete comment
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.database import get_db
from clientdesk.schemas.annotation import CommentCreate
from clientdesk.schemas.progress import CommentOut
from clientdesk.services import annotations

router = APIRouter()


@router.get("/steps/{step_id}/comments", response_model=list[CommentOut])
async def list_step_comments(
    step_id: str,
    db: AsyncSession = Depends(get_db),
):
    comments = await annotations.list_comments(db, step_id)
    return [CommentOut.model_validate(c) for c in comments]


@router.post("/steps/{step_id}/comments", response_model=CommentOut, status_code=201)
async def add_step_comment(
    step_id: str,
    body: CommentCreate,
    db: AsyncSession = Depends(get_db),
):
    """Add a comment.  Needs text, an attachment URL, or both."""
    comment = await annotations.add_comment(db, step_id, body)
    return CommentOut.model_validate(comment)


@router.delete("/steps/{step_id}/comments/{comment_id}", status_code=204)
async def delete_step_comment(
    step_id: str,
    comment_id: str,
    db: AsyncSession = Depends(get_db),
):
    await annotations.delete_comment(db, step_id, comment_id)
