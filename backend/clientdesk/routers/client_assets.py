"""Client files and links router.

Endpoints:
    GET    /api/clients/{client_id}/files              List files (newest first)
    POST   /api/clients/{client_id}/files              Record an uploaded file
    DELETE /api/clients/{client_id}/files/{file_id}    Delete file record
    GET    /api/clients/{client_id}/links              List links (newest first)
    POST   /api/clients/{client_id}/links              Add link
    DELETE /api/clients/{client_id}/links/{link_id}    Delete link
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from clientdesk.database import get_db
from clientdesk.schemas.annotation import (
    ClientFileCreate,
    ClientFileOut,
    ClientLinkCreate,
    ClientLinkOut,
)
from clientdesk.services import annotations

router = APIRouter()


# ── Files ────────────────────────────────────────────────────

@router.get("/{client_id}/files", response_model=list[ClientFileOut])
async def list_client_files(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    files = await annotations.list_files(db, client_id)
    return [ClientFileOut.model_validate(f) for f in files]


@router.post("/{client_id}/files", response_model=ClientFileOut, status_code=201)
async def add_client_file(
    client_id: str,
    body: ClientFileCreate,
    db: AsyncSession = Depends(get_db),
):
    """Record a file already uploaded via /api/uploads/target."""
    client_file = await annotations.add_file(db, client_id, body)
    return ClientFileOut.model_validate(client_file)


@router.delete("/{client_id}/files/{file_id}", status_code=204)
async def delete_client_file(
    client_id: str,
    file_id: str,
    db: AsyncSession = Depends(get_db),
):
    await annotations.delete_file(db, client_id, file_id)


# ── Links ────────────────────────────────────────────────────

@router.get("/{client_id}/links", response_model=list[ClientLinkOut])
async def list_client_links(
    client_id: str,
    db: AsyncSession = Depends(get_db),
):
    links = await annotations.list_links(db, client_id)
    return [ClientLinkOut.model_validate(link) for link in links]


@router.post("/{client_id}/links", response_model=ClientLinkOut, status_code=201)
async def add_client_link(
    client_id: str,
    body: ClientLinkCreate,
    db: AsyncSession = Depends(get_db),
):
    link = await annotations.add_link(db, client_id, body)
    return ClientLinkOut.model_validate(link)


@router.delete("/{client_id}/links/{link_id}", status_code=204)
async def delete_client_link(
    client_id: str,
    link_id: str,
    db: AsyncSession = Depends(get_db),
):
    await annotations.delete_link(db, client_id, link_id)
