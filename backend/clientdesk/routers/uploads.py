"""Upload target router.

Endpoints:
    POST /api/uploads/target    Presigned PUT URL + public URL for one file
"""

from fastapi import APIRouter, Depends

from clientdesk.schemas.annotation import UploadTarget, UploadTargetRequest
from clientdesk.services.storage import ObjectStorage, get_storage

router = APIRouter()


@router.post("/target", response_model=UploadTarget)
async def create_upload_target(
    body: UploadTargetRequest,
    storage: ObjectStorage = Depends(get_storage),
):
    """The caller PUTs the bytes to `upload_url`, then records `public_url`."""
    return storage.request_upload_target(body.file_name, body.content_type)
