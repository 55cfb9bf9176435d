from fastapi import APIRouter, Depends, Request
from app.api.schemas import UploadResponse, StoredFile
from app.api.dependencies import get_upload_service
from app.services.upload_service import UploadService

UPLOAD_SUCCESS_MESSAGE = "Files uploaded successfully."

router = APIRouter(tags=["upload"])

@router.post("/upload", response_model=UploadResponse)
async def upload_files(
    request: Request,
    upload_service: UploadService = Depends(get_upload_service)
):
    """
    Upload one or more files sent as multipart/form-data under the "files" field.

    No form parameters are declared so FastAPI leaves the body alone; the
    service reads it as a stream and writes each file as it arrives.
    Failures are turned into a 500 response by the UploadError handler.
    """
    stored = await upload_service.save_files(
        request.headers.get("content-type"),
        request.stream()
    )

    return UploadResponse(
        message=UPLOAD_SUCCESS_MESSAGE,
        files=[StoredFile(**item) for item in stored]
    )
