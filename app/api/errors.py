import logging
import traceback
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from app.api.schemas import UploadErrorResponse
from app.services.upload_service import UploadError

UPLOAD_FAILED_MESSAGE = "Failed to upload files."

logger = logging.getLogger("upload_service")

async def upload_error_handler(request: Request, exc: UploadError) -> JSONResponse:
    """
    Report a failed upload as a 500 with the failure's traceback attached.
    """
    logger.error(f"Upload to {request.url.path} failed: {exc}", exc_info=exc)

    stacktrace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    payload = UploadErrorResponse(error=UPLOAD_FAILED_MESSAGE, stacktrace=stacktrace)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=payload.model_dump()
    )

def setup_error_handlers(app: FastAPI):
    """
    Register the upload error handlers on the FastAPI application.
    """
    app.add_exception_handler(UploadError, upload_error_handler)
