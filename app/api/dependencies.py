from app.core.config import settings
from app.services.upload_service import UploadService

# Dependency to get the UploadService instance
def get_upload_service() -> UploadService:
    """
    Dependency to get an UploadService bound to the configured upload directory.
    """
    return UploadService(
        settings.UPLOAD_DIR,
        field_name=settings.UPLOAD_FIELD_NAME,
        max_files=settings.MAX_FILES,
        max_file_size=settings.MAX_FILE_SIZE,
    )
