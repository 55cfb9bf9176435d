from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = "File Upload API"
    API_PREFIX: str = "/api"

    # Storage settings
    UPLOAD_DIR: Path = Path("uploads")
    UPLOAD_FIELD_NAME: str = "files"
    STREAM_CHUNK_SIZE: int = 64 * 1024

    # Optional limits, unlimited when unset
    MAX_FILES: Optional[int] = None
    MAX_FILE_SIZE: Optional[int] = None  # bytes per file

    # Client settings
    UPLOAD_URL: str = "http://localhost:8005/api/upload"
    SUCCESS_DISPLAY_DELAY_SECONDS: float = 2.0
    REQUEST_TIMEOUT_SECONDS: Optional[float] = None
    CANCEL_CUTOFF_PERCENT: int = 95

# Global settings instance
settings = Settings()
