from pydantic import BaseModel
from typing import List

class StoredFile(BaseModel):
    original_name: str
    stored_name: str
    size_bytes: int

class UploadResponse(BaseModel):
    message: str
    files: List[StoredFile] = []

class UploadErrorResponse(BaseModel):
    error: str
    stacktrace: str
