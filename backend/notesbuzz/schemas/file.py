"""File request/response schemas."""
from datetime import datetime
from notesbuzz.schemas.base import CamelORMModel


class StoredFileResponse(CamelORMModel):
    id: str
    filename: str
    content_type: str
    size_bytes: int
    chunk_size: int
    upload_date: datetime


class UploadResponse(CamelORMModel):
    message: str
    id: str
    filename: str
