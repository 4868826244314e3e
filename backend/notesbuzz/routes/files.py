"""Files API routes: upload, list by subject, download, delete."""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import PlainTextResponse, StreamingResponse

from notesbuzz.exceptions import InvalidInput, NotFound
from notesbuzz.models.stored_file import StoredFile
from notesbuzz.schemas.file import StoredFileResponse, UploadResponse
from notesbuzz.services.blob_store import BlobStore, get_blob_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


@router.post("/upload", response_model=UploadResponse)
async def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    subject: str | None = Form(None),
    store: BlobStore = Depends(get_blob_store),
):
    """Store one file under ``<subject>-<original filename>``."""
    if file is None or not file.filename:
        raise InvalidInput("No file uploaded")

    category = subject or request.app.state.settings.DEFAULT_CATEGORY
    filename = f"{category}-{file.filename}"
    file_id = await store.put(file, filename, file.content_type or "")

    return {"message": "File uploaded successfully", "id": str(file_id), "filename": filename}


@router.get("/files", response_model=list[StoredFileResponse])
async def list_files(
    subject: str = Query(""),
    store: BlobStore = Depends(get_blob_store),
):
    """List files whose name starts with ``subject``."""
    files = await store.list_by_prefix(subject)
    if not files:
        raise NotFound("No files found")
    return [_to_response(f) for f in files]


@router.get("/file/{file_id}")
async def download_file(
    file_id: str,
    store: BlobStore = Depends(get_blob_store),
):
    """Stream a file as an attachment."""
    record, chunks = await store.get(file_id)
    return StreamingResponse(
        chunks,
        media_type=record.content_type,
        headers={
            "Content-Disposition": content_disposition(record.filename),
            "Content-Length": str(record.size_bytes),
        },
    )


@router.delete("/delete/{file_id}", response_class=PlainTextResponse)
async def delete_file(
    file_id: str,
    store: BlobStore = Depends(get_blob_store),
):
    """Delete a file and its stored bytes."""
    try:
        await store.delete(file_id)
    except NotFound:
        return PlainTextResponse("File not found.", status_code=404)
    return PlainTextResponse("File deleted successfully.")


def content_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII or quoted names use RFC 5987 form."""
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


def _to_response(record: StoredFile) -> dict:
    """Convert SQLAlchemy model to response dict."""
    return {
        "id": str(record.id),
        "filename": record.filename,
        "content_type": record.content_type,
        "size_bytes": record.size_bytes,
        "chunk_size": record.chunk_size,
        "upload_date": record.created_at,
    }
