"""Chunked blob storage in the service database.

Files are split into ``chunk_size`` pieces stored in ``upload_chunks``, with a
single ``upload_files`` row holding filename, content type and size. Reads
hand back a lazy chunk iterator so downloads never hold a whole file in memory.
"""
import logging
import math
import uuid
from typing import AsyncIterator, Protocol

from fastapi import Request
from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from notesbuzz.exceptions import InvalidInput, NotFound, RejectedType, StorageError
from notesbuzz.models.stored_file import (
    MAX_CONTENT_TYPE_LENGTH,
    MAX_FILENAME_LENGTH,
    FileChunk,
    StoredFile,
)

logger = logging.getLogger(__name__)

ACCEPTED_TYPE_PREFIXES = ("application/", "image/")
DEFAULT_CHUNK_SIZE = 255 * 1024


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


def is_accepted_type(content_type: str | None) -> bool:
    """Only application/* and image/* uploads are stored."""
    return bool(content_type) and content_type.lower().startswith(ACCEPTED_TYPE_PREFIXES)


def _parse_id(file_id: uuid.UUID | str) -> uuid.UUID:
    # A malformed id cannot name a stored file
    if isinstance(file_id, uuid.UUID):
        return file_id
    try:
        return uuid.UUID(str(file_id))
    except ValueError:
        raise NotFound("File not found") from None


def _check_filename(filename: str) -> None:
    if len(filename) > MAX_FILENAME_LENGTH:
        raise InvalidInput(f"Filename must be at most {MAX_FILENAME_LENGTH} characters long")


async def _iter_chunks(
    data: bytes | AsyncReadable, chunk_size: int
) -> AsyncIterator[bytes]:
    """Yield full ``chunk_size`` pieces; only the last may be shorter."""
    if isinstance(data, (bytes, bytearray, memoryview)):
        data = bytes(data)
        for start in range(0, len(data), chunk_size):
            yield data[start:start + chunk_size]
        return

    buffer = b""
    while True:
        piece = await data.read(chunk_size)
        if not piece:
            break
        buffer += piece
        while len(buffer) >= chunk_size:
            yield buffer[:chunk_size]
            buffer = buffer[chunk_size:]
    if buffer:
        yield buffer


class BlobStore:
    """put/rename/list/get/delete over the chunked file tables."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._session_factory = session_factory
        self.chunk_size = chunk_size

    async def put(
        self, data: bytes | AsyncReadable, filename: str, content_type: str
    ) -> uuid.UUID:
        """Store file bytes and metadata in one transaction. Returns the new id.

        Raises:
            RejectedType: content type is not application/* or image/*.
            InvalidInput: filename or content type longer than its column allows.
            StorageError: database failure; nothing is persisted.
        """
        if not is_accepted_type(content_type):
            logger.warning("Rejected upload %r with content type %r", filename, content_type)
            raise RejectedType(content_type)
        if len(content_type) > MAX_CONTENT_TYPE_LENGTH:
            raise InvalidInput(f"Content type must be at most {MAX_CONTENT_TYPE_LENGTH} characters long")
        _check_filename(filename)

        file_id = uuid.uuid4()
        size = 0
        try:
            async with self._session_factory() as db:
                record = StoredFile(
                    id=file_id,
                    filename=filename,
                    content_type=content_type,
                    size_bytes=0,
                    chunk_size=self.chunk_size,
                )
                db.add(record)
                await db.flush()

                n = 0
                async for chunk in _iter_chunks(data, self.chunk_size):
                    await db.execute(
                        insert(FileChunk).values(file_id=file_id, n=n, data=chunk)
                    )
                    n += 1
                    size += len(chunk)

                record.size_bytes = size
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to store upload %r", filename)
            raise StorageError("Error uploading file") from exc

        logger.info("Stored file %s (%r, %s, %d bytes)", file_id, filename, content_type, size)
        return file_id

    async def rename(self, file_id: uuid.UUID | str, new_filename: str) -> None:
        fid = _parse_id(file_id)
        _check_filename(new_filename)
        try:
            async with self._session_factory() as db:
                result = await db.execute(
                    update(StoredFile)
                    .where(StoredFile.id == fid)
                    .values(filename=new_filename)
                )
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to rename file %s", fid)
            raise StorageError("Error renaming file") from exc

        if result.rowcount == 0:
            raise NotFound("File not found")
        logger.info("Renamed file %s to %r", fid, new_filename)

    async def list_by_prefix(self, prefix: str = "") -> list[StoredFile]:
        """Files whose filename starts with ``prefix`` (case-sensitive, literal).

        An empty prefix matches every file. No match gives an empty list.
        """
        query = select(StoredFile)
        if prefix:
            # literal, case-sensitive prefix match
            query = query.where(func.substr(StoredFile.filename, 1, len(prefix)) == prefix)
        query = query.order_by(StoredFile.created_at, StoredFile.filename)

        try:
            async with self._session_factory() as db:
                result = await db.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as exc:
            logger.exception("Failed to list files with prefix %r", prefix)
            raise StorageError("Error fetching files") from exc

    async def get(
        self, file_id: uuid.UUID | str
    ) -> tuple[StoredFile, AsyncIterator[bytes]]:
        """Return metadata and a lazy, single-use iterator over the file bytes."""
        record = await self._find(file_id)
        return record, self._stream_chunks(record)

    async def delete(self, file_id: uuid.UUID | str) -> None:
        """Delete a file's chunks and metadata record.

        Raises:
            NotFound: no file with this id.
        """
        fid = _parse_id(file_id)
        try:
            async with self._session_factory() as db:
                await db.execute(delete(FileChunk).where(FileChunk.file_id == fid))
                result = await db.execute(delete(StoredFile).where(StoredFile.id == fid))
                await db.commit()
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete file %s", fid)
            raise StorageError("Error deleting file") from exc

        if result.rowcount != 1:
            logger.info("Delete requested for missing file %s", fid)
            raise NotFound("File not found")
        logger.info("Deleted file %s", fid)

    async def _find(self, file_id: uuid.UUID | str) -> StoredFile:
        fid = _parse_id(file_id)
        try:
            async with self._session_factory() as db:
                result = await db.execute(select(StoredFile).where(StoredFile.id == fid))
                record = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.exception("Failed to fetch file %s", fid)
            raise StorageError("Error fetching the file") from exc

        if record is None:
            logger.info("File %s not found", fid)
            raise NotFound("File not found")
        return record

    async def _stream_chunks(self, record: StoredFile) -> AsyncIterator[bytes]:
        num_chunks = math.ceil(record.size_bytes / record.chunk_size)
        for n in range(num_chunks):
            # one short session per chunk; nothing is held while the caller waits
            try:
                async with self._session_factory() as db:
                    result = await db.execute(
                        select(FileChunk.data).where(
                            FileChunk.file_id == record.id,
                            FileChunk.n == n,
                        )
                    )
                    data = result.scalar_one_or_none()
            except SQLAlchemyError as exc:
                logger.exception("Failed while streaming file %s at chunk %d", record.id, n)
                raise StorageError("Error fetching the file") from exc

            if data is None:
                logger.error("File %s is missing chunk %d of %d", record.id, n, num_chunks)
                raise StorageError("Error fetching the file")
            yield data


def get_blob_store(request: Request) -> BlobStore:
    """FastAPI dependency building a BlobStore on the shared session factory."""
    return BlobStore(
        request.app.state.session_factory,
        chunk_size=request.app.state.settings.BLOB_CHUNK_SIZE,
    )
