"""StoredFile and FileChunk models - chunked blob storage.

Same layout as a GridFS bucket: one metadata row per file in ``upload_files``
and the bytes split across ordered rows in ``upload_chunks``.
"""
import uuid
from sqlalchemy import BigInteger, ForeignKey, Integer, LargeBinary, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from notesbuzz.models.base import Base, TimestampMixin

MAX_FILENAME_LENGTH = 500
MAX_CONTENT_TYPE_LENGTH = 255


class StoredFile(Base, TimestampMixin):
    __tablename__ = "upload_files"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    filename: Mapped[str] = mapped_column(String(MAX_FILENAME_LENGTH), nullable=False, index=True)
    content_type: Mapped[str] = mapped_column(String(MAX_CONTENT_TYPE_LENGTH), nullable=False)
    size_bytes: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    chunk_size: Mapped[int] = mapped_column(Integer, nullable=False)


class FileChunk(Base):
    __tablename__ = "upload_chunks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    file_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("upload_files.id", ondelete="CASCADE"), nullable=False
    )
    n: Mapped[int] = mapped_column(Integer, nullable=False)
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    __table_args__ = (
        UniqueConstraint("file_id", "n", name="uq_chunk"),
    )
