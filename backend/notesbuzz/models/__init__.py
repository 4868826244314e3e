"""Import all models so SQLAlchemy metadata knows about them."""
from notesbuzz.models.base import Base
from notesbuzz.models.user import User
from notesbuzz.models.stored_file import StoredFile, FileChunk

__all__ = ["Base", "User", "StoredFile", "FileChunk"]
