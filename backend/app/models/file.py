"""
File metadata model.

WHAT: Name, type, size and storage location of a file uploaded to a
workspace, plus the explicit shares of a file with other users.

WHY: The bytes live in external storage; the API only owns the metadata
and the access rules around it.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class FileRecord(Base, PrimaryKeyMixin, TimestampMixin):
    """Metadata for one uploaded file."""

    __tablename__ = "files"

    workspace_id = Column(
        Integer,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    file_name = Column(String(255), nullable=False)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(BigInteger, nullable=False, default=0)
    storage_path = Column(String(1024), nullable=False)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
    uploaded_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    workspace = relationship("Workspace")

    def is_owned_by(self, user_id: int) -> bool:
        return self.uploaded_by_id == user_id

    def __repr__(self) -> str:
        return f"<FileRecord(id={self.id}, file_name={self.file_name})>"


class FileShare(Base, PrimaryKeyMixin, TimestampMixin):
    """
    A file shared with one user.

    Sharing again with the same user replaces the permission instead of
    adding a second row.
    """

    __tablename__ = "file_shares"

    file_id = Column(
        Integer,
        ForeignKey("files.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shared_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    shared_with_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission = Column(String(20), nullable=False, default="read")

    __table_args__ = (
        UniqueConstraint("file_id", "shared_with_id", name="uq_file_shares_file_user"),
    )

    def __repr__(self) -> str:
        return f"<FileShare(file_id={self.file_id}, shared_with_id={self.shared_with_id})>"
