"""
Task model.

WHY: Tasks are workspace content. They are the main consumer of the
ownership-or-role gate: a task may be deleted by its creator or assignee,
or by anyone at manager level and above.
"""

import enum

from sqlalchemy import Column, Date, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from app.models.base import Base, TimestampMixin, PrimaryKeyMixin


class TaskStatus(str, enum.Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Task(Base, PrimaryKeyMixin, TimestampMixin):
    """A unit of work inside a workspace."""

    __tablename__ = "tasks"

    workspace_id = Column(
        Integer,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(Enum(TaskStatus), nullable=False, default=TaskStatus.TODO)
    priority = Column(Enum(TaskPriority), nullable=False, default=TaskPriority.MEDIUM)
    created_by_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    assigned_to_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    due_date = Column(Date, nullable=True)

    workspace = relationship("Workspace")

    def is_owned_by(self, user_id: int) -> bool:
        """The creator and the assignee both count as owners."""
        return user_id in (self.created_by_id, self.assigned_to_id)

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title}, workspace={self.workspace_id})>"
