"""Task model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, Integer, ForeignKey
from datetime import date, datetime
from enum import Enum
from typing import Optional


class TaskType(str, Enum):
    CLEANING = "CLEANING"
    REPAIR = "REPAIR"
    INSPECTION = "INSPECTION"
    MAINTENANCE = "MAINTENANCE"
    OTHER = "OTHER"


class TaskStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Task(SQLModel, table=True):
    """Concrete, dated unit of work at a property.

    Tasks produced by the generation engine reference the rule that produced
    them; manually created tasks leave ``recurring_rule_id`` empty.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    property_id: str = Field(
        sa_column=Column(String, ForeignKey("property.id", ondelete="CASCADE"), index=True, nullable=False)
    )
    recurring_rule_id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, ForeignKey("recurrencerule.id", ondelete="SET NULL"), index=True, nullable=True)
    )
    type: TaskType = Field(default=TaskType.OTHER)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, max_length=2000)
    assigned_to_user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    )
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    scheduled_at: Optional[date] = Field(default=None, index=True)  # occurrence date
    due_at: Optional[datetime] = Field(default=None)  # end of the occurrence day
    cost_estimate: Optional[float] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
