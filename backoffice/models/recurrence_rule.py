"""Recurrence Rule model for SQLModel."""
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, String, ForeignKey
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from backoffice.models.task import TaskType
from backoffice.schemas.generation import OwnerTarget, PropertyTarget


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    YEARLY = "YEARLY"


class DayOfWeek(str, Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"

    @property
    def weekday(self) -> int:
        """Python weekday number (Monday=0)."""
        return list(DayOfWeek).index(self)


class RecurrenceRule(SQLModel, table=True):
    """Standing instruction to produce tasks on a schedule.

    Exactly one of ``property_id`` / ``owner_id`` is set. ``next_run_date`` is
    the next day the rule is due; it never moves past ``end_date`` (the rule is
    deactivated instead).
    """

    id: Optional[int] = Field(default=None, primary_key=True)

    # Target: one property, or every property under an owner
    property_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("property.id", ondelete="CASCADE"), index=True, nullable=True)
    )
    owner_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("owner.id", ondelete="CASCADE"), index=True, nullable=True)
    )

    type: TaskType = Field(default=TaskType.OTHER)
    title: str = Field(max_length=200, min_length=1)
    description: Optional[str] = Field(default=None, max_length=2000)
    assigned_to_user_id: Optional[str] = Field(
        default=None,
        sa_column=Column(String, ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    )
    cost_estimate: Optional[float] = Field(default=None)

    frequency: Frequency
    interval: int = Field(default=1)  # every N units of frequency
    day_of_week: Optional[DayOfWeek] = Field(default=None)  # WEEKLY only
    day_of_month: Optional[int] = Field(default=None)  # 1-31, MONTHLY/QUARTERLY/YEARLY only

    start_date: date
    end_date: Optional[date] = Field(default=None)

    next_run_date: date = Field(index=True)
    is_active: bool = Field(default=True, index=True)
    total_generated: int = Field(default=0)
    last_generated_at: Optional[datetime] = Field(default=None)

    created_by_id: Optional[str] = Field(default=None, max_length=36)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def target(self) -> Union[PropertyTarget, OwnerTarget]:
        """Tagged target scope of the rule."""
        if self.property_id:
            return PropertyTarget(property_id=self.property_id)
        return OwnerTarget(owner_id=self.owner_id)
