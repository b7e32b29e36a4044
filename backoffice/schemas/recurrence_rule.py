"""Recurrence rule schemas."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Optional

from backoffice.models.recurrence_rule import DayOfWeek, Frequency
from backoffice.models.task import TaskStatus, TaskType


class RecurrenceRuleCreate(BaseModel):
    """Schema for creating a recurrence rule."""
    property_id: Optional[str] = None
    owner_id: Optional[str] = None
    type: TaskType = TaskType.OTHER
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assigned_to_user_id: Optional[str] = None
    cost_estimate: Optional[float] = None
    frequency: str  # DAILY, WEEKLY, MONTHLY, QUARTERLY, YEARLY
    interval: int = 1
    day_of_week: Optional[str] = None  # MONDAY..SUNDAY, WEEKLY only
    day_of_month: Optional[int] = None  # 1-31
    start_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    created_by_id: Optional[str] = None


class RecurrenceRuleUpdate(BaseModel):
    """Schema for updating a recurrence rule; unset fields are left untouched."""
    property_id: Optional[str] = None
    owner_id: Optional[str] = None
    type: Optional[TaskType] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    assigned_to_user_id: Optional[str] = None
    cost_estimate: Optional[float] = None
    frequency: Optional[str] = None
    interval: Optional[int] = None
    day_of_week: Optional[str] = None
    day_of_month: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None


class RuleSnapshot(BaseModel):
    """Read-only copy of a rule handed to the task sink."""
    id: int
    property_id: Optional[str]
    owner_id: Optional[str]
    type: TaskType
    title: str
    description: Optional[str]
    assigned_to_user_id: Optional[str]
    cost_estimate: Optional[float]
    frequency: Frequency
    interval: int
    day_of_week: Optional[DayOfWeek]
    day_of_month: Optional[int]
    start_date: date
    end_date: Optional[date]
    next_run_date: date

    class Config:
        from_attributes = True


class GeneratedTaskResponse(BaseModel):
    """Generated task as listed in a rule's history."""
    id: int
    property_id: str
    title: str
    status: TaskStatus
    scheduled_at: Optional[date]
    due_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class RecurrenceRuleResponse(BaseModel):
    """Recurrence rule with schedule state."""
    id: int
    property_id: Optional[str]
    owner_id: Optional[str]
    type: TaskType
    title: str
    description: Optional[str]
    assigned_to_user_id: Optional[str]
    cost_estimate: Optional[float]
    frequency: Frequency
    interval: int
    day_of_week: Optional[DayOfWeek]
    day_of_month: Optional[int]
    start_date: date
    end_date: Optional[date]
    next_run_date: date
    is_active: bool
    total_generated: int
    last_generated_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime
    generated_tasks: List[GeneratedTaskResponse] = []

    class Config:
        from_attributes = True
