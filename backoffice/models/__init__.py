"""SQLModel table models."""
from backoffice.models.property import Owner, Property
from backoffice.models.user import User
from backoffice.models.recurrence_rule import DayOfWeek, Frequency, RecurrenceRule
from backoffice.models.task import Task, TaskStatus, TaskType

__all__ = [
    "DayOfWeek",
    "Frequency",
    "Owner",
    "Property",
    "RecurrenceRule",
    "Task",
    "TaskStatus",
    "TaskType",
    "User",
]
