"""Schemas exchanged between the generation engine and its collaborators."""
from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import List, Literal, Optional


class PropertyTarget(BaseModel):
    """Rule applies to a single property."""
    kind: Literal["property"] = "property"
    property_id: str


class OwnerTarget(BaseModel):
    """Rule applies to every property under an owner."""
    kind: Literal["owner"] = "owner"
    owner_id: str


class PropertyRef(BaseModel):
    """Concrete property a task instance is created for."""
    id: str
    owner_id: Optional[str] = None
    name: Optional[str] = None


class InstanceRef(BaseModel):
    """Reference to a task instance created by a task sink."""
    task_id: int
    property_id: str
    due_date: date


class RunError(BaseModel):
    """One rule that failed during a generation run."""
    rule_id: int
    message: str


class RunResult(BaseModel):
    """Aggregate report of one generation run."""
    generated_count: int = 0
    errors: List[RunError] = Field(default_factory=list)
    processed_count: int = 0
    deactivated_count: int = 0
    skipped_count: int = 0
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class RuleOutcome(BaseModel):
    """Result of processing one due rule within a run."""
    rule_id: int
    status: Literal["generated", "skipped", "failed"]
    generated: int = 0
    deactivated: bool = False
    next_run_date: Optional[date] = None
    error: Optional[str] = None
