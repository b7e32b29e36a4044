"""
Scheduler Errors

Error taxonomy for the recurring task engine:
- ValidationError: malformed rule fields, rejected before persistence
- NotFoundError: operation on an unknown rule id
- GenerationError: one rule failed during a run (recorded, never raised out of a run)
- EngineFault: the run itself could not execute
"""

from typing import Any, Dict, Optional


class SchedulerError(Exception):
    """Base exception for recurring task errors"""
    code = "SCHEDULER_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None, code: Optional[str] = None):
        self.code = code or self.code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(SchedulerError):
    code = "VALIDATION_ERROR"


class NotFoundError(SchedulerError):
    code = "NOT_FOUND"


class GenerationError(SchedulerError):
    code = "GENERATION_FAILED"

    def __init__(self, message: str, rule_id: Optional[int] = None, details: Optional[Dict[str, Any]] = None):
        self.rule_id = rule_id
        super().__init__(message, details)


class EngineFault(SchedulerError):
    code = "ENGINE_FAULT"
