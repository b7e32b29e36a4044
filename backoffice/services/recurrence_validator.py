"""Recurrence Validator."""
from datetime import date
from typing import Dict, Any, Optional

from backoffice.models.recurrence_rule import DayOfWeek, Frequency
from backoffice.models.task import TaskType

VALID_FREQUENCIES = [f.value for f in Frequency]
VALID_DAYS_OF_WEEK = [d.value for d in DayOfWeek]
VALID_TASK_TYPES = [t.value for t in TaskType]


class RecurrenceValidator:
    """Validate recurrence rule fields."""

    @staticmethod
    def _result() -> Dict[str, Any]:
        return {
            "valid": True,
            "errors": [],
            "warnings": []
        }

    @staticmethod
    def validate_recurrence_pattern(
        frequency: Optional[str],
        interval: Optional[int] = 1,
        day_of_week: Optional[str] = None,
        day_of_month: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Validate the calendar pattern of a rule.

        Args:
            frequency: DAILY, WEEKLY, MONTHLY, QUARTERLY or YEARLY
            interval: Every N units of frequency
            day_of_week: Weekday name, used by WEEKLY rules
            day_of_month: 1-31, used by MONTHLY/QUARTERLY/YEARLY rules

        Returns:
            Dict with validation result
        """
        result = RecurrenceValidator._result()

        if frequency not in VALID_FREQUENCIES:
            result["valid"] = False
            result["errors"].append(f"Frequency must be one of: {', '.join(VALID_FREQUENCIES)}")
            return result

        if interval is None or isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
            result["valid"] = False
            result["errors"].append("Interval must be a positive integer")

        if day_of_week is not None:
            if day_of_week not in VALID_DAYS_OF_WEEK:
                result["valid"] = False
                result["errors"].append("Invalid day of week")
            elif frequency != Frequency.WEEKLY.value:
                result["warnings"].append("Day of week is only used by weekly rules")

        if day_of_month is not None:
            if isinstance(day_of_month, bool) or not isinstance(day_of_month, int) or not 1 <= day_of_month <= 31:
                result["valid"] = False
                result["errors"].append("Day of month must be between 1 and 31")
            elif frequency in (Frequency.DAILY.value, Frequency.WEEKLY.value):
                result["warnings"].append("Day of month is only used by monthly, quarterly and yearly rules")

        return result

    @staticmethod
    def validate_target(property_id: Optional[str], owner_id: Optional[str]) -> Dict[str, Any]:
        """A rule targets exactly one property or exactly one owner."""
        result = RecurrenceValidator._result()

        if not property_id and not owner_id:
            result["valid"] = False
            result["errors"].append("Either property_id or owner_id is required")
        elif property_id and owner_id:
            result["valid"] = False
            result["errors"].append("Only one of property_id or owner_id may be set")

        return result

    @staticmethod
    def validate_window(start_date: Optional[date], end_date: Optional[date]) -> Dict[str, Any]:
        result = RecurrenceValidator._result()

        if start_date is None:
            result["valid"] = False
            result["errors"].append("Start date is required")
            return result

        if end_date is not None and end_date < start_date:
            result["valid"] = False
            result["errors"].append("End date must not be before start date")

        return result

    @staticmethod
    def validate_details(
        title: Optional[str],
        task_type: Optional[str] = None,
        cost_estimate: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Validate title, task type and cost estimate."""
        result = RecurrenceValidator._result()

        if title is None or not title.strip():
            result["valid"] = False
            result["errors"].append("Title is required")

        if task_type is None:
            result["valid"] = False
            result["errors"].append("Task type is required")
        elif task_type not in VALID_TASK_TYPES:
            result["valid"] = False
            result["errors"].append(f"Task type must be one of: {', '.join(VALID_TASK_TYPES)}")

        if cost_estimate is not None and cost_estimate < 0:
            result["valid"] = False
            result["errors"].append("Cost estimate must not be negative")

        return result

    @staticmethod
    def validate_rule(rule_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a complete rule.

        Args:
            rule_data: Rule fields keyed by attribute name

        Returns:
            Dict with the merged validation result of every check
        """
        result = RecurrenceValidator._result()
        checks = [
            RecurrenceValidator.validate_details(
                rule_data.get("title"), rule_data.get("type"), rule_data.get("cost_estimate")
            ),
            RecurrenceValidator.validate_target(rule_data.get("property_id"), rule_data.get("owner_id")),
            RecurrenceValidator.validate_recurrence_pattern(
                rule_data.get("frequency"),
                rule_data.get("interval"),
                rule_data.get("day_of_week"),
                rule_data.get("day_of_month"),
            ),
            RecurrenceValidator.validate_window(rule_data.get("start_date"), rule_data.get("end_date")),
        ]
        for check in checks:
            if not check["valid"]:
                result["valid"] = False
            result["errors"].extend(check["errors"])
            result["warnings"].extend(check["warnings"])
        return result
