"""Recurring rule service: CRUD over persisted recurrence rules."""
from sqlmodel import Session, select
from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from pydantic import ValidationError as SchemaValidationError
from typing import Any, Dict, List, Optional, Union
from datetime import date, datetime
from itertools import islice
import logging

from backoffice.errors import NotFoundError, ValidationError
from backoffice.models.property import Owner, Property
from backoffice.models.recurrence_rule import DayOfWeek, Frequency, RecurrenceRule
from backoffice.models.task import Task, TaskType
from backoffice.schemas.recurrence_rule import (
    GeneratedTaskResponse,
    RecurrenceRuleCreate,
    RecurrenceRuleResponse,
    RecurrenceRuleUpdate,
)
from backoffice.services.recurrence_calculator import first_occurrence, iter_occurrences, next_occurrence
from backoffice.services.recurrence_validator import RecurrenceValidator

logger = logging.getLogger(__name__)

# Edits to these fields invalidate the stored next_run_date
SCHEDULE_FIELDS = ("frequency", "day_of_week", "day_of_month", "start_date")


class RecurringRuleService:
    """Service class for recurrence rule CRUD operations."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, data: Union[RecurrenceRuleCreate, Dict[str, Any]]) -> RecurrenceRule:
        """Validate and persist a rule with its initial next_run_date."""
        if isinstance(data, dict):
            data = self._parse(RecurrenceRuleCreate, data)
        fields = data.model_dump()
        self._validate(fields)

        next_run_date = first_occurrence(
            fields["frequency"],
            fields["interval"],
            fields["day_of_week"],
            fields["day_of_month"],
            fields["start_date"],
        )
        is_active = fields["is_active"]
        if fields["end_date"] and next_run_date > fields["end_date"]:
            logger.info(f"Rule '{fields['title']}' has no occurrence before its end date; storing it inactive")
            is_active = False

        rule = RecurrenceRule(
            property_id=fields["property_id"] or None,
            owner_id=fields["owner_id"] or None,
            type=TaskType(fields["type"]),
            title=fields["title"].strip(),
            description=fields["description"] or None,
            assigned_to_user_id=fields["assigned_to_user_id"] or None,
            cost_estimate=fields["cost_estimate"],
            frequency=Frequency(fields["frequency"]),
            interval=fields["interval"],
            day_of_week=DayOfWeek(fields["day_of_week"]) if fields["day_of_week"] else None,
            day_of_month=fields["day_of_month"],
            start_date=fields["start_date"],
            end_date=fields["end_date"],
            next_run_date=next_run_date,
            is_active=is_active,
            created_by_id=fields["created_by_id"],
        )

        self._commit(rule, "create")
        logger.info(f"Created recurrence rule {rule.id} '{rule.title}', next run {rule.next_run_date}")
        return rule

    def get(self, rule_id: int) -> RecurrenceRule:
        rule = self.session.get(RecurrenceRule, rule_id)
        if not rule:
            raise NotFoundError(f"Recurrence rule {rule_id} not found", {"rule_id": rule_id})
        return rule

    def get_with_history(self, rule_id: int, limit: int = 10) -> RecurrenceRuleResponse:
        """Get a rule together with its most recently generated tasks."""
        rule = self.get(rule_id)
        statement = (
            select(Task)
            .where(Task.recurring_rule_id == rule_id)
            .order_by(Task.created_at.desc(), Task.id.desc())
            .limit(limit)
        )
        tasks = self.session.exec(statement).all()

        response = RecurrenceRuleResponse.model_validate(rule)
        response.generated_tasks = [GeneratedTaskResponse.model_validate(task) for task in tasks]
        return response

    def list(
        self,
        property_id: Optional[str] = None,
        owner_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> List[RecurrenceRule]:
        """List rules, soonest due first."""
        statement = select(RecurrenceRule)

        if property_id:
            statement = statement.where(RecurrenceRule.property_id == property_id)
        if owner_id:
            statement = statement.where(RecurrenceRule.owner_id == owner_id)
        if is_active is not None:
            statement = statement.where(RecurrenceRule.is_active == is_active)

        statement = statement.order_by(RecurrenceRule.next_run_date.asc(), RecurrenceRule.created_at.desc())
        return list(self.session.exec(statement).all())

    def update(
        self,
        rule_id: int,
        data: Union[RecurrenceRuleUpdate, Dict[str, Any]],
        today: Optional[date] = None,
    ) -> RecurrenceRule:
        """
        Apply a partial update.

        Changing the frequency, day of week, day of month or start date
        recomputes next_run_date from max(start_date, today), skipping any
        occurrence that already has a generated task.
        """
        if isinstance(data, dict):
            data = self._parse(RecurrenceRuleUpdate, data)
        rule = self.get(rule_id)
        changes = data.model_dump(exclude_unset=True)
        today = today or date.today()

        # Switching target scope clears the other side unless it is set explicitly
        if changes.get("property_id") and "owner_id" not in changes:
            changes["owner_id"] = None
        if changes.get("owner_id") and "property_id" not in changes:
            changes["property_id"] = None

        merged = {
            "title": rule.title,
            "type": rule.type,
            "cost_estimate": rule.cost_estimate,
            "property_id": rule.property_id,
            "owner_id": rule.owner_id,
            "frequency": rule.frequency,
            "interval": rule.interval,
            "day_of_week": rule.day_of_week,
            "day_of_month": rule.day_of_month,
            "start_date": rule.start_date,
            "end_date": rule.end_date,
        }
        merged.update({key: value for key, value in changes.items() if key in merged})
        self._validate(merged)

        try:
            for key, value in changes.items():
                if key == "frequency":
                    value = Frequency(value)
                elif key == "day_of_week":
                    value = DayOfWeek(value) if value else None
                elif key == "type":
                    value = TaskType(value)
                elif key in ("property_id", "owner_id", "assigned_to_user_id", "description"):
                    value = value or None
                elif key == "title":
                    value = value.strip()
                if key == "is_active":
                    continue
                setattr(rule, key, value)

            if any(key in changes for key in SCHEDULE_FIELDS):
                seed = max(rule.start_date, today)
                rule.next_run_date = self._after_generated(
                    rule,
                    first_occurrence(rule.frequency, rule.interval, rule.day_of_week, rule.day_of_month, seed),
                )
                logger.info(f"Rule {rule.id} schedule changed; next run recomputed to {rule.next_run_date}")

            if changes.get("is_active") is True and not rule.is_active:
                self._resume_schedule(rule)
            elif changes.get("is_active") is False:
                rule.is_active = False

            if rule.end_date and rule.next_run_date > rule.end_date and rule.is_active:
                logger.info(f"Rule {rule.id} next run {rule.next_run_date} is past end date {rule.end_date}; deactivating")
                rule.is_active = False

            rule.updated_at = datetime.utcnow()
        except Exception:
            self.session.rollback()
            raise
        self._commit(rule, "update")
        return rule

    def set_active(self, rule_id: int, is_active: bool) -> RecurrenceRule:
        """Deactivate or reactivate a rule."""
        rule = self.get(rule_id)
        if is_active and not rule.is_active:
            self._resume_schedule(rule)
        elif not is_active:
            rule.is_active = False
        rule.updated_at = datetime.utcnow()
        self._commit(rule, "update")
        return rule

    def deactivate(self, rule_id: int) -> RecurrenceRule:
        return self.set_active(rule_id, False)

    def delete(self, rule_id: int) -> bool:
        """Delete a rule; its generated tasks are kept and detached."""
        rule = self.get(rule_id)
        self.session.exec(
            update(Task)
            .where(Task.recurring_rule_id == rule_id)
            .values(recurring_rule_id=None)
        )
        self.session.delete(rule)
        self.session.commit()
        logger.info(f"Deleted recurrence rule {rule_id}")
        return True

    def preview(self, rule_id: int, count: int = 5) -> List[date]:
        """Next ``count`` occurrence dates inside the rule window."""
        rule = self.get(rule_id)
        if not rule.is_active:
            return []
        occurrences = iter_occurrences(
            rule.frequency,
            rule.interval,
            rule.day_of_week,
            rule.day_of_month,
            rule.next_run_date,
            rule.end_date,
        )
        return list(islice(occurrences, count))

    def _resume_schedule(self, rule: RecurrenceRule) -> None:
        """
        Reactivate a rule without regenerating an occurrence that already has a task.

        A rule stopped by its end date keeps the date of its last generated
        occurrence as next_run_date; resuming moves past it.
        """
        following = self._after_generated(rule, rule.next_run_date)
        if rule.end_date and following > rule.end_date:
            raise ValidationError(
                "Rule has no occurrences left before its end date",
                {"rule_id": rule.id, "end_date": rule.end_date.isoformat()},
            )
        rule.next_run_date = following
        rule.is_active = True

    def _after_generated(self, rule: RecurrenceRule, candidate: date) -> date:
        """Step ``candidate`` forward past the last occurrence that already has a task."""
        last_generated = self.session.exec(
            select(func.max(Task.scheduled_at)).where(Task.recurring_rule_id == rule.id)
        ).first()
        while last_generated is not None and candidate <= last_generated:
            candidate = next_occurrence(
                rule.frequency, rule.interval, rule.day_of_week, rule.day_of_month, candidate
            )
        return candidate

    def _commit(self, rule: RecurrenceRule, action: str) -> None:
        self.session.add(rule)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise ValidationError(f"Failed to {action} recurrence rule", {"error": str(e.orig)}) from e
        except Exception:
            self.session.rollback()
            raise
        self.session.refresh(rule)

    def _validate(self, fields: Dict[str, Any]) -> None:
        validation = RecurrenceValidator.validate_rule(fields)
        if not validation["valid"]:
            raise ValidationError(", ".join(validation["errors"]), {"errors": validation["errors"]})

        if fields.get("property_id") and not self.session.get(Property, fields["property_id"]):
            raise ValidationError("Property not found", {"property_id": fields["property_id"]})
        if fields.get("owner_id") and not self.session.get(Owner, fields["owner_id"]):
            raise ValidationError("Owner not found", {"owner_id": fields["owner_id"]})

    @staticmethod
    def _parse(schema, data: Dict[str, Any]):
        try:
            return schema(**data)
        except SchemaValidationError as exc:
            raise ValidationError(str(exc), {"errors": exc.errors()}) from exc
