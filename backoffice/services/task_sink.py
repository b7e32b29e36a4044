"""Task sink: materializes a due occurrence into concrete task records."""
from datetime import date, datetime, time
from typing import List, Protocol
from sqlmodel import Session
import logging

from backoffice.errors import GenerationError
from backoffice.models.property import Property
from backoffice.models.task import Task, TaskStatus
from backoffice.models.user import User
from backoffice.schemas.generation import InstanceRef, PropertyRef
from backoffice.schemas.recurrence_rule import RuleSnapshot

logger = logging.getLogger(__name__)


class TaskSink(Protocol):
    """Collaborator creating task instances for one rule occurrence."""

    def create_task_instances(
        self, rule: RuleSnapshot, due_date: date, properties: List[PropertyRef]
    ) -> List[InstanceRef]:
        ...


class DatabaseTaskSink:
    """Creates Task rows inside the caller's session.

    Nothing is committed here: the generation engine commits the new tasks
    together with the rule's schedule advance.
    """

    def __init__(self, session: Session):
        self.session = session

    def create_task_instances(
        self, rule: RuleSnapshot, due_date: date, properties: List[PropertyRef]
    ) -> List[InstanceRef]:
        if rule.assigned_to_user_id and not self.session.get(User, rule.assigned_to_user_id):
            raise GenerationError(
                f"Assignee {rule.assigned_to_user_id} does not exist", rule_id=rule.id
            )

        tasks = []
        for prop in properties:
            if not self.session.get(Property, prop.id):
                raise GenerationError(f"Property {prop.id} does not exist", rule_id=rule.id)

            task = Task(
                property_id=prop.id,
                recurring_rule_id=rule.id,
                type=rule.type,
                title=rule.title,
                description=rule.description,
                assigned_to_user_id=rule.assigned_to_user_id,
                status=TaskStatus.PENDING,
                scheduled_at=due_date,
                due_at=datetime.combine(due_date, time(23, 59, 59)),
                cost_estimate=rule.cost_estimate,
            )
            self.session.add(task)
            tasks.append(task)

        # Assign primary keys without committing
        self.session.flush()
        logger.debug(f"Staged {len(tasks)} task(s) for rule {rule.id} due {due_date}")
        return [
            InstanceRef(task_id=task.id, property_id=task.property_id, due_date=due_date)
            for task in tasks
        ]
