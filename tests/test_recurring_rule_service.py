"""Recurring rule store: validation, schedule computation and CRUD."""

# pylint: disable=redefined-outer-name

from datetime import date, datetime

import pytest

from backoffice.errors import NotFoundError, ValidationError
from backoffice.models import DayOfWeek, Frequency, Task, TaskType
from backoffice.schemas.recurrence_rule import RecurrenceRuleCreate, RecurrenceRuleUpdate


def weekly_rule(**overrides):
    data = {
        "property_id": "prop-a",
        "type": "CLEANING",
        "title": "Weekly clean",
        "frequency": "WEEKLY",
        "interval": 1,
        "day_of_week": "MONDAY",
        "start_date": date(2024, 1, 3),
    }
    data.update(overrides)
    return data


class TestCreate:
    def test_initial_next_run_date_from_start(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())

        assert rule.id is not None
        assert rule.next_run_date == date(2024, 1, 8)
        assert rule.is_active is True
        assert rule.total_generated == 0
        assert rule.last_generated_at is None
        assert rule.frequency == Frequency.WEEKLY
        assert rule.day_of_week == DayOfWeek.MONDAY
        assert rule.type == TaskType.CLEANING

    def test_accepts_schema_object(self, seed, rule_service):
        rule = rule_service.create(
            RecurrenceRuleCreate(
                owner_id=seed["owner_id"],
                title="Quarterly inspection",
                type=TaskType.INSPECTION,
                frequency="QUARTERLY",
                day_of_month=1,
                start_date=date(2024, 1, 15),
            )
        )
        assert rule.owner_id == seed["owner_id"]
        assert rule.property_id is None
        assert rule.next_run_date == date(2024, 4, 1)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"frequency": "HOURLY"},
            {"day_of_week": "FUNDAY"},
            {"frequency": "MONTHLY", "day_of_week": None, "day_of_month": 32},
            {"interval": 0},
            {"property_id": None},
            {"owner_id": "owner-1"},
            {"end_date": date(2023, 12, 1)},
            {"title": ""},
            {"type": "GARDENING"},
        ],
    )
    def test_invalid_fields_rejected(self, seed, rule_service, overrides):
        with pytest.raises(ValidationError):
            rule_service.create(weekly_rule(**overrides))
        assert rule_service.list() == []

    def test_unknown_property_rejected(self, seed, rule_service):
        with pytest.raises(ValidationError, match="Property not found"):
            rule_service.create(weekly_rule(property_id="missing"))

    def test_window_without_occurrence_is_stored_inactive(self, seed, rule_service):
        rule = rule_service.create(weekly_rule(end_date=date(2024, 1, 5)))
        assert rule.is_active is False
        assert rule.next_run_date == date(2024, 1, 8)


class TestReadAndList:
    def test_get_unknown_rule(self, seed, rule_service):
        with pytest.raises(NotFoundError):
            rule_service.get(999)

    def test_list_filters_and_orders_by_next_run(self, seed, rule_service):
        later = rule_service.create(weekly_rule(title="Later", start_date=date(2024, 2, 1)))
        sooner = rule_service.create(weekly_rule(title="Sooner"))
        owner_rule = rule_service.create(
            {"owner_id": seed["owner_id"], "title": "Owner wide", "frequency": "DAILY",
             "start_date": date(2024, 1, 1), "is_active": False}
        )

        assert [r.id for r in rule_service.list()] == [owner_rule.id, sooner.id, later.id]
        assert [r.id for r in rule_service.list(property_id="prop-a")] == [sooner.id, later.id]
        assert [r.id for r in rule_service.list(owner_id=seed["owner_id"])] == [owner_rule.id]
        assert [r.id for r in rule_service.list(is_active=False)] == [owner_rule.id]
        assert [r.id for r in rule_service.list(is_active=True)] == [sooner.id, later.id]

    def test_history_lists_newest_generated_tasks(self, seed, session, rule_service):
        rule = rule_service.create(weekly_rule())
        for day in range(1, 13):
            session.add(Task(
                property_id="prop-a",
                recurring_rule_id=rule.id,
                title=rule.title,
                scheduled_at=date(2024, 1, day),
                created_at=datetime(2024, 1, day, 6, 0),
            ))
        session.commit()

        detail = rule_service.get_with_history(rule.id)
        assert detail.id == rule.id
        assert len(detail.generated_tasks) == 10
        assert detail.generated_tasks[0].scheduled_at == date(2024, 1, 12)

    def test_preview_respects_end_date(self, seed, rule_service):
        rule = rule_service.create(weekly_rule(end_date=date(2024, 1, 25)))
        assert rule_service.preview(rule.id) == [date(2024, 1, 8), date(2024, 1, 15), date(2024, 1, 22)]
        assert rule_service.preview(rule.id, count=1) == [date(2024, 1, 8)]


class TestUpdate:
    def test_unknown_rule(self, seed, rule_service):
        with pytest.raises(NotFoundError):
            rule_service.update(999, {"title": "Nope"})

    def test_schedule_change_recomputes_from_today(self, seed, rule_service):
        rule = rule_service.create(
            {"property_id": "prop-a", "title": "Bins", "frequency": "DAILY", "start_date": date(2024, 1, 1)}
        )
        updated = rule_service.update(
            rule.id,
            RecurrenceRuleUpdate(frequency="WEEKLY", day_of_week="FRIDAY"),
            today=date(2024, 3, 6),
        )
        assert updated.frequency == Frequency.WEEKLY
        assert updated.next_run_date == date(2024, 3, 8)

    def test_future_start_date_seeds_recomputation(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        updated = rule_service.update(rule.id, {"start_date": date(2024, 6, 5)}, today=date(2024, 3, 6))
        assert updated.next_run_date == date(2024, 6, 10)

    def test_non_schedule_edit_keeps_next_run_date(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        updated = rule_service.update(rule.id, {"title": "Deep clean", "interval": 2}, today=date(2024, 3, 6))
        assert updated.title == "Deep clean"
        assert updated.next_run_date == date(2024, 1, 8)

    def test_end_date_before_next_run_deactivates(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        updated = rule_service.update(rule.id, {"end_date": date(2024, 1, 7)})
        assert updated.is_active is False

    def test_invalid_update_leaves_rule_untouched(self, seed, session, rule_service):
        rule = rule_service.create(weekly_rule())
        with pytest.raises(ValidationError):
            rule_service.update(rule.id, {"frequency": "MONTHLY", "day_of_month": 40})
        session.expire_all()
        assert rule_service.get(rule.id).frequency == Frequency.WEEKLY

    def test_clearing_task_type_is_rejected(self, seed, session, rule_service):
        rule = rule_service.create(weekly_rule())
        with pytest.raises(ValidationError, match="Task type is required"):
            rule_service.update(rule.id, {"type": None})
        session.expire_all()
        assert rule_service.get(rule.id).type == TaskType.CLEANING

    def test_unknown_assignee_is_a_validation_error(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        with pytest.raises(ValidationError, match="Failed to update recurrence rule"):
            rule_service.update(rule.id, {"assigned_to_user_id": "ghost"})

        # Session is usable again after the failed commit
        updated = rule_service.update(rule.id, {"title": "Pool service"})
        assert updated.title == "Pool service"
        assert updated.assigned_to_user_id is None

    def test_switching_target_to_owner(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        updated = rule_service.update(rule.id, {"owner_id": seed["owner_id"]})
        assert updated.owner_id == seed["owner_id"]
        assert updated.property_id is None


class TestActivationAndDelete:
    def test_deactivate_and_reactivate(self, seed, rule_service):
        rule = rule_service.create(weekly_rule())
        assert rule_service.deactivate(rule.id).is_active is False
        reactivated = rule_service.set_active(rule.id, True)
        assert reactivated.is_active is True
        assert reactivated.next_run_date == date(2024, 1, 8)

    def test_delete_keeps_generated_tasks(self, seed, session, rule_service):
        rule = rule_service.create(weekly_rule())
        task = Task(property_id="prop-a", recurring_rule_id=rule.id, title=rule.title,
                    scheduled_at=date(2024, 1, 8))
        session.add(task)
        session.commit()
        task_id = task.id

        assert rule_service.delete(rule.id) is True

        session.expire_all()
        with pytest.raises(NotFoundError):
            rule_service.get(rule.id)
        kept = session.get(Task, task_id)
        assert kept is not None
        assert kept.recurring_rule_id is None

    def test_delete_unknown_rule(self, seed, rule_service):
        with pytest.raises(NotFoundError):
            rule_service.delete(12345)
