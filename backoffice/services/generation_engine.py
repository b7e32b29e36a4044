"""
Recurring Task Generation Engine.

Scans active rules that are due, creates their task instances through a task
sink and advances each rule's schedule by one occurrence.
"""

import logging
import threading
import time as timer
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import date, datetime, time
from typing import Callable, List, Optional, Tuple, Union

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from backoffice.config import SchedulerSettings
from backoffice.errors import EngineFault, GenerationError
from backoffice.models.property import Property
from backoffice.models.recurrence_rule import RecurrenceRule
from backoffice.schemas.generation import (
    OwnerTarget,
    PropertyRef,
    RuleOutcome,
    RunError,
    RunResult,
)
from backoffice.schemas.recurrence_rule import RuleSnapshot
from backoffice.services.recurrence_calculator import next_occurrence, to_day
from backoffice.services.task_sink import DatabaseTaskSink, TaskSink
from backoffice.utils.logger import generation_logger
from backoffice.utils.metrics import metrics_collector

logger = logging.getLogger(__name__)


class CommitGate:
    """
    Commit permission shared between a rule worker and the run waiting on it.

    Once the run gives up on a rule the gate is closed and the worker can no
    longer commit. Commits happen under the gate lock, so closing waits for a
    commit already in flight and ``generated`` is exact afterwards.
    """

    def __init__(self):
        self.lock = threading.Lock()
        self.closed = False
        self.generated = 0

    def close(self) -> int:
        """Forbid further commits; return the tasks committed so far."""
        with self.lock:
            self.closed = True
            return self.generated


class GenerationEngine:
    """Drives recurring task generation for every due rule."""

    def __init__(
        self,
        engine: Engine,
        sink_factory: Callable[[Session], TaskSink] = DatabaseTaskSink,
        settings: Optional[SchedulerSettings] = None,
    ):
        """
        Initialize the generation engine.

        Args:
            engine: SQLAlchemy engine holding rules and tasks
            sink_factory: Builds the task sink for a rule's session
            settings: Timeout, parallelism and catch-up settings
        """
        self.engine = engine
        self.sink_factory = sink_factory
        self.settings = settings or SchedulerSettings()

    def run_due_generations(self, now: Union[date, datetime]) -> RunResult:
        """
        Generate tasks for every active rule with next_run_date <= now.

        A failing rule is recorded in the result and left unchanged so the next
        run retries it; only a failure to read the due rules raises.

        Raises:
            EngineFault: The due rules could not be loaded
        """
        start_time = timer.time()
        today = to_day(now)
        generated_at = now if isinstance(now, datetime) else datetime.combine(now, time.min)
        result = RunResult(started_at=datetime.utcnow())

        try:
            due_rules = self._select_due_rules(today)
        except SQLAlchemyError as e:
            generation_logger.exception("Failed to load due recurring rules", error=str(e))
            raise EngineFault(f"Failed to load due recurring rules: {e}") from e

        for rule_id, outcome in self._run_rules(due_rules, today, generated_at):
            self._collect(result, rule_id, outcome)

        result.finished_at = datetime.utcnow()
        metrics_collector.run_completed()
        metrics_collector.record_timer("recurring_generation_run_seconds", timer.time() - start_time)
        generation_logger.info(
            "Recurring task generation run completed",
            run_date=today,
            due_rules=len(due_rules),
            generated_count=result.generated_count,
            deactivated_count=result.deactivated_count,
            skipped_count=result.skipped_count,
            error_count=len(result.errors),
        )
        return result

    @metrics_collector.time_operation("recurring_rule_processing_seconds")
    def process_rule(
        self,
        rule_id: int,
        expected_next_run_date: date,
        now: Union[date, datetime],
        gate: Optional[CommitGate] = None,
    ) -> RuleOutcome:
        """
        Generate one occurrence of a rule and advance its schedule.

        The tasks and the schedule advance are committed together. The advance
        is conditional on next_run_date still being ``expected_next_run_date``,
        so when two runs race on the same occurrence only one commits. Nothing is
        committed once ``gate`` has been closed by a run that timed out.
        """
        gate = gate or CommitGate()
        today = to_day(now)
        generated_at = now if isinstance(now, datetime) else datetime.combine(now, time.min)

        with Session(self.engine) as session:
            try:
                rule = session.get(RecurrenceRule, rule_id)
                if (
                    rule is None
                    or not rule.is_active
                    or rule.next_run_date != expected_next_run_date
                    or rule.next_run_date > today
                ):
                    return RuleOutcome(rule_id=rule_id, status="skipped")

                snapshot = RuleSnapshot.model_validate(rule)
                properties = self._resolve_properties(session, rule)
                sink = self.sink_factory(session)
                instances = sink.create_task_instances(snapshot, snapshot.next_run_date, properties)

                following = next_occurrence(
                    snapshot.frequency,
                    snapshot.interval,
                    snapshot.day_of_week,
                    snapshot.day_of_month,
                    snapshot.next_run_date,
                )
                values = {
                    "total_generated": RecurrenceRule.total_generated + len(instances),
                    "last_generated_at": generated_at,
                    "updated_at": datetime.utcnow(),
                }
                deactivated = bool(snapshot.end_date and following > snapshot.end_date)
                if deactivated:
                    # next_run_date keeps its last valid value
                    values["is_active"] = False
                else:
                    values["next_run_date"] = following

                advanced = session.exec(
                    update(RecurrenceRule)
                    .where(RecurrenceRule.id == rule_id)
                    .where(RecurrenceRule.next_run_date == expected_next_run_date)
                    .where(RecurrenceRule.is_active == True)  # noqa: E712
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
                if advanced.rowcount != 1:
                    session.rollback()
                    logger.warning(
                        f"Rule {rule_id} occurrence {expected_next_run_date} was taken by another run; "
                        f"discarding {len(instances)} staged task(s)"
                    )
                    return RuleOutcome(rule_id=rule_id, status="skipped")

                with gate.lock:
                    if gate.closed:
                        session.rollback()
                        logger.warning(f"Rule {rule_id} finished after its run gave up on it; discarding its work")
                        return RuleOutcome(rule_id=rule_id, status="failed", error="Generation timed out")
                    session.commit()
                    gate.generated += len(instances)
            except Exception as e:
                session.rollback()
                logger.exception(f"Error generating tasks for recurring rule {rule_id}")
                return RuleOutcome(rule_id=rule_id, status="failed", error=str(e))

        if deactivated:
            logger.info(f"Rule {rule_id} reached its end date {snapshot.end_date}; deactivated")
        else:
            logger.info(f"Rule {rule_id} generated {len(instances)} task(s); next run {following}")
        return RuleOutcome(
            rule_id=rule_id,
            status="generated",
            generated=len(instances),
            deactivated=deactivated,
            next_run_date=None if deactivated else following,
        )

    def _select_due_rules(self, today: date) -> List[Tuple[int, date]]:
        with Session(self.engine) as session:
            statement = (
                select(RecurrenceRule.id, RecurrenceRule.next_run_date)
                .where(RecurrenceRule.is_active == True)  # noqa: E712
                .where(RecurrenceRule.next_run_date <= today)
                .order_by(RecurrenceRule.next_run_date.asc(), RecurrenceRule.id.asc())
            )
            return [(rule_id, next_run_date) for rule_id, next_run_date in session.exec(statement).all()]

    def _resolve_properties(self, session: Session, rule: RecurrenceRule) -> List[PropertyRef]:
        """Expand the rule target into the concrete properties to create tasks for."""
        if not rule.property_id and not rule.owner_id:
            raise GenerationError("Rule has neither a property nor an owner", rule_id=rule.id)

        target = rule.target
        if isinstance(target, OwnerTarget):
            properties = session.exec(
                select(Property).where(Property.owner_id == target.owner_id).order_by(Property.name)
            ).all()
            if not properties:
                raise GenerationError(f"Owner {target.owner_id} has no properties", rule_id=rule.id)
        else:
            prop = session.get(Property, target.property_id)
            if prop is None:
                raise GenerationError(f"Property {target.property_id} does not exist", rule_id=rule.id)
            properties = [prop]

        return [PropertyRef(id=p.id, owner_id=p.owner_id, name=p.name) for p in properties]

    def _run_rule(
        self,
        rule_id: int,
        expected: date,
        today: date,
        generated_at: datetime,
        gate: Optional[CommitGate] = None,
    ) -> RuleOutcome:
        """Process one rule, taking up to max_catch_up_steps overdue occurrences."""
        total = RuleOutcome(rule_id=rule_id, status="skipped")
        for _ in range(self.settings.max_catch_up_steps):
            outcome = self.process_rule(rule_id, expected, generated_at, gate)
            if outcome.status == "failed":
                # Earlier steps stay committed; the failing occurrence is retried next run
                outcome.generated += total.generated
                return outcome
            if outcome.status == "skipped":
                break
            total.status = "generated"
            total.generated += outcome.generated
            total.deactivated = outcome.deactivated
            total.next_run_date = outcome.next_run_date
            if outcome.deactivated or outcome.next_run_date is None or outcome.next_run_date > today:
                break
            expected = outcome.next_run_date
        return total

    def _run_rules(self, due_rules: List[Tuple[int, date]], today: date, generated_at: datetime):
        """
        Yield (rule_id, outcome) for every due rule.

        Rules run in batches of max_workers; each batch is bounded by
        rule_timeout_seconds. A stuck rule is reported failed and its gate is
        closed, so its abandoned worker cannot commit later; the remaining
        rules continue on a fresh pool.
        """
        workers = self.settings.max_workers
        timeout = self.settings.rule_timeout_seconds
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rule-generation")
        try:
            for batch_start in range(0, len(due_rules), workers):
                batch = due_rules[batch_start:batch_start + workers]
                gates = [CommitGate() for _ in batch]
                futures = [
                    (rule_id, gate, executor.submit(self._run_rule, rule_id, expected, today, generated_at, gate))
                    for (rule_id, expected), gate in zip(batch, gates)
                ]
                deadline = timer.monotonic() + timeout
                stuck = False
                for rule_id, gate, future in futures:
                    try:
                        outcome = future.result(timeout=max(0.0, deadline - timer.monotonic()))
                    except FuturesTimeoutError:
                        # Earlier catch-up steps may have committed before the deadline
                        committed = gate.close()
                        if committed and future.done():
                            outcome = future.result()
                        else:
                            stuck = True
                            outcome = RuleOutcome(
                                rule_id=rule_id,
                                status="failed",
                                generated=committed,
                                error=f"Generation timed out after {timeout} seconds",
                            )
                    yield rule_id, outcome
                if stuck:
                    executor.shutdown(wait=False, cancel_futures=True)
                    executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="rule-generation")
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _collect(self, result: RunResult, rule_id: int, outcome: RuleOutcome) -> None:
        metrics_collector.rule_processed()
        result.generated_count += outcome.generated
        if outcome.generated:
            metrics_collector.tasks_generated(outcome.generated)

        if outcome.status == "failed":
            result.errors.append(RunError(rule_id=rule_id, message=outcome.error or "Unknown error"))
            metrics_collector.generation_error()
            generation_logger.warning("Recurring rule generation failed", rule_id=rule_id, error=outcome.error)
            return

        if outcome.status == "skipped":
            result.skipped_count += 1
            return

        result.processed_count += 1
        if outcome.deactivated:
            result.deactivated_count += 1
            metrics_collector.rule_deactivated()
