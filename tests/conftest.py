"""Shared fixtures: a file-backed SQLite database per test."""

# pylint: disable=redefined-outer-name

from typing import Any

import pytest
from sqlmodel import Session

from backoffice.db.config import create_db_engine
from backoffice.db.init import init_db
from backoffice.models import Owner, Property, User
from backoffice.services.recurring_rule_service import RecurringRuleService
from backoffice.utils.metrics import metrics_collector


@pytest.fixture
def db_engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'backoffice.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    with Session(db_engine) as session:
        yield session


@pytest.fixture
def seed(session) -> dict[str, Any]:
    """Two owners (one with two properties, one with none) and a staff user."""
    owner = Owner(id="owner-1", name="Harbour Lets")
    empty_owner = Owner(id="owner-2", name="New Owner")
    session.add(owner)
    session.add(empty_owner)
    session.flush()
    session.add(Property(id="prop-a", owner_id=owner.id, name="Apartment A"))
    session.add(Property(id="prop-b", owner_id=owner.id, name="Beach House"))
    session.add(User(id="user-1", email="cleaner@example.com", name="Cleaner"))
    session.commit()
    return {
        "owner_id": "owner-1",
        "empty_owner_id": "owner-2",
        "property_ids": ["prop-a", "prop-b"],
        "user_id": "user-1",
    }


@pytest.fixture
def rule_service(session) -> RecurringRuleService:
    return RecurringRuleService(session)


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics_collector.reset()
    yield
