"""
Shared fixtures: a fresh schema per test, a pinned clock, the default
policy, the two services and a tenancy builder.

Set ``DATABASE_URL`` to run against PostgreSQL; the default is an
in-memory SQLite database.
"""

import json
import logging
import os
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from lodger_config.schema import LodgerPolicy
from lodger_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from lodger_kernel.domain.clock import DeterministicClock
from lodger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from lodger_modules.tenancy.notice_service import NoticeService
from lodger_modules.tenancy.service import TenancyService

ACTOR_ID = uuid4()
LANDLORD_ID = uuid4()
LODGER_ID = uuid4()

SCENARIO_START = date(2025, 10, 15)
SCENARIO_RENT = Decimal("850.00")


@pytest.fixture(autouse=True, scope="session")
def _structured_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _fresh_log_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """Call the yielded function to get every lodger_kernel record so far, parsed."""
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    base = logging.getLogger("lodger_kernel")
    level = base.level
    base.setLevel(logging.DEBUG)
    base.addHandler(handler)

    yield lambda: [json.loads(line) for line in stream.getvalue().splitlines() if line]

    base.removeHandler(handler)
    base.setLevel(level)


@pytest.fixture
def engine():
    eng = init_engine_from_url(os.environ.get("DATABASE_URL", "sqlite:///:memory:"))
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session(engine):
    s = get_session()
    yield s
    s.rollback()
    s.close()


@pytest.fixture
def clock():
    return DeterministicClock.on(SCENARIO_START)


@pytest.fixture
def policy():
    return LodgerPolicy()


@pytest.fixture
def tenancy_service(session, policy, clock):
    return TenancyService(session, policy=policy, clock=clock)


@pytest.fixture
def notice_service(session, policy, clock):
    return NoticeService(session, policy=policy, clock=clock)


@pytest.fixture
def make_tenancy(tenancy_service):
    """Build an active £850/month tenancy starting 15/10/2025; keywords override."""

    def _make(**overrides):
        terms = dict(
            landlord_id=LANDLORD_ID,
            lodger_id=LODGER_ID,
            start_date=SCENARIO_START,
            monthly_rent=SCENARIO_RENT,
            actor_id=ACTOR_ID,
        )
        terms.update(overrides)
        return tenancy_service.create_tenancy(**terms)

    return _make


@pytest.fixture
def actor_id():
    return ACTOR_ID


@pytest.fixture
def landlord_id():
    return LANDLORD_ID


@pytest.fixture
def lodger_id():
    return LODGER_ID
