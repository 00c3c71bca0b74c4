import os

# Point settings at SQLite before anything builds the module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from salon_scheduler.core.clock import operating_tz
from salon_scheduler.db.base import Base
from salon_scheduler.db.session import get_db
from salon_scheduler.models import (
    Salon, Barber, Service, SchedulingMode, BarberPosition,
)
from salon_scheduler.services import session_reconciler
from salon_scheduler.services.session_reconciler import SessionDraft

# Pinned clock for engine tests: 08:00 in the operating timezone
NOW = datetime(2030, 3, 4, 8, 0, tzinfo=operating_tz())
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seed(db):
    salon = Salon(name="Fade Street", address="12 MG Road")
    db.add(salon)
    db.flush()

    def barber(name, mode, position=BarberPosition.senior):
        b = Barber(salon_id=salon.id, name=name, mode=mode, position=position)
        db.add(b)
        return b

    data = SimpleNamespace(
        salon=salon,
        slotted=barber("Arjun", SchedulingMode.slotted),
        slotted_alt=barber("Meera", SchedulingMode.slotted, BarberPosition.master),
        walk_in=barber("Kabir", SchedulingMode.walk_in),
        walk_in_alt=barber("Rhea", SchedulingMode.walk_in, BarberPosition.junior),
        haircut=Service(salon_id=salon.id, name="Haircut", default_service_time=30),
        beard=Service(salon_id=salon.id, name="Beard trim", default_service_time=15),
        colour=Service(salon_id=salon.id, name="Colour", default_service_time=90),
    )
    db.add_all([data.haircut, data.beard, data.colour])
    db.commit()
    return data


@pytest.fixture
def make_session(db):
    """Create one session through the reconciler and return it."""
    def _make(barber, day, start, end, now=NOW):
        result = session_reconciler.create_sessions(
            db, barber.id, barber.salon_id, [SessionDraft(day, start, end)], now=now,
        )
        return result.sessions[0]
    return _make


@pytest.fixture
def client(session_factory, seed):
    from salon_scheduler.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
