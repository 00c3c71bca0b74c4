from sqlalchemy import inspect
from sqlalchemy.orm import configure_mappers

from salon_scheduler.db.base import Base


def test_mappers_configure():
    configure_mappers()


def test_all_tables_registered():
    assert {
        "salons", "barbers", "services", "working_sessions", "slots",
        "leave_records", "appointments", "appointment_services",
    } <= set(Base.metadata.tables)


def test_tables_created(engine):
    assert "working_sessions" in inspect(engine).get_table_names()
