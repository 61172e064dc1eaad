import pytest
from sqlalchemy import create_engine, inspect

from marketplace import database
from marketplace.database import Base


def test_ensure_scheduling_schema_adds_period_indexes(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(database, '_scheduling_schema_checked', False)
    engine = create_engine('sqlite:///:memory:')
    Base.metadata.create_all(bind=engine)

    database.ensure_scheduling_schema(bind=engine)

    inspector = inspect(engine)
    period_indexes = {index['name'] for index in inspector.get_indexes('appointment_periods')}
    appointment_indexes = {index['name'] for index in inspector.get_indexes('appointments')}
    assert 'idx_appointment_periods_specialist_range' in period_indexes
    assert 'idx_appointments_specialist_date' in appointment_indexes
    assert {'notes', 'created_at'} <= {column['name'] for column in inspector.get_columns('appointments')}
    assert database._scheduling_schema_checked is True


def test_ensure_scheduling_schema_skips_missing_tables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(database, '_scheduling_schema_checked', False)
    engine = create_engine('sqlite:///:memory:')

    database.ensure_scheduling_schema(bind=engine)

    assert inspect(engine).get_table_names() == []
