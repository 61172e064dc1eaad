from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from marketplace.core import config


engine = create_engine(config.DATABASE_URL, echo=config.DATABASE_ECHO)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_scheduling_schema_checked = False


def ensure_scheduling_schema(bind: Engine | None = None) -> None:
    global _scheduling_schema_checked

    if _scheduling_schema_checked:
        return

    target = bind or engine

    with _schema_lock:
        if _scheduling_schema_checked:
            return

        inspector = inspect(target)
        table_names = set(inspector.get_table_names())

        if not {'appointments', 'appointment_periods'} <= table_names:
            _scheduling_schema_checked = True
            return

        with target.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointment_periods_specialist_range '
                    'ON appointment_periods(specialist_id, start_time, end_time)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_specialist_date '
                    'ON appointments(specialist_id, date)'
                )
            )

            if target.dialect.name == 'postgresql':
                # Overlapping periods for one specialist are rejected by the database itself.
                connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
                connection.execute(
                    text(
                        "DO $$ BEGIN "
                        "IF NOT EXISTS (SELECT 1 FROM pg_constraint "
                        "WHERE conname = 'appointment_periods_no_overlap') THEN "
                        "ALTER TABLE appointment_periods ADD CONSTRAINT appointment_periods_no_overlap "
                        "EXCLUDE USING gist (specialist_id WITH =, "
                        "tsrange(start_time, end_time, '[)') WITH &&); "
                        "END IF; END $$;"
                    )
                )

        _scheduling_schema_checked = True


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
