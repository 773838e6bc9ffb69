from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from src.db.core import Base, configure_sqlite

ROOT = Path(__file__).resolve().parents[1]


def test_initial_revision_creates_every_mapped_table():
    engine = create_engine("sqlite://", poolclass=StaticPool)
    configure_sqlite(engine)

    config = Config(str(ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(ROOT / "alembic"))

    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")

    tables = set(inspect(engine).get_table_names())
    assert set(Base.metadata.tables) <= tables

    columns = {c["name"] for c in inspect(engine).get_columns("accounts_allocation")}
    assert {"account_id", "type", "balance_per_type", "allocation_date"} <= columns

    income_columns = {c["name"] for c in inspect(engine).get_columns("incomes")}
    assert {"allocation_type", "amount", "income_source", "received_date"} <= income_columns
    engine.dispose()
