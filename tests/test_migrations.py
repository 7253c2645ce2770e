"""The initial migration creates the schema the models expect, and undoes it."""

import importlib.util
from pathlib import Path

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect

_VERSIONS = Path(__file__).resolve().parent.parent / "backend" / "migrations" / "versions"


def _load(name):
    spec = importlib.util.spec_from_file_location(name, _VERSIONS / f"{name}.py")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_initial_upgrade_and_downgrade():
    migration = _load("0001_initial")
    engine = create_engine("sqlite://")

    with engine.begin() as conn:
        ctx = MigrationContext.configure(conn)
        with Operations.context(ctx):
            migration.upgrade()

        inspector = inspect(conn)
        assert set(inspector.get_table_names()) == {"users", "cities"}

        user_columns = {c["name"] for c in inspector.get_columns("users")}
        assert {
            "email", "phone_number", "role", "password_hash", "password_changed_at",
            "password_reset_token", "password_reset_expires",
        } <= user_columns

        (fk,) = inspector.get_foreign_keys("cities")
        assert fk["referred_table"] == "users"
        assert fk["options"].get("ondelete") == "CASCADE"

        with Operations.context(ctx):
            migration.downgrade()
        assert inspect(conn).get_table_names() == []
