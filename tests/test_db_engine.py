"""
Tests for the module-level engine, the unit-of-work scope and named sequences.

Verifies:
- init_engine_from_url wires get_engine / session_scope without a factory
- SQLite connections enforce foreign keys and support savepoints
- session_scope rolls back on error and re-raises
- SequenceService allocates gap-free values per name
"""

from uuid import uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from rental_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
    session_scope,
)
from rental_kernel.models import Floor
from rental_kernel.services.sequence_service import SequenceService


@pytest.fixture
def module_engine(tmp_path):
    engine = init_engine_from_url(f"sqlite:///{tmp_path / 'module.db'}")
    create_tables()
    yield engine
    drop_tables()
    reset_engine()


def test_engine_not_initialized():
    reset_engine()

    with pytest.raises(RuntimeError, match="not initialized"):
        get_engine()
    with pytest.raises(RuntimeError, match="not initialized"):
        get_session()


def test_init_engine_from_url(module_engine):
    assert get_engine() is module_engine
    assert module_engine.dialect.name == "sqlite"


def test_foreign_keys_enforced(module_engine):
    with session_scope() as session:
        assert session.execute(text("PRAGMA foreign_keys")).scalar_one() == 1

    with pytest.raises(IntegrityError):
        with session_scope() as session:
            session.add(Floor(building_id=uuid4(), floor_name="Ghost"))


def test_session_scope_rolls_back(module_engine):
    with pytest.raises(ValueError):
        with session_scope() as session:
            SequenceService(session).next_value("invoice:202403")
            raise ValueError("boom")

    with session_scope() as session:
        assert SequenceService(session).current_value("invoice:202403") is None


def test_savepoint_rollback_keeps_outer_work(module_engine):
    with session_scope() as session:
        SequenceService(session).next_value("outer")
        savepoint = session.begin_nested()
        SequenceService(session).next_value("inner")
        savepoint.rollback()

    with session_scope() as session:
        sequences = SequenceService(session)
        assert sequences.current_value("outer") == 1
        assert sequences.current_value("inner") is None


class TestSequenceService:

    def test_values_increase_per_name(self, module_engine):
        with session_scope() as session:
            sequences = SequenceService(session)
            assert [sequences.next_value("invoice:202403") for _ in range(3)] == [1, 2, 3]
            assert sequences.next_value("invoice:202404") == 1

        with session_scope() as session:
            assert SequenceService(session).current_value("invoice:202403") == 3

    def test_unknown_sequence_has_no_value(self, module_engine):
        with session_scope() as session:
            assert SequenceService(session).current_value("never-used") is None
