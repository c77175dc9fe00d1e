"""
Pytest fixtures for the rental ledger test suite.

Provides:
- A file-backed SQLite engine per test (tables created fresh)
- A seeded ownership graph (admin, owners, buildings, tenants)
- A LedgerService wired to a deterministic clock and a no-op sleep
- Captured structured logs

Environment Variables:
- None.  Configuration is built in-process; RENTAL_LEDGER_* variables are
  removed for every test so a developer's shell cannot leak into the run.
"""

import json
import logging
import random
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO
from uuid import UUID

import pytest
from sqlalchemy.orm import Session, sessionmaker

from rental_config import CONFIG_PATH_ENV, DATABASE_URL_ENV, reset_active_config
from rental_config.schema import LedgerConfig
from rental_kernel.db.engine import build_engine, create_tables, session_scope
from rental_kernel.domain.clock import DeterministicClock
from rental_kernel.domain.dtos import Actor, ContractInput, ContractTerms
from rental_kernel.domain.values import UserRole
from rental_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from rental_kernel.models import (
    Apartment,
    ApartmentAssignment,
    Building,
    BuildingAssignment,
    Floor,
    Tenant,
    User,
)
from rental_services import LedgerService

# =============================================================================
# Logging and configuration fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
    monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
    reset_active_config()
    yield
    reset_active_config()


@pytest.fixture
def captured_logs():
    """
    Capture rental_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, ledger):
            ledger.create_transaction(...)
            logs = captured_logs()
            assert any(r["message"] == "transaction_recorded" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("rental_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    """A fresh SQLite database file with every ledger table."""
    eng = build_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_tables(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    """A session for direct kernel-level tests; rolled back at teardown."""
    s = session_factory()
    yield s
    s.rollback()
    s.close()


# =============================================================================
# Ownership graph
# =============================================================================


@dataclass(frozen=True)
class World:
    """Ids of the seeded ownership graph.

    owner_a administers buildings 1 and 2, owner_b administers building 3,
    owner_empty administers nothing.  tenant_1/2/3 currently live in
    apartment_1/2/3 (one per building).  tenant_moved lived in apartment_1
    and now lives in apartment_3.
    """

    admin: Actor
    owner_a: Actor
    owner_b: Actor
    owner_empty: Actor
    manager: Actor
    building_1: UUID
    building_2: UUID
    building_3: UUID
    apartment_1: UUID
    apartment_2: UUID
    apartment_3: UUID
    tenant_1: UUID
    tenant_2: UUID
    tenant_3: UUID
    tenant_moved: UUID


def _user(session: Session, first: str, role: UserRole) -> User:
    user = User(
        first_name=first,
        last_name="Test",
        email=f"{first.lower()}@example.com",
        phone_number="+971500000000",
        role=role.value,
    )
    session.add(user)
    return user


def _building(session: Session, name: str, owner: User) -> tuple[Building, Apartment]:
    building = Building(building_name=name, building_address=f"{name} Street")
    session.add(building)
    session.flush()
    session.add(BuildingAssignment(building_id=building.id, owner_id=owner.id))
    floor = Floor(building_id=building.id, floor_name="Ground")
    session.add(floor)
    session.flush()
    apartment = Apartment(
        floor_id=floor.id,
        unit_number=f"{name[-1]}01",
        bedrooms=2,
        bathrooms=1,
        rent_price=Decimal("1000.00"),
    )
    session.add(apartment)
    session.flush()
    return building, apartment


def _tenant(session: Session, first: str, apartment: Apartment) -> Tenant:
    user = _user(session, first, UserRole.TENANT)
    session.flush()
    tenant = Tenant(user_id=user.id)
    session.add(tenant)
    session.flush()
    session.add(
        ApartmentAssignment(
            tenant_id=tenant.id, apartment_id=apartment.id, assigned_on=date(2023, 1, 1)
        )
    )
    return tenant


@pytest.fixture
def world(session_factory) -> World:
    with session_scope(session_factory) as s:
        admin = _user(s, "Admin", UserRole.ADMIN)
        owner_a = _user(s, "Alice", UserRole.OWNER)
        owner_b = _user(s, "Bob", UserRole.OWNER)
        owner_empty = _user(s, "Eve", UserRole.OWNER)
        manager = _user(s, "Mona", UserRole.MANAGER)
        s.flush()

        b1, apt1 = _building(s, "Tower 1", owner_a)
        b2, apt2 = _building(s, "Tower 2", owner_a)
        b3, apt3 = _building(s, "Tower 3", owner_b)

        t1 = _tenant(s, "Tariq", apt1)
        t2 = _tenant(s, "Tala", apt2)
        t3 = _tenant(s, "Theo", apt3)
        moved = _tenant(s, "Maya", apt3)
        s.add(
            ApartmentAssignment(
                tenant_id=moved.id,
                apartment_id=apt1.id,
                assigned_on=date(2022, 1, 1),
                released_on=date(2022, 12, 31),
            )
        )
        s.flush()

        return World(
            admin=Actor(admin.id, UserRole.ADMIN),
            owner_a=Actor(owner_a.id, UserRole.OWNER),
            owner_b=Actor(owner_b.id, UserRole.OWNER),
            owner_empty=Actor(owner_empty.id, UserRole.OWNER),
            manager=Actor(manager.id, UserRole.MANAGER),
            building_1=b1.id,
            building_2=b2.id,
            building_3=b3.id,
            apartment_1=apt1.id,
            apartment_2=apt2.id,
            apartment_3=apt3.id,
            tenant_1=t1.id,
            tenant_2=t2.id,
            tenant_3=t3.id,
            tenant_moved=moved.id,
        )


# =============================================================================
# Ledger
# =============================================================================


@pytest.fixture
def clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 3, 15, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def sleeps() -> list[float]:
    """Delays the retry wrapper asked for, instead of sleeping."""
    return []


@pytest.fixture
def ledger(session_factory, clock, sleeps) -> LedgerService:
    return LedgerService(
        session_factory,
        config=LedgerConfig(),
        clock=clock,
        rng=random.Random(20240315),
        sleep=sleeps.append,
    )


@pytest.fixture
def contract(ledger, world):
    """A 2024 calendar-year contract for tenant_1 in apartment_1 (owner_a)."""
    return ledger.create_contract(
        world.admin,
        ContractInput(
            tenant_id=world.tenant_1,
            apartment_id=world.apartment_1,
            owner_id=world.owner_a.id,
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
            monthly_rent=Decimal("1000.00"),
        ),
        generate_schedules=False,
    )


@pytest.fixture
def terms(contract) -> ContractTerms:
    return ContractTerms(
        contract_id=contract.id,
        tenant_id=contract.tenant_id,
        apartment_id=contract.apartment_id,
        start_date=contract.start_date,
        end_date=contract.end_date,
        monthly_rent=contract.monthly_rent,
        security_fee=contract.security_fee,
    )
