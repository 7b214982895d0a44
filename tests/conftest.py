"""Shared pytest fixtures and configuration."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from replenish.db.models import Base, Organization, SalesDaily, StockSnapshot, Warehouse
from tests.factories import ORG_ID, ORG_KEY, OTHER_ORG_ID, OTHER_ORG_KEY


@pytest.fixture
def engine():
    """In-memory SQLite shared across threads (TestClient runs sync routes in a pool)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def db(session_factory) -> Session:
    """Create in-memory SQLite database for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def orgs(db):
    """Two organizations with API keys."""
    db.add_all(
        [
            Organization(id=ORG_ID, name="Acme", api_key=ORG_KEY),
            Organization(id=OTHER_ORG_ID, name="Globex", api_key=OTHER_ORG_KEY),
        ]
    )
    db.commit()
    return ORG_ID, OTHER_ORG_ID


@pytest.fixture
def warehouse(db, orgs):
    wh = Warehouse(id="W1", org_id=ORG_ID, name="Kyiv Central", timezone="Europe/Kyiv")
    db.add(wh)
    db.commit()
    return wh


@pytest.fixture
def add_daily_sales(db) -> Callable[..., None]:
    """Insert rollup rows: add_daily_sales(sku, [(day, units), ...], warehouse_id=..)."""

    def _add(sku, days_units, warehouse_id="W1", org_id=ORG_ID, channel="ALL"):
        for day, units in days_units:
            db.add(
                SalesDaily(
                    org_id=org_id,
                    date=day,
                    sku=sku,
                    warehouse_id=warehouse_id,
                    channel=channel,
                    units=units,
                    revenue=units * 10.0,
                    orders=1,
                )
            )
        db.commit()

    return _add


@pytest.fixture
def add_stock(db) -> Callable[..., None]:
    """Insert one stock snapshot row."""

    def _add(sku, day, qty, warehouse_id="W1", org_id=ORG_ID, batch_id="_default", expiry=None):
        db.add(
            StockSnapshot(
                org_id=org_id,
                date=day,
                sku=sku,
                warehouse_id=warehouse_id,
                batch_id=batch_id,
                qty_on_hand=qty,
                expiry_date=expiry,
            )
        )
        db.commit()

    return _add


@pytest.fixture
def client(engine, session_factory, orgs):
    """TestClient bound to the in-memory database."""
    from replenish.web.deps import get_db
    from replenish.web.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def auth() -> dict[str, str]:
    return {"X-API-Key": ORG_KEY}
