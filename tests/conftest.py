from __future__ import annotations

import itertools
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from orderflow.core.exceptions import ExternalSyncFailure
from orderflow.database.db import build_engine
from orderflow.models import Base, CachedOrder, Tenant
from orderflow.schemas.customization import CustomizationRecord


class FakeOrderSystem:
    """In-memory stand-in for the WooCommerce client."""

    def __init__(self) -> None:
        self.orders = []
        self.pushes: list[tuple[int, int, str]] = []
        self.fail_push = False
        self.fetch_calls: list[tuple[int, datetime]] = []

    def fetch_orders(self, tenant_id, since):
        self.fetch_calls.append((tenant_id, since))
        return list(self.orders)

    def push_status(self, tenant_id, external_order_id, status):
        self.pushes.append((tenant_id, external_order_id, status))
        if self.fail_push:
            raise ExternalSyncFailure("store unreachable", 503)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'orderflow_test.db'}")
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def session(session_factory):
    db = session_factory()
    yield db
    db.close()


def _add_tenant(session, key: str) -> Tenant:
    tenant = Tenant(tenant_key=key, name=key.title())
    session.add(tenant)
    session.commit()
    return tenant


@pytest.fixture
def tenant(session):
    return _add_tenant(session, "acme-boards")


@pytest.fixture
def other_tenant(session):
    return _add_tenant(session, "rival-boards")


@pytest.fixture
def order_system():
    return FakeOrderSystem()


@pytest.fixture
def make_order(session, tenant):
    external_ids = itertools.count(5001)

    def _make(
        status: str = "processing",
        *,
        tenant_id: int | None = None,
        customization: dict | str | None = None,
        date_created: datetime | None = None,
        line_items: list | None = None,
    ) -> CachedOrder:
        if isinstance(customization, dict):
            customization = CustomizationRecord(**customization).model_dump_json()
        order = CachedOrder(
            tenant_id=tenant_id or tenant.id,
            external_order_id=next(external_ids),
            status=status,
            date_created=date_created or datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc),
            customer_name="Ada Lovelace",
            total=Decimal("49.90"),
            raw_data={"line_items": line_items or []},
            customization_details=customization,
        )
        session.add(order)
        session.commit()
        return order

    return _make
