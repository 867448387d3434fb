from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select

import orderflow.api.v1.workflow as workflow_api
from orderflow.core.dependencies import get_db_session, get_order_system
from orderflow.main import create_app
from orderflow.models import TransitionRecord, WorkItem
from orderflow.services.reconciliation_engine import ReconciliationEngine
from orderflow.services.stage_registry import StageRegistry

PIPELINE = [
    {"name": "New", "external_status": "processing"},
    {"name": "Design"},
    {"name": "Shipped", "external_status": "completed"},
]


@pytest.fixture
def client(session_factory, order_system):
    app = create_app()

    def _db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db_session] = _db
    app.dependency_overrides[get_order_system] = lambda: order_system
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def headers(tenant):
    return {"X-Tenant-Id": str(tenant.id), "X-User-Id": "7"}


@pytest.fixture
def pipeline(session, tenant):
    stages = StageRegistry(session).replace_stages(tenant.id, PIPELINE)
    session.commit()
    return {stage.name: stage for stage in stages}


@pytest.fixture
def on_board(session, tenant, pipeline, make_order):
    def _place(status: str = "processing", **kwargs):
        order = make_order(status, **kwargs)
        ReconciliationEngine(session).reconcile_from_external(order.id, tenant.id, status)
        session.commit()
        return order

    return _place


def _url(path: str) -> str:
    return f"/api/v1/workflow{path}"


def test_health_is_open(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["database"] is True


def test_missing_tenant_header_is_unauthorized(client):
    assert client.get(_url("/stages")).status_code == 401


def test_malformed_tenant_header_is_bad_request(client):
    assert client.get(_url("/stages"), headers={"X-Tenant-Id": "acme"}).status_code == 400


def test_replace_stages_requires_a_user(client, tenant):
    response = client.put(_url("/stages"), json={"stages": PIPELINE}, headers={"X-Tenant-Id": str(tenant.id)})

    assert response.status_code == 401


def test_replace_and_list_stages(client, headers):
    response = client.put(_url("/stages"), json={"stages": PIPELINE}, headers=headers)

    assert response.status_code == 200
    assert [stage["name"] for stage in response.json()] == ["New", "Design", "Shipped"]

    listed = client.get(_url("/stages"), headers=headers).json()
    assert [stage["external_status"] for stage in listed] == ["processing", None, "completed"]


def test_replace_stages_rejects_duplicate_status(client, headers):
    stages = [{"name": "A", "external_status": "processing"}, {"name": "B", "external_status": "Processing"}]

    response = client.put(_url("/stages"), json={"stages": stages}, headers=headers)

    assert response.status_code == 422


def test_hide_stage(client, headers, pipeline):
    stage_id = pipeline["Design"].id

    response = client.patch(_url(f"/stages/{stage_id}/visibility"), json={"is_hidden": True}, headers=headers)

    assert response.status_code == 200
    assert response.json()["is_hidden"] is True


def test_board_lists_items_with_customization(client, headers, on_board):
    on_board(customization={"style": "Round", "font": "Serif"})
    on_board(customization={"style": "Square"})

    response = client.get(_url("/board"), params={"style": "Round"}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["items"][0]["customization"]["style"] == "Round"
    assert [stage["name"] for stage in body["stages"]] == ["New", "Design", "Shipped"]


def test_board_date_params_are_inclusive_calendar_days(client, headers, on_board):
    on_board(date_created=datetime(2024, 3, 10, 23, 30, tzinfo=timezone.utc))
    on_board(date_created=datetime(2024, 3, 11, 0, 30, tzinfo=timezone.utc))

    response = client.get(_url("/board"), params={"date_from": "2024-03-10", "date_to": "2024-03-10"}, headers=headers)

    assert response.json()["total"] == 1


def test_move_pushes_mapped_status(client, headers, session, tenant, pipeline, on_board, order_system):
    order = on_board("processing")

    response = client.patch(
        _url(f"/orders/{order.id}"),
        json={"stage_id": pipeline["Shipped"].id, "priority": 2},
        headers=headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["changed"] is True
    assert body["push"] == "pushed"
    assert body["priority"] == 2
    assert order_system.pushes == [(tenant.id, order.external_order_id, "completed")]
    session.expire_all()
    item = session.scalars(select(WorkItem).where(WorkItem.order_id == order.id)).one()
    assert item.stage_id == pipeline["Shipped"].id


def test_move_to_unmapped_stage_stays_local(client, headers, pipeline, on_board, order_system):
    order = on_board("processing")

    response = client.patch(_url(f"/orders/{order.id}"), json={"stage_id": pipeline["Design"].id}, headers=headers)

    assert response.json()["push"] == "skipped_unmapped"
    assert order_system.pushes == []


def test_unknown_order_is_not_found(client, headers, pipeline):
    response = client.patch(_url("/orders/999"), json={"stage_id": pipeline["New"].id}, headers=headers)

    assert response.status_code == 404


def test_edit_with_foreign_stage_changes_nothing(client, headers, session, other_tenant, on_board):
    order = on_board("processing")
    foreign = StageRegistry(session).ensure_stage_for_external_status(other_tenant.id, "completed")

    response = client.patch(
        _url(f"/orders/{order.id}"), json={"stage_id": foreign.id, "priority": 2, "notes": "rush"}, headers=headers
    )

    assert response.status_code == 404
    session.expire_all()
    item = session.scalars(select(WorkItem).where(WorkItem.order_id == order.id)).one()
    assert (item.priority, item.notes) == (0, None)


def test_other_tenants_order_is_not_found(client, other_tenant, on_board):
    order = on_board("processing")

    response = client.get(
        _url(f"/orders/{order.id}/history"), headers={"X-Tenant-Id": str(other_tenant.id), "X-User-Id": "7"}
    )

    assert response.status_code == 404


def test_enroll_without_stages_conflicts(client, headers, make_order):
    order = make_order("processing")

    response = client.post(_url(f"/orders/{order.id}/enroll"), headers=headers)

    assert response.status_code == 409


def test_enroll_places_order_at_first_stage(client, headers, pipeline, make_order):
    order = make_order("on-hold")

    response = client.post(_url(f"/orders/{order.id}/enroll"), headers=headers)

    assert response.status_code == 201
    assert response.json() == {"order_id": order.id, "stage_id": pipeline["New"].id}


def test_history_is_newest_first(client, headers, pipeline, on_board):
    order = on_board("processing")
    client.patch(_url(f"/orders/{order.id}"), json={"stage_id": pipeline["Design"].id}, headers=headers)

    history = client.get(_url(f"/orders/{order.id}/history"), headers=headers).json()

    assert [entry["to_stage_name"] for entry in history] == ["Design", "New"]
    assert history[0]["actor_type"] == "human"
    assert history[0]["actor_user_id"] == 7
    assert history[1]["actor_name"] == "System"


def test_bulk_update_reports_foreign_orders(client, headers, session, tenant, other_tenant, pipeline, on_board, make_order):
    mine = on_board("processing")
    foreign = make_order("processing", tenant_id=other_tenant.id)

    response = client.post(
        _url("/bulk-update"),
        json={"order_ids": [mine.id, foreign.id], "stage_id": pipeline["Design"].id, "assigned_to": 3},
        headers=headers,
    )

    body = response.json()
    assert (body["updated"], body["failed"]) == (1, 1)
    assert body["failures"][0]["order_id"] == foreign.id
    moves = session.scalars(select(TransitionRecord).where(TransitionRecord.order_id == mine.id)).all()
    assert len(moves) == 2


def test_stats_and_overdue(client, headers, on_board):
    on_board("processing")
    on_board("completed")

    stats = client.get(_url("/stats"), headers=headers).json()
    overdue = client.get(_url("/overdue"), params={"hours": 1}, headers=headers).json()

    assert stats["total_orders"] == 2
    assert stats["unassigned_orders"] == 2
    assert {row["stage_name"]: row["total_orders"] for row in stats["stages"]} == {"New": 1, "Design": 0, "Shipped": 1}
    assert overdue == []


def test_sync_enqueues_task(client, headers, tenant, monkeypatch):
    calls = []

    def _delay(tenant_id, days_back):
        calls.append((tenant_id, days_back))
        return SimpleNamespace(id="task-1")

    monkeypatch.setattr(workflow_api.sync_tenant_orders, "delay", _delay)

    response = client.post(_url("/sync"), params={"days_back": 7}, headers=headers)

    assert response.status_code == 202
    assert response.json() == {"task_id": "task-1", "tenant_id": tenant.id}
    assert calls == [(tenant.id, 7)]
