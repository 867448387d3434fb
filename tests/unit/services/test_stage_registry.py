from __future__ import annotations

import pytest
from sqlalchemy import func, select

from orderflow.core.exceptions import NotFoundError, ValidationError
from orderflow.models import DEFAULT_STAGE_COLOR, Stage, WorkItem
from orderflow.services.reconciliation_engine import ReconciliationEngine
from orderflow.services.stage_registry import StageRegistry, stage_defaults_for_status
from orderflow.services.transition_ledger import TransitionLedger


def _stage_count(session, tenant_id: int, status: str) -> int:
    return session.scalar(
        select(func.count(Stage.id)).where(Stage.tenant_id == tenant_id, Stage.external_status == status)
    )


def test_ensure_stage_uses_known_status_defaults(session, tenant):
    stage = StageRegistry(session).ensure_stage_for_external_status(tenant.id, "processing")

    assert stage.name == "Processing"
    assert stage.color == "#3B82F6"
    assert stage.position == 0
    assert stage.external_status == "processing"
    assert stage.is_hidden is False


def test_ensure_stage_is_idempotent_and_normalizes_status(session, tenant):
    registry = StageRegistry(session)
    first = registry.ensure_stage_for_external_status(tenant.id, "on-hold")
    second = registry.ensure_stage_for_external_status(tenant.id, "  On-Hold ")

    assert first.id == second.id
    assert _stage_count(session, tenant.id, "on-hold") == 1


def test_unknown_status_is_title_cased_at_next_position(session, tenant):
    registry = StageRegistry(session)
    registry.ensure_stage_for_external_status(tenant.id, "pending")
    stage = registry.ensure_stage_for_external_status(tenant.id, "ready-to_ship")

    assert stage.name == "Ready To Ship"
    assert stage.color == DEFAULT_STAGE_COLOR
    assert stage.position == 1


def test_stage_defaults_lookup():
    assert stage_defaults_for_status("checkout-draft") == ("Draft", "#9CA3AF")
    assert stage_defaults_for_status("awaiting_pickup") == ("Awaiting Pickup", DEFAULT_STAGE_COLOR)


def test_blank_status_is_rejected(session, tenant):
    with pytest.raises(ValidationError):
        StageRegistry(session).ensure_stage_for_external_status(tenant.id, "   ")


def test_stages_are_scoped_per_tenant(session, tenant, other_tenant):
    registry = StageRegistry(session)
    ours = registry.ensure_stage_for_external_status(tenant.id, "completed")
    theirs = registry.ensure_stage_for_external_status(other_tenant.id, "completed")

    assert ours.id != theirs.id
    assert [stage.id for stage in registry.list_stages(tenant.id)] == [ours.id]


def test_ensure_stages_batch_counts_created(session, tenant):
    registry = StageRegistry(session)
    registry.ensure_stage_for_external_status(tenant.id, "processing")

    stages, created = registry.ensure_stages(tenant.id, ["processing", "completed", "Completed", "refunded"])

    assert created == 2
    assert [stage.external_status for stage in stages] == ["processing", "completed", "refunded"]


def test_replace_stages_reassigns_positions_and_keeps_ids(session, tenant):
    registry = StageRegistry(session)
    processing = registry.ensure_stage_for_external_status(tenant.id, "processing")
    registry.ensure_stage_for_external_status(tenant.id, "completed")

    stages = registry.replace_stages(
        tenant.id,
        [
            {"name": "Design", "color": "#112233"},
            {"id": processing.id, "name": "Cutting", "external_status": "processing"},
            {"name": "Shipped", "external_status": "Completed", "is_hidden": True},
        ],
    )

    assert [stage.name for stage in stages] == ["Design", "Cutting", "Shipped"]
    assert [stage.position for stage in stages] == [0, 1, 2]
    assert stages[0].external_status is None
    assert stages[0].color == "#112233"
    assert stages[1].id == processing.id
    assert stages[2].external_status == "completed"
    assert stages[2].is_hidden is True
    assert stages[2].color == DEFAULT_STAGE_COLOR


def test_replace_stages_does_not_repair_work_items(session, tenant, make_order):
    order = make_order("completed")
    engine = ReconciliationEngine(session)
    engine.reconcile_from_external(order.id, tenant.id, "completed")
    old_stage_id = session.scalar(select(WorkItem.stage_id).where(WorkItem.order_id == order.id))

    StageRegistry(session).replace_stages(tenant.id, [{"name": "Design"}])

    assert session.scalar(select(WorkItem.stage_id).where(WorkItem.order_id == order.id)) == old_stage_id
    assert session.get(Stage, old_stage_id) is None


def test_replace_stages_drops_stages_named_in_history(session, tenant, make_order):
    order = make_order("processing")
    engine = ReconciliationEngine(session)
    engine.reconcile_from_external(order.id, tenant.id, "processing")
    engine.reconcile_from_external(order.id, tenant.id, "completed")

    stages = StageRegistry(session).replace_stages(
        tenant.id, [{"name": "Design"}, {"name": "Completed", "external_status": "completed"}]
    )

    assert [stage.name for stage in stages] == ["Design", "Completed"]
    history = TransitionLedger(session).history(order.id)
    assert len(history) == 2
    assert all(entry.to_stage_name is None for entry in history)


@pytest.mark.parametrize(
    "specs",
    [
        [],
        [{"name": "   "}],
        [{"color": "#FFFFFF"}],
        [{"name": "Design", "color": "pink"}],
        [{"name": "A", "external_status": "processing"}, {"name": "B", "external_status": "Processing"}],
    ],
)
def test_replace_stages_rejects_invalid_specs(session, tenant, specs):
    registry = StageRegistry(session)
    registry.ensure_stage_for_external_status(tenant.id, "pending")

    with pytest.raises(ValidationError):
        registry.replace_stages(tenant.id, specs)

    assert [stage.external_status for stage in registry.list_stages(tenant.id)] == ["pending"]


def test_replace_stages_rejects_foreign_stage_id(session, tenant, other_tenant):
    registry = StageRegistry(session)
    foreign = registry.ensure_stage_for_external_status(other_tenant.id, "pending")

    with pytest.raises(ValidationError):
        registry.replace_stages(tenant.id, [{"id": foreign.id, "name": "Stolen"}])


def test_set_visibility(session, tenant, other_tenant):
    registry = StageRegistry(session)
    stage = registry.ensure_stage_for_external_status(tenant.id, "pending")

    assert registry.set_visibility(tenant.id, stage.id, True).is_hidden is True
    with pytest.raises(NotFoundError):
        registry.set_visibility(other_tenant.id, stage.id, False)


def test_first_stage(session, tenant):
    registry = StageRegistry(session)
    assert registry.first_stage(tenant.id) is None

    registry.replace_stages(tenant.id, [{"name": "Design"}, {"name": "Print"}])
    assert registry.first_stage(tenant.id).name == "Design"


def test_concurrent_creation_keeps_one_row_and_loser_reads_winner(session_factory, tenant):
    winner_session = session_factory()
    loser_session = session_factory()
    try:
        winner = StageRegistry(winner_session).ensure_stage_for_external_status(tenant.id, "shipped")

        loser = StageRegistry(loser_session)
        real_lookup = loser.find_by_external_status
        calls = {"count": 0}

        def stale_first_lookup(tenant_id, status):
            # The loser's existence check ran before the winner committed.
            calls["count"] += 1
            if calls["count"] == 1:
                return None
            return real_lookup(tenant_id, status)

        loser.find_by_external_status = stale_first_lookup
        resolved = loser.ensure_stage_for_external_status(tenant.id, "shipped")

        assert resolved.id == winner.id
        assert calls["count"] == 2
        assert _stage_count(loser_session, tenant.id, "shipped") == 1
    finally:
        winner_session.close()
        loser_session.close()
