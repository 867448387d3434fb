"""workflow schema: tenants, cached orders, stages, work items, transitions

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_key", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_key"),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "email", name="uq_users_tenant_email"),
    )
    op.create_index("ix_users_tenant_id", "users", ["tenant_id"])

    op.create_table(
        "cached_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("external_order_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("date_created", sa.DateTime(timezone=True), nullable=False),
        sa.Column("date_modified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("customer_name", sa.String(length=255), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("customization_details", sa.Text(), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "external_order_id", name="uq_cached_orders_tenant_external"),
    )
    op.create_index("ix_cached_orders_tenant_id", "cached_orders", ["tenant_id"])
    op.create_index("idx_cached_orders_tenant_status", "cached_orders", ["tenant_id", "status"])
    op.create_index("idx_cached_orders_tenant_created", "cached_orders", ["tenant_id", "date_created"])

    op.create_table(
        "workflow_stages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("external_status", sa.String(length=50), nullable=True),
        sa.Column("is_hidden", sa.Boolean(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "external_status", name="uq_workflow_stages_tenant_external_status"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_workflow_stages_tenant_id", "workflow_stages", ["tenant_id"])
    op.create_index("idx_workflow_stages_tenant_position", "workflow_stages", ["tenant_id", "position"])

    op.create_table(
        "work_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("stage_id", sa.Integer(), nullable=False),
        sa.Column("assigned_to", sa.Integer(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_updated", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["cached_orders.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("order_id"),
    )
    op.create_index("idx_work_items_stage", "work_items", ["stage_id"])
    op.create_index("idx_work_items_assigned_to", "work_items", ["assigned_to"])

    op.create_table(
        "stage_transitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("from_stage_id", sa.Integer(), nullable=True),
        sa.Column("to_stage_id", sa.Integer(), nullable=False),
        sa.Column("actor_type", sa.Enum("human", "system", name="actor_type"), nullable=False),
        sa.Column("actor_user_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "(actor_type = 'system' AND actor_user_id IS NULL) "
            "OR (actor_type = 'human' AND actor_user_id IS NOT NULL)",
            name="ck_stage_transitions_actor",
        ),
        sa.ForeignKeyConstraint(["order_id"], ["work_items.order_id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_stage_transitions_order_created", "stage_transitions", ["order_id", "created_at"])


def downgrade() -> None:
    op.drop_index("idx_stage_transitions_order_created", table_name="stage_transitions")
    op.drop_table("stage_transitions")
    sa.Enum(name="actor_type").drop(op.get_bind(), checkfirst=True)

    op.drop_index("idx_work_items_assigned_to", table_name="work_items")
    op.drop_index("idx_work_items_stage", table_name="work_items")
    op.drop_table("work_items")

    op.drop_index("idx_workflow_stages_tenant_position", table_name="workflow_stages")
    op.drop_index("ix_workflow_stages_tenant_id", table_name="workflow_stages")
    op.drop_table("workflow_stages")

    op.drop_index("idx_cached_orders_tenant_created", table_name="cached_orders")
    op.drop_index("idx_cached_orders_tenant_status", table_name="cached_orders")
    op.drop_index("ix_cached_orders_tenant_id", table_name="cached_orders")
    op.drop_table("cached_orders")

    op.drop_index("ix_users_tenant_id", table_name="users")
    op.drop_table("users")
    op.drop_table("tenants")
