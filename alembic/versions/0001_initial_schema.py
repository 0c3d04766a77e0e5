"""Initial schema: composer tokens, telemetry events and the product catalog.

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "composer_tokens",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("display_prefix", sa.String(32), nullable=False),
        sa.Column("name", sa.String(255), nullable=False, server_default="Default"),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("token_hash", name="uq_composer_tokens_token_hash"),
    )
    op.create_index("ix_composer_tokens_owner_id", "composer_tokens", ["owner_id"])
    op.create_index(
        "ix_composer_tokens_owner_revoked",
        "composer_tokens",
        ["owner_id", "revoked_at"],
    )

    telemetry_type = postgresql.ENUM("usage", "error", name="telemetry_type")
    telemetry_type.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "telemetry_events",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("site_hash", sa.String(64), nullable=False),
        sa.Column(
            "data_type",
            postgresql.ENUM("usage", "error", name="telemetry_type", create_type=False),
            nullable=False,
        ),
        sa.Column("plugin_version", sa.String(20), nullable=True),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_telemetry_events_site_hash", "telemetry_events", ["site_hash"])
    op.create_index("ix_telemetry_events_created_at", "telemetry_events", ["created_at"])
    op.create_index(
        "ix_telemetry_events_type_created",
        "telemetry_events",
        ["data_type", "created_at"],
    )

    op.create_table(
        "products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("sku", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("software_type", sa.String(20), nullable=False, server_default="plugin"),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default="[]"),
        sa.Column("requires_wp", sa.String(20), nullable=True),
        sa.Column("tested_up_to", sa.String(20), nullable=True),
        sa.Column("downloadable", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_products_sku", "products", ["sku"], unique=True)

    op.create_table(
        "product_files",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("file_key", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", "file_key", name="uq_product_files_product_key"),
    )
    op.create_index("ix_product_files_product_id", "product_files", ["product_id"])

    op.create_table(
        "entitlements",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", sa.String(255), nullable=False),
        sa.Column("product_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("order_key", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("owner_id", "product_id", name="uq_entitlements_owner_product"),
    )
    op.create_index("ix_entitlements_owner_id", "entitlements", ["owner_id"])
    op.create_index("ix_entitlements_product_id", "entitlements", ["product_id"])


def downgrade() -> None:
    op.drop_index("ix_entitlements_product_id", table_name="entitlements")
    op.drop_index("ix_entitlements_owner_id", table_name="entitlements")
    op.drop_table("entitlements")

    op.drop_index("ix_product_files_product_id", table_name="product_files")
    op.drop_table("product_files")

    op.drop_index("ix_products_sku", table_name="products")
    op.drop_table("products")

    op.drop_index("ix_telemetry_events_type_created", table_name="telemetry_events")
    op.drop_index("ix_telemetry_events_created_at", table_name="telemetry_events")
    op.drop_index("ix_telemetry_events_site_hash", table_name="telemetry_events")
    op.drop_table("telemetry_events")
    postgresql.ENUM(name="telemetry_type").drop(op.get_bind(), checkfirst=True)

    op.drop_index("ix_composer_tokens_owner_revoked", table_name="composer_tokens")
    op.drop_index("ix_composer_tokens_owner_id", table_name="composer_tokens")
    op.drop_table("composer_tokens")
