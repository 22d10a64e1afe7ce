"""Initial catalog schema.

Revision ID: 0001_initial_catalog
Revises:
Create Date: 2026-09-28
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001_initial_catalog"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("sku", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=False),
        sa.Column("stock_quantity", sa.Integer(), nullable=False),
        sa.Column(
            "stock_status",
            sa.Enum("IN_STOCK", "OUT_OF_STOCK", name="stockstatus", native_enum=False),
            nullable=False,
        ),
        sa.Column("price", sa.String(length=32), nullable=True),
        sa.Column("cost", sa.String(length=32), nullable=True),
        sa.Column("length", sa.String(length=32), nullable=True),
        sa.Column("width", sa.String(length=32), nullable=True),
        sa.Column("height", sa.String(length=32), nullable=True),
        sa.Column("weight", sa.String(length=32), nullable=True),
        sa.Column("image_ref", sa.String(length=255), nullable=True),
        sa.Column("distributor_id", sa.String(length=64), nullable=True),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_product"),
        sa.UniqueConstraint("sku", name="uq_product_product_sku"),
    )
    op.create_index(
        "ix_product_distributor_synced",
        "product",
        ["distributor_id", "last_synced_at"],
    )

    op.create_table(
        "category",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "kind",
            sa.Enum("REGULAR", "SPECIAL", "DEFAULT", name="categorykind", native_enum=False),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_category"),
        sa.UniqueConstraint("name", name="uq_category_category_name"),
    )

    op.create_table(
        "product_category",
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(
            ["product_id"],
            ["product.id"],
            name="fk_product_category_product_category_product_id_product",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["category_id"],
            ["category.id"],
            name="fk_product_category_product_category_category_id_category",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("product_id", "category_id", name="pk_product_category"),
    )

    op.create_table(
        "sync_state",
        sa.Column("key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key", name="pk_sync_state"),
    )


def downgrade() -> None:
    op.drop_table("sync_state")
    op.drop_table("product_category")
    op.drop_table("category")
    op.drop_index("ix_product_distributor_synced", table_name="product")
    op.drop_table("product")
