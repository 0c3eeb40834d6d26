"""Client stock ledger and uplift sales

Revision ID: a7c3e91f2b10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a7c3e91f2b10"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Reference data the stock core checks against
    op.create_table(
        "clients",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("contact", sa.String(length=64), nullable=True),
        sa.Column("address", sa.String(length=255), nullable=True),
        sa.Column("region", sa.String(length=128), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "sales_reps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("email"),
        sqlite_autoincrement=True,
    )
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=128), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sqlite_autoincrement=True,
    )

    # Client stock ledger
    op.create_table(
        "client_stock",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.UniqueConstraint("client_id", "product_id", name="uq_client_stock_client_product"),
        sa.CheckConstraint("quantity >= 0", name="ck_client_stock_quantity_non_negative"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_client_stock_client_id", "client_stock", ["client_id"], unique=False)
    op.create_index("ix_client_stock_product_id", "client_stock", ["product_id"], unique=False)
    op.create_index("ix_client_stock_quantity", "client_stock", ["quantity"], unique=False)

    # Uplift sales
    op.create_table(
        "uplift_sales",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("voided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["sales_reps.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_uplift_sales_status", "uplift_sales", ["status"], unique=False)
    op.create_index("ix_uplift_sales_client_created", "uplift_sales", ["client_id", "created_at"], unique=False)
    op.create_index("ix_uplift_sales_user_created", "uplift_sales", ["user_id", "created_at"], unique=False)

    op.create_table(
        "uplift_sale_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uplift_sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(14, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["uplift_sale_id"], ["uplift_sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.CheckConstraint("quantity > 0", name="ck_uplift_sale_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_uplift_sale_items_uplift_sale_id", "uplift_sale_items", ["uplift_sale_id"], unique=False)


def downgrade():
    op.drop_index("ix_uplift_sale_items_uplift_sale_id", table_name="uplift_sale_items")
    op.drop_table("uplift_sale_items")

    op.drop_index("ix_uplift_sales_user_created", table_name="uplift_sales")
    op.drop_index("ix_uplift_sales_client_created", table_name="uplift_sales")
    op.drop_index("ix_uplift_sales_status", table_name="uplift_sales")
    op.drop_table("uplift_sales")

    op.drop_index("ix_client_stock_quantity", table_name="client_stock")
    op.drop_index("ix_client_stock_product_id", table_name="client_stock")
    op.drop_index("ix_client_stock_client_id", table_name="client_stock")
    op.drop_table("client_stock")

    op.drop_table("products")
    op.drop_table("sales_reps")
    op.drop_table("clients")
