"""Add CHECK constraints for product, order and payment status columns.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from typing import Sequence, Union

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_check_constraint(
        "ck_products_status",
        "products",
        "status IN ('available', 'reserved', 'sold', 'archived')",
    )
    op.create_check_constraint(
        "ck_orders_status",
        "orders",
        "status IN ('pending', 'processing', 'shipped', 'delivered', 'cancelled')",
    )
    op.create_check_constraint(
        "ck_orders_payment_method",
        "orders",
        "payment_method IN ('blik', 'transfer')",
    )
    op.create_check_constraint(
        "ck_users_role",
        "users",
        "role IN ('customer', 'admin')",
    )


def downgrade() -> None:
    op.drop_constraint("ck_users_role", "users", type_="check")
    op.drop_constraint("ck_orders_payment_method", "orders", type_="check")
    op.drop_constraint("ck_orders_status", "orders", type_="check")
    op.drop_constraint("ck_products_status", "products", type_="check")
