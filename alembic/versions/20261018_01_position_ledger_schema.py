"""Position ledger schema baseline

Revision ID: 20261018_01
Revises: None
Create Date: 2026-10-18
"""
# pylint: disable=no-member,invalid-name,wrong-import-order

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261018_01"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "stock_transaction",
        sa.Column(
            "stock_transaction_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("inserted_seq", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("kind", sa.Text(), nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.Column("price", sa.Numeric(20, 2), nullable=False),
        sa.Column("transaction_timestamp_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("kind in ('BUY', 'SELL')", name="ck_stock_transaction_kind"),
        sa.CheckConstraint("currency in ('USD', 'SGD')", name="ck_stock_transaction_currency"),
        sa.CheckConstraint("quantity > 0", name="ck_stock_transaction_quantity_positive"),
        sa.CheckConstraint("price > 0", name="ck_stock_transaction_price_positive"),
        sa.UniqueConstraint("inserted_seq", name="uq_stock_transaction_inserted_seq"),
    )
    op.create_index(
        "ix_stock_transaction_key_timestamp",
        "stock_transaction",
        ["owner_id", "ticker", "currency", "transaction_timestamp_utc", "inserted_seq"],
    )
    op.create_index(
        "ix_stock_transaction_owner_currency_timestamp",
        "stock_transaction",
        ["owner_id", "currency", sa.text("transaction_timestamp_utc DESC"), sa.text("inserted_seq DESC")],
    )

    op.create_table(
        "stock_holding",
        sa.Column(
            "stock_holding_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("quantity", sa.BigInteger(), nullable=False),
        sa.Column("average_cost", sa.Numeric(20, 2), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("currency in ('USD', 'SGD')", name="ck_stock_holding_currency"),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_holding_quantity_non_negative"),
        sa.CheckConstraint("average_cost >= 0", name="ck_stock_holding_average_cost_non_negative"),
        sa.UniqueConstraint("owner_id", "ticker", "currency", name="uq_stock_holding_owner_ticker_currency"),
    )
    op.create_index("ix_stock_holding_owner_currency", "stock_holding", ["owner_id", "currency", "ticker"])

    op.create_table(
        "realized_pnl_event",
        sa.Column(
            "realized_pnl_event_id",
            postgresql.UUID(as_uuid=True),
            primary_key=True,
            server_default=sa.text("gen_random_uuid()"),
        ),
        sa.Column("inserted_seq", sa.BigInteger(), sa.Identity(always=True), nullable=False),
        sa.Column("owner_id", sa.Text(), nullable=False),
        sa.Column("ticker", sa.Text(), nullable=False),
        sa.Column("currency", sa.Text(), nullable=False),
        sa.Column("realized_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Numeric(38, 2), nullable=False),
        sa.Column("created_at_utc", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("currency in ('USD', 'SGD')", name="ck_realized_pnl_event_currency"),
        sa.UniqueConstraint("inserted_seq", name="uq_realized_pnl_event_inserted_seq"),
    )
    op.create_index(
        "ix_realized_pnl_event_key_realized_at",
        "realized_pnl_event",
        ["owner_id", "ticker", "currency", "realized_at_utc", "inserted_seq"],
    )


def downgrade() -> None:
    """Downgrade schema."""

    op.drop_index("ix_realized_pnl_event_key_realized_at", table_name="realized_pnl_event")
    op.drop_table("realized_pnl_event")

    op.drop_index("ix_stock_holding_owner_currency", table_name="stock_holding")
    op.drop_table("stock_holding")

    op.drop_index("ix_stock_transaction_owner_currency_timestamp", table_name="stock_transaction")
    op.drop_index("ix_stock_transaction_key_timestamp", table_name="stock_transaction")
    op.drop_table("stock_transaction")
