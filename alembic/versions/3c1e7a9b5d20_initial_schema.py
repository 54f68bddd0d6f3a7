"""initial schema

Revision ID: 3c1e7a9b5d20
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c1e7a9b5d20"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "categories_category",
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("color", sa.String(length=20), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "categories_subcategory",
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories_category.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("category_id", "name", name="uq_subcategory_category_name"),
    )
    op.create_index(
        op.f("ix_categories_subcategory_category_id"),
        "categories_subcategory",
        ["category_id"],
        unique=False,
    )

    op.create_table(
        "trips_trip",
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("home_currency", sa.String(length=3), nullable=False),
        sa.Column("budget_home_amount", sa.Numeric(18, 4), nullable=False),
        sa.Column("spent_home_amount", sa.Numeric(18, 4), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "trips_trip_budget",
        sa.Column("trip_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("amount_home", sa.Numeric(18, 4), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["category_id"], ["categories_category.id"]),
        sa.ForeignKeyConstraint(["trip_id"], ["trips_trip.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("trip_id", "category_id", name="uq_trip_budget_category"),
    )
    op.create_index(
        op.f("ix_trips_trip_budget_trip_id"), "trips_trip_budget", ["trip_id"], unique=False
    )

    op.create_table(
        "fx_rate",
        sa.Column("trip_id", sa.Uuid(), nullable=False),
        sa.Column("from_currency", sa.String(length=3), nullable=False),
        sa.Column("to_currency", sa.String(length=3), nullable=False),
        sa.Column("rate", sa.Numeric(18, 8), nullable=False),
        sa.Column("as_of_date", sa.Date(), nullable=True),
        sa.Column("source", sa.String(length=100), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["trip_id"], ["trips_trip.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("trip_id", "from_currency", "to_currency", name="uq_fx_trip_pair"),
    )
    op.create_index(op.f("ix_fx_rate_trip_id"), "fx_rate", ["trip_id"], unique=False)

    op.create_table(
        "expenses_expense",
        sa.Column("trip_id", sa.Uuid(), nullable=False),
        sa.Column("category_id", sa.Uuid(), nullable=False),
        sa.Column("subcategory_id", sa.Uuid(), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("merchant", sa.String(length=200), nullable=False),
        sa.Column("payer", sa.String(length=100), nullable=True),
        sa.Column(
            "payment_type",
            sa.Enum("CASH", "CARD", "WIRE_TRANSFER", name="paymenttype", native_enum=False),
            nullable=False,
        ),
        sa.Column("amount_original", sa.Numeric(18, 4), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("amount_home", sa.Numeric(18, 4), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "provenance",
            sa.Enum(
                "RECEIPT", "STATEMENT", "MERGED", "MANUAL", name="provenance", native_enum=False
            ),
            nullable=False,
        ),
        sa.Column("is_ai_parsed", sa.Boolean(), nullable=False),
        sa.Column("needs_review", sa.Boolean(), nullable=False),
        sa.Column("raw_items_text", sa.Text(), nullable=True),
        sa.Column("original_items_text", sa.Text(), nullable=True),
        sa.Column("id", sa.Uuid(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["category_id"], ["categories_category.id"]),
        sa.ForeignKeyConstraint(["subcategory_id"], ["categories_subcategory.id"]),
        sa.ForeignKeyConstraint(["trip_id"], ["trips_trip.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        op.f("ix_expenses_expense_trip_id"), "expenses_expense", ["trip_id"], unique=False
    )
    op.create_index(
        op.f("ix_expenses_expense_category_id"), "expenses_expense", ["category_id"], unique=False
    )
    op.create_index(
        op.f("ix_expenses_expense_transaction_date"),
        "expenses_expense",
        ["transaction_date"],
        unique=False,
    )

    op.create_table(
        "audit_event",
        sa.Column("trip_id", sa.Uuid(), nullable=True),
        sa.Column("import_session_id", sa.String(length=64), nullable=True),
        sa.Column("event_type", sa.String(length=50), nullable=False),
        sa.Column("payload_json", sa.JSON(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.ForeignKeyConstraint(["trip_id"], ["trips_trip.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_event_trip_id"), "audit_event", ["trip_id"], unique=False)
    op.create_index(
        op.f("ix_audit_event_import_session_id"),
        "audit_event",
        ["import_session_id"],
        unique=False,
    )
    op.create_index(
        op.f("ix_audit_event_event_type"), "audit_event", ["event_type"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_audit_event_event_type"), table_name="audit_event")
    op.drop_index(op.f("ix_audit_event_import_session_id"), table_name="audit_event")
    op.drop_index(op.f("ix_audit_event_trip_id"), table_name="audit_event")
    op.drop_table("audit_event")
    op.drop_index(op.f("ix_expenses_expense_transaction_date"), table_name="expenses_expense")
    op.drop_index(op.f("ix_expenses_expense_category_id"), table_name="expenses_expense")
    op.drop_index(op.f("ix_expenses_expense_trip_id"), table_name="expenses_expense")
    op.drop_table("expenses_expense")
    op.drop_index(op.f("ix_fx_rate_trip_id"), table_name="fx_rate")
    op.drop_table("fx_rate")
    op.drop_index(op.f("ix_trips_trip_budget_trip_id"), table_name="trips_trip_budget")
    op.drop_table("trips_trip_budget")
    op.drop_table("trips_trip")
    op.drop_index(
        op.f("ix_categories_subcategory_category_id"), table_name="categories_subcategory"
    )
    op.drop_table("categories_subcategory")
    op.drop_table("categories_category")
