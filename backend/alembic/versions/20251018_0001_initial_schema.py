"""Initial schema: users, cycles, records and their payment breakdowns."""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "20251018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    user_role_enum = sa.Enum("user", "admin", name="user_role_enum")
    record_kind_enum = sa.Enum("service", "product", name="record_kind_enum")
    payment_method_enum = sa.Enum(
        "card",
        "cash",
        "cashapp",
        "zelle",
        "other",
        name="payment_method_enum",
    )

    op.create_table(
        "users",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(length=120), nullable=False, unique=True),
        sa.Column("stylist_name", sa.String(length=200), nullable=False),
        sa.Column("role", user_role_enum, nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "cycles",
        sa.Column("cycle_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("end_date >= start_date", name="ck_cycles_valid_range"),
    )
    op.create_index("cycles_range_idx", "cycles", ["start_date", "end_date"])

    op.create_table(
        "records",
        sa.Column("record_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("kind", record_kind_enum, nullable=False),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.user_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "cycle_id",
            sa.Integer(),
            sa.ForeignKey("cycles.cycle_id", ondelete="RESTRICT"),
            nullable=True,
        ),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("customer", sa.String(length=200), nullable=True),
        sa.Column("price", sa.BigInteger(), nullable=False),
        sa.Column("tip", sa.BigInteger(), nullable=True),
        sa.Column("occurred_on", sa.String(length=40), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.CheckConstraint("price >= 0", name="ck_records_price_non_negative"),
        sa.CheckConstraint("tip IS NULL OR tip >= 0", name="ck_records_tip_non_negative"),
    )
    op.create_index("records_cycle_user_idx", "records", ["cycle_id", "user_id"])
    op.create_index("records_user_idx", "records", ["user_id"])
    op.create_index("records_kind_idx", "records", ["kind"])

    op.create_table(
        "record_payments",
        sa.Column("payment_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "record_id",
            sa.Integer(),
            sa.ForeignKey("records.record_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("method", payment_method_enum, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("label", sa.String(length=120), nullable=True),
        sa.CheckConstraint("amount >= 0", name="ck_record_payments_amount_non_negative"),
    )
    op.create_index("record_payments_record_idx", "record_payments", ["record_id"])
    op.create_index("record_payments_method_idx", "record_payments", ["method"])


def downgrade() -> None:
    op.drop_index("record_payments_method_idx", table_name="record_payments")
    op.drop_index("record_payments_record_idx", table_name="record_payments")
    op.drop_table("record_payments")
    op.drop_index("records_kind_idx", table_name="records")
    op.drop_index("records_user_idx", table_name="records")
    op.drop_index("records_cycle_user_idx", table_name="records")
    op.drop_table("records")
    op.drop_index("cycles_range_idx", table_name="cycles")
    op.drop_table("cycles")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_name in ("payment_method_enum", "record_kind_enum", "user_role_enum"):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
