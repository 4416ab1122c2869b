"""create raffle tables

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "raffle_rounds",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("phase", sa.String(length=20), nullable=False),
        sa.Column("entrance_fee", sa.String(length=78), nullable=False),
        sa.Column("interval_seconds", sa.Integer(), nullable=False),
        sa.Column("key_hash", sa.String(length=66), nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("callback_gas_limit", sa.Integer(), nullable=False),
        sa.Column("request_confirmations", sa.Integer(), nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("pool_balance", sa.String(length=78), nullable=False),
        sa.Column("pool_started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("pending_request_id", sa.String(length=78), nullable=True),
        sa.Column("draw_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("recent_winner", sa.String(length=255), nullable=True),
        sa.Column("recent_payout", sa.String(length=78), nullable=True),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "phase IN ('open','drawing')", name=op.f("ck_raffle_rounds_phase_enum")
        ),
        sa.CheckConstraint(
            "interval_seconds >= 0",
            name=op.f("ck_raffle_rounds_interval_non_negative"),
        ),
        sa.CheckConstraint("num_words = 1", name=op.f("ck_raffle_rounds_single_word")),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_rounds")),
        sa.UniqueConstraint("name", name=op.f("uq_raffle_rounds_name")),
    )
    op.create_table(
        "raffle_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("participant", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.String(length=78), nullable=False),
        sa.Column("entered_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["raffle_rounds.id"],
            name=op.f("fk_raffle_entries_round_id_raffle_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_entries")),
        sa.UniqueConstraint("round_id", "position", name="uq_raffle_entry_position"),
    )
    op.create_index(
        op.f("ix_raffle_entries_participant"),
        "raffle_entries",
        ["participant"],
        unique=False,
    )
    op.create_table(
        "raffle_events",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("emitted_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["raffle_rounds.id"],
            name=op.f("fk_raffle_events_round_id_raffle_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raffle_events")),
    )
    op.create_index(
        "ix_raffle_events_round_name",
        "raffle_events",
        ["round_id", "name"],
        unique=False,
    )
    op.create_table(
        "accounts",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("address", sa.String(length=255), nullable=False),
        sa.Column("balance", sa.String(length=78), nullable=False),
        sa.Column("accepts_payments", sa.Boolean(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_accounts")),
        sa.UniqueConstraint("address", name=op.f("uq_accounts_address")),
    )


def downgrade() -> None:
    op.drop_table("accounts")
    op.drop_index("ix_raffle_events_round_name", table_name="raffle_events")
    op.drop_table("raffle_events")
    op.drop_index(op.f("ix_raffle_entries_participant"), table_name="raffle_entries")
    op.drop_table("raffle_entries")
    op.drop_table("raffle_rounds")
