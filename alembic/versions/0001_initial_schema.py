"""initial lottery schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "lottery_rounds",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("state", sa.String(length=19), nullable=False),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("break_requested_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("broken_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("winner_count", sa.Integer(), nullable=True),
        sa.Column("protocol_fee_bps", sa.Integer(), nullable=True),
        sa.Column("rent_fee_bps", sa.Integer(), nullable=True),
        sa.Column("total_deposited", sa.BigInteger(), nullable=False),
        sa.Column("protocol_fee", sa.BigInteger(), nullable=False),
        sa.Column("paid_out", sa.BigInteger(), nullable=False),
        sa.Column("credited", sa.BigInteger(), nullable=False),
        sa.CheckConstraint(
            "state IN ('open', 'awaiting_randomness', 'break', 'closed')",
            name=op.f("ck_lottery_rounds_round_state"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_lottery_rounds")),
    )
    op.create_index("ix_lottery_rounds_state", "lottery_rounds", ["state"], unique=False)

    op.create_table(
        "admin_config",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=False),
        sa.Column("protocol_fee_bps", sa.Integer(), nullable=False),
        sa.Column("rent_fee_bps", sa.Integer(), nullable=False),
        sa.Column("rent_amount", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("winner_count >= 1", name=op.f("ck_admin_config_winner_count_positive")),
        sa.CheckConstraint(
            "protocol_fee_bps >= 0 AND protocol_fee_bps <= 10000",
            name=op.f("ck_admin_config_protocol_fee_range"),
        ),
        sa.CheckConstraint(
            "rent_fee_bps >= 0 AND rent_fee_bps <= 10000",
            name=op.f("ck_admin_config_rent_fee_range"),
        ),
        sa.CheckConstraint(
            "rent_amount >= 0", name=op.f("ck_admin_config_rent_amount_non_negative")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_admin_config")),
    )

    op.create_table(
        "tickets",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("owner_address", sa.String(length=42), nullable=False),
        sa.Column("renter_address", sa.String(length=42), nullable=True),
        sa.Column("rented_round_id", ID_TYPE, nullable=True),
        sa.Column("deposited_round_id", ID_TYPE, nullable=True),
        sa.Column("deposit_value", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["rented_round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_tickets_rented_round_id_lottery_rounds"),
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["deposited_round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_tickets_deposited_round_id_lottery_rounds"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_tickets")),
        sa.UniqueConstraint("owner_address", name=op.f("uq_tickets_owner_address")),
    )
    op.create_index(
        "ix_tickets_renter_round", "tickets", ["renter_address", "rented_round_id"], unique=False
    )

    op.create_table(
        "ticket_deposits",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("ticket_id", ID_TYPE, nullable=False),
        sa.Column("depositor_address", sa.String(length=42), nullable=False),
        sa.Column("relation", sa.String(length=13), nullable=False),
        sa.Column("value", sa.BigInteger(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("win_count", sa.Integer(), nullable=False),
        sa.Column("share", sa.BigInteger(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "relation IN ('owner', 'borrower', 'whitelisted', 'new_depositor')",
            name=op.f("ck_ticket_deposits_depositor_relation"),
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_ticket_deposits_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["ticket_id"],
            ["tickets.id"],
            name=op.f("fk_ticket_deposits_ticket_id_tickets"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_ticket_deposits")),
        sa.UniqueConstraint("round_id", "ticket_id", name="uq_ticket_deposits_round_ticket"),
        sa.UniqueConstraint("round_id", "position", name="uq_ticket_deposits_round_position"),
    )
    op.create_index(
        "ix_ticket_deposits_depositor",
        "ticket_deposits",
        ["round_id", "depositor_address"],
        unique=False,
    )

    op.create_table(
        "round_draws",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("draw_index", sa.Integer(), nullable=False),
        sa.Column("random_value", sa.String(length=80), nullable=False),
        sa.Column("deposit_id", ID_TYPE, nullable=False),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_round_draws_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["deposit_id"],
            ["ticket_deposits.id"],
            name=op.f("fk_round_draws_deposit_id_ticket_deposits"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_round_draws")),
        sa.UniqueConstraint("round_id", "draw_index", name="uq_round_draws_round_index"),
    )

    op.create_table(
        "whitelist_entries",
        sa.Column("id", ID_TYPE, autoincrement=True, nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("address", sa.String(length=42), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_whitelist_entries")),
        sa.UniqueConstraint("position", name=op.f("uq_whitelist_entries_position")),
    )
    op.create_index(
        op.f("ix_whitelist_entries_address"), "whitelist_entries", ["address"], unique=True
    )

    op.create_table(
        "withdrawable_balances",
        sa.Column("address", sa.String(length=42), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "amount >= 0", name=op.f("ck_withdrawable_balances_amount_non_negative")
        ),
        sa.PrimaryKeyConstraint("address", name=op.f("pk_withdrawable_balances")),
    )

    op.create_table(
        "randomness_requests",
        sa.Column("handle", sa.String(length=100), nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=False),
        sa.Column("num_words", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("random_values", sa.JSON(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','fulfilled','cancelled')",
            name=op.f("ck_randomness_requests_status_enum"),
        ),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_randomness_requests_round_id_lottery_rounds"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("handle", name=op.f("pk_randomness_requests")),
    )
    op.create_index(
        "ix_randomness_requests_round_status",
        "randomness_requests",
        ["round_id", "status"],
        unique=False,
    )

    op.create_table(
        "value_transfers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("recipient", sa.String(length=42), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("round_id", ID_TYPE, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "kind IN ('rent','claim','withdraw')", name=op.f("ck_value_transfers_kind_enum")
        ),
        sa.CheckConstraint("amount > 0", name=op.f("ck_value_transfers_amount_positive")),
        sa.ForeignKeyConstraint(
            ["round_id"],
            ["lottery_rounds.id"],
            name=op.f("fk_value_transfers_round_id_lottery_rounds"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_value_transfers")),
    )
    op.create_index(
        "ix_value_transfers_recipient", "value_transfers", ["recipient"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_value_transfers_recipient", table_name="value_transfers")
    op.drop_table("value_transfers")
    op.drop_index("ix_randomness_requests_round_status", table_name="randomness_requests")
    op.drop_table("randomness_requests")
    op.drop_table("withdrawable_balances")
    op.drop_index(op.f("ix_whitelist_entries_address"), table_name="whitelist_entries")
    op.drop_table("whitelist_entries")
    op.drop_table("round_draws")
    op.drop_index("ix_ticket_deposits_depositor", table_name="ticket_deposits")
    op.drop_table("ticket_deposits")
    op.drop_index("ix_tickets_renter_round", table_name="tickets")
    op.drop_table("tickets")
    op.drop_table("admin_config")
    op.drop_index("ix_lottery_rounds_state", table_name="lottery_rounds")
    op.drop_table("lottery_rounds")
