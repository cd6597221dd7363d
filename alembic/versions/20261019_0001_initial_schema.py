"""Initial schema: users, credit ledger and video jobs.

Revision ID: 0001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

CREDIT_AMOUNT = sa.Numeric(12, 2)


def upgrade() -> None:
    """Create users, credit_transactions and video_jobs."""

    # --- Users ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "rejected", name="userstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "role",
            sa.Enum("user", "admin", name="userrole"),
            nullable=False,
            server_default="user",
        ),
        sa.Column("credits", CREDIT_AMOUNT, nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_created_at", "users", ["created_at"])

    # --- Credit Transactions (immutable ledger) ---
    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("amount", CREDIT_AMOUNT, nullable=False),
        sa.Column("balance_after", CREDIT_AMOUNT, nullable=False),
        sa.Column(
            "transaction_type",
            sa.Enum("charge", "refund", "admin_adjustment", name="transactiontype"),
            nullable=False,
        ),
        sa.Column("operation", sa.String(64), nullable=True),
        sa.Column("reference_id", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_credit_transactions_user_id", "credit_transactions", ["user_id"])
    op.create_index(
        "ix_credit_transactions_reference_id", "credit_transactions", ["reference_id"]
    )

    # --- Video Jobs ---
    op.create_table(
        "video_jobs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("operation_name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "charge_id",
            sa.String(36),
            sa.ForeignKey("credit_transactions.id"),
            nullable=False,
        ),
        sa.Column("cost", CREDIT_AMOUNT, nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "succeeded", "failed", name="videojobstatus"),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("video_uri", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("poll_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("next_poll_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_video_jobs_operation_name", "video_jobs", ["operation_name"], unique=True)
    op.create_index("ix_video_jobs_user_id", "video_jobs", ["user_id"])


def downgrade() -> None:
    """Drop all tables and enum types."""
    op.drop_index("ix_video_jobs_user_id", table_name="video_jobs")
    op.drop_index("ix_video_jobs_operation_name", table_name="video_jobs")
    op.drop_table("video_jobs")
    op.drop_index("ix_credit_transactions_reference_id", table_name="credit_transactions")
    op.drop_index("ix_credit_transactions_user_id", table_name="credit_transactions")
    op.drop_table("credit_transactions")
    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")

    for enum_name in ("videojobstatus", "transactiontype", "userrole", "userstatus"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
