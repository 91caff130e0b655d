"""create_identity_tables

Revision ID: 5b1e0c7a9d42
Revises:
Create Date: 2026-10-18 10:40:12.318204

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5b1e0c7a9d42"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # ACCOUNTS
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("username_key", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("email_key", sa.String(255), nullable=True),
        sa.Column("screen_name", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_accounts_username_key", "accounts", ["username_key"])
    op.create_index("ix_accounts_email_key", "accounts", ["email_key"])

    # USERNAME CLAIMS
    op.create_table(
        "username_claims",
        sa.Column("username_key", sa.String(100), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("username_key"),
    )

    # AUTH METHODS
    op.create_table(
        "auth_methods",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), nullable=False),
        sa.Column("provider_name", sa.String(50), nullable=False),
        sa.Column("provider_id", sa.String(255), nullable=False),
        sa.Column("profile", sa.JSON(), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=True),
        sa.Column("linked_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "account_id", "provider_name", name="uq_auth_method_account_provider"
        ),
        sa.UniqueConstraint(
            "provider_name", "provider_id", name="uq_auth_method_provider_identity"
        ),
    )
    op.create_index("ix_auth_methods_account_id", "auth_methods", ["account_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_auth_methods_account_id", table_name="auth_methods")
    op.drop_table("auth_methods")
    op.drop_table("username_claims")
    op.drop_index("ix_accounts_email_key", table_name="accounts")
    op.drop_index("ix_accounts_username_key", table_name="accounts")
    op.drop_table("accounts")
