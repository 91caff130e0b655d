"""SQLAlchemy table definitions - dialect-agnostic (works with SQLite and PostgreSQL)."""

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.types import JSON

# Metadata object for all tables
metadata = MetaData()

# ============================================================================
# ACCOUNTS TABLE
# ============================================================================
accounts_table = Table(
    "accounts",
    metadata,
    Column("id", String, primary_key=True),  # UUID as string
    Column("username", String(100), nullable=False),
    Column("username_key", String(100), nullable=False),  # lower(username)
    Column("email", String(255), nullable=True),
    Column("email_key", String(255), nullable=True),  # lower(trim(email))
    Column("screen_name", String(255), nullable=False),
    Column("password_hash", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
)

Index("ix_accounts_username_key", accounts_table.c.username_key)
Index("ix_accounts_email_key", accounts_table.c.email_key)


# ============================================================================
# USERNAME CLAIMS TABLE
# ============================================================================
# One row per normalized username; the primary key is the uniqueness index.
username_claims_table = Table(
    "username_claims",
    metadata,
    Column("username_key", String(100), primary_key=True),
    Column(
        "account_id",
        String,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("claimed_at", DateTime(timezone=True), nullable=False),
)


# ============================================================================
# AUTH METHODS TABLE
# ============================================================================
auth_methods_table = Table(
    "auth_methods",
    metadata,
    Column("id", String, primary_key=True),  # UUID as string
    Column(
        "account_id",
        String,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("provider_name", String(50), nullable=False),  # "facebook", "github", etc.
    Column("provider_id", String(255), nullable=False),
    Column("profile", JSON, nullable=True),  # Cached provider profile
    Column("access_token", Text, nullable=True),  # Cached provider access token
    Column("linked_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=True),
    UniqueConstraint("account_id", "provider_name", name="uq_auth_method_account_provider"),
    UniqueConstraint("provider_name", "provider_id", name="uq_auth_method_provider_identity"),
)

Index("ix_auth_methods_account_id", auth_methods_table.c.account_id)
