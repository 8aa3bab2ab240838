"""init hymnal catalog
Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _base_columns(soft_delete=True, authorship=True):
    cols = [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]
    if soft_delete:
        cols.append(sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True, index=True))
    if authorship:
        cols.append(sa.Column("created_by_id", postgresql.UUID(as_uuid=True), nullable=True))
        cols.append(sa.Column("updated_by_id", postgresql.UUID(as_uuid=True), nullable=True))
    return cols


def upgrade():
    op.create_table(
        "users",
        *_base_columns(authorship=False),
        sa.Column("first_name", sa.String(length=120), nullable=False),
        sa.Column("last_name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=200), nullable=False, unique=True, index=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="User"),
    )

    op.create_table(
        "categories",
        *_base_columns(),
        sa.Column("name", sa.String(length=200), nullable=False, unique=True),
        sa.Column("slug", sa.String(length=220), nullable=False, unique=True),
    )

    op.create_table(
        "hymns",
        *_base_columns(),
        sa.Column("number", sa.Integer(), nullable=True, unique=True, index=True),
        sa.Column("title", sa.String(length=300), nullable=False, index=True),
        sa.Column("slug", sa.String(length=320), nullable=False, unique=True),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("categories.id"), nullable=False, index=True),
        sa.Column("author", sa.String(length=200), nullable=True),
        sa.Column("language", sa.String(length=50), nullable=True),
        sa.Column("version", sa.String(length=50), nullable=True),
    )

    for table in ("verses", "choruses"):
        op.create_table(
            table,
            *_base_columns(),
            sa.Column("hymn_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hymns.id"), nullable=False, index=True),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("order", sa.Integer(), nullable=False, server_default="1"),
        )

    op.create_table(
        "audit_logs",
        *_base_columns(soft_delete=False, authorship=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True, index=True),
        sa.Column("entity_type", sa.String(length=30), nullable=False),
        sa.Column("entity_id", sa.String(length=80), nullable=False),
        sa.Column("action", sa.String(length=30), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
    )


def downgrade():
    for table in ("audit_logs", "choruses", "verses", "hymns", "categories", "users"):
        op.drop_table(table)
