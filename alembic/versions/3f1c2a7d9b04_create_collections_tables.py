"""Create collections, membership, DOI and publish status tables

Revision ID: 3f1c2a7d9b04
Revises:
Create Date: 2026-10-18 09:12:44.318205

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c2a7d9b04"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create tables for collections and their publication status."""
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("node_id", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("first_name", sa.String(length=255), nullable=True),
        sa.Column("middle_initial", sa.String(length=1), nullable=True),
        sa.Column("last_name", sa.String(length=255), nullable=True),
        sa.Column("degree", sa.String(length=255), nullable=True),
        sa.Column("orcid", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_node_id", "users", ["node_id"], unique=True)

    op.create_table(
        "collections",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("node_id", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), server_default="", nullable=False),
        sa.Column("license", sa.String(length=255), nullable=True),
        sa.Column("tags", postgresql.ARRAY(sa.String()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_collections_node_id", "collections", ["node_id"], unique=True)

    op.create_table(
        "collection_user",
        sa.Column("collection_id", sa.BigInteger(), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(["collection_id"], ["collections.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("collection_id", "user_id"),
    )

    op.create_table(
        "collection_dois",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("collection_id", sa.BigInteger(), nullable=False),
        sa.Column("doi", sa.String(length=255), nullable=False),
        sa.Column("datasource", sa.String(length=20), nullable=False),
        sa.ForeignKeyConstraint(["collection_id"], ["collections.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("collection_id", "doi", name="uq_collection_dois_doi"),
    )
    op.create_index(
        "ix_collection_dois_collection_id", "collection_dois", ["collection_id"], unique=False
    )
    op.create_check_constraint(
        "ck_collection_dois_datasource_valid",
        "collection_dois",
        "datasource IN ('Pennsieve', 'External')",
    )

    # One row per collection; a claim overwrites it unless it is InProgress
    op.create_table(
        "publish_status",
        sa.Column("collection_id", sa.BigInteger(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["collection_id"], ["collections.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("collection_id"),
    )
    op.create_check_constraint(
        "ck_publish_status_status_valid",
        "publish_status",
        "status IN ('InProgress', 'Completed', 'Failed')",
    )
    op.create_check_constraint(
        "ck_publish_status_type_valid",
        "publish_status",
        "type IN ('Publication', 'Revision', 'Removal')",
    )


def downgrade() -> None:
    """Drop the collections tables."""
    op.drop_table("publish_status")
    op.drop_index("ix_collection_dois_collection_id", table_name="collection_dois")
    op.drop_table("collection_dois")
    op.drop_table("collection_user")
    op.drop_index("ix_collections_node_id", table_name="collections")
    op.drop_table("collections")
    op.drop_index("ix_users_node_id", table_name="users")
    op.drop_table("users")
