"""initial schema: users, friendships, entries, comments, rate limit buckets

Revision ID: 202601150001
Revises:
Create Date: 2026-01-15 00:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "202601150001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("external_id", sa.String(length=255), nullable=False),
        sa.Column("handle", sa.String(length=30), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("website", sa.String(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)
    op.create_index("ix_users_handle", "users", ["handle"], unique=True)
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "friendships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "follower_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "following_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("follower_id", "following_id", name="uq_friendship_follower_following"),
        sa.CheckConstraint("follower_id <> following_id", name="ck_friendship_no_self_follow"),
    )
    op.create_index("ix_friendships_follower_id", "friendships", ["follower_id"])
    op.create_index("ix_friendships_following_id", "friendships", ["following_id"])
    op.create_index("ix_friendships_created_at", "friendships", ["created_at"])
    op.create_index(
        "ix_friendships_following_created",
        "friendships",
        ["following_id", sa.text("created_at DESC")],
    )

    op.create_table(
        "entries",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "owner_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(length=200), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=False),
        sa.Column("visibility", sa.String(length=10), nullable=False, server_default="PUBLIC"),
        sa.Column("mood", sa.String(length=100), nullable=True),
        sa.Column("music", sa.String(length=100), nullable=True),
        sa.Column("location", sa.String(length=100), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "visibility IN ('PUBLIC', 'FRIENDS', 'PRIVATE')", name="ck_entries_visibility"
        ),
    )
    op.create_index("ix_entries_id", "entries", ["id"])
    op.create_index("ix_entries_owner_id", "entries", ["owner_id"])
    op.create_index("ix_entries_visibility", "entries", ["visibility"])
    op.create_index("ix_entries_created_at", "entries", ["created_at"])
    op.create_index("ix_entries_owner_created", "entries", ["owner_id", sa.text("created_at DESC")])

    op.create_table(
        "comments",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "entry_id",
            sa.Integer(),
            sa.ForeignKey("entries.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "parent_id",
            sa.Uuid(),
            sa.ForeignKey("comments.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "author_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("author_name", sa.String(length=100), nullable=True),
        sa.Column("body_html", sa.Text(), nullable=False),
        sa.Column("state", sa.String(length=10), nullable=False, server_default="VISIBLE"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint(
            "(author_id IS NULL) <> (author_name IS NULL)", name="ck_comments_single_author"
        ),
        sa.CheckConstraint("state IN ('VISIBLE', 'SCREENED', 'DELETED')", name="ck_comments_state"),
    )
    op.create_index("ix_comments_id", "comments", ["id"])
    op.create_index("ix_comments_entry_id", "comments", ["entry_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_author_id", "comments", ["author_id"])
    op.create_index("ix_comments_state", "comments", ["state"])
    op.create_index("ix_comments_created_at", "comments", ["created_at"])
    op.create_index("ix_comments_entry_created", "comments", ["entry_id", "created_at"])

    op.create_table(
        "rate_limit_buckets",
        sa.Column("key", sa.String(length=255), primary_key=True),
        sa.Column("count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reset_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_rate_limit_buckets_reset_at", "rate_limit_buckets", ["reset_at"])


def downgrade() -> None:
    op.drop_index("ix_rate_limit_buckets_reset_at", table_name="rate_limit_buckets")
    op.drop_table("rate_limit_buckets")

    op.drop_index("ix_comments_entry_created", table_name="comments")
    op.drop_index("ix_comments_created_at", table_name="comments")
    op.drop_index("ix_comments_state", table_name="comments")
    op.drop_index("ix_comments_author_id", table_name="comments")
    op.drop_index("ix_comments_parent_id", table_name="comments")
    op.drop_index("ix_comments_entry_id", table_name="comments")
    op.drop_index("ix_comments_id", table_name="comments")
    op.drop_table("comments")

    op.drop_index("ix_entries_owner_created", table_name="entries")
    op.drop_index("ix_entries_created_at", table_name="entries")
    op.drop_index("ix_entries_visibility", table_name="entries")
    op.drop_index("ix_entries_owner_id", table_name="entries")
    op.drop_index("ix_entries_id", table_name="entries")
    op.drop_table("entries")

    op.drop_index("ix_friendships_following_created", table_name="friendships")
    op.drop_index("ix_friendships_created_at", table_name="friendships")
    op.drop_index("ix_friendships_following_id", table_name="friendships")
    op.drop_index("ix_friendships_follower_id", table_name="friendships")
    op.drop_table("friendships")

    op.drop_index("ix_users_created_at", table_name="users")
    op.drop_index("ix_users_handle", table_name="users")
    op.drop_index("ix_users_external_id", table_name="users")
    op.drop_index("ix_users_id", table_name="users")
    op.drop_table("users")
