"""Initial schema: users, profiles, photos, likes, matches, safety, visits, chat, notifications

Revision ID: 20251020_001
Revises:
Create Date: 2025-10-20 10:00:00

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20251020_001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=nullable)


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)


def upgrade() -> None:
    # Create users table
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=30), nullable=False),
        sa.Column("first_name", sa.String(length=50), nullable=False),
        sa.Column("last_name", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("verification_token", sa.String(length=128), nullable=True),
        sa.Column("verification_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_password_token", sa.String(length=128), nullable=True),
        sa.Column("reset_password_expires", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_username"), "users", ["username"], unique=True)
    op.create_index(op.f("ix_users_verification_token"), "users", ["verification_token"], unique=False)
    op.create_index(op.f("ix_users_reset_password_token"), "users", ["reset_password_token"], unique=False)

    # Create profiles table
    op.create_table(
        "profiles",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("user_id"),
        sa.Column("biography", sa.Text(), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(length=8), nullable=True),
        sa.Column("sexual_orientation", sa.String(length=8), nullable=True),
        sa.Column(
            "interests",
            postgresql.ARRAY(sa.String(length=50)),
            server_default=sa.text("'{}'::varchar[]"),
            nullable=False,
        ),
        sa.Column("location_lat", sa.Float(), nullable=True),
        sa.Column("location_lng", sa.Float(), nullable=True),
        sa.Column("city", sa.String(length=100), nullable=True),
        sa.Column("fame_rating", sa.Integer(), server_default="0", nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("gender IN ('homme','femme')", name="chk_profile_gender"),
        sa.CheckConstraint("sexual_orientation IN ('hetero','homo','bi')", name="chk_profile_orientation"),
        sa.CheckConstraint("fame_rating >= 0", name="chk_profile_fame_non_negative"),
    )
    op.create_index(op.f("ix_profiles_user_id"), "profiles", ["user_id"], unique=True)

    # Create photos table
    op.create_table(
        "photos",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("user_id"),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("image_data", sa.Text(), nullable=False),
        sa.Column("mime_type", sa.String(length=32), nullable=False),
        sa.Column("is_profile_picture", sa.Boolean(), server_default=sa.false(), nullable=False),
        _timestamp("upload_date"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_photos_user_id"), "photos", ["user_id"], unique=False)
    op.create_index("idx_photos_user_order", "photos", ["user_id", "is_profile_picture", "upload_date"])

    # Create likes table
    op.create_table(
        "likes",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("liker_id"),
        _user_fk("liked_id"),
        sa.Column("is_like", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("liker_id", "liked_id", name="uq_likes_pair"),
        sa.CheckConstraint("liker_id <> liked_id", name="chk_like_no_self"),
    )
    op.create_index(op.f("ix_likes_liker_id"), "likes", ["liker_id"], unique=False)
    op.create_index(op.f("ix_likes_liked_id"), "likes", ["liked_id"], unique=False)

    # Create matches table (canonical pair, user1_id < user2_id)
    op.create_table(
        "matches",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("user1_id"),
        _user_fk("user2_id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_matches_pair"),
        sa.CheckConstraint("user1_id < user2_id", name="chk_match_canonical"),
    )
    op.create_index(op.f("ix_matches_user1_id"), "matches", ["user1_id"], unique=False)
    op.create_index(op.f("ix_matches_user2_id"), "matches", ["user2_id"], unique=False)

    # Create blocks table
    op.create_table(
        "blocks",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("blocker_id"),
        _user_fk("blocked_id"),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("blocker_id", "blocked_id", name="uq_blocks_pair"),
        sa.CheckConstraint("blocker_id <> blocked_id", name="chk_block_no_self"),
    )
    op.create_index(op.f("ix_blocks_blocker_id"), "blocks", ["blocker_id"], unique=False)
    op.create_index(op.f("ix_blocks_blocked_id"), "blocks", ["blocked_id"], unique=False)

    # Create reports table
    op.create_table(
        "reports",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("reporter_id"),
        _user_fk("reported_id"),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=16), server_default="new", nullable=False),
        _timestamp("created_at"),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('new','in_review','resolved')", name="chk_report_status"),
    )
    op.create_index(op.f("ix_reports_reporter_id"), "reports", ["reporter_id"], unique=False)
    op.create_index(op.f("ix_reports_reported_id"), "reports", ["reported_id"], unique=False)

    # One open report per pair
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_reports_open_pair
        ON reports(reporter_id, reported_id)
        WHERE status IN ('new','in_review')
    """
    )

    # Create profile_visits table (one row per visitor, visited, day)
    op.create_table(
        "profile_visits",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("visitor_id"),
        _user_fk("visited_id"),
        sa.Column("visit_date", sa.Date(), server_default=sa.text("CURRENT_DATE"), nullable=False),
        _timestamp("visited_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("visitor_id", "visited_id", "visit_date", name="uq_profile_visits_daily"),
    )
    op.create_index(op.f("ix_profile_visits_visitor_id"), "profile_visits", ["visitor_id"], unique=False)
    op.create_index(op.f("ix_profile_visits_visited_id"), "profile_visits", ["visited_id"], unique=False)
    op.create_index("idx_profile_visits_visited_at", "profile_visits", ["visited_id", "visited_at"])

    # Create conversations table
    op.create_table(
        "conversations",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("user1_id"),
        _user_fk("user2_id"),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        _timestamp("created_at"),
        _timestamp("last_message_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user1_id", "user2_id", name="uq_conversations_pair"),
        sa.CheckConstraint("user1_id < user2_id", name="chk_conversation_canonical"),
    )
    op.create_index(op.f("ix_conversations_user1_id"), "conversations", ["user1_id"], unique=False)
    op.create_index(op.f("ix_conversations_user2_id"), "conversations", ["user2_id"], unique=False)

    # Create messages table
    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "conversation_id",
            sa.BigInteger(),
            sa.ForeignKey("conversations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _user_fk("sender_id"),
        sa.Column("content", sa.String(length=1000), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_messages_conversation_created", "messages", ["conversation_id", "created_at"])

    # Create notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        _user_fk("user_id"),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("message", sa.String(length=255), nullable=False),
        sa.Column("data", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("is_read", sa.Boolean(), server_default=sa.false(), nullable=False),
        _timestamp("created_at"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("type IN ('like','match','visit','unlike','message')", name="chk_notification_type"),
    )
    op.create_index("idx_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_notifications_unread
        ON notifications(user_id) WHERE is_read = false
    """
    )


def downgrade() -> None:
    op.execute("DROP INDEX IF EXISTS idx_notifications_unread")
    op.drop_table("notifications")
    op.drop_table("messages")
    op.drop_table("conversations")
    op.drop_table("profile_visits")
    op.execute("DROP INDEX IF EXISTS uq_reports_open_pair")
    op.drop_table("reports")
    op.drop_table("blocks")
    op.drop_table("matches")
    op.drop_table("likes")
    op.drop_table("photos")
    op.drop_table("profiles")
    op.drop_table("users")
