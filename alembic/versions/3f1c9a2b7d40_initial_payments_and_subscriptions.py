"""Initial payments and subscriptions schema

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-12 10:02:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '3f1c9a2b7d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


purchase_status = sa.Enum("PENDING", "PAID", "FAILED", name="purchasestatus")
subscription_status = sa.Enum("ACTIVE", "EXPIRED", name="subscriptionstatus")
notification_type = sa.Enum("info", "success", "warning", name="notificationtype")


def upgrade():
    # ---- Users / Courses ----
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("username", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("telegram_id", sa.String(), nullable=True),
        sa.Column("language", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("can_login", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_telegram_id", "user", ["telegram_id"])

    op.create_table(
        "course",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("title_ru", sa.String(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("duration_days", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    # ---- Purchases ----
    op.create_table(
        "purchase",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("status", purchase_status, nullable=False),
        sa.Column("provider_txn_id", sa.String(), nullable=True),
        sa.Column("provider_create_time", sa.BigInteger(), nullable=True),
        sa.Column("perform_time", sa.DateTime(), nullable=True),
        sa.Column("cancel_time", sa.DateTime(), nullable=True),
        sa.Column("cancel_reason", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_purchase_user_id", "purchase", ["user_id"])
    op.create_index("ix_purchase_course_id", "purchase", ["course_id"])
    op.create_index("ix_purchase_status", "purchase", ["status"])
    op.create_index("ix_purchase_provider_txn_id", "purchase", ["provider_txn_id"], unique=True)

    op.create_table(
        "purchase_event",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("purchase_id", sa.String(), sa.ForeignKey("purchase.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
    )
    op.create_index("ix_purchase_event_purchase_id", "purchase_event", ["purchase_id"])
    op.create_index("ix_purchase_event_event_type", "purchase_event", ["event_type"])

    # ---- Subscriptions ----
    op.create_table(
        "subscription",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False),
        sa.Column("status", subscription_status, nullable=False),
        sa.Column("starts_at", sa.DateTime(), nullable=False),
        sa.Column("ends_at", sa.DateTime(), nullable=False),
        sa.Column("time_slot", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_subscription_user_id", "subscription", ["user_id"])
    op.create_index("ix_subscription_course_id", "subscription", ["course_id"])
    op.create_index(
        "uq_subscription_active_user_course",
        "subscription",
        ["user_id", "course_id"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
    )

    # ---- Notifications / Chat / Settings ----
    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("trigger_source", sa.String(), nullable=False),
        sa.Column("related_id", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("title_ru", sa.String(), nullable=True),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("message_ru", sa.String(), nullable=True),
        sa.Column("link", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])

    op.create_table(
        "chatroom",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("course_id", sa.Integer(), sa.ForeignKey("course.id"), nullable=False, unique=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "chatmember",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("room_id", sa.Integer(), sa.ForeignKey("chatroom.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("joined_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("room_id", "user_id"),
    )
    op.create_index("ix_chatmember_room_id", "chatmember", ["room_id"])
    op.create_index("ix_chatmember_user_id", "chatmember", ["user_id"])

    op.create_table(
        "systemsetting",
        sa.Column("key", sa.String(), primary_key=True),
        sa.Column("value", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table("systemsetting")
    op.drop_table("chatmember")
    op.drop_table("chatroom")
    op.drop_table("notification")
    op.drop_index("uq_subscription_active_user_course", table_name="subscription")
    op.drop_table("subscription")
    op.drop_table("purchase_event")
    op.drop_table("purchase")
    op.drop_table("course")
    op.drop_table("user")

    notification_type.drop(op.get_bind(), checkfirst=True)
    subscription_status.drop(op.get_bind(), checkfirst=True)
    purchase_status.drop(op.get_bind(), checkfirst=True)
