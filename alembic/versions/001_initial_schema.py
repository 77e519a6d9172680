"""Initial schema - subscribers, newsletters and engagement events

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create ENUM types
    subscriber_status_enum = postgresql.ENUM(
        "active", "unsubscribed",
        name="subscriberstatus",
        create_type=False,
    )
    subscriber_status_enum.create(op.get_bind(), checkfirst=True)

    newsletter_status_enum = postgresql.ENUM(
        "draft", "sent",
        name="newsletterstatus",
        create_type=False,
    )
    newsletter_status_enum.create(op.get_bind(), checkfirst=True)

    event_type_enum = postgresql.ENUM(
        "OPEN",
        name="newslettereventtype",
        create_type=False,
    )
    event_type_enum.create(op.get_bind(), checkfirst=True)

    # Subscribers
    op.create_table(
        "subscribers",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("status", subscriber_status_enum, nullable=False, server_default="active"),
        sa.Column("source", sa.String(100), nullable=False, server_default="unknown"),
        sa.Column(
            "preferences",
            sa.JSON(),
            nullable=False,
            server_default=sa.text("'{\"segments\": []}'"),
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscribers_email", "subscribers", ["email"], unique=True)
    op.create_index("ix_subscribers_status", "subscribers", ["status"])

    # Newsletters
    op.create_table(
        "newsletters",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("subject", sa.String(300), nullable=True),
        sa.Column("slug", sa.String(200), nullable=True),
        sa.Column("preview_text", sa.String(500), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("status", newsletter_status_enum, nullable=False, server_default="draft"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_newsletters_slug", "newsletters", ["slug"], unique=True)

    # Engagement events (no uniqueness: every open is kept)
    op.create_table(
        "newsletter_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("newsletter_id", sa.String(36), nullable=False),
        sa.Column("recipient_id", sa.String(36), nullable=True),
        sa.Column("type", event_type_enum, nullable=False, server_default="OPEN"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_newsletter_events_newsletter_id", "newsletter_events", ["newsletter_id"])


def downgrade() -> None:
    op.drop_index("ix_newsletter_events_newsletter_id", table_name="newsletter_events")
    op.drop_table("newsletter_events")

    op.drop_index("ix_newsletters_slug", table_name="newsletters")
    op.drop_table("newsletters")

    op.drop_index("ix_subscribers_status", table_name="subscribers")
    op.drop_index("ix_subscribers_email", table_name="subscribers")
    op.drop_table("subscribers")

    # Drop ENUM types
    op.execute("DROP TYPE IF EXISTS newslettereventtype")
    op.execute("DROP TYPE IF EXISTS newsletterstatus")
    op.execute("DROP TYPE IF EXISTS subscriberstatus")
