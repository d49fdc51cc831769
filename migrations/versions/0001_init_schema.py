from __future__ import annotations

"""init schema"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_init_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Extensions
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255)),
        sa.Column("display_name", sa.String(length=100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()")),
    )

    op.create_table(
        "chats",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("visibility", sa.String(length=10), nullable=False, server_default="private"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("visibility IN ('private', 'public')", name="ck_chats_visibility"),
    )
    op.create_index("idx_chats_user_created", "chats", ["user_id", "created_at"])

    # No foreign key to chats: a turn stores the user message before its chat row exists
    op.create_table(
        "messages",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("chat_id", sa.Text, nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("content", postgresql.JSONB, nullable=False),
        sa.Column("attachments", postgresql.JSONB, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("seq", sa.BigInteger, sa.Identity(always=False), nullable=False),
    )
    op.create_index("idx_messages_chat_created", "messages", ["chat_id", "created_at", "seq"])

    op.create_table(
        "votes",
        sa.Column("chat_id", sa.Text, nullable=False),
        sa.Column("message_id", sa.Text, nullable=False),
        sa.Column("is_upvoted", sa.Boolean, nullable=False),
        sa.PrimaryKeyConstraint("chat_id", "message_id", name="pk_votes"),
    )

    op.create_table(
        "documents",
        sa.Column("id", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("title", sa.Text, nullable=False),
        sa.Column("content", sa.Text),
        sa.Column("kind", sa.String(length=20), nullable=False, server_default="text"),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.PrimaryKeyConstraint("id", "created_at", name="pk_documents"),
    )

    op.create_table(
        "suggestions",
        sa.Column("id", sa.Text, primary_key=True),
        sa.Column("document_id", sa.Text, nullable=False),
        sa.Column("document_created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("original_text", sa.Text, nullable=False),
        sa.Column("suggested_text", sa.Text, nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("is_resolved", sa.Boolean, nullable=False, server_default=sa.text("FALSE")),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.ForeignKeyConstraint(
            ["document_id", "document_created_at"],
            ["documents.id", "documents.created_at"],
            name="fk_suggestions_document",
        ),
    )
    op.create_index("idx_suggestions_document", "suggestions", ["document_id"])

    # Seed default user (password hash for "localdev")
    op.execute(
        """
        INSERT INTO users (email, password_hash, display_name)
        VALUES ('local@chatrelay.dev', '$2b$12$LQv3c1yqBWVHxkd0LHAkCOYz6TtxMQJqhN8/X4.VttYS/Vj/3l6Ym', 'Local User')
        ON CONFLICT (email) DO NOTHING;
        """
    )


def downgrade() -> None:
    op.drop_index("idx_suggestions_document", table_name="suggestions")
    op.drop_table("suggestions")
    op.drop_table("documents")
    op.drop_table("votes")

    op.drop_index("idx_messages_chat_created", table_name="messages")
    op.drop_table("messages")

    op.drop_index("idx_chats_user_created", table_name="chats")
    op.drop_table("chats")

    op.drop_table("users")
