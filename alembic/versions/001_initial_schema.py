"""Initial schema for the call ingestion pipeline.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa
from pgvector.sqlalchemy import Vector
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable pgvector extension
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    op.create_table(
        "agents",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("extension", sa.String(20), nullable=True, unique=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("user_id", sa.String(36), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "companies",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("external_id", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )

    op.create_table(
        "calls",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("recording_ref", sa.String(255), nullable=False, unique=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="PENDING"),
        sa.Column("direction", sa.String(20), nullable=True),
        sa.Column("start_time", sa.DateTime, nullable=True),
        sa.Column("end_time", sa.DateTime, nullable=True),
        sa.Column("duration_seconds", sa.Integer, nullable=True),
        sa.Column("recording_blob_key", sa.String(500), nullable=True),
        sa.Column("transcript_blob_key", sa.String(500), nullable=True),
        sa.Column(
            "agent_id",
            sa.String(36),
            sa.ForeignKey("agents.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "company_id",
            sa.String(36),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("analysis_id", sa.String(36), nullable=True, unique=True),
        sa.Column("processing_metadata", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime, nullable=True),
    )
    op.create_index("idx_calls_status", "calls", ["status"])
    op.create_index("idx_calls_agent_id", "calls", ["agent_id"])
    op.create_index("idx_calls_company_id", "calls", ["company_id"])

    op.create_table(
        "processing_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "call_id",
            sa.String(36),
            sa.ForeignKey("calls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "company_id",
            sa.String(36),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("severity", sa.String(10), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_processing_logs_call_id", "processing_logs", ["call_id"])

    op.create_table(
        "call_analyses",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "call_id",
            sa.String(36),
            sa.ForeignKey("calls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "company_id",
            sa.String(36),
            sa.ForeignKey("companies.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("sentiment", sa.String(20), nullable=False),
        sa.Column("mood", sa.String(20), nullable=False),
        sa.Column("frustration_level", sa.String(20), nullable=False),
        sa.Column("issue_clarity", sa.String(20), nullable=False),
        sa.Column("agent_helpfulness", sa.String(20), nullable=False),
        sa.Column("upsell_opportunity", sa.String(20), nullable=False),
        sa.Column("confidence_level", sa.String(20), nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("participants", JSONB, nullable=True),
        sa.Column("data", JSONB, nullable=True),
        sa.Column("prompt_template_id", sa.String(100), nullable=True),
        sa.Column("model_id", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
    )
    op.create_index("idx_call_analyses_call_id", "call_analyses", ["call_id"])

    op.create_table(
        "call_transcript_embeddings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "call_id",
            sa.String(36),
            sa.ForeignKey("calls.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sequence", sa.Integer, nullable=False),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column("embedding", Vector(1024), nullable=False),
        sa.Column("model_name", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint(
            "call_id", "sequence", name="uq_call_transcript_embeddings_call_sequence"
        ),
    )
    op.create_index(
        "idx_call_transcript_embeddings_call_id",
        "call_transcript_embeddings",
        ["call_id"],
    )

    # HNSW index for approximate nearest neighbor search
    op.execute(
        """
        CREATE INDEX idx_call_transcript_embeddings_hnsw
        ON call_transcript_embeddings
        USING hnsw (embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
        """
    )


def downgrade() -> None:
    op.drop_index(
        "idx_call_transcript_embeddings_hnsw", table_name="call_transcript_embeddings"
    )
    op.drop_index(
        "idx_call_transcript_embeddings_call_id", table_name="call_transcript_embeddings"
    )
    op.drop_table("call_transcript_embeddings")
    op.drop_index("idx_call_analyses_call_id", table_name="call_analyses")
    op.drop_table("call_analyses")
    op.drop_index("idx_processing_logs_call_id", table_name="processing_logs")
    op.drop_table("processing_logs")
    op.drop_index("idx_calls_company_id", table_name="calls")
    op.drop_index("idx_calls_agent_id", table_name="calls")
    op.drop_index("idx_calls_status", table_name="calls")
    op.drop_table("calls")
    op.drop_table("companies")
    op.drop_table("agents")
    op.execute("DROP EXTENSION IF EXISTS vector")
