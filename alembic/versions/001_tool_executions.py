"""tool_executions table for the SQL telemetry sink.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: tuple[str, ...] | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "tool_executions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("tool_name", sa.String(255), nullable=False),
        sa.Column("user_id", sa.String(64), nullable=True),
        sa.Column("team_id", sa.String(64), nullable=True),
        sa.Column("arguments", sa.JSON(), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("error_code", sa.String(100), nullable=True),
        sa.Column("error_type", sa.String(32), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("memory_usage_bytes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("retries", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("cache_hit", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("duplicate", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("result_data", sa.JSON(), nullable=True),
        sa.Column("trace_id", sa.String(32), nullable=True),
        sa.Column("idempotency_key", sa.String(64), nullable=True),
        sa.Column("chain_path", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_tool_executions_tool_name", "tool_executions", ["tool_name"])
    op.create_index("ix_tool_executions_error_code", "tool_executions", ["error_code"])
    op.create_index("ix_tool_executions_trace_id", "tool_executions", ["trace_id"])
    op.create_index(
        "ix_tool_executions_idempotency_key", "tool_executions", ["idempotency_key"]
    )
    op.create_index(
        "ix_tool_executions_tool_success", "tool_executions", ["tool_name", "success"]
    )
    op.create_index("ix_tool_executions_created_at", "tool_executions", ["created_at"])
    op.create_index(
        "ix_tool_executions_user_created", "tool_executions", ["user_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_tool_executions_user_created", table_name="tool_executions")
    op.drop_index("ix_tool_executions_created_at", table_name="tool_executions")
    op.drop_index("ix_tool_executions_tool_success", table_name="tool_executions")
    op.drop_index("ix_tool_executions_idempotency_key", table_name="tool_executions")
    op.drop_index("ix_tool_executions_trace_id", table_name="tool_executions")
    op.drop_index("ix_tool_executions_error_code", table_name="tool_executions")
    op.drop_index("ix_tool_executions_tool_name", table_name="tool_executions")
    op.drop_table("tool_executions")
