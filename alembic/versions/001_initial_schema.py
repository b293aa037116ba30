"""Initial schema: workflows, triggers, secrets, executions, webhook logs, tasks, integration configs

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "pabbly_workflows",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("template", sa.String(50), server_default="custom"),
        sa.Column("trigger_type", sa.String(50), nullable=False),
        sa.Column("trigger_config", postgresql.JSONB),
        sa.Column("actions", postgresql.JSONB),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("pabbly_workflow_id", sa.String(100)),
        sa.Column("webhook_url", sa.String(500), nullable=False),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_pabbly_workflows_company_id", "pabbly_workflows", ["company_id"])

    op.create_table(
        "pabbly_triggers",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "workflow_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pabbly_workflows.id"), nullable=False,
        ),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("trigger_type", sa.String(50), nullable=False),
        sa.Column("config", postgresql.JSONB),
        sa.Column("webhook_url", sa.String(500), nullable=False),
        sa.Column("webhook_slug", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("company_id", "webhook_slug", name="uq_pabbly_triggers_company_slug"),
    )
    op.create_index("ix_pabbly_triggers_workflow_id", "pabbly_triggers", ["workflow_id"])

    op.create_table(
        "pabbly_webhook_secrets",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "trigger_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pabbly_triggers.id"), nullable=False, unique=True,
        ),
        sa.Column("secret", sa.String(128), nullable=False),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "pabbly_execution_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "workflow_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pabbly_workflows.id"), nullable=False,
        ),
        sa.Column(
            "trigger_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pabbly_triggers.id"),
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("input_data", postgresql.JSONB),
        sa.Column("output_data", postgresql.JSONB),
        sa.Column("step_trace", postgresql.JSONB),
        sa.Column("error_message", sa.Text),
        sa.Column("execution_time_ms", sa.Integer),
        sa.Column("correlation_id", sa.String(64)),
        sa.Column("executed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True)),
    )
    op.create_index(
        "ix_pabbly_executions_company_executed", "pabbly_execution_logs",
        ["company_id", "executed_at"],
    )
    op.create_index("ix_pabbly_executions_workflow_id", "pabbly_execution_logs", ["workflow_id"])

    op.create_table(
        "pabbly_webhook_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "trigger_id", postgresql.UUID(as_uuid=True),
            sa.ForeignKey("pabbly_triggers.id"),
        ),
        sa.Column("webhook_slug", sa.String(255), nullable=False),
        sa.Column("request_data", postgresql.JSONB),
        sa.Column("payload_hash", sa.String(64)),
        sa.Column("response_status", sa.Integer, nullable=False),
        sa.Column("response_time_ms", sa.Integer, server_default="0"),
        sa.Column("ip_address", sa.String(64)),
        sa.Column("user_agent", sa.String(500)),
        sa.Column("correlation_id", sa.String(64)),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_pabbly_webhook_logs_company_received", "pabbly_webhook_logs",
        ["company_id", "received_at"],
    )
    op.create_index("ix_pabbly_webhook_logs_trigger_id", "pabbly_webhook_logs", ["trigger_id"])

    op.create_table(
        "tasks",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, server_default=""),
        sa.Column("assigned_to", sa.String(100)),
        sa.Column("due_date", sa.Date),
        sa.Column("priority", sa.String(20), server_default="medium"),
        sa.Column("status", sa.String(20), server_default="pending"),
        sa.Column("created_by", sa.String(100)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tasks_company_id", "tasks", ["company_id"])

    op.create_table(
        "integration_configs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("company_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider", sa.String(50), nullable=False),
        sa.Column("base_url", sa.String(255)),
        sa.Column("api_key", sa.String(255)),
        sa.Column("api_secret", sa.String(255)),
        sa.Column("is_active", sa.Boolean, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("company_id", "provider", name="uq_integration_configs_company_provider"),
    )


def downgrade() -> None:
    op.drop_table("integration_configs")
    op.drop_index("ix_tasks_company_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_index("ix_pabbly_webhook_logs_trigger_id", table_name="pabbly_webhook_logs")
    op.drop_index("ix_pabbly_webhook_logs_company_received", table_name="pabbly_webhook_logs")
    op.drop_table("pabbly_webhook_logs")
    op.drop_index("ix_pabbly_executions_workflow_id", table_name="pabbly_execution_logs")
    op.drop_index("ix_pabbly_executions_company_executed", table_name="pabbly_execution_logs")
    op.drop_table("pabbly_execution_logs")
    op.drop_table("pabbly_webhook_secrets")
    op.drop_index("ix_pabbly_triggers_workflow_id", table_name="pabbly_triggers")
    op.drop_table("pabbly_triggers")
    op.drop_index("ix_pabbly_workflows_company_id", table_name="pabbly_workflows")
    op.drop_table("pabbly_workflows")
