"""
Workflow model - a named, ordered list of actions owned by one tenant.
The action list is stored as JSONB and treated as immutable once saved:
executions read a snapshot of it and never write back.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, DateTime, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from src.database import Base


class Workflow(Base):
    __tablename__ = "pabbly_workflows"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    template: Mapped[str] = mapped_column(String(50), default="custom")

    trigger_type: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # webhook, email, form_submission, api_call, schedule, database_change
    trigger_config: Mapped[dict] = mapped_column(JSONB, default=dict)

    # Ordered list of {"type": str, "parameters": dict}
    actions: Mapped[list] = mapped_column(JSONB, default=list)

    status: Mapped[str] = mapped_column(
        String(20), default="active", nullable=False
    )  # active, inactive
    pabbly_workflow_id: Mapped[Optional[str]] = mapped_column(String(100))
    webhook_url: Mapped[str] = mapped_column(String(500), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    triggers: Mapped[list["Trigger"]] = relationship(back_populates="workflow")

    __table_args__ = (
        Index("ix_pabbly_workflows_company_id", "company_id"),
    )

    def __repr__(self) -> str:
        return f"<Workflow {self.name} ({self.status})>"
