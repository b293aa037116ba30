"""
Execution model - one record per workflow run.
Written as "running" before the first action is dispatched, then moved exactly
once to "success" or "error". Never modified after that.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from src.database import Base

STATUS_RUNNING = "running"
STATUS_SUCCESS = "success"
STATUS_ERROR = "error"


class Execution(Base):
    __tablename__ = "pabbly_execution_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pabbly_workflows.id"), nullable=False
    )
    trigger_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pabbly_triggers.id")
    )

    status: Mapped[str] = mapped_column(
        String(20), default=STATUS_RUNNING, nullable=False
    )  # running, success, error

    input_data: Mapped[Optional[dict]] = mapped_column(JSONB)
    output_data: Mapped[Optional[dict]] = mapped_column(JSONB)  # final context
    step_trace: Mapped[Optional[list]] = mapped_column(JSONB)
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    execution_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    correlation_id: Mapped[Optional[str]] = mapped_column(String(64))

    executed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_pabbly_executions_company_executed", "company_id", "executed_at"),
        Index("ix_pabbly_executions_workflow_id", "workflow_id"),
    )

    def __repr__(self) -> str:
        return f"<Execution {self.id} ({self.status})>"
