"""
Webhook call log - one row per inbound HTTP call to a webhook path.
Recorded whether or not the call resolved, authenticated or executed.
Insert-only: used for auditing and volume analytics.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from src.database import Base


class WebhookCallLog(Base):
    __tablename__ = "pabbly_webhook_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    trigger_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pabbly_triggers.id")
    )
    webhook_slug: Mapped[str] = mapped_column(String(255), nullable=False)

    request_data: Mapped[Optional[dict]] = mapped_column(JSONB)
    payload_hash: Mapped[Optional[str]] = mapped_column(String(64))
    response_status: Mapped[int] = mapped_column(Integer, nullable=False)
    response_time_ms: Mapped[int] = mapped_column(Integer, default=0)

    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(String(500))
    correlation_id: Mapped[Optional[str]] = mapped_column(String(64))

    received_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_pabbly_webhook_logs_company_received", "company_id", "received_at"),
        Index("ix_pabbly_webhook_logs_trigger_id", "trigger_id"),
    )

    def __repr__(self) -> str:
        return f"<WebhookCallLog {self.webhook_slug} status={self.response_status}>"
