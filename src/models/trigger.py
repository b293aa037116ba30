"""
Trigger model - the event source that starts a workflow.
One trigger per workflow today; the schema allows more later.
Webhook triggers are reachable at their slug, unique per tenant.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from src.database import Base


class Trigger(Base):
    __tablename__ = "pabbly_triggers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pabbly_workflows.id"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(300), nullable=False)
    trigger_type: Mapped[str] = mapped_column(String(50), nullable=False)
    # {"authentication": "none" | "api_key" | "basic", ...type specific keys}
    config: Mapped[dict] = mapped_column(JSONB, default=dict)

    webhook_url: Mapped[str] = mapped_column(String(500), nullable=False)
    webhook_slug: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    workflow: Mapped["Workflow"] = relationship(back_populates="triggers")
    secret: Mapped[Optional["WebhookSecret"]] = relationship(back_populates="trigger")

    __table_args__ = (
        UniqueConstraint("company_id", "webhook_slug", name="uq_pabbly_triggers_company_slug"),
        Index("ix_pabbly_triggers_workflow_id", "workflow_id"),
    )

    @property
    def auth_mode(self) -> str:
        return (self.config or {}).get("authentication") or "none"

    def __repr__(self) -> str:
        return f"<Trigger {self.webhook_slug} active={self.is_active}>"
