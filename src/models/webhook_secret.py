"""
Webhook secret - opaque token a trigger checks inbound calls against.
Only created when the trigger's authentication mode is not "none".
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from src.database import Base


class WebhookSecret(Base):
    __tablename__ = "pabbly_webhook_secrets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    company_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    trigger_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("pabbly_triggers.id"), nullable=False, unique=True
    )
    secret: Mapped[str] = mapped_column(String(128), nullable=False)
    created_by: Mapped[Optional[str]] = mapped_column(String(100))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    trigger: Mapped["Trigger"] = relationship(back_populates="secret")

    def __repr__(self) -> str:
        return f"<WebhookSecret trigger={self.trigger_id}>"
