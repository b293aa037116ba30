"""
Trigger registry - maps an inbound webhook slug to its trigger, workflow and
authentication requirement. Pure reads, safe to run concurrently.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.trigger import Trigger
from src.models.webhook_log import WebhookCallLog
from src.models.webhook_secret import WebhookSecret
from src.models.workflow import Workflow
from src.utils.errors import TriggerNotFoundError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedTrigger:
    trigger_id: uuid.UUID
    workflow_id: uuid.UUID
    workflow_name: str
    company_id: uuid.UUID
    trigger_type: str
    auth_mode: str
    secret: Optional[str] = None


async def resolve_webhook(
    db: AsyncSession, webhook_slug: str, company_id: uuid.UUID,
) -> ResolvedTrigger:
    """
    Exact slug match scoped to the tenant and to active triggers.
    Raises TriggerNotFoundError when nothing matches.
    """
    result = await db.execute(
        select(Trigger, Workflow.name, WebhookSecret.secret)
        .join(Workflow, Workflow.id == Trigger.workflow_id)
        .outerjoin(
            WebhookSecret,
            and_(
                WebhookSecret.trigger_id == Trigger.id,
                WebhookSecret.company_id == Trigger.company_id,
            ),
        )
        .where(
            and_(
                Trigger.webhook_slug == webhook_slug,
                Trigger.company_id == company_id,
                Trigger.is_active.is_(True),
            )
        )
    )
    row = result.first()
    if row is None:
        raise TriggerNotFoundError(f"Webhook not found: {webhook_slug}")

    trigger, workflow_name, secret = row
    return ResolvedTrigger(
        trigger_id=trigger.id,
        workflow_id=trigger.workflow_id,
        workflow_name=workflow_name,
        company_id=trigger.company_id,
        trigger_type=trigger.trigger_type,
        auth_mode=trigger.auth_mode,
        secret=secret,
    )


async def list_triggers(db: AsyncSession, company_id: uuid.UUID) -> list[dict]:
    """Tenant triggers, newest first, with webhook call counters."""
    result = await db.execute(
        select(
            Trigger,
            Workflow.name,
            func.count(WebhookCallLog.id),
            func.max(WebhookCallLog.received_at),
        )
        .outerjoin(Workflow, Workflow.id == Trigger.workflow_id)
        .outerjoin(WebhookCallLog, WebhookCallLog.trigger_id == Trigger.id)
        .where(Trigger.company_id == company_id)
        .group_by(Trigger.id, Workflow.name)
        .order_by(Trigger.created_at.desc())
    )
    return [
        {
            "id": str(trigger.id),
            "workflow_id": str(trigger.workflow_id),
            "workflow_name": workflow_name,
            "name": trigger.name,
            "trigger_type": trigger.trigger_type,
            "authentication": trigger.auth_mode,
            "webhook_url": trigger.webhook_url,
            "is_active": trigger.is_active,
            "call_count": call_count or 0,
            "last_call": last_call,
            "created_at": trigger.created_at,
        }
        for trigger, workflow_name, call_count, last_call in result.all()
    ]
