"""
Webhook call audit trail - one insert per inbound call, plus the read side
used by the integration dashboard (log listing, volume stats, recent activity).
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.execution import Execution
from src.models.trigger import Trigger
from src.models.webhook_log import WebhookCallLog
from src.models.workflow import Workflow
from src.utils.logging import get_correlation_id

logger = logging.getLogger(__name__)

WEBHOOK_LOG_LIMIT = 50
ACTIVITY_LIMIT = 20
STATS_WINDOW_DAYS = 7


async def record_webhook_call(
    db: AsyncSession,
    *,
    company_id: uuid.UUID,
    webhook_slug: str,
    response_status: int,
    response_time_ms: int,
    trigger_id: Optional[uuid.UUID] = None,
    request_data: Optional[dict] = None,
    payload_hash: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> WebhookCallLog:
    """Insert the call log row and commit it so it survives a later rollback."""
    entry = WebhookCallLog(
        company_id=company_id,
        trigger_id=trigger_id,
        webhook_slug=webhook_slug,
        request_data=request_data,
        payload_hash=payload_hash,
        response_status=response_status,
        response_time_ms=response_time_ms,
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        correlation_id=get_correlation_id(),
    )
    db.add(entry)
    await db.flush()
    await db.commit()
    return entry


async def list_webhook_logs(db: AsyncSession, company_id: uuid.UUID) -> list[dict]:
    result = await db.execute(
        select(WebhookCallLog, Trigger.name, Workflow.name)
        .outerjoin(Trigger, Trigger.id == WebhookCallLog.trigger_id)
        .outerjoin(Workflow, Workflow.id == Trigger.workflow_id)
        .where(WebhookCallLog.company_id == company_id)
        .order_by(WebhookCallLog.received_at.desc())
        .limit(WEBHOOK_LOG_LIMIT)
    )
    return [
        {
            "id": str(log.id),
            "trigger_id": str(log.trigger_id) if log.trigger_id else None,
            "trigger_name": trigger_name,
            "workflow_name": workflow_name,
            "webhook_slug": log.webhook_slug,
            "response_status": log.response_status,
            "response_time_ms": log.response_time_ms,
            "ip_address": log.ip_address,
            "user_agent": log.user_agent,
            "received_at": log.received_at,
        }
        for log, trigger_name, workflow_name in result.all()
    ]


async def get_webhook_stats(db: AsyncSession, company_id: uuid.UUID) -> dict:
    """Call volume over the last STATS_WINDOW_DAYS days."""
    since = datetime.now(timezone.utc) - timedelta(days=STATS_WINDOW_DAYS)
    result = await db.execute(
        select(
            func.count(WebhookCallLog.id),
            func.count(case((WebhookCallLog.response_status == 200, 1))),
            func.count(case((WebhookCallLog.response_status >= 400, 1))),
            func.avg(WebhookCallLog.response_time_ms),
            func.max(WebhookCallLog.received_at),
        ).where(
            and_(
                WebhookCallLog.company_id == company_id,
                WebhookCallLog.received_at >= since,
            )
        )
    )
    total, successful, failed, avg_time, last_call = result.one()
    return {
        "total_calls": total or 0,
        "successful_calls": successful or 0,
        "failed_calls": failed or 0,
        "avg_response_time": float(avg_time) if avg_time is not None else None,
        "last_call": last_call,
    }


async def get_recent_activity(db: AsyncSession, company_id: uuid.UUID) -> list[dict]:
    """Latest executions and trigger firings, merged newest first."""
    executions = await db.execute(
        select(Execution, Workflow.name)
        .join(Workflow, Workflow.id == Execution.workflow_id)
        .where(Execution.company_id == company_id)
        .order_by(Execution.executed_at.desc())
        .limit(ACTIVITY_LIMIT)
    )
    calls = await db.execute(
        select(WebhookCallLog, Trigger.name)
        .join(Trigger, Trigger.id == WebhookCallLog.trigger_id)
        .where(WebhookCallLog.company_id == company_id)
        .order_by(WebhookCallLog.received_at.desc())
        .limit(ACTIVITY_LIMIT)
    )

    activity = [
        {
            "activity_type": "execution",
            "description": f"Workflow executed: {workflow_name}",
            "activity_time": execution.executed_at,
            "status": execution.status,
            "execution_time_ms": execution.execution_time_ms,
        }
        for execution, workflow_name in executions.all()
    ]
    activity.extend(
        {
            "activity_type": "trigger",
            "description": f"Trigger fired: {trigger_name}",
            "activity_time": log.received_at,
            "status": "success" if log.response_status < 400 else "error",
            "execution_time_ms": None,
        }
        for log, trigger_name in calls.all()
    )
    activity.sort(key=lambda item: item["activity_time"], reverse=True)
    return activity[:ACTIVITY_LIMIT]
