"""
Pabbly Connect integration API - workflow builder, monitoring and catalog.
All routes are scoped to one tenant through the company_id path segment.
"""
import logging
import uuid
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database import get_db
from src.integrations.pabbly import get_connection_status, load_pabbly_config
from src.schemas.pabbly import (
    ExecutionDetail,
    WebhookLogSummary,
    WorkflowCreate,
    WorkflowCreatedResponse,
    WorkflowDetail,
    WorkflowSummary,
)
from src.services import execution_engine, webhook_logs, webhook_resolver, workflow_store
from src.services.catalog import get_catalog
from src.utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/integrations/pabbly/{company_id}", tags=["pabbly"])


def _date_range(
    date_from: Optional[date], date_to: Optional[date],
) -> tuple[datetime, datetime]:
    """Whole-day bounds; defaults to the last 7 days."""
    default_from, default_to = execution_engine.default_date_range()
    start = (
        datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from
        else datetime.combine(default_from.date(), time.min, tzinfo=timezone.utc)
    )
    end = (
        datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to
        else datetime.combine(default_to.date(), time.max, tzinfo=timezone.utc)
    )
    return start, end


# === WORKFLOWS ===

@router.post("/workflows", response_model=WorkflowCreatedResponse, status_code=201)
async def create_workflow(
    company_id: uuid.UUID,
    payload: WorkflowCreate,
    db: AsyncSession = Depends(get_db),
):
    try:
        created = await workflow_store.create_workflow(db, company_id, payload)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=str(e))
    await db.commit()

    return WorkflowCreatedResponse(
        workflow_id=str(created.workflow_id),
        trigger_id=str(created.trigger_id),
        webhook_url=created.webhook_url,
        webhook_slug=created.webhook_slug,
        authentication=created.authentication,
        webhook_secret=created.webhook_secret,
    )


@router.get("/workflows", response_model=list[WorkflowSummary])
async def list_workflows(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await workflow_store.list_workflows(db, company_id)


@router.get("/workflows/stats")
async def workflow_stats(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await workflow_store.get_workflow_stats(db, company_id)


@router.get("/workflows/{workflow_id}", response_model=WorkflowDetail)
async def get_workflow(
    company_id: uuid.UUID,
    workflow_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        workflow = await workflow_store.get_workflow(db, workflow_id, company_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return workflow_store.workflow_to_dict(workflow)


# === TRIGGERS ===

@router.get("/triggers")
async def list_triggers(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await webhook_resolver.list_triggers(db, company_id)


# === EXECUTIONS ===

@router.get("/executions", response_model=list[ExecutionDetail])
async def list_executions(
    company_id: uuid.UUID,
    workflow_id: Optional[uuid.UUID] = Query(default=None),
    status: str = Query(default="all", pattern="^(all|running|success|error)$"),
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    start, end = _date_range(date_from, date_to)
    return await execution_engine.list_executions(
        db, company_id,
        workflow_id=workflow_id,
        status=status,
        date_from=start,
        date_to=end,
    )


@router.get("/executions/stats")
async def execution_stats(
    company_id: uuid.UUID,
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    start, end = _date_range(date_from, date_to)
    return await execution_engine.get_execution_stats(db, company_id, start, end)


@router.get("/executions/{execution_id}", response_model=ExecutionDetail)
async def get_execution(
    company_id: uuid.UUID,
    execution_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    try:
        return await execution_engine.get_execution(db, execution_id, company_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Execution not found")


# === WEBHOOK MONITORING ===

@router.get("/webhook-logs", response_model=list[WebhookLogSummary])
async def list_webhook_logs(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await webhook_logs.list_webhook_logs(db, company_id)


@router.get("/webhook-logs/stats")
async def webhook_stats(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await webhook_logs.get_webhook_stats(db, company_id)


@router.get("/activity")
async def recent_activity(company_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    return await webhook_logs.get_recent_activity(db, company_id)


# === CATALOG & CONNECTION ===

@router.get("/catalog")
async def catalog(company_id: uuid.UUID):
    return get_catalog()


@router.get("/connection")
async def connection_status(
    company_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    config = await load_pabbly_config(db, company_id, settings)
    return await get_connection_status(config, settings)
