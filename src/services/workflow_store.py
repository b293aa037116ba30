"""
Workflow store - persisted workflow definitions, their trigger and webhook secret.

Every read is scoped by company_id. A workflow's action list is fixed once
persisted: the engine loads it as an ordered snapshot and never writes it back.
"""
import logging
import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select, func, case, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.execution import Execution
from src.models.trigger import Trigger
from src.models.webhook_secret import WebhookSecret
from src.models.workflow import Workflow
from src.schemas.pabbly import ActionSpec, WorkflowCreate
from src.utils.errors import ConflictError, WorkflowNotFoundError

logger = logging.getLogger(__name__)

WEBHOOK_PATH_PREFIX = "/api/integrations/pabbly"

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


@dataclass(frozen=True)
class CreatedWorkflow:
    workflow_id: uuid.UUID
    trigger_id: uuid.UUID
    webhook_slug: str
    webhook_url: str
    authentication: str
    webhook_secret: Optional[str] = None


def slugify_workflow_name(name: str) -> str:
    """Every non-alphanumeric character becomes one hyphen, then lower-case."""
    return _NON_ALNUM.sub("-", name).lower()


def build_webhook_url(company_id: uuid.UUID, slug: str) -> str:
    return f"{WEBHOOK_PATH_PREFIX}/{company_id}/webhook/{slug}"


def generate_webhook_secret() -> str:
    """64 hex chars (32 random bytes)."""
    return secrets.token_hex(32)


async def create_workflow(
    db: AsyncSession,
    company_id: uuid.UUID,
    payload: WorkflowCreate,
    created_by: Optional[str] = None,
) -> CreatedWorkflow:
    """
    Insert a workflow, its trigger and (when authentication is enabled) the
    trigger's webhook secret as one unit. Raises ConflictError when the tenant
    already has a trigger on the same slug.
    """
    slug = slugify_workflow_name(payload.name)
    webhook_url = build_webhook_url(company_id, slug)

    existing = await db.execute(
        select(Trigger.id).where(
            and_(Trigger.company_id == company_id, Trigger.webhook_slug == slug)
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Webhook path already in use: {webhook_url}")

    authentication = payload.trigger_config.get("authentication") or "none"
    secret_value = None

    try:
        workflow = Workflow(
            company_id=company_id,
            name=payload.name,
            description=payload.description,
            template=payload.template,
            trigger_type=payload.trigger_type,
            trigger_config=payload.trigger_config,
            actions=[action.model_dump() for action in payload.actions],
            status=payload.status,
            webhook_url=webhook_url,
            created_by=created_by,
        )
        db.add(workflow)
        await db.flush()

        trigger = Trigger(
            company_id=company_id,
            workflow_id=workflow.id,
            name=f"{payload.name} Trigger",
            trigger_type=payload.trigger_type,
            config=payload.trigger_config,
            webhook_url=webhook_url,
            webhook_slug=slug,
            is_active=True,
            created_by=created_by,
        )
        db.add(trigger)
        await db.flush()

        if authentication != "none":
            secret_value = generate_webhook_secret()
            db.add(WebhookSecret(
                company_id=company_id,
                trigger_id=trigger.id,
                secret=secret_value,
                created_by=created_by,
            ))
            await db.flush()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Workflow creation conflict for slug %s: %s", slug, str(e))
        raise ConflictError(f"Webhook path already in use: {webhook_url}") from e
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Workflow created: %s (%d actions, auth=%s)",
        slug, len(payload.actions), authentication,
        extra={"company_id": str(company_id), "workflow_id": str(workflow.id)},
    )
    return CreatedWorkflow(
        workflow_id=workflow.id,
        trigger_id=trigger.id,
        webhook_slug=slug,
        webhook_url=webhook_url,
        authentication=authentication,
        webhook_secret=secret_value,
    )


async def get_workflow(
    db: AsyncSession, workflow_id: uuid.UUID, company_id: uuid.UUID,
) -> Workflow:
    """Load one workflow for a tenant or raise WorkflowNotFoundError."""
    result = await db.execute(
        select(Workflow).where(
            and_(Workflow.id == workflow_id, Workflow.company_id == company_id)
        )
    )
    workflow = result.scalar_one_or_none()
    if workflow is None:
        raise WorkflowNotFoundError(f"Workflow not found: {workflow_id}")
    return workflow


def load_actions(workflow: Workflow) -> list[ActionSpec]:
    """Ordered, validated snapshot of the workflow's stored action list."""
    return [ActionSpec.model_validate(raw) for raw in (workflow.actions or [])]


def workflow_to_dict(workflow: Workflow) -> dict:
    return {
        "id": str(workflow.id),
        "name": workflow.name,
        "description": workflow.description or "",
        "template": workflow.template,
        "trigger_type": workflow.trigger_type,
        "trigger_config": workflow.trigger_config or {},
        "actions": [a.model_dump() for a in load_actions(workflow)],
        "status": workflow.status,
        "webhook_url": workflow.webhook_url,
        "created_at": workflow.created_at,
    }


async def list_workflows(db: AsyncSession, company_id: uuid.UUID) -> list[dict]:
    """Tenant workflows, newest first, with execution counters."""
    result = await db.execute(
        select(
            Workflow,
            func.count(Execution.id),
            func.max(Execution.executed_at),
            func.avg(Execution.execution_time_ms),
        )
        .outerjoin(Execution, Execution.workflow_id == Workflow.id)
        .where(Workflow.company_id == company_id)
        .group_by(Workflow.id)
        .order_by(Workflow.created_at.desc())
    )

    workflows = []
    for workflow, execution_count, last_execution, avg_time in result.all():
        data = workflow_to_dict(workflow)
        data["execution_count"] = execution_count or 0
        data["last_execution"] = last_execution
        data["avg_execution_time"] = float(avg_time) if avg_time is not None else None
        workflows.append(data)
    return workflows


async def get_workflow_stats(db: AsyncSession, company_id: uuid.UUID) -> dict:
    counts = await db.execute(
        select(
            func.count(Workflow.id),
            func.count(case((Workflow.status == "active", 1))),
            func.count(case((Workflow.status == "inactive", 1))),
        ).where(Workflow.company_id == company_id)
    )
    total, active, inactive = counts.one()

    executions = await db.execute(
        select(
            func.count(Execution.id),
            func.avg(Execution.execution_time_ms),
        ).where(Execution.company_id == company_id)
    )
    total_executions, avg_time = executions.one()

    return {
        "total_workflows": total or 0,
        "active_workflows": active or 0,
        "inactive_workflows": inactive or 0,
        "total_executions": total_executions or 0,
        "avg_execution_time": float(avg_time) if avg_time is not None else None,
    }
