"""
Execution engine - runs a workflow's action list against an evolving context.

Lifecycle of one execution: running -> success | error (terminal, written once).

- The "running" record and its input snapshot are committed before the first
  action is dispatched, so accepted-but-failed runs stay auditable.
- Actions run strictly in order. A successful step's result is merged into the
  context (later keys shadow earlier ones); a failed step leaves the context
  unchanged and the loop moves on.
- Individual step failures do not fail the execution. Only an engine-level
  error (corrupt snapshot, persistence failure, timeout) marks it "error".
"""
import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx
from sqlalchemy import select, update, func, and_, case
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings
from src.models.execution import Execution, STATUS_RUNNING, STATUS_SUCCESS, STATUS_ERROR
from src.models.workflow import Workflow
from src.schemas.pabbly import ActionSpec
from src.services.actions import (
    DEFAULT_REGISTRY,
    ActionEnvironment,
    ActionRegistry,
    execute_action,
)
from src.services.workflow_store import get_workflow, load_actions
from src.utils.errors import EngineError, ExecutionNotFoundError, PabblyError
from src.utils.logging import get_correlation_id, log_context

logger = logging.getLogger(__name__)

EXECUTION_LIST_LIMIT = 100


@dataclass
class ExecutionResult:
    execution_id: uuid.UUID
    status: str
    steps: list[dict] = field(default_factory=list)
    context: dict = field(default_factory=dict)
    execution_time_ms: int = 0


async def run_actions(
    actions: list[ActionSpec],
    input_data: dict,
    env: ActionEnvironment,
    registry: ActionRegistry = DEFAULT_REGISTRY,
) -> tuple[list[dict], dict]:
    """
    Dispatch every action in order, threading the context through.
    Returns (step trace, final context).
    """
    context = dict(input_data)
    trace: list[dict] = []

    for action in actions:
        step = await execute_action(action, context, env, registry)
        trace.append(step.to_dict())
        if step.ok and isinstance(step.result, dict):
            context = {**context, **step.result}

    return trace, context


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


async def _finish_execution(
    db: AsyncSession,
    execution_id: uuid.UUID,
    status: str,
    **values: Any,
) -> None:
    """The single terminal transition. Guarded on status so it can only apply once."""
    await db.execute(
        update(Execution)
        .where(and_(Execution.id == execution_id, Execution.status == STATUS_RUNNING))
        .values(status=status, finished_at=datetime.now(timezone.utc), **values)
    )
    await db.commit()


async def execute_workflow(
    db: AsyncSession,
    workflow_id: uuid.UUID,
    company_id: uuid.UUID,
    input_data: dict,
    *,
    settings: Settings,
    trigger_id: Optional[uuid.UUID] = None,
    registry: ActionRegistry = DEFAULT_REGISTRY,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ExecutionResult:
    """
    Run one workflow and persist its execution record.
    Raises EngineError when the run cannot complete; the record is then "error".
    """
    log_extra = {"company_id": str(company_id), "workflow_id": str(workflow_id)}

    try:
        workflow: Workflow = await get_workflow(db, workflow_id, company_id)
    except PabblyError as e:
        raise EngineError(str(e)) from e

    execution = Execution(
        company_id=company_id,
        workflow_id=workflow.id,
        trigger_id=trigger_id,
        status=STATUS_RUNNING,
        input_data=input_data,
        correlation_id=get_correlation_id(),
    )
    db.add(execution)
    await db.flush()
    execution_id = execution.id
    await db.commit()

    log_extra["execution_id"] = str(execution_id)
    logger.info("Execution started for workflow %s", workflow.name, extra=log_extra)

    started = time.monotonic()
    env = ActionEnvironment(
        db=db, company_id=company_id, settings=settings, http_client=http_client,
    )

    try:
        with log_context(**log_extra):
            actions = load_actions(workflow)
            run = run_actions(actions, input_data, env, registry)
            if settings.execution_timeout_seconds and settings.execution_timeout_seconds > 0:
                trace, context = await asyncio.wait_for(run, timeout=settings.execution_timeout_seconds)
            else:
                trace, context = await run
    except asyncio.TimeoutError as e:
        message = f"Execution timed out after {settings.execution_timeout_seconds}s"
        await _fail(db, execution_id, message, started, log_extra)
        raise EngineError(message) from e
    except Exception as e:
        message = str(e) or e.__class__.__name__
        await _fail(db, execution_id, message, started, log_extra)
        raise EngineError(message) from e

    elapsed = _elapsed_ms(started)
    try:
        await _finish_execution(
            db, execution_id, STATUS_SUCCESS,
            step_trace=trace,
            output_data=context,
            execution_time_ms=elapsed,
        )
    except Exception as e:
        await _fail(db, execution_id, e.__class__.__name__, started, log_extra)
        raise EngineError("Failed to record execution result") from e

    failed_steps = sum(1 for step in trace if not step["success"])
    logger.info(
        "Execution finished: %d steps, %d failed, %dms",
        len(trace), failed_steps, elapsed, extra=log_extra,
    )
    return ExecutionResult(
        execution_id=execution_id,
        status=STATUS_SUCCESS,
        steps=trace,
        context=context,
        execution_time_ms=elapsed,
    )


async def _fail(
    db: AsyncSession,
    execution_id: uuid.UUID,
    message: str,
    started: float,
    log_extra: dict,
) -> None:
    logger.error("Execution failed: %s", message, extra=log_extra)
    try:
        await db.rollback()
        await _finish_execution(
            db, execution_id, STATUS_ERROR,
            error_message=message,
            execution_time_ms=_elapsed_ms(started),
        )
    except Exception:
        logger.exception("Could not record execution failure", extra=log_extra)


# === QUERIES ===

def execution_to_dict(execution: Execution, workflow_name: Optional[str] = None) -> dict:
    return {
        "id": str(execution.id),
        "workflow_id": str(execution.workflow_id),
        "workflow_name": workflow_name,
        "trigger_id": str(execution.trigger_id) if execution.trigger_id else None,
        "status": execution.status,
        "input_data": execution.input_data,
        "output_data": execution.output_data,
        "step_trace": execution.step_trace,
        "error_message": execution.error_message,
        "execution_time_ms": execution.execution_time_ms,
        "executed_at": execution.executed_at,
        "finished_at": execution.finished_at,
    }


def _date_filters(date_from: Optional[datetime], date_to: Optional[datetime]) -> list:
    filters = []
    if date_from:
        filters.append(Execution.executed_at >= date_from)
    if date_to:
        filters.append(Execution.executed_at <= date_to)
    return filters


def default_date_range(days: int = 7) -> tuple[datetime, datetime]:
    now = datetime.now(timezone.utc)
    return now - timedelta(days=days), now


async def list_executions(
    db: AsyncSession,
    company_id: uuid.UUID,
    workflow_id: Optional[uuid.UUID] = None,
    status: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> list[dict]:
    """Newest first, at most EXECUTION_LIST_LIMIT rows. status None or "all" means any."""
    filters = [Execution.company_id == company_id, *_date_filters(date_from, date_to)]
    if workflow_id:
        filters.append(Execution.workflow_id == workflow_id)
    if status and status != "all":
        filters.append(Execution.status == status)

    result = await db.execute(
        select(Execution, Workflow.name)
        .outerjoin(Workflow, Workflow.id == Execution.workflow_id)
        .where(and_(*filters))
        .order_by(Execution.executed_at.desc())
        .limit(EXECUTION_LIST_LIMIT)
    )
    return [execution_to_dict(execution, name) for execution, name in result.all()]


async def get_execution(
    db: AsyncSession, execution_id: uuid.UUID, company_id: uuid.UUID,
) -> dict:
    result = await db.execute(
        select(Execution, Workflow.name)
        .outerjoin(Workflow, Workflow.id == Execution.workflow_id)
        .where(and_(Execution.id == execution_id, Execution.company_id == company_id))
    )
    row = result.first()
    if row is None:
        raise ExecutionNotFoundError(f"Execution not found: {execution_id}")
    execution, name = row
    return execution_to_dict(execution, name)


async def get_execution_stats(
    db: AsyncSession,
    company_id: uuid.UUID,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> dict:
    result = await db.execute(
        select(
            func.count(Execution.id),
            func.count(case((Execution.status == STATUS_SUCCESS, 1))),
            func.count(case((Execution.status == STATUS_ERROR, 1))),
            func.avg(Execution.execution_time_ms),
            func.min(Execution.executed_at),
            func.max(Execution.executed_at),
        ).where(and_(Execution.company_id == company_id, *_date_filters(date_from, date_to)))
    )
    total, successful, failed, avg_time, first, last = result.one()
    return {
        "total_executions": total or 0,
        "successful_executions": successful or 0,
        "failed_executions": failed or 0,
        "avg_execution_time": float(avg_time) if avg_time is not None else None,
        "first_execution": first,
        "last_execution": last,
    }
