"""
Pabbly Connect inbound webhook - runs the workflow bound to a webhook slug.

Order of operations:
1. Resolve the trigger for (tenant, slug)         -> 404 {"error": "Webhook not found"}
2. Authenticate against the trigger's mode         -> 401 {"error": "Authentication failed"}
3. Execute the workflow                            -> 500 {"error": <message>} on engine failure
4. Record the call with the status returned (committed)

Every call that names a valid tenant gets exactly one webhook_logs row,
whatever its outcome.
"""
import json
import logging
import time
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings, get_settings
from src.database import get_db
from src.services.execution_engine import execute_workflow
from src.services.webhook_auth import authenticate_webhook
from src.services.webhook_logs import record_webhook_call
from src.services.webhook_resolver import resolve_webhook
from src.utils.errors import EngineError, TriggerNotFoundError
from src.utils.logging import log_context
from src.utils.webhook_signatures import compute_payload_hash

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/integrations/pabbly", tags=["pabbly-webhooks"])

NOT_FOUND_BODY = {"error": "Webhook not found"}
AUTH_FAILED_BODY = {"error": "Authentication failed"}
INTERNAL_ERROR_BODY = {"error": "Internal server error"}


def parse_webhook_data(content_type: str, body: bytes) -> dict:
    """
    JSON bodies become the execution input as-is (non-object JSON is wrapped
    under "data"). Anything else, including malformed JSON, is kept as
    {"raw_data": <text>}.
    """
    text = body.decode("utf-8", errors="replace")
    if "application/json" not in (content_type or "").lower():
        return {"raw_data": text}

    if not body.strip():
        return {}
    try:
        data = json.loads(text)
    except ValueError:
        return {"raw_data": text}

    if isinstance(data, dict):
        return data
    return {"data": data}


def _parse_company_id(company_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(company_id)
    except ValueError:
        return None


@router.post("/{company_id}/webhook/{webhook_slug}")
async def pabbly_webhook(
    company_id: str,
    webhook_slug: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    started = time.monotonic()
    body = await request.body()
    client_ip = request.client.host if request.client else None

    company_uuid = _parse_company_id(company_id)
    if company_uuid is None:
        return JSONResponse(status_code=404, content=NOT_FOUND_BODY)

    async def _log_call(status: int, trigger_id=None, data: Optional[dict] = None) -> None:
        await record_webhook_call(
            db,
            company_id=company_uuid,
            webhook_slug=webhook_slug,
            response_status=status,
            response_time_ms=int((time.monotonic() - started) * 1000),
            trigger_id=trigger_id,
            request_data=data,
            payload_hash=compute_payload_hash(body),
            ip_address=client_ip,
            user_agent=request.headers.get("user-agent"),
        )

    with log_context(company_id=company_uuid):
        try:
            trigger = await resolve_webhook(db, webhook_slug, company_uuid)
        except TriggerNotFoundError:
            logger.warning("Unknown webhook slug %s from %s", webhook_slug, client_ip)
            await _log_call(404)
            return JSONResponse(status_code=404, content=NOT_FOUND_BODY)

        with log_context(trigger_id=trigger.trigger_id):
            if not authenticate_webhook(trigger, request.headers):
                logger.warning(
                    "Webhook authentication failed: slug=%s mode=%s ip=%s",
                    webhook_slug, trigger.auth_mode, client_ip,
                )
                await _log_call(401, trigger.trigger_id)
                return JSONResponse(status_code=401, content=AUTH_FAILED_BODY)

            webhook_data = parse_webhook_data(request.headers.get("content-type", ""), body)

            try:
                result = await execute_workflow(
                    db,
                    trigger.workflow_id,
                    company_uuid,
                    webhook_data,
                    settings=settings,
                    trigger_id=trigger.trigger_id,
                )
            except EngineError as e:
                await _log_call(500, trigger.trigger_id, webhook_data)
                return JSONResponse(status_code=500, content={"error": str(e)})
            except Exception:
                logger.exception("Webhook processing failed for %s", webhook_slug)
                await db.rollback()
                await _log_call(500, trigger.trigger_id, webhook_data)
                return JSONResponse(status_code=500, content=INTERNAL_ERROR_BODY)

            await _log_call(200, trigger.trigger_id, webhook_data)

    return {"success": True, "result": result.steps}
