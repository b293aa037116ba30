"""
Pabbly Connect account API client.

Auth: Api-Key / Api-Secret headers from the tenant's integration_configs row.
Used for the connection status check on the integration dashboard.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import httpx
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import Settings
from src.models.integration_config import IntegrationConfig

logger = logging.getLogger(__name__)

PROVIDER = "pabbly"
ACCOUNT_ENDPOINT = "/api/v1/account"


@dataclass(frozen=True)
class PabblyConfig:
    """Per-request snapshot of a tenant's Pabbly credentials."""

    base_url: str
    api_key: str
    api_secret: str


async def load_pabbly_config(
    db: AsyncSession, company_id: uuid.UUID, settings: Settings,
) -> Optional[PabblyConfig]:
    result = await db.execute(
        select(IntegrationConfig).where(
            and_(
                IntegrationConfig.company_id == company_id,
                IntegrationConfig.provider == PROVIDER,
                IntegrationConfig.is_active.is_(True),
            )
        )
    )
    row = result.scalar_one_or_none()
    if row is None:
        return None
    return PabblyConfig(
        base_url=row.base_url or settings.pabbly_api_base_url,
        api_key=row.api_key or "",
        api_secret=row.api_secret or "",
    )


class PabblyClient:
    """Pabbly Connect REST API client."""

    def __init__(
        self,
        config: PabblyConfig,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.timeout = timeout
        self._transport = transport
        self._headers = {
            "Api-Key": config.api_key,
            "Api-Secret": config.api_secret,
            "Content-Type": "application/json",
        }

    async def request(self, method: str, endpoint: str, data: Optional[dict] = None) -> dict:
        """
        Call the Pabbly API. Errors come back as {"message": str, "code"?: int}
        rather than exceptions so dashboard callers can render them.
        """
        url = self.config.base_url.rstrip("/") + endpoint
        kwargs = {"headers": self._headers}
        if data and method in ("POST", "PUT"):
            kwargs["json"] = data

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("Pabbly API request failed: %s", str(e))
            return {"message": f"API request failed: {e}"}

        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.status_code >= 400:
            message = payload.get("message") if isinstance(payload, dict) else None
            return {"message": message or "API error", "code": response.status_code}

        return payload if isinstance(payload, dict) else {}

    async def test_connection(self) -> dict:
        response = await self.request("GET", ACCOUNT_ENDPOINT)
        if response.get("success"):
            return {"success": True, "message": "Connected successfully"}
        return {"success": False, "message": response.get("message") or "Connection failed"}


async def get_connection_status(config: Optional[PabblyConfig], settings: Settings) -> dict:
    if config is None:
        return {
            "connected": False,
            "status": "not_configured",
            "message": "Pabbly Connect integration not configured",
        }

    client = PabblyClient(config, timeout=settings.http_timeout_seconds)
    result = await client.test_connection()
    return {
        "connected": result["success"],
        "status": "connected" if result["success"] else "error",
        "message": result["message"],
        "last_test": datetime.now(timezone.utc).isoformat(),
    }
