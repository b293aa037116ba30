"""
Webhook authenticator - validates an inbound call against its trigger's mode.

Modes:
- none: always accepted
- api_key: X-Api-Key header must equal the trigger's stored secret (timing-safe)
- basic: an HTTP Basic username/password pair must be present.
  Presence only - the pair is never checked against stored credentials.
Any other mode is rejected.
"""
import logging
from typing import Mapping

from src.services.webhook_resolver import ResolvedTrigger
from src.utils.webhook_signatures import constant_time_equals, parse_basic_credentials

logger = logging.getLogger(__name__)

AUTH_NONE = "none"
AUTH_API_KEY = "api_key"
AUTH_BASIC = "basic"

API_KEY_HEADER = "X-Api-Key"


def _header(headers: Mapping[str, str], name: str) -> str:
    # Starlette Headers are case-insensitive; plain dicts in tests are not
    value = headers.get(name)
    if value is None:
        value = headers.get(name.lower())
    return value or ""


def authenticate_webhook(trigger: ResolvedTrigger, headers: Mapping[str, str]) -> bool:
    """Return True when the request satisfies the trigger's authentication mode."""
    mode = trigger.auth_mode or AUTH_NONE

    if mode == AUTH_NONE:
        return True

    if mode == AUTH_API_KEY:
        provided = _header(headers, API_KEY_HEADER)
        if not provided:
            logger.warning(
                "Missing %s header", API_KEY_HEADER,
                extra={"trigger_id": str(trigger.trigger_id)},
            )
            return False
        if not trigger.secret:
            logger.error(
                "Trigger requires api_key but has no stored secret",
                extra={"trigger_id": str(trigger.trigger_id)},
            )
            return False
        return constant_time_equals(trigger.secret, provided)

    if mode == AUTH_BASIC:
        return parse_basic_credentials(_header(headers, "Authorization")) is not None

    logger.warning(
        "Unsupported webhook authentication mode '%s' - rejecting", mode,
        extra={"trigger_id": str(trigger.trigger_id)},
    )
    return False
