"""
Action library - the step kinds a workflow can run.

Every action goes through execute_action(), which always returns a StepResult:
recoverable failures (bad parameters, a failed email or HTTP call) become
failed steps instead of exceptions, so the engine loop never has to catch
them. Unknown type tags are not errors: they produce an informational
"not implemented" result.
"""
import asyncio
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

import httpx
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

import src.models  # noqa: F401  - registers every table on Base.metadata
from src.config import Settings
from src.database import Base
from src.models.task import Task
from src.schemas.pabbly import ActionSpec
from src.services import email as email_service
from src.utils.errors import ActionError, ActionExecutionError, InvalidParameters

logger = logging.getLogger(__name__)

MAX_DELAY_SECONDS = 300
UNIT_SECONDS = {"seconds": 1, "minutes": 60, "hours": 3600}

BODY_METHODS = ("POST", "PUT", "PATCH")

# Business tables a workflow may write. Workflow definitions, triggers,
# secrets, credentials and audit logs are never writable from an action.
WRITABLE_TABLES = frozenset({"tasks"})
PROTECTED_COLUMNS = frozenset({"id", "company_id"})

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_.\-]+)\s*\}\}")


class ActionType(str, Enum):
    SEND_EMAIL = "send_email"
    CREATE_TASK = "create_task"
    UPDATE_RECORD = "update_record"
    API_REQUEST = "api_request"
    CONDITIONAL_LOGIC = "conditional_logic"
    DELAY = "delay"


@dataclass
class ActionEnvironment:
    """Collaborators an action may use. One per execution."""

    db: AsyncSession
    company_id: uuid.UUID
    settings: Settings
    http_client: Optional[httpx.AsyncClient] = None
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep)


@dataclass(frozen=True)
class StepResult:
    action: str
    ok: bool
    result: Optional[dict] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, action: str, result: dict) -> "StepResult":
        return cls(action=action, ok=True, result=result)

    @classmethod
    def failure(cls, action: str, error: str) -> "StepResult":
        return cls(action=action, ok=False, error=error)

    def to_dict(self) -> dict:
        if self.ok:
            return {"action": self.action, "success": True, "result": self.result}
        return {"action": self.action, "success": False, "error": self.error}


ActionHandler = Callable[[dict, dict, ActionEnvironment], Awaitable[dict]]


@dataclass(frozen=True)
class ActionDefinition:
    action_type: ActionType
    description: str
    handler: ActionHandler


class ActionRegistry:
    def __init__(self) -> None:
        self._actions: dict[ActionType, ActionDefinition] = {}

    def register(self, definition: ActionDefinition) -> None:
        self._actions[definition.action_type] = definition

    def get(self, action_type: ActionType) -> ActionDefinition:
        if action_type not in self._actions:
            raise KeyError(f"No handler registered for action type: {action_type.value}")
        return self._actions[action_type]

    def list_types(self) -> list[str]:
        return sorted(t.value for t in self._actions)

    def missing_types(self) -> list[str]:
        return [t.value for t in ActionType if t not in self._actions]

    def verify_complete(self) -> None:
        """Every ActionType must have a handler."""
        missing = self.missing_types()
        if missing:
            raise RuntimeError(f"Action registry is missing handlers for: {', '.join(missing)}")


# === PARAMETER PLACEHOLDERS ===

def _lookup(context: dict, path: str) -> tuple[bool, Any]:
    current: Any = context
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return False, None
    return True, current


def _render_string(value: str, context: dict) -> Any:
    whole = _PLACEHOLDER.fullmatch(value.strip())
    if whole:
        found, resolved = _lookup(context, whole.group(1))
        return resolved if found else value

    def _substitute(match: re.Match) -> str:
        found, resolved = _lookup(context, match.group(1))
        return str(resolved) if found else match.group(0)

    return _PLACEHOLDER.sub(_substitute, value)


def render_parameters(value: Any, context: dict) -> Any:
    """
    Replace {{key}} / {{key.sub}} placeholders with values from the context.
    A string that is exactly one placeholder keeps the value's type.
    Unknown placeholders are left as written.
    """
    if isinstance(value, str):
        return _render_string(value, context)
    if isinstance(value, dict):
        return {k: render_parameters(v, context) for k, v in value.items()}
    if isinstance(value, list):
        return [render_parameters(v, context) for v in value]
    return value


# === HANDLERS ===

async def send_email_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    to = params.get("to")
    if not to:
        raise InvalidParameters("Email recipient (to) is required")

    delivery = await email_service.send_email(
        str(to), str(params.get("subject") or ""), str(params.get("body") or ""),
    )
    if delivery.get("status") != "sent":
        raise ActionExecutionError(f"Email delivery failed: {delivery.get('error')}")

    return {
        "email_sent": True,
        "recipient": to,
        "message_id": delivery.get("message_id"),
    }


def _parse_due_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise InvalidParameters(f"Invalid due_date: {value}") from e


async def create_task_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    title = params.get("title")
    if not title:
        raise InvalidParameters("Task title is required")

    assignee = params.get("assignee")
    task = Task(
        company_id=env.company_id,
        title=str(title),
        description=str(params.get("description") or ""),
        assigned_to=str(assignee) if assignee is not None else None,
        due_date=_parse_due_date(params.get("due_date")),
        priority=str(params.get("priority") or "medium"),
        status="pending",
        created_by="pabbly",
    )
    async with env.db.begin_nested():
        env.db.add(task)
        await env.db.flush()

    return {"task_id": str(task.id), "task_created": True}


def _coerce_column_value(column, value: Any) -> Any:
    if value is None:
        return None
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value

    try:
        if python_type is uuid.UUID and not isinstance(value, uuid.UUID):
            return uuid.UUID(str(value))
        if python_type is datetime and isinstance(value, str):
            return datetime.fromisoformat(value)
        if python_type is date and isinstance(value, str):
            return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidParameters(f"Invalid value for {column.name}: {value}") from e
    return value


async def update_record_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    table_name = params.get("table")
    record_id = params.get("record_id")
    fields = params.get("fields")

    if not table_name or not record_id or not fields or not isinstance(fields, dict):
        raise InvalidParameters("Invalid update record parameters")

    table = Base.metadata.tables.get(str(table_name))
    if table is None or table.name not in WRITABLE_TABLES or "company_id" not in table.c:
        raise InvalidParameters(f"Table cannot be updated: {table_name}")

    forbidden = PROTECTED_COLUMNS.intersection(fields)
    if forbidden:
        raise InvalidParameters(f"Columns cannot be updated: {', '.join(sorted(forbidden))}")
    unknown = [name for name in fields if name not in table.c]
    if unknown:
        raise InvalidParameters(f"Unknown columns for {table_name}: {', '.join(sorted(unknown))}")

    values = {name: _coerce_column_value(table.c[name], value) for name, value in fields.items()}
    key = _coerce_column_value(table.c.id, record_id)

    async with env.db.begin_nested():
        result = await env.db.execute(
            update(table)
            .where(table.c.id == key, table.c.company_id == env.company_id)
            .values(**values)
        )

    return {
        "record_updated": True,
        "table": table.name,
        "record_id": str(record_id),
        "rows_affected": result.rowcount,
    }


def _normalize_headers(raw: Any) -> dict[str, str]:
    """Accepts {"Name": "value"} or ["Name: value", ...]."""
    if not raw:
        return {}
    if isinstance(raw, dict):
        return {str(k): str(v) for k, v in raw.items()}
    if isinstance(raw, list):
        headers = {}
        for line in raw:
            name, sep, value = str(line).partition(":")
            if not sep or not name.strip():
                raise InvalidParameters(f"Malformed header: {line}")
            headers[name.strip()] = value.strip()
        return headers
    raise InvalidParameters("headers must be a mapping or a list of 'Name: value' strings")


async def api_request_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    url = params.get("url")
    if not url:
        raise InvalidParameters("API URL not specified")

    method = str(params.get("method") or "GET").upper()
    request_kwargs: dict[str, Any] = {"headers": _normalize_headers(params.get("headers"))}
    if params.get("body") is not None and method in BODY_METHODS:
        request_kwargs["json"] = params["body"]

    try:
        if env.http_client is not None:
            response = await env.http_client.request(method, str(url), **request_kwargs)
        else:
            async with httpx.AsyncClient(timeout=env.settings.http_timeout_seconds) as client:
                response = await client.request(method, str(url), **request_kwargs)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise ActionExecutionError(f"API request failed: {e}") from e

    try:
        parsed = response.json()
    except ValueError:
        parsed = None

    logger.info("Workflow API request %s %s -> %d", method, url, response.status_code)
    return {
        "response": parsed,
        "status_code": response.status_code,
        "url": str(url),
        "method": method,
    }


def _as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _equals(left: Any, right: Any) -> bool:
    if left == right:
        return True
    left_num, right_num = _as_number(left), _as_number(right)
    return left_num is not None and right_num is not None and left_num == right_num


def _ordered(left: Any, right: Any, greater: bool) -> bool:
    left_num, right_num = _as_number(left), _as_number(right)
    if left_num is not None and right_num is not None:
        left, right = left_num, right_num
    if left is None or right is None:
        return False
    try:
        return left > right if greater else left < right
    except TypeError:
        return False


def _contains(haystack: Any, needle: Any) -> bool:
    if haystack is None or needle is None:
        return False
    if isinstance(haystack, (list, tuple)):
        return needle in haystack
    return str(needle) in str(haystack)


OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "equals": _equals,
    "not_equals": lambda left, right: not _equals(left, right),
    "greater_than": lambda left, right: _ordered(left, right, greater=True),
    "less_than": lambda left, right: _ordered(left, right, greater=False),
    "contains": _contains,
}


def evaluate_conditions(conditions: list, context: dict) -> bool:
    """AND over every condition. An empty list is met."""
    condition_met = True
    for condition in conditions:
        if not isinstance(condition, dict) or "field" not in condition or "operator" not in condition:
            raise InvalidParameters("Each condition needs a field and an operator")

        compare = OPERATORS.get(condition["operator"])
        if compare is None:
            logger.warning("Ignoring unknown condition operator '%s'", condition["operator"])
            continue

        field_value = context.get(condition["field"])
        condition_met = condition_met and compare(field_value, condition.get("value"))
    return condition_met


async def conditional_logic_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    conditions = params.get("conditions") or []
    if not isinstance(conditions, list):
        raise InvalidParameters("conditions must be a list")

    condition_met = evaluate_conditions(conditions, context)
    return {
        "condition_met": condition_met,
        "path_taken": "true" if condition_met else "false",
    }


async def delay_action(params: dict, context: dict, env: ActionEnvironment) -> dict:
    try:
        duration = int(float(params.get("duration") or 0))
    except (TypeError, ValueError) as e:
        raise InvalidParameters(f"Invalid delay duration: {params.get('duration')}") from e

    unit = params.get("unit") or "seconds"
    seconds = duration * UNIT_SECONDS.get(unit, 1)
    waited = min(seconds, MAX_DELAY_SECONDS) if seconds > 0 else 0

    if waited > 0:
        await env.sleep(waited)

    return {
        "delay_executed": True,
        "duration": seconds,
        "waited_seconds": waited,
        "unit": unit,
    }


# === REGISTRY & DISPATCH ===

def build_action_registry() -> ActionRegistry:
    registry = ActionRegistry()
    registry.register(ActionDefinition(
        ActionType.SEND_EMAIL, "Send email to specified recipients", send_email_action,
    ))
    registry.register(ActionDefinition(
        ActionType.CREATE_TASK, "Create a task in project management system", create_task_action,
    ))
    registry.register(ActionDefinition(
        ActionType.UPDATE_RECORD, "Update database record", update_record_action,
    ))
    registry.register(ActionDefinition(
        ActionType.API_REQUEST, "Make HTTP request to external API", api_request_action,
    ))
    registry.register(ActionDefinition(
        ActionType.CONDITIONAL_LOGIC, "Report which branch the conditions select", conditional_logic_action,
    ))
    registry.register(ActionDefinition(
        ActionType.DELAY, "Pause workflow execution", delay_action,
    ))
    registry.verify_complete()
    return registry


DEFAULT_REGISTRY = build_action_registry()


async def execute_action(
    action: ActionSpec,
    context: dict,
    env: ActionEnvironment,
    registry: ActionRegistry = DEFAULT_REGISTRY,
) -> StepResult:
    """Run one action against the current context. Never raises for action failures."""
    try:
        action_type = ActionType(action.type)
    except ValueError:
        return StepResult.success(
            action.type, {"message": f"Action type not implemented: {action.type}"},
        )

    handler = registry.get(action_type).handler
    params = render_parameters(action.parameters, context)

    try:
        result = await handler(params, context, env)
    except ActionError as e:
        logger.warning(
            "Action %s failed: %s", action.type, str(e),
            extra={"action": action.type, "error_code": e.error_code},
        )
        return StepResult.failure(action.type, str(e))
    except Exception as e:
        logger.exception(
            "Unexpected error in action %s", action.type,
            extra={"action": action.type},
        )
        return StepResult.failure(action.type, f"Unexpected error: {e.__class__.__name__}")

    return StepResult.success(action.type, result)
