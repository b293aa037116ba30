"""
Tests for src/services/actions.py - action library, registry and dispatch.
"""
import json
import uuid
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy import select

from src.models.task import Task
from src.schemas.pabbly import ActionSpec
from src.services.actions import (
    DEFAULT_REGISTRY,
    MAX_DELAY_SECONDS,
    ActionEnvironment,
    ActionRegistry,
    ActionType,
    StepResult,
    build_action_registry,
    evaluate_conditions,
    execute_action,
    render_parameters,
)


def _env(db, company_id, settings, **kwargs) -> ActionEnvironment:
    return ActionEnvironment(db=db, company_id=company_id, settings=settings, **kwargs)


def _action(action_type: str, **parameters) -> ActionSpec:
    return ActionSpec(type=action_type, parameters=parameters)


# ---------------------------------------------------------------------------
# Registry & StepResult
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_default_registry_covers_every_action_type(self):
        assert DEFAULT_REGISTRY.list_types() == sorted(t.value for t in ActionType)

    def test_incomplete_registry_fails_verification(self):
        with pytest.raises(RuntimeError, match="missing handlers"):
            ActionRegistry().verify_complete()

    def test_build_returns_fresh_registry(self):
        assert build_action_registry() is not DEFAULT_REGISTRY

    def test_get_unregistered_type_raises(self):
        with pytest.raises(KeyError):
            ActionRegistry().get(ActionType.DELAY)


class TestStepResult:
    def test_success_dict(self):
        step = StepResult.success("delay", {"waited_seconds": 1})
        assert step.to_dict() == {
            "action": "delay", "success": True, "result": {"waited_seconds": 1},
        }

    def test_failure_dict_has_no_result(self):
        step = StepResult.failure("send_email", "boom")
        assert step.to_dict() == {"action": "send_email", "success": False, "error": "boom"}


# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------


class TestRenderParameters:
    def test_substitutes_inside_text(self):
        rendered = render_parameters({"subject": "Hi {{name}}!"}, {"name": "Ana"})
        assert rendered == {"subject": "Hi Ana!"}

    def test_whole_placeholder_keeps_type(self):
        rendered = render_parameters({"amount": "{{order.total}}"}, {"order": {"total": 42.5}})
        assert rendered == {"amount": 42.5}

    def test_unknown_placeholder_left_as_written(self):
        assert render_parameters("Hi {{missing}}", {}) == "Hi {{missing}}"

    def test_nested_lists(self):
        rendered = render_parameters({"to": ["{{email}}", "ops@example.com"]}, {"email": "a@b.co"})
        assert rendered == {"to": ["a@b.co", "ops@example.com"]}

    def test_non_string_values_untouched(self):
        assert render_parameters({"n": 3, "flag": True}, {"n": 9}) == {"n": 3, "flag": True}


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------


class TestExecuteAction:
    @pytest.mark.asyncio
    async def test_unknown_type_is_informational_success(self, settings, company_id):
        db = AsyncMock()
        step = await execute_action(_action("send_sms"), {}, _env(db, company_id, settings))
        assert step.ok is True
        assert step.result == {"message": "Action type not implemented: send_sms"}
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_failed_step(self, settings, company_id):
        db = MagicMock()
        db.add.side_effect = RuntimeError("session closed")
        step = await execute_action(
            _action("create_task", title="Call back"), {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        assert step.error == "Unexpected error: RuntimeError"

    @pytest.mark.asyncio
    async def test_parameters_rendered_from_context(self, settings, company_id, mock_email):
        await execute_action(
            _action("send_email", to="{{email}}", subject="Welcome {{name}}", body="Hi"),
            {"email": "lead@example.com", "name": "Ana"},
            _env(AsyncMock(), company_id, settings),
        )
        mock_email.assert_awaited_once_with("lead@example.com", "Welcome Ana", "Hi")


# ---------------------------------------------------------------------------
# send_email
# ---------------------------------------------------------------------------


class TestSendEmailAction:
    @pytest.mark.asyncio
    async def test_sent(self, settings, company_id, mock_email):
        step = await execute_action(
            _action("send_email", to="lead@example.com", subject="Hi", body="Hello"),
            {}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is True
        assert step.result == {
            "email_sent": True,
            "recipient": "lead@example.com",
            "message_id": "sg_test_123",
        }

    @pytest.mark.asyncio
    async def test_missing_recipient(self, settings, company_id, mock_email):
        step = await execute_action(
            _action("send_email", subject="Hi"), {}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is False
        assert "recipient" in step.error
        mock_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delivery_failure_is_failed_step(self, settings, company_id, mock_email):
        mock_email.return_value = {"message_id": None, "status": "error", "error": "SendGrid not configured"}
        step = await execute_action(
            _action("send_email", to="lead@example.com"), {}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is False
        assert "SendGrid not configured" in step.error


# ---------------------------------------------------------------------------
# create_task
# ---------------------------------------------------------------------------


class TestCreateTaskAction:
    @pytest.mark.asyncio
    async def test_creates_task_for_tenant(self, db, settings, company_id):
        step = await execute_action(
            _action(
                "create_task",
                title="Follow up",
                description="Call the lead",
                assignee="sam",
                due_date="2026-11-02",
                priority="high",
            ),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is True
        assert step.result["task_created"] is True

        task = await db.get(Task, uuid.UUID(step.result["task_id"]))
        assert task.company_id == company_id
        assert task.title == "Follow up"
        assert task.assigned_to == "sam"
        assert task.due_date == date(2026, 11, 2)
        assert task.priority == "high"
        assert task.status == "pending"

    @pytest.mark.asyncio
    async def test_title_required(self, settings, company_id):
        db = MagicMock()
        step = await execute_action(
            _action("create_task", description="no title"), {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_due_date(self, settings, company_id):
        step = await execute_action(
            _action("create_task", title="x", due_date="next week"),
            {}, _env(MagicMock(), company_id, settings),
        )
        assert step.ok is False
        assert "due_date" in step.error


# ---------------------------------------------------------------------------
# update_record
# ---------------------------------------------------------------------------


class TestUpdateRecordAction:
    async def _task(self, db, company_id) -> Task:
        task = Task(company_id=company_id, title="Old title", status="pending")
        db.add(task)
        await db.flush()
        return task

    @pytest.mark.asyncio
    async def test_updates_row(self, db, settings, company_id):
        task = await self._task(db, company_id)
        task_id = task.id

        step = await execute_action(
            _action("update_record", table="tasks", record_id=str(task_id), fields={"status": "done"}),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is True
        assert step.result == {
            "record_updated": True,
            "table": "tasks",
            "record_id": str(task_id),
            "rows_affected": 1,
        }
        status = (await db.execute(select(Task.status).where(Task.id == task_id))).scalar_one()
        assert status == "done"

    @pytest.mark.asyncio
    async def test_other_tenant_row_untouched(self, db, settings, company_id, other_company_id):
        task = await self._task(db, other_company_id)

        step = await execute_action(
            _action("update_record", table="tasks", record_id=str(task.id), fields={"status": "done"}),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is True
        assert step.result["rows_affected"] == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"table": "tasks", "record_id": "abc", "fields": {}},
        {"table": "", "record_id": "abc", "fields": {"status": "done"}},
        {"table": "tasks", "fields": {"status": "done"}},
        {"table": "tasks", "record_id": "abc", "fields": "status=done"},
    ])
    async def test_invalid_parameters_do_not_touch_database(self, settings, company_id, params):
        db = AsyncMock()
        step = await execute_action(
            ActionSpec(type="update_record", parameters=params), {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        assert step.error == "Invalid update record parameters"
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("table", [
        "pabbly_workflows", "pabbly_triggers", "pabbly_execution_logs",
        "pabbly_webhook_secrets", "integration_configs", "users",
    ])
    async def test_protected_or_unknown_tables_rejected(self, settings, company_id, table):
        db = AsyncMock()
        step = await execute_action(
            _action("update_record", table=table, record_id=str(uuid.uuid4()), fields={"status": "x"}),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        assert "cannot be updated" in step.error
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_runs_inside_savepoint(self, settings, company_id):
        db = MagicMock()
        db.execute = AsyncMock(return_value=MagicMock(rowcount=1))
        step = await execute_action(
            _action("update_record", table="tasks", record_id=str(uuid.uuid4()), fields={"status": "done"}),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is True
        db.begin_nested.assert_called_once()
        db.execute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_company_id_column_rejected(self, settings, company_id):
        db = AsyncMock()
        step = await execute_action(
            _action(
                "update_record", table="tasks", record_id=str(uuid.uuid4()),
                fields={"company_id": str(uuid.uuid4())},
            ),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_column_rejected(self, settings, company_id):
        db = AsyncMock()
        step = await execute_action(
            _action("update_record", table="tasks", record_id=str(uuid.uuid4()), fields={"colour": "red"}),
            {}, _env(db, company_id, settings),
        )
        assert step.ok is False
        assert "Unknown columns" in step.error


# ---------------------------------------------------------------------------
# api_request
# ---------------------------------------------------------------------------


class TestApiRequestAction:
    @pytest.mark.asyncio
    async def test_post_json(self, settings, company_id):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(201, json={"id": 7})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            step = await execute_action(
                _action(
                    "api_request",
                    url="https://crm.example.com/leads",
                    method="post",
                    headers=["Authorization: Bearer t0k"],
                    body={"name": "Ana"},
                ),
                {}, _env(AsyncMock(), company_id, settings, http_client=client),
            )

        assert step.ok is True
        assert step.result == {
            "response": {"id": 7},
            "status_code": 201,
            "url": "https://crm.example.com/leads",
            "method": "POST",
        }
        assert seen == {"method": "POST", "body": {"name": "Ana"}, "auth": "Bearer t0k"}

    @pytest.mark.asyncio
    async def test_get_ignores_body_and_tolerates_non_json(self, settings, company_id):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.content == b""
            return httpx.Response(200, text="pong")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            step = await execute_action(
                _action("api_request", url="https://example.com/ping", body={"x": 1}),
                {}, _env(AsyncMock(), company_id, settings, http_client=client),
            )

        assert step.ok is True
        assert step.result["response"] is None
        assert step.result["method"] == "GET"

    @pytest.mark.asyncio
    async def test_transport_error_is_failed_step(self, settings, company_id):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            step = await execute_action(
                _action("api_request", url="https://down.example.com"),
                {}, _env(AsyncMock(), company_id, settings, http_client=client),
            )

        assert step.ok is False
        assert "API request failed" in step.error

    @pytest.mark.asyncio
    async def test_url_required(self, settings, company_id):
        step = await execute_action(
            _action("api_request", method="GET"), {}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is False
        assert step.error == "API URL not specified"

    @pytest.mark.asyncio
    async def test_malformed_header_line(self, settings, company_id):
        step = await execute_action(
            _action("api_request", url="https://example.com", headers=["no-colon-here"]),
            {}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is False
        assert "Malformed header" in step.error


# ---------------------------------------------------------------------------
# conditional_logic
# ---------------------------------------------------------------------------


class TestConditionalLogic:
    CONDITIONS = [
        {"field": "x", "operator": "greater_than", "value": 3},
        {"field": "y", "operator": "not_equals", "value": 0},
    ]

    @pytest.mark.asyncio
    async def test_all_conditions_met(self, settings, company_id):
        step = await execute_action(
            _action("conditional_logic", conditions=self.CONDITIONS),
            {"x": 5, "y": 2}, _env(AsyncMock(), company_id, settings),
        )
        assert step.result == {"condition_met": True, "path_taken": "true"}

    @pytest.mark.asyncio
    async def test_one_condition_fails(self, settings, company_id):
        step = await execute_action(
            _action("conditional_logic", conditions=self.CONDITIONS),
            {"x": 5, "y": 0}, _env(AsyncMock(), company_id, settings),
        )
        assert step.result == {"condition_met": False, "path_taken": "false"}

    def test_empty_conditions_are_met(self):
        assert evaluate_conditions([], {}) is True

    def test_numeric_strings_compare_as_numbers(self):
        assert evaluate_conditions([{"field": "score", "operator": "greater_than", "value": 9}], {"score": "10"})
        assert evaluate_conditions([{"field": "score", "operator": "equals", "value": "10.0"}], {"score": 10})

    def test_contains(self):
        conditions = [{"field": "email", "operator": "contains", "value": "@acme"}]
        assert evaluate_conditions(conditions, {"email": "bo@acme.io"}) is True
        assert evaluate_conditions(conditions, {"email": "bo@other.io"}) is False

    def test_missing_field_value_is_false_for_ordering(self):
        assert evaluate_conditions([{"field": "x", "operator": "less_than", "value": 1}], {}) is False

    def test_incomparable_values_are_false(self):
        conditions = [{"field": "x", "operator": "greater_than", "value": "abc"}]
        assert evaluate_conditions(conditions, {"x": 5}) is False

    def test_unknown_operator_is_ignored(self):
        conditions = [{"field": "x", "operator": "matches_regex", "value": ".*"}]
        assert evaluate_conditions(conditions, {"x": 1}) is True

    @pytest.mark.asyncio
    async def test_condition_without_operator_fails_step(self, settings, company_id):
        step = await execute_action(
            _action("conditional_logic", conditions=[{"field": "x"}]),
            {"x": 1}, _env(AsyncMock(), company_id, settings),
        )
        assert step.ok is False


# ---------------------------------------------------------------------------
# delay
# ---------------------------------------------------------------------------


class TestDelayAction:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration,unit,expected_wait", [
        (300, "seconds", 300),
        (301, "seconds", 300),
        (600, "seconds", 300),
        (2, "minutes", 120),
        (1, "hours", 300),
        (10, "fortnights", 10),
    ])
    async def test_wait_is_clamped(self, settings, company_id, duration, unit, expected_wait):
        sleep = AsyncMock()
        step = await execute_action(
            _action("delay", duration=duration, unit=unit),
            {}, _env(AsyncMock(), company_id, settings, sleep=sleep),
        )
        assert step.ok is True
        assert step.result["waited_seconds"] == expected_wait
        assert step.result["waited_seconds"] <= MAX_DELAY_SECONDS
        sleep.assert_awaited_once_with(expected_wait)

    @pytest.mark.asyncio
    async def test_zero_duration_does_not_sleep(self, settings, company_id):
        sleep = AsyncMock()
        step = await execute_action(
            _action("delay", duration=0), {}, _env(AsyncMock(), company_id, settings, sleep=sleep),
        )
        assert step.result == {
            "delay_executed": True, "duration": 0, "waited_seconds": 0, "unit": "seconds",
        }
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_non_numeric_duration(self, settings, company_id):
        step = await execute_action(
            _action("delay", duration="soon"), {}, _env(AsyncMock(), company_id, settings, sleep=AsyncMock()),
        )
        assert step.ok is False
