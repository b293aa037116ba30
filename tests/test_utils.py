"""
Tests for src/utils/ - structured logging and the error taxonomy.
"""
import json
import logging
import sys

import pytest

from src.utils.errors import (
    ActionError,
    ActionExecutionError,
    EngineError,
    InvalidParameters,
    NotFoundError,
    PabblyError,
    TriggerNotFoundError,
    WorkflowNotFoundError,
)
from src.utils.logging import (
    StructuredJsonFormatter,
    configure_structured_logging,
    correlation_id_ctx,
    generate_correlation_id,
    get_correlation_id,
    get_log_context,
    log_context,
    set_correlation_id,
)


def _record(msg="hello %s", args=("world",), level=logging.INFO, **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="src.services.actions", level=level, pathname=__file__, lineno=1,
        msg=msg, args=args, exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# ---------------------------------------------------------------------------
# Structured logging
# ---------------------------------------------------------------------------


class TestCorrelationId:
    def test_generate_is_hex_32(self):
        cid = generate_correlation_id()
        assert len(cid) == 32
        int(cid, 16)

    def test_set_and_get(self):
        token = correlation_id_ctx.set(None)
        try:
            set_correlation_id("abc")
            assert get_correlation_id() == "abc"
        finally:
            correlation_id_ctx.reset(token)


class TestLogContext:
    def test_nested_blocks_extend_and_restore(self):
        with log_context(company_id="c-1"):
            with log_context(execution_id="e-1", trigger_id=None):
                assert get_log_context() == {"company_id": "c-1", "execution_id": "e-1"}
            assert get_log_context() == {"company_id": "c-1"}
        assert get_log_context() == {}

    def test_bound_fields_in_json_line(self):
        with log_context(workflow_id="wf-9"):
            line = json.loads(StructuredJsonFormatter().format(_record()))
        assert line["workflow_id"] == "wf-9"

    def test_explicit_extra_wins(self):
        with log_context(workflow_id="bound"):
            line = json.loads(StructuredJsonFormatter().format(_record(workflow_id="explicit")))
        assert line["workflow_id"] == "explicit"


class TestStructuredJsonFormatter:
    def test_basic_fields(self):
        token = correlation_id_ctx.set("cid-1")
        try:
            line = json.loads(StructuredJsonFormatter().format(_record()))
        finally:
            correlation_id_ctx.reset(token)

        assert line["level"] == "INFO"
        assert line["message"] == "hello world"
        assert line["module"] == "src.services.actions"
        assert line["correlation_id"] == "cid-1"
        assert line["timestamp"].endswith("Z")

    def test_known_extra_fields_included(self):
        record = _record(workflow_id="wf-1", action="delay", unrelated="skip")
        line = json.loads(StructuredJsonFormatter().format(record))

        assert line["workflow_id"] == "wf-1"
        assert line["action"] == "delay"
        assert "unrelated" not in line

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        line = json.loads(StructuredJsonFormatter().format(record))
        assert "ValueError: bad" in line["exception"]

    def test_configure_installs_single_json_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_structured_logging("debug")
            assert root.level == logging.DEBUG
            assert len(root.handlers) == 1
            assert isinstance(root.handlers[0].formatter, StructuredJsonFormatter)
            assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrorTaxonomy:
    @pytest.mark.parametrize("error_cls,parent", [
        (WorkflowNotFoundError, NotFoundError),
        (TriggerNotFoundError, NotFoundError),
        (InvalidParameters, ActionError),
        (ActionExecutionError, ActionError),
        (EngineError, PabblyError),
    ])
    def test_hierarchy(self, error_cls, parent):
        assert issubclass(error_cls, parent)
        assert issubclass(error_cls, PabblyError)

    def test_error_codes_are_distinct(self):
        codes = [
            cls.error_code for cls in (
                PabblyError, NotFoundError, WorkflowNotFoundError, TriggerNotFoundError,
                ActionError, InvalidParameters, ActionExecutionError, EngineError,
            )
        ]
        assert len(codes) == len(set(codes))

    def test_action_errors_are_not_engine_errors(self):
        assert not issubclass(InvalidParameters, EngineError)
