"""
Observability Validation Test

Validates the logging stack:
1. Correlation context merges and resets per operation/record
2. JSON and human-readable formatters include the correlation IDs
3. CorrelatedLogger carries extra fields to handlers
4. Operation helpers log start/complete/error
"""

import asyncio
import json
import logging

from core.observability.logging import (
    CorrelationContext,
    HumanReadableFormatter,
    StructuredFormatter,
    get_correlation_context,
    get_logger,
    log_operation_complete,
    log_operation_error,
    with_correlation,
)


def _record(msg="Test message", level=logging.INFO, **extra_fields):
    record = logging.LogRecord(
        name="workflows.import_workflow",
        level=level,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    if extra_fields:
        record.extra_fields = extra_fields
    return record


def test_observability_imports():
    """Verify the observability package exports its helpers."""
    from core.observability import (
        get_logger, configure_logging, CorrelationContext, with_correlation,
        log_operation_start, log_operation_complete, log_operation_error,
    )
    assert CorrelationContext is not None
    assert with_correlation is not None


class TestCorrelationContext:

    def test_to_dict_skips_unset(self):
        ctx = CorrelationContext(operation_id="op-1", record_kind="bills")
        assert ctx.to_dict() == {"operation_id": "op-1", "record_kind": "bills"}

    def test_merge_keeps_existing_values(self):
        ctx = CorrelationContext(operation_id="op-1").merge(record_kind="products", record_ref=None)
        assert ctx.operation_id == "op-1"
        assert ctx.record_kind == "products"
        assert ctx.record_ref is None

    def test_nested_correlation_resets(self):
        assert get_correlation_context().operation_id is None

        with with_correlation(operation_id="op-1", operation="restore"):
            with with_correlation(record_kind="bills", record_ref="EXCH-0042"):
                inner = get_correlation_context()
                assert inner.operation == "restore"
                assert inner.record_ref == "EXCH-0042"
            assert get_correlation_context().record_ref is None

        assert get_correlation_context().operation_id is None

    def test_context_isolated_per_task(self):
        async def worker(name):
            with with_correlation(record_ref=name):
                await asyncio.sleep(0)
                return get_correlation_context().record_ref

        async def scenario():
            return await asyncio.gather(worker("SKU-1"), worker("SKU-2"))

        assert asyncio.run(scenario()) == ["SKU-1", "SKU-2"]


class TestFormatters:

    def test_structured_formatter_json_output(self):
        formatter = StructuredFormatter()

        with with_correlation(operation_id="op-1", record_kind="products"):
            output = formatter.format(_record(sku="CH-001"))

        data = json.loads(output)
        assert data["message"] == "Test message"
        assert data["level"] == "INFO"
        assert data["operation_id"] == "op-1"
        assert data["record_kind"] == "products"
        assert data["sku"] == "CH-001"

    def test_human_readable_correlation_path(self):
        formatter = HumanReadableFormatter()

        with with_correlation(operation_id="op-1", record_kind="bills", record_ref="B-1"):
            output = formatter.format(_record("Bill rejected by store", logging.ERROR, status=400))

        assert "[op-1/bills/B-1]: Bill rejected by store" in output
        assert "(status=400)" in output
        assert "[ERROR]" in output

    def test_human_readable_without_context(self):
        output = HumanReadableFormatter().format(_record())
        assert "[-]: Test message" in output


class TestCorrelatedLogger:

    def test_extra_fields_reach_handlers(self, caplog):
        logger = get_logger("workflows.test_observability")
        with caplog.at_level(logging.INFO, logger="workflows.test_observability"):
            logger.info("Imported %d/%d products", 2, 3, extra_fields={"rejected": 1})

        record = caplog.records[-1]
        assert record.getMessage() == "Imported 2/3 products"
        assert record.extra_fields == {"rejected": 1}

    def test_same_logger_per_name(self):
        assert get_logger("tabular.codec") is get_logger("tabular.codec")

    def test_operation_helpers(self, caplog):
        with caplog.at_level(logging.INFO, logger="workflows.restore"):
            log_operation_complete("restore", duration_ms=12.345, imported=8)
            log_operation_error("restore", "Invalid file format. No products found.")

        complete, error = caplog.records[-2:]
        assert complete.getMessage() == "Operation completed: restore"
        assert complete.extra_fields == {"duration_ms": 12.3, "imported": 8}
        assert error.levelno == logging.ERROR
        assert error.getMessage().endswith("No products found.")
