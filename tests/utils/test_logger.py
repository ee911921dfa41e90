import json
import logging

import pytest
from structlog.contextvars import get_contextvars

from helperkit.utils.concurrency import transform_all
from helperkit.utils.logger import (
    add_transform_context,
    build_processors,
    operation_context,
)


def _render(processors, **event):
    wrapped = logging.getLogger("helperkit.tests")
    for processor in processors:
        event = processor(wrapped, "warning", event)
    return event


def test_json_chain_adds_app_context():
    line = _render(build_processors(json_logs=True), event="hello", entry_key="ssn")
    data = json.loads(line)

    assert data["event"] == "hello"
    assert data["level"] == "warning"
    assert data["logger"] == "helperkit.tests"
    assert data["app"] == "helperkit"
    assert data["env"] == "test"
    assert "timestamp" in data


def test_operation_context_is_merged_and_restored():
    with operation_context("bulk_decrypt", fields=2):
        data = json.loads(_render(build_processors(json_logs=True), event="x"))
        assert data["operation"] == "bulk_decrypt"
        assert data["fields"] == 2
    assert "operation" not in get_contextvars()


def test_add_transform_context():
    assert add_transform_context(7, "settle") == {"entry_key": "7", "stage": "settle"}


@pytest.mark.asyncio
async def test_operation_context_reaches_transform_entries():
    async def bound_operation(_):
        return get_contextvars().get("operation")

    with operation_context("bulk_encrypt"):
        result = await transform_all({"a": 1, "b": 2}, bound_operation)

    assert result == {"a": "bulk_encrypt", "b": "bulk_encrypt"}
