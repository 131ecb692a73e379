"""Tests for trace-context aware log formatting."""

import asyncio
import json
import logging

import pytest

from textflow.observability import get_trace_context, restore_trace_context, set_trace_context
from textflow.observability.logging import HumanReadableFormatter, StructuredFormatter


def make_record(message="hello", **extra):
    record = logging.LogRecord("textflow.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_output_carries_trace_context():
    set_trace_context(workspace_id="ws-1", run_id="abc123")

    entry = json.loads(StructuredFormatter().format(make_record(node_id="n1", latency_ms=12)))

    assert entry["message"] == "hello"
    assert entry["workspace_id"] == "ws-1"
    assert entry["run_id"] == "abc123"
    assert entry["node_id"] == "n1"
    assert entry["latency_ms"] == 12


def test_json_output_strips_colors():
    entry = json.loads(StructuredFormatter().format(make_record("\033[32mgreen\033[0m")))
    assert entry["message"] == "green"


def test_human_output_prefix():
    set_trace_context(workspace_id="ws-1", run_id="0123456789abcdef", node_id="writer")

    line = HumanReadableFormatter().format(make_record())

    assert "[ws:ws-1 | run:01234567 | node:writer] hello" in line


def test_restore_undoes_set():
    set_trace_context(workspace_id="ws-a")
    token = set_trace_context(run_id="r1")
    assert get_trace_context() == {"workspace_id": "ws-a", "run_id": "r1"}

    restore_trace_context(token)

    assert get_trace_context() == {"workspace_id": "ws-a"}


@pytest.mark.asyncio
async def test_node_context_stays_in_its_task():
    set_trace_context(run_id="r")

    async def node_task(node_id):
        set_trace_context(node_id=node_id)
        await asyncio.sleep(0)
        return get_trace_context()

    contexts = await asyncio.gather(node_task("a"), node_task("b"))

    assert [c["node_id"] for c in contexts] == ["a", "b"]
    assert get_trace_context() == {"run_id": "r"}
