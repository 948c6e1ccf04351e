import asyncio
import json

import pytest

from uptier.ipc import IpcRouter, UnknownChannelError, register_ipc_handlers
from uptier.mcp_server import build_server
from uptier.service import OPERATIONS


@pytest.fixture
def router(service):
    return register_ipc_handlers(IpcRouter(), service)


def test_every_operation_has_a_channel(router):
    assert router.channels == sorted(op.channel for op in OPERATIONS.values())


def test_channels_cannot_be_registered_twice(router, service):
    with pytest.raises(ValueError):
        router.handle("tasks:create", service.create_task)


def test_unknown_channel(router):
    with pytest.raises(UnknownChannelError) as excinfo:
        router.dispatch("tasks:explode", {})
    assert excinfo.value.channel == "tasks:explode"


def test_dispatch_returns_envelopes(router, inbox):
    created = router.dispatch("tasks:create", {"list_id": inbox.id, "title": "From the UI"})
    assert created["success"] is True
    listed = asyncio.run(router.invoke("tasks:getByList", {"list_id": inbox.id}))
    assert [t["title"] for t in listed["tasks"]] == ["From the UI"]
    assert router.dispatch("tasks:get", {"id": "nope"})["error_type"] == "not_found"


def test_handler_exceptions_propagate(router, db):
    db.close()
    with pytest.raises(Exception):
        router.dispatch("lists:getAll")


# ---------------------------------------------------------------------------
# MCP tools
# ---------------------------------------------------------------------------


def _payload(result) -> dict:
    """Decode a call_tool result across FastMCP return shapes."""
    if isinstance(result, tuple):
        result = result[0]
    if isinstance(result, dict):
        result = result["result"]
        return json.loads(result) if isinstance(result, str) else result
    return json.loads(result[0].text)


@pytest.fixture
def server(service):
    return build_server(service)


def test_tool_names_match_operations(server):
    tools = asyncio.run(server.list_tools())
    assert sorted(t.name for t in tools) == sorted(OPERATIONS)
    assert all(t.description for t in tools)


def test_quick_add_through_a_tool(server, service):
    result = _payload(asyncio.run(server.call_tool("quick_add_task", {"text": "Call mom tomorrow at 3pm #family"})))
    assert result["success"] is True
    assert result["task"]["due_time"] == "15:00"

    listed = _payload(asyncio.run(server.call_tool("get_tasks", {"list_id": result["task"]["list_id"]})))
    assert listed["count"] == 1


def test_tool_errors_come_back_as_envelopes(server):
    result = _payload(asyncio.run(server.call_tool("complete_task", {"id": "nope"})))
    assert result == {"success": False, "error": "Task not found", "error_type": "not_found"}

    invalid = _payload(asyncio.run(server.call_tool("get_tasks_by_date_range",
                                                   {"start_date": "soon", "end_date": "2026-10-20"})))
    assert invalid["error_type"] == "validation"
