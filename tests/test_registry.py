# tests/test_registry.py
import base64
import logging
from pathlib import Path

import pytest

from app.config import Settings
from app.di import build_container
from app.logging import redact_args
from server.registry import build_tool_registry, dispatch_tool_call, list_tools_payload


@pytest.fixture
def registry(tmp_path: Path):
    container = build_container(Settings(SANDBOX_ROOT=tmp_path, FILE_FILTER="*.txt"))
    return build_tool_registry(container)


def test_tools_payload_has_schemas(registry):
    tools = {t["name"]: t for t in list_tools_payload(registry)["tools"]}
    assert "path" in tools["fb_read"]["inputSchema"]["properties"]
    assert tools["fb_destroy"]["inputSchema"]["required"] == ["name", "type"]


def test_dispatch_roundtrip(registry, tmp_path: Path):
    dispatch_tool_call(registry, "fb_create", {"name": "notes"})
    data = base64.b64encode(b"remember").decode()
    entry = dispatch_tool_call(registry, "fb_upload", {"path": "notes", "name": "todo.txt", "content_base64": data})
    assert entry == {"name": "todo.txt", "type": "f", "size": 8}
    assert dispatch_tool_call(registry, "fb_read", {"path": "notes"}) == [entry]

    dispatch_tool_call(registry, "fb_destroy", {"name": "notes", "type": "d"})
    assert dispatch_tool_call(registry, "fb_read", {}) == []


def test_dispatch_unknown_tool(registry):
    with pytest.raises(KeyError):
        dispatch_tool_call(registry, "fs_write", {})


def test_tool_call_log_hides_payloads(registry, caplog):
    data = base64.b64encode(b"secret body").decode()
    with caplog.at_level(logging.INFO, logger="server.registry"):
        dispatch_tool_call(registry, "fb_upload", {"name": "a.txt", "content_base64": data})
    assert data not in caplog.text
    assert "fb_upload" in caplog.text


def test_redact_args():
    out = redact_args({"name": "jane@example.com.txt", "content_base64": "QUJD"})
    assert out["content_base64"] == "[4 base64 chars]"
    assert "jane@example.com" not in out["name"]
