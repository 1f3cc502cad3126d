# server/registry.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Type
from pydantic import BaseModel

from app.di import Container
from app.logging import log_tool_call

from server.tools.files import (
    FbCreateIn,
    FbDestroyIn,
    FbDownloadIn,
    FbReadIn,
    FbUploadIn,
    download_payload,
    read_entries,
    upload_entry,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    input_model: Type[BaseModel]
    handler: Callable[[BaseModel], Any]


class ToolHandlers:
    """
    Named handlers for each tool (no lambdas).
    Keeps all cross-cutting logic and observability in one place.
    """
    def __init__(self, container: Container):
        self.container = container

    @property
    def fb(self):
        return self.container.fb_service

    def fb_read(self, args: FbReadIn) -> list:
        return read_entries(self.fb, args.path)

    def fb_create(self, args: FbCreateIn) -> dict:
        return self.fb.create_directory(args.path, args.name).to_wire()

    def fb_destroy(self, args: FbDestroyIn) -> dict:
        self.fb.delete(args.path, args.name, args.type)
        return {"deleted": args.name, "type": args.type}

    def fb_upload(self, args: FbUploadIn) -> dict:
        return upload_entry(self.fb, args)

    def fb_download(self, args: FbDownloadIn) -> dict:
        return download_payload(self.fb, args.path)


def _schema_from_model(model: Type[BaseModel]) -> Dict[str, Any]:
    return model.model_json_schema()


def build_tool_registry(container: Container) -> Dict[str, ToolSpec]:
    """
    Build a registry once at startup from the DI container.
    Transport layers read from this registry to expose tools.
    """
    handlers = ToolHandlers(container)

    return {
        "fb_read": ToolSpec(
            name="fb_read",
            description="List a folder under the sandbox root",
            input_model=FbReadIn,
            handler=handlers.fb_read,
        ),
        "fb_create": ToolSpec(
            name="fb_create",
            description="Create a folder (no error if it already exists)",
            input_model=FbCreateIn,
            handler=handlers.fb_create,
        ),
        "fb_destroy": ToolSpec(
            name="fb_destroy",
            description="Delete a file, or a folder and everything in it",
            input_model=FbDestroyIn,
            handler=handlers.fb_destroy,
        ),
        "fb_upload": ToolSpec(
            name="fb_upload",
            description="Upload a file, replacing any file of the same name",
            input_model=FbUploadIn,
            handler=handlers.fb_upload,
        ),
        "fb_download": ToolSpec(
            name="fb_download",
            description="Download a file as base64",
            input_model=FbDownloadIn,
            handler=handlers.fb_download,
        ),
    }


def list_tools_payload(registry: Dict[str, ToolSpec]) -> Dict[str, Any]:
    """
    Produce the `tools/list` payload body as per MCP Tools spec.
    """
    tools = []
    for spec in registry.values():
        tools.append({
            "name": spec.name,
            "description": spec.description,
            "inputSchema": _schema_from_model(spec.input_model),
        })
    return {"tools": tools}


def dispatch_tool_call(registry: Dict[str, ToolSpec], name: str, arguments: Dict[str, Any]) -> Any:
    """
    Validate args with the tool's Pydantic model, then invoke the named handler.
    """
    if name not in registry:
        raise KeyError(f"Tool not found: {name}")
    spec = registry[name]
    log_tool_call(log, name, arguments)
    args_obj = spec.input_model(**arguments)
    return spec.handler(args_obj)
