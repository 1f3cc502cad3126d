# server/tools/files.py
from __future__ import annotations

import base64
import binascii
import io
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field
from fastmcp import FastMCP

from app.errors import InvalidArgument
from app.services.filesystem import FileBrowserService


class FbReadIn(BaseModel):
    path: str = Field("", description="Directory relative to sandbox root ('' for the root)")


class FbCreateIn(BaseModel):
    path: str = Field("", description="Parent directory relative to sandbox root")
    name: str = Field(..., description="Name of the folder to create")


class FbDestroyIn(BaseModel):
    path: str = Field("", description="Parent directory relative to sandbox root")
    name: str = Field(..., description="Name of the file or folder to delete")
    type: Literal["f", "d"] = Field(..., description="'f' for a file, 'd' for a folder (recursive)")


class FbUploadIn(BaseModel):
    path: str = Field("", description="Target directory relative to sandbox root")
    name: str = Field(..., description="File name; must match the extension allow-list")
    content_base64: str = Field(..., description="File content, base64 encoded")


class FbDownloadIn(BaseModel):
    path: str = Field(..., description="File path relative to sandbox root")


def decode_payload(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidArgument("content_base64 is not valid base64") from e


def read_entries(fb: FileBrowserService, path: str) -> List[Dict[str, Any]]:
    return [e.to_wire() for e in fb.list(path)]


def upload_entry(fb: FileBrowserService, args: FbUploadIn) -> Dict[str, Any]:
    with io.BytesIO(decode_payload(args.content_base64)) as buf:
        return fb.upload(args.path, args.name, buf).to_wire()


def download_payload(fb: FileBrowserService, path: str) -> Dict[str, Any]:
    dl = fb.download(path)
    with dl.stream as fh:
        data = fh.read()
    return {
        "name": dl.name,
        "size": dl.size,
        "content_base64": base64.b64encode(data).decode("ascii"),
    }


def register_file_tools(mcp: FastMCP, fb_service: FileBrowserService):
    """
    Very thin tool adapters:
    - validate/deserialize inputs (Pydantic)
    - call the service (business logic + security)
    - return the result
    """

    @mcp.tool(name="fb_read", description="List a folder under the sandbox root")
    def fb_read(input: FbReadIn) -> List[Dict[str, Any]]:
        return read_entries(fb_service, input.path)

    @mcp.tool(name="fb_create", description="Create a folder (no error if it already exists)")
    def fb_create(input: FbCreateIn) -> Dict[str, Any]:
        return fb_service.create_directory(input.path, input.name).to_wire()

    @mcp.tool(name="fb_destroy", description="Delete a file, or a folder and everything in it")
    def fb_destroy(input: FbDestroyIn) -> Dict[str, Any]:
        fb_service.delete(input.path, input.name, input.type)
        return {"deleted": input.name, "type": input.type}

    @mcp.tool(name="fb_upload", description="Upload a file, replacing any file of the same name")
    def fb_upload(input: FbUploadIn) -> Dict[str, Any]:
        return upload_entry(fb_service, input)

    @mcp.tool(name="fb_download", description="Download a file as base64")
    def fb_download(input: FbDownloadIn) -> Dict[str, Any]:
        return download_payload(fb_service, input.path)
