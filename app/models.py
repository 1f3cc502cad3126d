# app/models.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import BinaryIO

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    FILE = "f"
    DIRECTORY = "d"


class Entry(BaseModel):
    """
    One listed filesystem object. Serialized as {name, type, size}
    (the `type` key carries "f" or "d").
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    kind: EntryKind = Field(..., alias="type")
    size: int = 0

    def to_wire(self) -> dict:
        return {"name": self.name, "type": self.kind.value, "size": self.size}


@dataclass
class Download:
    # The caller owns `stream` and must close it.
    stream: BinaryIO
    size: int
    name: str
