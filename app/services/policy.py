# app/services/policy.py
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Protocol


class Operation(str, Enum):
    READ = "read"
    CREATE_DIRECTORY = "create_directory"
    DELETE = "delete"
    UPLOAD = "upload"
    DOWNLOAD = "download"


MUTATING = frozenset({Operation.CREATE_DIRECTORY, Operation.DELETE, Operation.UPLOAD})


class AccessPolicy(Protocol):
    """
    Authorization hook consulted after containment has passed.
    Implementations must be side-effect free; returning False yields Forbidden.
    """

    def authorize(self, operation: Operation, resolved_path: Path) -> bool: ...


class AllowAllPolicy:
    """Containment is the only gate."""

    def authorize(self, operation: Operation, resolved_path: Path) -> bool:
        return True


class ReadOnlyPolicy:
    def authorize(self, operation: Operation, resolved_path: Path) -> bool:
        return operation not in MUTATING
